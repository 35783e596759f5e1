# File: zodgen/__init__.py
"""
NexaFlow ZodGen — Zod Validator Generator
===========================================

Turns introspected PostgreSQL metadata (schemas, tables, views, columns,
relationships, functions, enum and composite types) into one TypeScript
module of Zod v4 validators: read, insert, lenient-insert and update
shapes per relation, argument/return shapes per function, relationship
accessors tagged with their join metadata.

Architecture overview::

    ┌──────────────┐     ┌───────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│  ZodGenerator  │────▶│ TemplateGenerator│
    │   (cli.py)   │     │ (generator.py) │     │  (templates.py)  │
    └──────────────┘     └───────┬───────┘     └────────┬─────────┘
                                 │                      ▼
                    ┌────────────┼────────────┐ ┌────────────────┐
                    ▼            ▼            ▼ │ SchemaAssembler│
             ┌──────────┐ ┌───────────┐ ┌──────────┐ └───────┬────────┘
             │validators│ │  models   │ │formatters│         ▼
             └──────────┘ └───────────┘ └──────────┘  type_resolver,
                                                      relationships

Usage::

    # As a library
    from zodgen import ZodGenerator, MetadataBundle, GenerationConfig
    report = ZodGenerator().generate(MetadataBundle.model_validate(raw))
    print(report.output_text)

    # From the command line
    python -m zodgen -i metadata.json -o schema.ts --verbose

Public API:
    - ZodGenerator       — Master orchestrator
    - GenerationConfig   — Generation settings model
    - MetadataBundle     — Introspected metadata model
    - TemplateGenerator  — Document emitter
    - validate_full      — Metadata diagnostics entry point
"""

from __future__ import annotations

__version__: str = "1.0.0"
__author__: str = "NexaFlow Team"
__license__: str = "MIT"

from zodgen.models import (
    ArgumentMode,
    ColumnInfo,
    FormatStyle,
    FormatterKind,
    FunctionArgument,
    FunctionInfo,
    GenerationConfig,
    GenerationMode,
    IdentityGeneration,
    MetadataBundle,
    RelationInfo,
    RelationKind,
    RelationshipInfo,
    SchemaInfo,
    TypeAttribute,
    TypeInfo,
)
from zodgen.coercion import (
    LenientBool,
    LenientFloat,
    LenientInt,
    LenientTemporal,
    coerce,
)
from zodgen.validators import ValidationResult, validate_full
from zodgen.type_resolver import TypeResolver, resolve
from zodgen.relationships import RelationshipAnalysis, analyze
from zodgen.assembler import SchemaAssembler
from zodgen.templates import TemplateGenerator, ZodRenderer
from zodgen.formatters import (
    FormatterError,
    PassthroughFormatter,
    PrettierFormatter,
    get_formatter,
)
from zodgen.generator import GenerationReport, ZodGenerator

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Core orchestrator
    "ZodGenerator",
    "GenerationReport",
    # Models
    "ArgumentMode",
    "ColumnInfo",
    "FormatStyle",
    "FormatterKind",
    "FunctionArgument",
    "FunctionInfo",
    "GenerationConfig",
    "GenerationMode",
    "IdentityGeneration",
    "MetadataBundle",
    "RelationInfo",
    "RelationKind",
    "RelationshipInfo",
    "SchemaInfo",
    "TypeAttribute",
    "TypeInfo",
    # Components
    "TypeResolver",
    "resolve",
    "RelationshipAnalysis",
    "analyze",
    "SchemaAssembler",
    "TemplateGenerator",
    "ZodRenderer",
    # Lenient coercion
    "LenientBool",
    "LenientFloat",
    "LenientInt",
    "LenientTemporal",
    "coerce",
    # Diagnostics
    "validate_full",
    "ValidationResult",
    # Formatting
    "FormatterError",
    "PassthroughFormatter",
    "PrettierFormatter",
    "get_formatter",
]
