# File: zodgen/validators.py
"""
NexaFlow ZodGen - Metadata Diagnostics
=======================================
Cross-entity checks over a ``MetadataBundle``.

Generation never fails on metadata problems (unresolvable references
degrade to ``z.unknown()``), so nothing here is an error: every finding
is a *warning* (the output is probably not what you want) or *info* (a
heuristic or fallback was applied).

Usage:
    from zodgen.validators import validate_full
    result = validate_full(metadata, config)
    print(result.format_report())
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import Any, Callable, Dict, List, Optional, Set

from zodgen.models import ColumnInfo, GenerationConfig, MetadataBundle, RelationInfo
from zodgen.relationships import RelationshipAnalysis, analyze
from zodgen.templates import function_identifiers, schema_identifier

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class Diagnostic:
    """Lightweight finding descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``Diagnostic`` instances produced by the checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[Diagnostic] = []

    # -- Mutation -----------------------------------------------------------

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(Diagnostic("warning", code, message, context))

    def add_info(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(Diagnostic("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self._items if d.is_warning]

    @property
    def infos(self) -> List[Diagnostic]:
        return [d for d in self._items if not d.is_warning]

    @property
    def all_items(self) -> List[Diagnostic]:
        return list(self._items)

    @property
    def has_warnings(self) -> bool:
        return any(d.is_warning for d in self._items)

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self._items if d.is_warning)

    def codes(self) -> List[str]:
        return [d.code for d in self._items]

    def summary(self) -> str:
        return (
            f"Diagnostics: {self.warning_count} warning(s), "
            f"{len(self._items) - self.warning_count} info item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary()]
        for item in self._items:
            if not include_info and not item.is_warning:
                continue
            prefix: str = "⚠️" if item.is_warning else "ℹ️"
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            for k, v in item.context.items():
                lines.append(f"       {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_relations(metadata: MetadataBundle) -> ValidationResult:
    """
    - relation ids unique across tables, foreign tables, views and
      materialized views
    - owning schema listed in ``schemas`` (otherwise never emitted)
    """
    result: ValidationResult = ValidationResult()
    seen: Dict[int, RelationInfo] = {}
    known_schemas: Set[str] = set(metadata.schema_names)

    for rel in metadata.all_relations:
        ctx: Dict[str, Any] = {"relation": f"{rel.schema_name}.{rel.name}", "id": rel.id}
        first: Optional[RelationInfo] = seen.get(rel.id)
        if first is not None:
            result.add_warning(
                "DUPLICATE_RELATION_ID",
                f"Relation id {rel.id} is used by both "
                f"'{first.schema_name}.{first.name}' and "
                f"'{rel.schema_name}.{rel.name}'; columns attach to the first.",
                ctx,
            )
        else:
            seen[rel.id] = rel

        if rel.schema_name not in known_schemas:
            result.add_warning(
                "RELATION_SCHEMA_UNKNOWN",
                f"Relation '{rel.schema_name}.{rel.name}' belongs to a schema "
                f"that is not listed; it will not be emitted.",
                ctx,
            )

    logger.debug("validate_relations: %d issue(s).", len(result))
    return result


def validate_columns(metadata: MetadataBundle) -> ValidationResult:
    """Orphan columns and duplicate column names within a relation."""
    result: ValidationResult = ValidationResult()
    names: Dict[int, Counter[str]] = defaultdict(Counter)

    for col in metadata.columns:
        if metadata.get_relation(col.table_id) is None:
            result.add_warning(
                "ORPHAN_COLUMN",
                f"Column '{col.name}' references unknown relation id "
                f"{col.table_id}; it is ignored.",
                {"column": col.name, "table_id": col.table_id},
            )
            continue
        names[col.table_id][col.name] += 1

    for table_id, counter in names.items():
        rel: Optional[RelationInfo] = metadata.get_relation(table_id)
        if rel is None:
            continue
        for name, count in sorted(counter.items()):
            if count > 1:
                result.add_warning(
                    "DUPLICATE_COLUMN",
                    f"Column '{name}' appears {count} times in "
                    f"'{rel.schema_name}.{rel.name}'; only the first is "
                    f"emitted.",
                    {"relation": f"{rel.schema_name}.{rel.name}", "column": name},
                )

    logger.debug("validate_columns: %d issue(s).", len(result))
    return result


def validate_relationships(metadata: MetadataBundle) -> ValidationResult:
    """Foreign keys whose source or target relation is unknown."""
    result: ValidationResult = ValidationResult()

    for rel in metadata.relationships:
        ctx: Dict[str, Any] = {"constraint": rel.foreign_key_name}
        if metadata.find_relation(rel.schema_name, rel.relation) is None:
            result.add_warning(
                "RELATIONSHIP_SOURCE_MISSING",
                f"Foreign key '{rel.foreign_key_name}' is declared on unknown "
                f"relation '{rel.schema_name}.{rel.relation}'.",
                ctx,
            )
        if metadata.find_relation(rel.referenced_schema, rel.referenced_relation) is None:
            result.add_warning(
                "RELATIONSHIP_TARGET_MISSING",
                f"Foreign key '{rel.foreign_key_name}' points at unknown relation "
                f"'{rel.referenced_schema}.{rel.referenced_relation}'; its "
                f"accessor degrades to z.unknown().",
                ctx,
            )

    logger.debug("validate_relationships: %d issue(s).", len(result))
    return result


def validate_junctions(
    metadata: MetadataBundle,
    analysis: Optional[RelationshipAnalysis] = None,
) -> ValidationResult:
    """
    Report every relation classified as a junction.

    Junctions carrying columns beyond their two foreign keys are warnings:
    the two-foreign-key rule may have misclassified a regular table.
    """
    result: ValidationResult = ValidationResult()
    analysis = analysis or analyze(metadata.all_relations, metadata.relationships)

    for (schema_name, name), (first, second) in sorted(analysis.junctions.items()):
        rel: Optional[RelationInfo] = metadata.find_relation(schema_name, name)
        if rel is None:
            continue
        key_columns: Set[str] = set(first.columns) | set(second.columns)
        columns: List[ColumnInfo] = metadata.columns_for(rel.id)
        extra: List[str] = [c.name for c in columns if c.name not in key_columns]
        ctx: Dict[str, Any] = {
            "relation": f"{schema_name}.{name}",
            "links": f"{first.referenced_relation} <-> {second.referenced_relation}",
        }
        if extra:
            ctx["extra_columns"] = ", ".join(extra)
            result.add_warning(
                "JUNCTION_WITH_PAYLOAD",
                f"'{schema_name}.{name}' has exactly two foreign keys and is "
                f"treated as a junction, but also carries {len(extra)} other "
                f"column(s).",
                ctx,
            )
        else:
            result.add_info(
                "JUNCTION_INFERRED",
                f"'{schema_name}.{name}' is treated as a junction.",
                ctx,
            )

    logger.debug("validate_junctions: %d issue(s).", len(result))
    return result


def validate_type_names(metadata: MetadataBundle) -> ValidationResult:
    """Enum names defined in several schemas resolve by home-schema preference."""
    result: ValidationResult = ValidationResult()
    owners: Dict[str, List[str]] = defaultdict(list)
    for type_info in metadata.types:
        if type_info.is_enum:
            owners[type_info.name].append(type_info.schema_name)

    for name, schemas in sorted(owners.items()):
        if len(schemas) > 1:
            result.add_info(
                "AMBIGUOUS_ENUM_NAME",
                f"Enum '{name}' exists in schemas {', '.join(schemas)}; columns "
                f"outside those schemas resolve to the '{schemas[0]}' variant.",
                {"enum": name, "schemas": schemas},
            )

    logger.debug("validate_type_names: %d issue(s).", len(result))
    return result


def validate_functions(metadata: MetadataBundle) -> ValidationResult:
    """Skipped functions and unresolvable argument / return types."""
    result: ValidationResult = ValidationResult()

    for fn in metadata.functions:
        qualified: str = f"{fn.schema_name}.{fn.name}"
        if not fn.has_addressable_args:
            result.add_info(
                "FUNCTION_SKIPPED",
                f"Function '{qualified}' (id {fn.id}) has several unnamed input "
                f"arguments and is not emitted.",
                {"function": qualified, "id": fn.id},
            )
            continue
        for arg in fn.args:
            if metadata.get_type(arg.type_id) is None:
                result.add_warning(
                    "FUNCTION_TYPE_MISSING",
                    f"Argument '{arg.name}' of '{qualified}' references unknown "
                    f"type id {arg.type_id}; it degrades to z.unknown().",
                    {"function": qualified, "type_id": arg.type_id},
                )
        if (
            fn.return_type_id is not None
            and metadata.get_type(fn.return_type_id) is None
            and metadata.get_relation(fn.return_type_relation_id) is None
        ):
            result.add_warning(
                "FUNCTION_TYPE_MISSING",
                f"Return type id {fn.return_type_id} of '{qualified}' is unknown; "
                f"it degrades to z.unknown().",
                {"function": qualified, "type_id": fn.return_type_id},
            )

    logger.debug("validate_functions: %d issue(s).", len(result))
    return result


def validate_identifiers(
    metadata: MetadataBundle, config: GenerationConfig
) -> ValidationResult:
    """Relations or functions whose generated constant names collide."""
    result: ValidationResult = ValidationResult()
    owners: Dict[str, List[str]] = defaultdict(list)

    for schema_name in metadata.schema_names:
        if not config.is_schema_emitted(schema_name):
            continue
        for rel in metadata.relations_in(schema_name):
            owners[schema_identifier(schema_name, rel.name)].append(
                f"{schema_name}.{rel.name}"
            )
        for fn_name in sorted(
            {f.name for f in metadata.functions_in(schema_name) if f.has_addressable_args}
        ):
            owners[function_identifiers(schema_name, fn_name)[0]].append(
                f"{schema_name}.{fn_name}()"
            )

    for identifier, names in sorted(owners.items()):
        if len(names) > 1:
            result.add_warning(
                "IDENTIFIER_COLLISION",
                f"{', '.join(names)} all map to '{identifier}'; only the first "
                f"is emitted.",
                {"identifier": identifier},
            )

    logger.debug("validate_identifiers: %d issue(s).", len(result))
    return result


def validate_config(
    metadata: MetadataBundle, config: GenerationConfig
) -> ValidationResult:
    """Default-schema fallback and schema filters naming unknown schemas."""
    result: ValidationResult = ValidationResult()
    known: Set[str] = set(metadata.schema_names)

    wanted: str = config.default_schema or "public"
    resolved: Optional[str] = metadata.resolve_default_schema(config.default_schema)
    if resolved is None:
        result.add_warning(
            "NO_SCHEMAS",
            "Metadata lists no schemas; the document will only hold helpers.",
        )
    elif resolved != wanted:
        result.add_info(
            "DEFAULT_SCHEMA_FALLBACK",
            f"Default schema '{wanted}' not found; using '{resolved}'.",
            {"requested": wanted, "resolved": resolved},
        )

    for name in config.included_schemas:
        if name not in known:
            result.add_warning(
                "UNKNOWN_INCLUDED_SCHEMA",
                f"Included schema '{name}' does not exist in the metadata.",
                {"schema": name},
            )
    for name in config.excluded_schemas:
        if name not in known:
            result.add_info(
                "UNKNOWN_EXCLUDED_SCHEMA",
                f"Excluded schema '{name}' does not exist in the metadata.",
                {"schema": name},
            )

    logger.debug("validate_config: %d issue(s).", len(result))
    return result


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


def validate_metadata(metadata: MetadataBundle) -> ValidationResult:
    """Run every metadata-only check."""
    result: ValidationResult = ValidationResult()
    checks: List[Callable[[MetadataBundle], ValidationResult]] = [
        validate_relations,
        validate_columns,
        validate_relationships,
        validate_junctions,
        validate_type_names,
        validate_functions,
    ]
    for check in checks:
        logger.debug("Running check: %s", check.__name__)
        result.merge(check(metadata))
    return result


def validate_full(
    metadata: MetadataBundle,
    config: Optional[GenerationConfig] = None,
) -> ValidationResult:
    """
    **Master diagnostics entry point**, called by ``generator.py`` and
    ``cli.py`` before emission.
    """
    config = config or GenerationConfig()
    result: ValidationResult = validate_metadata(metadata)
    result.merge(validate_identifiers(metadata, config))
    result.merge(validate_config(metadata, config))

    if result.has_warnings:
        logger.warning("Diagnostics found issues. %s", result.summary())
    else:
        logger.info("Diagnostics clean. %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "Diagnostic",
    "ValidationResult",
    "validate_relations",
    "validate_columns",
    "validate_relationships",
    "validate_junctions",
    "validate_type_names",
    "validate_functions",
    "validate_identifiers",
    "validate_config",
    "validate_metadata",
    "validate_full",
]

logger.debug("zodgen.validators loaded — %d public symbols.", len(__all__))
