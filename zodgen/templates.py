# File: zodgen/templates.py
"""
NexaFlow ZodGen - Zod Source Emission
======================================
Two layers:

1. ``ZodRenderer`` translates ``zodgen.builder`` trees into Zod (v4)
   expressions.  It is the only place that knows target syntax.
2. ``TemplateGenerator`` is the emission driver: it runs the assembler and
   lays the document out deterministically::

       import / lenient helpers
       <schema> schema tables      (every schema, by name)
       <schema> schema views
       <schema> schema functions
       default schema aliases
       validation helpers

**Performance contract:**
    - All string assembly uses the ``List[str]`` + ``"\\n".join()`` pattern.
    - Rendering is a single walk over each tree.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from zodgen.assembler import (
    FunctionBundle,
    RelationBundle,
    SchemaAssembler,
    modes_for,
)
from zodgen.builder import (
    ArrayOf,
    EnumOf,
    FieldSpec,
    Lenient,
    LenientRule,
    Nullable,
    ObjectOf,
    OptionalOf,
    RecordOf,
    Reference,
    RelationshipTag,
    Scalar,
    ScalarKind,
    Tagged,
    UnionOf,
    Validator,
)
from zodgen.coercion import DECIMAL_PATTERN, ISO_DATETIME_PATTERN
from zodgen.models import (
    FormatStyle,
    GenerationConfig,
    GenerationMode,
    MetadataBundle,
    RelationInfo,
)
from zodgen.utils import format_list_literal, quote_literal, ts_identifier

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_SCALARS: Dict[str, str] = {
    ScalarKind.BOOLEAN.value: "z.boolean()",
    ScalarKind.INTEGER.value: "z.number().int()",
    ScalarKind.NUMBER.value: "z.number()",
    ScalarKind.STRING.value: "z.string()",
    ScalarKind.UUID.value: "z.string().uuid()",
    ScalarKind.ISO_DATE.value: "z.string().date()",
    ScalarKind.ISO_DATETIME.value: "z.string().datetime({ offset: true, local: true })",
    ScalarKind.COERCED_DATE.value: "z.coerce.date()",
    ScalarKind.ANY.value: "z.any()",
    ScalarKind.UNDEFINED.value: "z.undefined()",
    ScalarKind.UNKNOWN.value: "z.unknown()",
    ScalarKind.NEVER.value: "z.never()",
}

LENIENT_HELPER_NAMES: Dict[str, str] = {
    LenientRule.BOOLEAN.value: "lenientBoolean",
    LenientRule.INTEGER.value: "lenientInteger",
    LenientRule.FLOAT.value: "lenientFloat",
    LenientRule.TEMPORAL.value: "lenientDate",
}

MODE_SUFFIXES: Dict[str, str] = {
    GenerationMode.LIST.value: "Row",
    GenerationMode.INSERT.value: "Insert",
    GenerationMode.INSERT_LENIENT.value: "InsertLenient",
    GenerationMode.UPDATE.value: "Update",
}


def _issue(expected: str) -> str:
    return (
        "ctx.addIssue({ code: 'custom', input: value, message: "
        f"`Expected {expected}, received "
        "${describeValue(value)} (${typeof value})` })"
    )


# Each helper is a single statement; the terminator is appended on emission.
LENIENT_HELPERS: Tuple[str, ...] = (
    "\n".join([
        "const describeValue = (value: unknown): string => {",
        "  try {",
        "    return JSON.stringify(value) ?? String(value)",
        "  } catch {",
        "    return String(value)",
        "  }",
        "}",
    ]),
    "\n".join([
        "export const lenientBoolean = z.unknown().transform((value, ctx) => {",
        "  if (typeof value === 'boolean') return value",
        "  if (typeof value === 'string') {",
        "    const lowered = value.toLowerCase()",
        "    if (lowered === 'true') return true",
        "    if (lowered === 'false') return false",
        "  }",
        "  " + _issue("a boolean"),
        "  return z.NEVER",
        "})",
    ]),
    "\n".join([
        "export const lenientInteger = z.unknown().transform((value, ctx) => {",
        "  if (typeof value === 'number' && Number.isInteger(value)) return value",
        "  if (typeof value === 'string') {",
        "    const parsed = Number.parseInt(value, 10)",
        "    if (String(parsed) === value) return parsed",
        "  }",
        "  " + _issue("an integer"),
        "  return z.NEVER",
        "})",
    ]),
    "\n".join([
        "export const lenientFloat = z.unknown().transform((value, ctx) => {",
        "  if (typeof value === 'number') return value",
        f"  if (typeof value === 'string' && /{DECIMAL_PATTERN}/.test(value)) {{",
        "    const parsed = Number(value)",
        "    if (Number.isFinite(parsed)) return parsed",
        "  }",
        "  " + _issue("a number"),
        "  return z.NEVER",
        "})",
    ]),
    "\n".join([
        "export const lenientDate = z.unknown().transform((value, ctx) => {",
        "  if (value instanceof Date && !Number.isNaN(value.getTime())) return value",
        "  if (typeof value === 'string') {",
        f"    const match = /{ISO_DATETIME_PATTERN}/.exec(value)",
        "    if (match) {",
        "      const [year, month, day] = match.slice(1, 4).map(Number)",
        "      const calendar = new Date(0)",
        "      calendar.setUTCFullYear(year, month - 1, day)",
        "      const parsed = new Date(value)",
        "      if (",
        "        calendar.getUTCFullYear() === year &&",
        "        calendar.getUTCMonth() === month - 1 &&",
        "        calendar.getUTCDate() === day &&",
        "        !Number.isNaN(parsed.getTime())",
        "      ) return parsed",
        "    }",
        "  }",
        "  " + _issue("a date"),
        "  return z.NEVER",
        "})",
    ]),
)

_SAFE_PARSE_RESULT: str = (
    "{ success: true; data: T } | { success: false; error: z.ZodError }"
)

VALIDATION_HELPER_NAMES: Tuple[str, ...] = (
    "validateTableInsert",
    "validateTableUpdate",
    "validateFunctionArgs",
)


def schema_identifier(schema_name: str, relation: str, mode: str = "list") -> str:
    """``PublicUsersRowSchema`` style constant name."""
    return ts_identifier(
        schema_name, relation, suffix=MODE_SUFFIXES[GenerationMode(mode).value] + "Schema"
    )


def type_identifier(schema_name: str, relation: str, mode: str = "list") -> str:
    return ts_identifier(
        schema_name, relation, suffix=MODE_SUFFIXES[GenerationMode(mode).value]
    )


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class ZodRenderer:
    """Builder tree → Zod expression text."""

    def __init__(self, style: Optional[FormatStyle] = None) -> None:
        self._style: FormatStyle = style or FormatStyle()
        self._indent: str = " " * self._style.tab_width

    @property
    def indent(self) -> str:
        return self._indent

    def render(self, validator: Validator, depth: int = 0) -> str:
        if isinstance(validator, Scalar):
            return _SCALARS[ScalarKind(validator.kind).value]
        if isinstance(validator, Lenient):
            return LENIENT_HELPER_NAMES[LenientRule(validator.rule).value]
        if isinstance(validator, EnumOf):
            return f"z.enum({format_list_literal(validator.values)})"
        if isinstance(validator, RecordOf):
            return f"z.record(z.string(), {self.render(validator.value, depth)})"
        if isinstance(validator, ArrayOf):
            return f"z.array({self.render(validator.item, depth)})"
        if isinstance(validator, Nullable):
            return f"{self.render(validator.inner, depth)}.nullable()"
        if isinstance(validator, OptionalOf):
            return f"{self.render(validator.inner, depth)}.optional()"
        if isinstance(validator, UnionOf):
            members: str = ", ".join(self.render(m, depth) for m in validator.members)
            return f"z.union([{members}])"
        if isinstance(validator, Reference):
            return schema_identifier(
                validator.schema_name, validator.relation, validator.mode
            )
        if isinstance(validator, Tagged):
            return (
                f"{self.render(validator.inner, depth)}"
                f".meta({render_tag(validator.tag)})"
            )
        if isinstance(validator, ObjectOf):
            return self._render_object(validator, depth)
        raise TypeError(f"Cannot render validator node {validator!r}")

    def _render_object(self, obj: ObjectOf, depth: int) -> str:
        if not obj.fields:
            return "z.object({})"
        inner: str = self._indent * (depth + 1)
        lines: List[str] = ["z.object({"]
        lines.extend(f"{inner}{self.render_field(f, depth + 1)}," for f in obj.fields)
        lines.append(f"{self._indent * depth}}})")
        return "\n".join(lines)

    def render_field(self, spec: FieldSpec, depth: int = 0) -> str:
        key: str = quote_literal(spec.key)
        value: str = self.render(spec.validator, depth)
        if spec.lazy:
            return f"get {key}() {{ return {value} }}"
        return f"{key}: {value}"


def render_tag(tag: RelationshipTag) -> str:
    """``{"relationship": {...}}``; single-column keys as strings, composite as arrays."""
    payload: Dict[str, object] = {
        "cardinality": tag.cardinality,
        "schema": tag.target_schema,
        "target": tag.target,
    }
    if tag.cardinality == "one":
        payload["sourceKey"] = _key(tag.source_key)
        payload["targetKey"] = _key(tag.target_key)
        payload["constraint"] = tag.constraint
    else:
        payload["join"] = tag.join
        payload["sourceKey"] = _key(tag.source_key)
        payload["joinSourceKey"] = _key(tag.join_source_key)
        payload["joinTargetKey"] = _key(tag.join_target_key)
        payload["targetKey"] = _key(tag.target_key)
    return json.dumps({"relationship": payload}, ensure_ascii=False)


def _key(columns: Tuple[str, ...]) -> object:
    return columns[0] if len(columns) == 1 else list(columns)


# ---------------------------------------------------------------------------
# Emission driver
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class EmittedDocument:
    """The raw (unformatted) document plus what went into it."""

    text: str
    default_schema: Optional[str]
    schemas: List[str] = field(default_factory=list)
    relations: int = 0
    functions: int = 0
    identifiers: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class TemplateGenerator:
    """
    Emission driver: orders schemas and relations deterministically and
    concatenates every bundle into one document.

    Holds no per-run state; ``build_document`` creates a fresh assembler
    unless one is passed in.
    """

    def __init__(self, config: Optional[GenerationConfig] = None) -> None:
        self._config: GenerationConfig = config or GenerationConfig()
        self._renderer: ZodRenderer = ZodRenderer(self._config.style)
        self._end: str = ";" if self._config.style.semi else ""
        self._quote: str = "'" if self._config.style.single_quote else '"'
        logger.debug(
            "TemplateGenerator initialised (default_schema=%s, type_exports=%s).",
            self._config.default_schema,
            self._config.emit_type_exports,
        )

    @property
    def renderer(self) -> ZodRenderer:
        return self._renderer

    # ===================================================================
    # 1. Preamble
    # ===================================================================

    def generate_preamble(self) -> str:
        lines: List[str] = [
            f"import {{ z }} from {self._quote}zod{self._quote}{self._end}",
            "",
            "// Lenient coercion helpers",
        ]
        lines.append("\n\n".join(helper + self._end for helper in LENIENT_HELPERS))
        return "\n".join(lines)

    # ===================================================================
    # 2. Relations
    # ===================================================================

    def generate_relation(self, bundle: RelationBundle) -> str:
        """All shapes of one relation, then their inferred types."""
        relation: RelationInfo = bundle.relation
        blocks: List[str] = []
        for mode_value, shape in bundle.shapes.items():
            name: str = schema_identifier(relation.schema_name, relation.name, mode_value)
            blocks.append(
                f"export const {name} = {self._renderer.render(shape)}{self._end}"
            )

        if self._config.emit_type_exports:
            blocks.append(
                "\n".join(
                    self._type_export(
                        type_identifier(relation.schema_name, relation.name, mode_value),
                        schema_identifier(relation.schema_name, relation.name, mode_value),
                    )
                    for mode_value in bundle.shapes
                )
            )
        return "\n\n".join(blocks)

    # ===================================================================
    # 3. Functions
    # ===================================================================

    def generate_function(self, bundle: FunctionBundle) -> str:
        args_name, returns_name = function_identifiers(bundle.schema_name, bundle.name)
        lines: List[str] = [
            f"export const {args_name} = {self._renderer.render(bundle.args)}{self._end}",
            f"export const {returns_name} = {self._renderer.render(bundle.returns)}{self._end}",
        ]
        if self._config.emit_type_exports:
            lines.append(self._type_export(args_name[: -len("Schema")], args_name))
            lines.append(self._type_export(returns_name[: -len("Schema")], returns_name))
        return "\n".join(lines)

    # ===================================================================
    # 4. Default schema aliases
    # ===================================================================

    def generate_aliases(
        self,
        default_schema: str,
        relations: List[RelationBundle],
        functions: List[FunctionBundle],
        declared: Set[str],
    ) -> str:
        """
        Re-export ``default_schema`` under unprefixed names.

        An alias whose name is already declared is skipped.
        """
        pairs: List[Tuple[str, str]] = []
        for bundle in relations:
            if bundle.relation.schema_name != default_schema:
                continue
            for mode_value in bundle.shapes:
                suffix: str = MODE_SUFFIXES[mode_value]
                pairs.append(
                    (
                        ts_identifier(bundle.relation.name, suffix=suffix),
                        type_identifier(default_schema, bundle.relation.name, mode_value),
                    )
                )
        for fn in functions:
            if fn.schema_name != default_schema:
                continue
            for suffix in ("Args", "Returns"):
                pairs.append(
                    (
                        ts_identifier(fn.name, suffix=suffix),
                        ts_identifier(default_schema, fn.name, suffix=suffix),
                    )
                )

        lines: List[str] = []
        for alias, target in pairs:
            alias_schema: str = f"{alias}Schema"
            if alias_schema in declared:
                logger.debug("Alias %s already declared; skipped.", alias_schema)
                continue
            declared.add(alias_schema)
            lines.append(f"export const {alias_schema} = {target}Schema{self._end}")
            if self._config.emit_type_exports:
                lines.append(f"export type {alias} = {target}{self._end}")

        if not lines:
            return ""
        return "\n".join([f"// {default_schema} schema aliases", *lines])

    # ===================================================================
    # 5. Validation helpers
    # ===================================================================

    def generate_validation_helpers(self) -> str:
        parameters: Dict[str, str] = {
            "validateTableInsert": "data",
            "validateTableUpdate": "data",
            "validateFunctionArgs": "args",
        }
        blocks: List[str] = ["// Validation helpers"]
        for name in VALIDATION_HELPER_NAMES:
            param: str = parameters[name]
            blocks.append(
                "\n".join([
                    f"export const {name} = <T>(",
                    f"{self._renderer.indent}schema: z.ZodType<T>,",
                    f"{self._renderer.indent}{param}: unknown",
                    f"): {_SAFE_PARSE_RESULT} => {{",
                    f"{self._renderer.indent}const result = schema.safeParse({param}){self._end}",
                    f"{self._renderer.indent}return result.success",
                    f"{self._renderer.indent * 2}? {{ success: true, data: result.data }}",
                    f"{self._renderer.indent * 2}: {{ success: false, error: result.error }}{self._end}",
                    f"}}{self._end}",
                ])
            )
        return "\n\n".join(blocks)

    # ===================================================================
    # 6. Whole document
    # ===================================================================

    def build_document(
        self,
        metadata: MetadataBundle,
        assembler: Optional[SchemaAssembler] = None,
    ) -> EmittedDocument:
        """
        Assemble and lay out every emitted schema.

        Relations whose constant name collides with one already declared
        are skipped and listed in ``EmittedDocument.skipped``.
        """
        assembler = assembler or SchemaAssembler(metadata, self._config)
        default_schema: Optional[str] = metadata.resolve_default_schema(
            self._config.default_schema
        )
        schemas: List[str] = [
            s for s in metadata.schema_names if self._config.is_schema_emitted(s)
        ]

        # Collisions are settled before shells are registered; a skipped
        # relation has no shell, so references to it render as unknown.
        declared: Set[str] = set(LENIENT_HELPER_NAMES.values())
        declared.update(VALIDATION_HELPER_NAMES)
        skipped: List[str] = []
        emitted: List[RelationInfo] = []
        for relation in assembler.emitted_relations():
            names: List[str] = [
                schema_identifier(relation.schema_name, relation.name, m)
                for m in modes_for(relation)
            ]
            if any(n in declared for n in names):
                logger.warning(
                    "Identifier collision for %s.%s; relation skipped.",
                    relation.schema_name,
                    relation.name,
                )
                skipped.append(f"{relation.schema_name}.{relation.name}")
                continue
            declared.update(names)
            emitted.append(relation)

        kept: List[RelationBundle] = assembler.assemble_all(emitted)

        function_bundles: List[FunctionBundle] = []
        for schema_name in schemas:
            for fn in assembler.assemble_functions(schema_name):
                names = list(function_identifiers(fn.schema_name, fn.name))
                if any(n in declared for n in names):
                    logger.warning(
                        "Identifier collision for function %s.%s; skipped.",
                        fn.schema_name,
                        fn.name,
                    )
                    skipped.append(f"{fn.schema_name}.{fn.name}()")
                    continue
                declared.update(names)
                function_bundles.append(fn)

        sections: List[str] = [self.generate_preamble()]
        sections.extend(self._relation_sections(schemas, kept, views=False))
        sections.extend(self._relation_sections(schemas, kept, views=True))
        for schema_name in schemas:
            in_schema: List[FunctionBundle] = [
                f for f in function_bundles if f.schema_name == schema_name
            ]
            if in_schema:
                sections.append(
                    "\n\n".join(
                        [f"// {schema_name} schema functions"]
                        + [self.generate_function(f) for f in in_schema]
                    )
                )

        if (
            self._config.emit_default_aliases
            and default_schema is not None
            and default_schema in schemas
        ):
            aliases: str = self.generate_aliases(
                default_schema, kept, function_bundles, declared
            )
            if aliases:
                sections.append(aliases)

        if self._config.emit_validation_helpers:
            sections.append(self.generate_validation_helpers())

        text: str = "\n\n".join(sections) + "\n"
        logger.info(
            "Document emitted: %d schema(s), %d relation(s), %d function(s).",
            len(schemas),
            len(kept),
            len(function_bundles),
        )
        return EmittedDocument(
            text=text,
            default_schema=default_schema,
            schemas=schemas,
            relations=len(kept),
            functions=len(function_bundles),
            identifiers=sorted(declared),
            skipped=skipped,
        )

    def generate_document(
        self,
        metadata: MetadataBundle,
        assembler: Optional[SchemaAssembler] = None,
    ) -> str:
        return self.build_document(metadata, assembler).text

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _relation_sections(
        self, schemas: List[str], bundles: List[RelationBundle], views: bool
    ) -> List[str]:
        label: str = "views" if views else "tables"
        sections: List[str] = []
        for schema_name in schemas:
            selected: List[RelationBundle] = [
                b
                for b in bundles
                if b.relation.schema_name == schema_name and b.relation.is_view == views
            ]
            if selected:
                sections.append(
                    "\n\n".join(
                        [f"// {schema_name} schema {label}"]
                        + [self.generate_relation(b) for b in selected]
                    )
                )
        return sections

    def _type_export(self, type_name: str, schema_name: str) -> str:
        return f"export type {type_name} = z.infer<typeof {schema_name}>{self._end}"


def function_identifiers(schema_name: str, name: str) -> Tuple[str, str]:
    """``(ArgsSchema, ReturnsSchema)`` constant names of a function."""
    return (
        ts_identifier(schema_name, name, suffix="ArgsSchema"),
        ts_identifier(schema_name, name, suffix="ReturnsSchema"),
    )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "LENIENT_HELPER_NAMES",
    "LENIENT_HELPERS",
    "MODE_SUFFIXES",
    "VALIDATION_HELPER_NAMES",
    "schema_identifier",
    "type_identifier",
    "function_identifiers",
    "render_tag",
    "ZodRenderer",
    "EmittedDocument",
    "TemplateGenerator",
]

logger.debug("zodgen.templates loaded — %d public symbols.", len(__all__))
