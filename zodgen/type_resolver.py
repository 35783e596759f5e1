# File: zodgen/type_resolver.py
"""
NexaFlow ZodGen - Type Resolver
================================
Maps a physical PostgreSQL type name plus a generation mode onto a
validator tree.

Resolution is a total function over ``TypeCategory``:

    Array → Enum → Boolean → Integer → Float → Temporal → Uuid
          → StringLike → Json → Void → Record → Unknown

Array names carry one leading ``_`` per dimension; each recursion level
strips exactly one marker, so depth is bounded by the number of markers.

The resolver never raises.  Composite types, table/view row types, range
types and unrecognised names all degrade to ``unknown``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from zodgen.builder import (
    UNKNOWN,
    ArrayOf,
    EnumOf,
    Lenient,
    LenientRule,
    RecordOf,
    Scalar,
    ScalarKind,
    Validator,
)
from zodgen.models import GenerationMode, MetadataBundle, TypeInfo

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.type_resolver")

# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

ARRAY_MARKER: str = "_"


class TypeCategory(str, Enum):
    """Closed set of resolution outcomes."""

    ARRAY = "array"
    ENUM = "enum"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    TEMPORAL = "temporal"
    UUID = "uuid"
    STRING_LIKE = "string_like"
    JSON = "json"
    VOID = "void"
    RECORD = "record"
    UNKNOWN = "unknown"


_BOOLEAN_TYPES: FrozenSet[str] = frozenset({"bool", "boolean"})

_INTEGER_TYPES: FrozenSet[str] = frozenset({
    "int2", "int4", "int8",
    "smallint", "integer", "int", "bigint",
    "serial", "serial2", "serial4", "serial8",
    "smallserial", "bigserial",
})

_FLOAT_TYPES: FrozenSet[str] = frozenset({
    "float4", "float8", "real", "double precision", "numeric", "decimal",
})

_DATE_TYPES: FrozenSet[str] = frozenset({"date"})
_TIMESTAMP_TYPES: FrozenSet[str] = frozenset({"timestamp", "timestamptz"})

_STRING_LIKE_TYPES: FrozenSet[str] = frozenset({
    "text", "varchar", "bpchar", "char", "citext", "name",
    "bytea", "vector", "time", "timetz",
})

_JSON_TYPES: FrozenSet[str] = frozenset({"json", "jsonb"})

_SCALAR_CATEGORIES: Tuple[Tuple[FrozenSet[str], TypeCategory], ...] = (
    (_BOOLEAN_TYPES, TypeCategory.BOOLEAN),
    (_INTEGER_TYPES, TypeCategory.INTEGER),
    (_FLOAT_TYPES, TypeCategory.FLOAT),
    (_DATE_TYPES | _TIMESTAMP_TYPES, TypeCategory.TEMPORAL),
    (frozenset({"uuid"}), TypeCategory.UUID),
    (_STRING_LIKE_TYPES, TypeCategory.STRING_LIKE),
    (_JSON_TYPES, TypeCategory.JSON),
    (frozenset({"void"}), TypeCategory.VOID),
    (frozenset({"record"}), TypeCategory.RECORD),
)

_LENIENT_RULES: Dict[TypeCategory, LenientRule] = {
    TypeCategory.BOOLEAN: LenientRule.BOOLEAN,
    TypeCategory.INTEGER: LenientRule.INTEGER,
    TypeCategory.FLOAT: LenientRule.FLOAT,
    TypeCategory.TEMPORAL: LenientRule.TEMPORAL,
}

_STRICT_SCALARS: Dict[TypeCategory, ScalarKind] = {
    TypeCategory.BOOLEAN: ScalarKind.BOOLEAN,
    TypeCategory.INTEGER: ScalarKind.INTEGER,
    TypeCategory.FLOAT: ScalarKind.NUMBER,
    TypeCategory.UUID: ScalarKind.UUID,
    TypeCategory.STRING_LIKE: ScalarKind.STRING,
    TypeCategory.JSON: ScalarKind.ANY,
    TypeCategory.VOID: ScalarKind.UNDEFINED,
}


def classify_scalar(type_name: str) -> TypeCategory:
    """Category of a marker-free, non-enum type name."""
    for names, category in _SCALAR_CATEGORIES:
        if type_name in names:
            return category
    return TypeCategory.UNKNOWN


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class TypeResolver:
    """
    Stateless-by-contract resolver bound to one metadata snapshot.

    Results are memoised per ``(schema, type_name, mode)``; since the
    snapshot is read-only this never changes observable behaviour.
    """

    def __init__(self, metadata: MetadataBundle) -> None:
        self._enums_by_name: Dict[str, List[TypeInfo]] = {}
        for type_info in metadata.types:
            if type_info.is_enum:
                self._enums_by_name.setdefault(type_info.name, []).append(
                    type_info
                )
        self._cache: Dict[Tuple[str, str, str], Validator] = {}
        logger.debug(
            "TypeResolver initialised with %d enum name(s).",
            len(self._enums_by_name),
        )

    # -----------------------------------------------------------------
    # Lookup
    # -----------------------------------------------------------------

    def find_enum(self, schema_name: str, type_name: str) -> Optional[TypeInfo]:
        """
        Enum named ``type_name``, preferring the one owned by
        ``schema_name``, else the first in (schema, name) order.
        """
        candidates: List[TypeInfo] = self._enums_by_name.get(type_name, [])
        if not candidates:
            return None
        for candidate in candidates:
            if candidate.schema_name == schema_name:
                return candidate
        return candidates[0]

    def classify(self, schema_name: str, type_name: str) -> TypeCategory:
        if type_name.startswith(ARRAY_MARKER):
            return TypeCategory.ARRAY
        if self.find_enum(schema_name, type_name) is not None:
            return TypeCategory.ENUM
        return classify_scalar(type_name)

    # -----------------------------------------------------------------
    # Resolution
    # -----------------------------------------------------------------

    def resolve(
        self,
        schema_name: str,
        type_name: str,
        mode: GenerationMode | str,
    ) -> Validator:
        """Resolve ``type_name`` as seen from ``schema_name`` in ``mode``."""
        mode_value: str = GenerationMode(mode).value
        cache_key: Tuple[str, str, str] = (schema_name, type_name, mode_value)
        cached: Optional[Validator] = self._cache.get(cache_key)
        if cached is not None:
            return cached

        result: Validator = self._resolve(schema_name, type_name, mode_value)
        self._cache[cache_key] = result
        return result

    def _resolve(self, schema_name: str, type_name: str, mode: str) -> Validator:
        category: TypeCategory = self.classify(schema_name, type_name)

        if category == TypeCategory.ARRAY:
            return ArrayOf(self.resolve(schema_name, type_name[1:], mode))

        if category == TypeCategory.ENUM:
            enum_type: Optional[TypeInfo] = self.find_enum(schema_name, type_name)
            if enum_type is None:
                return UNKNOWN
            return EnumOf(tuple(enum_type.enums))

        if mode == GenerationMode.INSERT_LENIENT and category in _LENIENT_RULES:
            return Lenient(_LENIENT_RULES[category])

        if category == TypeCategory.TEMPORAL:
            return _temporal(type_name, mode)

        if category == TypeCategory.RECORD:
            return RecordOf(UNKNOWN)

        kind: Optional[ScalarKind] = _STRICT_SCALARS.get(category)
        if kind is None:
            logger.debug(
                "No mapping for type '%s' (schema '%s'); using unknown.",
                type_name,
                schema_name,
            )
            return UNKNOWN
        return Scalar(kind)

    def expression(
        self,
        schema_name: str,
        type_name: str,
        mode: GenerationMode | str,
    ) -> str:
        """``resolve`` rendered as Zod source text."""
        from zodgen.templates import ZodRenderer

        return ZodRenderer().render(self.resolve(schema_name, type_name, mode))


def _temporal(type_name: str, mode: str) -> Validator:
    if mode == GenerationMode.LIST:
        return Scalar(ScalarKind.COERCED_DATE)
    if type_name in _DATE_TYPES:
        return Scalar(ScalarKind.ISO_DATE)
    return Scalar(ScalarKind.ISO_DATETIME)


def resolve(
    schema_name: str,
    type_name: str,
    mode: GenerationMode | str,
    context: MetadataBundle,
) -> Validator:
    """One-shot resolution; prefer a shared ``TypeResolver`` in loops."""
    return TypeResolver(context).resolve(schema_name, type_name, mode)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ARRAY_MARKER",
    "TypeCategory",
    "TypeResolver",
    "classify_scalar",
    "resolve",
]

logger.debug("zodgen.type_resolver loaded.")
