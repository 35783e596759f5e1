# File: zodgen/builder.py
"""
NexaFlow ZodGen - Validator Builder
====================================
A small, immutable expression tree describing validators independently of
any target syntax.  The assembler composes these nodes; an adapter
(``zodgen.templates.ZodRenderer``) turns them into source text.

Every node is a frozen, slotted dataclass, so trees are hashable and two
structurally equal trees compare equal.  Function-overload de-duplication
relies on that.

Fluent helpers mirror the target library::

    Scalar(ScalarKind.INTEGER).nullable().optional()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.builder")


# ---------------------------------------------------------------------------
# Leaf kinds
# ---------------------------------------------------------------------------


class ScalarKind(str, Enum):
    """Primitive validators with no children."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    NUMBER = "number"
    STRING = "string"
    UUID = "uuid"
    ISO_DATE = "iso_date"
    ISO_DATETIME = "iso_datetime"
    COERCED_DATE = "coerced_date"
    ANY = "any"
    UNDEFINED = "undefined"
    UNKNOWN = "unknown"
    NEVER = "never"


class LenientRule(str, Enum):
    """Runtime coercion rules used by the insert_lenient shape."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    TEMPORAL = "temporal"


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Validator:
    """Base class for every node."""

    def nullable(self) -> "Nullable":
        return Nullable(self)

    def optional(self) -> "OptionalOf":
        return OptionalOf(self)

    def array(self) -> "ArrayOf":
        return ArrayOf(self)

    def tagged(self, tag: "RelationshipTag") -> "Tagged":
        return Tagged(self, tag)


@dataclass(frozen=True, slots=True)
class Scalar(Validator):
    kind: ScalarKind


@dataclass(frozen=True, slots=True)
class Lenient(Validator):
    """A custom coercion function (see ``zodgen.coercion``)."""

    rule: LenientRule


@dataclass(frozen=True, slots=True)
class EnumOf(Validator):
    values: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RecordOf(Validator):
    """String-keyed mapping whose values match ``value``."""

    value: Validator


@dataclass(frozen=True, slots=True)
class ArrayOf(Validator):
    item: Validator


@dataclass(frozen=True, slots=True)
class Nullable(Validator):
    inner: Validator


@dataclass(frozen=True, slots=True)
class OptionalOf(Validator):
    inner: Validator


@dataclass(frozen=True, slots=True)
class UnionOf(Validator):
    members: Tuple[Validator, ...]


@dataclass(frozen=True, slots=True)
class Reference(Validator):
    """
    By-name reference to another relation's validator.

    The target is identified structurally; the adapter decides the
    identifier it is emitted under.
    """

    schema_name: str
    relation: str
    mode: str = "list"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One key of an object validator.  ``lazy`` fields become getters."""

    key: str
    validator: Validator
    lazy: bool = False


@dataclass(frozen=True, slots=True)
class ObjectOf(Validator):
    fields: Tuple[FieldSpec, ...] = ()

    @property
    def keys(self) -> List[str]:
        return [f.key for f in self.fields]

    def get(self, key: str) -> Optional[Validator]:
        for f in self.fields:
            if f.key == key:
                return f.validator
        return None


@dataclass(frozen=True, slots=True)
class RelationshipTag:
    """
    Join metadata attached to a relationship accessor.

    ``cardinality`` is ``"one"`` for foreign-key accessors and ``"many"``
    for inferred many-to-many accessors; the ``join_*`` fields are only
    set for the latter.
    """

    cardinality: str
    target_schema: str
    target: str
    source_key: Tuple[str, ...]
    target_key: Tuple[str, ...]
    constraint: str = ""
    join: str = ""
    join_source_key: Tuple[str, ...] = ()
    join_target_key: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Tagged(Validator):
    inner: Validator
    tag: RelationshipTag


# ---------------------------------------------------------------------------
# Shorthands
# ---------------------------------------------------------------------------

UNKNOWN: Scalar = Scalar(ScalarKind.UNKNOWN)
NEVER: Scalar = Scalar(ScalarKind.NEVER)


def forced_never() -> OptionalOf:
    """A field that only accepts omission."""
    return NEVER.optional()


def union_of(members: List[Validator]) -> Validator:
    """Collapse a one-member union to the member itself."""
    if len(members) == 1:
        return members[0]
    return UnionOf(tuple(members))


def unwrap(validator: Validator) -> Validator:
    """Strip nullable / optional / tag wrappers."""
    while isinstance(validator, (Nullable, OptionalOf, Tagged)):
        validator = validator.inner
    return validator


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ScalarKind",
    "LenientRule",
    "Validator",
    "Scalar",
    "Lenient",
    "EnumOf",
    "RecordOf",
    "ArrayOf",
    "Nullable",
    "OptionalOf",
    "UnionOf",
    "Reference",
    "FieldSpec",
    "ObjectOf",
    "RelationshipTag",
    "Tagged",
    "UNKNOWN",
    "NEVER",
    "forced_never",
    "union_of",
    "unwrap",
]

logger.debug("zodgen.builder loaded — %d public symbols.", len(__all__))
