# File: zodgen/relationships.py
"""
NexaFlow ZodGen - Relationship Analyzer
========================================
Derives the relationship accessors every relation exposes:

* **direct** (to-one): foreign keys declared on the relation itself, within
  its own schema.
* **many-to-many** (to-many): inferred through junction relations.  A
  relation with exactly two outgoing foreign keys is treated as a
  junction, and yields one record per direction.

The two-foreign-key rule is structural only; a table holding two foreign
keys plus business columns is still classified as a junction.
``zodgen.validators`` reports those cases.

Everything is computed once per run by ``analyze`` and read-only
afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import groupby
from typing import Dict, Iterable, List, Set, Tuple

from zodgen.models import RelationInfo, RelationshipInfo

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.relationships")

RelationKey = Tuple[str, str]

JUNCTION_FOREIGN_KEY_COUNT: int = 2


# ---------------------------------------------------------------------------
# Derived records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ManyToMany:
    """
    One direction of a junction: ``left`` reaches ``right`` through
    ``join_table``.  ``left_key`` / ``right_key`` are the junction's own
    columns; ``*_referenced`` are the columns they point at.
    """

    join_schema: str
    join_table: str
    left_schema: str
    left_table: str
    right_schema: str
    right_table: str
    left_key: Tuple[str, ...]
    right_key: Tuple[str, ...]
    left_referenced: Tuple[str, ...]
    right_referenced: Tuple[str, ...]
    constraint: str = ""

    @property
    def left(self) -> RelationKey:
        return (self.left_schema, self.left_table)

    @property
    def right(self) -> RelationKey:
        return (self.right_schema, self.right_table)

    def mirrored(self) -> "ManyToMany":
        return ManyToMany(
            join_schema=self.join_schema,
            join_table=self.join_table,
            left_schema=self.right_schema,
            left_table=self.right_table,
            right_schema=self.left_schema,
            right_table=self.left_table,
            left_key=self.right_key,
            right_key=self.left_key,
            left_referenced=self.right_referenced,
            right_referenced=self.left_referenced,
            constraint=self.constraint,
        )


def junction_records(
    first: RelationshipInfo, second: RelationshipInfo
) -> Tuple[ManyToMany, ManyToMany]:
    """Both directional records for a junction with foreign keys ``first``/``second``."""
    forward: ManyToMany = ManyToMany(
        join_schema=first.schema_name,
        join_table=first.relation,
        left_schema=first.referenced_schema,
        left_table=first.referenced_relation,
        right_schema=second.referenced_schema,
        right_table=second.referenced_relation,
        left_key=tuple(first.columns),
        right_key=tuple(second.columns),
        left_referenced=tuple(first.referenced_columns),
        right_referenced=tuple(second.referenced_columns),
    )
    return forward, forward.mirrored()


@dataclass(slots=True)
class RelationshipAnalysis:
    """Per-relation accessor sources, keyed by ``(schema, relation)``."""

    direct: Dict[RelationKey, List[RelationshipInfo]] = field(default_factory=dict)
    many_to_many: Dict[RelationKey, List[ManyToMany]] = field(default_factory=dict)
    junctions: Dict[RelationKey, Tuple[RelationshipInfo, RelationshipInfo]] = field(
        default_factory=dict
    )

    def direct_for(self, relation: RelationInfo) -> List[RelationshipInfo]:
        return self.direct.get(relation.key, [])

    def many_to_many_for(self, relation: RelationInfo) -> List[ManyToMany]:
        """Inferred accessors minus targets already reached by a direct key."""
        direct_targets: Set[RelationKey] = {
            (r.referenced_schema, r.referenced_relation)
            for r in self.direct_for(relation)
        }
        return [
            m
            for m in self.many_to_many.get(relation.key, [])
            if m.right not in direct_targets
        ]

    def is_junction(self, relation: RelationInfo) -> bool:
        return relation.key in self.junctions


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


def _is_direct(rel: RelationshipInfo) -> bool:
    return rel.schema_name == rel.referenced_schema


def analyze(
    relations: Iterable[RelationInfo],
    relationships: Iterable[RelationshipInfo],
) -> RelationshipAnalysis:
    """
    Build the accessor sources for ``relations``.

    ``relationships`` must already be in normalised order (see
    ``MetadataBundle``); groups and junctions are visited in that order,
    which is what makes "first record wins" deterministic.
    """
    known: Set[RelationKey] = {r.key for r in relations}
    analysis: RelationshipAnalysis = RelationshipAnalysis()

    for source, group in groupby(
        relationships, key=lambda r: (r.schema_name, r.relation)
    ):
        if source not in known:
            continue
        outgoing: List[RelationshipInfo] = list(group)

        direct: List[RelationshipInfo] = [r for r in outgoing if _is_direct(r)]
        if direct:
            analysis.direct[source] = direct

        if len(outgoing) != JUNCTION_FOREIGN_KEY_COUNT:
            continue
        first, second = outgoing
        analysis.junctions[source] = (first, second)
        for record in junction_records(first, second):
            targets: List[ManyToMany] = analysis.many_to_many.setdefault(
                record.left, []
            )
            if any(existing.right == record.right for existing in targets):
                continue
            targets.append(record)

    logger.debug(
        "Relationship analysis: %d relation(s) with direct keys, %d junction(s), "
        "%d relation(s) with inferred many-to-many accessors.",
        len(analysis.direct),
        len(analysis.junctions),
        len(analysis.many_to_many),
    )
    return analysis


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "RelationKey",
    "JUNCTION_FOREIGN_KEY_COUNT",
    "ManyToMany",
    "RelationshipAnalysis",
    "junction_records",
    "analyze",
]

logger.debug("zodgen.relationships loaded — %d public symbols.", len(__all__))
