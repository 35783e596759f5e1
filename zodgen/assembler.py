# File: zodgen/assembler.py
"""
NexaFlow ZodGen - Schema Assembler
===================================
Composes column validators (via ``TypeResolver``) and relationship
accessors (via ``RelationshipAnalysis``) into per-relation bundles, and
argument / return validators for functions.

Build order is two-phase:

1. ``register_shells`` announces every emitted relation and the shapes it
   will expose (``ShellRegistry``).
2. ``assemble`` builds each relation's shapes.  Accessors point at other
   relations through ``Reference`` nodes checked against the registry, so
   relations may reference each other (cyclically, too) in any order.

Per-mode column rules:

============== ==============================================================
list           resolve(list), ``.nullable()`` iff nullable
insert         identity ALWAYS → ``never().optional()``; else resolve(insert),
               ``.nullable()`` iff nullable, ``.optional()`` iff nullable,
               identity or default
insert_lenient as insert, resolved in insert_lenient mode
update         identity ALWAYS → ``never().optional()``; else resolve(update),
               ``.nullable()`` iff nullable, always ``.optional()``
============== ==============================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import groupby
from typing import Dict, List, Optional, Set, Tuple

from zodgen.builder import (
    UNKNOWN,
    FieldSpec,
    ObjectOf,
    Reference,
    RelationshipTag,
    Validator,
    forced_never,
    union_of,
)
from zodgen.models import (
    ColumnInfo,
    FunctionArgument,
    FunctionInfo,
    GenerationConfig,
    GenerationMode,
    IdentityGeneration,
    MetadataBundle,
    RelationInfo,
    RelationKind,
    RelationshipInfo,
)
from zodgen.relationships import ManyToMany, RelationshipAnalysis, analyze
from zodgen.type_resolver import TypeResolver

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.assembler")

TABLE_MODES: Tuple[str, ...] = (
    GenerationMode.LIST.value,
    GenerationMode.INSERT.value,
    GenerationMode.INSERT_LENIENT.value,
    GenerationMode.UPDATE.value,
)
UPDATABLE_VIEW_MODES: Tuple[str, ...] = (
    GenerationMode.LIST.value,
    GenerationMode.INSERT.value,
    GenerationMode.UPDATE.value,
)
READ_ONLY_MODES: Tuple[str, ...] = (GenerationMode.LIST.value,)

# Function arguments are caller-supplied; results are read back.
FUNCTION_ARGS_MODE: GenerationMode = GenerationMode.INSERT
FUNCTION_RETURNS_MODE: GenerationMode = GenerationMode.LIST

_FK_SUFFIX: str = "_id"


def modes_for(relation: RelationInfo) -> Tuple[str, ...]:
    """Shapes a relation exposes, in emission order."""
    if relation.kind in (RelationKind.TABLE, RelationKind.FOREIGN_TABLE):
        return TABLE_MODES
    if relation.kind == RelationKind.VIEW and relation.is_updatable:
        return UPDATABLE_VIEW_MODES
    return READ_ONLY_MODES


# ---------------------------------------------------------------------------
# Phase 1: shells
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Shell:
    """A relation whose validators will exist, before any are built."""

    schema_name: str
    relation: str
    kind: str
    modes: Tuple[str, ...]


class ShellRegistry:
    """Name-keyed shells of every relation being emitted."""

    def __init__(self) -> None:
        self._shells: Dict[Tuple[str, str], Shell] = {}

    def register(self, relation: RelationInfo) -> Shell:
        shell: Shell = Shell(
            schema_name=relation.schema_name,
            relation=relation.name,
            kind=str(relation.kind),
            modes=modes_for(relation),
        )
        self._shells.setdefault(relation.key, shell)
        return self._shells[relation.key]

    def get(self, schema_name: str, relation: str) -> Optional[Shell]:
        return self._shells.get((schema_name, relation))

    def has(self, schema_name: str, relation: str, mode: str = "list") -> bool:
        shell: Optional[Shell] = self.get(schema_name, relation)
        return shell is not None and mode in shell.modes

    def reference(
        self, schema_name: str, relation: str, mode: str = "list"
    ) -> Validator:
        """A by-name reference, or ``unknown`` when nothing will be emitted."""
        if self.has(schema_name, relation, mode):
            return Reference(schema_name, relation, mode)
        logger.debug(
            "No shell for %s.%s (%s); reference degrades to unknown.",
            schema_name,
            relation,
            mode,
        )
        return UNKNOWN

    def __contains__(self, key: object) -> bool:
        return key in self._shells

    def __len__(self) -> int:
        return len(self._shells)


# ---------------------------------------------------------------------------
# Assembled artefacts
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RelationBundle:
    """Every shape of one relation, keyed by mode value."""

    relation: RelationInfo
    shapes: Dict[str, ObjectOf] = field(default_factory=dict)

    @property
    def modes(self) -> List[str]:
        return list(self.shapes)

    def shape(self, mode: GenerationMode | str) -> ObjectOf:
        return self.shapes[GenerationMode(mode).value]


@dataclass(slots=True)
class FunctionBundle:
    """Arguments and return validators of one (possibly overloaded) function."""

    schema_name: str
    name: str
    args: Validator
    returns: Validator
    overloads: int = 1


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class SchemaAssembler:
    """
    Builds validator trees for one metadata snapshot.

    A single instance shares its ``TypeResolver`` memo and its
    relationship analysis across every relation of the run.
    """

    def __init__(
        self,
        metadata: MetadataBundle,
        config: Optional[GenerationConfig] = None,
        analysis: Optional[RelationshipAnalysis] = None,
        resolver: Optional[TypeResolver] = None,
    ) -> None:
        self.metadata: MetadataBundle = metadata
        self.config: GenerationConfig = config or GenerationConfig()
        self.analysis: RelationshipAnalysis = analysis or analyze(
            metadata.all_relations, metadata.relationships
        )
        self.resolver: TypeResolver = resolver or TypeResolver(metadata)
        self.shells: ShellRegistry = ShellRegistry()

    # -----------------------------------------------------------------
    # Phase 1
    # -----------------------------------------------------------------

    def emitted_relations(self) -> List[RelationInfo]:
        """Relations of every emitted schema, in emission order."""
        relations: List[RelationInfo] = []
        for schema_name in self.metadata.schema_names:
            if self.config.is_schema_emitted(schema_name):
                relations.extend(self.metadata.relations_in(schema_name))
        return relations

    def register_shells(
        self, relations: Optional[List[RelationInfo]] = None
    ) -> ShellRegistry:
        if relations is None:
            relations = self.emitted_relations()
        for relation in relations:
            self.shells.register(relation)
        logger.debug("Registered %d relation shell(s).", len(self.shells))
        return self.shells

    # -----------------------------------------------------------------
    # Columns
    # -----------------------------------------------------------------

    def column_validator(
        self,
        relation: RelationInfo,
        column: ColumnInfo,
        mode: GenerationMode | str,
    ) -> Validator:
        """One column line of ``relation`` in ``mode``."""
        mode = GenerationMode(mode)
        if relation.is_view and mode != GenerationMode.LIST:
            return self._view_write_validator(relation, column)

        if mode != GenerationMode.LIST and column.is_identity_always:
            return forced_never()

        validator: Validator = self.resolver.resolve(
            relation.schema_name, column.format, mode
        )
        if column.is_nullable:
            validator = validator.nullable()

        if mode == GenerationMode.UPDATE:
            return validator.optional()
        if mode in (GenerationMode.INSERT, GenerationMode.INSERT_LENIENT):
            if column.is_nullable or _has_identity(column) or column.has_default:
                return validator.optional()
        return validator

    def _view_write_validator(
        self, relation: RelationInfo, column: ColumnInfo
    ) -> Validator:
        if not column.is_updatable:
            return forced_never()
        return (
            self.resolver.resolve(
                relation.schema_name, column.format, GenerationMode.LIST
            )
            .nullable()
            .optional()
        )

    # -----------------------------------------------------------------
    # Relationship accessors
    # -----------------------------------------------------------------

    def relationship_fields(
        self, relation: RelationInfo, columns: List[ColumnInfo]
    ) -> List[FieldSpec]:
        """Lazy to-one then to-many accessors for the list shape."""
        taken: Set[str] = {c.name for c in columns}
        fields: List[FieldSpec] = []

        for rel in self.analysis.direct_for(relation):
            key: str = _claim(taken, *_to_one_keys(rel))
            fields.append(FieldSpec(key, self._to_one(rel), lazy=True))

        for record in self.analysis.many_to_many_for(relation):
            key = _claim(
                taken,
                record.right_table,
                f"{record.right_table}_via_{record.join_table}",
            )
            fields.append(FieldSpec(key, self._to_many(record), lazy=True))

        return fields

    def _to_one(self, rel: RelationshipInfo) -> Validator:
        tag: RelationshipTag = RelationshipTag(
            cardinality="one",
            target_schema=rel.referenced_schema,
            target=rel.referenced_relation,
            source_key=tuple(rel.columns),
            target_key=tuple(rel.referenced_columns),
            constraint=rel.foreign_key_name,
        )
        target: Validator = self.shells.reference(
            rel.referenced_schema, rel.referenced_relation
        )
        return target.nullable().optional().tagged(tag)

    def _to_many(self, record: ManyToMany) -> Validator:
        tag: RelationshipTag = RelationshipTag(
            cardinality="many",
            target_schema=record.right_schema,
            target=record.right_table,
            source_key=record.left_referenced,
            target_key=record.right_referenced,
            join=record.join_table,
            join_source_key=record.left_key,
            join_target_key=record.right_key,
        )
        target: Validator = self.shells.reference(
            record.right_schema, record.right_table
        )
        return target.array().optional().tagged(tag)

    # -----------------------------------------------------------------
    # Phase 2: relations
    # -----------------------------------------------------------------

    def assemble(self, relation: RelationInfo) -> RelationBundle:
        """All shapes of ``relation``; shells must already be registered."""
        if relation.key not in self.shells:
            self.shells.register(relation)

        columns: List[ColumnInfo] = unique_columns(self.metadata.columns_for(relation.id))
        bundle: RelationBundle = RelationBundle(relation=relation)

        for mode_value in modes_for(relation):
            fields: List[FieldSpec] = [
                FieldSpec(c.name, self.column_validator(relation, c, mode_value))
                for c in columns
            ]
            if mode_value == GenerationMode.LIST:
                fields.extend(self.relationship_fields(relation, columns))
            bundle.shapes[mode_value] = ObjectOf(tuple(fields))

        return bundle

    def assemble_all(
        self, relations: Optional[List[RelationInfo]] = None
    ) -> List[RelationBundle]:
        """
        Register shells for ``relations`` (default: every emitted relation),
        then assemble them.  Relations left out get no shell, so references
        to them degrade to unknown.
        """
        if relations is None:
            relations = self.emitted_relations()
        self.register_shells(relations)
        return [self.assemble(relation) for relation in relations]

    # -----------------------------------------------------------------
    # Functions
    # -----------------------------------------------------------------

    def eligible_functions(self, schema_name: str) -> List[FunctionInfo]:
        return [
            f
            for f in self.metadata.functions_in(schema_name)
            if f.has_addressable_args
        ]

    def assemble_functions(self, schema_name: str) -> List[FunctionBundle]:
        bundles: List[FunctionBundle] = []
        for name, overloads in groupby(
            self.eligible_functions(schema_name), key=lambda f: f.name
        ):
            bundles.append(self.assemble_function(schema_name, name, list(overloads)))
        return bundles

    def assemble_function(
        self, schema_name: str, name: str, overloads: List[FunctionInfo]
    ) -> FunctionBundle:
        """
        Args: one object per distinct overload shape, unioned.
        Returns: taken from the first overload.
        """
        shapes: List[Validator] = []
        for overload in overloads:
            shape: ObjectOf = self._args_object(schema_name, overload)
            if shape not in shapes:
                shapes.append(shape)

        returns: Validator = self._returns(schema_name, overloads[0])
        return FunctionBundle(
            schema_name=schema_name,
            name=name,
            args=union_of(shapes),
            returns=returns,
            overloads=len(overloads),
        )

    def _args_object(self, schema_name: str, fn: FunctionInfo) -> ObjectOf:
        fields: List[FieldSpec] = []
        for arg in sorted(fn.input_args, key=lambda a: a.name):
            validator: Validator = self._type_by_id(
                schema_name, arg.type_id, FUNCTION_ARGS_MODE
            )
            if arg.has_default:
                validator = validator.optional()
            fields.append(FieldSpec(arg.name, validator))
        return ObjectOf(tuple(fields))

    def _returns(self, schema_name: str, fn: FunctionInfo) -> Validator:
        returns: Validator
        table_args: List[FunctionArgument] = fn.table_args
        if table_args:
            returns = ObjectOf(
                tuple(
                    FieldSpec(
                        arg.name,
                        self._type_by_id(
                            schema_name, arg.type_id, FUNCTION_RETURNS_MODE
                        ),
                    )
                    for arg in sorted(table_args, key=lambda a: a.name)
                )
            )
        else:
            relation: Optional[RelationInfo] = self.metadata.get_relation(
                fn.return_type_relation_id
            )
            if relation is not None and self.shells.has(*relation.key):
                returns = Reference(relation.schema_name, relation.name)
            else:
                returns = self._type_by_id(
                    schema_name, fn.return_type_id, FUNCTION_RETURNS_MODE
                )

        if fn.is_set_returning_function:
            returns = returns.array()
        return returns

    def _type_by_id(
        self, schema_name: str, type_id: Optional[int], mode: GenerationMode
    ) -> Validator:
        type_info = self.metadata.get_type(type_id)
        if type_info is None:
            return UNKNOWN
        return self.resolver.resolve(schema_name, type_info.name, mode)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def unique_columns(columns: List[ColumnInfo]) -> List[ColumnInfo]:
    """First column of each name; input order is kept."""
    seen: Set[str] = set()
    kept: List[ColumnInfo] = []
    for column in columns:
        if column.name not in seen:
            seen.add(column.name)
            kept.append(column)
    return kept


def _has_identity(column: ColumnInfo) -> bool:
    return column.is_identity or column.identity_generation != IdentityGeneration.NONE


def _to_one_keys(rel: RelationshipInfo) -> Tuple[str, str]:
    """Preferred accessor key and its collision fallback."""
    column: str = "_".join(rel.columns)
    preferred: str = column[: -len(_FK_SUFFIX)] if column.endswith(_FK_SUFFIX) else column
    return preferred, f"{column}_{rel.referenced_relation}"


def _claim(taken: Set[str], preferred: str, fallback: str) -> str:
    """First free key among ``preferred``, ``fallback``, ``fallback_2``..."""
    key: str = preferred
    if not key or key in taken:
        key = fallback
        suffix: int = 2
        while key in taken:
            key = f"{fallback}_{suffix}"
            suffix += 1
    taken.add(key)
    return key


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TABLE_MODES",
    "UPDATABLE_VIEW_MODES",
    "READ_ONLY_MODES",
    "FUNCTION_ARGS_MODE",
    "FUNCTION_RETURNS_MODE",
    "modes_for",
    "unique_columns",
    "Shell",
    "ShellRegistry",
    "RelationBundle",
    "FunctionBundle",
    "SchemaAssembler",
]

logger.debug("zodgen.assembler loaded — %d public symbols.", len(__all__))
