# File: zodgen/models.py
"""
NexaFlow ZodGen - Core Data Models
===================================
Pydantic V2 models representing introspected PostgreSQL metadata and the
generation configuration.  These models form the single source of truth for
the entire pipeline: Metadata Loading → Diagnostics → Assembly → Emission.

The input bundle follows the postgres-meta shape (``schemas``, ``tables``,
``foreign_tables``, ``views``, ``materialized_views``, ``columns``,
``relationships``, ``functions``, ``types``).  Unknown keys are ignored so
richer introspection output can be fed in unchanged.

Invariant: every collection of a ``MetadataBundle`` is sorted exactly once,
on construction, and lookup caches are built in the same pass.  Downstream
code treats the bundle as pre-sorted and read-only.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    computed_field,
    field_validator,
    model_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.models")

# ---------------------------------------------------------------------------
# Enums — closed value sets shared by the models
# ---------------------------------------------------------------------------


class GenerationMode(str, Enum):
    """The four validator shapes produced per relation."""

    LIST = "list"
    INSERT = "insert"
    INSERT_LENIENT = "insert_lenient"
    UPDATE = "update"


class IdentityGeneration(str, Enum):
    """Identity-column generation modes."""

    NONE = "NONE"
    BY_DEFAULT = "BY DEFAULT"
    ALWAYS = "ALWAYS"


class RelationKind(str, Enum):
    """Anything with a column set."""

    TABLE = "table"
    FOREIGN_TABLE = "foreign_table"
    VIEW = "view"
    MATERIALIZED_VIEW = "materialized_view"


class ArgumentMode(str, Enum):
    """Function argument modes as reported by ``pg_proc.proargmodes``."""

    IN = "in"
    INOUT = "inout"
    OUT = "out"
    VARIADIC = "variadic"
    TABLE = "table"


class FormatterKind(str, Enum):
    """Available output formatters."""

    NONE = "none"
    PRETTIER = "prettier"


INPUT_ARGUMENT_MODES: Tuple[str, ...] = (
    ArgumentMode.IN.value,
    ArgumentMode.INOUT.value,
    ArgumentMode.VARIADIC.value,
)

DEFAULT_SCHEMA_NAME: str = "public"

# ---------------------------------------------------------------------------
# Mixin: shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="ignore",
)


# ---------------------------------------------------------------------------
# Low-level metadata records
# ---------------------------------------------------------------------------


class SchemaInfo(BaseModel):
    """A database schema (namespace)."""

    model_config = _SHARED_CONFIG

    id: Optional[int] = Field(default=None, description="Schema oid.")
    name: str = Field(..., min_length=1, description="Schema name.")

    def __repr__(self) -> str:
        return f"<Schema {self.name}>"


class RelationInfo(BaseModel):
    """
    A table, foreign table, view or materialized view.

    ``kind`` is stamped by ``MetadataBundle`` from the list the record was
    read from; it is not part of the introspection payload.
    """

    model_config = _SHARED_CONFIG

    id: int = Field(..., description="Relation oid, unique across all kinds.")
    schema_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("schema", "schema_name"),
        description="Owning schema.",
    )
    name: str = Field(..., min_length=1, description="Relation name.")
    is_updatable: bool = Field(
        default=False, description="Auto-updatable view (views only)."
    )
    kind: RelationKind = Field(
        default=RelationKind.TABLE, description="Relation kind."
    )

    @computed_field  # type: ignore[misc]
    @property
    def is_view(self) -> bool:
        return self.kind in (RelationKind.VIEW, RelationKind.MATERIALIZED_VIEW)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.schema_name, self.name)

    def __repr__(self) -> str:
        return f"<{self.kind} {self.schema_name}.{self.name} #{self.id}>"


class ColumnInfo(BaseModel):
    """
    A single column of a relation.

    Every column in every relation becomes exactly one ``ColumnInfo``.
    """

    model_config = _SHARED_CONFIG

    table_id: int = Field(..., description="Owning relation id.")
    name: str = Field(..., description="Column name (may need quoting).")
    format: str = Field(
        ..., description="Physical type name, '_'-prefixed for arrays."
    )
    is_nullable: bool = Field(default=True, description="Allows NULL.")
    identity_generation: IdentityGeneration = Field(
        default=IdentityGeneration.NONE,
        description="Identity generation mode.",
    )
    is_identity: bool = Field(default=False, description="Identity column.")
    default_value: Optional[Any] = Field(
        default=None, description="Declared default expression, if any."
    )
    is_updatable: bool = Field(
        default=True, description="Writable through its view."
    )

    @field_validator("identity_generation", mode="before")
    @classmethod
    def _null_identity_is_none(cls, v: Any) -> Any:
        if v is None or v == "":
            return IdentityGeneration.NONE
        return v

    @computed_field  # type: ignore[misc]
    @property
    def has_default(self) -> bool:
        return self.default_value is not None

    @computed_field  # type: ignore[misc]
    @property
    def is_identity_always(self) -> bool:
        return self.identity_generation == IdentityGeneration.ALWAYS

    def __repr__(self) -> str:
        null_flag: str = " NULL" if self.is_nullable else " NOT NULL"
        return f"<Column {self.name} {self.format}{null_flag}>"


class TypeAttribute(BaseModel):
    """One attribute of a composite type."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., description="Attribute name.")
    type_id: int = Field(..., description="Referenced type id.")


class TypeInfo(BaseModel):
    """A user-defined or built-in type: enum, composite or scalar."""

    model_config = _SHARED_CONFIG

    id: int = Field(..., description="Type oid.")
    name: str = Field(..., min_length=1, description="Type name.")
    schema_name: str = Field(
        ...,
        validation_alias=AliasChoices("schema", "schema_name"),
        description="Owning schema.",
    )
    enums: List[str] = Field(
        default_factory=list, description="Enum variants in declared order."
    )
    attributes: List[TypeAttribute] = Field(
        default_factory=list, description="Composite attributes in order."
    )

    @computed_field  # type: ignore[misc]
    @property
    def is_enum(self) -> bool:
        return len(self.enums) > 0

    @computed_field  # type: ignore[misc]
    @property
    def is_composite(self) -> bool:
        return len(self.attributes) > 0


class FunctionArgument(BaseModel):
    """A single function argument."""

    model_config = _SHARED_CONFIG

    mode: ArgumentMode = Field(default=ArgumentMode.IN, description="Mode.")
    name: str = Field(default="", description="Argument name (may be empty).")
    type_id: int = Field(..., description="Referenced type id.")
    has_default: bool = Field(default=False, description="Has DEFAULT.")


class FunctionInfo(BaseModel):
    """A database function (one overload)."""

    model_config = _SHARED_CONFIG

    id: int = Field(..., description="Function oid.")
    schema_name: str = Field(
        ...,
        validation_alias=AliasChoices("schema", "schema_name"),
        description="Owning schema.",
    )
    name: str = Field(..., min_length=1, description="Function name.")
    args: List[FunctionArgument] = Field(default_factory=list)
    return_type_id: Optional[int] = Field(default=None)
    return_type_relation_id: Optional[int] = Field(default=None)
    is_set_returning_function: bool = Field(default=False)

    @property
    def input_args(self) -> List[FunctionArgument]:
        return [a for a in self.args if a.mode in INPUT_ARGUMENT_MODES]

    @property
    def table_args(self) -> List[FunctionArgument]:
        return [a for a in self.args if a.mode == ArgumentMode.TABLE]

    @computed_field  # type: ignore[misc]
    @property
    def has_addressable_args(self) -> bool:
        """All input args are named, or there is exactly one input arg."""
        inputs: List[FunctionArgument] = self.input_args
        return all(a.name for a in inputs) or len(inputs) == 1

    def __repr__(self) -> str:
        return f"<Function {self.schema_name}.{self.name}({len(self.args)} args)>"


class RelationshipInfo(BaseModel):
    """A foreign-key relationship between two relations."""

    model_config = _SHARED_CONFIG

    foreign_key_name: str = Field(default="", description="Constraint name.")
    schema_name: str = Field(
        ...,
        validation_alias=AliasChoices("schema", "schema_name"),
        description="Schema of the referencing relation.",
    )
    relation: str = Field(..., description="Referencing relation name.")
    columns: List[str] = Field(..., min_length=1)
    referenced_schema: str = Field(...)
    referenced_relation: str = Field(...)
    referenced_columns: List[str] = Field(..., min_length=1)

    @property
    def sort_key(self) -> Tuple[str, str, Tuple[str, ...]]:
        return (
            self.foreign_key_name,
            self.referenced_relation,
            tuple(self.referenced_columns),
        )

    def __repr__(self) -> str:
        return (
            f"<FK {self.relation}({', '.join(self.columns)}) → "
            f"{self.referenced_relation}({', '.join(self.referenced_columns)})>"
        )


# ---------------------------------------------------------------------------
# Generation Configuration
# ---------------------------------------------------------------------------


class FormatStyle(BaseModel):
    """Output style handed to the formatter collaborator."""

    model_config = _SHARED_CONFIG

    semi: bool = Field(default=False, description="Terminate statements with ';'.")
    single_quote: bool = Field(default=True, description="Prefer single quotes.")
    tab_width: int = Field(default=2, ge=1, le=8, description="Indent width.")
    print_width: int = Field(default=100, ge=40, le=400, description="Line width.")


class GenerationConfig(BaseModel):
    """
    Master configuration for one generation run.

    A single instance (combined with a ``MetadataBundle``) is all the
    generator needs to produce the output document.
    """

    model_config = _SHARED_CONFIG

    default_schema: Optional[str] = Field(
        default=None,
        description="Schema re-exported under unprefixed names ('public' if unset).",
    )
    included_schemas: List[str] = Field(
        default_factory=list, description="Only emit these schemas (empty = all)."
    )
    excluded_schemas: List[str] = Field(
        default_factory=list, description="Never emit these schemas."
    )
    emit_type_exports: bool = Field(
        default=True, description="Emit `export type X = z.infer<...>` lines."
    )
    emit_default_aliases: bool = Field(
        default=True, description="Re-export default-schema validators unprefixed."
    )
    emit_validation_helpers: bool = Field(
        default=True, description="Append the safeParse wrapper helpers."
    )
    formatter: FormatterKind = Field(
        default=FormatterKind.NONE, description="Output formatter."
    )
    prettier_path: str = Field(
        default="prettier", min_length=1, description="prettier executable."
    )
    style: FormatStyle = Field(default_factory=FormatStyle)

    def is_schema_emitted(self, schema_name: str) -> bool:
        """O(k) schema filter honouring include/exclude lists."""
        if schema_name in self.excluded_schemas:
            return False
        if self.included_schemas:
            return schema_name in self.included_schemas
        return True


# ---------------------------------------------------------------------------
# Metadata Bundle — top-level container
# ---------------------------------------------------------------------------


class MetadataBundle(BaseModel):
    """
    The root model: everything introspected for one generation run.

    Invariant: collections are sorted once here and never re-sorted;
    ``_relation_map`` / ``_type_map`` / ``_columns_by_relation`` are O(1)
    lookup caches built in the same pass.
    """

    model_config = _SHARED_CONFIG

    schemas: List[SchemaInfo] = Field(default_factory=list)
    tables: List[RelationInfo] = Field(default_factory=list)
    foreign_tables: List[RelationInfo] = Field(
        default_factory=list,
        validation_alias=AliasChoices("foreign_tables", "foreignTables"),
    )
    views: List[RelationInfo] = Field(default_factory=list)
    materialized_views: List[RelationInfo] = Field(
        default_factory=list,
        validation_alias=AliasChoices("materialized_views", "materializedViews"),
    )
    columns: List[ColumnInfo] = Field(default_factory=list)
    relationships: List[RelationshipInfo] = Field(default_factory=list)
    functions: List[FunctionInfo] = Field(default_factory=list)
    types: List[TypeInfo] = Field(default_factory=list)

    # -- Internal caches (not part of the serialised model) -----------------
    _relation_map: Dict[int, RelationInfo] = PrivateAttr(default_factory=dict)
    _relation_key_map: Dict[Tuple[str, str], RelationInfo] = PrivateAttr(
        default_factory=dict
    )
    _type_map: Dict[int, TypeInfo] = PrivateAttr(default_factory=dict)
    _columns_by_relation: Dict[int, List[ColumnInfo]] = PrivateAttr(
        default_factory=dict
    )

    @model_validator(mode="after")
    def _normalise(self) -> "MetadataBundle":
        for rel in self.foreign_tables:
            rel.kind = RelationKind.FOREIGN_TABLE
        for rel in self.views:
            rel.kind = RelationKind.VIEW
        for rel in self.materialized_views:
            rel.kind = RelationKind.MATERIALIZED_VIEW

        self.schemas.sort(key=lambda s: s.name)
        for relations in (
            self.tables,
            self.foreign_tables,
            self.views,
            self.materialized_views,
        ):
            relations.sort(key=lambda r: (r.schema_name, r.name, r.id))
        self.columns.sort(key=lambda c: (c.table_id, c.name))
        self.types.sort(key=lambda t: (t.schema_name, t.name, t.id))
        self.functions.sort(key=lambda f: (f.schema_name, f.name, f.id))
        self.relationships.sort(
            key=lambda r: (r.schema_name, r.relation) + r.sort_key
        )

        relation_map: Dict[int, RelationInfo] = {}
        relation_key_map: Dict[Tuple[str, str], RelationInfo] = {}
        for rel in self.all_relations:
            # First occurrence wins; duplicates are reported by diagnostics.
            relation_map.setdefault(rel.id, rel)
            relation_key_map.setdefault(rel.key, rel)

        columns_by_relation: Dict[int, List[ColumnInfo]] = {
            rel_id: [] for rel_id in relation_map
        }
        for col in self.columns:
            if col.table_id in columns_by_relation:
                columns_by_relation[col.table_id].append(col)

        self._relation_map = relation_map
        self._relation_key_map = relation_key_map
        self._type_map = {t.id: t for t in self.types}
        self._columns_by_relation = columns_by_relation

        logger.debug(
            "Normalised metadata: %d schemas, %d relations, %d columns, "
            "%d types, %d functions, %d relationships.",
            len(self.schemas),
            len(relation_map),
            len(self.columns),
            len(self.types),
            len(self.functions),
            len(self.relationships),
        )
        return self

    # -- Lookups ------------------------------------------------------------

    @property
    def all_relations(self) -> List[RelationInfo]:
        return [
            *self.tables,
            *self.foreign_tables,
            *self.views,
            *self.materialized_views,
        ]

    def get_relation(self, relation_id: Optional[int]) -> Optional[RelationInfo]:
        """O(1) relation lookup by id."""
        if relation_id is None:
            return None
        return self._relation_map.get(relation_id)

    def find_relation(self, schema_name: str, name: str) -> Optional[RelationInfo]:
        """O(1) relation lookup by qualified name."""
        return self._relation_key_map.get((schema_name, name))

    def get_type(self, type_id: Optional[int]) -> Optional[TypeInfo]:
        """O(1) type lookup by id."""
        if type_id is None:
            return None
        return self._type_map.get(type_id)

    def columns_for(self, relation_id: int) -> List[ColumnInfo]:
        """Name-sorted columns of a relation (empty for unknown ids)."""
        return self._columns_by_relation.get(relation_id, [])

    def relations_in(self, schema_name: str) -> List[RelationInfo]:
        """Tables and foreign tables, then views and materialized views."""
        tables: List[RelationInfo] = sorted(
            (
                r
                for r in (*self.tables, *self.foreign_tables)
                if r.schema_name == schema_name
            ),
            key=lambda r: r.name,
        )
        views: List[RelationInfo] = sorted(
            (
                r
                for r in (*self.views, *self.materialized_views)
                if r.schema_name == schema_name
            ),
            key=lambda r: r.name,
        )
        return tables + views

    def functions_in(self, schema_name: str) -> List[FunctionInfo]:
        return [f for f in self.functions if f.schema_name == schema_name]

    @computed_field  # type: ignore[misc]
    @property
    def schema_names(self) -> List[str]:
        return [s.name for s in self.schemas]

    def resolve_default_schema(self, configured: Optional[str]) -> Optional[str]:
        """
        Pick the primary emission schema.

        ``configured`` (or ``public`` when unset) if present, else the first
        schema by name, else ``None`` for an empty bundle.
        """
        wanted: str = configured or DEFAULT_SCHEMA_NAME
        names: List[str] = self.schema_names
        if wanted in names:
            return wanted
        if names:
            logger.info(
                "Default schema '%s' not found; falling back to '%s'.",
                wanted,
                names[0],
            )
            return names[0]
        return None

    def __repr__(self) -> str:
        return (
            f"<MetadataBundle {len(self.schemas)} schemas, "
            f"{len(self._relation_map)} relations, "
            f"{len(self.columns)} columns>"
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "GenerationMode",
    "IdentityGeneration",
    "RelationKind",
    "ArgumentMode",
    "FormatterKind",
    "INPUT_ARGUMENT_MODES",
    "DEFAULT_SCHEMA_NAME",
    "SchemaInfo",
    "RelationInfo",
    "ColumnInfo",
    "TypeAttribute",
    "TypeInfo",
    "FunctionArgument",
    "FunctionInfo",
    "RelationshipInfo",
    "FormatStyle",
    "GenerationConfig",
    "MetadataBundle",
]

logger.debug("zodgen.models loaded — %d public symbols.", len(__all__))
