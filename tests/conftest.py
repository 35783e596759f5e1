"""
tests/conftest.py
Shared fixtures for the zodgen test suite.

Metadata fixtures are plain dicts shaped like the introspection payload;
each test gets its own deep copy and may mutate it freely.  Real file I/O
happens inside pytest's ``tmp_path``.
"""

from __future__ import annotations

import copy
import json
import pathlib
from typing import Any, Dict

import pytest
import yaml

from zodgen.models import GenerationConfig, MetadataBundle


# ---------------------------------------------------------------------------
# Raw metadata fixtures
# ---------------------------------------------------------------------------

_USERS_STATUS: Dict[str, Any] = {
    "schemas": [{"id": 1, "name": "public"}],
    "types": [
        {
            "id": 100,
            "schema": "public",
            "name": "status",
            "enums": ["ACTIVE", "INACTIVE"],
        }
    ],
    "tables": [{"id": 1, "schema": "public", "name": "users"}],
    "columns": [
        {
            "table_id": 1,
            "name": "id",
            "format": "integer",
            "is_nullable": False,
            "is_identity": True,
            "identity_generation": "ALWAYS",
        },
        {
            "table_id": 1,
            "name": "status",
            "format": "status",
            "is_nullable": False,
            "default_value": "'ACTIVE'::status",
        },
        {"table_id": 1, "name": "name", "format": "text", "is_nullable": True},
    ],
    "relationships": [],
    "functions": [],
}


_LIBRARY: Dict[str, Any] = {
    "schemas": [{"id": 1, "name": "public"}, {"id": 2, "name": "auth"}],
    "types": [
        {"id": 16, "schema": "pg_catalog", "name": "bool"},
        {"id": 23, "schema": "pg_catalog", "name": "int4"},
        {"id": 25, "schema": "pg_catalog", "name": "text"},
        {"id": 701, "schema": "pg_catalog", "name": "float8"},
        {"id": 1184, "schema": "pg_catalog", "name": "timestamptz"},
        {
            "id": 900,
            "schema": "public",
            "name": "book_format",
            "enums": ["hardcover", "paperback", "ebook"],
        },
    ],
    "tables": [
        {"id": 100, "schema": "public", "name": "authors"},
        {"id": 101, "schema": "public", "name": "books"},
        {"id": 102, "schema": "public", "name": "tags"},
        {"id": 103, "schema": "public", "name": "book_tags"},
        {"id": 200, "schema": "auth", "name": "users"},
    ],
    "views": [
        {"id": 110, "schema": "public", "name": "book_summaries", "is_updatable": True}
    ],
    "materializedViews": [{"id": 111, "schema": "public", "name": "author_stats"}],
    "columns": [
        # authors
        {
            "table_id": 100,
            "name": "id",
            "format": "int4",
            "is_nullable": False,
            "is_identity": True,
            "identity_generation": "ALWAYS",
        },
        {"table_id": 100, "name": "name", "format": "text", "is_nullable": False},
        {"table_id": 100, "name": "born", "format": "date", "is_nullable": True},
        # books
        {
            "table_id": 101,
            "name": "id",
            "format": "int4",
            "is_nullable": False,
            "is_identity": True,
            "identity_generation": "BY DEFAULT",
        },
        {"table_id": 101, "name": "title", "format": "text", "is_nullable": False},
        {"table_id": 101, "name": "author_id", "format": "int4", "is_nullable": False},
        {
            "table_id": 101,
            "name": "format",
            "format": "book_format",
            "is_nullable": False,
            "default_value": "'paperback'::book_format",
        },
        {"table_id": 101, "name": "price", "format": "numeric", "is_nullable": True},
        {
            "table_id": 101,
            "name": "published_at",
            "format": "timestamptz",
            "is_nullable": True,
        },
        {"table_id": 101, "name": "labels", "format": "_text", "is_nullable": True},
        # tags
        {
            "table_id": 102,
            "name": "id",
            "format": "int4",
            "is_nullable": False,
            "default_value": "nextval('tags_id_seq'::regclass)",
        },
        {"table_id": 102, "name": "label", "format": "text", "is_nullable": False},
        # book_tags
        {"table_id": 103, "name": "book_id", "format": "int4", "is_nullable": False},
        {"table_id": 103, "name": "tag_id", "format": "int4", "is_nullable": False},
        # book_summaries (updatable view)
        {
            "table_id": 110,
            "name": "id",
            "format": "int4",
            "is_nullable": True,
            "is_updatable": False,
        },
        {"table_id": 110, "name": "title", "format": "text", "is_nullable": True},
        # author_stats (materialized view)
        {"table_id": 111, "name": "author_id", "format": "int4", "is_nullable": True},
        {"table_id": 111, "name": "book_count", "format": "int8", "is_nullable": True},
        # auth.users
        {
            "table_id": 200,
            "name": "id",
            "format": "uuid",
            "is_nullable": False,
            "default_value": "gen_random_uuid()",
        },
        {"table_id": 200, "name": "email", "format": "citext", "is_nullable": False},
        {
            "table_id": 200,
            "name": "is_admin",
            "format": "bool",
            "is_nullable": False,
            "default_value": "false",
        },
    ],
    "relationships": [
        {
            "foreign_key_name": "books_author_id_fkey",
            "schema": "public",
            "relation": "books",
            "columns": ["author_id"],
            "referenced_schema": "public",
            "referenced_relation": "authors",
            "referenced_columns": ["id"],
        },
        {
            "foreign_key_name": "book_tags_tag_id_fkey",
            "schema": "public",
            "relation": "book_tags",
            "columns": ["tag_id"],
            "referenced_schema": "public",
            "referenced_relation": "tags",
            "referenced_columns": ["id"],
        },
        {
            "foreign_key_name": "book_tags_book_id_fkey",
            "schema": "public",
            "relation": "book_tags",
            "columns": ["book_id"],
            "referenced_schema": "public",
            "referenced_relation": "books",
            "referenced_columns": ["id"],
        },
    ],
    "functions": [
        {
            "id": 500,
            "schema": "public",
            "name": "search_books",
            "args": [
                {"mode": "in", "name": "query", "type_id": 25},
                {"mode": "in", "name": "lim", "type_id": 23, "has_default": True},
            ],
            "return_type_id": 7001,
            "return_type_relation_id": 101,
            "is_set_returning_function": True,
        },
        {
            "id": 501,
            "schema": "public",
            "name": "add",
            "args": [
                {"mode": "in", "name": "a", "type_id": 23},
                {"mode": "in", "name": "b", "type_id": 23},
            ],
            "return_type_id": 23,
        },
        {
            "id": 502,
            "schema": "public",
            "name": "add",
            "args": [
                {"mode": "in", "name": "a", "type_id": 701},
                {"mode": "in", "name": "b", "type_id": 701},
            ],
            "return_type_id": 701,
        },
        {
            "id": 503,
            "schema": "public",
            "name": "tag_counts",
            "args": [
                {"mode": "in", "name": "since", "type_id": 1184},
                {"mode": "table", "name": "total", "type_id": 23},
                {"mode": "table", "name": "label", "type_id": 25},
            ],
            "return_type_id": None,
            "is_set_returning_function": True,
        },
        {
            "id": 504,
            "schema": "public",
            "name": "concat_pair",
            "args": [
                {"mode": "in", "name": "", "type_id": 25},
                {"mode": "in", "name": "", "type_id": 25},
            ],
            "return_type_id": 25,
        },
    ],
}


@pytest.fixture()
def users_status_dict() -> Dict[str, Any]:
    """One enum type ``status`` and one table ``users``."""
    return copy.deepcopy(_USERS_STATUS)


@pytest.fixture()
def users_status_metadata(users_status_dict: Dict[str, Any]) -> MetadataBundle:
    return MetadataBundle.model_validate(users_status_dict)


@pytest.fixture()
def library_dict() -> Dict[str, Any]:
    """
    Two schemas: ``public`` (tables, a junction, an updatable view, a
    materialized view, functions) and ``auth`` (one table).
    """
    return copy.deepcopy(_LIBRARY)


@pytest.fixture()
def library_metadata(library_dict: Dict[str, Any]) -> MetadataBundle:
    return MetadataBundle.model_validate(library_dict)


@pytest.fixture()
def default_config() -> GenerationConfig:
    return GenerationConfig()


# ---------------------------------------------------------------------------
# File fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def library_json_path(
    library_dict: Dict[str, Any], tmp_path: pathlib.Path
) -> pathlib.Path:
    """Write the library metadata to a temporary JSON file."""
    path = tmp_path / "metadata.json"
    path.write_text(json.dumps(library_dict, indent=2), encoding="utf-8")
    return path


@pytest.fixture()
def library_yaml_path(
    library_dict: Dict[str, Any], tmp_path: pathlib.Path
) -> pathlib.Path:
    """Write the library metadata, wrapped with a config block, to YAML."""
    path = tmp_path / "metadata.yaml"
    document: Dict[str, Any] = {
        "metadata": library_dict,
        "config": {"default_schema": "public", "emit_validation_helpers": False},
    }
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(document, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def output_path(tmp_path: pathlib.Path) -> pathlib.Path:
    """Target file inside a not-yet-existing directory."""
    return tmp_path / "generated" / "schema.ts"
