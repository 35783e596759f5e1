"""
tests/test_templates.py
Unit tests for zodgen.templates (rendering and document emission).

Tests cover:
- ZodRenderer output for every builder node
- Identifier naming and relationship tags
- Document layout: preamble, per-schema sections, aliases, helpers
- Config switches (type exports, aliases, helpers, schema filters, style)
- Identifier collisions and determinism
- Input gates of the emitted lenient helpers
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

import pytest
from pydantic_core import PydanticCustomError

from zodgen.builder import (
    EnumOf,
    FieldSpec,
    Lenient,
    LenientRule,
    ObjectOf,
    Reference,
    RelationshipTag,
    Scalar,
    ScalarKind,
    UNKNOWN,
    forced_never,
    union_of,
)
from zodgen.coercion import (
    DECIMAL_PATTERN,
    ISO_DATETIME_PATTERN,
    coerce_float,
    coerce_temporal,
)
from zodgen.models import FormatStyle, GenerationConfig, MetadataBundle
from zodgen.templates import (
    LENIENT_HELPER_NAMES,
    TemplateGenerator,
    ZodRenderer,
    function_identifiers,
    render_tag,
    schema_identifier,
    type_identifier,
)


def _document(metadata: MetadataBundle, **config: Any) -> str:
    return TemplateGenerator(GenerationConfig(**config)).generate_document(metadata)


# ===========================================================================
# Renderer
# ===========================================================================


class TestZodRenderer:

    @pytest.fixture()
    def renderer(self) -> ZodRenderer:
        return ZodRenderer()

    def test_scalars(self, renderer: ZodRenderer) -> None:
        assert renderer.render(Scalar(ScalarKind.UUID)) == "z.string().uuid()"
        assert renderer.render(UNKNOWN) == "z.unknown()"
        assert renderer.render(forced_never()) == "z.never().optional()"

    def test_lenient_helpers_by_name(self, renderer: ZodRenderer) -> None:
        for rule, name in LENIENT_HELPER_NAMES.items():
            assert renderer.render(Lenient(LenientRule(rule))) == name

    def test_enum_literals_json_quoted(self, renderer: ZodRenderer) -> None:
        assert renderer.render(EnumOf(('say "hi"', "ok"))) == (
            'z.enum(["say \\"hi\\"", "ok"])'
        )

    def test_union(self, renderer: ZodRenderer) -> None:
        union = union_of([Scalar(ScalarKind.STRING), Scalar(ScalarKind.NUMBER)])
        assert renderer.render(union) == "z.union([z.string(), z.number()])"

    def test_single_member_union_collapses(self) -> None:
        assert union_of([UNKNOWN]) is UNKNOWN

    def test_empty_object(self, renderer: ZodRenderer) -> None:
        assert renderer.render(ObjectOf()) == "z.object({})"

    def test_object_keys_quoted_and_indented(self, renderer: ZodRenderer) -> None:
        shape = ObjectOf(
            (
                FieldSpec("first name", Scalar(ScalarKind.STRING)),
                FieldSpec("nested", ObjectOf((FieldSpec("x", UNKNOWN),))),
            )
        )
        assert renderer.render(shape) == (
            "z.object({\n"
            '  "first name": z.string(),\n'
            '  "nested": z.object({\n'
            '    "x": z.unknown(),\n'
            "  }),\n"
            "})"
        )

    def test_tab_width(self) -> None:
        renderer = ZodRenderer(FormatStyle(tab_width=4))
        shape = ObjectOf((FieldSpec("a", UNKNOWN),))
        assert renderer.render(shape) == 'z.object({\n    "a": z.unknown(),\n})'

    def test_lazy_field_is_getter(self, renderer: ZodRenderer) -> None:
        spec = FieldSpec("author", Reference("public", "authors"), lazy=True)
        assert renderer.render_field(spec) == (
            'get "author"() { return PublicAuthorsRowSchema }'
        )

    def test_reference_mode(self, renderer: ZodRenderer) -> None:
        assert renderer.render(Reference("auth", "users", "update")) == (
            "AuthUsersUpdateSchema"
        )


# ===========================================================================
# Names & tags
# ===========================================================================


class TestNaming:

    def test_schema_identifiers(self) -> None:
        assert schema_identifier("public", "book_tags") == "PublicBookTagsRowSchema"
        assert schema_identifier("public", "users", "insert_lenient") == (
            "PublicUsersInsertLenientSchema"
        )
        assert type_identifier("auth", "users", "update") == "AuthUsersUpdate"

    def test_function_identifiers(self) -> None:
        assert function_identifiers("public", "search_books") == (
            "PublicSearchBooksArgsSchema",
            "PublicSearchBooksReturnsSchema",
        )

    def test_to_one_tag(self) -> None:
        tag = RelationshipTag(
            cardinality="one",
            target_schema="public",
            target="authors",
            source_key=("author_id",),
            target_key=("id",),
            constraint="books_author_id_fkey",
        )
        assert json.loads(render_tag(tag)) == {
            "relationship": {
                "cardinality": "one",
                "schema": "public",
                "target": "authors",
                "sourceKey": "author_id",
                "targetKey": "id",
                "constraint": "books_author_id_fkey",
            }
        }

    def test_composite_keys_are_lists(self) -> None:
        tag = RelationshipTag(
            cardinality="one",
            target_schema="public",
            target="orders",
            source_key=("order_id", "line_no"),
            target_key=("id", "line_no"),
        )
        payload = json.loads(render_tag(tag))["relationship"]
        assert payload["sourceKey"] == ["order_id", "line_no"]

    def test_to_many_tag(self) -> None:
        tag = RelationshipTag(
            cardinality="many",
            target_schema="public",
            target="tags",
            source_key=("id",),
            target_key=("id",),
            join="book_tags",
            join_source_key=("book_id",),
            join_target_key=("tag_id",),
        )
        payload = json.loads(render_tag(tag))["relationship"]
        assert payload["join"] == "book_tags"
        assert payload["joinSourceKey"] == "book_id"
        assert payload["joinTargetKey"] == "tag_id"
        assert "constraint" not in payload


# ===========================================================================
# Document layout
# ===========================================================================


class TestDocumentLayout:

    def test_preamble_first(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata)
        assert text.startswith("import { z } from 'zod'\n")
        for name in LENIENT_HELPER_NAMES.values():
            assert f"export const {name} = z.unknown().transform(" in text

    def test_section_order(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata)
        headers = [
            "// auth schema tables",
            "// public schema tables",
            "// public schema views",
            "// public schema functions",
            "// public schema aliases",
            "// Validation helpers",
        ]
        positions = [text.index(h) for h in headers]
        assert positions == sorted(positions)

    def test_relations_sorted_within_schema(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata)
        order = [
            "PublicAuthorsRowSchema =",
            "PublicBookTagsRowSchema =",
            "PublicBooksRowSchema =",
            "PublicTagsRowSchema =",
        ]
        positions = [text.index(f"export const {name}") for name in order]
        assert positions == sorted(positions)

    def test_views_after_tables(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata)
        assert text.index("export const PublicAuthorStatsRowSchema") > text.index(
            "export const PublicTagsRowSchema"
        )
        assert "PublicAuthorStatsInsertSchema" not in text
        assert "export const PublicBookSummariesUpdateSchema" in text

    def test_type_exports(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata)
        assert (
            "export type PublicBooksInsert = z.infer<typeof PublicBooksInsertSchema>"
            in text
        )
        assert (
            "export type PublicSearchBooksArgs = "
            "z.infer<typeof PublicSearchBooksArgsSchema>" in text
        )

    def test_functions_emitted(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata)
        assert (
            "export const PublicSearchBooksReturnsSchema = z.array(PublicBooksRowSchema)"
            in text
        )
        assert "export const PublicAddArgsSchema = z.union([" in text
        assert "ConcatPair" not in text

    def test_accessor_getter_in_row(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata)
        assert '  get "author"() { return PublicAuthorsRowSchema.nullable().optional().meta(' in text
        assert '  get "tags"() { return z.array(PublicTagsRowSchema).optional().meta(' in text

    def test_default_aliases(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata)
        assert "export const BooksRowSchema = PublicBooksRowSchema" in text
        assert "export type BooksRow = PublicBooksRow" in text
        assert "export const SearchBooksArgsSchema = PublicSearchBooksArgsSchema" in text
        assert "UsersRowSchema = AuthUsersRowSchema" not in text

    def test_alias_for_other_default_schema(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata, default_schema="auth")
        assert "// auth schema aliases" in text
        assert "export const UsersRowSchema = AuthUsersRowSchema" in text
        assert "BooksRowSchema = PublicBooksRowSchema" not in text

    def test_missing_default_falls_back_to_first(
        self, library_metadata: MetadataBundle
    ) -> None:
        document = TemplateGenerator(
            GenerationConfig(default_schema="nope")
        ).build_document(library_metadata)
        assert document.default_schema == "auth"

    def test_validation_helpers(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata)
        assert "export const validateTableInsert = <T>(" in text
        assert "export const validateFunctionArgs = <T>(" in text
        assert text.rstrip().endswith("}")
        assert text.endswith("\n")


# ===========================================================================
# Config switches
# ===========================================================================


class TestConfigSwitches:

    def test_no_type_exports(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata, emit_type_exports=False)
        assert "export type" not in text

    def test_no_default_aliases(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata, emit_default_aliases=False)
        assert "schema aliases" not in text

    def test_no_validation_helpers(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata, emit_validation_helpers=False)
        assert "validateTableInsert" not in text

    def test_included_schemas(self, library_metadata: MetadataBundle) -> None:
        text = _document(library_metadata, included_schemas=["auth"])
        assert "AuthUsersRowSchema" in text
        assert "PublicBooksRowSchema" not in text
        assert "schema functions" not in text

    def test_excluded_schema_degrades_references(
        self, library_metadata: MetadataBundle
    ) -> None:
        document = TemplateGenerator(
            GenerationConfig(excluded_schemas=["public"])
        ).build_document(library_metadata)
        assert document.schemas == ["auth"]
        assert document.relations == 1

    def test_semicolons_and_double_quotes(self, library_metadata: MetadataBundle) -> None:
        text = _document(
            library_metadata, style={"semi": True, "single_quote": False}
        )
        assert text.startswith('import { z } from "zod";\n')
        assert "export const BooksRowSchema = PublicBooksRowSchema;" in text


# ===========================================================================
# Collisions & determinism
# ===========================================================================


class TestCollisionsAndDeterminism:

    def test_colliding_relation_skipped(self) -> None:
        metadata = MetadataBundle.model_validate(
            {
                "schemas": [{"name": "public"}],
                "tables": [
                    {"id": 1, "schema": "public", "name": "user_roles"},
                    {"id": 2, "schema": "public", "name": "userRoles"},
                ],
            }
        )
        document = TemplateGenerator().build_document(metadata)
        assert document.relations == 1
        assert document.skipped == ["public.user_roles"]
        assert document.text.count("export const PublicUserRolesRowSchema =") == 1

    def test_alias_not_redeclared(self) -> None:
        metadata = MetadataBundle.model_validate(
            {
                "schemas": [{"name": "public"}],
                "tables": [
                    {"id": 1, "schema": "public", "name": "users"},
                    {"id": 2, "schema": "public", "name": "public_users"},
                ],
            }
        )
        text = TemplateGenerator().generate_document(metadata)
        assert text.count("export const PublicUsersRowSchema =") == 1
        assert "export const UsersRowSchema = PublicUsersRowSchema" in text

    def test_identical_runs(self, library_dict: Dict[str, Any]) -> None:
        first = _document(MetadataBundle.model_validate(library_dict))
        second = _document(MetadataBundle.model_validate(library_dict))
        assert first == second

    def test_input_order_irrelevant(self, library_dict: Dict[str, Any]) -> None:
        first = _document(MetadataBundle.model_validate(library_dict))
        for key in ("tables", "columns", "relationships", "functions", "types", "schemas"):
            library_dict[key].reverse()
        second = _document(MetadataBundle.model_validate(library_dict))
        assert first == second

    def test_empty_metadata(self) -> None:
        document = TemplateGenerator().build_document(MetadataBundle())
        assert document.default_schema is None
        assert document.relations == 0
        assert "validateTableUpdate" in document.text

    def test_reference_to_skipped_relation_is_unknown(self) -> None:
        metadata = MetadataBundle.model_validate(
            {
                "schemas": [{"name": "my"}, {"name": "my_app"}],
                "tables": [
                    {"id": 1, "schema": "my", "name": "app_users"},
                    {"id": 2, "schema": "my_app", "name": "users"},
                    {"id": 3, "schema": "my_app", "name": "posts"},
                ],
                "columns": [
                    {"table_id": 1, "name": "legacy", "format": "text"},
                    {"table_id": 2, "name": "id", "format": "int4", "is_nullable": False},
                    {"table_id": 3, "name": "author_id", "format": "int4"},
                ],
                "relationships": [
                    {
                        "foreign_key_name": "posts_author_id_fkey",
                        "schema": "my_app",
                        "relation": "posts",
                        "columns": ["author_id"],
                        "referenced_schema": "my_app",
                        "referenced_relation": "users",
                        "referenced_columns": ["id"],
                    }
                ],
                "functions": [
                    {
                        "id": 10,
                        "schema": "my_app",
                        "name": "latest_user",
                        "args": [],
                        "return_type_id": 9999,
                        "return_type_relation_id": 2,
                    }
                ],
            }
        )
        document = TemplateGenerator().build_document(metadata)
        assert document.skipped == ["my_app.users"]
        assert 'get "author"() { return z.unknown().nullable().optional().meta(' in (
            document.text
        )
        assert "export const MyAppLatestUserReturnsSchema = z.unknown()" in document.text
        assert "return MyAppUsersRowSchema" not in document.text


# ===========================================================================
# Emitted lenient helpers
# ===========================================================================


def _helper_pattern(text: str, helper: str, call: str) -> "re.Pattern[str]":
    """Compile the regex literal guarding ``helper`` in the emitted text."""
    block = text[text.index(f"export const {helper} ="):]
    end = block.index(f"/.{call}(value)")
    start = block.rindex(" /", 0, end) + 2
    return re.compile(block[start:end])


class TestEmittedLenientHelpers:
    """String inputs are gated the same way as the zodgen.coercion rules."""

    @pytest.fixture()
    def text(self, users_status_metadata: MetadataBundle) -> str:
        return _document(users_status_metadata)

    def test_float_gate_matches_python_rule(self, text: str) -> None:
        assert _helper_pattern(text, "lenientFloat", "test").pattern == DECIMAL_PATTERN

    @pytest.mark.parametrize("value", ["0x10", "0b1", "1_000", "Infinity", "", " "])
    def test_float_gate_rejects(self, text: str, value: str) -> None:
        assert _helper_pattern(text, "lenientFloat", "test").match(value) is None
        with pytest.raises(PydanticCustomError):
            coerce_float(value)

    @pytest.mark.parametrize("value", ["3.25", "-1e3", ".5", " 4 "])
    def test_float_gate_accepts(self, text: str, value: str) -> None:
        assert _helper_pattern(text, "lenientFloat", "test").match(value)

    def test_date_gate_matches_python_rule(self, text: str) -> None:
        pattern = _helper_pattern(text, "lenientDate", "exec")
        assert pattern.pattern == ISO_DATETIME_PATTERN

    @pytest.mark.parametrize("value", ["foo 12", "1", "May 1, 2024", "2024-5-1"])
    def test_date_gate_rejects(self, text: str, value: str) -> None:
        assert _helper_pattern(text, "lenientDate", "exec").match(value) is None
        with pytest.raises(PydanticCustomError):
            coerce_temporal(value)

    def test_date_rejects_rolled_over_days(self, text: str) -> None:
        # The shape is valid ISO; the calendar check must reject it.
        assert _helper_pattern(text, "lenientDate", "exec").match("2024-02-30")
        assert "calendar.getUTCDate() === day" in text
        assert "calendar.getUTCMonth() === month - 1" in text
        with pytest.raises(PydanticCustomError):
            coerce_temporal("2024-02-30")

    @pytest.mark.parametrize(
        "value", ["2024-05-01", "2024-05-01T12:30:00", "2024-05-01 12:30:00.5+02:00"]
    )
    def test_date_gate_accepts(self, text: str, value: str) -> None:
        assert _helper_pattern(text, "lenientDate", "exec").match(value)
        coerce_temporal(value)

    def test_issue_message_survives_unserialisable_values(self, text: str) -> None:
        assert "const describeValue = (value: unknown): string => {" in text
        assert "} catch {\n    return String(value)" in text
        assert "${JSON.stringify(value)}" not in text
        assert text.count("${describeValue(value)}") == len(LENIENT_HELPER_NAMES)
