"""
tests/test_generator.py
Integration tests for zodgen.generator (the end-to-end pipeline).

Tests cover:
- Metadata file loading (JSON, YAML, unknown suffix, failures)
- Raw payload parsing and config overrides
- ZodGenerator.generate / generate_from_file with real files in tmp_path
- Formatter failures keeping the raw document
- Emission and export failures reported per category
"""

from __future__ import annotations

import asyncio
import json
import pathlib
from typing import Any, Dict

import pytest

from zodgen.formatters import Formatter, FormatterError, PassthroughFormatter
from zodgen.generator import (
    GenerationReport,
    ZodGenerator,
    load_metadata_file,
    merge_config_overrides,
    parse_raw_metadata,
)
from zodgen.models import FormatStyle, GenerationConfig, MetadataBundle
from zodgen.templates import TemplateGenerator
from zodgen.utils import sha256_hex


class _BrokenFormatter(Formatter):
    name = "broken"

    async def format(self, text: str, style: FormatStyle) -> str:
        raise FormatterError("formatter exploded")


class _ShoutingFormatter(Formatter):
    name = "shouting"

    async def format(self, text: str, style: FormatStyle) -> str:
        return "// formatted\n" + text


# ===========================================================================
# Loading
# ===========================================================================


class TestLoadMetadataFile:

    def test_json(self, library_json_path: pathlib.Path) -> None:
        raw = load_metadata_file(library_json_path)
        assert {t["name"] for t in raw["tables"]} >= {"authors", "books"}

    def test_yaml(self, library_yaml_path: pathlib.Path) -> None:
        raw = load_metadata_file(library_yaml_path)
        assert set(raw) == {"metadata", "config"}

    def test_unknown_suffix_falls_back_to_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "metadata.txt"
        path.write_text("schemas:\n  - name: public\n", encoding="utf-8")
        assert load_metadata_file(path) == {"schemas": [{"name": "public"}]}

    def test_unknown_suffix_json(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "metadata.dump"
        path.write_text('{"schemas": []}', encoding="utf-8")
        assert load_metadata_file(path) == {"schemas": []}

    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_metadata_file(tmp_path / "absent.json")

    def test_directory_rejected(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ValueError, match="not a file"):
            load_metadata_file(tmp_path)

    def test_invalid_json(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_metadata_file(path)

    def test_non_mapping_top_level(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_metadata_file(path)


# ===========================================================================
# Parsing & overrides
# ===========================================================================


class TestParsing:

    def test_top_level_metadata(self, library_dict: Dict[str, Any]) -> None:
        metadata, config = parse_raw_metadata(library_dict)
        assert metadata.schema_names == ["auth", "public"]
        assert config == GenerationConfig()

    def test_wrapped_metadata_with_config(self, library_dict: Dict[str, Any]) -> None:
        metadata, config = parse_raw_metadata(
            {"metadata": library_dict, "generation_config": {"default_schema": "auth"}}
        )
        assert len(metadata.all_relations) == 7
        assert config.default_schema == "auth"

    def test_invalid_metadata(self) -> None:
        with pytest.raises(ValueError, match="Metadata validation failed"):
            parse_raw_metadata({"tables": [{"id": "not-a-number"}]})

    def test_invalid_config(self, library_dict: Dict[str, Any]) -> None:
        with pytest.raises(ValueError, match="Config validation failed"):
            parse_raw_metadata(
                {"metadata": library_dict, "config": {"style": {"tab_width": 99}}}
            )

    def test_metadata_must_be_mapping(self) -> None:
        with pytest.raises(ValueError):
            parse_raw_metadata({"metadata": ["nope"]})

    def test_overrides_merge_nested_style(self) -> None:
        raw: Dict[str, Any] = {"config": {"style": {"semi": False, "tab_width": 4}}}
        merged = merge_config_overrides(raw, {"style": {"semi": True}, "formatter": "none"})
        assert merged["config"] == {
            "style": {"semi": True, "tab_width": 4},
            "formatter": "none",
        }
        assert raw["config"]["style"]["semi"] is False

    def test_overrides_use_existing_config_key(self) -> None:
        merged = merge_config_overrides(
            {"generation_config": {"default_schema": "a"}}, {"default_schema": "b"}
        )
        assert merged == {"generation_config": {"default_schema": "b"}}

    def test_no_overrides_is_copy(self, library_dict: Dict[str, Any]) -> None:
        merged = merge_config_overrides(library_dict, None)
        assert merged == library_dict
        assert merged is not library_dict


# ===========================================================================
# In-memory generation
# ===========================================================================


class TestGenerate:

    def test_report_metrics(self, library_metadata: MetadataBundle) -> None:
        report = ZodGenerator().generate(library_metadata)
        assert isinstance(report, GenerationReport)
        assert report.success
        assert report.formatted
        assert report.formatter == "none"
        assert report.default_schema == "public"
        assert report.total_schemas == 2
        assert report.total_relations == 7
        assert report.total_functions == 3
        assert report.sha256 == sha256_hex(report.output_text)
        assert report.total_bytes == len(report.output_text.encode("utf-8"))
        assert report.warning_count == 0
        assert report.output_path == ""

    def test_steps_recorded(self, library_metadata: MetadataBundle) -> None:
        report = ZodGenerator().generate(library_metadata)
        assert [s.step_name for s in report.step_metrics] == [
            "Diagnostics",
            "Emit Document",
            "Format Document",
        ]
        assert all(s.success for s in report.step_metrics)

    def test_output_matches_emitted_document(
        self, library_metadata: MetadataBundle
    ) -> None:
        raw = TemplateGenerator().generate_document(library_metadata)
        formatted = asyncio.run(PassthroughFormatter().format(raw, FormatStyle()))
        assert ZodGenerator().generate(library_metadata).output_text == formatted

    def test_summary_mentions_status(self, library_metadata: MetadataBundle) -> None:
        summary = ZodGenerator().generate(library_metadata).summary()
        assert "SUCCESS" in summary
        assert "<stdout>" in summary
        assert "Emit Document" in summary

    def test_skipped_relations_reported(self) -> None:
        metadata = MetadataBundle.model_validate(
            {
                "schemas": [{"name": "public"}],
                "tables": [
                    {"id": 1, "schema": "public", "name": "userRoles"},
                    {"id": 2, "schema": "public", "name": "user_roles"},
                ],
            }
        )
        report = ZodGenerator().generate(metadata)
        assert report.success
        assert report.skipped == ["public.user_roles"]
        assert report.warning_count == 1


# ===========================================================================
# Formatter handling
# ===========================================================================


class TestFormatterHandling:

    def test_failure_keeps_raw_text(self, library_metadata: MetadataBundle) -> None:
        report = ZodGenerator(formatter=_BrokenFormatter()).generate(library_metadata)
        assert report.success
        assert not report.formatted
        assert report.formatter_errors == ["formatter exploded"]
        assert report.output_text == TemplateGenerator().generate_document(
            library_metadata
        )
        assert "(unformatted)" in report.summary()

    def test_override_formatter_used(self, library_metadata: MetadataBundle) -> None:
        report = ZodGenerator(formatter=_ShoutingFormatter()).generate(library_metadata)
        assert report.formatter == "shouting"
        assert report.output_text.startswith("// formatted\n")

    def test_formatter_from_config(self) -> None:
        generator = ZodGenerator()
        assert generator.formatter_for(GenerationConfig()).name == "none"
        assert (
            generator.formatter_for(GenerationConfig(formatter="prettier")).name
            == "prettier"
        )

    def test_async_document(self, library_metadata: MetadataBundle) -> None:
        text = asyncio.run(
            ZodGenerator(formatter=_ShoutingFormatter()).generate_document_async(
                library_metadata
            )
        )
        assert text.startswith("// formatted\n")
        assert "export const PublicBooksRowSchema" in text

    def test_async_document_propagates_failure(
        self, library_metadata: MetadataBundle
    ) -> None:
        generator = ZodGenerator(formatter=_BrokenFormatter())
        with pytest.raises(FormatterError):
            asyncio.run(generator.generate_document_async(library_metadata))


# ===========================================================================
# File-based generation
# ===========================================================================


class TestGenerateFromFile:

    def test_writes_output(
        self, library_json_path: pathlib.Path, output_path: pathlib.Path
    ) -> None:
        report = ZodGenerator().generate_from_file(library_json_path, output_path)
        assert report.success
        assert output_path.read_text(encoding="utf-8") == report.output_text
        assert report.output_path == str(output_path)
        assert [p.name for p in output_path.parent.iterdir()] == ["schema.ts"]
        assert report.step_metrics[-1].step_name == "Write Output"

    def test_no_output_path(self, library_json_path: pathlib.Path) -> None:
        report = ZodGenerator().generate_from_file(library_json_path)
        assert report.success
        assert "Write Output" not in [s.step_name for s in report.step_metrics]
        assert report.output_text.startswith("import { z } from")

    def test_yaml_config_applied(self, library_yaml_path: pathlib.Path) -> None:
        report = ZodGenerator().generate_from_file(library_yaml_path)
        assert report.success
        assert "validateTableInsert" not in report.output_text

    def test_config_overrides(self, library_json_path: pathlib.Path) -> None:
        report = ZodGenerator().generate_from_file(
            library_json_path,
            config_overrides={"emit_default_aliases": False, "excluded_schemas": ["auth"]},
        )
        assert report.success
        assert report.total_schemas == 1
        assert "export const BooksRowSchema" not in report.output_text
        assert "AuthUsers" not in report.output_text

    def test_missing_input(self, tmp_path: pathlib.Path) -> None:
        report = ZodGenerator().generate_from_file(tmp_path / "absent.json")
        assert not report.success
        assert "not found" in report.input_errors[0]
        assert report.output_text == ""
        assert [s.step_name for s in report.step_metrics] == ["Load Metadata File"]

    def test_unparseable_input(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"tables": [{"id": "x"}]}), encoding="utf-8")
        report = ZodGenerator().generate_from_file(path)
        assert not report.success
        assert report.input_errors
        assert not report.step_metrics[-1].success

    def test_export_error(
        self, library_json_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        report = ZodGenerator().generate_from_file(
            library_json_path, blocker / "schema.ts"
        )
        assert not report.success
        assert report.export_errors
        assert report.output_text
        assert "Export Errors" in report.summary()


# ===========================================================================
# Emission failure
# ===========================================================================


class TestEmissionFailure:

    def test_generation_error_recorded(
        self, library_metadata: MetadataBundle, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _explode(self: Any, metadata: MetadataBundle, assembler: Any = None) -> Any:
            raise RuntimeError("boom")

        monkeypatch.setattr(TemplateGenerator, "build_document", _explode)
        report = ZodGenerator().generate(library_metadata)
        assert not report.success
        assert report.generation_errors == ["Fatal generation error: boom"]
        assert report.output_text == ""
        assert report.step_metrics[-1].step_name == "Emit Document"
