# File: zodgen/generator.py
"""
NexaFlow ZodGen - Master Generation Pipeline (Orchestrator)
=============================================================

Connects every phase together:

    Metadata Input → Diagnostics → Emission → Formatting → Output

The ``ZodGenerator`` class provides both a programmatic API and the
backend for the CLI.

Workflow::

    1. Load metadata from a JSON/YAML file (or accept in-memory objects).
    2. Parse into ``MetadataBundle`` + ``GenerationConfig`` (models.py).
    3. Run the non-fatal diagnostics (validators.py).
    4. Emit the raw TypeScript document (templates.py).
    5. Run the configured formatter once over the whole document.
    6. Write the result atomically (or hand it back for stdout).
    7. Return a ``GenerationReport`` with metrics and status.

Error handling strategy:
    - Diagnostics never abort generation; they are carried in the report.
    - A formatter failure is logged and recorded; the unformatted
      document is kept.
    - Load/parse failures, emission failures and write failures are
      recorded in separate lists so the CLI can map them to exit codes.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from zodgen.formatters import Formatter, FormatterError, get_formatter
from zodgen.models import GenerationConfig, MetadataBundle
from zodgen.templates import EmittedDocument, TemplateGenerator
from zodgen.utils import Timer, count_lines, sha256_hex, write_file
from zodgen.validators import ValidationResult, validate_full

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.generator")

_CONFIG_KEYS: Tuple[str, ...] = ("config", "generation_config")


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by ``ZodGenerator.generate()``.

    ``output_text`` always holds the final document (formatted when the
    formatter succeeded) so callers without an output path can print it.
    """

    success: bool = False
    output_path: str = ""
    default_schema: Optional[str] = None
    formatter: str = ""
    formatted: bool = False

    # Metrics
    total_schemas: int = 0
    total_relations: int = 0
    total_functions: int = 0
    total_lines: int = 0
    total_bytes: int = 0
    sha256: str = ""
    total_elapsed_seconds: float = 0.0

    # Sub-reports
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    diagnostics: Optional[ValidationResult] = None
    input_errors: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    formatter_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    output_text: str = ""

    @property
    def warning_count(self) -> int:
        return self.diagnostics.warning_count if self.diagnostics else 0

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append(f"{'='*60}")
        lines.append("  NexaFlow ZodGen — Generation Report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:           {status}")
        lines.append(f"  Output:           {self.output_path or '<stdout>'}")
        lines.append(f"  Default schema:   {self.default_schema or '-'}")
        lines.append(f"  Schemas:          {self.total_schemas}")
        lines.append(f"  Relations:        {self.total_relations}")
        lines.append(f"  Functions:        {self.total_functions}")
        lines.append(f"  Total lines:      {self.total_lines:,}")
        lines.append(f"  Total bytes:      {self.total_bytes:,}")
        lines.append(
            f"  Formatter:        {self.formatter}"
            f"{'' if self.formatted else ' (unformatted)'}"
        )
        if self.sha256:
            lines.append(f"  SHA-256:          {self.sha256[:16]}…")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─'*60}")

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<28s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        if self.diagnostics is not None and self.diagnostics.has_warnings:
            lines.append(f"{'─'*60}")
            lines.append(f"  Diagnostics ({self.diagnostics.warning_count}):")
            for item in self.diagnostics.warnings:
                lines.append(f"    ⚠ {item}")

        for title, items, icon in (
            ("Input Errors", self.input_errors, "✗"),
            ("Generation Errors", self.generation_errors, "✗"),
            ("Formatter Errors", self.formatter_errors, "⚠"),
            ("Export Errors", self.export_errors, "✗"),
            ("Skipped", self.skipped, "⊘"),
        ):
            if items:
                lines.append(f"{'─'*60}")
                lines.append(f"  {title} ({len(items)}):")
                for item in items:
                    lines.append(f"    {icon} {item}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Metadata loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a JSON object at top level, got {type(data).__name__}."
        )
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file. Raises ValueError on parse errors."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}."
        )
    return data


def load_metadata_file(path: Path) -> Dict[str, Any]:
    """
    Load a metadata document (JSON or YAML).

    Dispatches based on file extension; unknown extensions try JSON
    first, then YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Metadata file not found: {path}")

    if not path.is_file():
        raise ValueError(f"Metadata path is not a file: {path}")

    suffix: str = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    elif suffix == ".json":
        return _load_json_file(path)
    else:
        logger.info("Unknown extension '%s' — trying JSON then YAML.", suffix)
        try:
            return _load_json_file(path)
        except ValueError:
            return _load_yaml_file(path)


def merge_config_overrides(
    raw: Dict[str, Any], overrides: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Return a copy of ``raw`` whose config mapping carries ``overrides``.

    Nested mappings (``style``) are merged one level deep.
    """
    merged: Dict[str, Any] = copy.deepcopy(raw)
    if not overrides:
        return merged

    config_key: str = next((k for k in _CONFIG_KEYS if k in merged), "config")
    config_data: Dict[str, Any] = dict(merged.get(config_key) or {})
    for key, value in overrides.items():
        current: Any = config_data.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            config_data[key] = {**current, **value}
        else:
            config_data[key] = value
    merged[config_key] = config_data
    return merged


def parse_raw_metadata(
    raw: Dict[str, Any],
) -> Tuple[MetadataBundle, GenerationConfig]:
    """
    Parse a raw dictionary (from JSON/YAML) into validated models.

    The metadata collections sit either at the top level or under a
    ``metadata`` key; generation settings under ``config``.

    Raises:
        ValueError: If the metadata or config fails validation.
    """
    metadata_data: Any = raw.get("metadata", raw)
    if not isinstance(metadata_data, dict):
        raise ValueError(
            f"Expected 'metadata' to be a mapping, got {type(metadata_data).__name__}."
        )

    config_data: Any = None
    for key in _CONFIG_KEYS:
        if key in raw:
            config_data = raw[key]
            break
    if config_data is None:
        logger.info("No generation config found in input — using defaults.")
        config_data = {}

    try:
        metadata: MetadataBundle = MetadataBundle.model_validate(metadata_data)
    except ValidationError as exc:
        raise ValueError(f"Metadata validation failed: {exc}") from exc

    try:
        config: GenerationConfig = GenerationConfig.model_validate(config_data)
    except ValidationError as exc:
        raise ValueError(f"Config validation failed: {exc}") from exc

    return metadata, config


# ---------------------------------------------------------------------------
# ZodGenerator — Master orchestrator
# ---------------------------------------------------------------------------


class ZodGenerator:
    """
    Master pipeline orchestrator.

    Usage::

        generator = ZodGenerator()

        # From a file
        report = generator.generate_from_file(
            Path("metadata.json"), output_path=Path("schema.ts")
        )

        # From in-memory objects
        report = generator.generate(metadata, config)
        print(report.output_text)

    The generator is reusable — create once, call generate() many times.
    ``formatter`` overrides the one selected by ``config.formatter``.
    """

    def __init__(self, *, formatter: Optional[Formatter] = None) -> None:
        self._formatter: Optional[Formatter] = formatter
        logger.debug(
            "ZodGenerator initialised (formatter override=%s).",
            formatter.name if formatter else None,
        )

    # -----------------------------------------------------------------
    # Public: generate from file
    # -----------------------------------------------------------------

    def generate_from_file(
        self,
        metadata_path: Path,
        output_path: Optional[Path] = None,
        *,
        config_overrides: Optional[Dict[str, Any]] = None,
    ) -> GenerationReport:
        """Full pipeline: load file → diagnose → emit → format → write."""
        report: GenerationReport = GenerationReport()
        if output_path is not None:
            report.output_path = str(output_path)

        with Timer("load") as t_load:
            try:
                raw_data: Dict[str, Any] = load_metadata_file(metadata_path)
            except (FileNotFoundError, ValueError) as exc:
                raw_data = {}
                report.input_errors.append(str(exc))
        report.step_metrics.append(GenerationStepMetric(
            step_name="Load Metadata File",
            success=not report.input_errors,
            elapsed_seconds=t_load.elapsed,
            detail=report.input_errors[-1] if report.input_errors
            else f"from {metadata_path.name}",
        ))
        if report.input_errors:
            return self._finalise_report(report)
        logger.info(
            "Loaded metadata file: %s (%d top-level keys).",
            metadata_path,
            len(raw_data),
        )

        with Timer("parse") as t_parse:
            try:
                metadata, config = parse_raw_metadata(
                    merge_config_overrides(raw_data, config_overrides)
                )
            except ValueError as exc:
                report.input_errors.append(str(exc))
        report.step_metrics.append(GenerationStepMetric(
            step_name="Parse Metadata",
            success=not report.input_errors,
            elapsed_seconds=t_parse.elapsed,
            detail=report.input_errors[-1] if report.input_errors
            else f"{len(metadata.all_relations)} relations parsed",
        ))
        if report.input_errors:
            return self._finalise_report(report)

        return self._run_pipeline(metadata, config, output_path, report)

    # -----------------------------------------------------------------
    # Public: generate from in-memory objects
    # -----------------------------------------------------------------

    def generate(
        self,
        metadata: MetadataBundle,
        config: Optional[GenerationConfig] = None,
        output_path: Optional[Path] = None,
    ) -> GenerationReport:
        """Full pipeline from pre-parsed metadata and config objects."""
        report: GenerationReport = GenerationReport()
        if output_path is not None:
            report.output_path = str(output_path)
        return self._run_pipeline(
            metadata, config or GenerationConfig(), output_path, report
        )

    async def generate_document_async(
        self,
        metadata: MetadataBundle,
        config: Optional[GenerationConfig] = None,
    ) -> str:
        """
        Emit and format the document for callers already inside an event
        loop. Formatter failures propagate as ``FormatterError``.
        """
        config = config or GenerationConfig()
        document: EmittedDocument = TemplateGenerator(config).build_document(metadata)
        return await self.formatter_for(config).format(document.text, config.style)

    def formatter_for(self, config: GenerationConfig) -> Formatter:
        return self._formatter or get_formatter(config)

    # -----------------------------------------------------------------
    # Internal: master pipeline
    # -----------------------------------------------------------------

    def _run_pipeline(
        self,
        metadata: MetadataBundle,
        config: GenerationConfig,
        output_path: Optional[Path],
        report: GenerationReport,
    ) -> GenerationReport:
        report.diagnostics = self._step_diagnose(metadata, config, report)

        document: Optional[EmittedDocument] = self._step_emit(metadata, config, report)
        if document is None:
            return self._finalise_report(report)

        text: str = self._step_format(document.text, config, report)
        report.output_text = text
        report.total_lines = count_lines(text)
        report.total_bytes = len(text.encode("utf-8"))
        report.sha256 = sha256_hex(text)

        if output_path is not None:
            self._step_write(text, output_path, report)

        return self._finalise_report(report)

    def _step_diagnose(
        self,
        metadata: MetadataBundle,
        config: GenerationConfig,
        report: GenerationReport,
    ) -> ValidationResult:
        with Timer("diagnose") as t:
            result: ValidationResult = validate_full(metadata, config)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Diagnostics",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=result.summary(),
        ))
        return result

    def _step_emit(
        self,
        metadata: MetadataBundle,
        config: GenerationConfig,
        report: GenerationReport,
    ) -> Optional[EmittedDocument]:
        document: Optional[EmittedDocument] = None
        with Timer("emit") as t:
            try:
                document = TemplateGenerator(config).build_document(metadata)
            except Exception as exc:
                logger.exception("Fatal emission error.")
                report.generation_errors.append(f"Fatal generation error: {exc}")

        if document is None:
            report.step_metrics.append(GenerationStepMetric(
                step_name="Emit Document",
                success=False,
                elapsed_seconds=t.elapsed,
                detail=report.generation_errors[-1],
            ))
            return None

        report.default_schema = document.default_schema
        report.total_schemas = len(document.schemas)
        report.total_relations = document.relations
        report.total_functions = document.functions
        report.skipped.extend(document.skipped)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Emit Document",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{document.relations} relations, {document.functions} functions",
        ))
        return document

    def _step_format(
        self, text: str, config: GenerationConfig, report: GenerationReport
    ) -> str:
        formatter: Formatter = self.formatter_for(config)
        report.formatter = formatter.name
        with Timer("format") as t:
            try:
                formatted: str = asyncio.run(formatter.format(text, config.style))
            except FormatterError as exc:
                logger.warning("Formatter '%s' failed: %s", formatter.name, exc)
                report.formatter_errors.append(str(exc))
                formatted = text
            else:
                report.formatted = True

        report.step_metrics.append(GenerationStepMetric(
            step_name="Format Document",
            success=report.formatted,
            elapsed_seconds=t.elapsed,
            detail=formatter.name if report.formatted else "kept unformatted output",
        ))
        return formatted

    def _step_write(
        self, text: str, output_path: Path, report: GenerationReport
    ) -> None:
        with Timer("write") as t:
            try:
                written: int = write_file(output_path, text)
            except OSError as exc:
                logger.error("Cannot write %s: %s", output_path, exc)
                report.export_errors.append(f"{output_path}: {exc}")
                written = 0

        report.step_metrics.append(GenerationStepMetric(
            step_name="Write Output",
            success=not report.export_errors,
            elapsed_seconds=t.elapsed,
            detail=f"{written:,} bytes → {output_path.name}"
            if not report.export_errors
            else report.export_errors[-1],
        ))
        if not report.export_errors:
            logger.info("Wrote %d bytes to %s.", written, output_path)

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(self, report: GenerationReport) -> GenerationReport:
        """Set final status and timing on the report."""
        report.total_elapsed_seconds = sum(
            step.elapsed_seconds for step in report.step_metrics
        )
        report.success = not (
            report.input_errors or report.generation_errors or report.export_errors
        )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ZodGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "load_metadata_file",
    "merge_config_overrides",
    "parse_raw_metadata",
]

logger.debug("zodgen.generator loaded — %d public symbols.", len(__all__))
