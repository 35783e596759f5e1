# File: zodgen/cli.py
"""
NexaFlow ZodGen - Command-Line Interface
==========================================

CLI built with the standard-library ``argparse`` module.

Usage examples::

    # Generate to a file
    python -m zodgen -i metadata.json -o src/schema.ts

    # Print to stdout, only the public and auth schemas
    zodgen -i metadata.yaml --include-schema public --include-schema auth

    # Run prettier with semicolons
    zodgen -i metadata.json -o schema.ts --formatter prettier --semi

    # Diagnostics only (no output document)
    zodgen -i metadata.json --validate-only

Exit codes:
    0 — success
    1 — diagnostics failure (with --fail-on-warnings)
    2 — generation error
    3 — export error
    4 — input/argument error
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4

DEFAULT_SCHEMA_ENV: str = "ZODGEN_DEFAULT_SCHEMA"


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root zodgen logger based on verbosity level.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    formatter: logging.Formatter = logging.Formatter(fmt, datefmt="%H:%M:%S")
    handler.setFormatter(formatter)

    root_logger: logging.Logger = logging.getLogger("zodgen")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from zodgen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="zodgen",
        description=(
            "NexaFlow ZodGen — Zod validator generator.\n\n"
            "Transforms introspected PostgreSQL metadata (JSON/YAML) into a "
            "TypeScript module of Zod v4 validators."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -i metadata.json -o schema.ts\n"
            "  %(prog)s -i metadata.yaml --default-schema app\n"
            "  %(prog)s -i metadata.json --validate-only\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"NexaFlow ZodGen v{__version__}",
    )

    # --- Input / output ---
    parser.add_argument(
        "-i", "--input",
        type=str,
        required=True,
        metavar="PATH",
        help="Path to the metadata document (JSON or YAML).",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="FILE",
        help="Output TypeScript file. Omit to print to stdout.",
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only run metadata diagnostics without emitting code.",
    )
    mode_group.add_argument(
        "--fail-on-warnings",
        action="store_true",
        default=False,
        help="Exit with code 1 when diagnostics report warnings.",
    )

    # --- Config overrides ---
    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "--default-schema",
        type=str,
        default=os.environ.get(DEFAULT_SCHEMA_ENV),
        metavar="NAME",
        help=f"Schema re-exported under unprefixed names (env: {DEFAULT_SCHEMA_ENV}).",
    )
    config_group.add_argument(
        "--include-schema",
        action="append",
        default=None,
        metavar="NAME",
        help="Only emit this schema (repeatable).",
    )
    config_group.add_argument(
        "--exclude-schema",
        action="append",
        default=None,
        metavar="NAME",
        help="Never emit this schema (repeatable).",
    )
    config_group.add_argument(
        "--no-type-exports",
        action="store_true",
        default=False,
        help="Skip `export type X = z.infer<...>` lines.",
    )
    config_group.add_argument(
        "--no-default-aliases",
        action="store_true",
        default=False,
        help="Skip the unprefixed default-schema aliases.",
    )
    config_group.add_argument(
        "--no-validation-helpers",
        action="store_true",
        default=False,
        help="Skip the safeParse wrapper helpers.",
    )

    # --- Formatting ---
    format_group = parser.add_argument_group("formatting")
    format_group.add_argument(
        "--formatter",
        type=str,
        default=None,
        choices=["none", "prettier"],
        help="Output formatter.",
    )
    format_group.add_argument(
        "--prettier-path",
        type=str,
        default=None,
        metavar="PATH",
        help="prettier executable.",
    )
    format_group.add_argument(
        "--semi",
        action="store_true",
        default=False,
        help="Terminate statements with semicolons.",
    )
    format_group.add_argument(
        "--print-width",
        type=int,
        default=None,
        metavar="N",
        help="Formatter line width.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Build a config override dictionary from CLI arguments."""
    overrides: Dict[str, Any] = {}

    if args.default_schema:
        overrides["default_schema"] = args.default_schema

    if args.include_schema:
        overrides["included_schemas"] = list(args.include_schema)

    if args.exclude_schema:
        overrides["excluded_schemas"] = list(args.exclude_schema)

    if args.no_type_exports:
        overrides["emit_type_exports"] = False

    if args.no_default_aliases:
        overrides["emit_default_aliases"] = False

    if args.no_validation_helpers:
        overrides["emit_validation_helpers"] = False

    if args.formatter is not None:
        overrides["formatter"] = args.formatter

    if args.prettier_path is not None:
        overrides["prettier_path"] = args.prettier_path

    style: Dict[str, Any] = {}
    if args.semi:
        style["semi"] = True
    if args.print_width is not None:
        style["print_width"] = args.print_width
    if style:
        overrides["style"] = style

    return overrides


# ---------------------------------------------------------------------------
# Validate-only mode
# ---------------------------------------------------------------------------


def _run_validate_only(input_path: Path, args: argparse.Namespace) -> int:
    """
    Run diagnostics only (no document emitted).

    Returns the appropriate exit code.
    """
    from zodgen.generator import (
        load_metadata_file,
        merge_config_overrides,
        parse_raw_metadata,
    )
    from zodgen.utils import Timer
    from zodgen.validators import validate_full

    logger.info("Running validation-only mode for: %s", input_path)

    try:
        raw_data = load_metadata_file(input_path)
        metadata, config = parse_raw_metadata(
            merge_config_overrides(raw_data, _build_config_overrides(args))
        )
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to load metadata: %s", exc)
        return EXIT_INPUT_ERROR

    with Timer("diagnostics") as t:
        result = validate_full(metadata, config)

    print(f"\n{'='*50}")
    print("  Metadata Diagnostics Report")
    print(f"{'='*50}")
    print(f"  File:       {input_path.name}")
    print(f"  Schemas:    {len(metadata.schemas)}")
    print(f"  Relations:  {len(metadata.all_relations)}")
    print(f"  Functions:  {len(metadata.functions)}")
    print(f"  Time:       {t.elapsed:.3f}s")

    report: str = result.format_report(include_info=args.verbose >= 1)
    if report:
        print()
        print(report)
    if not result.has_warnings:
        print("\n  ✅ No warnings.")
    print(f"{'='*50}\n")

    if args.fail_on_warnings and result.has_warnings:
        return EXIT_VALIDATION_ERROR
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Full generation mode
# ---------------------------------------------------------------------------


def _run_generation(
    input_path: Path,
    output_path: Optional[Path],
    args: argparse.Namespace,
) -> int:
    """
    Run the full generation pipeline.

    Returns the appropriate exit code.
    """
    from zodgen.generator import GenerationReport, ZodGenerator

    report: GenerationReport = ZodGenerator().generate_from_file(
        input_path,
        output_path,
        config_overrides=_build_config_overrides(args) or None,
    )

    if output_path is None and report.success:
        sys.stdout.write(report.output_text)
        sys.stdout.flush()
    if output_path is not None or not report.success:
        print(report.summary(), file=sys.stderr)

    if report.input_errors:
        return EXIT_INPUT_ERROR
    if report.generation_errors:
        return EXIT_GENERATION_ERROR
    if report.export_errors:
        return EXIT_EXPORT_ERROR
    if args.fail_on_warnings and report.warning_count:
        logger.error("%d diagnostic warning(s) reported.", report.warning_count)
        return EXIT_VALIDATION_ERROR
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
    else:
        verbosity = args.verbose
    _setup_logging(verbosity)
    if args.quiet:
        logging.getLogger("zodgen").setLevel(logging.ERROR)

    input_path: Path = Path(args.input).resolve()

    if not input_path.is_file():
        logger.error("Metadata file not found: %s", input_path)
        sys.exit(EXIT_INPUT_ERROR)

    if args.validate_only:
        sys.exit(_run_validate_only(input_path, args))

    output_path: Optional[Path] = (
        Path(args.output).resolve() if args.output is not None else None
    )

    logger.info("Input:   %s", input_path)
    logger.info("Output:  %s", output_path or "<stdout>")

    exit_code: int = _run_generation(input_path, output_path, args)

    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)

    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("zodgen.cli loaded.")
