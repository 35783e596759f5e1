# File: zodgen/formatters.py
"""
NexaFlow ZodGen - Output Formatters
====================================
The formatting collaborator: ``async format(text, style) -> str``.

Two implementations:

* ``PassthroughFormatter`` normalises whitespace only (trailing spaces,
  runs of blank lines, final newline).
* ``PrettierFormatter`` pipes the document through a ``prettier``
  executable using the TypeScript parser.

Formatter failures raise ``FormatterError``; the pipeline catches it and
keeps the unformatted document.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Optional

from zodgen.models import FormatStyle, FormatterKind, GenerationConfig

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.formatters")

_TRAILING_WS_RE: re.Pattern[str] = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_RUN_RE: re.Pattern[str] = re.compile(r"\n{3,}")

PRETTIER_TIMEOUT_SECONDS: float = 60.0


class FormatterError(RuntimeError):
    """Raised when a formatter cannot produce output."""


class Formatter:
    """Interface for output formatters."""

    name: str = "formatter"

    async def format(self, text: str, style: FormatStyle) -> str:
        raise NotImplementedError


class PassthroughFormatter(Formatter):
    name = "none"

    async def format(self, text: str, style: FormatStyle) -> str:
        cleaned: str = _TRAILING_WS_RE.sub("", text)
        cleaned = _BLANK_RUN_RE.sub("\n\n", cleaned)
        return cleaned.strip("\n") + "\n"


class PrettierFormatter(Formatter):
    """Runs ``prettier --stdin-filepath schema.ts`` as a subprocess."""

    name = "prettier"

    def __init__(
        self,
        executable: str = "prettier",
        timeout: float = PRETTIER_TIMEOUT_SECONDS,
    ) -> None:
        self.executable: str = executable
        self.timeout: float = timeout

    def command(self, style: FormatStyle) -> List[str]:
        args: List[str] = [
            self.executable,
            "--parser",
            "typescript",
            "--stdin-filepath",
            "schema.ts",
            "--tab-width",
            str(style.tab_width),
            "--print-width",
            str(style.print_width),
        ]
        if not style.semi:
            args.append("--no-semi")
        if style.single_quote:
            args.append("--single-quote")
        return args

    async def format(self, text: str, style: FormatStyle) -> str:
        cmd: List[str] = self.command(style)
        logger.debug("Running formatter: %s", " ".join(cmd))
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise FormatterError(
                f"Cannot start '{self.executable}': {exc}"
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(text.encode("utf-8")), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise FormatterError(
                f"'{self.executable}' timed out after {self.timeout:.0f}s"
            ) from exc

        if process.returncode != 0:
            detail: str = stderr.decode("utf-8", errors="replace").strip()
            raise FormatterError(
                f"'{self.executable}' exited with code {process.returncode}: {detail}"
            )
        return stdout.decode("utf-8")


def get_formatter(
    config: Optional[GenerationConfig] = None,
) -> Formatter:
    """Formatter selected by ``config.formatter``."""
    config = config or GenerationConfig()
    if config.formatter == FormatterKind.PRETTIER:
        return PrettierFormatter(config.prettier_path)
    return PassthroughFormatter()


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FormatterError",
    "Formatter",
    "PassthroughFormatter",
    "PrettierFormatter",
    "get_formatter",
]

logger.debug("zodgen.formatters loaded — %d public symbols.", len(__all__))
