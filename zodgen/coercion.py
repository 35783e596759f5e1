# File: zodgen/coercion.py
"""
NexaFlow ZodGen - Lenient Coercion Rules
=========================================
The four relaxed parsing rules used by the ``insert_lenient`` shape.

The generated document carries TypeScript equivalents of these rules
(see ``zodgen.templates.LENIENT_HELPERS``); the Python versions here are
the reference behaviour and are directly usable as pydantic validators::

    class Row(BaseModel):
        active: LenientBool
        count: LenientInt

Every rule either returns the coerced value or raises
``PydanticCustomError`` whose message names the received value and its
runtime type.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Annotated, Any, Callable, Dict, List, Union

from pydantic import BeforeValidator
from pydantic_core import PydanticCustomError

from zodgen.builder import LenientRule

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("zodgen.coercion")

_TRUE_LITERAL: str = "true"
_FALSE_LITERAL: str = "false"

# Emitted verbatim into the TypeScript helpers (zodgen.templates), so both
# must stay valid in JS and Python: ASCII classes, no named groups, no "/".
DECIMAL_PATTERN: str = r"^\s*[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?\s*$"
ISO_DATETIME_PATTERN: str = (
    r"^([0-9]{4})-([0-9]{2})-([0-9]{2})"
    r"(?:[T ][0-9]{2}:[0-9]{2}(?::[0-9]{2}(?:\.[0-9]{1,6})?)?"
    r"(?:Z|[+-][0-9]{2}:[0-9]{2})?)?$"
)

_DECIMAL_RE: re.Pattern[str] = re.compile(DECIMAL_PATTERN)
_ISO_DATETIME_RE: re.Pattern[str] = re.compile(ISO_DATETIME_PATTERN)


def _reject(error_type: str, expected: str, value: Any) -> PydanticCustomError:
    return PydanticCustomError(
        error_type,
        "Expected {expected}, received {value} ({category})",
        {
            "expected": expected,
            "value": repr(value),
            "category": type(value).__name__,
        },
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def coerce_boolean(value: Any) -> bool:
    """Native ``bool``, or ``"true"`` / ``"false"`` in any case."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered: str = value.lower()
        if lowered == _TRUE_LITERAL:
            return True
        if lowered == _FALSE_LITERAL:
            return False
    raise _reject("lenient_boolean", "a boolean", value)


def coerce_integer(value: Any) -> int:
    """
    Native integral number, or a canonical base-10 string.

    A string is canonical when ``str(int(s)) == s``, which rejects
    leading zeros, whitespace, a leading ``+`` and underscores.
    """
    if isinstance(value, bool):
        raise _reject("lenient_integer", "an integer", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise _reject("lenient_integer", "an integer", value)
    if isinstance(value, str):
        try:
            parsed: int = int(value, 10)
        except ValueError:
            raise _reject("lenient_integer", "an integer", value) from None
        if str(parsed) == value:
            return parsed
    raise _reject("lenient_integer", "an integer", value)


def coerce_float(value: Any) -> float:
    """Native number, or a plain decimal string holding a finite value."""
    if isinstance(value, bool):
        raise _reject("lenient_float", "a number", value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and _DECIMAL_RE.match(value):
        parsed: float = float(value)
        if math.isfinite(parsed):
            return parsed
    raise _reject("lenient_float", "a number", value)


def coerce_temporal(value: Any) -> Union[datetime, date]:
    """
    Native ``datetime`` / ``date``, or an ISO-8601 date or date-time string
    (as ``datetime``) naming a real calendar day.
    """
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, str) and _ISO_DATETIME_RE.match(value):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            raise _reject("lenient_temporal", "a date", value) from None
    raise _reject("lenient_temporal", "a date", value)


LENIENT_RULES: Dict[str, Callable[[Any], Any]] = {
    LenientRule.BOOLEAN.value: coerce_boolean,
    LenientRule.INTEGER.value: coerce_integer,
    LenientRule.FLOAT.value: coerce_float,
    LenientRule.TEMPORAL.value: coerce_temporal,
}


def coerce(rule: LenientRule | str, value: Any) -> Any:
    """Apply the named rule to ``value``."""
    return LENIENT_RULES[LenientRule(rule).value](value)


# ---------------------------------------------------------------------------
# pydantic field types
# ---------------------------------------------------------------------------

LenientBool = Annotated[bool, BeforeValidator(coerce_boolean)]
LenientInt = Annotated[int, BeforeValidator(coerce_integer)]
LenientFloat = Annotated[float, BeforeValidator(coerce_float)]
LenientTemporal = Annotated[Union[datetime, date], BeforeValidator(coerce_temporal)]


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "coerce_boolean",
    "coerce_integer",
    "coerce_float",
    "coerce_temporal",
    "coerce",
    "DECIMAL_PATTERN",
    "ISO_DATETIME_PATTERN",
    "LENIENT_RULES",
    "LenientBool",
    "LenientInt",
    "LenientFloat",
    "LenientTemporal",
]

logger.debug("zodgen.coercion loaded — %d public symbols.", len(__all__))
