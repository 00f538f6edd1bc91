"""
Defensive extraction of structured data from free-text model output.

Everything here is pure and total: malformed input yields ``None``, never an
exception, so a bad model response cannot break a negotiation transaction.
"""

import json
import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterator, Optional

CENTS = Decimal("0.01")
MAX_AMOUNT = Decimal("1e10")

_FENCED_BLOCK = re.compile(r"```(?:json)?[ \t]*\n?(.*?)```", re.IGNORECASE | re.DOTALL)
_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def _first_balanced_object(text: str) -> Optional[str]:
    """Return the first ``{...}`` span whose braces balance, skipping braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        # Unbalanced from this brace; try the next opening brace
        start = text.find("{", start + 1)
    return None


def _outer_span(text: str) -> Optional[str]:
    first_open = text.find("{")
    last_close = text.rfind("}")
    if first_open != -1 and last_close > first_open:
        return text[first_open:last_close + 1]
    return None


def _candidates(text: str) -> Iterator[str]:
    fenced = _FENCED_BLOCK.search(text)
    if fenced and fenced.group(1).strip():
        yield fenced.group(1).strip()

    balanced = _first_balanced_object(text)
    if balanced:
        yield balanced

    outer = _outer_span(text)
    if outer:
        yield outer


def extract_json_object(text: Any) -> Optional[dict]:
    """
    Extract the first JSON object embedded in model output.

    Strategies, in order: fenced code block (``json`` label optional), first
    balanced ``{...}`` substring, span from the first ``{`` to the last ``}``.
    Each candidate is parsed strictly; the first one that yields an object wins.

    Args:
        text: Raw model output

    Returns:
        Parsed object, or None if nothing parses
    """
    if not isinstance(text, str) or not text.strip():
        return None

    for candidate in _candidates(text.strip()):
        try:
            parsed = json.loads(candidate)
        except (ValueError, RecursionError):
            continue
        if isinstance(parsed, dict):
            return parsed

    return None


def normalize_number(value: Any) -> Optional[Decimal]:
    """
    Coerce a model-supplied number into a Decimal.

    Numbers are taken as-is; strings lose every character except digits,
    ``.`` and ``-`` before parsing ("$1,250.00" -> 1250.00). Anything else,
    including booleans, NaN and infinities, becomes None.
    """
    if isinstance(value, bool) or value is None:
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None

    if isinstance(value, int):
        return Decimal(value)

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return Decimal(str(value))

    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        if not cleaned:
            return None
        try:
            number = Decimal(cleaned)
        except InvalidOperation:
            return None
        return number if number.is_finite() else None

    return None


def normalize_amount(value: Any) -> Optional[Decimal]:
    """
    Normalize a signed money amount to cents.

    Amounts that do not fit a ``Numeric(12, 2)`` column (|x| >= 10^10) are
    treated as absent, as is anything quantize rejects.
    """
    number = normalize_number(value)
    if number is None:
        return None
    try:
        amount = number.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return amount if abs(amount) < MAX_AMOUNT else None


def normalize_price(value: Any) -> Optional[Decimal]:
    """Normalize a price to cents; non-positive or out-of-range prices are treated as absent."""
    amount = normalize_amount(value)
    if amount is None or amount <= 0:
        return None
    return amount
