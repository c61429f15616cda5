"""
Permissive JSON recovery for model output.

Models frequently wrap command arguments in code fences, add a sentence
before the object, or emit a JSON-encoded string instead of an object.
``clean_json`` tries progressively looser strategies and never raises.
"""

import json
import re
from typing import Any

from loresmith.utils.logger import Logger

logger = Logger("JsonCleaner")

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_QUOTES = {'"', "'"}


def _try_parse(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return False, None


def _first_balanced_object(text: str) -> str | None:
    """
    Return the first ``{...}`` span whose braces balance, or None.

    Braces inside quoted strings are ignored.
    """
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    quote: str | None = None
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in _QUOTES:
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def clean_json(text: str) -> Any:
    """
    Best-effort parse of *text* as JSON.

    Strategies, in order:
    1. strict ``json.loads``
    2. the contents of a fenced ```json block
    3. the first balanced ``{...}`` span
    4. a quoted string literal, unwrapped
    5. ``{}``
    """
    ok, value = _try_parse(text)
    if ok:
        return value

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        ok, value = _try_parse(fenced.group(1))
        if ok:
            return value

    span = _first_balanced_object(text)
    if span is not None:
        ok, value = _try_parse(span)
        if ok:
            return value

    trimmed = text.strip()
    if len(trimmed) >= 2 and trimmed[0] in _QUOTES and trimmed[-1] == trimmed[0]:
        ok, value = _try_parse(trimmed)
        if ok:
            return value
        return trimmed[1:-1]

    return {}


def recover_arguments(text: str) -> dict[str, Any]:
    """
    Recover a command's argument object from its raw body.

    Anything that does not end up as a JSON object yields ``{}``; a string
    literal that itself contains an object is decoded one more time.
    """
    value = clean_json(text)
    if isinstance(value, str):
        value = clean_json(value)
    if isinstance(value, dict):
        return value

    logger.debug(f"Could not recover an argument object from: {text[:80]!r}")
    return {}
