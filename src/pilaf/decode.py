"""Best-effort decoding of textual command responses into structured data.

Server consoles answer ``data get`` style commands with NBT text such as
``Bob has the following entity data: {Health:20.0f,Pos:[1.5d,64.0d,2.5d]}``.
:func:`decode_response` locates the structured fragment, converts it to JSON
and reports an explicit :class:`DecodeStatus` so that "nothing to decode" is
never confused with "decoded to null".
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DATA_PATTERN = re.compile(
    r"(?:has the following (?:entity |block )?data:|data:)\s*(.+)$",
    re.IGNORECASE | re.DOTALL,
)
_STRING_RE = re.compile(r""""(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'""", re.DOTALL)
_TYPED_ARRAY_RE = re.compile(r"\[[BILbil];\s*([^\]]*)\]")
_SUFFIX_RE = re.compile(
    r"(?<![\w.])([-+]?(?:\d+\.?\d*|\d*\.?\d+))([dDfFbBsSlL])(?=[,\]\}\s]|$)"
)
_BARE_NUMBER_RE = re.compile(r"(?<![\w.])([-+]?(?:\d+\.(?!\d)|\.\d+))(?=[,\]\}\s]|$)")
_UNQUOTED_KEY_RE = re.compile(r"([{,]\s*)([a-zA-Z_][a-zA-Z0-9_]*)\s*:")
_ADJACENT_OBJECTS_RE = re.compile(r"}\s+{")

_CLOSERS = {"{": "}", "[": "]"}


class DecodeStatus(str, Enum):
    DECODED = "decoded"
    NOT_STRUCTURED = "not_structured"
    MALFORMED = "malformed"


@dataclass(frozen=True, slots=True)
class DecodeResult:
    status: DecodeStatus
    raw: str
    fragment: str | None = None
    json_text: str | None = None
    value: Any = None
    error: str | None = None

    @property
    def decoded(self) -> bool:
        return self.status is DecodeStatus.DECODED


def find_structured_fragment(text: str) -> str | None:
    match = DATA_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    starts = [index for index in (text.find("{"), text.find("[")) if index >= 0]
    if not starts:
        return None
    return text[min(starts):].strip()


def decode_response(text: str | None) -> DecodeResult:
    raw = text or ""
    if not raw.strip():
        return DecodeResult(DecodeStatus.NOT_STRUCTURED, raw)

    fragment = find_structured_fragment(raw)
    if fragment is None:
        return DecodeResult(DecodeStatus.NOT_STRUCTURED, raw)

    try:
        value = json.loads(fragment)
    except json.JSONDecodeError:
        pass
    else:
        return DecodeResult(DecodeStatus.DECODED, raw, fragment, fragment, value)

    converted = convert_nbt_to_json(fragment)
    try:
        value = json.loads(converted)
    except json.JSONDecodeError as first_error:
        repaired = repair_json(converted)
        try:
            value = json.loads(repaired)
        except json.JSONDecodeError:
            logger.debug("Could not decode response fragment: %s", fragment)
            return DecodeResult(
                DecodeStatus.MALFORMED,
                raw,
                fragment,
                converted,
                error=f"Malformed structured data: {first_error.msg} at position {first_error.pos}",
            )
        return DecodeResult(DecodeStatus.DECODED, raw, fragment, repaired, value)
    return DecodeResult(DecodeStatus.DECODED, raw, fragment, converted, value)


def convert_nbt_to_json(text: str) -> str:
    """Rewrite NBT-like text as JSON.

    Typed numbers lose their suffix (``20.0f`` -> ``20.0``), typed arrays
    become plain arrays (``[I; 1, 2]`` -> ``[1, 2]``), bare keys are quoted
    and single-quoted strings become JSON strings. String contents are
    never rewritten.
    """

    parts: list[str] = []
    position = 0
    for match in _STRING_RE.finditer(text):
        parts.append(_convert_segment(text[position:match.start()]))
        parts.append(_convert_string(match.group(0)))
        position = match.end()
    parts.append(_convert_segment(text[position:]))
    return "".join(parts)


def _convert_segment(segment: str) -> str:
    segment = _TYPED_ARRAY_RE.sub(lambda match: f"[{match.group(1)}]", segment)
    segment = _SUFFIX_RE.sub(lambda match: _normalise_number(match.group(1)), segment)
    segment = _BARE_NUMBER_RE.sub(lambda match: _normalise_number(match.group(1)), segment)
    return _UNQUOTED_KEY_RE.sub(r'\1"\2":', segment)


def _normalise_number(number: str) -> str:
    number = number.lstrip("+")
    negative = number.startswith("-")
    digits = number[1:] if negative else number
    if digits.startswith("."):
        digits = "0" + digits
    if digits.endswith("."):
        digits += "0"
    return f"-{digits}" if negative else digits


def _convert_string(literal: str) -> str:
    if literal.startswith('"'):
        return literal
    body = literal[1:-1].replace("\\'", "'")
    return json.dumps(body, ensure_ascii=False)


def repair_json(text: str) -> str:
    """Insert missing separators between adjacent objects and close open brackets."""

    text = _ADJACENT_OBJECTS_RE.sub("}, {", text)
    stack: list[str] = []
    kept: list[str] = []
    position = 0
    for match in _STRING_RE.finditer(text):
        kept.append(_balance_segment(text[position:match.start()], stack))
        kept.append(match.group(0))
        position = match.end()
    kept.append(_balance_segment(text[position:], stack))
    kept.extend(reversed(stack))
    return "".join(kept)


def _balance_segment(segment: str, stack: list[str]) -> str:
    out: list[str] = []
    for char in segment:
        if char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in "}]":
            if not stack or stack[-1] != char:
                continue
            stack.pop()
        out.append(char)
    return "".join(out)
