"""JSON helpers with line-accurate parse errors and restrictive writes."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from sfdx_core.errors import CoreError, ParseError
from sfdx_core.util import fs

INDENT = 4
_EXCERPT_BUFFER = 20


def _invalid_token_position(text: str, position: int) -> int:
    # Some decoders flag a trailing comma itself; the invalid token is the
    # closing bracket that follows it.
    if position < len(text) and text[position] == ",":
        after = position + 1
        while after < len(text) and text[after].isspace():
            after += 1
        if after < len(text) and text[after] in "}]":
            return after
    return position


def _line_of(text: str, position: int) -> int:
    # Counted from the raw text; the decoder's own line bookkeeping is not used.
    position = _invalid_token_position(text, max(0, min(position, len(text))))
    return text.count("\n", 0, position) + 1


def parse_json(data: str, json_path: str = "unknown", throw_on_empty: bool = True) -> Any:
    """Parse JSON text.

    Raises:
        ParseError: On empty content (line 1) or malformed content, naming the
            file and the 1-based line of the first invalid token.
    """

    if not data.strip():
        if throw_on_empty:
            raise ParseError(json_path, 1, "FILE HAS NO CONTENT")
        return {}

    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        start = max(0, e.pos - _EXCERPT_BUFFER)
        end = min(len(data), e.pos + _EXCERPT_BUFFER)
        raise ParseError(json_path, _line_of(data, e.pos), data[start:end]) from e


def parse_json_map(data: str, json_path: str = "unknown", throw_on_empty: bool = True) -> dict[str, Any]:
    parsed = parse_json(data, json_path, throw_on_empty)
    if not isinstance(parsed, dict):
        raise CoreError(
            f"Expected a JSON object in {json_path}",
            "UnexpectedJsonFileFormat",
            data={"file": json_path},
        )
    return parsed


def read_json(json_path: fs.PathLike, throw_on_empty: bool = True) -> Any:
    return parse_json(fs.read_file(json_path), str(json_path), throw_on_empty)


def read_json_map(json_path: fs.PathLike, throw_on_empty: bool = True) -> dict[str, Any]:
    return parse_json_map(fs.read_file(json_path), str(json_path), throw_on_empty)


def write_json(json_path: fs.PathLike, data: Any) -> None:
    """Write ``data`` with 4-space indentation, owner read/write only."""

    fs.write_file(json_path, json.dumps(data, indent=INDENT), encoding="utf-8", mode=fs.DEFAULT_FILE_MODE)


def find_upper_case_keys(
    data: Mapping[str, Any], section_blocklist: Iterable[str] = ()
) -> str | None:
    """Return the first key that starts with an uppercase letter, or None.

    Keys of a level are all checked before any nested object is searched.
    Sections named in ``section_blocklist`` are not descended into.
    """

    blocked = set(section_blocklist)
    for key in data:
        if key[:1].isupper():
            return key
    for key, value in data.items():
        if isinstance(value, Mapping) and key not in blocked:
            found = find_upper_case_keys(value, blocked)
            if found is not None:
                return found
    return None
