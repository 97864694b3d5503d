"""Line-oriented TOML key access.

The node's config files are edited by people as well as by monoctl, so
they are never round-tripped through a TOML serializer: that would drop
comments and reorder keys. Instead a key is located by its name at the
start of a line inside its table, and only that line is replaced.

Rules:
- Commented lines (``# seeds = ...``) are never matched.
- A key matches only as a whole word: ``persistent_peers`` does not match
  ``experimental_max_gossip_connections_to_persistent_peers``.
- ``section=None`` means the top-level table (before the first header).
- The first matching line wins; later duplicates are left alone.

``tomllib`` is used only to decode single values and to check that a
rendered file still parses.
"""

from __future__ import annotations

import re
import tomllib
from typing import Any, Iterator, Optional


_HEADER = re.compile(r'^\[\[?\s*([A-Za-z0-9_.\-" ]+?)\s*\]\]?$')


def _section_of(stripped: str) -> Optional[str]:
    """Return the table name if ``stripped`` is a table header, else None."""
    if not stripped.startswith("["):
        return None
    match = _HEADER.match(stripped.split("#", 1)[0].strip())
    if match is None:
        return None
    return match.group(1)


def _bracket_delta(text: str) -> int:
    """Open minus closed ``[`` brackets outside strings and comments."""
    depth = 0
    quote = ""
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
        elif quote:
            if ch == "\\" and quote == '"':
                escaped = True
            elif ch == quote:
                quote = ""
        elif ch in "\"'":
            quote = ch
        elif ch == "#":
            break
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
    return depth


def _scan(lines: list[str]) -> Iterator[tuple[int, Optional[str], Optional[str]]]:
    """Yield ``(index, table, header)`` for every line that starts a statement.

    ``header`` is set on table header lines. Continuation lines of a
    multi-line array are skipped, so an element such as ``["x"]`` is never
    mistaken for a header.
    """
    current: Optional[str] = None
    depth = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if depth > 0:
            depth = max(depth + _bracket_delta(stripped), 0)
            continue
        header = _section_of(stripped)
        if header is not None:
            current = header
            yield i, current, header
            continue
        if "=" in stripped and not stripped.startswith("#"):
            depth = max(_bracket_delta(stripped.split("=", 1)[1]), 0)
        yield i, current, None


def is_key_line(line: str, key: str) -> bool:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return False
    if not stripped.startswith(key):
        return False
    rest = stripped[len(key):].lstrip(" \t")
    return rest.startswith("=")


def find_key(lines: list[str], section: Optional[str], key: str) -> Optional[int]:
    """Index of the first line assigning ``key`` inside ``section``."""
    for i, current, header in _scan(lines):
        if header is None and current == section and is_key_line(lines[i], key):
            return i
    return None


def read_raw(text: str, section: Optional[str], key: str) -> Optional[str]:
    """Raw value text after ``=`` (stripped), or None if the key is absent."""
    lines = text.splitlines()
    index = find_key(lines, section, key)
    if index is None:
        return None
    return lines[index].split("=", 1)[1].strip()


def decode_value(raw: str) -> Any:
    """Decode a raw TOML value. Raises ValueError if it is not valid TOML."""
    try:
        return tomllib.loads(f"v = {raw}")["v"]
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"invalid TOML value {raw!r}: {e}") from e


def set_value(text: str, section: Optional[str], key: str, literal: str) -> str:
    """Return ``text`` with ``key`` in ``section`` set to the TOML ``literal``.

    The existing line is replaced in place, keeping its indentation and
    line ending. A missing key is inserted at the end of its table; a
    missing table is appended to the file.
    """
    lines = text.splitlines(keepends=True)
    index = find_key(lines, section, key)
    if index is not None:
        line = lines[index]
        body = line.rstrip("\r\n")
        ending = line[len(body):]
        indent = body[: len(body) - len(body.lstrip(" \t"))]
        lines[index] = f"{indent}{key} = {literal}{ending}"
        return "".join(lines)

    new_line = f"{key} = {literal}\n"
    bounds = _section_bounds(lines, section)
    if bounds is None:
        # table does not exist yet
        if lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        if lines:
            lines.append("\n")
        lines.append(f"[{section}]\n")
        lines.append(new_line)
        return "".join(lines)

    start, end = bounds
    insert_at = end
    while insert_at > start and not lines[insert_at - 1].strip():
        insert_at -= 1
    if insert_at > 0 and not lines[insert_at - 1].endswith("\n"):
        lines[insert_at - 1] += "\n"
    lines.insert(insert_at, new_line)
    return "".join(lines)


def _section_bounds(lines: list[str], section: Optional[str]) -> Optional[tuple[int, int]]:
    """Body line range ``[start, end)`` of a table, or None if absent."""
    headers = [(i, header) for i, _, header in _scan(lines) if header is not None]
    if section is None:
        return 0, headers[0][0] if headers else len(lines)

    for n, (i, header) in enumerate(headers):
        if header == section:
            end = headers[n + 1][0] if n + 1 < len(headers) else len(lines)
            return i + 1, end
    return None


def check_parses(text: str) -> None:
    """Raise ValueError if ``text`` is not a valid TOML document."""
    try:
        tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(str(e)) from e
