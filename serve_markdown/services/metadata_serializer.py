from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

INDENT = "  "
_QUOTE_TRIGGER_PATTERN = re.compile(r"[:#\[\]{}|>*&!%@`,\n]")


def serialize_metadata(data: Mapping[str, Any], *, indent: int = 0) -> str:
    """Render an ordered mapping as a YAML-like block.

    Nested mappings recurse one indent level deeper and sequences render as
    `- item` lines. Only scalars are supported inside sequences. Output is
    a pure function of the input order and values.
    """
    prefix = INDENT * indent
    lines: list[str] = []
    for key, value in data.items():
        if isinstance(value, Mapping):
            lines.append(f"{prefix}{key}:\n")
            lines.append(serialize_metadata(value, indent=indent + 1))
        elif _is_sequence(value):
            lines.append(f"{prefix}{key}:\n")
            for item in value:
                lines.append(f"{prefix}{INDENT}- {render_scalar(item)}\n")
        else:
            lines.append(f"{prefix}{key}: {render_scalar(value)}\n")
    return "".join(lines)


def render_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, int | float):
        return str(value)

    text = str(value)
    if text == "" or _QUOTE_TRIGGER_PATTERN.search(text):
        return "'" + text.replace("'", "''") + "'"
    return text


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes)
