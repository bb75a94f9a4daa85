"""Minimal Server-Sent Events parsing for streaming responses."""

from __future__ import annotations

from typing import Optional


def parse_event(block: str) -> Optional[tuple[str, str]]:
    """Parse one SSE event block into ``(event_type, data)``.

    Lines are trimmed; ``event:`` sets the type and every ``data:`` line is
    appended to the payload, joined by newlines. Comments and unknown fields
    are ignored.

    Returns:
        The parsed event, or ``None`` when the block carries no data.
    """
    event_type = ""
    data_lines: list[str] = []

    for line in block.splitlines():
        line = line.strip()
        if not line or line.startswith(":"):
            continue
        if line.startswith("event:"):
            event_type = line[len("event:"):].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:"):].strip())

    if not data_lines:
        return None
    return event_type, "\n".join(data_lines)


def split_events(buffer: str) -> tuple[list[str], str]:
    """Split *buffer* into complete event blocks and the unterminated remainder.

    Blocks are separated by a blank line. ``\\r\\n`` line endings are
    normalised first.
    """
    normalized = buffer.replace("\r\n", "\n")
    *blocks, rest = normalized.split("\n\n")
    return [b for b in blocks if b.strip()], rest

