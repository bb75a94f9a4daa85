"""Incremental delivery over cumulative body snapshots.

Transports report the *whole* body received so far on every status query.
:func:`diff` turns two consecutive snapshots into the newly arrived suffix.
It assumes the transport never truncates or rewrites a prefix it has
already reported.
"""

from __future__ import annotations


def diff(previous_length: int, current_body: str) -> str:
    """Return the part of *current_body* past *previous_length*.

    A snapshot that is not longer than the previous one yields ``""``:
    resets and stale snapshots are treated as "no new data" rather than as
    errors.

    Args:
        previous_length: Length of the last body already delivered.
        current_body: The latest cumulative body.

    Returns:
        The new suffix, or an empty string.
    """
    if len(current_body) <= previous_length:
        return ""
    return current_body[previous_length:]
