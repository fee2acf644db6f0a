"""
Fixed-window expiry rules.

Every path that needs to know whether a window is stale (the admission
engine and the expiry sweeper) goes through these functions, so the
request path and the background sweep can never disagree.
All timestamps are epoch milliseconds.
"""

import time


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def is_expired(window_start: int, now: int, window_duration: int) -> bool:
    """Return True once ``now`` is strictly past the window's expiry instant."""
    return now - window_start > window_duration


def reset_at(window_start: int, window_duration: int) -> int:
    """Instant at which the window starting at ``window_start`` expires."""
    return window_start + window_duration


def expiry_cutoff(now: int, window_duration: int) -> int:
    """
    Oldest window start that is still live at ``now``.

    ``is_expired(ws, now, d)`` holds exactly when ``ws < expiry_cutoff(now, d)``,
    which lets bulk queries filter on an indexed column.
    """
    return now - window_duration
