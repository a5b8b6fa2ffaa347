from __future__ import annotations

from typing import List, Sequence, TypeVar

T = TypeVar("T")


def trim_history(buffer: Sequence[T], max_length: int, keep_anchor: bool = False) -> List[T]:
    """
    Returns the retained part of a session buffer.

    With keep_anchor set, buffer[0] is the session's system anchor and is always
    kept, followed by the most recent max_length - 1 messages. Without it, the
    most recent max_length messages are kept. max_length <= 0 means unbounded.

    The result keeps relative order and is stable under re-application:
    trim_history(trim_history(b, n, a), n, a) == trim_history(b, n, a).
    """
    if max_length <= 0 or len(buffer) <= max_length:
        return list(buffer)

    if keep_anchor:
        anchor = buffer[0]
        tail_length = max_length - 1
        if tail_length == 0:
            return [anchor]
        return [anchor] + list(buffer[len(buffer) - tail_length:])

    return list(buffer[len(buffer) - max_length:])
