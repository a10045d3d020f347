"""Bounded output buffer used to replay recent terminal output."""

from __future__ import annotations

from collections import deque

from ..config import DEFAULT_BUFFER_LIMIT


class OutputBuffer:
    """Keep the most recent ``limit`` characters of a session's output.

    Chunks are stored as emitted and evicted from the front once the total
    size exceeds the limit; the oldest surviving chunk is trimmed so the
    buffer holds exactly ``limit`` characters after an overflow.
    """

    def __init__(self, limit: int = DEFAULT_BUFFER_LIMIT) -> None:
        if limit < 1:
            raise ValueError("Output buffer limit must be >= 1")
        self._limit = limit
        self._chunks: deque[str] = deque()
        self._size = 0
        self._frozen = False

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return self._size

    def append(self, data: str) -> bool:
        """Append ``data``; returns False when the buffer is frozen."""

        if self._frozen:
            return False
        if not data:
            return True
        if len(data) >= self._limit:
            self._chunks.clear()
            self._chunks.append(data[-self._limit :])
            self._size = self._limit
            return True

        self._chunks.append(data)
        self._size += len(data)
        while self._size > self._limit:
            overflow = self._size - self._limit
            head = self._chunks[0]
            if len(head) <= overflow:
                self._chunks.popleft()
                self._size -= len(head)
            else:
                self._chunks[0] = head[overflow:]
                self._size -= overflow
        return True

    def snapshot(self) -> str:
        if len(self._chunks) > 1:
            joined = "".join(self._chunks)
            self._chunks.clear()
            self._chunks.append(joined)
        return self._chunks[0] if self._chunks else ""

    def freeze(self) -> None:
        self._frozen = True

    def clear(self) -> None:
        self._chunks.clear()
        self._size = 0


__all__ = ["OutputBuffer"]
