"""Reusable receive buffers for the UDP listener."""

from __future__ import annotations

import threading
from typing import List, Optional, Set


class BufferPool:
    """
    Brief: Thread-safe pool of fixed-capacity bytearray buffers.

    Inputs:
    - buffer_size: capacity of every buffer, in bytes (the largest datagram read)
    - max_idle: optional cap on buffers kept for reuse; extra returned buffers
      are dropped and garbage collected

    Outputs:
    - BufferPool instance

    Notes:
    - A buffer handed out by acquire() belongs to the caller until release().
      It is never handed out again while checked out.
    - release() rejects buffers that are not currently checked out from this
      pool, which also catches double releases.

    Example:
        >>> pool = BufferPool(2048)
        >>> buf = pool.acquire()
        >>> len(buf), pool.checked_out
        (2048, 1)
        >>> pool.release(buf)
        >>> pool.checked_out
        0
    """

    def __init__(self, buffer_size: int = 2048, max_idle: Optional[int] = None):
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        if max_idle is not None and max_idle < 0:
            raise ValueError("max_idle must be >= 0")
        self.buffer_size = int(buffer_size)
        self.max_idle = max_idle
        self._lock = threading.Lock()
        self._idle: List[bytearray] = []
        self._in_use: Set[int] = set()
        self._created = 0

    def acquire(self) -> bytearray:
        """Check out an idle buffer, allocating a new one when none is idle."""
        with self._lock:
            if self._idle:
                buf = self._idle.pop()
            else:
                buf = bytearray(self.buffer_size)
                self._created += 1
            self._in_use.add(id(buf))
            return buf

    def release(self, buf: bytearray) -> None:
        """
        Brief: Return a checked-out buffer to the pool.

        Inputs:
        - buf: buffer previously returned by acquire()

        Outputs:
        - None

        Raises:
        - ValueError when buf is not checked out from this pool.
        """
        with self._lock:
            key = id(buf)
            if key not in self._in_use:
                raise ValueError("buffer is not checked out from this pool")
            self._in_use.discard(key)
            if self.max_idle is None or len(self._idle) < self.max_idle:
                self._idle.append(buf)

    @property
    def checked_out(self) -> int:
        with self._lock:
            return len(self._in_use)

    @property
    def idle(self) -> int:
        with self._lock:
            return len(self._idle)

    @property
    def created(self) -> int:
        """Total number of buffers allocated over the pool's lifetime."""
        with self._lock:
            return self._created
