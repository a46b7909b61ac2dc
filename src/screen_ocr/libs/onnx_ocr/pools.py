"""Reusable buffer and object pools.

Repeated OCR calls resize and normalize images of similar sizes over and
over. The pools keep those buffers (and the small per-region objects)
around between calls instead of reallocating them every time.
"""

import logging
import threading
from collections import deque
from contextlib import contextmanager
from typing import Callable, Deque, Generic, Iterator, Optional, Sequence, TypeVar, Union

import numpy as np

logger = logging.getLogger(__name__)

T = TypeVar("T")
Shape = Union[int, Sequence[int]]


def _owner(buffer: np.ndarray) -> np.ndarray:
    """Follow the ``base`` chain of a view back to the array owning the memory."""
    while isinstance(buffer.base, np.ndarray):
        buffer = buffer.base
    return buffer


class BufferPool:
    """Thread-safe pool of numpy buffers.

    Buffers are matched on dtype and element capacity. A pooled buffer that
    is larger than requested is handed out as a contiguous view over its
    leading elements, so OpenCV can write into it directly.
    """

    def __init__(self, max_pool_size: int = 100):
        self.max_pool_size = max_pool_size
        self._pool: Deque[np.ndarray] = deque()
        self._lock = threading.Lock()

    def rent(self, shape: Shape, dtype=np.uint8, zero: bool = False) -> np.ndarray:
        """Get a buffer of ``shape`` and ``dtype``.

        Args:
            shape: Requested shape, e.g. (rows, cols) or (rows, cols, 3)
            dtype: Numpy dtype of the buffer
            zero: Fill the buffer with zeros before handing it out

        Returns:
            Contiguous array of the requested shape. Ownership passes to the
            caller until it is given back with ``release``.
        """
        dtype = np.dtype(dtype)
        shape = (shape,) if isinstance(shape, int) else tuple(int(s) for s in shape)
        size = int(np.prod(shape)) if shape else 1

        found = None
        with self._lock:
            skipped = []
            while self._pool:
                candidate = self._pool.popleft()
                if candidate.dtype == dtype and candidate.size >= size:
                    found = candidate
                    break
                skipped.append(candidate)
            # Put back everything that did not fit, oldest first
            self._pool.extendleft(reversed(skipped))

        if found is None:
            buffer = np.empty(shape, dtype=dtype)
        else:
            buffer = found.reshape(-1)[:size].reshape(shape)

        if zero:
            buffer.fill(0)
        return buffer

    def release(self, buffer: Optional[np.ndarray]) -> None:
        """Return a rented buffer (or any view of it) to the pool.

        Unusable buffers are dropped rather than pooled.
        """
        if not isinstance(buffer, np.ndarray):
            if buffer is not None:
                logger.debug("Discarding non-array object returned to buffer pool: %r", type(buffer))
            return

        owner = _owner(buffer)
        if not owner.flags.writeable or not owner.flags.c_contiguous:
            logger.debug("Discarding unusable buffer %s", owner.shape)
            return

        with self._lock:
            if len(self._pool) >= self.max_pool_size:
                return
            if any(pooled is owner for pooled in self._pool):
                return
            self._pool.append(owner)

    @contextmanager
    def rented(self, shape: Shape, dtype=np.uint8, zero: bool = False) -> Iterator[np.ndarray]:
        buffer = self.rent(shape, dtype, zero=zero)
        try:
            yield buffer
        finally:
            self.release(buffer)

    def clear(self) -> None:
        with self._lock:
            self._pool.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pool)


class ObjectPool(Generic[T]):
    """Thread-safe pool of small reusable objects exposing ``reset()``."""

    def __init__(self, factory: Callable[[], T], max_pool_size: int = 100):
        self.factory = factory
        self.max_pool_size = max_pool_size
        self._pool: Deque[T] = deque()
        self._lock = threading.Lock()

    def rent(self) -> T:
        with self._lock:
            if self._pool:
                return self._pool.popleft()
        return self.factory()

    def release(self, obj: Optional[T]) -> None:
        if obj is None:
            return
        obj.reset()
        with self._lock:
            if len(self._pool) >= self.max_pool_size:
                return
            if any(pooled is obj for pooled in self._pool):
                return
            self._pool.append(obj)

    def clear(self) -> None:
        with self._lock:
            self._pool.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pool)
