"""
Reference-counted backing storage shared by tensors and their views.

A `Storage` wraps a single flat buffer produced by a compute backend. Views
(reshape, permute, narrow, broadcast...) never copy: they construct a new
`Tensor` over the same `Storage` with different shape/strides/offset, and
mutation through any alias is visible through every other alias.

Lifetime
--------
- Every tensor that references a storage holds one reference, taken when the
  tensor is constructed and released by a `weakref.finalize` hook when the
  tensor is garbage-collected.
- When the reference count drops to zero the buffer is returned exactly once
  to the backend currently serving the device (the backend uses this for
  memory-budget accounting), which may be a rebuilt one after a
  configuration change.
- A second `weakref.finalize` on the storage itself acts as a safety net if a
  storage is dropped without ever having been referenced.

Thread safety
-------------
Reference count updates are protected by an internal lock, so tensors sharing
a storage may be created and dropped from different threads.

Notes
-----
No `__del__` is defined, to avoid garbage-collection pitfalls with reference
cycles and interpreter shutdown ordering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
import threading
import weakref

from ...domain._scalar_type import ScalarType
from ..backends import release_buffer


@dataclass(eq=False)
class Storage:
    """
    Reference-counted wrapper around one backend buffer.

    Attributes
    ----------
    backend : object
        The compute backend that produced `buffer`.
    buffer : object
        Backend-specific flat buffer handle.
    numel : int
        Capacity in elements.
    scalar_type : ScalarType
        Element scalar type.
    """

    backend: Any
    buffer: Any
    numel: int
    scalar_type: ScalarType

    _refcnt: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _finalizer: weakref.finalize | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self._finalizer = weakref.finalize(
            self, release_buffer, self.backend.device, self.buffer
        )

    @property
    def refcount(self) -> int:
        with self._lock:
            return self._refcnt

    @property
    def released(self) -> bool:
        return self._finalizer is None or not self._finalizer.alive

    def incref(self) -> None:
        with self._lock:
            self._refcnt += 1

    def decref(self) -> None:
        """
        Drop one reference; frees the buffer when the last one is gone.
        """
        with self._lock:
            self._refcnt -= 1
            last = self._refcnt <= 0
        if last and self._finalizer is not None:
            # finalize objects run at most once
            self._finalizer()
