"""
Host (CPU) compute backend.

Every primitive runs synchronously from the caller's point of view. Large
elementwise, reduction and contraction workloads fan out across a bounded
`ThreadPoolExecutor` in row chunks along the leading output axis; the call
blocks until every chunk has been written, so the fan-out is never observable
as anything other than synchronous completion. NumPy releases the GIL inside
its loops, which is what makes the fan-out worthwhile.

Buffers are flat, contiguous NumPy arrays in the storage dtype of their scalar
type.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Sequence
import logging
import math

import numpy as np

from ...domain._backend import ViewSpec
from ...domain._errors import AllocationError
from ...domain._scalar_type import ScalarType
from ...domain.device._device import Device
from . import _kernels as K

logger = logging.getLogger(__name__)


class HostBackend:
    """
    Synchronous NumPy backend with optional data-parallel fan-out.

    Parameters
    ----------
    device : Device
        The host device descriptor.
    workers : int
        Maximum number of worker threads. ``1`` disables fan-out.
    parallel_threshold : int
        Minimum output element count for fan-out.
    """

    def __init__(self, device: Device, *, workers: int, parallel_threshold: int) -> None:
        self.device = device
        self.workers = int(workers)
        self.parallel_threshold = int(parallel_threshold)
        self._pool: Optional[ThreadPoolExecutor] = None
        if self.workers > 1:
            self._pool = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="tapegrad-host"
            )
        logger.debug(
            "host backend created (workers=%d, parallel_threshold=%d)",
            self.workers,
            self.parallel_threshold,
        )

    def __repr__(self) -> str:
        return f"HostBackend(workers={self.workers})"

    # ------------------------------------------------------------------
    # fan-out
    # ------------------------------------------------------------------
    def _should_fan_out(self, out_shape: tuple[int, ...]) -> bool:
        return (
            self._pool is not None
            and len(out_shape) > 0
            and out_shape[0] > 1
            and math.prod(out_shape) >= self.parallel_threshold
        )

    def _fan_out(
        self,
        fn: Callable[..., np.ndarray],
        inputs: Sequence[np.ndarray],
        out_shape: tuple[int, ...],
        scalar_type: ScalarType,
    ) -> np.ndarray:
        """
        Evaluate `fn` over row chunks of `inputs` and join before returning.

        Every input must already be aligned with the output along axis 0.
        """
        if not self._should_fan_out(out_shape):
            return K.finalize(fn(*inputs), scalar_type)

        out = np.empty(out_shape, dtype=scalar_type.numpy_dtype)
        n_chunks = min(self.workers, out_shape[0])
        bounds = np.linspace(0, out_shape[0], n_chunks + 1, dtype=np.int64)

        def run(lo: int, hi: int) -> None:
            out[lo:hi] = K.finalize(fn(*(x[lo:hi] for x in inputs)), scalar_type)

        futures = [
            self._pool.submit(run, int(lo), int(hi))
            for lo, hi in zip(bounds[:-1], bounds[1:])
            if hi > lo
        ]
        logger.debug("fan-out %s over %d chunks", out_shape, len(futures))
        for f in futures:
            f.result()
        return out

    # ------------------------------------------------------------------
    # memory
    # ------------------------------------------------------------------
    def allocate(self, numel: int, scalar_type: ScalarType) -> np.ndarray:
        try:
            return np.zeros(int(numel), dtype=scalar_type.numpy_dtype)
        except (MemoryError, ValueError) as exc:
            raise AllocationError(
                str(self.device), int(numel) * scalar_type.size, str(exc)
            ) from exc

    def free(self, buffer: Any) -> None:
        # host buffers are released by the garbage collector
        return None

    def upload(self, array: Any, scalar_type: ScalarType) -> np.ndarray:
        try:
            return K.flat(K.finalize(np.array(array, copy=True), scalar_type))
        except MemoryError as exc:
            raise AllocationError(
                str(self.device), np.asarray(array).size * scalar_type.size, str(exc)
            ) from exc

    def download(self, view: ViewSpec) -> np.ndarray:
        return np.array(K.as_array(view), copy=True)

    def fill(self, view: ViewSpec, value: Any) -> None:
        K.as_array(view)[...] = K.finalize(np.asarray(value), view.scalar_type)

    def copy(self, view: ViewSpec) -> np.ndarray:
        return K.flat(np.array(K.as_array(view), copy=True))

    def write(self, dst: ViewSpec, src: ViewSpec) -> None:
        K.as_array(dst)[...] = np.broadcast_to(K.as_array(src), dst.shape)

    # ------------------------------------------------------------------
    # compute
    # ------------------------------------------------------------------
    def map(self, kernel: str, x: ViewSpec, **params: Any) -> np.ndarray:
        k = K.lookup(K.UNARY_KERNELS, kernel, x.scalar_type)
        out = self._fan_out(
            lambda a: k.fn(a, **params), [K.as_array(x)], x.shape, x.scalar_type
        )
        return K.flat(out)

    def zip(
        self, kernel: str, a: ViewSpec, b: ViewSpec, out_shape: tuple[int, ...]
    ) -> np.ndarray:
        k = K.lookup(K.BINARY_KERNELS, kernel, a.scalar_type)
        aa = np.broadcast_to(K.as_array(a), out_shape)
        bb = np.broadcast_to(K.as_array(b), out_shape)
        return K.flat(self._fan_out(k.fn, [aa, bb], out_shape, a.scalar_type))

    def reduce(
        self,
        kernel: str,
        x: ViewSpec,
        axes: Optional[Sequence[int]],
        keepdims: bool,
        out_scalar_type: Optional[ScalarType] = None,
    ) -> np.ndarray:
        k = K.lookup(K.REDUCE_KERNELS, kernel, x.scalar_type)
        st = out_scalar_type or x.scalar_type
        arr = K.as_array(x)
        fn = lambda a: k.fn(a, axes, keepdims)  # noqa: E731
        if axes is not None and 0 not in axes and arr.ndim > 0:
            # leading axis survives the reduction, so rows can be split
            out_shape = _reduced_shape(x.shape, axes, keepdims)
            return K.flat(self._fan_out(fn, [arr], out_shape, st))
        return K.flat(K.finalize(fn(arr), st))

    def contract(
        self, a: ViewSpec, b: ViewSpec, out_shape: tuple[int, ...]
    ) -> np.ndarray:
        aa = K.as_array(a)
        bb = K.as_array(b)
        if aa.ndim == 2 and bb.ndim == 2:
            out = self._fan_out(lambda rows: K.matmul(rows, bb), [aa], out_shape, a.scalar_type)
            return K.flat(out)
        batch = out_shape[:-2]
        aa = np.broadcast_to(aa, batch + aa.shape[-2:])
        bb = np.broadcast_to(bb, batch + bb.shape[-2:])
        return K.flat(self._fan_out(K.matmul, [aa, bb], out_shape, a.scalar_type))

    def cast(self, x: ViewSpec, scalar_type: ScalarType) -> np.ndarray:
        return K.flat(np.array(K.finalize(K.as_array(x), scalar_type), copy=True))

    def synchronize(self) -> None:
        return None

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None


def _reduced_shape(
    shape: tuple[int, ...], axes: Sequence[int], keepdims: bool
) -> tuple[int, ...]:
    if keepdims:
        return tuple(1 if i in axes else d for i, d in enumerate(shape))
    return tuple(d for i, d in enumerate(shape) if i not in axes)
