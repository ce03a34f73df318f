"""
Accelerator compute backend.

Each accelerator instance owns one in-order `CommandQueue`: a single worker
thread that executes submitted jobs strictly in submission order. Launching an
operation only enqueues it and returns a `DeviceBuffer` whose contents become
available once the job has run. Reading data back to the host (`download`) or
calling `synchronize` is a synchronization point: it drains the queue and
re-raises any fault recorded by a job that ran in the meantime.

Kernel validation (unknown kernel names, float-only kernels on integer scalar
types) and the per-device memory budget are checked eagerly at submission
time, so those errors surface at the call site. Anything that fails while the
job is running is deferred to the next synchronization point.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence
import logging
import math
import threading

import numpy as np

from ...domain._backend import ViewSpec
from ...domain._errors import AllocationError, UnsupportedOperationError
from ...domain._scalar_type import ScalarType
from ...domain.device._device import Device
from . import _kernels as K

logger = logging.getLogger(__name__)


class DeviceBuffer:
    """
    Handle to a flat buffer living on an accelerator queue.

    Attributes
    ----------
    future : Future
        Resolves to the flat NumPy array once the producing job has run.
    numel : int
        Element count of the buffer.
    nbytes : int
        Bytes charged against the device memory budget.
    """

    __slots__ = ("future", "numel", "nbytes", "__weakref__")

    def __init__(self, future: Future, numel: int, nbytes: int) -> None:
        self.future = future
        self.numel = int(numel)
        self.nbytes = int(nbytes)

    def result(self) -> np.ndarray:
        return self.future.result()

    def __repr__(self) -> str:
        state = "ready" if self.future.done() else "pending"
        return f"DeviceBuffer(numel={self.numel}, {state})"


class CommandQueue:
    """
    In-order asynchronous execution queue for one accelerator instance.

    Jobs run on a dedicated worker thread in FIFO order. A job that raises has
    its exception recorded as a fault; faults are reported by `synchronize`.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"tapegrad-{name}"
        )
        self._faults: List[Exception] = []
        self._lock = threading.Lock()
        self._last: Optional[Future] = None

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        def job():
            try:
                return fn(*args)
            except Exception as exc:
                with self._lock:
                    self._faults.append(exc)
                raise

        fut = self._executor.submit(job)
        self._last = fut
        return fut

    def synchronize(self) -> None:
        """
        Wait for every submitted job and re-raise the first recorded fault.

        Raises
        ------
        AllocationError
            If a job ran out of memory.
        UnsupportedOperationError
            For any other fault raised by a job.
        """
        self._executor.submit(lambda: None).result()
        with self._lock:
            faults, self._faults = self._faults, []
        if not faults:
            return
        exc = faults[0]
        logger.warning(
            "%s: %d deferred fault(s), first: %r", self.name, len(faults), exc
        )
        if isinstance(exc, (AllocationError, UnsupportedOperationError)):
            raise exc
        if isinstance(exc, MemoryError):
            raise AllocationError(self.name, 0, str(exc)) from exc
        raise UnsupportedOperationError("kernel", f"deferred fault on {self.name}: {exc}") from exc

    def pending_faults(self) -> int:
        with self._lock:
            return len(self._faults)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


class AcceleratorBackend:
    """
    Asynchronous backend for one accelerator instance.

    Parameters
    ----------
    device : Device
        ``accel:N`` descriptor this backend serves.
    memory_bytes : int
        Allocation budget; allocations beyond it raise `AllocationError`.
    in_use : int, optional
        Bytes already held by live buffers, carried over when the backend is
        rebuilt after a configuration change.
    """

    def __init__(self, device: Device, *, memory_bytes: int, in_use: int = 0) -> None:
        self.device = device
        self.memory_bytes = int(memory_bytes)
        self.queue = CommandQueue(str(device))
        self._in_use = int(in_use)
        self._mem_lock = threading.Lock()
        logger.debug("%s backend created (budget=%d bytes)", device, memory_bytes)

    def __repr__(self) -> str:
        return f"AcceleratorBackend({self.device}, in_use={self._in_use})"

    @property
    def bytes_in_use(self) -> int:
        with self._mem_lock:
            return self._in_use

    # ------------------------------------------------------------------
    # memory accounting
    # ------------------------------------------------------------------
    def _reserve(self, numel: int, scalar_type: ScalarType) -> int:
        nbytes = int(numel) * scalar_type.size
        with self._mem_lock:
            if self._in_use + nbytes > self.memory_bytes:
                raise AllocationError(
                    str(self.device),
                    nbytes,
                    f"budget {self.memory_bytes} bytes, {self._in_use} in use",
                )
            self._in_use += nbytes
        return nbytes

    def _launch(
        self,
        numel: int,
        scalar_type: ScalarType,
        fn: Callable[..., Any],
        *args: Any,
    ) -> DeviceBuffer:
        nbytes = self._reserve(numel, scalar_type)
        return DeviceBuffer(self.queue.submit(fn, *args), numel, nbytes)

    def allocate(self, numel: int, scalar_type: ScalarType) -> DeviceBuffer:
        dtype = scalar_type.numpy_dtype
        return self._launch(
            numel, scalar_type, lambda: np.zeros(int(numel), dtype=dtype)
        )

    def free(self, buffer: DeviceBuffer) -> None:
        with self._mem_lock:
            self._in_use = max(0, self._in_use - buffer.nbytes)
        buffer.nbytes = 0

    def upload(self, array: Any, scalar_type: ScalarType) -> DeviceBuffer:
        # host memory may change after the call returns, so snapshot it now
        host = K.flat(K.finalize(np.array(array, copy=True), scalar_type))
        return self._launch(host.size, scalar_type, lambda: host)

    def download(self, view: ViewSpec) -> np.ndarray:
        self.queue.synchronize()
        try:
            data = view.buffer.result()
        except Exception as exc:
            raise UnsupportedOperationError(
                "download", f"buffer on {self.device} was never produced: {exc}"
            ) from exc
        return np.array(K.as_array(view, data), copy=True)

    # ------------------------------------------------------------------
    # in-place
    # ------------------------------------------------------------------
    def fill(self, view: ViewSpec, value: Any) -> None:
        fill_value = K.finalize(np.asarray(value), view.scalar_type)

        def job():
            K.as_array(view, view.buffer.result())[...] = fill_value

        self.queue.submit(job)

    def write(self, dst: ViewSpec, src: ViewSpec) -> None:
        def job():
            d = K.as_array(dst, dst.buffer.result())
            d[...] = np.broadcast_to(K.as_array(src, src.buffer.result()), dst.shape)

        self.queue.submit(job)

    # ------------------------------------------------------------------
    # compute
    # ------------------------------------------------------------------
    def copy(self, view: ViewSpec) -> DeviceBuffer:
        return self._launch(
            math.prod(view.shape),
            view.scalar_type,
            lambda: K.flat(np.array(K.as_array(view, view.buffer.result()), copy=True)),
        )

    def map(self, kernel: str, x: ViewSpec, **params: Any) -> DeviceBuffer:
        k = K.lookup(K.UNARY_KERNELS, kernel, x.scalar_type)

        def job():
            arr = K.as_array(x, x.buffer.result())
            return K.flat(K.finalize(k.fn(arr, **params), x.scalar_type))

        return self._launch(math.prod(x.shape), x.scalar_type, job)

    def zip(
        self, kernel: str, a: ViewSpec, b: ViewSpec, out_shape: tuple[int, ...]
    ) -> DeviceBuffer:
        k = K.lookup(K.BINARY_KERNELS, kernel, a.scalar_type)

        def job():
            aa = np.broadcast_to(K.as_array(a, a.buffer.result()), out_shape)
            bb = np.broadcast_to(K.as_array(b, b.buffer.result()), out_shape)
            return K.flat(K.finalize(k.fn(aa, bb), a.scalar_type))

        return self._launch(math.prod(out_shape), a.scalar_type, job)

    def reduce(
        self,
        kernel: str,
        x: ViewSpec,
        axes: Optional[Sequence[int]],
        keepdims: bool,
        out_scalar_type: Optional[ScalarType] = None,
    ) -> DeviceBuffer:
        k = K.lookup(K.REDUCE_KERNELS, kernel, x.scalar_type)
        st = out_scalar_type or x.scalar_type
        if axes is None:
            numel = 1
        else:
            numel = math.prod(d for i, d in enumerate(x.shape) if i not in axes)

        def job():
            arr = K.as_array(x, x.buffer.result())
            return K.flat(K.finalize(k.fn(arr, axes, keepdims), st))

        return self._launch(numel, st, job)

    def contract(
        self, a: ViewSpec, b: ViewSpec, out_shape: tuple[int, ...]
    ) -> DeviceBuffer:
        def job():
            aa = K.as_array(a, a.buffer.result())
            bb = K.as_array(b, b.buffer.result())
            return K.flat(K.finalize(K.matmul(aa, bb), a.scalar_type))

        return self._launch(math.prod(out_shape), a.scalar_type, job)

    def cast(self, x: ViewSpec, scalar_type: ScalarType) -> DeviceBuffer:
        def job():
            arr = K.as_array(x, x.buffer.result())
            return K.flat(np.array(K.finalize(arr, scalar_type), copy=True))

        return self._launch(math.prod(x.shape), scalar_type, job)

    def synchronize(self) -> None:
        self.queue.synchronize()

    def shutdown(self) -> None:
        self.queue.shutdown()
