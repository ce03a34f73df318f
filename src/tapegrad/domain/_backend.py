"""
Compute backend contract.

A compute backend implements the primitive operation set the tensor layer
dispatches to: elementwise map/zip, axis reduction, contraction, cast, fill,
strided copy, in-place write, and host<->device memory transfer. One backend
instance exists per device; it is resolved from the `Device` value when a
tensor is constructed.

The contract is expressed on *views*: each primitive receives the backing
buffer of a tensor plus its shape/strides/offset, so views never need to be
materialized before dispatch.

Error contract
--------------
- Storage that cannot be provisioned raises `AllocationError`.
- Kernels without an implementation for the scalar type raise
  `UnsupportedOperationError`.
- Asynchronous backends may defer kernel faults; they must re-raise them as
  one of the two errors above at the next synchronization point.
"""

from __future__ import annotations

from typing import Any, NamedTuple, Optional, Protocol, Sequence, runtime_checkable

from ._scalar_type import ScalarType
from .device._device_protocol import DeviceLike


class ViewSpec(NamedTuple):
    """
    Description of a strided view over a backend buffer.

    Attributes
    ----------
    buffer : Any
        Backend-specific buffer handle (host: flat ndarray; accelerator:
        a queued device buffer).
    shape : tuple[int, ...]
        Logical shape of the view.
    strides : tuple[int, ...]
        Strides in elements (0 for broadcast dimensions).
    offset : int
        Element offset of the first element in the buffer.
    scalar_type : ScalarType
        Element scalar type.
    """

    buffer: Any
    shape: tuple[int, ...]
    strides: tuple[int, ...]
    offset: int
    scalar_type: ScalarType


@runtime_checkable
class IComputeBackend(Protocol):
    """
    Primitive-operation contract every backend implements.

    All methods producing data return a *new contiguous buffer* holding the
    result in row-major order; the tensor layer wraps it into storage.
    """

    device: DeviceLike

    def allocate(self, numel: int, scalar_type: ScalarType) -> Any:
        """
        Allocate a zero-filled buffer of `numel` elements.
        """
        ...

    def free(self, buffer: Any) -> None:
        """
        Release a buffer previously returned by this backend.
        """
        ...

    def upload(self, array: Any, scalar_type: ScalarType) -> Any:
        """
        Copy a host array into a new buffer on this device.
        """
        ...

    def download(self, view: ViewSpec) -> Any:
        """
        Copy a view into a new host array (synchronization point).
        """
        ...

    def fill(self, view: ViewSpec, value: Any) -> None:
        """
        Set every element of the view to `value` in place.
        """
        ...

    def copy(self, view: ViewSpec) -> Any:
        """
        Gather a (possibly strided) view into a new contiguous buffer.
        """
        ...

    def write(self, dst: ViewSpec, src: ViewSpec) -> None:
        """
        Assign `src` (broadcast to `dst`) into `dst` in place.
        """
        ...

    def map(self, kernel: str, x: ViewSpec, **params: Any) -> Any:
        """
        Apply a unary elementwise kernel.
        """
        ...

    def zip(
        self, kernel: str, a: ViewSpec, b: ViewSpec, out_shape: tuple[int, ...]
    ) -> Any:
        """
        Apply a binary elementwise kernel with broadcasting to `out_shape`.
        """
        ...

    def reduce(
        self,
        kernel: str,
        x: ViewSpec,
        axes: Optional[Sequence[int]],
        keepdims: bool,
        out_scalar_type: Optional[ScalarType] = None,
    ) -> Any:
        """
        Reduce over `axes` (all axes when None).

        The result is stored as `out_scalar_type` when given (index-valued
        reductions such as argmax), otherwise in the input scalar type.
        """
        ...

    def contract(
        self, a: ViewSpec, b: ViewSpec, out_shape: tuple[int, ...]
    ) -> Any:
        """
        Matrix-multiply-like contraction over the last two dimensions.
        """
        ...

    def cast(self, x: ViewSpec, scalar_type: ScalarType) -> Any:
        """
        Convert a view to a new buffer of `scalar_type`.
        """
        ...

    def synchronize(self) -> None:
        """
        Block until all previously submitted work has completed.
        """
        ...
