"""
Tensor interface definitions.

This module defines the domain-level interface for tensor-like objects using
structural typing. The interface captures the backend-agnostic properties
external collaborators (serializers, optimizers, layers) rely on: shape and
stride metadata, scalar type, device placement, and raw element access.

Tensors are *raw*: operations on them never record autograd history. The
tracked counterpart is `IVariable`.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, Union, runtime_checkable

from ._scalar_type import ScalarType
from .device._device_protocol import DeviceLike

Number = Union[int, float]
Axes = Optional[Union[int, Sequence[int]]]


@runtime_checkable
class ITensor(Protocol):
    """
    Tensor interface.

    An `ITensor` is an n-dimensional, strided, typed buffer bound to exactly
    one device.

    Notes
    -----
    - Views (reshape, transpose, slice, broadcast) share storage with their
      base; mutation through one alias is visible through all others.
    - Every binary operation requires identical scalar type and device.
    """

    @property
    def shape(self) -> tuple[int, ...]:
        """
        Return the tensor shape.
        """
        ...

    @property
    def strides(self) -> tuple[int, ...]:
        """
        Return the per-dimension strides, in elements.
        """
        ...

    @property
    def scalar_type(self) -> ScalarType:
        """
        Return the element scalar type.
        """
        ...

    @property
    def device(self) -> DeviceLike:
        """
        Return the device on which this tensor resides.
        """
        ...

    def numel(self) -> int:
        """
        Return the total number of elements implied by the shape.
        """
        ...

    def is_contiguous(self) -> bool:
        """
        Return True if the elements are laid out in row-major order with no gaps.
        """
        ...

    def to_numpy(self) -> Any:
        """
        Copy the elements into a new host NumPy array.

        This is a synchronization point for accelerator tensors.
        """
        ...

    def copy_from_numpy(self, arr: Any) -> None:
        """
        Overwrite the elements in-place from a host array of identical shape.
        """
        ...

    def copy_from(self, other: "ITensor") -> None:
        """
        Overwrite the elements in-place from another tensor.
        """
        ...

    def reshape(self, shape: Sequence[int]) -> "ITensor":
        """
        Return a view with a new shape and the same element count.
        """
        ...

    def cast(self, scalar_type: ScalarType) -> "ITensor":
        """
        Return a new tensor converted to `scalar_type`.
        """
        ...

    def to(self, device: DeviceLike) -> "ITensor":
        """
        Return a copy of this tensor on `device` (explicit transfer).
        """
        ...

    def sum(self, axis: Axes = None, keepdims: bool = False) -> "ITensor":
        """
        Sum elements over `axis` (all axes when None).
        """
        ...

    def matmul(self, other: "ITensor") -> "ITensor":
        """
        Matrix product over the last two dimensions.
        """
        ...
