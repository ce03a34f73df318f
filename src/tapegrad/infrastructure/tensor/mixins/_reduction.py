"""
Reduction mixin for Tensor.

All reductions take ``axis=None|int|tuple`` (None reduces every axis) and
``keepdims``. `sum_to_shape` is the inverse of broadcasting and is what the
autograd rules use to fold broadcast gradients back onto operand shapes.
"""

from __future__ import annotations

from abc import ABC
from typing import Optional, Sequence

from ....domain._errors import ShapeMismatchError
from ....domain._scalar_type import ScalarType
from ....domain._tensor import Axes, ITensor
from .._shapes import normalize_axes, normalize_shape, reduced_shape, sum_to_shape_axes


class TensorMixinReduction(ABC):
    """
    Axis reductions.
    """

    def _reduce(
        self,
        kernel: str,
        axis: Axes,
        keepdims: bool,
        out_scalar_type: Optional[ScalarType] = None,
    ) -> ITensor:
        axes = normalize_axes(axis, self.ndim, kernel, self.shape)
        if kernel in ("max", "min", "argmax") and self.numel() == 0:
            raise ShapeMismatchError(kernel, self.shape, detail="reduction over zero elements")
        out_shape = reduced_shape(self.shape, axes, keepdims)
        buf = self._backend().reduce(kernel, self._view(), axes, keepdims, out_scalar_type)
        return self._new(buf, out_shape, out_scalar_type)

    def sum(self, axis: Axes = None, keepdims: bool = False) -> ITensor:
        """
        Sum over `axis`; accumulates in the tensor's own scalar type.
        """
        return self._reduce("sum", axis, keepdims)

    def mean(self, axis: Axes = None, keepdims: bool = False) -> ITensor:
        return self._reduce("mean", axis, keepdims)

    def max(self, axis: Axes = None, keepdims: bool = False) -> ITensor:
        return self._reduce("max", axis, keepdims)

    def min(self, axis: Axes = None, keepdims: bool = False) -> ITensor:
        return self._reduce("min", axis, keepdims)

    def argmax(self, axis: Optional[int] = None, keepdims: bool = False) -> ITensor:
        """
        Index of the maximum along a single axis (flat index when None).

        Returns
        -------
        ITensor
            I64 tensor of indices.
        """
        if axis is not None and not isinstance(axis, int):
            raise ShapeMismatchError("argmax", self.shape, detail="argmax reduces a single axis")
        return self._reduce("argmax", axis, keepdims, ScalarType.I64)

    def sum_to_shape(self, shape: Sequence[int]) -> ITensor:
        """
        Sum-reduce a broadcast result back to `shape`.

        Raises
        ------
        ShapeMismatchError
            If `shape` could not have been broadcast to this tensor's shape.
        """
        target = normalize_shape(shape, "sum_to_shape")
        if target == self.shape:
            return self
        axes, _ = sum_to_shape_axes(self.shape, target)
        return self.sum(axis=axes, keepdims=True).reshape(target)
