"""
Contraction and index-encoding mixin for Tensor.
"""

from __future__ import annotations

from abc import ABC
from typing import Union

import numpy as np

from ....domain._errors import ShapeMismatchError, UnsupportedOperationError
from ....domain._scalar_type import ScalarType
from ....domain._tensor import ITensor
from .._shapes import broadcast_shapes


class TensorMixinLinalg(ABC):
    """
    Matrix multiplication and one-hot encoding.
    """

    def matmul(self, other: ITensor) -> ITensor:
        """
        Matrix product over the last two dimensions.

        Both operands need at least two dimensions; leading (batch)
        dimensions broadcast.

        Raises
        ------
        ShapeMismatchError
            If ranks are below 2, inner dimensions differ, or batch
            dimensions do not broadcast.
        """
        if not isinstance(other, TensorMixinLinalg):
            raise TypeError(f"matmul: unsupported operand type {type(other).__name__}")
        self._check_compatible(other, "matmul")
        a, b = self.shape, other.shape
        if len(a) < 2 or len(b) < 2:
            raise ShapeMismatchError(
                "matmul", a, b, detail="both operands need at least 2 dimensions"
            )
        if a[-1] != b[-2]:
            raise ShapeMismatchError("matmul", a, b, detail="inner dimensions differ")
        batch = broadcast_shapes("matmul", a[:-2], b[:-2])
        out_shape = batch + (a[-2], b[-1])
        buf = self._backend().contract(self._view(), other._view(), out_shape)
        return self._new(buf, out_shape)

    def __matmul__(self, other):
        if not isinstance(other, TensorMixinLinalg):
            return NotImplemented
        return self.matmul(other)

    def one_hot(
        self, classes: int, scalar_type: Union[str, ScalarType] = ScalarType.F32
    ) -> ITensor:
        """
        Encode an integer index tensor as one-hot rows.

        The indices are read back to the host (a synchronization point).

        Returns
        -------
        ITensor
            Tensor of shape ``self.shape + (classes,)`` on the same device.

        Raises
        ------
        UnsupportedOperationError
            If this tensor holds floats.
        ValueError
            If an index falls outside ``[0, classes)``.
        """
        if self.scalar_type.is_float:
            raise UnsupportedOperationError("one_hot", "requires an integer index tensor")
        idx = self.to_numpy().astype(np.int64)
        if idx.size and (idx.min() < 0 or idx.max() >= classes):
            raise ValueError(f"one_hot: indices must lie in [0, {classes})")
        out = np.zeros(idx.shape + (int(classes),), dtype=np.float64)
        np.put_along_axis(out, idx[..., None], 1.0, axis=-1)
        return type(self).from_numpy(out, self.device, scalar_type)
