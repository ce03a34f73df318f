"""
Elementwise mixin for Tensor.

Unary maps dispatch through the backend ``map`` primitive, binary operations
through ``zip`` (with trailing-dimension broadcasting) and in-place variants
through ``zip`` followed by ``write``. Comparison results are 0/1 values in
the operands' scalar type.
"""

from __future__ import annotations

from abc import ABC
from typing import Any
import numbers

from ....domain._tensor import ITensor, Number


class TensorMixinElementwise(ABC):
    """
    Elementwise unary, binary, comparison and in-place operations.

    Notes
    -----
    Float-only kernels (exp, log, sqrt, sigmoid, tanh, pow, div) raise
    `UnsupportedOperationError` on integer scalar types.
    """

    # ---------------------------------------------------------------- unary
    def neg(self) -> ITensor:
        return self._map("neg")

    def abs(self) -> ITensor:
        return self._map("abs")

    def relu(self) -> ITensor:
        return self._map("relu")

    def exp(self) -> ITensor:
        return self._map("exp")

    def log(self) -> ITensor:
        """
        Natural logarithm; non-positive inputs yield -inf/nan.
        """
        return self._map("log")

    def sqrt(self) -> ITensor:
        return self._map("sqrt")

    def sigmoid(self) -> ITensor:
        return self._map("sigmoid")

    def tanh(self) -> ITensor:
        return self._map("tanh")

    def pow(self, exponent: Number) -> ITensor:
        """
        Raise every element to a scalar power.
        """
        return self._map("pow", exponent=float(exponent))

    # --------------------------------------------------------------- binary
    def add(self, other: Any) -> ITensor:
        return self._zip("add", other)

    def sub(self, other: Any) -> ITensor:
        return self._zip("sub", other)

    def mul(self, other: Any) -> ITensor:
        return self._zip("mul", other)

    def div(self, other: Any) -> ITensor:
        return self._zip("div", other)

    def maximum(self, other: Any) -> ITensor:
        return self._zip("maximum", other)

    def minimum(self, other: Any) -> ITensor:
        return self._zip("minimum", other)

    def gt(self, other: Any) -> ITensor:
        return self._zip("gt", other)

    def lt(self, other: Any) -> ITensor:
        return self._zip("lt", other)

    def eq(self, other: Any) -> ITensor:
        """
        Elementwise equality as 0/1 values (``==`` keeps identity semantics).
        """
        return self._zip("eq", other)

    # ------------------------------------------------------------- in-place
    def add_(self, other: Any) -> ITensor:
        return self._zip_("add", other)

    def sub_(self, other: Any) -> ITensor:
        return self._zip_("sub", other)

    def mul_(self, other: Any) -> ITensor:
        return self._zip_("mul", other)

    def scaled_add_(self, alpha: Number, other: ITensor) -> ITensor:
        """
        In-place ``self += alpha * other``.

        This is the primitive optimizers use for parameter updates.
        """
        return self._zip_("add", other.mul(alpha))

    # ------------------------------------------------------------ operators
    # unknown operand types return NotImplemented so the reflected method of
    # the other operand (e.g. a Variable) gets a chance
    def __neg__(self):
        return self.neg()

    def __add__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.add(other)

    def __radd__(self, other):
        return self.add(other)

    def __sub__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.sub(other)

    def __rsub__(self, other):
        return self._lift(other, "sub").sub(self)

    def __mul__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.mul(other)

    def __rmul__(self, other):
        return self.mul(other)

    def __truediv__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.div(other)

    def __rtruediv__(self, other):
        return self._lift(other, "div").div(self)

    def __pow__(self, exponent):
        return self.pow(exponent)

    def __gt__(self, other):
        return self.gt(other)

    def __lt__(self, other):
        return self.lt(other)

    def __iadd__(self, other):
        return self.add_(other)

    def __isub__(self, other):
        return self.sub_(other)

    def __imul__(self, other):
        return self.mul_(other)


def _is_operand(value: Any) -> bool:
    return isinstance(value, (TensorMixinElementwise, numbers.Real))
