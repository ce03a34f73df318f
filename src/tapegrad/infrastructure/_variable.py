"""
Differentiable variable.

`Variable` wraps a `Tensor` with optional gradient storage and a reference to
the graph node that produced it. Every differentiable tensor operation has a
tracked counterpart here: it runs the raw tensor operation, then, if grad mode
is enabled and any operand requires gradient, records a `Node` and attaches it
to the output.

Gradient accumulation
---------------------
- Gradients accumulate in the data's own scalar type; there is no wider
  accumulator. Under F16/BF16 small contributions can be absorbed by a large
  running gradient, and a one-time `RuntimeWarning` says so.
- Accumulation into one variable's gradient is serialized by a per-variable
  lock.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence, Union
import threading
import warnings

import numpy as np

from ..domain._errors import UnsupportedOperationError
from ..domain._scalar_type import ScalarType
from ..domain._tensor import Axes, Number
from ..domain._variable import IVariable
from ..domain.device._device import Device
from .autograd._engine import run_backward
from .autograd._grad_mode import is_grad_enabled
from .autograd._node import Node
from .tensor._shapes import normalize_axes, normalize_axis, numel_of, reduced_shape
from .tensor._tensor import Tensor, as_device, as_scalar_type

_reduced_precision_warned = False
_warn_lock = threading.Lock()


def _warn_reduced_precision(scalar_type: ScalarType) -> None:
    global _reduced_precision_warned
    with _warn_lock:
        if _reduced_precision_warned:
            return
        _reduced_precision_warned = True
    warnings.warn(
        f"accumulating gradients in {scalar_type} without a wider accumulator; "
        "small contributions may be lost",
        RuntimeWarning,
        stacklevel=4,
    )


class Variable(IVariable):
    """
    Tensor with gradient tracking.

    Parameters
    ----------
    data : Tensor
        The wrapped value.
    requires_grad : bool, optional
        Whether gradients should flow into this variable. Defaults to False.

    Raises
    ------
    UnsupportedOperationError
        If `requires_grad` is set on integer data.
    """

    def __init__(self, data: Tensor, requires_grad: bool = False) -> None:
        if not isinstance(data, Tensor):
            raise TypeError(f"Variable wraps a Tensor, got {type(data).__name__}")
        self._data = data
        self._grad: Optional[Tensor] = None
        self._node: Optional[Node] = None
        self._requires_grad = False
        self._retains_grad = False
        self._grad_lock = threading.Lock()
        self.requires_grad = requires_grad

    @classmethod
    def from_numpy(
        cls,
        arr: Any,
        device: Union[str, Device] = "host",
        scalar_type: Optional[Union[str, ScalarType]] = None,
        requires_grad: bool = False,
    ) -> "Variable":
        return cls(Tensor.from_numpy(arr, device, scalar_type), requires_grad=requires_grad)

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def data(self) -> Tensor:
        return self._data

    @property
    def grad(self) -> Optional[Tensor]:
        return self._grad

    @grad.setter
    def grad(self, value: Optional[Tensor]) -> None:
        if value is not None:
            if value.shape != self._data.shape or value.scalar_type is not self.scalar_type:
                raise ValueError(
                    f"gradient must match data (shape {self.shape}, {self.scalar_type}); "
                    f"got shape {value.shape}, {value.scalar_type}"
                )
        self._grad = value

    @property
    def requires_grad(self) -> bool:
        return self._requires_grad

    @requires_grad.setter
    def requires_grad(self, value: bool) -> None:
        value = bool(value)
        if self._node is not None:
            raise ValueError("requires_grad can only be changed on leaf variables")
        if value and not self.scalar_type.is_float:
            raise UnsupportedOperationError(
                "requires_grad", f"gradients are not defined for scalar type '{self.scalar_type}'"
            )
        self._requires_grad = value

    @property
    def node(self) -> Optional[Node]:
        return self._node

    @property
    def is_leaf(self) -> bool:
        return self._node is None

    @property
    def retains_grad(self) -> bool:
        return self._retains_grad

    @property
    def shape(self) -> tuple[int, ...]:
        return self._data.shape

    @property
    def ndim(self) -> int:
        return self._data.ndim

    @property
    def scalar_type(self) -> ScalarType:
        return self._data.scalar_type

    @property
    def device(self) -> Device:
        return self._data.device

    def numel(self) -> int:
        return self._data.numel()

    def __repr__(self) -> str:
        op = f", op={self._node.op}" if self._node is not None else ""
        return (
            f"Variable(shape={self.shape}, scalar_type={self.scalar_type}, "
            f"device={self.device}, requires_grad={self._requires_grad}{op})"
        )

    def to_numpy(self) -> np.ndarray:
        return self._data.to_numpy()

    def item(self) -> Number:
        return self._data.item()

    # ------------------------------------------------------------------
    # gradient management
    # ------------------------------------------------------------------
    def detach(self) -> "Variable":
        """
        Leaf variable sharing this variable's data, with no history.
        """
        return Variable(self._data)

    def init_grad(self) -> None:
        """
        Allocate a zero gradient if none exists yet.
        """
        with self._grad_lock:
            if self._grad is None:
                self._grad = Tensor.zeros_like(self._data)

    def zero_grad(self) -> None:
        """
        Discard the stored gradient.
        """
        self._grad = None

    def retain_grad(self) -> "Variable":
        """
        Keep the gradient of this non-leaf variable after backward.
        """
        self._retains_grad = True
        return self

    def _accumulate_grad(self, g: Tensor) -> None:
        if self.scalar_type.is_reduced_precision:
            _warn_reduced_precision(self.scalar_type)
        with self._grad_lock:
            if self._grad is None:
                self._grad = Tensor.zeros_like(self._data)
            self._grad.add_(g)

    def backward(self, grad: Optional[Tensor] = None, retain_graph: bool = False) -> None:
        """
        Propagate gradients from this variable to every reachable leaf.

        Parameters
        ----------
        grad : Optional[Tensor]
            Seed gradient; required unless this variable holds one element.
        retain_graph : bool, optional
            Keep the graph for another backward call. Defaults to False, in
            which case a second call raises `GraphConsumedError`.
        """
        run_backward(self, grad, retain_graph)

    # ------------------------------------------------------------------
    # recording
    # ------------------------------------------------------------------
    def _lift(self, other: Any, op: str) -> "Variable":
        if isinstance(other, Variable):
            return other
        if isinstance(other, Tensor):
            return Variable(other)
        return Variable(self._data._lift(other, op))

    @staticmethod
    def _record(
        op: str,
        out: Tensor,
        inputs: Sequence["Variable"],
        saved: Sequence[Tensor] = (),
        **meta: Any,
    ) -> "Variable":
        result = Variable(out)
        if (
            is_grad_enabled()
            and out.scalar_type.is_float
            and any(v.requires_grad for v in inputs)
        ):
            node = Node(op, tuple(inputs), list(saved), dict(meta))
            node.bind_output(result)
            result._node = node
            result._requires_grad = True
        return result

    def _binary(self, op: str, other: Any, fn: Callable[[Tensor, Tensor], Tensor], save: bool) -> "Variable":
        b = self._lift(other, op)
        out = fn(self._data, b._data)
        saved = (self._data, b._data) if save else ()
        return Variable._record(op, out, (self, b), saved, shapes=(self.shape, b.shape))

    # ------------------------------------------------------------------
    # elementwise
    # ------------------------------------------------------------------
    def add(self, other: Any) -> "Variable":
        return self._binary("add", other, Tensor.add, save=False)

    def sub(self, other: Any) -> "Variable":
        return self._binary("sub", other, Tensor.sub, save=False)

    def mul(self, other: Any) -> "Variable":
        return self._binary("mul", other, Tensor.mul, save=True)

    def div(self, other: Any) -> "Variable":
        return self._binary("div", other, Tensor.div, save=True)

    def maximum(self, other: Any) -> "Variable":
        return self._binary("maximum", other, Tensor.maximum, save=True)

    def minimum(self, other: Any) -> "Variable":
        return self._binary("minimum", other, Tensor.minimum, save=True)

    def neg(self) -> "Variable":
        return Variable._record("neg", self._data.neg(), (self,))

    def exp(self) -> "Variable":
        out = self._data.exp()
        return Variable._record("exp", out, (self,), (out,))

    def log(self) -> "Variable":
        return Variable._record("log", self._data.log(), (self,), (self._data,))

    def sqrt(self) -> "Variable":
        out = self._data.sqrt()
        return Variable._record("sqrt", out, (self,), (out,))

    def abs(self) -> "Variable":
        return Variable._record("abs", self._data.abs(), (self,), (self._data,))

    def relu(self) -> "Variable":
        return Variable._record("relu", self._data.relu(), (self,), (self._data,))

    def sigmoid(self) -> "Variable":
        out = self._data.sigmoid()
        return Variable._record("sigmoid", out, (self,), (out,))

    def tanh(self) -> "Variable":
        out = self._data.tanh()
        return Variable._record("tanh", out, (self,), (out,))

    def pow(self, exponent: Number) -> "Variable":
        p = float(exponent)
        return Variable._record("pow", self._data.pow(p), (self,), (self._data,), exponent=p)

    # comparisons carry no gradient
    def gt(self, other: Any) -> "Variable":
        return Variable(self._data.gt(self._lift(other, "gt")._data))

    def lt(self, other: Any) -> "Variable":
        return Variable(self._data.lt(self._lift(other, "lt")._data))

    def eq(self, other: Any) -> "Variable":
        return Variable(self._data.eq(self._lift(other, "eq")._data))

    # ------------------------------------------------------------------
    # contraction and reductions
    # ------------------------------------------------------------------
    def matmul(self, other: Any) -> "Variable":
        b = self._lift(other, "matmul")
        out = self._data.matmul(b._data)
        return Variable._record("matmul", out, (self, b), (self._data, b._data))

    def _reduction(self, op: str, axis: Axes, keepdims: bool, save: bool) -> "Variable":
        x = self._data
        out = getattr(x, op)(axis=axis, keepdims=keepdims)
        axes = normalize_axes(axis, x.ndim, op, x.shape)
        count = numel_of(x.shape) // max(numel_of(reduced_shape(x.shape, axes, False)), 1)
        return Variable._record(
            op,
            out,
            (self,),
            (x,) if save else (),
            in_shape=x.shape,
            axes=axes,
            count=count,
        )

    def sum(self, axis: Axes = None, keepdims: bool = False) -> "Variable":
        return self._reduction("sum", axis, keepdims, save=False)

    def mean(self, axis: Axes = None, keepdims: bool = False) -> "Variable":
        return self._reduction("mean", axis, keepdims, save=False)

    def max(self, axis: Axes = None, keepdims: bool = False) -> "Variable":
        """
        Maximum over `axis`; in backward, tied elements share the gradient evenly.
        """
        return self._reduction("max", axis, keepdims, save=True)

    def min(self, axis: Axes = None, keepdims: bool = False) -> "Variable":
        return self._reduction("min", axis, keepdims, save=True)

    def argmax(self, axis: Optional[int] = None, keepdims: bool = False) -> "Variable":
        return Variable(self._data.argmax(axis=axis, keepdims=keepdims))

    # ------------------------------------------------------------------
    # views and conversions
    # ------------------------------------------------------------------
    def reshape(self, *shape) -> "Variable":
        return Variable._record("reshape", self._data.reshape(*shape), (self,), in_shape=self.shape)

    def flatten(self) -> "Variable":
        return Variable._record("reshape", self._data.flatten(), (self,), in_shape=self.shape)

    def squeeze(self, axis: Optional[int] = None) -> "Variable":
        return Variable._record("reshape", self._data.squeeze(axis), (self,), in_shape=self.shape)

    def unsqueeze(self, axis: int) -> "Variable":
        return Variable._record("reshape", self._data.unsqueeze(axis), (self,), in_shape=self.shape)

    def permute(self, *axes) -> "Variable":
        out = self._data.permute(*axes)
        if len(axes) == 1 and not isinstance(axes[0], int):
            axes = tuple(axes[0])
        order = tuple(normalize_axis(a, self.ndim, "permute", self.shape) for a in axes)
        return Variable._record("permute", out, (self,), order=order)

    def transpose(self, axis0: int = -2, axis1: int = -1) -> "Variable":
        order = list(range(self.ndim))
        a = normalize_axis(axis0, self.ndim, "transpose", self.shape)
        b = normalize_axis(axis1, self.ndim, "transpose", self.shape)
        order[a], order[b] = order[b], order[a]
        return self.permute(order)

    @property
    def T(self) -> "Variable":
        return self.permute(list(reversed(range(self.ndim))))

    def broadcast_to(self, shape: Sequence[int]) -> "Variable":
        out = self._data.broadcast_to(shape)
        return Variable._record("broadcast_to", out, (self,), in_shape=self.shape)

    def narrow(self, axis: int, start: int, length: int) -> "Variable":
        out = self._data.narrow(axis, start, length)
        return Variable._record(
            "select",
            out,
            (self,),
            in_shape=self.shape,
            view_fn=lambda t: t.narrow(axis, start, length),
        )

    def __getitem__(self, key) -> "Variable":
        out = self._data[key]
        return Variable._record(
            "select", out, (self,), in_shape=self.shape, view_fn=lambda t: t[key]
        )

    def clone(self) -> "Variable":
        return Variable._record("identity", self._data.clone(), (self,))

    def cast(self, scalar_type: Union[str, ScalarType]) -> "Variable":
        st = as_scalar_type(scalar_type)
        return Variable._record(
            "cast", self._data.cast(st), (self,), in_scalar_type=self.scalar_type
        )

    def to(self, device: Union[str, Device]) -> "Variable":
        dev = as_device(device)
        if dev == self.device:
            return self
        return Variable._record("to", self._data.to(dev), (self,), in_device=self.device)

    # ------------------------------------------------------------------
    # operators
    # ------------------------------------------------------------------
    def __neg__(self):
        return self.neg()

    def __add__(self, other):
        return self.add(other)

    def __radd__(self, other):
        return self._lift(other, "add").add(self)

    def __sub__(self, other):
        return self.sub(other)

    def __rsub__(self, other):
        return self._lift(other, "sub").sub(self)

    def __mul__(self, other):
        return self.mul(other)

    def __rmul__(self, other):
        return self._lift(other, "mul").mul(self)

    def __truediv__(self, other):
        return self.div(other)

    def __rtruediv__(self, other):
        return self._lift(other, "div").div(self)

    def __pow__(self, exponent):
        return self.pow(exponent)

    def __matmul__(self, other):
        return self.matmul(other)

    def __rmatmul__(self, other):
        return self._lift(other, "matmul").matmul(self)

    def __gt__(self, other):
        return self.gt(other)

    def __lt__(self, other):
        return self.lt(other)


def as_variable(value: Any) -> Variable:
    """
    Wrap a raw Tensor as a constant Variable; Variables pass through.
    """
    if isinstance(value, Variable):
        return value
    if isinstance(value, Tensor):
        return Variable(value)
    raise TypeError(f"expected a Variable or Tensor, got {type(value).__name__}")
