"""
NumPy kernels shared by every compute backend.

Kernels are registered in flat tables keyed by name (``"exp"``, ``"add"``,
``"sum"``...). Backends look kernels up by name and decide *where* and *when*
they run (calling thread, host worker pool, or an accelerator command queue);
the numerics are identical everywhere, which is what makes host/accelerator
parity exact.

Every kernel result goes through `finalize`, which converts to the storage
dtype of the requested scalar type and applies bfloat16 rounding for ``BF16``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np
from numpy.lib.stride_tricks import as_strided

from ...domain._backend import ViewSpec
from ...domain._errors import UnsupportedOperationError
from ...domain._scalar_type import ScalarType


@dataclass(frozen=True)
class Kernel:
    """
    A registered NumPy kernel.

    Attributes
    ----------
    name : str
        Registry key.
    fn : Callable
        Implementation operating on NumPy arrays.
    float_only : bool
        Whether the kernel is undefined for integer scalar types.
    """

    name: str
    fn: Callable[..., np.ndarray]
    float_only: bool = False


UNARY_KERNELS: Dict[str, Kernel] = {}
BINARY_KERNELS: Dict[str, Kernel] = {}
REDUCE_KERNELS: Dict[str, Kernel] = {}


def _register(table: Dict[str, Kernel], name: str, float_only: bool):
    def deco(fn):
        table[name] = Kernel(name=name, fn=fn, float_only=float_only)
        return fn

    return deco


def unary_kernel(name: str, *, float_only: bool = False):
    return _register(UNARY_KERNELS, name, float_only)


def binary_kernel(name: str, *, float_only: bool = False):
    return _register(BINARY_KERNELS, name, float_only)


def reduce_kernel(name: str, *, float_only: bool = False):
    return _register(REDUCE_KERNELS, name, float_only)


def lookup(table: Dict[str, Kernel], name: str, scalar_type: ScalarType) -> Kernel:
    """
    Resolve a kernel and validate it supports `scalar_type`.

    Raises
    ------
    UnsupportedOperationError
        If the kernel is unknown or not defined for `scalar_type`.
    """
    k = table.get(name)
    if k is None:
        raise UnsupportedOperationError(name, "no kernel registered under this name")
    if k.float_only and not scalar_type.is_float:
        raise UnsupportedOperationError(
            name, f"not implemented for scalar type '{scalar_type}'"
        )
    return k


# ---------------------------------------------------------------------------
# dtype handling
# ---------------------------------------------------------------------------
def round_bf16(x: np.ndarray) -> np.ndarray:
    """
    Round float32 values to the nearest bfloat16 (ties to even).

    The result is still float32, with the low 16 mantissa bits cleared. NaNs
    are passed through unchanged.
    """
    x = np.ascontiguousarray(x, dtype=np.float32)
    bits = x.view(np.uint32).astype(np.uint64)
    lsb = (bits >> 16) & 1
    rounded = ((bits + 0x7FFF + lsb) & 0xFFFF0000).astype(np.uint32)
    out = rounded.view(np.float32)
    return np.where(np.isnan(x), x, out)


def finalize(arr: Any, scalar_type: ScalarType) -> np.ndarray:
    """
    Convert a kernel result to the storage dtype of `scalar_type`.
    """
    with np.errstate(over="ignore", invalid="ignore"):
        out = np.asarray(arr).astype(scalar_type.numpy_dtype, copy=False)
    if scalar_type is ScalarType.BF16:
        out = round_bf16(out)
    return out


def flat(arr: np.ndarray) -> np.ndarray:
    """
    Return a contiguous 1-D buffer holding `arr` in row-major order.
    """
    return np.ascontiguousarray(arr).reshape(-1)


def as_array(view: ViewSpec, buffer: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Materialize a strided NumPy view over a flat buffer without copying.

    Parameters
    ----------
    view : ViewSpec
        View description.
    buffer : Optional[np.ndarray]
        Flat storage to use instead of `view.buffer` (accelerator backends
        pass the resolved device array here).
    """
    base = view.buffer if buffer is None else buffer
    itemsize = base.itemsize
    return as_strided(
        base[view.offset :],
        shape=view.shape,
        strides=tuple(int(s) * itemsize for s in view.strides),
    )


# ---------------------------------------------------------------------------
# unary
# ---------------------------------------------------------------------------
@unary_kernel("neg")
def _neg(x):
    return np.negative(x)


@unary_kernel("abs")
def _abs(x):
    return np.abs(x)


@unary_kernel("relu")
def _relu(x):
    return np.maximum(x, 0).astype(x.dtype, copy=False)


@unary_kernel("exp", float_only=True)
def _exp(x):
    with np.errstate(over="ignore"):
        return np.exp(x)


@unary_kernel("log", float_only=True)
def _log(x):
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.log(x)


@unary_kernel("sqrt", float_only=True)
def _sqrt(x):
    with np.errstate(invalid="ignore"):
        return np.sqrt(x)


@unary_kernel("sigmoid", float_only=True)
def _sigmoid(x):
    # exp(-log(1 + exp(-x))) stays finite for large |x|
    return np.exp(-np.logaddexp(np.zeros_like(x), -x))


@unary_kernel("tanh", float_only=True)
def _tanh(x):
    return np.tanh(x)


@unary_kernel("pow", float_only=True)
def _pow(x, exponent: float = 2.0):
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return np.power(x, np.asarray(exponent, dtype=x.dtype))


@unary_kernel("identity")
def _identity(x):
    return np.array(x, copy=True)


# ---------------------------------------------------------------------------
# binary
# ---------------------------------------------------------------------------
@binary_kernel("add")
def _add(a, b):
    return np.add(a, b)


@binary_kernel("sub")
def _sub(a, b):
    return np.subtract(a, b)


@binary_kernel("mul")
def _mul(a, b):
    return np.multiply(a, b)


@binary_kernel("div", float_only=True)
def _div(a, b):
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.true_divide(a, b)


@binary_kernel("maximum")
def _maximum(a, b):
    return np.maximum(a, b)


@binary_kernel("minimum")
def _minimum(a, b):
    return np.minimum(a, b)


@binary_kernel("gt")
def _gt(a, b):
    return np.greater(a, b)


@binary_kernel("lt")
def _lt(a, b):
    return np.less(a, b)


@binary_kernel("eq")
def _eq(a, b):
    return np.equal(a, b)


# ---------------------------------------------------------------------------
# reductions
# ---------------------------------------------------------------------------
def _axis_arg(axes: Optional[Sequence[int]]):
    return None if axes is None else tuple(axes)


@reduce_kernel("sum")
def _sum(x, axes, keepdims):
    return np.sum(x, axis=_axis_arg(axes), keepdims=keepdims, dtype=x.dtype)


@reduce_kernel("mean", float_only=True)
def _mean(x, axes, keepdims):
    return np.mean(x, axis=_axis_arg(axes), keepdims=keepdims, dtype=x.dtype)


@reduce_kernel("max")
def _max(x, axes, keepdims):
    return np.max(x, axis=_axis_arg(axes), keepdims=keepdims)


@reduce_kernel("min")
def _min(x, axes, keepdims):
    return np.min(x, axis=_axis_arg(axes), keepdims=keepdims)


@reduce_kernel("argmax")
def _argmax(x, axes, keepdims):
    # argmax reduces a single axis; the caller validates this
    axis = None if axes is None else int(axes[0])
    return np.argmax(x, axis=axis, keepdims=keepdims)


def matmul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.matmul(a, b)
