"""
Backward rules.

Every tracked operation kind maps to exactly one backward rule in a flat
registry. A rule receives the node (with its captured operands and metadata)
and the gradient of the node's output, and returns one gradient per input in
input order (None where no gradient flows). Rules operate on raw tensors, so
computing gradients never records further graph history.

Broadcasting operations fold the output gradient back onto each operand's
shape with `Tensor.sum_to_shape`.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence

from ...domain._errors import UnsupportedOperationError
from ..tensor._shapes import reduced_shape
from ..tensor._tensor import Tensor
from ._node import Node

Grads = Sequence[Optional[Tensor]]
BackwardRule = Callable[[Node, Tensor], Grads]

BACKWARD_RULES: Dict[str, BackwardRule] = {}


def backward_rule(op: str):
    """
    Register a backward rule for operation kind `op`.

    Examples
    --------
    >>> @backward_rule("neg")
    ... def _neg(node, g):
    ...     return (g.neg(),)
    """

    def deco(fn: BackwardRule) -> BackwardRule:
        if op in BACKWARD_RULES:
            raise KeyError(f"backward rule for '{op}' is already registered")
        BACKWARD_RULES[op] = fn
        return fn

    return deco


def lookup_rule(op: str) -> BackwardRule:
    try:
        return BACKWARD_RULES[op]
    except KeyError:
        raise UnsupportedOperationError(op, "no backward rule registered") from None


def _shapes(node: Node):
    return node.saved_meta["shapes"]


# ---------------------------------------------------------------------------
# arithmetic
# ---------------------------------------------------------------------------
@backward_rule("add")
def _add(node: Node, g: Tensor) -> Grads:
    sa, sb = _shapes(node)
    return g.sum_to_shape(sa), g.sum_to_shape(sb)


@backward_rule("sub")
def _sub(node: Node, g: Tensor) -> Grads:
    sa, sb = _shapes(node)
    return g.sum_to_shape(sa), g.neg().sum_to_shape(sb)


@backward_rule("mul")
def _mul(node: Node, g: Tensor) -> Grads:
    a, b = node.saved_tensors
    return g.mul(b).sum_to_shape(a.shape), g.mul(a).sum_to_shape(b.shape)


@backward_rule("div")
def _div(node: Node, g: Tensor) -> Grads:
    a, b = node.saved_tensors
    ga = g.div(b)
    gb = g.mul(a).div(b.mul(b)).neg()
    return ga.sum_to_shape(a.shape), gb.sum_to_shape(b.shape)


@backward_rule("maximum")
def _maximum(node: Node, g: Tensor) -> Grads:
    a, b = node.saved_tensors
    # ties split the gradient evenly
    wa = a.gt(b).add(a.eq(b).mul(0.5))
    ga = g.mul(wa)
    gb = g.sub(ga)
    return ga.sum_to_shape(a.shape), gb.sum_to_shape(b.shape)


@backward_rule("minimum")
def _minimum(node: Node, g: Tensor) -> Grads:
    a, b = node.saved_tensors
    wa = a.lt(b).add(a.eq(b).mul(0.5))
    ga = g.mul(wa)
    gb = g.sub(ga)
    return ga.sum_to_shape(a.shape), gb.sum_to_shape(b.shape)


@backward_rule("neg")
def _neg(node: Node, g: Tensor) -> Grads:
    return (g.neg(),)


# ---------------------------------------------------------------------------
# unary maps
# ---------------------------------------------------------------------------
@backward_rule("exp")
def _exp(node: Node, g: Tensor) -> Grads:
    (out,) = node.saved_tensors
    return (g.mul(out),)


@backward_rule("log")
def _log(node: Node, g: Tensor) -> Grads:
    (x,) = node.saved_tensors
    return (g.div(x),)


@backward_rule("sqrt")
def _sqrt(node: Node, g: Tensor) -> Grads:
    (out,) = node.saved_tensors
    return (g.div(out.mul(2)),)


@backward_rule("abs")
def _abs(node: Node, g: Tensor) -> Grads:
    (x,) = node.saved_tensors
    return (g.mul(x.gt(0).sub(x.lt(0))),)


@backward_rule("relu")
def _relu(node: Node, g: Tensor) -> Grads:
    (x,) = node.saved_tensors
    return (g.mul(x.gt(0)),)


@backward_rule("sigmoid")
def _sigmoid(node: Node, g: Tensor) -> Grads:
    (out,) = node.saved_tensors
    return (g.mul(out).mul(out.neg().add(1)),)


@backward_rule("tanh")
def _tanh(node: Node, g: Tensor) -> Grads:
    (out,) = node.saved_tensors
    return (g.mul(out.mul(out).neg().add(1)),)


@backward_rule("pow")
def _pow(node: Node, g: Tensor) -> Grads:
    (x,) = node.saved_tensors
    p = node.saved_meta["exponent"]
    return (g.mul(x.pow(p - 1.0).mul(p)),)


# ---------------------------------------------------------------------------
# contraction
# ---------------------------------------------------------------------------
@backward_rule("matmul")
def _matmul(node: Node, g: Tensor) -> Grads:
    a, b = node.saved_tensors
    ga = g.matmul(b.transpose(-2, -1))
    gb = a.transpose(-2, -1).matmul(g)
    return ga.sum_to_shape(a.shape), gb.sum_to_shape(b.shape)


# ---------------------------------------------------------------------------
# reductions
# ---------------------------------------------------------------------------
def _expand_reduced(node: Node, g: Tensor) -> Tensor:
    meta = node.saved_meta
    in_shape = meta["in_shape"]
    kept = reduced_shape(in_shape, meta["axes"], True)
    return g.contiguous().reshape(kept).broadcast_to(in_shape)


@backward_rule("sum")
def _sum(node: Node, g: Tensor) -> Grads:
    return (_expand_reduced(node, g),)


@backward_rule("mean")
def _mean(node: Node, g: Tensor) -> Grads:
    return (_expand_reduced(node, g).div(node.saved_meta["count"]),)


def _extremum(node: Node, g: Tensor, kernel: str) -> Grads:
    (x,) = node.saved_tensors
    axes = node.saved_meta["axes"]
    # ties share the gradient evenly
    ref = x.max(axis=axes, keepdims=True) if kernel == "max" else x.min(axis=axes, keepdims=True)
    mask = x.eq(ref)
    mask = mask.div(mask.sum(axis=axes, keepdims=True))
    return (mask.mul(_expand_reduced(node, g)),)


@backward_rule("max")
def _max(node: Node, g: Tensor) -> Grads:
    return _extremum(node, g, "max")


@backward_rule("min")
def _min(node: Node, g: Tensor) -> Grads:
    return _extremum(node, g, "min")


# ---------------------------------------------------------------------------
# views and conversions
# ---------------------------------------------------------------------------
@backward_rule("reshape")
def _reshape(node: Node, g: Tensor) -> Grads:
    return (g.contiguous().reshape(node.saved_meta["in_shape"]),)


@backward_rule("permute")
def _permute(node: Node, g: Tensor) -> Grads:
    order = node.saved_meta["order"]
    inverse = [0] * len(order)
    for i, a in enumerate(order):
        inverse[a] = i
    return (g.permute(inverse),)


@backward_rule("broadcast_to")
def _broadcast_to(node: Node, g: Tensor) -> Grads:
    return (g.sum_to_shape(node.saved_meta["in_shape"]),)


@backward_rule("select")
def _select(node: Node, g: Tensor) -> Grads:
    meta = node.saved_meta
    out = Tensor(meta["in_shape"], g.device, scalar_type=g.scalar_type)
    region = meta["view_fn"](out)
    region.copy_from(g)
    return (out,)


@backward_rule("identity")
def _identity(node: Node, g: Tensor) -> Grads:
    return (g,)


@backward_rule("cast")
def _cast(node: Node, g: Tensor) -> Grads:
    return (g.cast(node.saved_meta["in_scalar_type"]),)


@backward_rule("to")
def _to(node: Node, g: Tensor) -> Grads:
    return (g.to(node.saved_meta["in_device"]),)
