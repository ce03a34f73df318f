"""
Reverse-mode traversal.

`run_backward` walks the graph reachable from a root variable in reverse
topological order. Each node is expanded only after every consumer inside the
reachable subgraph has contributed to its output gradient, which is tracked
with per-node dependency counts (Kahn's algorithm run backwards). The walk is
iterative, so graph depth is not limited by the interpreter recursion limit.

Gradients of intermediate variables live in a pending map and are discarded
once propagated, unless the variable asked to retain its gradient. Leaves
accumulate into their own gradient tensor under a per-variable lock.

Unless `retain_graph` is requested, every visited node is released and marked
consumed; walking it again raises `GraphConsumedError`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from ...domain._errors import (
    DeviceMismatchError,
    GraphConsumedError,
    ShapeMismatchError,
    TypeMismatchError,
)
from ..tensor._tensor import Tensor
from ._node import Node
from ._rules import lookup_rule

logger = logging.getLogger(__name__)


def _validate(variable: Any, grad: Tensor, op: str) -> None:
    """
    Check a gradient against the variable it flows into.
    """
    if not isinstance(grad, Tensor):
        raise TypeError(
            f"backward of '{op}' must produce Tensor gradients, got {type(grad).__name__}"
        )
    data = variable.data
    if grad.device != data.device:
        raise DeviceMismatchError(str(data.device), str(grad.device), f"backward of '{op}'")
    if grad.scalar_type is not data.scalar_type:
        raise TypeMismatchError(f"backward of '{op}'", data.scalar_type, grad.scalar_type)
    if grad.shape != data.shape:
        raise ShapeMismatchError(f"backward of '{op}'", data.shape, grad.shape)


def _seed(root: Any, grad: Optional[Tensor]) -> Tensor:
    if grad is None:
        if root.data.numel() != 1:
            raise ValueError(
                "backward on a non-scalar variable needs an explicit gradient; "
                f"got shape {root.shape}"
            )
        return Tensor.ones(root.shape, root.device, root.scalar_type)
    _validate(root, grad, "seed")
    return grad


def _collect(root: Node) -> Dict[Node, int]:
    """
    Count, for every reachable node, how many edges point at it.

    Raises
    ------
    GraphConsumedError
        If any reachable node was released by an earlier backward pass.
    """
    deps: Dict[Node, int] = {root: 0}
    stack: List[Node] = [root]
    while stack:
        node = stack.pop()
        if node.consumed:
            raise GraphConsumedError(node.op)
        for nxt in node.next_nodes():
            if nxt in deps:
                deps[nxt] += 1
            else:
                deps[nxt] = 1
                stack.append(nxt)
    return deps


def run_backward(root: Any, grad: Optional[Tensor] = None, retain_graph: bool = False) -> None:
    """
    Propagate gradients from `root` to every reachable leaf.

    Parameters
    ----------
    root : Variable
        Variable to differentiate. Must require gradient.
    grad : Optional[Tensor]
        Seed gradient. May be omitted only for single-element roots, in which
        case it is one.
    retain_graph : bool, optional
        Keep nodes and their captured tensors so backward can be called again.
        Defaults to False.

    Raises
    ------
    ValueError
        If `root` does not require gradient, or no seed is given for a
        multi-element root.
    GraphConsumedError
        If the graph was already consumed by a previous non-retaining call.
    ShapeMismatchError, TypeMismatchError, DeviceMismatchError
        If the seed (or a rule's output) does not match its variable.
    """
    if not root.requires_grad:
        raise ValueError("backward called on a variable that does not require gradient")
    seed = _seed(root, grad)

    if root.node is None:
        root._accumulate_grad(seed)
        return

    deps = _collect(root.node)
    logger.debug("backward from '%s': %d node(s)", root.node.op, len(deps))

    pending: Dict[Node, Tensor] = {root.node: seed}
    ready: List[Node] = [root.node]
    while ready:
        node = ready.pop()
        g = pending.pop(node, None)
        if g is not None:
            out = node.output
            if out is not None and out.retains_grad:
                out._accumulate_grad(g)
            grads = lookup_rule(node.op)(node, g)
            if len(grads) != len(node.inputs):
                raise RuntimeError(
                    f"backward rule '{node.op}' returned {len(grads)} gradient(s) "
                    f"for {len(node.inputs)} input(s)"
                )
            for var, gi in zip(node.inputs, grads):
                if gi is None or not var.requires_grad:
                    continue
                _validate(var, gi, node.op)
                if var.node is None:
                    var._accumulate_grad(gi)
                elif var.node in pending:
                    pending[var.node] = pending[var.node].add(gi)
                else:
                    pending[var.node] = gi

        for nxt in node.next_nodes():
            deps[nxt] -= 1
            if deps[nxt] == 0:
                ready.append(nxt)

        if not retain_graph:
            node.release()
