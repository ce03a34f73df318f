"""
Differentiable variable interface definitions.

A variable wraps a tensor with optional gradient storage and an optional
back-reference into the computation graph. It is the unit tracked by autodiff:
operations on variables record graph nodes, operations on raw tensors never do.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from ._tensor import ITensor


@runtime_checkable
class IVariable(Protocol):
    """
    Domain-level interface for tracked values.

    Invariants
    ----------
    - If `grad` is present, its shape and scalar type equal `data`'s.
    - A leaf (created directly from a tensor) has no graph node; a variable
      produced by an operation on other variables that required gradient has
      one.
    """

    @property
    def data(self) -> ITensor:
        """
        Return the wrapped tensor.
        """
        ...

    @property
    def grad(self) -> Optional[ITensor]:
        """
        Return the accumulated gradient, or None if none has been written.
        """
        ...

    @property
    def requires_grad(self) -> bool:
        """
        Indicate whether gradients flow into this variable.
        """
        ...

    @property
    def node(self) -> Optional[Any]:
        """
        Return the producing graph node, or None for leaves.
        """
        ...

    def backward(self, grad: Optional[ITensor] = None, retain_graph: bool = False) -> None:
        """
        Propagate gradients from this variable through the graph.
        """
        ...
