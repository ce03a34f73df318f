"""
Module (layer) interface definitions.

This module defines the domain-level interface for neural network layers using
structural subtyping via `typing.Protocol`.

Any object that implements the required methods is considered a valid layer,
independent of inheritance, enabling flexible composition and clean separation
between domain contracts and infrastructure implementations.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from ._parameter import IParameter


@runtime_checkable
class IModule(Protocol):
    """
    Domain-level layer interface.

    A layer is a composable unit of computation. Primitive layers own
    parameters directly; composite layers own other layers and delegate.

    Notes
    -----
    - Parameter enumeration order must be deterministic and stable across
      calls; optimizer state alignment and serialization depend on it.
    - Training mode propagates top-down to every sub-layer and takes effect on
      the next forward call.
    """

    training: bool

    def forward(self, *inputs: Any) -> Any:
        """
        Execute the forward computation on input variables.
        """
        ...

    def parameters(self) -> Iterable[IParameter]:
        """
        Return the trainable parameters of this layer and its sub-layers,
        depth-first, each exactly once.
        """
        ...

    def visit_parameters(self, visitor: Callable[[IParameter], None]) -> None:
        """
        Apply `visitor` to each trainable parameter in traversal order.
        """
        ...

    def train(self, mode: bool = True) -> "IModule":
        """
        Set the training-mode flag on this layer and all sub-layers.
        """
        ...
