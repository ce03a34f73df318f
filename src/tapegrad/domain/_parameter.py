"""
Trainable parameter interface definitions.

This module defines the domain-level interface for trainable parameters used
by optimization algorithms. The interface abstracts over concrete variable
implementations and backend details, providing a minimal, structural contract
for parameter management during training.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from ._tensor import ITensor


@runtime_checkable
class IParameter(Protocol):
    """
    Domain-level interface for trainable parameters.

    Notes
    -----
    - Parameters may be frozen or unfrozen via the `requires_grad` flag.
      Frozen parameters are skipped by the module traversal visitor.
    - Optimizers rely on this interface to discover and update parameters.
    """

    @property
    def data(self) -> ITensor:
        """
        Return the parameter value tensor (updated in place by optimizers).
        """
        ...

    @property
    def requires_grad(self) -> bool:
        """
        Indicate whether this parameter should accumulate gradients.
        """
        ...

    @requires_grad.setter
    def requires_grad(self, value: bool) -> None: ...

    @property
    def grad(self) -> Optional[ITensor]:
        """
        Return the gradient tensor associated with this parameter.

        The gradient is populated during backpropagation and may be None if it
        has not been computed yet or has been cleared.
        """
        ...

    def init_grad(self) -> None:
        """
        Allocate a zero gradient of matching shape/type/device if absent.
        """
        ...

    def zero_grad(self) -> None:
        """
        Clear the stored gradient.
        """
        ...
