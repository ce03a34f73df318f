"""
Domain-level optimizer contracts for tapegrad.

This module defines the `IOptimizer` protocol. The core only fixes the *update
protocol*: a (parameter, gradient, learning rate) triple is sufficient input
to an update call. Numeric update rules and their persistent state belong to
concrete optimizers.

Notes
-----
- The gradient handed to `update` is fully accumulated (backward has
  finished summing all contributions).
- The update is applied on the parameter's own device and scalar type; no
  cross-device transfer is performed implicitly.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable

from ._parameter import IParameter
from ._tensor import ITensor


@runtime_checkable
class IOptimizer(Protocol):
    """
    Optimizer interface contract.
    """

    def update(self, parameter: IParameter, grad: ITensor, learning_rate: float) -> None:
        """
        Update `parameter.data` in place from `grad` using `learning_rate`.
        """
        ...

    def state_dict(self) -> Dict[str, Any]:
        """
        Return a structural snapshot of optimizer state for external
        serializers.
        """
        ...

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        """
        Restore state produced by `state_dict`, aligned by parameter order.
        """
        ...
