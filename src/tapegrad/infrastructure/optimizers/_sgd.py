"""
Stochastic Gradient Descent (SGD) optimizer.

`SGD` implements the optimizer update protocol: given a parameter, its fully
accumulated gradient and a learning rate, it updates ``parameter.data`` in
place on the parameter's own device and scalar type. It can be driven either
per parameter through `update` (which is what `Module.update` does) or over a
managed parameter list through `step`.

Design notes
------------
- Momentum buffers are per-parameter state created lazily on first update.
- Weight decay is classical (coupled) L2 regularization.
- `step()` clears each parameter's gradient after applying its update, the
  same contract as `Module.update`.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from ...domain._errors import ConfigurationError
from ...domain._parameter import IParameter
from ..tensor._tensor import Tensor
from ._state import ordered_parameters, restore_tensor, state_entries


class SGD:
    """
    Stochastic Gradient Descent with optional momentum.

    Update rule
    -----------
    For each parameter ``p`` with gradient ``g``:

    - ``g <- g + weight_decay * p``   (if ``weight_decay > 0``)
    - ``b <- momentum * b + g``; ``g <- b``   (if ``momentum > 0``)
    - ``p <- p - lr * g``

    Parameters
    ----------
    params : Iterable[IParameter], optional
        Parameters managed by `step` / `zero_grad`. May be omitted when the
        optimizer is only driven through `update`.
    lr : float, optional
        Default learning rate used by `step`. Must be > 0. Defaults to 1e-3.
    momentum : float, optional
        Momentum factor in ``[0, 1)``. Defaults to 0.0.
    weight_decay : float, optional
        L2 coefficient, >= 0. Defaults to 0.0.

    Raises
    ------
    ConfigurationError
        If a hyperparameter is out of range.
    """

    def __init__(
        self,
        params: Optional[Iterable[IParameter]] = None,
        *,
        lr: float = 1e-3,
        momentum: float = 0.0,
        weight_decay: float = 0.0,
    ) -> None:
        self.params: List[IParameter] = list(params or [])
        self.lr = float(lr)
        self.momentum = float(momentum)
        self.weight_decay = float(weight_decay)

        if self.lr <= 0.0:
            raise ConfigurationError("SGD", f"lr must be > 0, got {self.lr}")
        if not 0.0 <= self.momentum < 1.0:
            raise ConfigurationError("SGD", f"momentum must be in [0, 1), got {self.momentum}")
        if self.weight_decay < 0.0:
            raise ConfigurationError("SGD", f"weight_decay must be >= 0, got {self.weight_decay}")

        self._state: Dict[int, Dict[str, Any]] = {}

    def update(self, parameter: IParameter, grad: Tensor, learning_rate: float) -> None:
        """
        Apply one SGD update to `parameter` in place.
        """
        p = parameter.data
        g = grad
        if self.weight_decay != 0.0:
            g = g.add(p.mul(self.weight_decay))
        if self.momentum != 0.0:
            st = self._state.get(id(parameter))
            if st is None:
                buf = g.clone()
                self._state[id(parameter)] = {"momentum_buffer": buf}
            else:
                buf = st["momentum_buffer"]
                buf.mul_(self.momentum)
                buf.add_(g)
            g = buf
        p.scaled_add_(-float(learning_rate), g)

    def step(self) -> None:
        """
        Update every managed parameter that has a gradient, then clear it.
        """
        for p in self.params:
            if p.grad is not None:
                self.update(p, p.grad, self.lr)
            p.zero_grad()

    def zero_grad(self) -> None:
        for p in self.params:
            p.zero_grad()

    def state_dict(self, parameters: Optional[Iterable[IParameter]] = None) -> Dict[str, Any]:
        """
        Hyperparameters and per-parameter buffers as host arrays.

        Parameters
        ----------
        parameters : Iterable[IParameter], optional
            Parameter order used to index the buffers. Defaults to the
            managed list; pass ``module.parameters()`` when the optimizer is
            driven through `Module.update`.

        Returns
        -------
        dict
            ``"state"`` maps a parameter's position in that order to its
            buffers. Parameters without state are omitted.
        """
        order = ordered_parameters("SGD", self.params, parameters)
        state = {}
        for i, p in enumerate(order):
            st = self._state.get(id(p))
            if st is not None:
                state[i] = {"momentum_buffer": st["momentum_buffer"].to_numpy()}
        return {
            "lr": self.lr,
            "momentum": self.momentum,
            "weight_decay": self.weight_decay,
            "state": state,
        }

    def load_state_dict(
        self, state: Dict[str, Any], parameters: Optional[Iterable[IParameter]] = None
    ) -> None:
        """
        Restore hyperparameters and buffers saved by `state_dict`.

        Buffers are rebuilt on each parameter's device and scalar type.
        Existing state is discarded.
        """
        order = ordered_parameters("SGD", self.params, parameters)
        restored: Dict[int, Dict[str, Any]] = {}
        for idx, p, entry in state_entries("SGD", state, order):
            buf = restore_tensor("SGD", idx, "momentum_buffer", entry["momentum_buffer"], p)
            restored[id(p)] = {"momentum_buffer": buf}
        self.lr = float(state.get("lr", self.lr))
        self.momentum = float(state.get("momentum", self.momentum))
        self.weight_decay = float(state.get("weight_decay", self.weight_decay))
        self._state = restored
