"""
Adam optimizer.

Adam keeps exponentially decaying averages of past gradients (first moment)
and squared gradients (second moment) per parameter, with bias correction.
All arithmetic runs as tensor operations on the parameter's own device and
scalar type, with the moments updated in place.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from ...domain._errors import ConfigurationError
from ...domain._parameter import IParameter
from ..tensor._tensor import Tensor
from ._state import ordered_parameters, restore_tensor, state_entries


class Adam:
    """
    Adam optimizer.

    Update rule
    -----------
    Let ``g_t`` be the gradient at step ``t``:

        m_t = beta1 * m_{t-1} + (1 - beta1) * g_t
        v_t = beta2 * v_{t-1} + (1 - beta2) * (g_t ** 2)
        m_hat = m_t / (1 - beta1^t)
        v_hat = v_t / (1 - beta2^t)
        p <- p - lr * m_hat / (sqrt(v_hat) + eps)

    If ``weight_decay > 0`` (classical L2): ``g_t <- g_t + weight_decay * p``.

    Parameters
    ----------
    params : Iterable[IParameter], optional
        Parameters managed by `step` / `zero_grad`.
    lr : float, optional
        Default learning rate used by `step`. Must be > 0. Defaults to 1e-3.
    betas : tuple[float, float], optional
        Decay rates, each in (0, 1). Defaults to (0.9, 0.999).
    eps : float, optional
        Denominator epsilon, > 0. Defaults to 1e-8.
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
        betas: Tuple[float, float] = (0.9, 0.999),
        eps: float = 1e-8,
        weight_decay: float = 0.0,
    ) -> None:
        self.params: List[IParameter] = list(params or [])
        self.lr = float(lr)
        self.betas = (float(betas[0]), float(betas[1]))
        self.eps = float(eps)
        self.weight_decay = float(weight_decay)

        b1, b2 = self.betas
        if self.lr <= 0.0:
            raise ConfigurationError("Adam", f"lr must be > 0, got {self.lr}")
        if not (0.0 < b1 < 1.0) or not (0.0 < b2 < 1.0):
            raise ConfigurationError("Adam", f"betas must be in (0,1), got {self.betas}")
        if self.eps <= 0.0:
            raise ConfigurationError("Adam", f"eps must be > 0, got {self.eps}")
        if self.weight_decay < 0.0:
            raise ConfigurationError("Adam", f"weight_decay must be >= 0, got {self.weight_decay}")

        # id(parameter) -> {"t": int, "m": Tensor, "v": Tensor}
        self._state: Dict[int, Dict[str, Any]] = {}

    def update(self, parameter: IParameter, grad: Tensor, learning_rate: float) -> None:
        """
        Apply one Adam update to `parameter` in place.
        """
        b1, b2 = self.betas
        p = parameter.data
        st = self._state.get(id(parameter))
        if st is None:
            st = {"t": 0, "m": Tensor.zeros_like(p), "v": Tensor.zeros_like(p)}
            self._state[id(parameter)] = st
        st["t"] += 1
        t = st["t"]
        m: Tensor = st["m"]
        v: Tensor = st["v"]

        g = grad
        if self.weight_decay != 0.0:
            g = g.add(p.mul(self.weight_decay))

        m.mul_(b1)
        m.scaled_add_(1.0 - b1, g)
        v.mul_(b2)
        v.scaled_add_(1.0 - b2, g.mul(g))

        m_hat = m.div(1.0 - b1**t)
        v_hat = v.div(1.0 - b2**t)
        p.scaled_add_(-float(learning_rate), m_hat.div(v_hat.sqrt().add(self.eps)))

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
        Hyperparameters and per-parameter moments as host arrays, indexed by
        position in `parameters` (defaults to the managed list).
        """
        order = ordered_parameters("Adam", self.params, parameters)
        state = {}
        for i, p in enumerate(order):
            st = self._state.get(id(p))
            if st is not None:
                state[i] = {"t": st["t"], "m": st["m"].to_numpy(), "v": st["v"].to_numpy()}
        return {
            "lr": self.lr,
            "betas": self.betas,
            "eps": self.eps,
            "weight_decay": self.weight_decay,
            "state": state,
        }

    def load_state_dict(
        self, state: Dict[str, Any], parameters: Optional[Iterable[IParameter]] = None
    ) -> None:
        """
        Restore hyperparameters, step counts and moments saved by `state_dict`.
        """
        order = ordered_parameters("Adam", self.params, parameters)
        restored: Dict[int, Dict[str, Any]] = {}
        for idx, p, entry in state_entries("Adam", state, order):
            restored[id(p)] = {
                "t": int(entry["t"]),
                "m": restore_tensor("Adam", idx, "m", entry["m"], p),
                "v": restore_tensor("Adam", idx, "v", entry["v"], p),
            }
        self.lr = float(state.get("lr", self.lr))
        betas = state.get("betas", self.betas)
        self.betas = (float(betas[0]), float(betas[1]))
        self.eps = float(state.get("eps", self.eps))
        self.weight_decay = float(state.get("weight_decay", self.weight_decay))
        self._state = restored
