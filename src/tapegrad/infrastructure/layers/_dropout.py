"""
Dropout regularization layer.

Inverted dropout: during training, elements are zeroed with probability `p`
and survivors are scaled by ``1 / (1 - p)`` so the expected activation is
unchanged; in evaluation mode the layer is the identity. The mask is applied
through a tracked multiply, so backward routes gradients through the same
mask used in forward.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np

from ...domain._errors import ConfigurationError
from .._module import Module
from .._variable import Variable, as_variable
from ..module._serialization_core import register_module
from ..tensor._tensor import Tensor


@register_module()
class Dropout(Module):
    """
    Dropout layer (inverted dropout).

    Parameters
    ----------
    p : float, optional
        Probability of zeroing an element, in ``[0, 1)``. Defaults to 0.5.
    seed : Optional[int], optional
        Seed for the mask generator.

    Raises
    ------
    ConfigurationError
        If `p` is outside ``[0, 1)``.
    """

    def __init__(self, p: float = 0.5, seed: Optional[int] = None) -> None:
        super().__init__()
        if not 0.0 <= p < 1.0:
            raise ConfigurationError("Dropout", f"p must be in [0, 1), got {p}")
        self.p = float(p)
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def forward(self, x) -> Variable:
        v = as_variable(x)
        if not self.training or self.p == 0.0:
            return v
        keep = self._rng.random(v.shape) >= self.p
        mask = Tensor.from_numpy(keep / (1.0 - self.p), v.device, v.scalar_type)
        return v.mul(mask)

    def get_config(self) -> Dict[str, Any]:
        return {"p": self.p, "seed": self.seed}

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "Dropout":
        return cls(**cfg)
