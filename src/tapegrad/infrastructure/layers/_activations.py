"""
Parameter-free activation layers.
"""

from __future__ import annotations

from typing import Any, Dict

from .._module import Module
from .._variable import Variable, as_variable
from ..module._serialization_core import register_module


class _Activation(Module):
    def get_config(self) -> Dict[str, Any]:
        return {}

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "_Activation":
        return cls()


@register_module()
class ReLU(_Activation):
    def forward(self, x) -> Variable:
        return as_variable(x).relu()


@register_module()
class Sigmoid(_Activation):
    def forward(self, x) -> Variable:
        return as_variable(x).sigmoid()


@register_module()
class Tanh(_Activation):
    def forward(self, x) -> Variable:
        return as_variable(x).tanh()


@register_module()
class Flatten(_Activation):
    """
    Collapse every dimension after the first (batch) dimension.
    """

    def forward(self, x) -> Variable:
        v = as_variable(x)
        if not v.data.is_contiguous():
            v = v.clone()
        return v.reshape(v.shape[0], -1)
