"""
Sequential container module.

`Sequential` composes child modules and applies them in order:

    y = L_n(...L_2(L_1(x)))

It owns no parameters directly; parameter traversal recurses into the
children in insertion order, so the traversal order follows the layer order.

Notes
-----
The `_layers` list is the authoritative ordered view used by `forward()`.
During config rebuilds, `_post_load()` rebuilds `_layers` from `_modules`.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

from .._module import Module
from ..module._serialization_core import register_module


@register_module()
class Sequential(Module):
    """
    Ordered container of modules.

    Parameters
    ----------
    *layers : Module
        Child modules, applied in the given order.
    """

    accepts_children = True

    def __init__(self, *layers: Module) -> None:
        super().__init__()
        self._layers: List[Module] = []
        for layer in layers:
            self.add(layer)

    def add(self, layer: Module, name: Optional[str] = None) -> None:
        """
        Append a module and register it as a child.

        Raises
        ------
        TypeError
            If `layer` is not a `Module`.
        ValueError
            If `name` is already taken.
        """
        if not isinstance(layer, Module):
            raise TypeError(f"Sequential.add expects a Module, got: {type(layer)}")
        layer_name = name if name is not None else self._next_auto_name()
        if layer_name in self._modules:
            raise ValueError(f"Duplicate layer name '{layer_name}' in Sequential.")
        self._layers.append(layer)
        self.register_module(layer_name, layer)

    def _next_auto_name(self) -> str:
        idx = len(self._layers)
        while str(idx) in self._modules:
            idx += 1
        return str(idx)

    def forward(self, x):
        out = x
        for layer in self._layers:
            out = layer(out)
        return out

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Module]:
        return iter(self._layers)

    def __getitem__(self, idx: int) -> Module:
        return self._layers[idx]

    def layers(self) -> Tuple[Module, ...]:
        return tuple(self._layers)

    def get_config(self) -> Dict[str, Any]:
        # children travel in the config tree, not here
        return {}

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "Sequential":
        return cls()

    def _post_load(self) -> None:
        self._layers = list(self._modules.values())
