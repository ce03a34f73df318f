"""
Infrastructure module base class.

This module provides a concrete `Module` implementation that satisfies the
domain-level `IModule` protocol. It implements the conveniences every layer
shares:

- parameter and submodule registration (explicit, or implicit on attribute
  assignment)
- deterministic depth-first parameter traversal (`parameters`,
  `named_parameters`, `visit_parameters`)
- gradient initialization/clearing and the optimizer update step
- training-mode propagation
- `__call__` forwarding to `forward`
- structural reflection for external serializers (`get_config`,
  `state_dict`)

Traversal order
---------------
Own parameters come first, in registration order, followed by each child
module's parameters in child registration order. The order is stable across
calls, which optimizer state alignment and `state_dict` keys rely on.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Callable, Dict, Iterator, Optional

import numpy as np

from ..domain._errors import ShapeMismatchError
from ..domain._module import IModule
from ..domain._optimizers import IOptimizer
from ..domain._parameter import IParameter
from ._parameter import Parameter


class Module(IModule):
    """
    Infrastructure base class for layers/modules.

    Subclasses typically:
    - create `Parameter` instances and assign them as attributes,
    - assign child modules as attributes (composite layers),
    - implement `forward` using tracked `Variable` operations only.

    Attributes
    ----------
    training : bool
        Training-mode flag; layers whose behavior differs between training
        and inference consult it on every forward call.
    """

    def __init__(self) -> None:
        super().__setattr__("_parameters", {})
        super().__setattr__("_modules", {})
        super().__setattr__("training", True)

    def __setattr__(self, name: str, value) -> None:
        """
        Intercept attribute assignment to auto-register Parameters and child Modules.
        """
        if name in {"_parameters", "_modules"}:
            super().__setattr__(name, value)
            return

        if "_parameters" not in self.__dict__:
            raise AttributeError(
                f"{type(self).__name__}.__init__ must call super().__init__() "
                f"before assigning '{name}'"
            )

        if value is None:
            self._parameters.pop(name, None)
            self._modules.pop(name, None)
        elif isinstance(value, Parameter):
            self._modules.pop(name, None)
            self._parameters[name] = value
        elif isinstance(value, Module):
            self._parameters.pop(name, None)
            self._modules[name] = value

        super().__setattr__(name, value)

    def register_parameter(self, name: str, param: Optional[IParameter]) -> None:
        """
        Register a parameter under `name` (None is ignored).
        """
        if param is None:
            return
        self._parameters[name] = param
        super().__setattr__(name, param)

    def register_module(self, name: str, module: Optional["Module"]) -> None:
        """
        Register a child module under `name` (None is ignored).
        """
        if module is None:
            return
        self._modules[name] = module
        super().__setattr__(name, module)

    def children(self) -> Iterator["Module"]:
        return iter(self._modules.values())

    # ------------------------------------------------------------------
    # parameter traversal
    # ------------------------------------------------------------------
    def named_parameters(
        self, prefix: str = "", include_frozen: bool = False
    ) -> Iterator[tuple[str, IParameter]]:
        """
        Yield ``(qualified_name, parameter)`` pairs depth-first.

        Parameters
        ----------
        prefix : str
            Prefix prepended to names (used for recursion).
        include_frozen : bool, optional
            Also yield parameters with ``requires_grad=False``. Defaults to
            False.

        Notes
        -----
        A parameter object registered in several places is yielded once, at
        its first position.
        """
        seen: set[int] = set()
        for name, p in self._walk(prefix):
            if id(p) in seen:
                continue
            seen.add(id(p))
            if include_frozen or p.requires_grad:
                yield name, p

    def _walk(self, prefix: str) -> Iterator[tuple[str, IParameter]]:
        base = prefix + "." if prefix else ""
        for name, p in self._parameters.items():
            yield f"{base}{name}", p
        for child_name, child in self._modules.items():
            yield from child._walk(f"{base}{child_name}")

    def parameters(self, include_frozen: bool = False) -> Iterable[IParameter]:
        """
        Return this module's parameters and its sub-modules', depth-first.
        """
        for _, p in self.named_parameters(include_frozen=include_frozen):
            yield p

    def visit_parameters(self, visitor: Callable[[IParameter], None]) -> None:
        """
        Apply `visitor` to every trainable parameter in traversal order.
        """
        for p in self.parameters():
            visitor(p)

    def init_parameter_grads(self) -> None:
        """
        Allocate zero gradients for every trainable parameter.
        """
        self.visit_parameters(lambda p: p.init_grad())

    def zero_grad(self) -> None:
        """
        Clear the gradients of every trainable parameter.
        """
        self.visit_parameters(lambda p: p.zero_grad())

    def update(self, learning_rate: float, optimizer: IOptimizer) -> None:
        """
        Feed each (parameter, gradient, learning rate) triple to `optimizer`.

        Parameters without a gradient are skipped. Every visited parameter's
        gradient is cleared afterwards, ready for the next forward/backward
        cycle.
        """

        def apply(p: IParameter) -> None:
            if p.grad is not None:
                optimizer.update(p, p.grad, learning_rate)
            p.zero_grad()

        self.visit_parameters(apply)

    # ------------------------------------------------------------------
    # training mode
    # ------------------------------------------------------------------
    def train(self, mode: bool = True) -> "Module":
        """
        Set the training flag on this module and every sub-module.

        The flag is consulted at forward time, so it affects the next forward
        call only.
        """
        super().__setattr__("training", bool(mode))
        for child in self._modules.values():
            child.train(mode)
        return self

    def eval(self) -> "Module":
        return self.train(False)

    # ------------------------------------------------------------------
    # invocation
    # ------------------------------------------------------------------
    def forward(self, *inputs):
        """
        Execute the forward computation of the module.

        Subclasses must implement this.
        """
        raise NotImplementedError

    def __call__(self, *inputs):
        return self.forward(*inputs)

    # ------------------------------------------------------------------
    # serialization boundary
    # ------------------------------------------------------------------
    def get_config(self) -> Dict[str, Any]:
        """
        Return a JSON-serializable construction config for this module.

        Raises
        ------
        NotImplementedError
            If the module does not support config round-trips.
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} does not implement get_config()."
        )

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "Module":
        raise NotImplementedError(
            f"{cls.__name__} does not implement from_config()."
        )

    def state_dict(self) -> Dict[str, Dict[str, Any]]:
        """
        Snapshot every parameter (frozen ones included) by qualified name.

        Each entry carries ``shape``, ``scalar_type``, ``device``,
        ``requires_grad`` and the raw elements as a host array.
        """
        return {
            name: {
                "shape": p.data.shape,
                "scalar_type": str(p.data.scalar_type),
                "device": str(p.data.device),
                "requires_grad": p.requires_grad,
                "data": p.data.to_numpy(),
            }
            for name, p in self.named_parameters(include_frozen=True)
        }

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        """
        Restore parameter values in place from `state_dict()` output.

        Entries may be full snapshots or bare arrays.

        Raises
        ------
        KeyError
            If a parameter has no entry in `state`.
        ShapeMismatchError
            If an entry's shape differs from its parameter's.
        """
        for name, p in self.named_parameters(include_frozen=True):
            if name not in state:
                raise KeyError(f"missing parameter '{name}' in state")
            entry = state[name]
            arr = np.asarray(entry["data"] if isinstance(entry, dict) else entry)
            if tuple(arr.shape) != p.data.shape:
                raise ShapeMismatchError(f"load_state_dict[{name}]", p.data.shape, arr.shape)
            p.data.copy_from_numpy(arr)
            if isinstance(entry, dict) and "requires_grad" in entry:
                p.requires_grad = bool(entry["requires_grad"])
