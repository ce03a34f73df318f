"""
Weight initializer registry.

Initializers are registered by name with a decorator and mutate a tensor in
place from host-drawn samples. Layers resolve them by name at construction
time, so new strategies plug in without touching layer code.

Usage
-----
    @WeightInitializer.register_initializer("ones")
    def ones(tensor, rng):
        tensor.fill_(1)
        return tensor

    WeightInitializer("xavier_uniform")(weight, rng)
"""

from __future__ import annotations

from typing import Callable, ClassVar, Dict
import math

import numpy as np

from ...domain._errors import ConfigurationError
from ..tensor._tensor import Tensor

Initializer = Callable[[Tensor, np.random.Generator], Tensor]


def _fans(shape: tuple[int, ...]) -> tuple[int, int]:
    # weights are laid out (inputs, outputs)
    if len(shape) < 2:
        n = max(1, shape[0] if shape else 1)
        return n, n
    receptive = math.prod(shape[2:]) if len(shape) > 2 else 1
    return max(1, shape[0] * receptive), max(1, shape[1] * receptive)


class WeightInitializer:
    """
    Registry-backed weight initializer dispatcher.

    Raises
    ------
    ConfigurationError
        If `name` is not registered.
    """

    INITIALIZERS: ClassVar[Dict[str, Initializer]] = {}

    def __init__(self, name: str) -> None:
        try:
            self._initializer = self.INITIALIZERS[name]
        except KeyError:
            raise ConfigurationError(
                "WeightInitializer",
                f"unsupported initializer {name!r}; available: {', '.join(self.available())}",
            ) from None
        self.name = name

    @classmethod
    def register_initializer(cls, name: str, *, overwrite: bool = False):
        def decorator(func: Initializer) -> Initializer:
            if not overwrite and name in cls.INITIALIZERS:
                raise ValueError(f"Initializer already registered: {name!r}")
            cls.INITIALIZERS[name] = func
            return func

        return decorator

    @classmethod
    def available(cls) -> tuple[str, ...]:
        return tuple(sorted(cls.INITIALIZERS))

    def __call__(self, tensor: Tensor, rng: np.random.Generator) -> Tensor:
        return self._initializer(tensor, rng)


@WeightInitializer.register_initializer("zeros")
def zeros(tensor: Tensor, rng: np.random.Generator) -> Tensor:
    return tensor.fill_(0)


@WeightInitializer.register_initializer("xavier_uniform")
def xavier_uniform(tensor: Tensor, rng: np.random.Generator) -> Tensor:
    """
    Glorot uniform: ``U(-a, a)`` with ``a = sqrt(6 / (fan_in + fan_out))``.
    """
    fan_in, fan_out = _fans(tensor.shape)
    limit = math.sqrt(6.0 / (fan_in + fan_out))
    tensor.copy_from_numpy(rng.uniform(-limit, limit, size=tensor.shape))
    return tensor


@WeightInitializer.register_initializer("he_normal")
def he_normal(tensor: Tensor, rng: np.random.Generator) -> Tensor:
    """
    Kaiming normal for ReLU: ``N(0, 2 / fan_in)``.
    """
    fan_in, _ = _fans(tensor.shape)
    tensor.copy_from_numpy(rng.normal(0.0, math.sqrt(2.0 / fan_in), size=tensor.shape))
    return tensor
