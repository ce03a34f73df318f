"""
Fully connected layer.

`Linear` computes ``y = x @ W + b`` with ``W`` of shape ``(inputs, outputs)``
and an optional bias of shape ``(outputs,)`` broadcast over the leading
dimensions. Construction goes through `LinearConfig`, which validates every
option up front and reports inconsistencies as `ConfigurationError`; a
successfully built layer always has deterministic parameter shapes.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Union
import numpy as np

from ...domain._errors import ConfigurationError
from ...domain._scalar_type import ScalarType
from ...domain.device._device import Device
from .._module import Module
from .._parameter import Parameter
from .._variable import Variable, as_variable
from ..module._serialization_core import register_module
from ..tensor._tensor import Tensor
from ..utils._weight_initializer import WeightInitializer


@dataclass(frozen=True)
class LinearConfig:
    """
    Construction options for `Linear`.

    Attributes
    ----------
    inputs : int
        Size of the last input dimension. Must be positive.
    outputs : int
        Size of the last output dimension. Must be positive.
    bias : bool
        Whether to add a learnable bias. Defaults to True.
    device : str
        Device for the parameters. Defaults to "host".
    scalar_type : str
        Float scalar type name for the parameters. Defaults to "f32".
    init : str
        Name of a registered `WeightInitializer`.
    seed : Optional[int]
        Seed for the initializer's random generator.
    """

    inputs: int
    outputs: int
    bias: bool = True
    device: str = "host"
    scalar_type: str = "f32"
    init: str = "xavier_uniform"
    seed: Optional[int] = None

    def validate(self) -> "LinearConfig":
        """
        Raises
        ------
        ConfigurationError
            If any option is out of range or inconsistent.
        """
        if int(self.inputs) <= 0 or int(self.outputs) <= 0:
            raise ConfigurationError(
                "Linear", f"inputs and outputs must be positive, got {self.inputs}x{self.outputs}"
            )
        try:
            st = ScalarType.from_name(str(self.scalar_type))
            Device(self.device)
        except ValueError as exc:
            raise ConfigurationError("Linear", str(exc)) from exc
        if not st.is_float:
            raise ConfigurationError("Linear", f"parameters need a float scalar type, got '{st}'")
        WeightInitializer(self.init)
        return self


@register_module()
class Linear(Module):
    """
    Affine layer ``y = x @ W + b``.

    Parameters
    ----------
    config : LinearConfig
        Validated construction options.

    Raises
    ------
    ConfigurationError
        If `config` is invalid.
    """

    def __init__(self, config: LinearConfig) -> None:
        super().__init__()
        self.config = config.validate()
        st = ScalarType.from_name(config.scalar_type)
        weight = Tensor((config.inputs, config.outputs), config.device, scalar_type=st)
        WeightInitializer(config.init)(weight, np.random.default_rng(config.seed))
        self.weight = Parameter(weight)
        if config.bias:
            self.bias = Parameter(Tensor((config.outputs,), config.device, scalar_type=st))
        else:
            self.bias = None

    @classmethod
    def build(cls, inputs: int, outputs: int, **options: Any) -> "Linear":
        """
        Shorthand for ``Linear(LinearConfig(inputs, outputs, **options))``.
        """
        return cls(LinearConfig(inputs, outputs, **options))

    @property
    def in_features(self) -> int:
        return self.config.inputs

    @property
    def out_features(self) -> int:
        return self.config.outputs

    def forward(self, x: Union[Variable, Tensor]) -> Variable:
        y = as_variable(x).matmul(self.weight)
        if self.bias is not None:
            y = y.add(self.bias)
        return y

    def get_config(self) -> Dict[str, Any]:
        return asdict(self.config)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "Linear":
        return cls(LinearConfig(**cfg))
