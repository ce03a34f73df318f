"""
Concrete trainable parameter implementation.

A `Parameter` is a leaf `Variable` that participates in optimization. It is
the object type `Module.parameters()` yields and optimizers update.

Design notes
------------
- `Parameter` subclasses `Variable`, so it flows through tracked operations
  like any other variable.
- `requires_grad` defaults to True; setting it to False freezes the parameter
  and removes it from the module traversal visitor without changing module
  structure.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from ..domain._parameter import IParameter
from ..domain._scalar_type import ScalarType
from ..domain.device._device import Device
from ._variable import Variable
from .tensor._tensor import Tensor


class Parameter(Variable, IParameter):
    """
    Trainable leaf variable.

    Parameters
    ----------
    data : Tensor
        Initial value. Must hold a float scalar type.
    requires_grad : bool, optional
        Whether this parameter is trainable. Defaults to True.
    """

    def __init__(self, data: Tensor, requires_grad: bool = True) -> None:
        super().__init__(data, requires_grad=requires_grad)

    @classmethod
    def from_numpy(
        cls,
        arr: Any,
        device: Union[str, Device] = "host",
        scalar_type: Optional[Union[str, ScalarType]] = None,
        requires_grad: bool = True,
    ) -> "Parameter":
        return cls(Tensor.from_numpy(arr, device, scalar_type), requires_grad=requires_grad)

    def __repr__(self) -> str:
        return (
            f"Parameter(shape={self.shape}, scalar_type={self.scalar_type}, "
            f"device={self.device}, requires_grad={self.requires_grad})"
        )
