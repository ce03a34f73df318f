"""
Backend-agnostic contracts: descriptors, protocols and the error taxonomy.
"""

from ._backend import IComputeBackend, ViewSpec
from ._errors import (
    AllocationError,
    ConfigurationError,
    DeviceMismatchError,
    DeviceNotSupportedError,
    GraphConsumedError,
    ShapeMismatchError,
    TapegradError,
    TypeMismatchError,
    UnsupportedOperationError,
)
from ._module import IModule
from ._optimizers import IOptimizer
from ._parameter import IParameter
from ._scalar_type import ScalarType
from ._tensor import Axes, ITensor, Number
from ._variable import IVariable
from .device import Device, DeviceLike, DeviceType

__all__ = [
    "AllocationError",
    "Axes",
    "ConfigurationError",
    "Device",
    "DeviceLike",
    "DeviceMismatchError",
    "DeviceNotSupportedError",
    "DeviceType",
    "GraphConsumedError",
    "IComputeBackend",
    "IModule",
    "IOptimizer",
    "IParameter",
    "ITensor",
    "IVariable",
    "Number",
    "ScalarType",
    "ShapeMismatchError",
    "TapegradError",
    "TypeMismatchError",
    "UnsupportedOperationError",
    "ViewSpec",
]
