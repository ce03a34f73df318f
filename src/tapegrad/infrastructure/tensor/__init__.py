"""
Tensor package: storage, shape helpers and the concrete `Tensor`.
"""

from ._storage import Storage
from ._tensor import Tensor, as_device, as_scalar_type

__all__ = [
    Storage.__name__,
    Tensor.__name__,
    "as_device",
    "as_scalar_type",
]
