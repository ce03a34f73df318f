"""
Tensor operation mixins.

Each mixin implements one family of operations on top of the primitive
dispatch helpers of `Tensor` (``_map``, ``_zip``, ``_zip_``, ``_backend``,
``_view``, ``_new``).
"""

from ._elementwise import TensorMixinElementwise
from ._linalg import TensorMixinLinalg
from ._reduction import TensorMixinReduction

__all__ = [
    TensorMixinElementwise.__name__,
    TensorMixinLinalg.__name__,
    TensorMixinReduction.__name__,
]
