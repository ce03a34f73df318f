"""
Scalar type descriptors.

`ScalarType` is the closed set of numeric representations a tensor can carry.
Every tensor carries exactly one. Operations between tensors require identical
scalar types; converting between them always goes through an explicit cast.

Notes
-----
NumPy has no native bfloat16 dtype, so ``BF16`` values live in float32 lanes
and every result is rounded back to bfloat16 precision by the kernels. The
logical element size is still reported as 2 bytes.
"""

from __future__ import annotations

from enum import Enum

import numpy as np


class ScalarType(Enum):
    """
    Enumeration of supported scalar (element) types.

    Attributes
    ----------
    U8, I8, U16, I16, U32, I32, U64, I64 : ScalarType
        Unsigned / signed integer types.
    F16, BF16, F32, F64 : ScalarType
        IEEE half, bfloat16, single and double precision floats.
    """

    U8 = "u8"
    I8 = "i8"
    U16 = "u16"
    I16 = "i16"
    F16 = "f16"
    BF16 = "bf16"
    U32 = "u32"
    I32 = "i32"
    F32 = "f32"
    U64 = "u64"
    I64 = "i64"
    F64 = "f64"

    @property
    def size(self) -> int:
        """
        Logical element size in bytes.
        """
        return _SIZES[self]

    @property
    def is_float(self) -> bool:
        return self in _FLOATS

    @property
    def is_signed(self) -> bool:
        return self.is_float or self.value.startswith("i")

    @property
    def is_reduced_precision(self) -> bool:
        """
        True for 16-bit float types (``F16``, ``BF16``).
        """
        return self in (ScalarType.F16, ScalarType.BF16)

    @property
    def numpy_dtype(self) -> np.dtype:
        """
        NumPy dtype used for element storage.

        Returns
        -------
        np.dtype
            Storage dtype. ``BF16`` maps to float32 lanes.
        """
        return _STORAGE_DTYPES[self]

    @classmethod
    def from_name(cls, name: str) -> "ScalarType":
        """
        Resolve a scalar type from its short name ("f32") or NumPy name ("float32").

        Raises
        ------
        ValueError
            If the name is not a known scalar type.
        """
        key = str(name).lower()
        for st in cls:
            if st.value == key:
                return st
        if key in _NUMPY_NAMES:
            return _NUMPY_NAMES[key]
        raise ValueError(f"Unknown scalar type '{name}'")

    @classmethod
    def from_numpy_dtype(cls, dtype) -> "ScalarType":
        """
        Map a NumPy dtype to its scalar type.

        Raises
        ------
        ValueError
            If the dtype has no scalar type counterpart (e.g. bool, complex).
        """
        return cls.from_name(np.dtype(dtype).name)

    def __str__(self) -> str:
        return self.value


_SIZES = {
    ScalarType.U8: 1,
    ScalarType.I8: 1,
    ScalarType.U16: 2,
    ScalarType.I16: 2,
    ScalarType.F16: 2,
    ScalarType.BF16: 2,
    ScalarType.U32: 4,
    ScalarType.I32: 4,
    ScalarType.F32: 4,
    ScalarType.U64: 8,
    ScalarType.I64: 8,
    ScalarType.F64: 8,
}

_FLOATS = frozenset({ScalarType.F16, ScalarType.BF16, ScalarType.F32, ScalarType.F64})

_STORAGE_DTYPES = {
    ScalarType.U8: np.dtype(np.uint8),
    ScalarType.I8: np.dtype(np.int8),
    ScalarType.U16: np.dtype(np.uint16),
    ScalarType.I16: np.dtype(np.int16),
    ScalarType.F16: np.dtype(np.float16),
    ScalarType.BF16: np.dtype(np.float32),
    ScalarType.U32: np.dtype(np.uint32),
    ScalarType.I32: np.dtype(np.int32),
    ScalarType.F32: np.dtype(np.float32),
    ScalarType.U64: np.dtype(np.uint64),
    ScalarType.I64: np.dtype(np.int64),
    ScalarType.F64: np.dtype(np.float64),
}

_NUMPY_NAMES = {
    "uint8": ScalarType.U8,
    "int8": ScalarType.I8,
    "uint16": ScalarType.U16,
    "int16": ScalarType.I16,
    "float16": ScalarType.F16,
    "bfloat16": ScalarType.BF16,
    "uint32": ScalarType.U32,
    "int32": ScalarType.I32,
    "float32": ScalarType.F32,
    "uint64": ScalarType.U64,
    "int64": ScalarType.I64,
    "float64": ScalarType.F64,
}
