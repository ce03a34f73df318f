"""
Concrete Tensor implementation.

A `Tensor` is a typed, strided view over reference-counted backend storage,
bound to exactly one `Device`. The backend serving that device is resolved
from the device value at construction time and every primitive is dispatched
through it (`map`, `zip`, `reduce`, `contract`, `cast`, `copy`, `write`...).

Tensors are *raw*: no operation on a Tensor ever records autograd history.
`Variable` (see `tapegrad.infrastructure._variable`) is the tracked wrapper.

Design notes
------------
- Views (reshape, permute, narrow, indexing, broadcast_to, squeeze,
  unsqueeze) share storage with their base. Mutation through any alias is
  visible through every other alias immediately; `clone()` / `into_owned()`
  give exclusive storage explicitly.
- Every binary operation validates device, scalar type and shape before
  dispatch. There is no implicit transfer and no implicit cast; Python scalars
  are lifted into 0-d tensors of the receiver's scalar type and device.
- On accelerator devices every operation returns once the work is enqueued;
  `to_numpy()`, `item()` and `synchronize()` are synchronization points.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Union
import logging
import numbers
import weakref

import numpy as np

from ...domain._backend import ViewSpec
from ...domain._errors import (
    DeviceMismatchError,
    ShapeMismatchError,
    TypeMismatchError,
    UnsupportedOperationError,
)
from ...domain._scalar_type import ScalarType
from ...domain._tensor import ITensor, Number
from ...domain.device._device import Device
from ..backends import backend_for
from ._shapes import (
    broadcast_shapes,
    contiguous_strides,
    infer_reshape,
    is_contiguous,
    max_extent,
    normalize_axis,
    normalize_shape,
    numel_of,
)
from ._storage import Storage
from .mixins import TensorMixinElementwise, TensorMixinLinalg, TensorMixinReduction

logger = logging.getLogger(__name__)

DeviceArg = Union[str, Device]


def as_scalar_type(value: Union[str, ScalarType]) -> ScalarType:
    if isinstance(value, ScalarType):
        return value
    return ScalarType.from_name(value)


def as_device(value: DeviceArg) -> Device:
    return value if isinstance(value, Device) else Device(value)


class Tensor(TensorMixinElementwise, TensorMixinReduction, TensorMixinLinalg, ITensor):
    """
    Strided, typed, device-resident n-dimensional array.

    Parameters
    ----------
    shape : int or Sequence[int]
        Tensor shape. Dimensions must be non-negative.
    device : str or Device, optional
        Placement ("host", "cpu", "accel:N"). Defaults to host.
    scalar_type : ScalarType or str, optional
        Element type. Defaults to F32.

    Notes
    -----
    The constructor allocates zero-filled storage. Use the factory
    classmethods (`from_numpy`, `full`, `rand`...) to build tensors from data.
    """

    def __init__(
        self,
        shape: Union[int, Sequence[int]],
        device: DeviceArg = "host",
        *,
        scalar_type: Union[str, ScalarType] = ScalarType.F32,
    ) -> None:
        dev = as_device(device)
        st = as_scalar_type(scalar_type)
        shape = normalize_shape(shape, "Tensor")
        backend = backend_for(dev)
        n = numel_of(shape)
        storage = Storage(backend, backend.allocate(n, st), n, st)
        self._attach(storage, dev, shape, contiguous_strides(shape), 0)

    # ------------------------------------------------------------------
    # construction internals
    # ------------------------------------------------------------------
    def _attach(
        self,
        storage: Storage,
        device: Device,
        shape: tuple[int, ...],
        strides: tuple[int, ...],
        offset: int,
    ) -> None:
        if len(shape) != len(strides):
            raise ShapeMismatchError("view", shape, strides, detail="rank of strides differs")
        if max_extent(shape, strides, offset) > storage.numel:
            raise ShapeMismatchError(
                "view",
                shape,
                (storage.numel,),
                detail="view exceeds storage capacity",
            )
        self._storage = storage
        self._device = device
        self._shape = tuple(int(d) for d in shape)
        self._strides = tuple(int(s) for s in strides)
        self._offset = int(offset)
        storage.incref()
        weakref.finalize(self, storage.decref)

    @classmethod
    def _from_storage(
        cls,
        storage: Storage,
        device: Device,
        shape: tuple[int, ...],
        strides: tuple[int, ...],
        offset: int = 0,
    ) -> "Tensor":
        """
        Construct a view over existing storage without copying.
        """
        obj = cls.__new__(cls)
        obj._attach(storage, device, shape, strides, offset)
        return obj

    @classmethod
    def _from_buffer(
        cls,
        backend: Any,
        buffer: Any,
        device: Device,
        shape: tuple[int, ...],
        scalar_type: ScalarType,
    ) -> "Tensor":
        """
        Wrap a fresh contiguous backend buffer as a new exclusively-owned tensor.
        """
        n = numel_of(shape)
        storage = Storage(backend, buffer, n, scalar_type)
        return cls._from_storage(storage, device, shape, contiguous_strides(shape), 0)

    def _backend(self):
        return backend_for(self._device)

    def _view(self) -> ViewSpec:
        return ViewSpec(
            self._storage.buffer,
            self._shape,
            self._strides,
            self._offset,
            self._storage.scalar_type,
        )

    def _new(self, buffer: Any, shape: tuple[int, ...], scalar_type: Optional[ScalarType] = None) -> "Tensor":
        return Tensor._from_buffer(
            self._backend(),
            buffer,
            self._device,
            tuple(shape),
            scalar_type or self.scalar_type,
        )

    def _restride(self, shape: Sequence[int], strides: Sequence[int], offset: Optional[int] = None) -> "Tensor":
        return Tensor._from_storage(
            self._storage,
            self._device,
            tuple(shape),
            tuple(strides),
            self._offset if offset is None else offset,
        )

    # ------------------------------------------------------------------
    # factories
    # ------------------------------------------------------------------
    @classmethod
    def from_numpy(
        cls,
        arr: Any,
        device: DeviceArg = "host",
        scalar_type: Optional[Union[str, ScalarType]] = None,
    ) -> "Tensor":
        """
        Build a tensor holding a copy of `arr`.

        Parameters
        ----------
        arr : array_like
            Source data.
        device : str or Device, optional
            Target device. Defaults to host.
        scalar_type : ScalarType or str, optional
            Element type. Inferred from ``arr.dtype`` when omitted (bool maps
            to U8).

        Raises
        ------
        ValueError
            If the dtype has no scalar type counterpart and none is given.
        """
        a = np.asarray(arr)
        if scalar_type is None:
            st = ScalarType.U8 if a.dtype == np.bool_ else ScalarType.from_numpy_dtype(a.dtype)
        else:
            st = as_scalar_type(scalar_type)
        dev = as_device(device)
        backend = backend_for(dev)
        shape = tuple(int(d) for d in a.shape)
        return cls._from_buffer(backend, backend.upload(a, st), dev, shape, st)

    @classmethod
    def zeros(cls, shape, device: DeviceArg = "host", scalar_type=ScalarType.F32) -> "Tensor":
        return cls(shape, device, scalar_type=scalar_type)

    @classmethod
    def full(cls, shape, value: Number, device: DeviceArg = "host", scalar_type=ScalarType.F32) -> "Tensor":
        t = cls(shape, device, scalar_type=scalar_type)
        t.fill_(value)
        return t

    @classmethod
    def ones(cls, shape, device: DeviceArg = "host", scalar_type=ScalarType.F32) -> "Tensor":
        return cls.full(shape, 1, device, scalar_type)

    @classmethod
    def zeros_like(cls, other: "Tensor") -> "Tensor":
        return cls(other.shape, other.device, scalar_type=other.scalar_type)

    @classmethod
    def rand(
        cls,
        shape,
        device: DeviceArg = "host",
        scalar_type=ScalarType.F32,
        rng: Optional[np.random.Generator] = None,
    ) -> "Tensor":
        """
        Uniform samples from [0, 1), drawn on the host with `rng`.
        """
        rng = rng or np.random.default_rng()
        return cls.from_numpy(rng.random(normalize_shape(shape)), device, scalar_type)

    @classmethod
    def randn(
        cls,
        shape,
        device: DeviceArg = "host",
        scalar_type=ScalarType.F32,
        rng: Optional[np.random.Generator] = None,
    ) -> "Tensor":
        """
        Standard normal samples, drawn on the host with `rng`.
        """
        rng = rng or np.random.default_rng()
        return cls.from_numpy(rng.standard_normal(normalize_shape(shape)), device, scalar_type)

    @classmethod
    def arange(
        cls,
        start: Number,
        stop: Optional[Number] = None,
        step: Number = 1,
        *,
        device: DeviceArg = "host",
        scalar_type=ScalarType.F32,
    ) -> "Tensor":
        if stop is None:
            start, stop = 0, start
        return cls.from_numpy(np.arange(start, stop, step), device, scalar_type)

    # ------------------------------------------------------------------
    # metadata
    # ------------------------------------------------------------------
    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def strides(self) -> tuple[int, ...]:
        return self._strides

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def ndim(self) -> int:
        return len(self._shape)

    @property
    def scalar_type(self) -> ScalarType:
        return self._storage.scalar_type

    @property
    def dtype(self) -> np.dtype:
        """
        NumPy storage dtype (float32 for BF16).
        """
        return self.scalar_type.numpy_dtype

    @property
    def device(self) -> Device:
        return self._device

    @property
    def storage(self) -> Storage:
        return self._storage

    def numel(self) -> int:
        return numel_of(self._shape)

    def __len__(self) -> int:
        if not self._shape:
            raise TypeError("len() of a 0-d tensor")
        return self._shape[0]

    def is_contiguous(self) -> bool:
        return is_contiguous(self._shape, self._strides)

    def is_shared(self) -> bool:
        """
        True if another live tensor aliases the same storage.
        """
        return self._storage.refcount > 1

    def __repr__(self) -> str:
        return (
            f"Tensor(shape={self._shape}, scalar_type={self.scalar_type}, "
            f"device={self._device})"
        )

    # ------------------------------------------------------------------
    # validation helpers
    # ------------------------------------------------------------------
    def _lift(self, other: Any, op: str) -> "Tensor":
        """
        Return `other` as a Tensor, lifting Python scalars to 0-d tensors.

        Raises
        ------
        TypeMismatchError
            If a non-integral float is combined with an integer tensor.
        TypeError
            If `other` is neither a Tensor nor a real number.
        """
        if isinstance(other, Tensor):
            return other
        if isinstance(other, numbers.Real):
            st = self.scalar_type
            if not st.is_float and not float(other).is_integer():
                raise TypeMismatchError(op, st, "float")
            return Tensor.full((), other, self._device, st)
        raise TypeError(f"{op}: unsupported operand type {type(other).__name__}")

    def _check_compatible(self, other: "Tensor", op: str) -> None:
        if self._device != other._device:
            raise DeviceMismatchError(str(self._device), str(other._device), op)
        if self.scalar_type is not other.scalar_type:
            raise TypeMismatchError(op, self.scalar_type, other.scalar_type)

    def _check_writable(self, op: str) -> None:
        if any(s == 0 and d > 1 for d, s in zip(self._shape, self._strides)):
            raise UnsupportedOperationError(
                op, "cannot write into a broadcast (stride-0) view; clone() it first"
            )

    # ------------------------------------------------------------------
    # I/O and synchronization
    # ------------------------------------------------------------------
    def to_numpy(self) -> np.ndarray:
        """
        Copy the elements into a new host array (synchronization point).
        """
        return self._backend().download(self._view())

    def item(self) -> Number:
        """
        Return the single element as a Python scalar.

        Raises
        ------
        ShapeMismatchError
            If the tensor does not hold exactly one element.
        """
        if self.numel() != 1:
            raise ShapeMismatchError("item", self._shape, detail="expected exactly one element")
        return self.to_numpy().reshape(()).item()

    def synchronize(self) -> None:
        """
        Block until all work queued on this tensor's device has completed.
        """
        self._backend().synchronize()

    def fill_(self, value: Number) -> "Tensor":
        """
        Set every element to `value` in place.
        """
        self._check_writable("fill_")
        self._backend().fill(self._view(), value)
        return self

    fill = fill_

    def copy_from(self, other: "Tensor", *, allow_cross_device: bool = False) -> None:
        """
        Overwrite this tensor's elements in place from `other`.

        Parameters
        ----------
        other : Tensor
            Source of identical shape and scalar type.
        allow_cross_device : bool, optional
            Permit an explicit transfer when `other` lives on another device.
            Defaults to False.

        Raises
        ------
        ShapeMismatchError
            If shapes differ.
        TypeMismatchError
            If scalar types differ.
        DeviceMismatchError
            If devices differ and `allow_cross_device` is False.
        """
        if other.shape != self._shape:
            raise ShapeMismatchError("copy_from", self._shape, other.shape)
        if other.device != self._device:
            if not allow_cross_device:
                raise DeviceMismatchError(str(self._device), str(other.device), "copy_from")
            other = other.to(self._device)
        self._check_compatible(other, "copy_from")
        self._check_writable("copy_from")
        self._backend().write(self._view(), other._view())

    def copy_from_numpy(self, arr: Any) -> None:
        """
        Overwrite this tensor's elements in place from a host array.

        Raises
        ------
        ShapeMismatchError
            If ``arr.shape`` differs from the tensor shape.
        """
        a = np.asarray(arr)
        if tuple(a.shape) != self._shape:
            raise ShapeMismatchError("copy_from_numpy", self._shape, a.shape)
        self.copy_from(Tensor.from_numpy(a, self._device, self.scalar_type))

    # ------------------------------------------------------------------
    # views
    # ------------------------------------------------------------------
    def reshape(self, *shape) -> "Tensor":
        """
        Return a view with a new shape (one dimension may be -1).

        Raises
        ------
        ShapeMismatchError
            If element counts differ or the tensor is not contiguous (call
            `contiguous()` first).
        """
        if len(shape) == 1 and not isinstance(shape[0], int):
            shape = tuple(shape[0])
        new = infer_reshape(self._shape, shape)
        if not self.is_contiguous():
            raise ShapeMismatchError(
                "reshape",
                self._shape,
                new,
                detail="strides are not compatible; call contiguous() first",
            )
        return self._restride(new, contiguous_strides(new))

    view = reshape

    def flatten(self) -> "Tensor":
        return self.contiguous().reshape(-1)

    def permute(self, *axes) -> "Tensor":
        """
        Return a view with dimensions reordered.
        """
        if len(axes) == 1 and not isinstance(axes[0], int):
            axes = tuple(axes[0])
        order = [normalize_axis(a, self.ndim, "permute", self._shape) for a in axes]
        if sorted(order) != list(range(self.ndim)):
            raise ShapeMismatchError(
                "permute", self._shape, detail=f"{tuple(axes)} is not a permutation"
            )
        return self._restride(
            [self._shape[a] for a in order], [self._strides[a] for a in order]
        )

    def transpose(self, axis0: int = -2, axis1: int = -1) -> "Tensor":
        """
        Return a view with two dimensions swapped.
        """
        a = normalize_axis(axis0, self.ndim, "transpose", self._shape)
        b = normalize_axis(axis1, self.ndim, "transpose", self._shape)
        order = list(range(self.ndim))
        order[a], order[b] = order[b], order[a]
        return self.permute(order)

    @property
    def T(self) -> "Tensor":
        """
        View with all dimensions reversed.
        """
        return self.permute(list(reversed(range(self.ndim))))

    def narrow(self, axis: int, start: int, length: int) -> "Tensor":
        """
        Return the view ``[start, start + length)`` along `axis`.

        Raises
        ------
        ShapeMismatchError
            If the range falls outside the dimension.
        """
        ax = normalize_axis(axis, self.ndim, "narrow", self._shape)
        start = int(start)
        length = int(length)
        if start < 0 or length < 0 or start + length > self._shape[ax]:
            raise ShapeMismatchError(
                "narrow",
                self._shape,
                detail=f"range [{start}, {start + length}) out of bounds on axis {ax}",
            )
        shape = list(self._shape)
        shape[ax] = length
        return self._restride(shape, self._strides, self._offset + start * self._strides[ax])

    def __getitem__(self, key) -> "Tensor":
        """
        Basic indexing with ints and positive-step slices; always a view.
        """
        if not isinstance(key, tuple):
            key = (key,)
        if len(key) > self.ndim:
            raise IndexError(f"too many indices for tensor of rank {self.ndim}")
        shape: list[int] = []
        strides: list[int] = []
        offset = self._offset
        for i, k in enumerate(key):
            d, s = self._shape[i], self._strides[i]
            if isinstance(k, slice):
                start, stop, step = k.indices(d)
                if step <= 0:
                    raise UnsupportedOperationError("getitem", "only positive slice steps are supported")
                shape.append(len(range(start, stop, step)))
                strides.append(s * step)
                if shape[-1]:
                    offset += start * s
            elif isinstance(k, numbers.Integral) and not isinstance(k, bool):
                idx = int(k) + d if k < 0 else int(k)
                if not 0 <= idx < d:
                    raise IndexError(f"index {k} out of range for axis {i} of size {d}")
                offset += idx * s
            else:
                raise UnsupportedOperationError(
                    "getitem", f"unsupported index type {type(k).__name__}"
                )
        shape.extend(self._shape[len(key):])
        strides.extend(self._strides[len(key):])
        return self._restride(shape, strides, offset)

    def broadcast_to(self, shape: Sequence[int]) -> "Tensor":
        """
        Return a read-only stride-0 view expanded to `shape`.

        Raises
        ------
        ShapeMismatchError
            If this tensor cannot be broadcast to `shape`.
        """
        target = normalize_shape(shape, "broadcast_to")
        if len(target) < self.ndim or broadcast_shapes("broadcast_to", self._shape, target) != target:
            raise ShapeMismatchError("broadcast_to", self._shape, target)
        pad = len(target) - self.ndim
        strides = [0] * pad
        for d, s, t in zip(self._shape, self._strides, target[pad:]):
            strides.append(0 if d == 1 and t != 1 else s)
        return self._restride(target, strides)

    def squeeze(self, axis: Optional[int] = None) -> "Tensor":
        if axis is None:
            keep = [i for i, d in enumerate(self._shape) if d != 1]
        else:
            ax = normalize_axis(axis, self.ndim, "squeeze", self._shape)
            if self._shape[ax] != 1:
                raise ShapeMismatchError("squeeze", self._shape, detail=f"axis {ax} has size {self._shape[ax]}")
            keep = [i for i in range(self.ndim) if i != ax]
        return self._restride([self._shape[i] for i in keep], [self._strides[i] for i in keep])

    def unsqueeze(self, axis: int) -> "Tensor":
        ax = normalize_axis(axis, self.ndim + 1, "unsqueeze", self._shape)
        shape = list(self._shape)
        strides = list(self._strides)
        shape.insert(ax, 1)
        strides.insert(ax, strides[ax] * shape[ax + 1] if ax < self.ndim else 1)
        return self._restride(shape, strides)

    # ------------------------------------------------------------------
    # copies and conversion
    # ------------------------------------------------------------------
    def contiguous(self) -> "Tensor":
        """
        Return self if already contiguous, otherwise a packed copy.
        """
        if self.is_contiguous():
            return self
        return self.clone()

    def clone(self) -> "Tensor":
        """
        Return a contiguous copy with exclusively owned storage.
        """
        return self._new(self._backend().copy(self._view()), self._shape)

    def into_owned(self) -> "Tensor":
        """
        Return a tensor guaranteed to own its storage exclusively.

        Copies only when the storage is aliased, strided, or larger than the
        view.
        """
        if (
            not self.is_shared()
            and self.is_contiguous()
            and self._offset == 0
            and self._storage.numel == self.numel()
        ):
            return self
        return self.clone()

    def cast(self, scalar_type: Union[str, ScalarType]) -> "Tensor":
        """
        Return a new tensor converted to `scalar_type` (always a copy).
        """
        st = as_scalar_type(scalar_type)
        return self._new(self._backend().cast(self._view(), st), self._shape, st)

    def to(self, device: DeviceArg) -> "Tensor":
        """
        Explicitly transfer to `device`; returns self when already there.
        """
        dev = as_device(device)
        if dev == self._device:
            return self
        logger.debug("transfer %s -> %s (%d elements)", self._device, dev, self.numel())
        return Tensor.from_numpy(self.to_numpy(), dev, self.scalar_type)

    # ------------------------------------------------------------------
    # primitive dispatch used by the mixins
    # ------------------------------------------------------------------
    def _map(self, kernel: str, **params: Any) -> "Tensor":
        return self._new(self._backend().map(kernel, self._view(), **params), self._shape)

    def _zip(self, kernel: str, other: Any) -> "Tensor":
        other = self._lift(other, kernel)
        self._check_compatible(other, kernel)
        out_shape = broadcast_shapes(kernel, self._shape, other.shape)
        buf = self._backend().zip(kernel, self._view(), other._view(), out_shape)
        return self._new(buf, out_shape)

    def _zip_(self, kernel: str, other: Any) -> "Tensor":
        other = self._lift(other, kernel + "_")
        self._check_compatible(other, kernel + "_")
        if broadcast_shapes(kernel + "_", self._shape, other.shape) != self._shape:
            raise ShapeMismatchError(
                kernel + "_", self._shape, other.shape, detail="result must keep the receiver's shape"
            )
        self._check_writable(kernel + "_")
        backend = self._backend()
        result = backend.zip(kernel, self._view(), other._view(), self._shape)
        tmp = self._new(result, self._shape)
        backend.write(self._view(), tmp._view())
        return self
