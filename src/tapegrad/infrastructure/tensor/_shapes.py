"""
Shape, stride and axis helpers used by the tensor layer.

All helpers are pure functions over tuples of ints. Strides are expressed in
elements, not bytes.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union
import math

from ...domain._errors import ShapeMismatchError


def normalize_shape(shape: Union[int, Iterable[int]], op: str = "shape") -> tuple[int, ...]:
    """
    Convert an int or iterable of ints into a validated shape tuple.

    Raises
    ------
    ShapeMismatchError
        If any dimension is negative.
    """
    if isinstance(shape, int):
        shape = (shape,)
    out = tuple(int(d) for d in shape)
    if any(d < 0 for d in out):
        raise ShapeMismatchError(op, out, detail="dimensions must be non-negative")
    return out


def numel_of(shape: Sequence[int]) -> int:
    return math.prod(shape)


def contiguous_strides(shape: Sequence[int]) -> tuple[int, ...]:
    """
    Row-major element strides for `shape`.
    """
    strides = []
    acc = 1
    for d in reversed(shape):
        strides.append(acc)
        acc *= max(int(d), 1)
    return tuple(reversed(strides))


def is_contiguous(shape: Sequence[int], strides: Sequence[int]) -> bool:
    """
    Whether a (shape, strides) pair is row-major contiguous.

    Size-1 dimensions are ignored, since their stride is never used.
    """
    expected = 1
    for d, s in zip(reversed(shape), reversed(strides)):
        if d == 1:
            continue
        if s != expected:
            return False
        expected *= d
    return True


def max_extent(shape: Sequence[int], strides: Sequence[int], offset: int) -> int:
    """
    One past the highest element index a view touches (``offset`` when empty).
    """
    if any(d == 0 for d in shape):
        return offset
    return offset + 1 + sum((d - 1) * s for d, s in zip(shape, strides))


def broadcast_shapes(op: str, a: Sequence[int], b: Sequence[int]) -> tuple[int, ...]:
    """
    Compute the broadcast result shape of two shapes.

    Shapes are aligned at the trailing dimension; each pair of dimensions must
    be equal or one of them must be 1.

    Raises
    ------
    ShapeMismatchError
        If the shapes are not broadcast-compatible.
    """
    a = tuple(a)
    b = tuple(b)
    n = max(len(a), len(b))
    pa = (1,) * (n - len(a)) + a
    pb = (1,) * (n - len(b)) + b
    out = []
    for da, db in zip(pa, pb):
        if da == db or db == 1:
            out.append(da)
        elif da == 1:
            out.append(db)
        else:
            raise ShapeMismatchError(op, a, b, detail="shapes are not broadcastable")
    return tuple(out)


def normalize_axis(axis: int, ndim: int, op: str, shape: Sequence[int] = ()) -> int:
    a = int(axis)
    if a < 0:
        a += ndim
    if not 0 <= a < max(ndim, 1) or (ndim == 0 and a != 0):
        raise ShapeMismatchError(op, tuple(shape), detail=f"axis {axis} out of range")
    return a


def normalize_axes(
    axes: Optional[Union[int, Sequence[int]]],
    ndim: int,
    op: str,
    shape: Sequence[int] = (),
) -> Optional[tuple[int, ...]]:
    """
    Normalize an axis spec into a sorted tuple of non-negative axes.

    Returns None (reduce everything) when `axes` is None.

    Raises
    ------
    ShapeMismatchError
        If an axis is out of range or repeated.
    """
    if axes is None:
        return None
    if isinstance(axes, int):
        axes = (axes,)
    out = tuple(sorted(normalize_axis(a, ndim, op, shape) for a in axes))
    if len(set(out)) != len(out):
        raise ShapeMismatchError(op, tuple(shape), detail=f"repeated axis in {tuple(axes)}")
    if ndim == 0:
        # a 0-d tensor reduced over "axis 0" is reduced over nothing
        return ()
    return out


def reduced_shape(
    shape: Sequence[int], axes: Optional[Sequence[int]], keepdims: bool
) -> tuple[int, ...]:
    if axes is None:
        return (1,) * len(shape) if keepdims else ()
    if keepdims:
        return tuple(1 if i in axes else d for i, d in enumerate(shape))
    return tuple(d for i, d in enumerate(shape) if i not in axes)


def sum_to_shape_axes(
    src_shape: Sequence[int], target_shape: Sequence[int]
) -> tuple[tuple[int, ...], int]:
    """
    Reduction axes that collapse a broadcast result back to `target_shape`.

    Parameters
    ----------
    src_shape : Sequence[int]
        The broadcast (larger) shape.
    target_shape : Sequence[int]
        The pre-broadcast shape.

    Returns
    -------
    reduce_axes : tuple[int, ...]
        Axes of `src_shape` to sum over with ``keepdims=True``. Leading padded
        axes are always included.
    pad : int
        Number of leading axes of `src_shape` absent from `target_shape`.

    Raises
    ------
    ShapeMismatchError
        If `target_shape` could not have been broadcast to `src_shape`.
    """
    src = tuple(int(d) for d in src_shape)
    tgt = tuple(int(d) for d in target_shape)
    if len(tgt) > len(src):
        raise ShapeMismatchError("sum_to_shape", src, tgt, detail="target has higher rank")
    pad = len(src) - len(tgt)
    padded = (1,) * pad + tgt
    for sd, td in zip(src, padded):
        if td not in (1, sd):
            raise ShapeMismatchError("sum_to_shape", src, tgt)
    axes = tuple(
        i for i, (sd, td) in enumerate(zip(src, padded)) if i < pad or (td == 1 and sd != 1)
    )
    return axes, pad


def infer_reshape(shape: Sequence[int], new_shape: Sequence[int]) -> tuple[int, ...]:
    """
    Resolve a single ``-1`` in `new_shape` and check the element count.

    Raises
    ------
    ShapeMismatchError
        If more than one dimension is -1, or the element counts differ.
    """
    new = [int(d) for d in new_shape]
    total = numel_of(shape)
    unknown = [i for i, d in enumerate(new) if d == -1]
    if len(unknown) > 1:
        raise ShapeMismatchError("reshape", tuple(shape), tuple(new), detail="only one -1 allowed")
    if any(d < -1 for d in new):
        raise ShapeMismatchError("reshape", tuple(shape), tuple(new), detail="invalid dimension")
    if unknown:
        known = numel_of([d for d in new if d != -1])
        if known == 0 or total % known != 0:
            raise ShapeMismatchError("reshape", tuple(shape), tuple(new))
        new[unknown[0]] = total // known
    if numel_of(new) != total:
        raise ShapeMismatchError(
            "reshape", tuple(shape), tuple(new), detail="element count differs"
        )
    return tuple(new)
