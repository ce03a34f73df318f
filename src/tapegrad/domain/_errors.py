"""
Error taxonomy for tapegrad.

This module defines the exceptions raised by the tensor, autograd, and layer
subsystems. Every failure mode is a local, recoverable condition surfaced to
the caller as an explicit exception; nothing is silently coerced (no implicit
broadcast beyond the documented rule, no implicit cast, no implicit transfer).

Each concrete error also derives from the closest builtin exception so that
callers written against generic Python errors (``ValueError``, ``TypeError``,
``MemoryError``...) keep working.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class TapegradError(Exception):
    """
    Base class for all tapegrad errors.
    """


class ShapeMismatchError(TapegradError, ValueError):
    """
    Raised when operand shapes are incompatible for the requested operation.

    This covers exact-match violations, broadcast failures (trailing dimensions
    must be equal or one of them must be 1), invalid reshapes, out-of-range
    axes, and views that would exceed their backing storage.

    Attributes
    ----------
    op : str
        Operation name (e.g., "add", "matmul", "reshape").
    shapes : tuple[tuple[int, ...], ...]
        Shapes of the offending operands, in call order.
    """

    def __init__(
        self, op: str, *shapes: Sequence[int], detail: Optional[str] = None
    ) -> None:
        self.op = op
        self.shapes = tuple(tuple(int(d) for d in s) for s in shapes)
        shown = " vs ".join(str(s) for s in self.shapes) or "<none>"
        msg = f"{op}: shape mismatch ({shown})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class TypeMismatchError(TapegradError, TypeError):
    """
    Raised when scalar types differ where an exact match is required.

    Mixing scalar types always requires an explicit ``cast``.
    """

    def __init__(self, op: str, type_a: Any, type_b: Any) -> None:
        self.op = op
        self.type_a = type_a
        self.type_b = type_b
        super().__init__(
            f"{op}: scalar type mismatch '{type_a}' vs '{type_b}' "
            "(use an explicit cast)"
        )


class DeviceMismatchError(TapegradError, RuntimeError):
    """
    Raised when an operation is attempted between tensors on different devices.

    Cross-device operands are an error, never an implicit transfer. Use
    ``Tensor.to(device)`` to move data explicitly.
    """

    def __init__(self, device_a: str, device_b: str, op: str = "op") -> None:
        self.op = op
        self.device_a = device_a
        self.device_b = device_b
        super().__init__(f"{op}: device mismatch '{device_a}' vs '{device_b}'.")


class AllocationError(TapegradError, MemoryError):
    """
    Raised when a backend cannot provision storage.

    Deferred accelerator memory faults are re-raised as this error at the
    next synchronization point.
    """

    def __init__(self, device: str, nbytes: int, detail: Optional[str] = None) -> None:
        self.device = device
        self.nbytes = int(nbytes)
        msg = f"failed to allocate {self.nbytes} bytes on '{device}'"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class GraphConsumedError(TapegradError, RuntimeError):
    """
    Raised when backward is invoked on a graph that was already traversed.

    Graphs are build-once/consume-once unless the first backward call passed
    ``retain_graph=True``.
    """

    def __init__(self, op: str) -> None:
        self.op = op
        super().__init__(
            f"backward through '{op}' a second time: the graph has already been "
            "consumed. Pass retain_graph=True to the first backward call to "
            "keep it."
        )


class UnsupportedOperationError(TapegradError, NotImplementedError):
    """
    Raised when a scalar type / device combination lacks an implementation.

    Deferred accelerator faults other than memory faults are re-raised as this
    error at the next synchronization point.
    """

    def __init__(self, op: str, detail: str) -> None:
        self.op = op
        super().__init__(f"{op}: {detail}")


class DeviceNotSupportedError(UnsupportedOperationError):
    """
    Raised when a device is unknown or not available in this process.

    Attributes
    ----------
    op : str
        The operation that was attempted.
    device : str
        String representation of the requested device.
    """

    def __init__(self, op: str, device: str) -> None:
        self.device = device
        super().__init__(op, f"device '{device}' is not available")


class ConfigurationError(TapegradError, ValueError):
    """
    Raised when layer (or runtime) construction parameters are inconsistent.
    """

    def __init__(self, owner: str, detail: str) -> None:
        self.owner = owner
        super().__init__(f"{owner}: {detail}")
