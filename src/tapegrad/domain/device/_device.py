"""
Device abstraction utilities.

This module defines lightweight abstractions for representing execution
targets in a backend-agnostic way. It provides:

- `DeviceType`: an enumeration of supported device categories
- `Device`: a concrete device descriptor that validates and normalizes
  user-facing device strings such as "host" or "accel:0"

A `Device` is a pure value type. It does not allocate or manage any backend
resources; backends are resolved from it at tensor-construction time.
"""

from __future__ import annotations

from enum import Enum
import re


class DeviceType(Enum):
    """
    Enumeration of supported device categories.

    Attributes
    ----------
    HOST : DeviceType
        The general-purpose CPU, executing synchronously on host threads.
    ACCEL : DeviceType
        An accelerator instance executing work from an asynchronous command
        queue.
    """

    HOST = "host"
    ACCEL = "accel"


class Device:
    """
    Concrete execution device descriptor.

    Parameters
    ----------
    device : str
        Device identifier string. Must be one of:
        - "host" (or its alias "cpu")
        - "accel:<index>", where <index> is a non-negative integer

    Raises
    ------
    ValueError
        If the provided device string does not match the supported formats.

    Notes
    -----
    - `__slots__` is used to prevent dynamic attribute creation and reduce
      per-instance memory overhead.
    - Equality and hashing are by (type, index), so devices can be used as
      dictionary keys (the backend registry does exactly that).
    """

    __slots__ = ("type", "index")

    _ACCEL_PATTERN = re.compile(r"^accel:(\d+)$")

    def __init__(self, device: str = "host"):
        if isinstance(device, Device):
            self.type = device.type
            self.index = device.index
            return
        if device in ("host", "cpu"):
            self.type = DeviceType.HOST
            self.index = None
            return
        m = self._ACCEL_PATTERN.match(str(device))
        if not m:
            raise ValueError(
                f"Invalid device '{device}'. Expected 'host' or 'accel:<index>'"
            )
        self.type = DeviceType.ACCEL
        self.index = int(m.group(1))

    @classmethod
    def host(cls) -> "Device":
        return cls("host")

    @classmethod
    def accel(cls, index: int = 0) -> "Device":
        return cls(f"accel:{int(index)}")

    def __str__(self) -> str:
        return "host" if self.type is DeviceType.HOST else f"accel:{self.index}"

    def __repr__(self) -> str:
        return f"Device('{self}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Device):
            return NotImplemented
        return (self.type, self.index) == (other.type, other.index)

    def __hash__(self) -> int:
        return hash((self.type, self.index))

    def is_host(self) -> bool:
        """
        Check whether this device is the host.
        """
        return self.type is DeviceType.HOST

    def is_accel(self) -> bool:
        """
        Check whether this device is an accelerator instance.
        """
        return self.type is DeviceType.ACCEL
