"""
Device abstraction contracts for tapegrad.

This module defines a duck-typed `DeviceLike` protocol that represents an
execution device descriptor without coupling to the concrete `Device` class.
Backends and tensors type against this protocol so that alternative device
descriptors can interoperate without brittle class-identity checks.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class DeviceLike(Protocol):
    """
    Duck-typed device contract.

    Any object that provides these members can be used as a device descriptor
    within the framework, regardless of its concrete class identity.
    """

    type: object
    index: Optional[int]

    def is_host(self) -> bool: ...
    def is_accel(self) -> bool: ...
    def __str__(self) -> str: ...
