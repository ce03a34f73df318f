"""
Backend registry.

`backend_for` resolves a device descriptor to its (process-wide) compute
backend, creating it lazily from the active runtime configuration. Changing
the runtime configuration shuts down and forgets every cached backend.
"""

from __future__ import annotations

from typing import Dict, Union
import logging
import threading

from ...domain._errors import DeviceNotSupportedError
from ...domain.device._device import Device
from .._config import get_runtime_config, on_config_change
from ._accel import AcceleratorBackend, CommandQueue, DeviceBuffer
from ._host import HostBackend

logger = logging.getLogger(__name__)

_backends: Dict[Device, Union[HostBackend, AcceleratorBackend]] = {}
# bytes held by live buffers of accelerators that were reset and not yet rebuilt
_carried: Dict[Device, int] = {}
_lock = threading.RLock()


def backend_for(device) -> Union[HostBackend, AcceleratorBackend]:
    """
    Return the compute backend serving `device`.

    Raises
    ------
    DeviceNotSupportedError
        If `device` names an accelerator index that is not available.
    """
    dev = device if isinstance(device, Device) else Device(device)
    with _lock:
        backend = _backends.get(dev)
        if backend is not None:
            return backend
        cfg = get_runtime_config()
        if dev.is_host():
            backend = HostBackend(
                dev,
                workers=cfg.host_workers,
                parallel_threshold=cfg.parallel_threshold,
            )
        else:
            if dev.index >= cfg.accel_devices:
                raise DeviceNotSupportedError("backend_for", str(dev))
            backend = AcceleratorBackend(
                dev,
                memory_bytes=cfg.accel_memory_bytes,
                in_use=_carried.pop(dev, 0),
            )
        _backends[dev] = backend
        return backend


def synchronize_all() -> None:
    """
    Synchronize every backend created so far.
    """
    with _lock:
        backends = list(_backends.values())
    for b in backends:
        b.synchronize()


def release_buffer(device: Device, buffer) -> None:
    """
    Return `buffer` to the backend currently serving `device`.

    Buffers outlive configuration changes, so the backend that allocated a
    buffer may already have been replaced when the buffer is released.
    """
    with _lock:
        backend = _backends.get(device)
        if backend is None:
            if device.is_accel() and device in _carried:
                _carried[device] = max(0, _carried[device] - buffer.nbytes)
                buffer.nbytes = 0
            return
    backend.free(buffer)


@on_config_change
def reset_backends() -> None:
    """
    Shut down and forget every cached backend.

    Accelerator memory still held by live buffers is carried over to the
    backend that next serves the same device.
    """
    with _lock:
        backends = list(_backends.values())
        _backends.clear()
        for b in backends:
            if isinstance(b, AcceleratorBackend):
                _carried[b.device] = b.bytes_in_use
    for b in backends:
        b.shutdown()
    if backends:
        logger.debug("reset %d backend(s)", len(backends))


__all__ = [
    "AcceleratorBackend",
    "CommandQueue",
    "DeviceBuffer",
    "HostBackend",
    "backend_for",
    "release_buffer",
    "reset_backends",
    "synchronize_all",
]
