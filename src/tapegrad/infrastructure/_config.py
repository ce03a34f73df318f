"""
Runtime configuration for tapegrad.

Configuration is read from environment variables once per process and cached.
Tests and applications may override individual fields programmatically via
`set_runtime_config`; doing so tears down the cached backends so the next
tensor construction picks up the new worker pool / queue settings.

Environment variables
---------------------
TAPEGRAD_HOST_WORKERS : int, optional
    Size of the bounded host worker pool. Defaults to ``os.cpu_count()``.
TAPEGRAD_PARALLEL_THRESHOLD : int, optional
    Output element count at or above which host kernels fan out across the
    pool. Defaults to 65536.
TAPEGRAD_ACCEL_DEVICES : int, optional
    Number of accelerator instances available in this process. Defaults to 1.
TAPEGRAD_ACCEL_MEMORY_BYTES : int, optional
    Allocation budget per accelerator instance. Defaults to 1 GiB.
TAPEGRAD_LOG_LEVEL : str, optional
    Level name applied to the ``tapegrad`` logger (e.g. "DEBUG").
"""

from __future__ import annotations

from dataclasses import dataclass, replace, fields
from functools import lru_cache
from typing import Callable, List, Optional
import logging
import os

from ..domain._errors import ConfigurationError

logger = logging.getLogger(__name__)

_ENV_PREFIX = "TAPEGRAD_"


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Immutable snapshot of runtime settings.

    Attributes
    ----------
    host_workers : int
        Maximum number of host worker threads used for data-parallel fan-out.
    parallel_threshold : int
        Minimum output element count for host fan-out.
    accel_devices : int
        Number of accelerator instances (``accel:0`` .. ``accel:N-1``).
    accel_memory_bytes : int
        Per-accelerator allocation budget in bytes.
    log_level : Optional[str]
        Level for the package logger, or None to leave it untouched.
    """

    host_workers: int = max(1, os.cpu_count() or 1)
    parallel_threshold: int = 1 << 16
    accel_devices: int = 1
    accel_memory_bytes: int = 1 << 30
    log_level: Optional[str] = None

    def validate(self) -> "RuntimeConfig":
        if self.host_workers < 1:
            raise ConfigurationError("RuntimeConfig", "host_workers must be >= 1")
        if self.parallel_threshold < 1:
            raise ConfigurationError("RuntimeConfig", "parallel_threshold must be >= 1")
        if self.accel_devices < 0:
            raise ConfigurationError("RuntimeConfig", "accel_devices must be >= 0")
        if self.accel_memory_bytes < 0:
            raise ConfigurationError("RuntimeConfig", "accel_memory_bytes must be >= 0")
        if self.log_level is not None and not isinstance(
            logging.getLevelName(str(self.log_level).upper()), int
        ):
            raise ConfigurationError(
                "RuntimeConfig", f"log_level must be a logging level name, got {self.log_level!r}"
            )
        return self


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(_ENV_PREFIX + name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            "RuntimeConfig", f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}"
        ) from exc


def _from_environ() -> RuntimeConfig:
    base = RuntimeConfig()
    return RuntimeConfig(
        host_workers=_env_int("HOST_WORKERS", base.host_workers),
        parallel_threshold=_env_int("PARALLEL_THRESHOLD", base.parallel_threshold),
        accel_devices=_env_int("ACCEL_DEVICES", base.accel_devices),
        accel_memory_bytes=_env_int("ACCEL_MEMORY_BYTES", base.accel_memory_bytes),
        log_level=os.environ.get(_ENV_PREFIX + "LOG_LEVEL") or None,
    ).validate()


_override: Optional[RuntimeConfig] = None
_listeners: List[Callable[[], None]] = []
_level_applied = False


def _apply_log_level(cfg: RuntimeConfig) -> None:
    # a level set by an earlier config is dropped once no config names one
    global _level_applied
    root = logging.getLogger("tapegrad")
    if cfg.log_level:
        root.setLevel(cfg.log_level.upper())
        _level_applied = True
    elif _level_applied:
        root.setLevel(logging.NOTSET)
        _level_applied = False


@lru_cache(maxsize=1)
def _environ_config() -> RuntimeConfig:
    cfg = _from_environ()
    _apply_log_level(cfg)
    logger.debug("runtime config loaded from environment: %s", cfg)
    return cfg


def get_runtime_config() -> RuntimeConfig:
    """
    Return the active runtime configuration.
    """
    return _override if _override is not None else _environ_config()


def set_runtime_config(**overrides) -> RuntimeConfig:
    """
    Override selected configuration fields.

    Parameters
    ----------
    **overrides
        Field names of `RuntimeConfig` and their new values.

    Returns
    -------
    RuntimeConfig
        The newly active configuration.

    Raises
    ------
    ConfigurationError
        If a field name is unknown or a value is out of range.
    """
    global _override
    known = {f.name for f in fields(RuntimeConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigurationError("RuntimeConfig", f"unknown fields {sorted(unknown)}")
    _override = replace(get_runtime_config(), **overrides).validate()
    _apply_log_level(_override)
    _notify()
    return _override


def reset_runtime_config() -> RuntimeConfig:
    """
    Drop programmatic overrides and re-read the environment.
    """
    global _override
    _override = None
    _environ_config.cache_clear()
    cfg = get_runtime_config()
    _notify()
    return cfg


def on_config_change(callback: Callable[[], None]) -> Callable[[], None]:
    """
    Register a callback invoked whenever the active configuration changes.
    """
    _listeners.append(callback)
    return callback


def _notify() -> None:
    for cb in list(_listeners):
        cb()
