"""
Thread-local gradient-recording switch.

Graph construction happens on the thread running the forward pass, so the
"record or not" flag is per thread: disabling recording on one thread never
affects a forward pass running on another.
"""

from __future__ import annotations

from typing import Callable, List
import functools
import threading

from typing_extensions import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

_state = threading.local()


def is_grad_enabled() -> bool:
    """
    Whether operations on variables currently record graph nodes.
    """
    return getattr(_state, "enabled", True)


def set_grad_enabled(mode: bool) -> None:
    _state.enabled = bool(mode)


class no_grad:
    """
    Disable graph recording inside a ``with`` block or a decorated function.

    Examples
    --------
    >>> with no_grad():
    ...     y = model(x)          # no nodes are recorded

    >>> @no_grad()
    ... def evaluate(model, x):
    ...     return model(x)
    """

    def __init__(self) -> None:
        self._prev: List[bool] = []

    def __enter__(self) -> "no_grad":
        self._prev.append(is_grad_enabled())
        set_grad_enabled(False)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        set_grad_enabled(self._prev.pop())

    def __call__(self, fn: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with no_grad():
                return fn(*args, **kwargs)

        return wrapper


class enable_grad(no_grad):
    """
    Re-enable graph recording inside a `no_grad` region.
    """

    def __enter__(self) -> "enable_grad":
        self._prev.append(is_grad_enabled())
        set_grad_enabled(True)
        return self

    def __call__(self, fn: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with enable_grad():
                return fn(*args, **kwargs)

        return wrapper
