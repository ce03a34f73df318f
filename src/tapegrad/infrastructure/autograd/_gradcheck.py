"""
Finite-difference gradient checking.
"""

from __future__ import annotations

from typing import Callable, List, Sequence
import logging

import numpy as np

from ._grad_mode import no_grad

logger = logging.getLogger(__name__)


def _scalar_output(fn: Callable, inputs: Sequence) -> float:
    with no_grad():
        return float(fn(*inputs).data.to_numpy().astype(np.float64).sum())


def numerical_grad(fn: Callable, inputs: Sequence, eps: float = 1e-3) -> List[np.ndarray]:
    """
    Central-difference gradients of ``sum(fn(*inputs))``.

    Each input's data is perturbed in place one element at a time and
    restored afterwards.

    Returns
    -------
    list[np.ndarray]
        One float64 array per input, shaped like the input.
    """
    grads = []
    for v in inputs:
        base = v.data.to_numpy()
        grad = np.zeros(base.shape, dtype=np.float64)
        it = np.nditer(base, flags=["multi_index", "zerosize_ok"])
        for _ in it:
            idx = it.multi_index
            shifted = base.copy()
            shifted[idx] = base[idx] + eps
            v.data.copy_from_numpy(shifted)
            hi = _scalar_output(fn, inputs)
            shifted[idx] = base[idx] - eps
            v.data.copy_from_numpy(shifted)
            lo = _scalar_output(fn, inputs)
            grad[idx] = (hi - lo) / (2.0 * eps)
        v.data.copy_from_numpy(base)
        grads.append(grad)
    return grads


def gradcheck(
    fn: Callable,
    inputs: Sequence,
    eps: float = 1e-3,
    atol: float = 1e-4,
    rtol: float = 1e-3,
) -> bool:
    """
    Compare analytical gradients with central differences.

    Parameters
    ----------
    fn : Callable
        Function of `inputs` returning a Variable; its elements are summed.
    inputs : Sequence[Variable]
        Leaf variables requiring gradient. Float64 data is recommended.

    Returns
    -------
    bool
        True if every input's gradient matches within tolerance.
    """
    for v in inputs:
        v.zero_grad()
    out = fn(*inputs)
    out.sum().backward()
    expected = numerical_grad(fn, inputs, eps)
    ok = True
    for i, (v, num) in enumerate(zip(inputs, expected)):
        ana = np.zeros(num.shape) if v.grad is None else v.grad.to_numpy().astype(np.float64)
        if not np.allclose(ana, num, atol=atol, rtol=rtol):
            logger.warning(
                "gradcheck mismatch on input %d: max abs diff %.3e",
                i,
                float(np.max(np.abs(ana - num))),
            )
            ok = False
    return ok
