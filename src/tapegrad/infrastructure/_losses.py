"""
Loss functions and metrics built from tracked variable operations.

Losses are composed entirely of `Variable` operations, so their backward pass
comes from the individual operation rules with no dedicated loss rule.
"""

from __future__ import annotations

from typing import Union

import numpy as np

from ..domain._errors import ShapeMismatchError
from ._variable import Variable, as_variable
from .tensor._tensor import Tensor

VariableLike = Union[Variable, Tensor]


def mse_loss(prediction: VariableLike, target: VariableLike) -> Variable:
    """
    Mean squared error ``mean((prediction - target) ** 2)``.

    Raises
    ------
    ShapeMismatchError
        If the shapes differ (no broadcasting between prediction and target).
    """
    pred = as_variable(prediction)
    tgt = as_variable(target)
    if pred.shape != tgt.shape:
        raise ShapeMismatchError("mse_loss", pred.shape, tgt.shape)
    diff = pred.sub(tgt)
    return diff.mul(diff).mean()


def cross_entropy_loss(logits: VariableLike, targets: Tensor) -> Variable:
    """
    Mean softmax cross-entropy over a batch.

    Parameters
    ----------
    logits : Variable or Tensor
        Scores of shape ``(N, C)``.
    targets : Tensor
        Integer class indices of shape ``(N,)`` on the same device.

    Returns
    -------
    Variable
        Scalar loss.

    Notes
    -----
    The log-sum-exp is shifted by the per-row maximum, which is treated as a
    constant (the shift cancels out of the gradient).
    """
    z = as_variable(logits)
    if z.ndim != 2 or targets.shape != (z.shape[0],):
        raise ShapeMismatchError("cross_entropy_loss", z.shape, targets.shape)
    n, classes = z.shape
    shift = Variable(z.data.max(axis=1, keepdims=True))
    shifted = z.sub(shift)
    lse = shifted.exp().sum(axis=1, keepdims=True).log()
    log_probs = shifted.sub(lse)
    onehot = targets.one_hot(classes, z.scalar_type)
    return log_probs.mul(onehot).sum().mul(-1.0 / n)


def accuracy(logits: VariableLike, targets: Tensor) -> float:
    """
    Fraction of rows whose arg-max matches the target index.
    """
    z = as_variable(logits)
    predicted = z.data.argmax(axis=1).to_numpy()
    return float(np.mean(predicted == targets.to_numpy().astype(np.int64)))
