"""
Per-parameter optimizer state alignment.

Optimizer state is held per parameter object, but snapshots must not depend
on object identity. Snapshots therefore index each entry by the parameter's
position in a deterministic parameter list (the optimizer's managed list, or
an explicit one such as ``module.parameters()``), and restoring maps each
index back onto the parameter at that position.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from ...domain._errors import ConfigurationError, ShapeMismatchError
from ...domain._parameter import IParameter
from ..tensor._tensor import Tensor


def ordered_parameters(
    owner: str,
    managed: List[IParameter],
    parameters: Optional[Iterable[IParameter]],
) -> List[IParameter]:
    order = list(parameters) if parameters is not None else list(managed)
    if len({id(p) for p in order}) != len(order):
        raise ConfigurationError(owner, "parameter list contains duplicates")
    return order


def restore_tensor(owner: str, index: int, key: str, arr: Any, parameter: IParameter) -> Tensor:
    """
    Rebuild a state tensor on `parameter`'s device and scalar type.

    Raises
    ------
    ShapeMismatchError
        If `arr` is not shaped like the parameter.
    """
    a = np.asarray(arr)
    p = parameter.data
    if tuple(a.shape) != tuple(p.shape):
        raise ShapeMismatchError(f"{owner}.load_state_dict[{index}].{key}", p.shape, a.shape)
    return Tensor.from_numpy(a, device=p.device, scalar_type=p.scalar_type)


def state_entries(
    owner: str, state: Dict[str, Any], order: List[IParameter]
) -> Iterable[tuple]:
    """
    Yield ``(index, parameter, entry)`` for each saved entry.

    Raises
    ------
    ConfigurationError
        If an index has no parameter at that position.
    """
    for key, entry in state.get("state", {}).items():
        idx = int(key)
        if not 0 <= idx < len(order):
            raise ConfigurationError(
                owner, f"state entry {idx} has no parameter ({len(order)} given)"
            )
        yield idx, order[idx], entry
