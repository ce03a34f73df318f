"""
Computation-graph node.

A `Node` is created by a tracked operation when at least one input requires
gradient. It records the operation kind (the key into the backward-rule
registry), references to the input variables, and whatever tensors/metadata
the backward rule needs. The output variable owns its node; nodes reference
their inputs, so the graph is a DAG rooted at the last output and terminating
at leaves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence
import weakref


@dataclass(eq=False)
class Node:
    """
    Recorded operation in the autograd graph.

    Attributes
    ----------
    op : str
        Operation kind; selects the backward rule.
    inputs : tuple
        Input variables, in call order.
    saved_tensors : list
        Tensors captured in forward for use in backward (operands, outputs,
        masks).
    saved_meta : dict[str, Any]
        Non-tensor data required by the rule (shapes, axes, exponents).
    consumed : bool
        Set once a non-retaining backward pass has walked this node.
    """

    op: str
    inputs: tuple
    saved_tensors: list = field(default_factory=list)
    saved_meta: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False
    _output: Optional[Callable[[], Any]] = field(default=None, repr=False)

    def bind_output(self, variable: Any) -> None:
        # weak, the output variable owns the node
        self._output = weakref.ref(variable)

    @property
    def output(self) -> Optional[Any]:
        return None if self._output is None else self._output()

    def release(self) -> None:
        """
        Mark the node consumed and drop captured tensors.
        """
        self.consumed = True
        self.saved_tensors.clear()

    def next_nodes(self) -> Sequence["Node"]:
        """
        Producing nodes of the inputs that require gradient (with repeats).
        """
        return [v.node for v in self.inputs if v.requires_grad and v.node is not None]
