"""
Autograd machinery: graph nodes, backward rules, traversal and grad mode.
"""

from ._engine import run_backward
from ._grad_mode import enable_grad, is_grad_enabled, no_grad, set_grad_enabled
from ._node import Node
from ._rules import BACKWARD_RULES, backward_rule, lookup_rule

__all__ = [
    "BACKWARD_RULES",
    "Node",
    "backward_rule",
    "enable_grad",
    "is_grad_enabled",
    "lookup_rule",
    "no_grad",
    "run_backward",
    "set_grad_enabled",
]
