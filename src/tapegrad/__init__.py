"""
tapegrad: strided tensors on host and accelerator backends with
tape-based reverse-mode automatic differentiation.
"""

import logging

from .domain import *  # noqa: F401,F403
from .domain import __all__ as _domain_all
from .infrastructure import *  # noqa: F401,F403
from .infrastructure import __all__ as _infrastructure_all

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [*_domain_all, *_infrastructure_all]
