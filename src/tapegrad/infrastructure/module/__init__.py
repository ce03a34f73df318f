from ._serialization_core import (
    module_from_config,
    module_to_config,
    register_module,
)

__all__ = [
    "module_from_config",
    "module_to_config",
    "register_module",
]
