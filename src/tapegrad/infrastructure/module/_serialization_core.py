"""
Module config registry.

Modules decorated with `register_module` can be turned into a nested,
JSON-compatible config tree (`module_to_config`) and rebuilt from one
(`module_from_config`). Parameter values travel separately through
`Module.state_dict`; no wire format is defined here.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Type
import logging

from ...domain._errors import ConfigurationError

logger = logging.getLogger(__name__)

_MODULE_REGISTRY: Dict[str, Type[Any]] = {}


def register_module(name: Optional[str] = None) -> Callable[[Type[Any]], Type[Any]]:
    """
    Decorator registering a Module class under `name` (default: class name).
    """

    def deco(cls: Type[Any]) -> Type[Any]:
        key = name or cls.__name__
        _MODULE_REGISTRY[key] = cls
        return cls

    return deco


def module_to_config(m: Any) -> dict[str, Any]:
    """
    Convert a Module into a configuration tree.

    Node format
    -----------
    {
      "type": "Linear",
      "config": {...},
      "children": { "0": <node>, "1": <node>, ... }
    }
    """
    children = {name: module_to_config(child) for name, child in m._modules.items()}
    return {"type": type(m).__name__, "config": m.get_config(), "children": children}


def module_from_config(node: dict[str, Any]) -> Any:
    """
    Rebuild a Module (with freshly initialized parameters) from a config tree.

    Raises
    ------
    ConfigurationError
        If the node names an unregistered type or the type cannot hold
        children.
    """
    type_name = str(node["type"])
    cls = _MODULE_REGISTRY.get(type_name)
    if cls is None:
        raise ConfigurationError(
            "module_from_config",
            f"unknown module type '{type_name}'; register it with @register_module",
        )

    m = cls.from_config(node.get("config") or {})

    children = node.get("children") or {}
    if children:
        if not getattr(m, "accepts_children", False):
            raise ConfigurationError(
                "module_from_config", f"module '{type_name}' cannot accept children"
            )
        for name, child_node in children.items():
            m.register_module(str(name), module_from_config(child_node))

    post = getattr(m, "_post_load", None)
    if callable(post):
        post()

    logger.debug("rebuilt %s with %d child module(s)", type_name, len(children))
    return m
