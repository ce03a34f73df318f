from ._sequential import Sequential

__all__ = ["Sequential"]
