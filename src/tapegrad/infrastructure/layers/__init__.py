from ._activations import Flatten, ReLU, Sigmoid, Tanh
from ._dropout import Dropout
from ._linear import Linear, LinearConfig

__all__ = [
    "Dropout",
    "Flatten",
    "Linear",
    "LinearConfig",
    "ReLU",
    "Sigmoid",
    "Tanh",
]
