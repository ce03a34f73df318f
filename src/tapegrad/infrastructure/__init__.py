"""
Concrete implementations: backends, tensors, autograd, modules and optimizers.
"""

from ._config import (
    RuntimeConfig,
    get_runtime_config,
    on_config_change,
    reset_runtime_config,
    set_runtime_config,
)
from ._losses import accuracy, cross_entropy_loss, mse_loss
from ._module import Module
from ._parameter import Parameter
from ._variable import Variable, as_variable
from .autograd import enable_grad, is_grad_enabled, no_grad, set_grad_enabled
from .autograd._gradcheck import gradcheck, numerical_grad
from .backends import backend_for, synchronize_all
from .layers import Dropout, Flatten, Linear, LinearConfig, ReLU, Sigmoid, Tanh
from .models import Sequential
from .module import module_from_config, module_to_config, register_module
from .optimizers import SGD, Adam
from .tensor import Storage, Tensor
from .utils import WeightInitializer

__all__ = [
    "Adam",
    "Dropout",
    "Flatten",
    "Linear",
    "LinearConfig",
    "Module",
    "Parameter",
    "ReLU",
    "RuntimeConfig",
    "SGD",
    "Sequential",
    "Sigmoid",
    "Storage",
    "Tanh",
    "Tensor",
    "Variable",
    "WeightInitializer",
    "accuracy",
    "as_variable",
    "backend_for",
    "cross_entropy_loss",
    "enable_grad",
    "get_runtime_config",
    "gradcheck",
    "is_grad_enabled",
    "module_from_config",
    "module_to_config",
    "mse_loss",
    "no_grad",
    "numerical_grad",
    "on_config_change",
    "register_module",
    "reset_runtime_config",
    "set_grad_enabled",
    "set_runtime_config",
    "synchronize_all",
]
