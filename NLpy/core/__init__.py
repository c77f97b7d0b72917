"""
Core functionality for NLpy.

This module contains the autograd substrate (tensors, functions, the graph
engine), the module system and train/inference mode resolution.
"""

from .tensor import Tensor
from .autograd import AutogradEngine, get_autograd_engine
from .context import Context
from .errors import ShapeError, StatisticsError, ValidationError
from .function import Function
from .mode import Mode, is_active, is_training, set_training, testmode, trainmode, training_mode
from .module import Module

__all__ = [
    "Tensor",
    "Function",
    "Context",
    "Module",
    "AutogradEngine",
    "get_autograd_engine",
    "Mode",
    "is_active",
    "is_training",
    "set_training",
    "training_mode",
    "testmode",
    "trainmode",
    "ValidationError",
    "ShapeError",
    "StatisticsError",
]
