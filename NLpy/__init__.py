"""
NLpy: normalization and regularization layers with autograd support.

Provides dropout variants and layer, batch, instance and group normalization
on top of a small DAG-based autograd engine, with train/inference mode
switching and running-statistics tracking.
"""

import logging

from .core import Function, Module, Tensor, testmode, trainmode, training_mode
from .ops import Add, Multiply, Reshape

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "Tensor",
    "Function",
    "Module",
    "Add",
    "Multiply",
    "Reshape",
    "testmode",
    "trainmode",
    "training_mode",
]
