"""
Operations module for NLpy.

This module contains the differentiable tensor operations the layers are
built from.
"""

from .basic import Add, Multiply
from .power import Divide, Power
from .reduction import Mean, Sum
from .reshape import Reshape

__all__ = [
    # Basic operations
    "Add",
    "Multiply",
    "Reshape",
    # Power operations
    "Power",
    "Divide",
    # Reduction operations
    "Sum",
    "Mean",
]
