"""
Normalization layers submodule.
Contains the normalization layers, their shared math and running statistics.
"""

from .base import has_affine
from .batch_norm import BatchNorm, BatchNorm1d, BatchNorm2d
from .functional import batch_statistics, normalise
from .group_norm import GroupNorm
from .instance_norm import InstanceNorm, InstanceNorm2d
from .layer_norm import LayerNorm
from .stats import RunningStats

__all__ = [
    "BatchNorm",
    "BatchNorm1d",
    "BatchNorm2d",
    "LayerNorm",
    "GroupNorm",
    "InstanceNorm",
    "InstanceNorm2d",
    "RunningStats",
    "batch_statistics",
    "normalise",
    "has_affine",
]
