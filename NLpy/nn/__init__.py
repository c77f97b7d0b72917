# NLpy/nn/__init__.py
"""
Neural network module for NLpy.

Normalization and regularization layers, the activations they can apply,
and a Sequential container for composing them.
"""

from .activations import (
    ReLU, SELU, Sigmoid, Tanh,
    ReLUFunction, SELUFunction, SigmoidFunction, TanhFunction,
    identity, relu, selu, sigmoid, tanh,
)
from .dropout import (
    AlphaDropout, AlphaDropoutFunction, Dropout, DropoutFunction,
    alpha_dropout, dropout, dropout_mask,
)
from .sequential import Sequential

# Import normalization modules
from .norm import (
    BatchNorm, BatchNorm1d, BatchNorm2d,
    GroupNorm,
    InstanceNorm, InstanceNorm2d,
    LayerNorm,
    RunningStats,
    batch_statistics,
    has_affine,
    normalise,
)

__all__ = [
    # Containers
    "Sequential",

    # Activations
    "ReLU",
    "SELU",
    "Sigmoid",
    "Tanh",
    "ReLUFunction",
    "SELUFunction",
    "SigmoidFunction",
    "TanhFunction",
    "identity",
    "relu",
    "selu",
    "sigmoid",
    "tanh",

    # Regularization
    "Dropout",
    "AlphaDropout",
    "DropoutFunction",
    "AlphaDropoutFunction",
    "dropout",
    "alpha_dropout",
    "dropout_mask",

    # Normalization
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
