"""
Normalization math shared by every normalization layer.

Everything here is composed from differentiable tensor operations, so
gradients flow through the mean and variance as well as through the
centred input.
"""

from typing import TYPE_CHECKING, Optional, Tuple, Union

import numpy as np

from ...core import Tensor

if TYPE_CHECKING:
    from .base import _NormBase

Axis = Union[int, Tuple[int, ...]]


def batch_statistics(x: Tensor, axes: Axis) -> Tuple[Tensor, Tensor]:
    """Returns the mean and biased variance of ``x`` over ``axes``, keeping dims."""
    mean = x.mean(axis=axes, keepdims=True)
    centered = x - mean
    var = (centered * centered).mean(axis=axes, keepdims=True)
    return mean, var


def normalise(x: Tensor, axis: Axis = -1, eps: float = 1e-5) -> Tensor:
    """
    Normalises ``x`` to zero mean and unit variance over ``axis``.

    Computes ``(x - mean) / sqrt(var + eps)`` with the biased (population)
    variance. ``axis`` may be an int or a tuple of ints.
    """
    mean, var = batch_statistics(x, axis)
    return (x - mean) / (var + eps) ** 0.5


def affine_shape(x: Tensor, channel_axis: int = 1) -> Tuple[int, ...]:
    """Shape that broadcasts a per-channel vector along ``channel_axis`` of ``x``."""
    return tuple(s if i == channel_axis else 1 for i, s in enumerate(x.shape))


def apply_affine(
    x_hat: Tensor, weight: Optional[Tensor], bias: Optional[Tensor], shape: Tuple[int, ...]
) -> Tensor:
    """Scales and shifts ``x_hat`` by ``weight`` and ``bias`` reshaped to ``shape``."""
    if weight is None:
        return x_hat
    return x_hat * weight.reshape(shape) + bias.reshape(shape)


def norm_layer_forward(
    layer: "_NormBase", x: Tensor, axes: Tuple[int, ...], stat_shape: Tuple[int, ...]
) -> Tensor:
    """
    Normalises ``x`` for a stateful normalization layer.

    In inference mode a layer that tracks statistics normalises with its
    running mean and variance, reshaped to ``stat_shape`` and cast to the
    float dtype of ``x``. Otherwise the statistics of the current batch over
    ``axes`` are used and, when the layer tracks statistics, folded into the
    running estimates.

    Returns:
        The normalised tensor, before the affine transform and activation
    """
    stats = layer.stats
    if not layer.training and stats is not None:
        dtype = x.dtype if np.issubdtype(x.dtype, np.floating) else None
        mean, var = stats.broadcast(stat_shape, dtype)
    else:
        mean, var = batch_statistics(x, axes)
        if stats is not None:
            n = int(np.prod([x.shape[a] for a in axes]))
            stats.update(mean.data, var.data, n)

    return (x - mean) / (var + layer.eps) ** 0.5
