# batch_norm.py
from typing import Tuple

from ...core import Tensor
from .base import _NormBase


class BatchNorm(_NormBase):
    """
    Batch Normalization (https://arxiv.org/abs/1502.03167).

    For an input of shape (N, C, *) the channel axis is axis 1: a batch of
    feature vectors is (N, C), a batch of images is (N, C, H, W). Mean and
    variance are computed per channel over every other axis, batch included,
    and the input is normalised with them.

    If ``affine=True`` a learnable per-channel scale and shift are applied
    after normalization, then the elementwise ``activation``.

    If ``track_running_stats=True`` the statistics seen in training are
    accumulated and used in inference mode (see ``testmode``).

    Args:
        num_features: Number of channels C
        activation: Elementwise function applied to the output. Default: identity
        eps: Small constant for numerical stability
        momentum: Value for running_mean and running_var computation
        affine: If True, use learnable affine parameters
        track_running_stats: If True, track running mean and variance

    Example:
        >>> model = Sequential(BatchNorm(64, activation=relu), Dropout(0.2))
    """

    def reduction_axes(self, x: Tensor) -> Tuple[int, ...]:
        return (0,) + tuple(range(2, x.ndim))


class BatchNorm1d(BatchNorm):
    """Batch Normalization over (N, C) or (N, C, L) input."""


class BatchNorm2d(BatchNorm):
    """Batch Normalization over (N, C, H, W) input."""

    def forward(self, x: Tensor) -> Tensor:
        self._check_input(x, min_ndim=4)
        return super().forward(x)
