from typing import Tuple

from ...core import Tensor
from .base import Activation, _NormBase


class InstanceNorm(_NormBase):
    """
    Instance Normalization (https://arxiv.org/abs/1607.08022).

    For an input of shape (N, C, *spatial) with at least one spatial axis,
    mean and variance are computed separately for every sample and channel
    over the spatial axes.

    If ``affine=True`` a learnable per-channel scale and shift are applied.
    If ``track_running_stats=True`` the per-sample statistics are averaged
    over the batch and accumulated per channel, and used in inference mode.

    Note that ``affine`` and ``track_running_stats`` default to False here,
    unlike BatchNorm.
    """

    def __init__(
        self,
        num_features: int,
        activation: Activation = None,
        eps: float = 1e-5,
        momentum: float = 0.1,
        affine: bool = False,
        track_running_stats: bool = False,
    ):
        super().__init__(
            num_features,
            activation=activation,
            eps=eps,
            momentum=momentum,
            affine=affine,
            track_running_stats=track_running_stats,
        )

    def forward(self, x: Tensor) -> Tensor:
        self._check_input(x, min_ndim=3)
        return super().forward(x)

    def reduction_axes(self, x: Tensor) -> Tuple[int, ...]:
        # All but the batch and channel axes
        return tuple(range(2, x.ndim))


class InstanceNorm2d(InstanceNorm):
    """Instance Normalization over (N, C, H, W) input."""

    def forward(self, x: Tensor) -> Tensor:
        self._check_input(x, min_ndim=4)
        return super().forward(x)
