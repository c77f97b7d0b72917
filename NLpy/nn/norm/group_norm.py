from typing import Tuple

from ...core import Tensor
from ...core.errors import ShapeError, ValidationError
from .base import Activation, _check_positive, _NormBase
from .functional import affine_shape, norm_layer_forward


class GroupNorm(_NormBase):
    """
    Applies Group Normalization over a mini-batch of inputs
    (https://arxiv.org/abs/1803.08494).

    Group Normalization divides channels into groups and computes within each group
    the mean and variance for normalization. With one group it normalises each
    sample over all of its channels; with one channel per group it matches
    InstanceNorm.

    Running statistics are kept per group, averaged over the batch.

    Args:
        num_groups: Number of groups to separate the channels into
        num_channels: Number of channels expected in input
        activation: Elementwise function applied to the output. Default: identity
        eps: Small value for numerical stability
        momentum: Value for running_mean and running_var computation
        affine: If True, use learnable per-channel affine parameters
        track_running_stats: If True, track running mean and variance per group

    Example:
        >>> norm = GroupNorm(16, 32)  # 32 channels in 16 groups of 2
    """

    def __init__(
        self,
        num_groups: int,
        num_channels: int,
        activation: Activation = None,
        eps: float = 1e-5,
        momentum: float = 0.1,
        affine: bool = True,
        track_running_stats: bool = True,
    ):
        _check_positive("num_groups", num_groups)
        _check_positive("num_channels", num_channels)
        if num_channels % num_groups != 0:
            raise ValidationError(
                f"The number of groups ({num_groups}) must divide the number of "
                f"channels ({num_channels})"
            )
        super().__init__(
            num_channels,
            activation=activation,
            eps=eps,
            momentum=momentum,
            affine=affine,
            track_running_stats=track_running_stats,
            num_stats=num_groups,
        )
        self.num_groups = num_groups
        self.num_channels = num_channels

    def _check_input(self, x: Tensor, min_ndim: int = 3) -> None:
        if x.ndim <= 2:
            raise ShapeError(
                f"GroupNorm expected at least 3D input (N, C, *spatial), got {x.ndim}D input"
            )
        channels = x.shape[1]
        if channels != self.num_channels:
            raise ShapeError(
                f"GroupNorm expected {self.num_channels} channels, but got {channels} channels"
            )
        if channels % self.num_groups != 0:
            raise ShapeError(
                f"The number of groups ({self.num_groups}) must divide the number of "
                f"channels ({channels})"
            )

    def reduction_axes(self, x: Tensor) -> Tuple[int, ...]:
        # x is reshaped to (N, G, C/G, *spatial); reduce all but N and G
        return tuple(range(2, x.ndim))

    def forward(self, x: Tensor) -> Tensor:
        self._check_input(x)

        batch, channels = x.shape[:2]
        spatial = x.shape[2:]
        groups = self.num_groups
        grouped = x.reshape((batch, groups, channels // groups) + spatial)

        stat_shape = (1, groups) + (1,) * (grouped.ndim - 2)
        y = norm_layer_forward(self, grouped, self.reduction_axes(grouped), stat_shape)
        y = y.reshape(x.shape)

        return self._finish(y, affine_shape(x))

    def extra_repr(self) -> str:
        return (
            f"num_groups={self.num_groups}, num_channels={self.num_channels}, "
            f"eps={self.eps}, affine={self.affine}, "
            f"track_running_stats={self.track_running_stats}"
        )
