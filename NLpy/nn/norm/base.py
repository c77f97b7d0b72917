from typing import Any, Callable, Optional, Tuple

import numpy as np

from ...core import Module, Tensor
from ...core.errors import ShapeError, ValidationError
from .functional import affine_shape, apply_affine, norm_layer_forward
from .stats import RunningStats

Activation = Optional[Callable[[Tensor], Tensor]]


def has_affine(layer: Any) -> bool:
    """
    Return True if a layer has trainable shift and scale parameters.
    """
    return bool(getattr(layer, "affine", False))


def _check_positive(name: str, value: int) -> None:
    if not isinstance(value, (int, np.integer)) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")


class _NormBase(Module):
    """
    State shared by BatchNorm, InstanceNorm and GroupNorm.

    Subclasses say which axes to reduce over and at what granularity running
    statistics are kept; the normalization itself is layer-agnostic.

    Args:
        num_features: Size of the channel axis (axis 1)
        activation: Elementwise function applied to the output. Default: identity
        eps: Small constant added to the variance for numerical stability
        momentum: Weight of the newest batch in the running statistics
        affine: If True, learn a per-channel scale (weight) and shift (bias)
        track_running_stats: If True, accumulate statistics during training and
            use them in inference mode
        num_stats: Number of running statistics kept; defaults to num_features
    """

    def __init__(
        self,
        num_features: int,
        activation: Activation = None,
        eps: float = 1e-5,
        momentum: float = 0.1,
        affine: bool = True,
        track_running_stats: bool = True,
        num_stats: Optional[int] = None,
    ):
        super().__init__()
        _check_positive("num_features", num_features)
        self.num_features = num_features
        self.activation = activation
        self.eps = eps
        self.momentum = momentum
        self.affine = affine
        self.track_running_stats = track_running_stats

        if self.affine:
            self.weight = Tensor(np.ones(num_features), requires_grad=True)
            self.bias = Tensor(np.zeros(num_features), requires_grad=True)
        else:
            self.register_parameter("weight", None)
            self.register_parameter("bias", None)

        if self.track_running_stats:
            self.stats: Optional[RunningStats] = RunningStats(num_stats or num_features, momentum)
            self.register_buffer("running_mean", self.stats.mean)
            self.register_buffer("running_var", self.stats.var)
        else:
            self.stats = None
            self.register_buffer("running_mean", None)
            self.register_buffer("running_var", None)

    def __setattr__(self, name: str, value: Any) -> None:
        # The buffers are the tensors in self.stats; assigning one copies the
        # values into it so the running statistics stay in one place
        stats = self.__dict__.get("stats")
        if stats is not None and name in ("running_mean", "running_var"):
            target = stats.mean if name == "running_mean" else stats.var
            data = np.asarray(value.data if isinstance(value, Tensor) else value, dtype=np.float64)
            if data.shape != target.shape:
                raise ShapeError(f"{name} must have shape {target.shape}, got {data.shape}")
            target.data = data.copy()
            return
        super().__setattr__(name, value)

    def _check_input(self, x: Tensor, min_ndim: int = 2) -> None:
        if x.ndim < min_ndim:
            raise ShapeError(
                f"{type(self).__name__} expected at least {min_ndim}D input, got {x.ndim}D input"
            )
        if x.shape[1] != self.num_features:
            raise ShapeError(
                f"{type(self).__name__} expected {self.num_features} channels, "
                f"but got {x.shape[1]} channels"
            )

    def reduction_axes(self, x: Tensor) -> Tuple[int, ...]:
        raise NotImplementedError

    def _finish(self, y: Tensor, shape: Tuple[int, ...]) -> Tensor:
        y = apply_affine(y, self.weight, self.bias, shape)
        return y if self.activation is None else self.activation(y)

    def forward(self, x: Tensor) -> Tensor:
        self._check_input(x)
        shape = affine_shape(x)
        y = norm_layer_forward(self, x, self.reduction_axes(x), shape)
        return self._finish(y, shape)

    def extra_repr(self) -> str:
        s = f"{self.num_features}, eps={self.eps}, momentum={self.momentum}"
        if self.activation is not None:
            s += f", activation={getattr(self.activation, '__name__', self.activation)}"
        return s + f", affine={self.affine}, track_running_stats={self.track_running_stats}"
