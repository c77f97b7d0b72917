import logging
from typing import Any, Optional, Tuple

import numpy as np
from numpy.typing import DTypeLike, NDArray

from ...core import Tensor
from ...core.errors import StatisticsError

logger = logging.getLogger(__name__)


class RunningStats:
    """
    Exponential moving averages of the mean and variance seen in training.

    One value is kept per statistic: per channel for BatchNorm and
    InstanceNorm, per group for GroupNorm. The owning layer registers
    ``mean`` and ``var`` as its ``running_mean`` / ``running_var`` buffers;
    ``update`` rewrites their data in place and never touches the autograd
    graph.

    Args:
        size: Number of statistics tracked
        momentum: Weight of the newest batch in the moving average
    """

    def __init__(self, size: int, momentum: float = 0.1):
        self.mean = Tensor(np.zeros(size))
        self.var = Tensor(np.ones(size))
        self.momentum = momentum

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.mean.shape

    def update(self, batch_mean: NDArray[Any], batch_var: NDArray[Any], n: int) -> None:
        """
        Folds one batch of statistics into the running estimates.

        ``batch_mean`` and ``batch_var`` are the keep-dims statistics from the
        forward pass, with the batch on axis 0; statistics computed per sample
        are averaged over the batch before they are stored. ``batch_var`` is the
        biased variance and is rescaled by ``n / (n - 1)``, where ``n`` is the
        number of values each statistic was reduced over.

        Raises:
            StatisticsError: If ``n`` is less than 2
        """
        if n < 2:
            raise StatisticsError(
                f"Expected more than 1 value per statistic when training, got {n}"
            )

        m = self.momentum
        mean = np.mean(batch_mean, axis=0).reshape(self.shape)
        var = np.mean(batch_var, axis=0).reshape(self.shape)
        self.mean.data = (1 - m) * self.mean.data + m * mean
        self.var.data = (1 - m) * self.var.data + m * (n / (n - 1)) * var
        logger.debug("Updated running statistics %s from %d values each", self.shape, n)

    def broadcast(self, shape: Tuple[int, ...], dtype: Optional[DTypeLike] = None) -> Tuple[Tensor, Tensor]:
        """
        Returns the running mean and variance reshaped to ``shape``, outside the graph.

        The estimates are accumulated in float64; ``dtype`` casts what is
        returned, so that inference keeps the precision of the input.
        """
        mean, var = self.mean.data.reshape(shape), self.var.data.reshape(shape)
        if dtype is not None:
            mean, var = mean.astype(dtype), var.astype(dtype)
        return Tensor(mean), Tensor(var)
