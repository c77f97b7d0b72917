# layer_norm.py
from typing import Sequence, Tuple, Union

import numpy as np

from ...core import Module, Tensor
from ...core.errors import ShapeError, ValidationError
from .base import Activation, _check_positive
from .functional import normalise


class LayerNorm(Module):
    """
    Layer Normalization (https://arxiv.org/abs/1607.06450), designed to be
    used with recurrent hidden states.

    The input is normalised over its last ``len(normalized_shape)`` axes,
    whose sizes must equal ``normalized_shape``; then the elementwise
    ``activation`` is applied. No running statistics are kept, so training
    and inference behave the same.

    Args:
        normalized_shape: Size of the trailing axes to normalise over
        activation: Elementwise function applied to the output. Default: identity
        eps: Small constant for numerical stability
        affine: If True, learn an elementwise scale and shift of shape
            ``normalized_shape``
    """

    def __init__(
        self,
        normalized_shape: Union[int, Sequence[int]],
        activation: Activation = None,
        eps: float = 1e-5,
        affine: bool = True,
    ):
        super().__init__()
        if isinstance(normalized_shape, (int, np.integer)):
            normalized_shape = (normalized_shape,)
        if len(normalized_shape) == 0:
            raise ValidationError("normalized_shape must not be empty")
        for size in normalized_shape:
            _check_positive("normalized_shape", size)
        self.normalized_shape = tuple(int(s) for s in normalized_shape)
        self.activation = activation
        self.eps = eps
        self.affine = affine

        if self.affine:
            self.weight = Tensor(np.ones(self.normalized_shape), requires_grad=True)
            self.bias = Tensor(np.zeros(self.normalized_shape), requires_grad=True)
        else:
            self.register_parameter("weight", None)
            self.register_parameter("bias", None)

    def reduction_axes(self, x: Tensor) -> Tuple[int, ...]:
        return tuple(range(x.ndim - len(self.normalized_shape), x.ndim))

    def forward(self, x: Tensor) -> Tensor:
        ndim = len(self.normalized_shape)
        if x.ndim < ndim or x.shape[x.ndim - ndim:] != self.normalized_shape:
            raise ShapeError(
                f"Expected input with trailing shape {self.normalized_shape}, "
                f"got input shape {x.shape}"
            )

        y = normalise(x, axis=self.reduction_axes(x), eps=self.eps)
        if self.affine:
            # Parameters broadcast over the leading axes
            y = y * self.weight + self.bias
        return y if self.activation is None else self.activation(y)

    def extra_repr(self) -> str:
        s = f"{self.normalized_shape}, eps={self.eps}"
        if self.activation is not None:
            s += f", activation={getattr(self.activation, '__name__', self.activation)}"
        return s + f", affine={self.affine}"
