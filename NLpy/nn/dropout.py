# dropout.py
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

from ..core import Function, Module, Tensor
from ..core.errors import ShapeError, ValidationError
from ..core.function import accumulate_grad
from .activations import SELU_ALPHA, SELU_SCALE

Dims = Optional[Union[int, Sequence[int]]]


def _check_probability(p: float) -> None:
    if p < 0 or p > 1:
        raise ValidationError(f"dropout probability has to be between 0 and 1, but got {p}")


def _dropout_shape(shape: Tuple[int, ...], dims: Dims) -> Tuple[int, ...]:
    """
    Shape of the random draw: the full shape for ``dims=None``, otherwise
    size 1 on every axis not listed in ``dims`` so the mask is shared along it.
    """
    if dims is None:
        return shape
    if isinstance(dims, int):
        dims = (dims,)
    ndim = len(shape)
    for d in dims:
        if not -ndim <= d < ndim:
            raise ShapeError(f"dropout dim {d} is out of range for {ndim}D input")
    kept = {d % ndim for d in dims}
    return tuple(s if i in kept else 1 for i, s in enumerate(shape))


def dropout_mask(x: Tensor, p: float, dims: Dims = None) -> np.ndarray:
    """
    Samples a dropout mask for ``x``.

    Entries are ``1 / (1 - p)`` where a uniform sample exceeds ``p`` and ``0``
    elsewhere, so the mask has expectation one.
    """
    dtype = x.data.dtype if np.issubdtype(x.data.dtype, np.floating) else np.float64
    y = np.random.rand(*_dropout_shape(x.shape, dims))
    scale = 1.0 / (1.0 - p) if p != 1.0 else 0.0
    return np.where(y > p, scale, 0.0).astype(dtype)


class DropoutFunction(Function):
    """
    Multiplies the input by a freshly sampled dropout mask.

    The mask is a constant of the graph: the backward pass scales the incoming
    gradient by it and nothing flows into the random draw.
    """

    @staticmethod
    def forward(ctx, x: Tensor, p: float, dims: Dims = None) -> Tensor:
        mask = dropout_mask(x, p, dims)
        ctx.save_for_backward(x)
        ctx.save_arguments(mask=mask)
        return Tensor(x.data * mask)

    @staticmethod
    def backward(ctx, grad_output: np.ndarray, grad_dict: Dict[int, np.ndarray]) -> None:
        (x,) = ctx.saved_tensors
        if x.requires_grad:
            accumulate_grad(grad_dict, x, grad_output * ctx.saved_arguments["mask"])


class AlphaDropoutFunction(Function):
    """
    Self-normalizing dropout.

    Dropped units are set to the negative saturation value of SELU,
    ``alpha' = -scale * alpha``, instead of zero, and the result is passed
    through the affine correction ``A * y + B``.
    """

    @staticmethod
    def forward(ctx, x: Tensor, p: float) -> Tensor:
        alpha1 = -SELU_SCALE * SELU_ALPHA
        noise = np.random.randn(*x.shape)
        keep = (noise > (1 - p)).astype(np.float64)

        y = x.data * keep + alpha1 * (1 - keep)
        a = (p + p * (1 - p) * alpha1**2) ** 0.5
        b = -a * alpha1 * (1 - p)

        ctx.save_for_backward(x)
        ctx.save_arguments(keep=keep, a=a)
        return Tensor(a * y + b)

    @staticmethod
    def backward(ctx, grad_output: np.ndarray, grad_dict: Dict[int, np.ndarray]) -> None:
        (x,) = ctx.saved_tensors
        args = ctx.saved_arguments
        if x.requires_grad:
            accumulate_grad(grad_dict, x, grad_output * args["a"] * args["keep"])


def dropout(x: Tensor, p: float, dims: Dims = None, active: bool = True) -> Tensor:
    """
    The dropout function.

    If ``active`` is True, each input is either set to 0 (with probability
    ``p``) or scaled by ``1 / (1 - p)``. ``dims`` lists the axes that get
    independent samples; the mask is shared along every other axis, e.g.
    ``dims=1`` drops whole features consistently across the batch.

    If ``active`` is False the input is returned unchanged. The :class:`Dropout`
    layer manages ``active`` from the train/inference mode instead.
    """
    _check_probability(p)
    if not active:
        return x
    return DropoutFunction.apply(x, p, dims)


def alpha_dropout(x: Tensor, p: float, active: bool = True) -> Tensor:
    """Functional form of :class:`AlphaDropout`."""
    _check_probability(p)
    if not active:
        return x
    return AlphaDropoutFunction.apply(x, p)


class Dropout(Module):
    """
    Randomly zeroes some of the elements of the input tensor with probability p.

    Does nothing to the input in inference mode (see ``testmode``).

    Args:
        p: Probability of an element to be zeroed. Default: 0.5
        dims: Axes sampled independently; None samples every element
    """

    affine = False

    def __init__(self, p: float = 0.5, dims: Dims = None):
        super().__init__()
        _check_probability(p)
        self.p = p
        self.dims = dims

    def forward(self, x: Tensor) -> Tensor:
        return dropout(x, self.p, dims=self.dims, active=self.training)

    def extra_repr(self) -> str:
        if self.dims is None:
            return f"p={self.p}"
        return f"p={self.p}, dims={self.dims!r}"


class AlphaDropout(Module):
    """
    Dropout for self-normalizing networks (https://arxiv.org/abs/1706.02515),
    intended to be paired with SELU activations.

    Does nothing to the input in inference mode (see ``testmode``).

    Args:
        p: Probability of an element to be dropped. Default: 0.5
    """

    affine = False

    def __init__(self, p: float = 0.5):
        super().__init__()
        _check_probability(p)
        self.p = p

    def forward(self, x: Tensor) -> Tensor:
        return alpha_dropout(x, self.p, active=self.training)

    def extra_repr(self) -> str:
        return f"p={self.p}"
