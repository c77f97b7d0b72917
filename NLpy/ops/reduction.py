from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from ..core import Context, Function, Tensor
from ..core.function import accumulate_grad
from .basic import as_tensor

AxisArg = Optional[Union[int, Tuple[int, ...]]]


def _normalize_axes(axis: AxisArg, ndim: int) -> Tuple[int, ...]:
    """Returns the reduced axes as a sorted tuple of non-negative ints."""
    if axis is None:
        return tuple(range(ndim))
    if isinstance(axis, int):
        axis = (axis,)
    return tuple(sorted(a % ndim if ndim else a for a in axis))


class _Reduction(Function):
    """
    Shared bookkeeping for reductions over a set of axes.

    The backward pass spreads the incoming gradient back over the reduced
    axes, scaled by :meth:`scale`.
    """

    reduce = staticmethod(np.sum)

    @staticmethod
    def scale(input_shape: Tuple[int, ...], axes: Tuple[int, ...]) -> float:
        return 1.0

    @classmethod
    def forward(cls, ctx: Context, x, axis: AxisArg = None, keepdims: bool = False) -> Tensor:
        x = as_tensor(x)
        axes = _normalize_axes(axis, x.ndim)
        ctx.save_for_backward(x)
        ctx.save_arguments(axes=axes, keepdims=keepdims, scale=cls.scale(x.shape, axes))
        return Tensor(cls.reduce(x.data, axis=axes, keepdims=keepdims))

    @staticmethod
    def backward(ctx: Context, grad_output: NDArray[Any], grad_dict: Dict[int, NDArray[Any]]) -> None:
        (x,) = ctx.saved_tensors
        args = ctx.saved_arguments
        if not x.requires_grad:
            return

        if not args["keepdims"] and args["axes"]:
            grad_output = np.expand_dims(grad_output, axis=args["axes"])
        grad = np.broadcast_to(grad_output, x.shape) * args["scale"]
        accumulate_grad(grad_dict, x, grad)


class Sum(_Reduction):
    """Sum over ``axis`` (all axes when None)."""


class Mean(_Reduction):
    """Mean over ``axis`` (all axes when None); ``axis`` may be a tuple."""

    reduce = staticmethod(np.mean)

    @staticmethod
    def scale(input_shape: Tuple[int, ...], axes: Tuple[int, ...]) -> float:
        # One over the number of elements each mean was taken over
        return 1.0 / int(np.prod([input_shape[a] for a in axes]))
