from typing import Any, Dict, Union

import numpy as np
from numpy.typing import NDArray

from ..core import Function, Tensor
from ..core.context import Context
from ..core.function import accumulate_grad, unbroadcast
from .basic import as_tensor, broadcast_operands


def _scalar_exponent(exponent: Union[Tensor, float, int]) -> float:
    if isinstance(exponent, Tensor):
        if exponent.data.size != 1:
            raise ValueError("Only scalar exponents are supported")
        return float(exponent.data)
    if not isinstance(exponent, (int, float)):
        raise TypeError("Exponent must be a Tensor, int, or float")
    return exponent


class Power(Function):
    """
    Elementwise ``base ** exponent`` for a constant scalar exponent.

    Used by the normalization layers for ``sqrt(var + eps)``; the exponent
    itself is never differentiated.
    """

    @staticmethod
    def forward(ctx: Context, base, exponent) -> Tensor:
        base = as_tensor(base)
        exponent = _scalar_exponent(exponent)
        ctx.save_for_backward(base)
        ctx.save_arguments(exponent=exponent)
        return Tensor(np.power(base.data, exponent))

    @staticmethod
    def backward(ctx: Context, grad_output: NDArray[Any], grad_dict: Dict[int, NDArray[Any]]) -> None:
        (base,) = ctx.saved_tensors
        n = ctx.saved_arguments["exponent"]
        if base.requires_grad:
            # d/dx x^n = n x^(n-1)
            accumulate_grad(grad_dict, base, grad_output * n * np.power(base.data, n - 1))


class Divide(Function):
    """
    Elementwise ``numerator / denominator`` with numpy broadcasting.

    Raises:
        ValueError: If any element of the denominator is zero
    """

    @staticmethod
    def forward(ctx: Context, numerator, denominator) -> Tensor:
        numerator, denominator = broadcast_operands(numerator, denominator)
        if np.any(denominator.data == 0):
            raise ValueError("Division by zero encountered")

        ctx.save_for_backward(numerator, denominator)
        return Tensor(numerator.data / denominator.data)

    @staticmethod
    def backward(ctx: Context, grad_output: NDArray[Any], grad_dict: Dict[int, NDArray[Any]]) -> None:
        numerator, denominator = ctx.saved_tensors
        quotient = grad_output / denominator.data

        if numerator.requires_grad:
            accumulate_grad(grad_dict, numerator, unbroadcast(quotient, numerator.shape))
        if denominator.requires_grad:
            grad = -quotient * numerator.data / denominator.data
            accumulate_grad(grad_dict, denominator, unbroadcast(grad, denominator.shape))
