from numbers import Number
from typing import Any, Dict, Tuple

import numpy as np
from numpy.typing import NDArray

from ..core.context import Context
from ..core.function import Function, accumulate_grad, unbroadcast
from ..core.tensor import Tensor


def as_tensor(value: Any) -> Tensor:
    """Wraps scalars and arrays so every operand of an op is a Tensor."""
    return value if isinstance(value, Tensor) else Tensor(value)


def _scalar_like(value: Any, other: Any) -> Tensor:
    # A plain number takes the float dtype of the tensor it meets, so that
    # float32 data stays float32 when combined with constants such as eps
    if isinstance(value, Number) and isinstance(other, Tensor):
        if np.issubdtype(other.dtype, np.floating):
            return Tensor(np.asarray(value, dtype=other.dtype))
    return as_tensor(value)


def broadcast_operands(a: Any, b: Any) -> Tuple[Tensor, Tensor]:
    """
    Converts both operands to tensors and checks they broadcast together.

    Raises:
        ValueError: If the shapes are incompatible
    """
    a, b = _scalar_like(a, b), _scalar_like(b, a)
    try:
        np.broadcast_shapes(a.shape, b.shape)
    except ValueError:
        raise ValueError(f"Cannot broadcast shape {a.shape} with {b.shape}") from None
    return a, b


class Add(Function):
    """Elementwise ``a + b`` with numpy broadcasting."""

    @staticmethod
    def forward(ctx: Context, a, b) -> Tensor:
        a, b = broadcast_operands(a, b)
        ctx.save_for_backward(a, b)
        return Tensor(a.data + b.data)

    @staticmethod
    def backward(ctx: Context, grad_output: NDArray[Any], grad_dict: Dict[int, NDArray[Any]]) -> None:
        for operand in ctx.saved_tensors:
            if operand.requires_grad:
                accumulate_grad(grad_dict, operand, unbroadcast(grad_output, operand.shape))


class Multiply(Function):
    """Elementwise ``a * b`` with numpy broadcasting."""

    @staticmethod
    def forward(ctx: Context, a, b) -> Tensor:
        a, b = broadcast_operands(a, b)
        ctx.save_for_backward(a, b)
        return Tensor(a.data * b.data)

    @staticmethod
    def backward(ctx: Context, grad_output: NDArray[Any], grad_dict: Dict[int, NDArray[Any]]) -> None:
        a, b = ctx.saved_tensors
        # Each factor's derivative is the other factor
        for operand, other in ((a, b), (b, a)):
            if operand.requires_grad:
                accumulate_grad(grad_dict, operand, unbroadcast(grad_output * other.data, operand.shape))
