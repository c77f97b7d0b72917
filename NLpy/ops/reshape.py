from typing import Any, Dict, Tuple

from numpy.typing import NDArray

from ..core.context import Context
from ..core.function import Function, accumulate_grad
from ..core.tensor import Tensor


class Reshape(Function):
    """Views the data under a new shape; the gradient is reshaped back."""

    @staticmethod
    def forward(ctx: Context, tensor: Tensor, shape: Tuple[int, ...]) -> Tensor:
        ctx.save_for_backward(tensor)
        ctx.save_arguments(input_shape=tensor.shape)
        return Tensor(tensor.data.reshape(tuple(int(d) for d in shape)))

    @staticmethod
    def backward(ctx: Context, grad_output: NDArray[Any], grad_dict: Dict[int, NDArray[Any]]) -> None:
        (tensor,) = ctx.saved_tensors
        if tensor.requires_grad:
            accumulate_grad(grad_dict, tensor, grad_output.reshape(ctx.saved_arguments["input_shape"]))
