"""
Activation functions module for NLpy.

Normalization layers take an optional elementwise activation that is applied
after the affine transform; any of the functions below can be passed, e.g.
``BatchNorm(64, activation=relu)``. Module versions are provided for use in
Sequential.
"""

from typing import Dict

import numpy as np

from ..core import Function, Module, Tensor
from ..core.function import accumulate_grad
from ..ops.basic import as_tensor

# Scaled exponential linear unit constants, shared with AlphaDropout
SELU_SCALE = 1.0507009873554805
SELU_ALPHA = 1.6732632423543773


class _Elementwise(Function):
    """
    An activation ``y = f(x)`` applied independently to every element.

    Subclasses give ``f`` and its derivative on raw arrays; the derivative
    may use the forward result ``y`` where that is cheaper than recomputing.
    """

    @staticmethod
    def fn(x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    @staticmethod
    def derivative(x: np.ndarray, y: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    @classmethod
    def forward(cls, ctx, x):
        x = as_tensor(x)
        y = cls.fn(x.data)
        ctx.save_for_backward(x)
        ctx.save_arguments(output=y, derivative=cls.derivative)
        return Tensor(y)

    @staticmethod
    def backward(ctx, grad_output: np.ndarray, grad_dict: Dict[int, np.ndarray]) -> None:
        (x,) = ctx.saved_tensors
        args = ctx.saved_arguments
        if x.requires_grad:
            accumulate_grad(grad_dict, x, grad_output * args["derivative"](x.data, args["output"]))


class ReLUFunction(_Elementwise):
    """f(x) = max(0, x)"""

    @staticmethod
    def fn(x):
        return np.maximum(0, x)

    @staticmethod
    def derivative(x, y):
        return (x > 0).astype(np.float64)


class SELUFunction(_Elementwise):
    """f(x) = scale * (x if x > 0 else alpha * (exp(x) - 1))"""

    @staticmethod
    def fn(x):
        # exp only sees non-positive values, so it cannot overflow
        negative = SELU_ALPHA * np.expm1(np.minimum(x, 0))
        return SELU_SCALE * np.where(x > 0, x, negative)

    @staticmethod
    def derivative(x, y):
        return SELU_SCALE * np.where(x > 0, 1.0, SELU_ALPHA * np.exp(np.minimum(x, 0)))


class SigmoidFunction(_Elementwise):
    """f(x) = 1 / (1 + exp(-x))"""

    @staticmethod
    def fn(x):
        # Evaluated on exp(-|x|) to stay finite for large |x|
        z = np.exp(-np.abs(x))
        return np.where(x >= 0, 1 / (1 + z), z / (1 + z))

    @staticmethod
    def derivative(x, y):
        return y * (1 - y)


class TanhFunction(_Elementwise):
    """f(x) = tanh(x)"""

    @staticmethod
    def fn(x):
        return np.tanh(x)

    @staticmethod
    def derivative(x, y):
        return 1 - y**2


# Module implementations (for use in Sequential)


class ReLU(Module):
    def forward(self, x: Tensor) -> Tensor:
        return ReLUFunction.apply(x)


class SELU(Module):
    def forward(self, x: Tensor) -> Tensor:
        return SELUFunction.apply(x)


class Sigmoid(Module):
    def forward(self, x: Tensor) -> Tensor:
        return SigmoidFunction.apply(x)


class Tanh(Module):
    def forward(self, x: Tensor) -> Tensor:
        return TanhFunction.apply(x)


# Functional interface, also what normalization layers accept as ``activation``


def identity(x: Tensor) -> Tensor:
    return x


def relu(x: Tensor) -> Tensor:
    return ReLUFunction.apply(x)


def selu(x: Tensor) -> Tensor:
    return SELUFunction.apply(x)


def sigmoid(x: Tensor) -> Tensor:
    return SigmoidFunction.apply(x)


def tanh(x: Tensor) -> Tensor:
    return TanhFunction.apply(x)
