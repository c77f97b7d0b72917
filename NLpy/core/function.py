from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple

import numpy as np

from .context import Context
from .tensor import Tensor


class Function(ABC):
    """
    A differentiable operation, written as a pair of static methods.

    ``forward`` computes the result from plain tensors and stashes on ``ctx``
    whatever the derivative needs. ``backward`` receives the gradient of the
    loss with respect to the result and adds each input's share into
    ``grad_dict`` (keyed by ``id(input)``), normally through
    :func:`accumulate_grad`.

    Operations are invoked through :meth:`apply`, never by calling ``forward``
    directly, so that the result is linked into the autograd graph.
    """

    requires_grad: bool = True

    @staticmethod
    @abstractmethod
    def forward(ctx: Context, *args: Any, **kwargs: Any) -> Tensor:
        raise NotImplementedError

    @staticmethod
    @abstractmethod
    def backward(ctx: Context, grad_output: np.ndarray, grad_dict: Dict[int, np.ndarray]) -> None:
        raise NotImplementedError

    @classmethod
    def apply(cls, *args: Any, **kwargs: Any) -> Tensor:
        """
        Runs ``forward`` and, if any positional tensor argument requires
        gradients, makes the result require gradients too and records an edge
        from every tensor argument to it.
        """
        ctx = Context()
        result = cls.forward(ctx, *args, **kwargs)

        inputs = [arg for arg in args if isinstance(arg, Tensor)]
        if not cls.requires_grad or not any(t.requires_grad for t in inputs):
            return result

        def backward_fn(grad_output: np.ndarray, grad_dict: Dict[int, np.ndarray]) -> None:
            cls.backward(ctx, grad_output, grad_dict)

        result._backward_fn = backward_fn
        result.requires_grad_(True)

        from .autograd import get_autograd_engine

        engine = get_autograd_engine()
        for tensor in inputs:
            engine.add_edge(tensor, result)
        return result


def accumulate_grad(grad_dict: Dict[int, np.ndarray], tensor: Tensor, grad: np.ndarray) -> None:
    """
    Adds ``grad`` to the gradient recorded for ``tensor``.

    A tensor consumed by several operations receives one contribution from each.
    The sum is never taken in place, since the stored array may be shared with
    another node's gradient.
    """
    key = id(tensor)
    grad_dict[key] = grad_dict[key] + grad if key in grad_dict else grad


def unbroadcast(grad: np.ndarray, shape: Tuple[int, ...]) -> np.ndarray:
    """Reduces a gradient to ``shape`` by summing over broadcast dimensions."""
    shape = tuple(shape)
    # Leading dimensions added by broadcasting
    extra = grad.ndim - len(shape)
    if extra > 0:
        grad = grad.sum(axis=tuple(range(extra)))
    stretched = tuple(i for i, dim in enumerate(shape) if dim == 1 and grad.shape[i] != 1)
    if stretched:
        grad = grad.sum(axis=stretched, keepdims=True)
    return grad.reshape(shape)
