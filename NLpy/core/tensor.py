from numbers import Number
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
from numpy.typing import DTypeLike, NDArray

Axis = Optional[Union[int, Tuple[int, ...]]]
Operand = Union["Tensor", Number]


def _ops():
    # NLpy.ops depends on this module, so it is resolved at call time
    from .. import ops

    return ops


class Tensor:
    """
    A numpy array that can take part in reverse-mode differentiation.

    Arithmetic on tensors is dispatched to :class:`~NLpy.core.Function`
    subclasses, which record how each result was computed. Calling
    :meth:`backward` on a result then fills ``.grad`` on every leaf tensor
    created with ``requires_grad=True``.

    Attributes:
        data: The wrapped array
        grad: Accumulated gradient, same shape as ``data``; None unless
            gradients are required
    """

    def __init__(
        self,
        data: Union[NDArray[Any], List[Any], Number, "Tensor"],
        requires_grad: bool = False,
        dtype: Optional[DTypeLike] = None,
    ):
        if isinstance(data, Tensor):
            data = data.data
        if isinstance(data, np.ndarray):
            self.data = data if dtype is None else data.astype(dtype)
        else:
            self.data = np.array(data, dtype=dtype)

        self.grad: Optional[NDArray[Any]] = None
        self._requires_grad = False
        self._backward_fn: Optional[Callable[[NDArray[Any], Dict[int, NDArray[Any]]], None]] = None
        # Graph node, created by the engine once this tensor takes part in a graph
        self._node = None
        self.requires_grad_(requires_grad)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(int(d) for d in self.data.shape)

    @property
    def ndim(self) -> int:
        return self.data.ndim

    @property
    def size(self) -> int:
        return int(self.data.size)

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    @property
    def requires_grad(self) -> bool:
        return self._requires_grad

    def requires_grad_(self, requires_grad: bool = True) -> "Tensor":
        """Turns gradient tracking on or off in place and returns ``self``."""
        self._requires_grad = requires_grad
        if requires_grad:
            if self.grad is None:
                self.zero_grad()
            from .autograd import get_autograd_engine

            get_autograd_engine().register_tensor(self)
        return self

    def zero_grad(self) -> None:
        self.grad = np.zeros(self.data.shape, dtype=np.float64)

    def detach(self) -> "Tensor":
        """A constant tensor sharing this tensor's data."""
        return Tensor(self.data)

    def backward(self, gradient: Optional[NDArray[Any]] = None) -> None:
        """
        Backpropagates ``gradient`` from this tensor through the recorded graph.

        ``gradient`` defaults to one, which is only meaningful for a single
        element; otherwise it is broadcast to this tensor's shape.

        Raises:
            RuntimeError: If ``gradient`` is omitted for a tensor with more
                than one element
        """
        if not self.requires_grad:
            return

        if gradient is None:
            if self.size != 1:
                raise RuntimeError("grad can be implicitly created only for scalar outputs")
            gradient = np.ones(self.shape)
        gradient = np.asarray(gradient, dtype=np.float64)
        if gradient.shape != self.shape:
            gradient = np.broadcast_to(gradient, self.shape).copy()

        from .autograd import get_autograd_engine

        get_autograd_engine().backward(self, gradient)

    def numpy(self) -> NDArray[Any]:
        return self.data

    @classmethod
    def from_numpy(cls, array: NDArray[Any], requires_grad: bool = False) -> "Tensor":
        """Copies ``array`` into a new tensor."""
        return cls(array.copy(), requires_grad=requires_grad)

    def __len__(self) -> int:
        return self.data.shape[0] if self.data.shape else 1

    def __repr__(self) -> str:
        return f"Tensor({self.data}, requires_grad={self.requires_grad})"

    # Arithmetic

    def __add__(self, other: Operand) -> "Tensor":
        return _ops().Add.apply(self, other)

    def __radd__(self, other: Number) -> "Tensor":
        return _ops().Add.apply(other, self)

    def __mul__(self, other: Operand) -> "Tensor":
        return _ops().Multiply.apply(self, other)

    def __rmul__(self, other: Number) -> "Tensor":
        return _ops().Multiply.apply(other, self)

    def __neg__(self) -> "Tensor":
        return _ops().Multiply.apply(self, -1.0)

    def __sub__(self, other: Operand) -> "Tensor":
        if isinstance(other, Tensor):
            return self + (-other)
        if isinstance(other, complex):
            raise TypeError("Cannot convert complex number to tensor")
        if not isinstance(other, Number):
            raise TypeError(f"Cannot subtract {type(other).__name__} from Tensor")
        return _ops().Add.apply(self, -other)

    def __rsub__(self, other: Number) -> "Tensor":
        return _ops().Add.apply(other, -self)

    def __truediv__(self, other: Operand) -> "Tensor":
        return _ops().Divide.apply(self, other)

    def __rtruediv__(self, other: Number) -> "Tensor":
        return _ops().Divide.apply(other, self)

    def __pow__(self, exponent: Union["Tensor", float]) -> "Tensor":
        return _ops().Power.apply(self, exponent)

    def sqrt(self) -> "Tensor":
        return self**0.5

    # Shape and reductions

    def reshape(self, *shape: int) -> "Tensor":
        """Accepts ``reshape(2, 3)`` as well as ``reshape((2, 3))``."""
        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = tuple(shape[0])
        return _ops().Reshape.apply(self, shape)

    def sum(self, axis: Axis = None, keepdims: bool = False) -> "Tensor":
        return _ops().Sum.apply(self, axis, keepdims)

    def mean(self, axis: Axis = None, keepdims: bool = False) -> "Tensor":
        return _ops().Mean.apply(self, axis, keepdims)

    def var(self, axis: Axis = None, keepdims: bool = False) -> "Tensor":
        """Biased (population) variance over ``axis``."""
        centered = self - self.mean(axis=axis, keepdims=True)
        return (centered * centered).mean(axis=axis, keepdims=keepdims)

    # Comparisons produce constant masks and are never differentiated

    def __gt__(self, other: Operand) -> "Tensor":
        return Tensor(self.data > _raw(other))

    def __ge__(self, other: Operand) -> "Tensor":
        return Tensor(self.data >= _raw(other))

    def __lt__(self, other: Operand) -> "Tensor":
        return Tensor(self.data < _raw(other))

    def __le__(self, other: Operand) -> "Tensor":
        return Tensor(self.data <= _raw(other))


def _raw(value: Any) -> Any:
    return value.data if isinstance(value, Tensor) else value
