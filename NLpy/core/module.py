from collections import OrderedDict
from typing import Any, Iterator, Optional, Tuple

from .mode import Mode, is_active, testmode, trainmode
from .tensor import Tensor


class Module:
    """
    Base class for layers and containers of layers.

    Assigning a Tensor attribute registers it as a parameter and assigning a
    Module registers it as a child; non-trainable state (running statistics)
    is registered explicitly with :meth:`register_buffer`. Subclasses must
    call ``super().__init__()`` before assigning either.

    Each module carries a tri-state ``mode`` (see :mod:`NLpy.core.mode`);
    ``training`` is the resolved flag layers consult during forward.
    """

    def __init__(self):
        # Bypass __setattr__, which relies on these stores existing
        object.__setattr__(self, "mode", Mode.AUTO)
        object.__setattr__(self, "_parameters", OrderedDict())
        object.__setattr__(self, "_buffers", OrderedDict())
        object.__setattr__(self, "_modules", OrderedDict())

    def _store(self, store: str, kind: str) -> "OrderedDict[str, Any]":
        if store not in self.__dict__:
            raise TypeError(f"cannot assign {kind} before Module.__init__() call")
        return self.__dict__[store]

    def register_parameter(self, name: str, param: Optional[Tensor]) -> None:
        """Registers a trainable tensor; ``None`` marks an absent parameter."""
        params = self._store("_parameters", "parameter")
        if param is not None and not isinstance(param, Tensor):
            raise TypeError(f"Parameter {name} must be a Tensor, not {type(param)}")
        params[name] = param

    def register_buffer(self, name: str, tensor: Optional[Tensor]) -> None:
        """
        Registers state that belongs to the module but is not trained, such as
        the running statistics of normalization layers.
        """
        buffers = self._store("_buffers", "buffer")
        if tensor is not None and not isinstance(tensor, Tensor):
            raise TypeError(f"Buffer {name} must be a Tensor, not {type(tensor)}")
        buffers[name] = tensor

    def add_module(self, name: str, module: Optional["Module"]) -> None:
        """Registers a child module under ``name``."""
        if module is not None and not isinstance(module, Module):
            raise TypeError(f"{name} is not a Module subclass")
        self._store("_modules", "module")[name] = module

    def __getattr__(self, name: str) -> Any:
        # Only called when normal lookup fails
        for store in ("_parameters", "_buffers", "_modules"):
            registered = self.__dict__.get(store)
            if registered is not None and name in registered:
                return registered[name]
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.__dict__.get("_buffers", ()):
            self.register_buffer(name, value)
        elif isinstance(value, Tensor):
            self.register_parameter(name, value)
        elif isinstance(value, Module):
            self.add_module(name, value)
        else:
            object.__setattr__(self, name, value)

    @property
    def training(self) -> bool:
        """Whether the module currently behaves as in training."""
        return is_active(self)

    def named_parameters(self) -> Iterator[Tuple[str, Tensor]]:
        """Yields ``(dotted_name, parameter)`` for this module and its descendants."""
        for name, param in self._parameters.items():
            if param is not None:
                yield name, param
        for prefix, child in self._modules.items():
            if child is None:
                continue
            for name, param in child.named_parameters():
                yield f"{prefix}.{name}", param

    def parameters(self) -> Iterator[Tensor]:
        return (param for _, param in self.named_parameters())

    def buffers(self) -> Iterator[Tensor]:
        for buf in self._buffers.values():
            if buf is not None:
                yield buf
        for child in self.children():
            yield from child.buffers()

    def children(self) -> Iterator["Module"]:
        return (m for m in self._modules.values() if m is not None)

    def modules(self) -> Iterator["Module"]:
        """Yields this module followed by every descendant, depth first."""
        yield self
        for child in self.children():
            yield from child.modules()

    def train(self, mode: bool = True) -> "Module":
        """Forces training mode (or inference, for ``mode=False``) recursively."""
        return trainmode(self, mode)

    def eval(self) -> "Module":
        """Forces inference mode recursively."""
        return testmode(self, True)

    def __call__(self, *args, **kwargs):
        return self.forward(*args, **kwargs)

    def forward(self, *args, **kwargs):
        raise NotImplementedError(f"{type(self).__name__} does not define forward()")

    def extra_repr(self) -> str:
        """Layer-specific settings shown inside the parentheses of ``repr``."""
        return ""

    def __repr__(self):
        extra = self.extra_repr()
        lines = extra.split("\n") if extra else []
        children = [f"({name}): " + _indent(repr(child), 2) for name, child in self._modules.items()]

        # Leaf layers fit on one line
        if not children and len(lines) <= 1:
            return f"{type(self).__name__}({extra})"
        body = "\n  ".join(lines + children)
        return f"{type(self).__name__}(\n  {body}\n)"


def _indent(text: str, spaces: int) -> str:
    """Indents every line of ``text`` but the first."""
    head, *rest = text.split("\n")
    return "\n".join([head] + [" " * spaces + line for line in rest])
