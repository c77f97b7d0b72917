from collections import OrderedDict
from typing import Iterable, Iterator, Tuple, Union

from ..core import Module, Tensor


class Sequential(Module):
    """
    Applies its child modules one after another.

    Children are given either positionally, and named "0", "1", ..., or as a
    single OrderedDict of names to modules:

        Sequential(BatchNorm(10, activation=relu), Dropout(0.2))
        Sequential(OrderedDict([("norm", LayerNorm(10)), ("drop", AlphaDropout(0.1))]))

    Since the children are registered submodules, ``train``, ``eval`` and
    ``testmode`` on the container reach every layer inside it.
    """

    def __init__(self, *args: Union[Module, "OrderedDict[str, Module]"]) -> None:
        super().__init__()
        for name, module in self._named_children(args):
            if not isinstance(module, Module):
                raise TypeError(f"Sequential expects Module instances, got {type(module)}")
            self.add_module(name, module)

    @staticmethod
    def _named_children(args: Tuple) -> Iterable[Tuple[str, Module]]:
        if len(args) >= 1 and isinstance(args[0], OrderedDict):
            if len(args) > 1:
                raise TypeError("An OrderedDict must be the only argument to Sequential")
            return args[0].items()
        return ((str(i), module) for i, module in enumerate(args))

    def forward(self, x: Tensor) -> Tensor:
        for module in self:
            x = module(x)
        return x

    def __getitem__(self, idx: Union[slice, int]) -> Union["Sequential", Module]:
        items = list(self._modules.items())
        if isinstance(idx, slice):
            return Sequential(OrderedDict(items[idx]))
        return items[idx][1]

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self) -> Iterator[Module]:
        return iter(self._modules.values())

    def append(self, module: Module) -> "Sequential":
        """Adds ``module`` at the end, named by its position."""
        self.add_module(str(len(self)), module)
        return self
