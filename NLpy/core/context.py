from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass
class Context:
    """
    What a Function's forward pass hands over to its backward pass.

    ``tensors`` holds the inputs a gradient is routed to; ``arguments`` holds
    constants the derivative depends on, such as a sampled dropout mask or the
    axes of a reduction.
    """

    tensors: Tuple[Any, ...] = ()
    arguments: Dict[str, Any] = field(default_factory=dict)

    def save_for_backward(self, *tensors: Any) -> None:
        self.tensors = tensors

    def save_arguments(self, **arguments: Any) -> None:
        self.arguments.update(arguments)

    @property
    def saved_tensors(self) -> Tuple[Any, ...]:
        return self.tensors

    @property
    def saved_arguments(self) -> Dict[str, Any]:
        # A copy, so backward rules cannot alter what a later call sees
        return dict(self.arguments)

    def clear(self) -> None:
        self.tensors = ()
        self.arguments.clear()
