"""
Train/inference mode resolution for stateful layers.

Every layer carries a tri-state ``mode``: forced training, forced inference,
or ``AUTO``. ``AUTO`` layers follow the ambient training signal, which is off
(inference) unless a caller enables it with :func:`training_mode`:

    >>> with training_mode():
    ...     y = model(x)   # dropout active, batch statistics updated

The ambient signal lives in a context variable, so each thread and each
asyncio task sees its own value. It carries no gradient.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar, Token
from enum import Enum
from typing import Any, Iterator, Optional, Union

from .errors import ValidationError

logger = logging.getLogger(__name__)

_training: ContextVar[bool] = ContextVar("nlpy_training", default=False)


class Mode(Enum):
    TRAIN = "train"
    INFERENCE = "inference"
    AUTO = "auto"


ModeLike = Union[Mode, bool, str, None]


def is_training() -> bool:
    """Returns the ambient training signal."""
    return _training.get()


def set_training(enabled: bool) -> Token:
    """
    Sets the ambient training signal for the current context.

    Returns:
        A token that restores the previous value via ``reset_training``
    """
    return _training.set(bool(enabled))


def reset_training(token: Token) -> None:
    _training.reset(token)


@contextmanager
def training_mode(enabled: bool = True) -> Iterator[None]:
    """Enables (or disables) the ambient training signal inside a ``with`` block."""
    token = set_training(enabled)
    try:
        yield
    finally:
        reset_training(token)


def _as_mode(flag: ModeLike) -> Mode:
    if isinstance(flag, Mode):
        return flag
    if flag is None or flag == "auto":
        return Mode.AUTO
    if flag is True:
        return Mode.TRAIN
    if flag is False:
        return Mode.INFERENCE
    raise ValidationError(f"mode must be True, False, None or 'auto', got {flag!r}")


def is_active(layer: Any) -> bool:
    """
    Resolves whether ``layer`` should behave as in training.

    A forced mode wins; ``AUTO`` falls back to the ambient signal.
    """
    mode = _as_mode(getattr(layer, "mode", Mode.AUTO))
    if mode is Mode.AUTO:
        return is_training()
    return mode is Mode.TRAIN


def _set_mode(layer: Any, mode: Mode) -> Any:
    submodules = layer.modules() if hasattr(layer, "modules") else [layer]
    for module in submodules:
        module.mode = mode
    logger.debug("Set %s to %s mode", type(layer).__name__, mode.value)
    return layer


def testmode(layer: Any, mode: Optional[Union[bool, str]] = True) -> Any:
    """
    Puts ``layer`` and all of its submodules in test (inference) mode.

    Args:
        layer: Module to update
        mode: ``True`` forces inference, ``False`` forces training, and
            ``None`` or ``"auto"`` returns control to the ambient signal

    Returns:
        The same layer, for chaining
    """
    if mode is None or mode == "auto":
        return _set_mode(layer, Mode.AUTO)
    if not isinstance(mode, bool):
        raise ValidationError(f"mode must be True, False, None or 'auto', got {mode!r}")
    return _set_mode(layer, Mode.INFERENCE if mode else Mode.TRAIN)


def trainmode(layer: Any, mode: Optional[Union[bool, str]] = True) -> Any:
    """
    Puts ``layer`` and all of its submodules in training mode.

    The inverse of :func:`testmode`: ``True`` forces training, ``False``
    forces inference, and ``None`` or ``"auto"`` reverts to the ambient signal.
    """
    if mode is None or mode == "auto":
        return testmode(layer, None)
    if not isinstance(mode, bool):
        raise ValidationError(f"mode must be True, False, None or 'auto', got {mode!r}")
    return testmode(layer, not mode)
