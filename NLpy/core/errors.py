"""
Exception types raised by NLpy layers.

All of them derive from ValueError so code written against plain ValueError
keeps working.
"""


class ValidationError(ValueError):
    """Raised at construction time when a layer is given invalid parameters."""


class ShapeError(ValueError):
    """Raised during a forward call when the input shape is incompatible with the layer."""


class StatisticsError(ValueError):
    """
    Raised when running statistics would be updated from fewer than two values
    per statistic, where the unbiased variance correction n / (n - 1) is undefined.
    """
