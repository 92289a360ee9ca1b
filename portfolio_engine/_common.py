"""Small numeric helpers shared across engine modules."""

from collections.abc import Iterable


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide, returning ``default`` when the denominator is zero.

    Parameters
    ----------
    numerator : float
        Dividend.
    denominator : float
        Divisor.
    default : float
        Value returned when ``denominator`` is zero.

    Returns
    -------
    float
    """
    if denominator == 0:
        return default
    return numerator / denominator


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean, 0 for an empty input."""
    values = list(values)
    return safe_divide(sum(values), len(values))
