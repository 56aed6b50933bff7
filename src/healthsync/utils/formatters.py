import math

from slugify import slugify


def format_kind_name(name: str) -> str:
    """Normalize a metric kind name so ``heartRate``, ``Heart Rate`` and ``heart-rate`` compare equal."""
    return slugify(name, separator="")


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like JavaScript's ``Math.round`` rather than Python's banker's rounding."""
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5)
    return rounded / factor if digits else rounded
