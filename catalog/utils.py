# catalog/utils.py
import math


def is_number(value):
    """Return True for real int/float values (bools and NaN excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def lower_median(values):
    """
    Return the middle element of the ascending-sorted values.

    For an even number of values this is the upper of the two central
    elements by index (``len // 2``), never an average of the two.

    Args:
        values (Iterable[float]): numeric values

    Returns:
        float or None: the selected element, or None for an empty input

    Example:
        >>> lower_median([40, 10, 15])
        15
    """
    ordered = sorted(values)
    if not ordered:
        return None
    return ordered[len(ordered) // 2]


def first_number(*values):
    for v in values:
        if is_number(v):
            return v
    return None


def representative_price(estimate):
    """
    Pick the single display price of an estimate.

    Precedence is typical, then min, then max; the first numeric one wins.

    Args:
        estimate (PriceEstimate or None): estimate to read

    Returns:
        float or None: the representative price, None when nothing is numeric
    """
    if estimate is None:
        return None
    return first_number(estimate.typical, estimate.min, estimate.max)


def observed_ceiling(prices, floor_value=50):
    """
    Compute the upper bound of the price range presets.

    The ceiling is the rounded-up maximum of the observed prices, never
    below ``floor_value``. With no prices it is ``floor_value``.
    """
    numeric = [p for p in prices if is_number(p)]
    if not numeric:
        return floor_value
    return int(math.ceil(max(numeric + [floor_value])))
