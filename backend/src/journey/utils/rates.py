"""Percentage helpers shared by funnel, rollup and A/B metrics."""


def percentage(part: float, whole: float, clamp: bool = True, digits: int = 2) -> float:
    """
    Compute ``part / whole * 100``.

    Returns 0 when ``whole`` is zero or negative. With ``clamp`` the result
    is bounded to [0, 100].
    """
    if whole <= 0:
        return 0.0
    value = part / whole * 100
    if clamp:
        value = min(max(value, 0.0), 100.0)
    return round(value, digits)


def mean(values: list[float], digits: int = 2) -> float:
    """Arithmetic mean, 0 for an empty list."""
    if not values:
        return 0.0
    return round(sum(values) / len(values), digits)
