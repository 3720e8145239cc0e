"""Display formatting for scalar metrics."""

from typing import Optional

PERCENT_PLACEHOLDER = "--%"
VALUE_PLACEHOLDER = "--"


def format_percent(value: Optional[float]) -> Optional[str]:
    """``0.8123`` -> ``"81.23%"``; ``None`` when there is nothing to show."""
    if value is None:
        return None
    return f"{float(value) * 100:.2f}%"


def format_decimal(value: Optional[float], digits: int) -> Optional[str]:
    if value is None:
        return None
    return f"{float(value):.{digits}f}"


def format_count(value: Optional[int]) -> Optional[str]:
    if value is None:
        return None
    return f"{int(value):,}"
