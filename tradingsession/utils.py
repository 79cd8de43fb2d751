"""Utility functions for the trading session core."""

import logging
from time import monotonic_ns, time
from typing import Optional


def setup_logging(
    name: str,
    level: str = "INFO",
    format_str: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging for a component.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_str: Optional custom format string

    Returns:
        Configured logger
    """
    if format_str is None:
        format_str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=format_str,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    return logging.getLogger(name)


def now_ms() -> int:
    """Get current monotonic timestamp in milliseconds."""
    return monotonic_ns() // 1_000_000


def wall_ms() -> int:
    """Get current wall clock timestamp in milliseconds."""
    return int(time() * 1000)


def round_to_tick(price: float, tick_size: float) -> float:
    """
    Round a price to the nearest tick.

    Args:
        price: Price to round
        tick_size: Tick size (e.g., 0.01)

    Returns:
        Price rounded to nearest tick
    """
    if tick_size <= 0:
        return price
    return round(round(price / tick_size) * tick_size, 10)


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between min and max."""
    return max(min_val, min(max_val, value))


def to_base_units(amount: float, decimals: int = 6) -> int:
    """Convert a decimal token amount to integer base units (floored)."""
    return int(amount * (10 ** decimals))


def from_base_units(raw: int, decimals: int = 6) -> float:
    """Convert integer base units to a decimal token amount."""
    return raw / (10 ** decimals)
