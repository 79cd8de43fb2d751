"""
Order execution: book pricing, submission and cache invalidation.
"""

from .book_cache import OrderBookCache
from .engine import OrderExecutionEngine
from .invalidation import ACTIVE_ORDERS, POSITIONS, CacheInvalidator
from .pricer import OrderBookPricer, simulate_fill

__all__ = [
    "OrderBookCache",
    "OrderExecutionEngine",
    "ACTIVE_ORDERS",
    "POSITIONS",
    "CacheInvalidator",
    "OrderBookPricer",
    "simulate_fill",
]
