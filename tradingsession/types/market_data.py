"""
Order book snapshot types.

Prices are probabilities in [0, 1]; sizes are instrument units (shares).
"""

from dataclasses import dataclass, field
from typing import Optional


# Spread percent above which a book is flagged as wide
WIDE_SPREAD_PERCENT = 10.0


@dataclass(slots=True, frozen=True)
class BookLevel:
    """A single price level."""
    price: float
    size: float


@dataclass(slots=True)
class OrderBookSnapshot:
    """
    Top-of-book summary for one instrument.

    Invariant: spread == best_ask - best_bid when both sides are nonzero,
    else 0.
    """
    instrument_id: str
    best_bid: float = 0.0
    best_ask: float = 0.0
    spread: float = 0.0
    spread_percent: float = 0.0
    bid_depth: float = 0.0  # top-level notional (size * price)
    ask_depth: float = 0.0
    is_low_liquidity: bool = True
    is_wide_spread: bool = False
    captured_at: int = 0  # monotonic ms
    bids: list[BookLevel] = field(default_factory=list)  # best first
    asks: list[BookLevel] = field(default_factory=list)  # best first

    @classmethod
    def from_levels(
        cls,
        instrument_id: str,
        bids: list[BookLevel],
        asks: list[BookLevel],
        captured_at: int,
        wide_spread_percent: float = WIDE_SPREAD_PERCENT,
    ) -> "OrderBookSnapshot":
        """
        Build a snapshot from raw levels.

        Levels are re-sorted best first (bids descending, asks ascending)
        because the exchange does not guarantee an order.
        """
        bids = sorted((lvl for lvl in bids if lvl.size > 0), key=lambda lvl: lvl.price, reverse=True)
        asks = sorted((lvl for lvl in asks if lvl.size > 0), key=lambda lvl: lvl.price)

        best_bid = bids[0].price if bids else 0.0
        best_ask = asks[0].price if asks else 0.0

        spread = 0.0
        spread_percent = 0.0
        if best_bid > 0 and best_ask > 0:
            spread = round(best_ask - best_bid, 6)
            spread_percent = spread / best_bid * 100

        return cls(
            instrument_id=instrument_id,
            best_bid=best_bid,
            best_ask=best_ask,
            spread=spread,
            spread_percent=spread_percent,
            bid_depth=bids[0].size * bids[0].price if bids else 0.0,
            ask_depth=asks[0].size * asks[0].price if asks else 0.0,
            is_low_liquidity=best_bid == 0 or best_ask == 0,
            is_wide_spread=spread_percent > wide_spread_percent,
            captured_at=captured_at,
            bids=bids,
            asks=asks,
        )

    def age_ms(self, now_monotonic_ms: int) -> int:
        """Return age in milliseconds."""
        return now_monotonic_ms - self.captured_at

    def is_stale(self, now_monotonic_ms: int, stale_after_ms: int) -> bool:
        return self.age_ms(now_monotonic_ms) > stale_after_ms


@dataclass(slots=True)
class FillSimulation:
    """Advisory estimate of how a BUY stake would fill against the asks."""
    can_fill: bool
    avg_price: float
    slippage_percent: float
    would_slip: bool
    depth_at_best_ask: float
    total_depth: float
    no_order_book: bool = False
    filled_shares: float = 0.0
    warning: Optional[str] = None
