"""
Order book pricing.

Fetches and caches books, derives an executable price with a safety
buffer, and keeps watched instruments refreshed in the background.
"""

import asyncio
import logging
from typing import Callable, Iterable, Optional

from ..errors import InsufficientLiquidity
from ..types.core import Direction, Side
from ..types.market_data import (
    WIDE_SPREAD_PERCENT,
    BookLevel,
    FillSimulation,
    OrderBookSnapshot,
)
from ..utils import clamp, now_ms
from .book_cache import OrderBookCache

logger = logging.getLogger(__name__)

# Average fill more than this far above best ask counts as slippage
SLIPPAGE_WARN_PERCENT = 0.5


def simulate_fill(stake: float, asks: list[BookLevel], best_ask: float) -> FillSimulation:
    """
    Walk the ask levels to estimate how a BUY of `stake` collateral fills.

    Args:
        stake: Collateral to spend
        asks: Ask levels, best first
        best_ask: Best ask price

    Returns:
        FillSimulation (advisory only)
    """
    if not asks:
        return FillSimulation(
            can_fill=False,
            avg_price=best_ask,
            slippage_percent=0.0,
            would_slip=False,
            depth_at_best_ask=0.0,
            total_depth=0.0,
            no_order_book=True,
            warning="No order book available",
        )

    depth_at_best_ask = asks[0].size * asks[0].price
    total_depth = sum(lvl.size * lvl.price for lvl in asks)

    if stake <= depth_at_best_ask:
        return FillSimulation(
            can_fill=True,
            avg_price=best_ask,
            slippage_percent=0.0,
            would_slip=False,
            depth_at_best_ask=depth_at_best_ask,
            total_depth=total_depth,
            filled_shares=stake / best_ask if stake > 0 and best_ask > 0 else 0.0,
        )

    remaining = stake
    total_cost = 0.0
    total_shares = 0.0
    for lvl in asks:
        if remaining <= 0:
            break
        fill_amount = min(remaining, lvl.size * lvl.price)
        total_cost += fill_amount
        total_shares += fill_amount / lvl.price
        remaining -= fill_amount

    if remaining > 1e-9:
        return FillSimulation(
            can_fill=False,
            avg_price=total_cost / total_shares if total_shares > 0 else best_ask,
            slippage_percent=0.0,
            would_slip=True,
            depth_at_best_ask=depth_at_best_ask,
            total_depth=total_depth,
            filled_shares=total_shares,
            warning=f"Only ${total_depth:.2f} of liquidity available",
        )

    avg_price = total_cost / total_shares
    slippage_percent = (avg_price - best_ask) / best_ask * 100
    would_slip = slippage_percent > SLIPPAGE_WARN_PERCENT
    return FillSimulation(
        can_fill=True,
        avg_price=avg_price,
        slippage_percent=slippage_percent,
        would_slip=would_slip,
        depth_at_best_ask=depth_at_best_ask,
        total_depth=total_depth,
        filled_shares=total_shares,
        warning=f"Estimated slippage {slippage_percent:.2f}%" if would_slip else None,
    )


class OrderBookPricer:
    """
    Prices orders off cached order books.

    Complement (NO) prices derive from the base (YES) book as
    1 - best_bid(base), since the base book carries the liquidity.
    """

    def __init__(
        self,
        exchange,
        buffer: float = 0.03,
        ceiling: float = 0.99,
        floor: float = 0.01,
        stale_after_ms: int = 10_000,
        wide_spread_percent: float = WIDE_SPREAD_PERCENT,
        refresh_interval_s: float = 5.0,
        batch_size: int = 10,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Initialize the pricer.

        Args:
            exchange: ExchangeClient (or compatible) providing get_order_book
            buffer: Price added to cross the spread
            ceiling: Hard cap on any BUY price
            floor: Hard floor on any SELL price
            stale_after_ms: Snapshots older than this are refreshed before use
            wide_spread_percent: Spread percent above which a book is flagged wide
            refresh_interval_s: Background refresh period for watched instruments
            batch_size: Concurrent fetches per refresh batch
            clock: Monotonic millisecond clock
        """
        self._exchange = exchange
        self.buffer = buffer
        self.ceiling = ceiling
        self.floor = floor
        self.stale_after_ms = stale_after_ms
        self.wide_spread_percent = wide_spread_percent
        self.refresh_interval_s = refresh_interval_s
        self.batch_size = batch_size
        self._clock = clock

        self.cache = OrderBookCache()
        self._watched: set[str] = set()
        self._refresh_task: Optional[asyncio.Task] = None

    # --- Fetching ----------------------------------------------------------

    async def refresh(self, instrument_id: str) -> Optional[OrderBookSnapshot]:
        """
        Fetch and cache a fresh snapshot.

        Returns:
            The new snapshot, or None if the fetch failed (the previous
            cached snapshot is kept)
        """
        try:
            bids, asks = await self._exchange.get_order_book(instrument_id)
        except Exception as e:
            logger.warning(f"Order book fetch failed for {instrument_id}: {e}")
            return None

        snapshot = OrderBookSnapshot.from_levels(
            instrument_id,
            bids,
            asks,
            captured_at=self._clock(),
            wide_spread_percent=self.wide_spread_percent,
        )
        self.cache.publish(snapshot)
        if snapshot.is_low_liquidity:
            logger.debug(f"Low liquidity on {instrument_id}: bid={snapshot.best_bid} ask={snapshot.best_ask}")
        return snapshot

    async def refresh_many(self, instrument_ids: Iterable[str]) -> dict[str, OrderBookSnapshot]:
        """Refresh in concurrent batches of `batch_size`."""
        ids = list(dict.fromkeys(instrument_ids))
        refreshed: dict[str, OrderBookSnapshot] = {}
        for start in range(0, len(ids), self.batch_size):
            batch = ids[start:start + self.batch_size]
            results = await asyncio.gather(*(self.refresh(i) for i in batch))
            for instrument_id, snapshot in zip(batch, results):
                if snapshot is not None:
                    refreshed[instrument_id] = snapshot
        return refreshed

    def get_snapshot(self, instrument_id: str) -> Optional[OrderBookSnapshot]:
        return self.cache.get(instrument_id)

    def is_stale(self, instrument_id: str) -> bool:
        snapshot = self.cache.get(instrument_id)
        if snapshot is None:
            return True
        return snapshot.is_stale(self._clock(), self.stale_after_ms)

    async def ensure_fresh(self, instrument_id: str) -> Optional[OrderBookSnapshot]:
        """Return a snapshot no older than the staleness window, refreshing if needed."""
        if not self.is_stale(instrument_id):
            return self.cache.get(instrument_id)
        age = self.cache.age_ms(instrument_id, self._clock())
        logger.debug(f"Refreshing {instrument_id} (age={age}ms)")
        return await self.refresh(instrument_id)

    # --- Background refresh -------------------------------------------------

    def watch(self, instrument_ids: Iterable[str]) -> None:
        """Keep these instruments refreshed while they are in view."""
        self._watched.update(instrument_ids)
        if self._watched and (self._refresh_task is None or self._refresh_task.done()):
            self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())

    def unwatch(self, instrument_ids: Iterable[str]) -> None:
        """Stop refreshing these instruments; the loop stops when none remain."""
        self._watched.difference_update(instrument_ids)
        if not self._watched and self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    @property
    def watched(self) -> frozenset[str]:
        return frozenset(self._watched)

    async def stop(self) -> None:
        """Cancel background refresh."""
        self._watched.clear()
        task, self._refresh_task = self._refresh_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _refresh_loop(self) -> None:
        while self._watched:
            await self.refresh_many(sorted(self._watched))
            await asyncio.sleep(self.refresh_interval_s)

    # --- Pricing -----------------------------------------------------------

    def _buy_price(self, raw: float, buffer: float) -> float:
        return min(round(raw + buffer, 6), self.ceiling)

    def _sell_price(self, raw: float, buffer: float) -> float:
        return max(round(raw - buffer, 6), self.floor)

    def price_from_snapshot(
        self,
        snapshot: Optional[OrderBookSnapshot],
        direction: Direction = Direction.YES,
        side: Side = Side.BUY,
        buffer: Optional[float] = None,
        complement: bool = False,
    ) -> Optional[float]:
        """
        Price from a single snapshot, or None if the book has no usable level.

        Args:
            snapshot: Book to price from
            direction: Outcome being traded
            side: BUY or SELL
            buffer: Override for the configured buffer
            complement: True when `snapshot` is the base book of a NO trade
        """
        if snapshot is None:
            return None
        buffer = self.buffer if buffer is None else buffer

        if side == Side.BUY:
            if complement:
                raw = 1 - snapshot.best_bid if snapshot.best_bid > 0 else 0.0
            else:
                raw = snapshot.best_ask
            if 0 < raw < self.ceiling:
                return self._buy_price(raw, buffer)
            return None

        if complement:
            raw = 1 - snapshot.best_ask if snapshot.best_ask > 0 else 0.0
        else:
            raw = snapshot.best_bid
        if 0 < raw < 1:
            return self._sell_price(raw, buffer)
        return None

    def fallback_price(
        self,
        side: Side = Side.BUY,
        buffer: Optional[float] = None,
        reference_price: Optional[float] = None,
        odds: Optional[float] = None,
    ) -> Optional[float]:
        """Reference price + buffer, else implied-by-odds + buffer."""
        buffer = self.buffer if buffer is None else buffer
        adjust = self._buy_price if side == Side.BUY else self._sell_price

        if reference_price is not None and 0 < reference_price < 1:
            return adjust(reference_price, buffer)
        if odds is not None and odds > 1:
            return adjust(1 / odds, buffer)
        return None

    async def get_execution_price(
        self,
        instrument_id: str,
        direction: Direction = Direction.YES,
        buffer: Optional[float] = None,
        side: Side = Side.BUY,
        base_instrument_id: Optional[str] = None,
        reference_price: Optional[float] = None,
        odds: Optional[float] = None,
    ) -> float:
        """
        Executable price for an order, buffered to cross the spread.

        Falls back from the live book to `reference_price` and then to the
        price implied by `odds`.

        Raises:
            InsufficientLiquidity: if no book level or fallback is usable
        """
        complement = direction == Direction.NO and base_instrument_id is not None
        book_id = base_instrument_id if complement else instrument_id

        snapshot = await self.ensure_fresh(book_id)
        if snapshot is not None and snapshot.is_stale(self._clock(), self.stale_after_ms):
            snapshot = None

        price = self.price_from_snapshot(snapshot, direction, side, buffer, complement)
        if price is None and complement:
            # Base book unusable; try the instrument's own book
            own = await self.ensure_fresh(instrument_id)
            price = self.price_from_snapshot(own, direction, side, buffer, complement=False)
        if price is None:
            price = self.fallback_price(side, buffer, reference_price, odds)
            if price is not None:
                logger.info(f"Using fallback price {price} for {instrument_id}")
        if price is None:
            raise InsufficientLiquidity(f"No usable order book or fallback price for {instrument_id}")
        return clamp(price, self.floor, self.ceiling)
