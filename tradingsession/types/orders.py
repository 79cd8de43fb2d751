"""
Order types.

An OrderIntent is ephemeral: one per user action, never persisted.
"""

from dataclasses import dataclass
from typing import Optional

from .core import Direction, OrderType, Side
from .market_data import FillSimulation
from ..errors import ErrorKind


@dataclass(slots=True)
class OrderIntent:
    """
    A user's request to trade one instrument.

    BUY market orders denominate `stake` in collateral. SELL orders and all
    limit orders denominate `share_size` in instrument units and need a price.
    """
    instrument_id: str
    side: Side
    direction: Direction = Direction.YES
    stake: float = 0.0
    share_size: Optional[float] = None
    is_market_order: bool = True
    execution_price: Optional[float] = None
    min_order_size: Optional[float] = None
    # Base (YES) instrument of the pair when trading the complement
    base_instrument_id: Optional[str] = None
    # Fallbacks used when the book is unavailable
    reference_price: Optional[float] = None
    odds: Optional[float] = None
    tick_size: str = "0.01"
    neg_risk: bool = False

    @property
    def order_type(self) -> OrderType:
        return OrderType.FOK if self.is_market_order else OrderType.GTC

    @property
    def denominates_collateral(self) -> bool:
        """True when the submitted amount is collateral rather than shares."""
        return self.side == Side.BUY and self.is_market_order


@dataclass(slots=True)
class OrderResult:
    """Result of an order submission."""
    success: bool
    order_id: Optional[str] = None
    execution_price: Optional[float] = None
    share_size: Optional[float] = None
    amount: Optional[float] = None
    error_kind: Optional[ErrorKind] = None
    error_msg: Optional[str] = None
    severity: Optional[str] = None  # "warning" | "error"
    fill_simulation: Optional[FillSimulation] = None
    fee_amount: float = 0.0
    fee_tx_id: Optional[str] = None


@dataclass(slots=True)
class CancelResult:
    """Result of a cancel operation. Unknown or finished orders are a no-op."""
    success: bool
    error_msg: Optional[str] = None
    not_found: bool = False
