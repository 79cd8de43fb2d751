"""
Trading session types.

    from tradingsession.types import Session, OrderIntent, Side
"""

from .core import (
    Side,
    Direction,
    OrderType,
    SessionStep,
    DeploymentState,
    RelayerTxState,
    TERMINAL_TX_STATES,
)

from .session import (
    ApiCredentials,
    Session,
    SessionOutcome,
)

from .market_data import (
    BookLevel,
    OrderBookSnapshot,
    FillSimulation,
    WIDE_SPREAD_PERCENT,
)

from .orders import (
    OrderIntent,
    OrderResult,
    CancelResult,
)

from .chain import (
    SafeTransaction,
    ApprovalTarget,
    ApprovalStatus,
    ApprovalCheck,
    RelayerTransaction,
    RecoveryState,
)

__all__ = [
    # Core enums
    "Side",
    "Direction",
    "OrderType",
    "SessionStep",
    "DeploymentState",
    "RelayerTxState",
    "TERMINAL_TX_STATES",
    # Session
    "ApiCredentials",
    "Session",
    "SessionOutcome",
    # Market data
    "BookLevel",
    "OrderBookSnapshot",
    "FillSimulation",
    "WIDE_SPREAD_PERCENT",
    # Orders
    "OrderIntent",
    "OrderResult",
    "CancelResult",
    # Chain
    "SafeTransaction",
    "ApprovalTarget",
    "ApprovalStatus",
    "ApprovalCheck",
    "RelayerTransaction",
    "RecoveryState",
]
