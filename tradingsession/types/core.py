"""
Core enums - the vocabulary shared by the session and execution layers.
"""

from enum import Enum, auto


class Side(Enum):
    """Order side."""
    BUY = auto()
    SELL = auto()


class Direction(Enum):
    """Outcome of a binary instrument pair."""
    YES = auto()
    NO = auto()


class OrderType(Enum):
    """Exchange time-in-force."""
    GTC = "GTC"  # Good-till-cancelled
    FOK = "FOK"  # Fill-or-kill


class SessionStep(Enum):
    """Orchestrator states. ERROR always hands control back to IDLE."""
    IDLE = "idle"
    CHECKING = "checking"
    DEPLOYING = "deploying"
    DERIVING_CREDENTIALS = "deriving_credentials"
    SETTING_APPROVALS = "setting_approvals"
    COMPLETE = "complete"
    ERROR = "error"


class DeploymentState(Enum):
    """Proxy wallet deployment status as seen by the controller."""
    UNCHECKED = "unchecked"
    CHECKING = "checking"
    NOT_DEPLOYED = "not_deployed"
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    FAILED = "failed"


class RelayerTxState(Enum):
    """Relayer transaction lifecycle."""
    NEW = "STATE_NEW"
    EXECUTED = "STATE_EXECUTED"
    MINED = "STATE_MINED"
    INVALID = "STATE_INVALID"
    CONFIRMED = "STATE_CONFIRMED"
    FAILED = "STATE_FAILED"

    @classmethod
    def parse(cls, raw: str) -> "RelayerTxState":
        """Parse relayer state text, tolerating a missing STATE_ prefix."""
        value = (raw or "").upper()
        if not value.startswith("STATE_"):
            value = f"STATE_{value}"
        return cls(value)

    @property
    def is_success(self) -> bool:
        return self in (RelayerTxState.MINED, RelayerTxState.CONFIRMED)

    @property
    def is_failure(self) -> bool:
        return self in (RelayerTxState.FAILED, RelayerTxState.INVALID)


# Terminal states the deployment and approval pollers wait for
TERMINAL_TX_STATES = (
    RelayerTxState.MINED,
    RelayerTxState.CONFIRMED,
    RelayerTxState.FAILED,
    RelayerTxState.INVALID,
)
