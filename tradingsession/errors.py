"""
Error kinds and exceptions for the trading session core.

Every external call boundary converts failures into one of these kinds so
callers get a stable classification independent of raw provider text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Normalized error kinds."""
    INVALID_ADDRESS = "invalid_address"
    NOT_CONNECTED = "not_connected"
    DEPLOYMENT_TIMEOUT = "deployment_timeout"
    DEPLOYMENT_FAILED = "deployment_failed"
    ALREADY_DEPLOYED = "already_deployed"
    CREDENTIAL_MISMATCH = "credential_mismatch"
    CREDENTIAL_FAILED = "credential_failed"
    APPROVAL_FAILED = "approval_failed"
    INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"
    BELOW_MINIMUM_ORDER = "below_minimum_order"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INVALID_ORDER = "invalid_order"
    SIGNER_NOT_READY = "signer_not_ready"
    ORDER_SUBMISSION_FAILED = "order_submission_failed"
    RELAYER_ERROR = "relayer_error"
    CHAIN_READ_FAILED = "chain_read_failed"
    RECOVERY_FAILED = "recovery_failed"
    UNKNOWN = "unknown"


# Pre-submit validation outcomes, surfaced as warnings
_WARNING_KINDS = frozenset({
    ErrorKind.BELOW_MINIMUM_ORDER,
    ErrorKind.INSUFFICIENT_BALANCE,
    ErrorKind.INSUFFICIENT_LIQUIDITY,
    ErrorKind.INVALID_ORDER,
})

_SIGNER_NOT_READY_PATTERNS = (
    "wallet not connected",
    "wallet not ready",
    "signer not ready",
    "signer is not ready",
    "no signer",
    "signer unavailable",
    "provider not ready",
    "provider is not ready",
    "client not initialized",
    "unknown account",
    "disconnected",
)


class TradingSessionError(Exception):
    """Base exception for trading session errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = False
    user_actionable: bool = False

    def __init__(self, message: str = "", kind: Optional[ErrorKind] = None):
        super().__init__(message or self.__class__.__name__)
        if kind is not None:
            self.kind = kind

    @property
    def message(self) -> str:
        return str(self)


class InvalidAddress(TradingSessionError):
    """Raised when an address argument is not a valid hex address."""
    kind = ErrorKind.INVALID_ADDRESS


class NotConnected(TradingSessionError):
    """Raised when no owner key or signer is available."""
    kind = ErrorKind.NOT_CONNECTED
    user_actionable = True


class DeploymentError(TradingSessionError):
    """Raised when proxy deployment fails."""
    kind = ErrorKind.DEPLOYMENT_FAILED
    retryable = True


class DeploymentTimeout(DeploymentError):
    """Raised when deployment polling exceeds its deadline."""
    kind = ErrorKind.DEPLOYMENT_TIMEOUT


class AlreadyDeployed(TradingSessionError):
    """Signals a deploy race; absorbed as success by the deployment controller."""
    kind = ErrorKind.ALREADY_DEPLOYED


class CredentialMismatch(TradingSessionError):
    """Cached credentials belong to a different owner."""
    kind = ErrorKind.CREDENTIAL_MISMATCH


class CredentialError(TradingSessionError):
    """Raised when credentials can be neither created nor derived."""
    kind = ErrorKind.CREDENTIAL_FAILED
    retryable = True


class ApprovalError(TradingSessionError):
    """Raised when the approval batch cannot be settled."""
    kind = ErrorKind.APPROVAL_FAILED
    retryable = True


class InsufficientLiquidity(TradingSessionError):
    """No usable order book or fallback price."""
    kind = ErrorKind.INSUFFICIENT_LIQUIDITY
    user_actionable = True


class BelowMinimumOrder(TradingSessionError):
    """Stake is below the instrument minimum order value."""
    kind = ErrorKind.BELOW_MINIMUM_ORDER
    user_actionable = True


class InsufficientBalance(TradingSessionError):
    """Stake exceeds the caller's available balance."""
    kind = ErrorKind.INSUFFICIENT_BALANCE
    user_actionable = True


class InvalidOrder(TradingSessionError):
    """Order intent is malformed (non-positive size, missing limit price)."""
    kind = ErrorKind.INVALID_ORDER
    user_actionable = True


class SignerNotReady(TradingSessionError):
    """Wallet provider or signer is not ready; reconnecting usually helps."""
    kind = ErrorKind.SIGNER_NOT_READY
    user_actionable = True


class OrderSubmissionFailed(TradingSessionError):
    """Exchange-side rejection, surfaced verbatim."""
    kind = ErrorKind.ORDER_SUBMISSION_FAILED


class RelayerError(TradingSessionError):
    """Relayer HTTP call failed or returned an error payload."""
    kind = ErrorKind.RELAYER_ERROR
    retryable = True


class ChainReadError(TradingSessionError):
    """All configured RPC endpoints failed for a read."""
    kind = ErrorKind.CHAIN_READ_FAILED
    retryable = True


class RecoveryError(TradingSessionError):
    """A legacy-recovery step failed."""
    kind = ErrorKind.RECOVERY_FAILED
    retryable = True


def is_already_deployed(error_msg: Optional[str]) -> bool:
    """Check whether a relayer message reports an existing deployment."""
    return "already deployed" in (error_msg or "").lower()


def is_signer_not_ready(error_msg: Optional[str]) -> bool:
    """Check whether provider text means the signer is not usable yet."""
    msg = (error_msg or "").lower()
    return any(pattern in msg for pattern in _SIGNER_NOT_READY_PATTERNS)


def classify_error(
    error_msg: Optional[str] = None,
    exception_name: Optional[str] = None,
) -> ErrorKind:
    """
    Map raw error strings to normalized kinds.

    Args:
        error_msg: Raw error message from the provider, relayer or exchange
        exception_name: Exception class name if available

    Returns:
        Normalized ErrorKind
    """
    msg = (error_msg or "").lower()
    exc = (exception_name or "").lower()

    if is_signer_not_ready(msg):
        return ErrorKind.SIGNER_NOT_READY

    if is_already_deployed(msg):
        return ErrorKind.ALREADY_DEPLOYED

    if any(kw in msg for kw in ("not enough balance", "insufficient", "balance")):
        return ErrorKind.INSUFFICIENT_BALANCE

    if any(kw in msg for kw in ("no orders found to match", "not enough liquidity", "no match")):
        return ErrorKind.INSUFFICIENT_LIQUIDITY

    if "relayer" in msg or "relayer" in exc:
        return ErrorKind.RELAYER_ERROR

    return ErrorKind.ORDER_SUBMISSION_FAILED


def severity(kind: ErrorKind) -> str:
    """Return "warning" for pre-submit validation kinds, "error" otherwise."""
    return "warning" if kind in _WARNING_KINDS else "error"


def user_message(kind: ErrorKind, raw: Optional[str] = None) -> str:
    """Build a caller-facing message for an error kind."""
    if kind == ErrorKind.SIGNER_NOT_READY:
        return "Wallet is not ready. Reconnect your wallet and try again."
    if kind == ErrorKind.NOT_CONNECTED:
        return "Connect a wallet to continue."
    if kind == ErrorKind.BELOW_MINIMUM_ORDER:
        return raw or "Stake is below the minimum order size for this market."
    if kind == ErrorKind.INSUFFICIENT_BALANCE:
        return "Insufficient USDC balance."
    if kind == ErrorKind.INSUFFICIENT_LIQUIDITY:
        return "No liquidity available at a usable price."
    if kind == ErrorKind.DEPLOYMENT_TIMEOUT:
        return "Wallet deployment is taking longer than expected. Try again."
    return raw or "Something went wrong."


def wrap_exception(exc: BaseException) -> TradingSessionError:
    """Convert an arbitrary exception into a TradingSessionError."""
    if isinstance(exc, TradingSessionError):
        return exc
    message = str(exc) or exc.__class__.__name__
    kind = classify_error(message, exc.__class__.__name__)
    if kind == ErrorKind.SIGNER_NOT_READY:
        return SignerNotReady(message)
    return TradingSessionError(message, kind=ErrorKind.UNKNOWN)
