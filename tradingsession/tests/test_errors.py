"""Tests for error classification."""

import pytest

from tradingsession.errors import (
    BelowMinimumOrder,
    DeploymentError,
    DeploymentTimeout,
    ErrorKind,
    RelayerError,
    SignerNotReady,
    TradingSessionError,
    classify_error,
    is_already_deployed,
    severity,
    user_message,
    wrap_exception,
)


class TestClassifyError:
    """Tests for classify_error."""

    @pytest.mark.parametrize("msg", [
        "Wallet not connected",
        "signer not ready",
        "Provider is not ready yet",
        "client not initialized",
    ])
    def test_signer_not_ready(self, msg):
        """Provider readiness text maps to SIGNER_NOT_READY."""
        assert classify_error(msg) == ErrorKind.SIGNER_NOT_READY

    @pytest.mark.parametrize("msg", [
        "User rejected the request",
        "Market not initialized yet",
    ])
    def test_rejection_is_not_signer_not_ready(self, msg):
        """Declined signatures and unrelated init errors keep their own text."""
        assert classify_error(msg) == ErrorKind.ORDER_SUBMISSION_FAILED
        assert user_message(classify_error(msg), msg) == msg

    def test_already_deployed(self):
        """Deployment races are recognized."""
        assert classify_error("Safe already deployed") == ErrorKind.ALREADY_DEPLOYED
        assert is_already_deployed("SAFE ALREADY DEPLOYED") is True
        assert is_already_deployed(None) is False

    def test_balance(self):
        """Balance errors map to INSUFFICIENT_BALANCE."""
        assert classify_error("not enough balance / allowance") == ErrorKind.INSUFFICIENT_BALANCE

    def test_liquidity(self):
        """No-match errors map to INSUFFICIENT_LIQUIDITY."""
        assert classify_error("no orders found to match with FOK order") == ErrorKind.INSUFFICIENT_LIQUIDITY

    def test_relayer_by_exception_name(self):
        """The exception name is used when the text is generic."""
        assert classify_error("boom", "RelayerError") == ErrorKind.RELAYER_ERROR

    def test_fallback(self):
        """Unrecognized text is a plain submission failure."""
        assert classify_error("price out of range") == ErrorKind.ORDER_SUBMISSION_FAILED
        assert classify_error(None) == ErrorKind.ORDER_SUBMISSION_FAILED


class TestErrorHierarchy:
    """Tests for exception classes."""

    def test_kinds(self):
        """Each exception carries its kind."""
        assert DeploymentTimeout().kind == ErrorKind.DEPLOYMENT_TIMEOUT
        assert isinstance(DeploymentTimeout(), DeploymentError)
        assert RelayerError("x").retryable is True
        assert BelowMinimumOrder("x").user_actionable is True

    def test_kind_override(self):
        """An explicit kind overrides the class default."""
        error = TradingSessionError("x", kind=ErrorKind.CHAIN_READ_FAILED)
        assert error.kind == ErrorKind.CHAIN_READ_FAILED
        assert error.message == "x"

    def test_default_message(self):
        """A bare exception uses its class name."""
        assert str(SignerNotReady()) == "SignerNotReady"


class TestWrapException:
    """Tests for wrap_exception."""

    def test_passthrough(self):
        """Domain errors are returned unchanged."""
        error = RelayerError("x")
        assert wrap_exception(error) is error

    def test_signer_text(self):
        """Foreign exceptions about the signer become SignerNotReady."""
        assert isinstance(wrap_exception(RuntimeError("wallet not connected")), SignerNotReady)

    def test_unknown(self):
        """Anything else is UNKNOWN."""
        assert wrap_exception(KeyError("x")).kind == ErrorKind.UNKNOWN


class TestPresentation:
    """Tests for severity and user_message."""

    def test_validation_kinds_are_warnings(self):
        """Pre-submit validation failures are warnings."""
        for kind in (
            ErrorKind.BELOW_MINIMUM_ORDER,
            ErrorKind.INSUFFICIENT_BALANCE,
            ErrorKind.INSUFFICIENT_LIQUIDITY,
            ErrorKind.INVALID_ORDER,
        ):
            assert severity(kind) == "warning"
        assert severity(ErrorKind.ORDER_SUBMISSION_FAILED) == "error"

    def test_messages(self):
        """Fixed messages for user-facing kinds; raw text otherwise."""
        assert "Reconnect" in user_message(ErrorKind.SIGNER_NOT_READY, "raw")
        assert user_message(ErrorKind.BELOW_MINIMUM_ORDER, "Minimum is $2.50") == "Minimum is $2.50"
        assert user_message(ErrorKind.ORDER_SUBMISSION_FAILED, "raw") == "raw"
        assert user_message(ErrorKind.UNKNOWN) == "Something went wrong."
