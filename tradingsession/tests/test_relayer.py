"""Tests for the relayer client helpers and polling."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import orjson
import pytest

from tradingsession.clients import RelayerClient, RemoteSigningClient
from tradingsession.clients.remote_signer import BUILDER_HEADERS
from tradingsession.clients.relayer_client import (
    _parse_transaction,
    pack_safe_signature,
    safe_create_typed_data,
    safe_tx_hash,
)
from tradingsession.errors import DeploymentError, RelayerError
from tradingsession.session import DeploymentController
from tradingsession.types import DeploymentState, RelayerTransaction, RelayerTxState, SafeTransaction
from tradingsession.wallet import derive_proxy_address
from tradingsession.wallet.contracts import SAFE_FACTORY, SAFE_MULTISEND, USDC_ADDRESS, approval_transactions, multisend

SAFE = "0x" + "ab" * 20


class TestSignatureHelpers:
    """Tests for signature packing and typed data."""

    def test_pack_adds_four(self):
        """eth_sign signatures get v + 4."""
        packed = pack_safe_signature(27, 1, 2)
        raw = bytes.fromhex(packed[2:])
        assert len(raw) == 65
        assert raw[-1] == 31
        assert int.from_bytes(raw[:32], "big") == 1
        assert int.from_bytes(raw[32:64], "big") == 2

    def test_pack_normalizes_recovery_id(self):
        """v of 0/1 is lifted to 27/28 first."""
        assert bytes.fromhex(pack_safe_signature(1, 1, 2)[2:])[-1] == 32

    def test_create_proxy_domain(self):
        """SAFE-CREATE typed data targets the factory on the given chain."""
        typed = safe_create_typed_data(137)
        assert typed["primaryType"] == "CreateProxy"
        assert typed["domain"]["chainId"] == 137
        assert typed["domain"]["verifyingContract"] == SAFE_FACTORY

    def test_safe_tx_hash_depends_on_nonce(self):
        """Different nonces produce different hashes."""
        tx = SafeTransaction(to=USDC_ADDRESS, data="0x")
        first = safe_tx_hash(137, SAFE, tx, 0)
        assert len(first) == 32
        assert first != safe_tx_hash(137, SAFE, tx, 1)

    def test_signer_signature_shape(self, signer):
        """The owner signer produces a packable eth_sign signature."""
        digest = safe_tx_hash(137, SAFE, SafeTransaction(to=USDC_ADDRESS, data="0x"), 3)
        v, r, s = signer.sign_hash_eth_sign(digest)
        assert v in (27, 28)
        assert len(pack_safe_signature(v, r, s)) == 2 + 130


class TestMultisend:
    """Tests for the MultiSend packing used by batched submissions."""

    def test_multisend_is_delegatecall(self):
        """A batch becomes one delegatecall to MultiSend."""
        tx = multisend(approval_transactions())
        assert tx.to == SAFE_MULTISEND
        assert tx.operation == 1
        assert tx.value == 0


class TestParseTransaction:
    """Tests for relayer payload parsing."""

    def test_parses_fields(self):
        """Known field spellings are read."""
        tx = _parse_transaction({
            "transactionID": "abc",
            "state": "STATE_MINED",
            "transactionHash": "0x01",
            "proxyAddress": SAFE,
        })
        assert tx.transaction_id == "abc"
        assert tx.state == RelayerTxState.MINED
        assert tx.state.is_success is True
        assert tx.proxy_address == SAFE

    def test_state_without_prefix(self):
        """States are accepted without the STATE_ prefix."""
        assert RelayerTxState.parse("failed") == RelayerTxState.FAILED


class TestPollUntilState:
    """Tests for bounded polling."""

    @pytest.mark.asyncio
    async def test_returns_on_terminal_state(self):
        """Polling stops at the first wanted state."""
        client = RelayerClient()
        responses = [
            RelayerTransaction("t", RelayerTxState.NEW),
            RelayerTransaction("t", RelayerTxState.EXECUTED),
            RelayerTransaction("t", RelayerTxState.MINED, tx_hash="0x01"),
        ]
        with patch.object(client, "get_transaction", AsyncMock(side_effect=responses)) as mock_get:
            result = await client.poll_until_state(
                "t", (RelayerTxState.MINED, RelayerTxState.FAILED), interval_s=0.001, timeout_s=1
            )

        assert result.state == RelayerTxState.MINED
        assert mock_get.await_count == 3

    @pytest.mark.asyncio
    async def test_times_out(self):
        """A transaction that never settles returns None."""
        client = RelayerClient()
        pending = RelayerTransaction("t", RelayerTxState.NEW)
        with patch.object(client, "get_transaction", AsyncMock(return_value=pending)):
            result = await client.poll_until_state(
                "t", (RelayerTxState.MINED,), interval_s=0.01, timeout_s=0.05
            )
        assert result is None

    @pytest.mark.asyncio
    async def test_transient_errors_tolerated(self):
        """Lookup errors are logged and polling continues."""
        client = RelayerClient()
        responses = [RelayerError("502"), RelayerTransaction("t", RelayerTxState.CONFIRMED)]
        with patch.object(client, "get_transaction", AsyncMock(side_effect=responses)):
            result = await client.poll_until_state(
                "t", (RelayerTxState.CONFIRMED,), interval_s=0.001, timeout_s=1
            )
        assert result.state == RelayerTxState.CONFIRMED


class TestSubmitSafeTransactions:
    """Tests for request building."""

    @pytest.mark.asyncio
    async def test_batch_packed_into_multisend(self, signer):
        """More than one call is submitted as a MultiSend delegatecall."""
        client = RelayerClient()
        request = AsyncMock(return_value={"transactionID": "tx-1", "state": "STATE_NEW"})
        with patch.object(client, "get_nonce", AsyncMock(return_value=4)), \
                patch.object(client, "_request", request):
            result = await client.submit_safe_transactions(signer, SAFE, approval_transactions(), "approvals")

        assert result.transaction_id == "tx-1"
        body = request.await_args.kwargs["body"]
        assert body["type"] == "SAFE"
        assert body["to"] == SAFE_MULTISEND
        assert body["nonce"] == "4"
        assert body["signatureParams"]["operation"] == "1"
        assert body["proxyWallet"] == SAFE

    @pytest.mark.asyncio
    async def test_single_call_sent_directly(self, signer):
        """A single call is not wrapped."""
        client = RelayerClient()
        request = AsyncMock(return_value={"transactionID": "tx-2", "state": "STATE_NEW"})
        tx = SafeTransaction(to=USDC_ADDRESS, data="0x")
        with patch.object(client, "get_nonce", AsyncMock(return_value=0)), \
                patch.object(client, "_request", request):
            await client.submit_safe_transactions(signer, SAFE, [tx])

        body = request.await_args.kwargs["body"]
        assert body["to"] == USDC_ADDRESS
        assert body["signatureParams"]["operation"] == "0"

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, signer):
        """Nothing to submit is an error."""
        with pytest.raises(RelayerError):
            await RelayerClient().submit_safe_transactions(signer, SAFE, [])


def _http_session(status: int, payload) -> MagicMock:
    resp = MagicMock(status=status)
    resp.text = AsyncMock(return_value=orjson.dumps(payload).decode())
    session = MagicMock()
    session.post.return_value.__aenter__.return_value = resp
    return session


class TestRemoteSigningClient:
    """Tests for builder header signing."""

    @pytest.mark.asyncio
    async def test_disabled_returns_no_headers(self):
        """No signing URL means unauthenticated requests."""
        client = RemoteSigningClient("")
        assert client.enabled is False
        assert await client.sign("POST", "/submit", "{}") == {}

    @pytest.mark.asyncio
    async def test_returns_builder_headers(self):
        """A complete response yields exactly the builder headers."""
        client = RemoteSigningClient("https://signer.example/sign")
        payload = {h: f"value-{i}" for i, h in enumerate(BUILDER_HEADERS)}
        payload["extra"] = "ignored"
        session = _http_session(200, payload)

        with patch.object(client, "_get_session", AsyncMock(return_value=session)):
            headers = await client.sign("POST", "/submit", '{"a":1}')

        assert set(headers) == set(BUILDER_HEADERS)
        sent = orjson.loads(session.post.call_args.kwargs["data"])
        assert sent == {"method": "POST", "path": "/submit", "body": '{"a":1}'}

    @pytest.mark.asyncio
    async def test_incomplete_headers_rejected(self):
        """A response missing any header is an error."""
        client = RemoteSigningClient("https://signer.example/sign")
        session = _http_session(200, {"POLY_BUILDER_SIGNATURE": "sig"})

        with patch.object(client, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RelayerError, match="missing"):
                await client.sign("GET", "/nonce")

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Non-200 responses raise RelayerError."""
        client = RemoteSigningClient("https://signer.example/sign")
        session = _http_session(401, {"error": "unauthorized"})

        with patch.object(client, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RelayerError, match="401"):
                await client.sign("GET", "/nonce")

    @pytest.mark.asyncio
    async def test_timeout_becomes_relayer_error(self):
        """A request timeout is reported as RelayerError."""
        client = RemoteSigningClient("https://signer.example/sign", timeout_seconds=2.0)
        session = MagicMock()
        session.post.side_effect = asyncio.TimeoutError()

        with patch.object(client, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RelayerError, match="timed out"):
                await client.sign("POST", "/submit", "{}")

    @pytest.mark.asyncio
    async def test_non_object_response_rejected(self):
        """A JSON list instead of a header object is an error."""
        client = RemoteSigningClient("https://signer.example/sign")
        session = _http_session(200, ["POLY_BUILDER_SIGNATURE"])

        with patch.object(client, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RelayerError, match="non-object"):
                await client.sign("POST", "/submit", "{}")

    @pytest.mark.asyncio
    async def test_signing_timeout_fails_deployment(self, signer, chain):
        """A signing timeout during SAFE-CREATE leaves the deployment FAILED, not DEPLOYING."""
        remote = RemoteSigningClient("https://signer.example/sign")
        session = MagicMock()
        session.post.side_effect = asyncio.TimeoutError()
        controller = DeploymentController(RelayerClient(remote_signer=remote), chain)
        proxy = derive_proxy_address(signer.address)

        with patch.object(remote, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(DeploymentError):
                await controller.deploy(signer)

        assert controller.state(proxy) == DeploymentState.FAILED
