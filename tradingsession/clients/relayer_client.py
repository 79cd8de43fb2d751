"""
Relayer API client.

Submits gas-sponsored proxy-wallet transactions: Safe deployment
(SAFE-CREATE) and batched Safe executions (SAFE), and polls their state.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional

import aiohttp
import orjson
from eth_account.messages import encode_typed_data
from web3 import Web3

from ..errors import RelayerError
from ..types.chain import RelayerTransaction, SafeTransaction
from ..types.core import RelayerTxState
from ..wallet.contracts import SAFE_FACTORY, ZERO_ADDRESS, multisend
from .remote_signer import RemoteSigningClient

logger = logging.getLogger(__name__)

PROXY_FACTORY_DOMAIN_NAME = "Polymarket Contract Proxy Factory"


def safe_create_typed_data(chain_id: int, factory: str = SAFE_FACTORY) -> dict[str, Any]:
    """EIP-712 CreateProxy message the owner signs to authorize deployment."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "CreateProxy": [
                {"name": "paymentToken", "type": "address"},
                {"name": "payment", "type": "uint256"},
                {"name": "paymentReceiver", "type": "address"},
            ],
        },
        "primaryType": "CreateProxy",
        "domain": {
            "name": PROXY_FACTORY_DOMAIN_NAME,
            "chainId": chain_id,
            "verifyingContract": factory,
        },
        "message": {
            "paymentToken": ZERO_ADDRESS,
            "payment": 0,
            "paymentReceiver": ZERO_ADDRESS,
        },
    }


def safe_tx_hash(chain_id: int, safe_address: str, tx: SafeTransaction, nonce: int) -> bytes:
    """EIP-712 SafeTx hash with zero gas refund parameters."""
    typed = {
        "types": {
            "EIP712Domain": [
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "SafeTx": [
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "data", "type": "bytes"},
                {"name": "operation", "type": "uint8"},
                {"name": "safeTxGas", "type": "uint256"},
                {"name": "baseGas", "type": "uint256"},
                {"name": "gasPrice", "type": "uint256"},
                {"name": "gasToken", "type": "address"},
                {"name": "refundReceiver", "type": "address"},
                {"name": "nonce", "type": "uint256"},
            ],
        },
        "primaryType": "SafeTx",
        "domain": {"chainId": chain_id, "verifyingContract": safe_address},
        "message": {
            "to": tx.to,
            "value": tx.value,
            "data": tx.data,
            "operation": tx.operation,
            "safeTxGas": 0,
            "baseGas": 0,
            "gasPrice": 0,
            "gasToken": ZERO_ADDRESS,
            "refundReceiver": ZERO_ADDRESS,
            "nonce": nonce,
        },
    }
    signable = encode_typed_data(full_message=typed)
    return bytes(Web3.keccak(b"\x19" + signable.version + signable.header + signable.body))


def pack_safe_signature(v: int, r: int, s: int) -> str:
    """
    Pack an eth_sign signature for Safe execution.

    Safe distinguishes eth_sign signatures by v > 30, so 4 is added to the
    recovery id.
    """
    if v in (0, 1):
        v += 27
    return "0x" + (r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([v + 4])).hex()


def _parse_transaction(data: dict[str, Any]) -> RelayerTransaction:
    tx_id = data.get("transactionID") or data.get("transactionId") or data.get("id") or ""
    return RelayerTransaction(
        transaction_id=str(tx_id),
        state=RelayerTxState.parse(str(data.get("state", "STATE_NEW"))),
        tx_hash=data.get("transactionHash") or data.get("hash"),
        proxy_address=data.get("proxyAddress"),
        error_msg=data.get("errorMsg") or data.get("error"),
    )


class RelayerClient:
    """
    HTTP client for the relayer.

    Authenticated submissions carry builder headers from the remote signing
    client; the owner signature inside the body authorizes the action.
    """

    def __init__(
        self,
        base_url: str = "https://relayer-v2.polymarket.com/",
        chain_id: int = 137,
        remote_signer: Optional[RemoteSigningClient] = None,
        timeout_seconds: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.remote_signer = remote_signer
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session and the signing client."""
        if self._session and not self._session.closed:
            await self._session.close()
        if self.remote_signer:
            await self.remote_signer.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, str]] = None,
        body: Optional[dict[str, Any]] = None,
        authenticated: bool = False,
    ) -> Any:
        """
        Perform a relayer request and decode the JSON response.

        Raises:
            RelayerError: on transport failure or a non-2xx response; the
                relayer's own error text is kept in the message
        """
        payload = orjson.dumps(body).decode() if body is not None else ""
        headers = {"Content-Type": "application/json"}
        if authenticated and self.remote_signer:
            headers.update(await self.remote_signer.sign(method, path, payload))

        url = f"{self.base_url}{path}"
        try:
            session = await self._get_session()
            async with session.request(
                method,
                url,
                params=params,
                data=payload if body is not None else None,
                headers=headers,
            ) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    detail = text
                    try:
                        decoded = orjson.loads(text)
                        if isinstance(decoded, dict):
                            detail = str(decoded.get("error") or decoded.get("message") or text)
                    except orjson.JSONDecodeError:
                        pass
                    raise RelayerError(f"Relayer {method} {path} failed ({resp.status}): {detail}")
                return orjson.loads(text) if text else None
        except aiohttp.ClientError as e:
            raise RelayerError(f"Relayer {method} {path} request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise RelayerError(f"Relayer {method} {path} timed out") from e

    async def get_deployed(self, proxy_address: str) -> bool:
        """Indexed deployment lookup for a proxy address."""
        data = await self._request("GET", "/deployed", params={"address": proxy_address})
        if not isinstance(data, dict) or "deployed" not in data:
            raise RelayerError(f"Unexpected /deployed response: {data!r}")
        return bool(data["deployed"])

    async def get_nonce(self, owner_address: str) -> int:
        """Current Safe nonce as tracked by the relayer."""
        data = await self._request(
            "GET", "/nonce", params={"address": owner_address, "type": "SAFE"}
        )
        if not isinstance(data, dict) or "nonce" not in data:
            raise RelayerError(f"Unexpected /nonce response: {data!r}")
        return int(data["nonce"])

    async def get_transaction(self, transaction_id: str) -> Optional[RelayerTransaction]:
        data = await self._request("GET", "/transaction", params={"id": transaction_id})
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            return None
        return _parse_transaction(data)

    async def submit_safe_create(self, signer, proxy_address: str) -> RelayerTransaction:
        """
        Request deployment of the owner's proxy wallet.

        Args:
            signer: Owner signer (address + EIP-712 signing)
            proxy_address: Predicted proxy address

        Returns:
            Submitted transaction (usually STATE_NEW)
        """
        signature = signer.sign_typed_data(safe_create_typed_data(self.chain_id))
        body = {
            "from": signer.address,
            "to": SAFE_FACTORY,
            "proxyWallet": proxy_address,
            "data": "0x",
            "signature": signature,
            "signatureParams": {
                "paymentToken": ZERO_ADDRESS,
                "payment": "0",
                "paymentReceiver": ZERO_ADDRESS,
            },
            "type": "SAFE-CREATE",
        }
        data = await self._request("POST", "/submit", body=body, authenticated=True)
        tx = _parse_transaction(data or {})
        logger.info(f"Relayer SAFE-CREATE submitted: id={tx.transaction_id} proxy={proxy_address}")
        return tx

    async def submit_safe_transactions(
        self,
        signer,
        safe_address: str,
        transactions: list[SafeTransaction],
        metadata: str = "",
    ) -> RelayerTransaction:
        """
        Execute one or more calls from the proxy wallet in a single Safe transaction.

        More than one call is packed into a MultiSend delegatecall so the
        batch lands atomically.
        """
        if not transactions:
            raise RelayerError("No transactions to submit")

        tx = transactions[0] if len(transactions) == 1 else multisend(transactions)
        nonce = await self.get_nonce(signer.address)
        v, r, s = signer.sign_hash_eth_sign(safe_tx_hash(self.chain_id, safe_address, tx, nonce))

        body = {
            "from": signer.address,
            "to": tx.to,
            "proxyWallet": safe_address,
            "data": tx.data,
            "nonce": str(nonce),
            "signature": pack_safe_signature(v, r, s),
            "signatureParams": {
                "gasPrice": "0",
                "operation": str(tx.operation),
                "safeTxnGas": "0",
                "baseGas": "0",
                "gasToken": ZERO_ADDRESS,
                "refundReceiver": ZERO_ADDRESS,
            },
            "type": "SAFE",
            "metadata": metadata,
        }
        data = await self._request("POST", "/submit", body=body, authenticated=True)
        result = _parse_transaction(data or {})
        logger.info(
            f"Relayer SAFE submitted: id={result.transaction_id} calls={len(transactions)} "
            f"nonce={nonce} metadata={metadata!r}"
        )
        return result

    async def poll_until_state(
        self,
        transaction_id: str,
        states: Iterable[RelayerTxState],
        interval_s: float = 3.0,
        timeout_s: float = 60.0,
    ) -> Optional[RelayerTransaction]:
        """
        Poll a transaction until it reaches one of `states`.

        Bounded: returns None once `timeout_s` elapses without a match.
        Transient lookup errors are logged and polling continues.
        """
        wanted = set(states)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s

        while True:
            try:
                tx = await self.get_transaction(transaction_id)
            except RelayerError as e:
                logger.warning(f"Relayer poll for {transaction_id} failed: {e}")
                tx = None

            if tx is not None:
                logger.debug(f"Relayer tx {transaction_id} state={tx.state.value}")
                if tx.state in wanted:
                    return tx

            if loop.time() + interval_s > deadline:
                logger.warning(f"Relayer tx {transaction_id} did not settle within {timeout_s}s")
                return None
            await asyncio.sleep(interval_s)
