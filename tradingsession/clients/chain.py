"""
Polygon chain access via web3.

Reads (bytecode, allowances, balances) try each configured RPC in order.
Writes are only used by legacy recovery, where the owner pays gas directly.
web3's HTTP provider is blocking, so calls run on a thread pool.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from web3 import Web3

from ..errors import ChainReadError, RecoveryError
from ..wallet.contracts import ERC1155_ABI, ERC20_ABI

logger = logging.getLogger(__name__)


class ChainReader:
    """Read-only chain access with RPC fallback."""

    def __init__(
        self,
        rpc_urls: list[str],
        timeout_seconds: float = 10.0,
        max_workers: int = 4,
    ):
        if not rpc_urls:
            raise ValueError("at least one RPC URL is required")
        self._rpc_urls = list(rpc_urls)
        self._timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        self._clients: dict[str, Web3] = {}

    def _web3(self, rpc_url: str) -> Web3:
        w3 = self._clients.get(rpc_url)
        if w3 is None:
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": self._timeout_seconds}))
            self._clients[rpc_url] = w3
        return w3

    def _call_with_fallback(self, label: str, fn: Callable[[Web3], Any]) -> Any:
        last_error: Optional[Exception] = None
        for rpc_url in self._rpc_urls:
            try:
                return fn(self._web3(rpc_url))
            except Exception as e:
                logger.warning(f"RPC {rpc_url} failed for {label}: {e}")
                last_error = e
        raise ChainReadError(f"All RPC endpoints failed for {label}: {last_error}")

    async def _run(self, label: str, fn: Callable[[Web3], Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._call_with_fallback, label, fn)

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    async def get_code(self, address: str) -> str:
        """Return deployed bytecode as 0x-hex ("0x" when empty)."""
        code = await self._run(
            f"getCode({address})",
            lambda w3: w3.eth.get_code(Web3.to_checksum_address(address)),
        )
        return "0x" + bytes(code).hex()

    async def has_code(self, address: str) -> bool:
        """Non-empty bytecode means deployed."""
        code = await self.get_code(address)
        return bool(code) and code != "0x"

    async def erc20_allowance(self, token: str, owner: str, spender: str) -> int:
        def _call(w3: Web3) -> int:
            contract = w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)
            return contract.functions.allowance(
                Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
            ).call()

        return int(await self._run(f"allowance({owner},{spender})", _call))

    async def erc20_balance(self, token: str, account: str) -> int:
        def _call(w3: Web3) -> int:
            contract = w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)
            return contract.functions.balanceOf(Web3.to_checksum_address(account)).call()

        return int(await self._run(f"balanceOf({account})", _call))

    async def erc1155_is_approved_for_all(self, token: str, account: str, operator: str) -> bool:
        def _call(w3: Web3) -> bool:
            contract = w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC1155_ABI)
            return contract.functions.isApprovedForAll(
                Web3.to_checksum_address(account), Web3.to_checksum_address(operator)
            ).call()

        return bool(await self._run(f"isApprovedForAll({account},{operator})", _call))


class ChainWriter:
    """
    Owner-paid transactions.

    Used only for recovering funds from a legacy proxy, which the relayer
    does not sponsor.
    """

    def __init__(
        self,
        rpc_urls: list[str],
        chain_id: int = 137,
        receipt_timeout_s: float = 120.0,
        max_workers: int = 2,
    ):
        if not rpc_urls:
            raise ValueError("at least one RPC URL is required")
        self._rpc_urls = list(rpc_urls)
        self._chain_id = chain_id
        self._receipt_timeout_s = receipt_timeout_s
        self._executor = ThreadPoolExecutor(max_workers=max_workers)

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _connect(self) -> Web3:
        for rpc_url in self._rpc_urls:
            try:
                w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 10}))
                w3.eth.block_number
                return w3
            except Exception as e:
                logger.warning(f"RPC {rpc_url} unavailable: {e}")
        raise RecoveryError("No working Polygon RPC")

    def _send(self, signer, to: str, data: str, gas: int) -> str:
        w3 = self._connect()
        tx = {
            "from": signer.address,
            "to": Web3.to_checksum_address(to),
            "data": data,
            "value": 0,
            "nonce": w3.eth.get_transaction_count(signer.address),
            "gas": gas,
            "gasPrice": w3.eth.gas_price,
            "chainId": self._chain_id,
        }
        raw = signer.sign_transaction(tx)
        tx_hash = w3.eth.send_raw_transaction(raw)
        tx_hash_hex = "0x" + bytes(tx_hash).hex()
        logger.info(f"Sent tx {tx_hash_hex} to {to}")

        receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout_s)
        if receipt.status != 1:
            raise RecoveryError(f"Transaction {tx_hash_hex} reverted")
        return tx_hash_hex

    async def send_transaction(self, signer, to: str, data: str, gas: int = 500_000) -> str:
        """
        Sign and send a contract call from the owner EOA, waiting for the receipt.

        Returns:
            Transaction hash (0x-hex)

        Raises:
            RecoveryError: if no RPC is reachable or the transaction reverts
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, self._send, signer, to, data, gas)
        except RecoveryError:
            raise
        except Exception as e:
            raise RecoveryError(f"Transaction to {to} failed: {e}") from e
