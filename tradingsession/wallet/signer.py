"""
Owner key signer.

Wraps an eth_account LocalAccount. The signer never depends on the proxy
wallet, so it can produce credential signatures before deployment.
"""

import logging
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from ..errors import NotConnected

logger = logging.getLogger(__name__)


def _hex(raw: bytes) -> str:
    return "0x" + bytes(raw).hex()


class LocalKeySigner:
    """Signs messages, typed data and transactions with a local private key."""

    def __init__(self, private_key: str):
        if not private_key:
            raise NotConnected("No owner private key configured")
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise NotConnected(f"Invalid owner private key: {e}") from e
        self._private_key = private_key

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def private_key(self) -> str:
        """Raw key, needed by py-clob-client which signs on its own."""
        return self._private_key

    def get_address(self) -> str:
        return self._account.address

    def sign_typed_data(self, full_message: dict[str, Any]) -> str:
        """EIP-712 signature over a full typed-data message."""
        signable = encode_typed_data(full_message=full_message)
        signed = self._account.sign_message(signable)
        return _hex(signed.signature)

    def sign_hash_eth_sign(self, message_hash: bytes) -> tuple[int, int, int]:
        """
        eth_sign (EIP-191 personal message) over a 32-byte hash.

        Returns:
            Tuple of (v, r, s)
        """
        signed = self._account.sign_message(encode_defunct(primitive=message_hash))
        return signed.v, signed.r, signed.s

    def sign_transaction(self, tx: dict[str, Any]) -> bytes:
        """Sign a raw transaction dict, returning the serialized bytes."""
        signed = self._account.sign_transaction(tx)
        raw = getattr(signed, "raw_transaction", None)
        if raw is None:
            raw = signed.rawTransaction
        return bytes(raw)
