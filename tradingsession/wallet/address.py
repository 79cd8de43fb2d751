"""
Deterministic proxy-wallet address derivation.

Pure functions, no network access. The result matches what the on-chain
factory produces when deploying with salt = keccak256(abi.encode(owner)).
"""

import re
from typing import Union

from eth_abi import encode
from web3 import Web3

from ..errors import InvalidAddress
from .contracts import LEGACY_SAFE_FACTORY, SAFE_FACTORY, SAFE_INIT_CODE_HASH


_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def is_address(value: object) -> bool:
    """Check for a 0x-prefixed 20-byte hex string (checksum not enforced)."""
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def normalize_address(value: object) -> str:
    """
    Return the checksummed form of an address.

    Raises:
        InvalidAddress: if the value is not a 20-byte hex address
    """
    if not is_address(value):
        raise InvalidAddress(f"Invalid address: {value!r}")
    return Web3.to_checksum_address(value)


def _to_bytes32(value: Union[str, bytes], label: str) -> bytes:
    if isinstance(value, bytes):
        if len(value) != 32:
            raise InvalidAddress(f"{label} must be 32 bytes")
        return value
    if not isinstance(value, str) or not _HASH_RE.match(value):
        raise InvalidAddress(f"{label} must be a 0x-prefixed 32-byte hex string")
    return bytes.fromhex(value[2:])


def create2_address(
    deployer: str,
    salt: Union[str, bytes],
    init_code_hash: Union[str, bytes],
) -> str:
    """
    Compute an EIP-1014 CREATE2 address.

    address = keccak256(0xff ++ deployer ++ salt ++ init_code_hash)[12:]
    """
    deployer = normalize_address(deployer)
    salt_bytes = _to_bytes32(salt, "salt")
    code_hash = _to_bytes32(init_code_hash, "init_code_hash")

    digest = Web3.keccak(b"\xff" + bytes.fromhex(deployer[2:]) + salt_bytes + code_hash)
    return Web3.to_checksum_address("0x" + bytes(digest[12:]).hex())


def owner_salt(owner_address: str) -> bytes:
    """keccak256(abi.encode(address owner))"""
    return bytes(Web3.keccak(encode(["address"], [normalize_address(owner_address)])))


def derive_proxy_address(
    owner_address: str,
    factory_address: str = SAFE_FACTORY,
    init_code_hash: Union[str, bytes] = SAFE_INIT_CODE_HASH,
) -> str:
    """
    Predict the proxy-wallet address for an owner.

    Args:
        owner_address: Owner EOA address
        factory_address: Proxy factory that will deploy the wallet
        init_code_hash: keccak256 of the proxy creation code

    Returns:
        Checksummed proxy address

    Raises:
        InvalidAddress: on malformed input
    """
    return create2_address(factory_address, owner_salt(owner_address), init_code_hash)


def derive_legacy_proxy_address(owner_address: str) -> str:
    """Proxy address under the superseded factory."""
    return derive_proxy_address(owner_address, LEGACY_SAFE_FACTORY, SAFE_INIT_CODE_HASH)
