"""
Proxy wallet primitives: address derivation, contract encoders, owner signer.
"""

from .address import (
    create2_address,
    derive_legacy_proxy_address,
    derive_proxy_address,
    is_address,
    normalize_address,
    owner_salt,
)
from .signer import LocalKeySigner

__all__ = [
    "create2_address",
    "derive_legacy_proxy_address",
    "derive_proxy_address",
    "is_address",
    "normalize_address",
    "owner_salt",
    "LocalKeySigner",
]
