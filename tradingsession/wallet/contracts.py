"""
Contract addresses, ABIs and calldata encoders for Polygon mainnet.

Calldata is encoded with eth_abi directly so no provider is needed to
build a transaction.
"""

from eth_abi import encode
from eth_abi.packed import encode_packed
from web3 import Web3

from ..types.chain import ApprovalTarget, SafeTransaction


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2**256 - 1

# Collateral (USDC.e, 6 decimals)
USDC_ADDRESS = Web3.to_checksum_address("0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174")
USDC_DECIMALS = 6

# Conditional tokens (ERC1155 positions)
CTF_ADDRESS = Web3.to_checksum_address("0x4d97dcd97ec945f40cf65f87097ace5ea0476045")
CTF_EXCHANGE = Web3.to_checksum_address("0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E")
NEG_RISK_CTF_EXCHANGE = Web3.to_checksum_address("0xC5d563A36AE78145C45a50134d48A1215220f80a")
NEG_RISK_ADAPTER = Web3.to_checksum_address("0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296")

# Proxy wallet (Gnosis Safe) deployment
SAFE_FACTORY = Web3.to_checksum_address("0xaacFeEa03eb1561C4e67d661e40682Bd20E3541b")
LEGACY_SAFE_FACTORY = Web3.to_checksum_address("0x4e1DCf7AD4e460CfD30791CCC4F9c8a4f820ec67")
SAFE_INIT_CODE_HASH = "0x2bce2127ff07fb632d16c8347c4ebf501f4841168bed00d9e6ef715ddb6fcecf"
SAFE_SINGLETON = Web3.to_checksum_address("0xd9Db270c1B5E3Bd161E8c8503c55cEABeE709552")
SAFE_FALLBACK_HANDLER = Web3.to_checksum_address("0xf48f2B2d2a534e402487b3ee7C18c33Aec0Fe5e4")
SAFE_MULTISEND = Web3.to_checksum_address("0xA238CBeb142c10Ef7Ad8442C6D1f9E89e07e7761")

# Allowances at or above this count as approved
ALLOWANCE_THRESHOLD = 1_000_000_000_000

# Fixed approval set: 4 collateral spenders + 3 position operators
APPROVAL_TARGETS: tuple[ApprovalTarget, ...] = (
    ApprovalTarget("usdc:ctf", USDC_ADDRESS, CTF_ADDRESS, is_erc1155=False),
    ApprovalTarget("usdc:neg_risk_adapter", USDC_ADDRESS, NEG_RISK_ADAPTER, is_erc1155=False),
    ApprovalTarget("usdc:ctf_exchange", USDC_ADDRESS, CTF_EXCHANGE, is_erc1155=False),
    ApprovalTarget("usdc:neg_risk_ctf_exchange", USDC_ADDRESS, NEG_RISK_CTF_EXCHANGE, is_erc1155=False),
    ApprovalTarget("ctf:ctf_exchange", CTF_ADDRESS, CTF_EXCHANGE, is_erc1155=True),
    ApprovalTarget("ctf:neg_risk_ctf_exchange", CTF_ADDRESS, NEG_RISK_CTF_EXCHANGE, is_erc1155=True),
    ApprovalTarget("ctf:neg_risk_adapter", CTF_ADDRESS, NEG_RISK_ADAPTER, is_erc1155=True),
)

ERC20_ABI = [
    {"inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
     "name": "allowance", "outputs": [{"name": "", "type": "uint256"}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "account", "type": "address"}],
     "name": "balanceOf", "outputs": [{"name": "", "type": "uint256"}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
     "name": "approve", "outputs": [{"name": "", "type": "bool"}],
     "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
     "name": "transfer", "outputs": [{"name": "", "type": "bool"}],
     "stateMutability": "nonpayable", "type": "function"},
]

ERC1155_ABI = [
    {"inputs": [{"name": "account", "type": "address"}, {"name": "operator", "type": "address"}],
     "name": "isApprovedForAll", "outputs": [{"name": "", "type": "bool"}],
     "stateMutability": "view", "type": "function"},
]

SAFE_ABI = [
    {"inputs": [], "name": "nonce", "outputs": [{"name": "", "type": "uint256"}],
     "stateMutability": "view", "type": "function"},
]


def selector(signature: str) -> bytes:
    """4-byte function selector for a canonical signature."""
    return bytes(Web3.keccak(text=signature)[:4])


def _calldata(signature: str, types: list[str], args: list) -> str:
    return "0x" + (selector(signature) + encode(types, args)).hex()


def erc20_approve(spender: str, amount: int = MAX_UINT256) -> str:
    return _calldata("approve(address,uint256)", ["address", "uint256"], [spender, amount])


def erc20_transfer(to: str, amount: int) -> str:
    return _calldata("transfer(address,uint256)", ["address", "uint256"], [to, amount])


def erc1155_set_approval_for_all(operator: str, approved: bool = True) -> str:
    return _calldata(
        "setApprovalForAll(address,bool)", ["address", "bool"], [operator, approved]
    )


def safe_setup_initializer(owner: str) -> bytes:
    """Single-owner, threshold-1 Safe setup call used by the legacy factory."""
    signature = "setup(address[],uint256,address,bytes,address,address,uint256,address)"
    types = ["address[]", "uint256", "address", "bytes", "address", "address", "uint256", "address"]
    args = [
        [Web3.to_checksum_address(owner)],
        1,
        ZERO_ADDRESS,
        b"",
        SAFE_FALLBACK_HANDLER,
        ZERO_ADDRESS,
        0,
        ZERO_ADDRESS,
    ]
    return selector(signature) + encode(types, args)


def create_proxy_with_nonce(owner: str) -> str:
    """Legacy factory deployment call; the salt nonce is the owner address as an integer."""
    return _calldata(
        "createProxyWithNonce(address,bytes,uint256)",
        ["address", "bytes", "uint256"],
        [SAFE_SINGLETON, safe_setup_initializer(owner), int(owner, 16)],
    )


def exec_transaction_prevalidated(tx: SafeTransaction, owner: str) -> str:
    """
    Safe execTransaction signed by the caller itself.

    A v=1 signature with r=owner marks the hash as approved by msg.sender,
    so the owner can execute directly without a separate signature.
    """
    signature = (
        int(owner, 16).to_bytes(32, "big")
        + (0).to_bytes(32, "big")
        + bytes([1])
    )
    return _calldata(
        "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)",
        ["address", "uint256", "bytes", "uint8", "uint256", "uint256", "uint256", "address", "address", "bytes"],
        [
            tx.to,
            tx.value,
            bytes.fromhex(tx.data[2:] if tx.data.startswith("0x") else tx.data),
            tx.operation,
            0,
            0,
            0,
            ZERO_ADDRESS,
            ZERO_ADDRESS,
            signature,
        ],
    )


def multisend(transactions: list[SafeTransaction]) -> SafeTransaction:
    """
    Pack several calls into one MultiSend delegatecall.

    Each entry is packed as (uint8 operation, address to, uint256 value,
    uint256 data length, bytes data).
    """
    packed = b""
    for tx in transactions:
        data = bytes.fromhex(tx.data[2:] if tx.data.startswith("0x") else tx.data)
        packed += encode_packed(
            ["uint8", "address", "uint256", "uint256", "bytes"],
            [tx.operation, tx.to, tx.value, len(data), data],
        )
    return SafeTransaction(
        to=SAFE_MULTISEND,
        data=_calldata("multiSend(bytes)", ["bytes"], [packed]),
        value=0,
        operation=1,
    )


def approval_transactions() -> list[SafeTransaction]:
    """One transaction per approval target, in fixed order."""
    txs = []
    for target in APPROVAL_TARGETS:
        if target.is_erc1155:
            data = erc1155_set_approval_for_all(target.spender, True)
        else:
            data = erc20_approve(target.spender, MAX_UINT256)
        txs.append(SafeTransaction(to=target.token, data=data))
    return txs
