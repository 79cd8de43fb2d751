"""Hand-written fakes for the session and execution tests."""

from tradingsession.errors import ChainReadError, RecoveryError
from tradingsession.types import (
    ApiCredentials,
    BookLevel,
    CancelResult,
    OrderResult,
    RelayerTransaction,
    RelayerTxState,
    Session,
)
from tradingsession.wallet import derive_proxy_address

OWNER_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
OTHER_KEY = "0x" + "22" * 32


class FakeRelayer:
    """In-memory relayer: records submissions and returns scripted results."""

    def __init__(self, deployed=False, final_state=RelayerTxState.MINED, error_msg=None):
        self.deployed = deployed
        self.final_state = final_state
        self.error_msg = error_msg
        self.deployed_error = None
        self.submit_error = None
        self.poll_returns_none = False
        self.create_calls = 0
        self.batches = []
        self.on_settle = None

    async def get_deployed(self, proxy_address):
        if self.deployed_error is not None:
            raise self.deployed_error
        return self.deployed

    async def submit_safe_create(self, signer, proxy_address):
        self.create_calls += 1
        if self.submit_error is not None:
            raise self.submit_error
        return RelayerTransaction(transaction_id=f"create-{self.create_calls}", state=RelayerTxState.NEW)

    async def submit_safe_transactions(self, signer, safe_address, transactions, metadata=""):
        if self.submit_error is not None:
            raise self.submit_error
        self.batches.append((safe_address, list(transactions), metadata))
        return RelayerTransaction(transaction_id=f"batch-{len(self.batches)}", state=RelayerTxState.NEW)

    async def poll_until_state(self, transaction_id, states, interval_s=3.0, timeout_s=60.0):
        if self.poll_returns_none:
            return None
        if self.on_settle is not None:
            self.on_settle(transaction_id)
        return RelayerTransaction(
            transaction_id=transaction_id,
            state=self.final_state,
            tx_hash="0x" + "ab" * 32,
            error_msg=self.error_msg,
        )


class FakeChainReader:
    """Scripted chain reads."""

    def __init__(self, has_code=False, allowance=0, approved_for_all=False, balance=0):
        self.code = has_code
        self.allowance = allowance
        self.approved_for_all = approved_for_all
        self.balance = balance
        self.fail_reads = False
        self.code_calls = 0

    async def has_code(self, address):
        self.code_calls += 1
        if self.fail_reads:
            raise ChainReadError("All RPC endpoints failed")
        return self.code

    async def erc20_allowance(self, token, owner, spender):
        if self.fail_reads:
            raise ChainReadError("All RPC endpoints failed")
        return self.allowance

    async def erc1155_is_approved_for_all(self, token, account, operator):
        if self.fail_reads:
            raise ChainReadError("All RPC endpoints failed")
        return self.approved_for_all

    async def erc20_balance(self, token, account):
        if self.fail_reads:
            raise ChainReadError("All RPC endpoints failed")
        return self.balance


class FakeExchange:
    """Order books, credentials and order placement without the network."""

    def __init__(self):
        self.books = {}
        self.book_calls = []
        self.create_error = None
        self.derive_error = None
        self.create_calls = 0
        self.derive_calls = 0
        self.market_orders = []
        self.limit_orders = []
        self.order_error = None
        self.cancel_result = CancelResult(success=True)

    def set_book(self, instrument_id, bids, asks):
        self.books[instrument_id] = (
            [BookLevel(p, s) for p, s in bids],
            [BookLevel(p, s) for p, s in asks],
        )

    async def get_order_book(self, token_id):
        self.book_calls.append(token_id)
        if token_id not in self.books:
            raise RuntimeError(f"No book for {token_id}")
        return self.books[token_id]

    async def create_api_key(self, private_key):
        self.create_calls += 1
        if self.create_error is not None:
            raise self.create_error
        return ApiCredentials(key="created-key", secret="secret", passphrase="pass")

    async def derive_api_key(self, private_key):
        self.derive_calls += 1
        if self.derive_error is not None:
            raise self.derive_error
        return ApiCredentials(key="derived-key", secret="secret", passphrase="pass")

    async def place_market_order(self, account, token_id, side, amount, price, tick_size="0.01", neg_risk=False):
        self.market_orders.append((token_id, side, amount, price))
        if self.order_error is not None:
            return OrderResult(success=False, error_msg=self.order_error)
        return OrderResult(success=True, order_id=f"order-{len(self.market_orders)}")

    async def place_limit_order(
        self, account, token_id, side, price, size, tick_size="0.01", neg_risk=False, order_type=None
    ):
        self.limit_orders.append((token_id, side, price, size, order_type))
        if self.order_error is not None:
            return OrderResult(success=False, error_msg=self.order_error)
        return OrderResult(success=True, order_id=f"limit-{len(self.limit_orders)}")

    async def cancel_order(self, account, order_id):
        return self.cancel_result


class FakeChainWriter:
    """Records sent transactions; can fail on a chosen call."""

    def __init__(self):
        self.sent = []
        self.fail_on = None
        self.on_send = None

    async def send_transaction(self, signer, to, data, gas=500_000):
        self.sent.append((to, data, gas))
        if self.fail_on is not None and len(self.sent) == self.fail_on:
            raise RecoveryError("execution reverted")
        if self.on_send is not None:
            self.on_send(to, data)
        return "0x" + f"{len(self.sent):064x}"


def make_session(signer, **changes) -> Session:
    """A complete session for `signer`, with optional overrides."""
    session = Session(
        owner_address=signer.address,
        proxy_address=derive_proxy_address(signer.address),
        schema_version=1,
        is_proxy_deployed=True,
        has_credentials=True,
        has_approvals=True,
        credentials=ApiCredentials(key="k", secret="s", passphrase="p"),
        credentials_derived_for=signer.address,
    )
    return session.copy(**changes)


