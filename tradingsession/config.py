"""Configuration for the trading session core."""

import os
import re
from dataclasses import dataclass, field


_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

DEFAULT_RPC_URLS = [
    "https://polygon-bor-rpc.publicnode.com",
    "https://polygon-rpc.com",
    "https://polygon.llamarpc.com",
]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name, "")
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or list(default)


@dataclass
class SessionConfig:
    """
    Configuration container for session orchestration and order execution.

    Loaded from environment variables with sensible defaults.
    """
    # Endpoints
    clob_host: str = "https://clob.polymarket.com"
    relayer_url: str = "https://relayer-v2.polymarket.com/"
    remote_signing_url: str = ""
    chain_id: int = 137  # Polygon mainnet
    rpc_urls: list[str] = field(default_factory=lambda: list(DEFAULT_RPC_URLS))
    http_timeout_seconds: float = 15.0

    # Session persistence
    session_store_path: str = "./data/sessions.db"
    session_schema_version: int = 1

    # Deployment polling
    deploy_poll_interval_s: float = 3.0
    deploy_timeout_s: float = 60.0

    # Pricing
    price_buffer: float = 0.03  # 3 percentage points
    price_ceiling: float = 0.99
    price_floor: float = 0.01
    stale_after_ms: int = 10_000
    wide_spread_percent: float = 10.0
    book_refresh_interval_s: float = 5.0
    book_batch_size: int = 10

    # Order validation
    default_min_order_size: float = 5.0  # shares
    skip_balance_check: bool = False

    # Fees
    fee_bps: int = 0
    fee_address: str = ""

    # Logging
    log_level: str = "INFO"

    # Owner key (loaded from env, never logged)
    private_key: str = field(default="", repr=False)

    @classmethod
    def from_env(cls) -> "SessionConfig":
        """Load configuration from environment variables."""
        return cls(
            clob_host=os.getenv("CLOB_HOST", "https://clob.polymarket.com"),
            relayer_url=os.getenv("RELAYER_URL", "https://relayer-v2.polymarket.com/"),
            remote_signing_url=os.getenv("REMOTE_SIGNING_URL", ""),
            chain_id=int(os.getenv("CHAIN_ID", "137")),
            rpc_urls=_env_list("RPC_URLS", DEFAULT_RPC_URLS),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "15.0")),
            session_store_path=os.getenv("SESSION_STORE_PATH", "./data/sessions.db"),
            session_schema_version=int(os.getenv("SESSION_SCHEMA_VERSION", "1")),
            deploy_poll_interval_s=float(os.getenv("DEPLOY_POLL_INTERVAL_S", "3.0")),
            deploy_timeout_s=float(os.getenv("DEPLOY_TIMEOUT_S", "60.0")),
            price_buffer=float(os.getenv("PRICE_BUFFER", "0.03")),
            price_ceiling=float(os.getenv("PRICE_CEILING", "0.99")),
            price_floor=float(os.getenv("PRICE_FLOOR", "0.01")),
            stale_after_ms=int(os.getenv("STALE_AFTER_MS", "10000")),
            wide_spread_percent=float(os.getenv("WIDE_SPREAD_PERCENT", "10.0")),
            book_refresh_interval_s=float(os.getenv("BOOK_REFRESH_INTERVAL_S", "5.0")),
            book_batch_size=int(os.getenv("BOOK_BATCH_SIZE", "10")),
            default_min_order_size=float(os.getenv("DEFAULT_MIN_ORDER_SIZE", "5.0")),
            skip_balance_check=_env_bool("SKIP_BALANCE_CHECK", False),
            fee_bps=int(os.getenv("FEE_BPS", "0")),
            fee_address=os.getenv("FEE_ADDRESS", ""),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            private_key=os.getenv("PRIVATE_KEY", ""),
        )

    @property
    def fees_enabled(self) -> bool:
        return self.fee_bps > 0 and bool(self.fee_address)

    def validate(self) -> None:
        """Validate configuration values."""
        if not 0 < self.price_buffer < 1:
            raise ValueError("price_buffer must be between 0 and 1")

        if not 0 < self.price_ceiling <= 1:
            raise ValueError("price_ceiling must be in (0, 1]")

        if not 0 <= self.price_floor < self.price_ceiling:
            raise ValueError("price_floor must be non-negative and below price_ceiling")

        if self.deploy_poll_interval_s <= 0 or self.deploy_timeout_s <= 0:
            raise ValueError("deploy poll interval and timeout must be positive")

        if self.stale_after_ms <= 0:
            raise ValueError("stale_after_ms must be positive")

        if self.book_refresh_interval_s <= 0:
            raise ValueError("book_refresh_interval_s must be positive")

        if self.book_batch_size < 1:
            raise ValueError("book_batch_size must be at least 1")

        if self.default_min_order_size < 0:
            raise ValueError("default_min_order_size must be non-negative")

        if self.session_schema_version < 1:
            raise ValueError("session_schema_version must be at least 1")

        if not 0 <= self.fee_bps <= 10_000:
            raise ValueError("fee_bps must be between 0 and 10000")

        if self.fee_bps > 0 and not _ADDRESS_RE.match(self.fee_address or ""):
            raise ValueError("fee_address must be a valid address when fee_bps is set")

        if not self.rpc_urls:
            raise ValueError("at least one RPC URL is required")
