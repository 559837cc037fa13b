import os
from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings using Pydantic Settings.

    Attributes
    ----------
    rpc_url : str
        JSON-RPC HTTP endpoint of the chain node
    ws_url : str | None
        Websocket endpoint for log subscriptions (listener disabled if unset)
    token_contract_address : str
        Address of the ERC20-style token contract
    native_decimals : int
        Decimal places of the native gas token (deployment specific)
    token_decimals : int
        Decimal places of the token contract (deployment specific)
    rpc_timeout : float
        Per-call RPC timeout in seconds
    history_strategy : Literal["logs", "scan"]
        Transaction history strategy used by wallet refresh
    transfer_lookback_blocks : int
        Block window for Transfer log queries
    transfer_limit : int
        Maximum number of transfers kept after merging
    usd_price : Decimal | None
        USD price of one priced unit, None when unknown
    priced_balance : Literal["native", "token"]
        Which balance the USD price multiplies
    refresh_interval : float
        Seconds between periodic wallet refreshes
    max_sessions : int
        Wallet sessions kept before the least recently used is evicted
    ws_retry_count : int
        Consecutive websocket failures before giving up
    ws_retry_sleep : float
        Initial reconnect delay in seconds
    ws_retry_multiplier : float
        Reconnect delay multiplier
    ws_retry_max_sleep : float
        Upper bound of the reconnect delay
    redis_host : str
        Redis host for caching
    redis_port : int
        Redis port
    redis_db : int
        Redis database number
    redis_password : str
        Redis password (optional)
    block_cache_ttl : int
        TTL of cached block bodies in seconds
    content_api_url : str
        Base URL of the content backend
    log_level : str
        Level of the ``chain_reader`` logger
    """

    rpc_url: str
    ws_url: str | None = None
    token_contract_address: str

    native_decimals: int = Field(..., ge=0)
    token_decimals: int = Field(..., ge=0)

    rpc_timeout: float = 20.0
    history_strategy: Literal["logs", "scan"] = "logs"
    transfer_lookback_blocks: int = 100
    transfer_limit: int = 5

    usd_price: Decimal | None = None
    priced_balance: Literal["native", "token"] = "native"

    refresh_interval: float = 60.0
    max_sessions: int = Field(default=100, gt=0)
    ws_retry_count: int = 5
    ws_retry_sleep: float = 1.0
    ws_retry_multiplier: float = 2.0
    ws_retry_max_sleep: float = 30.0

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str = ""
    block_cache_ttl: int = 300

    content_api_url: str = "https://givabit-server-krlus.ondigitalocean.app"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    @field_validator('token_contract_address')
    @classmethod
    def validate_contract_address(cls, v: str) -> str:
        if not v.startswith('0x') or len(v) != 42:
            raise ValueError('Invalid token contract address format')
        return v.lower()

    @field_validator('ws_url', mode='before')
    @classmethod
    def empty_ws_url(cls, v: str | None) -> str | None:
        return v or None
