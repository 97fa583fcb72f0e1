"""Configuration loading and validation using Pydantic."""

import logging
from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

# Public endpoints used when no RPC URL is configured for a chain
DEFAULT_RPC_URLS: dict[int, str] = {
    1: "https://eth.llamarpc.com",
    42161: "https://arb1.arbitrum.io/rpc",
    8453: "https://mainnet.base.org",
    10: "https://mainnet.optimism.io",
}

DEFAULT_TARGET_ALLOCATION: dict[str, float] = {"ETH": 40.0, "USDC": 40.0, "WETH": 20.0}


class ProvidersConfig(BaseModel):
    strategy: Literal["rules", "openai"] = "rules"
    quotes: str = "lifi"


class NetworkConfig(BaseModel):
    """Transport settings shared by chain RPC reads and routing calls."""

    rpc_urls: dict[int, str] = Field(default_factory=lambda: dict(DEFAULT_RPC_URLS))
    request_timeout_seconds: float = Field(default=15.0, gt=0)
    retry_attempts: int = Field(default=1, ge=1, le=10)
    aggregation_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    quote_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    max_concurrent_quotes: int = Field(default=4, ge=1, le=64)

    def rpc_url(self, chain_id: int) -> Optional[str]:
        return self.rpc_urls.get(chain_id) or DEFAULT_RPC_URLS.get(chain_id)


class RebalancingConfig(BaseModel):
    """Configuration for allocation-based rebalancing."""

    tolerance_pct: float = Field(default=2.0, ge=0, le=100)
    target_allocation: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_TARGET_ALLOCATION)
    )
    # Chain that single-chain holdings are partly bridged to; None disables
    spread_chain: Optional[Union[int, str]] = "arb"

    @field_validator("target_allocation")
    @classmethod
    def no_negative_targets(cls, v):
        negative = {key: pct for key, pct in v.items() if pct < 0}
        if negative:
            raise ValueError(f"target_allocation percentages must be >= 0: {negative}")
        return v


class LLMConfig(BaseModel):
    model: str = "gpt-4o"
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=2048, gt=0)
    base_url: Optional[str] = None


class LiFiConfig(BaseModel):
    base_url: str = "https://li.quest/v1"
    integrator: Optional[str] = None
    slippage: Optional[float] = Field(default=None, gt=0, lt=1)


class TokenConfig(BaseModel):
    symbol: str
    address: str
    decimals: int = Field(ge=0, le=36)


class ChainConfig(BaseModel):
    """One registry entry as written in YAML."""

    id: int = Field(gt=0)
    key: str
    name: str
    native_symbol: str = "ETH"
    native_decimals: int = Field(default=18, ge=0, le=36)
    tokens: list[TokenConfig] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    app_log: str = "logs/chainhopper.log"
    quote_log: str = "logs/quotes.log"
    decision_log: str = "logs/decisions.log"
    max_bytes: int = 10485760
    backup_count: int = 5
    console: bool = True
    colors: bool = True
    # Third-party loggers held at library_level
    quiet_loggers: list[str] = Field(default_factory=lambda: ["urllib3", "web3", "openai", "httpx"])
    library_level: str = "WARNING"

    @field_validator("level", "library_level")
    @classmethod
    def known_level(cls, v):
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError(f"Unknown log level: {v}")
        return v


class AppConfig(BaseModel):
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    rebalancing: RebalancingConfig = Field(default_factory=RebalancingConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    lifi: LiFiConfig = Field(default_factory=LiFiConfig)
    chains: Optional[list[ChainConfig]] = None
    wallets: dict[str, str] = Field(default_factory=dict)
    wallet: Optional[str] = None
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class Secrets(BaseSettings):
    """Loaded from .env file automatically."""

    openai_api_key: str = ""
    lifi_api_key: str = ""
    wallet_address: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def load_config(config_path: Path = Path("config/settings.yaml")) -> AppConfig:
    """Load and validate application configuration from YAML.

    A missing file yields the built-in defaults.
    """
    if not Path(config_path).exists():
        return AppConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    # YAML `chains:` may be written as a mapping keyed by chain key
    chains = raw.get("chains")
    if isinstance(chains, dict):
        raw["chains"] = [{"key": key, **entry} for key, entry in chains.items()]

    return AppConfig(**raw)


def resolve_wallet_input(config: AppConfig, secrets: Secrets, cli_wallet: Optional[str] = None) -> Optional[str]:
    """Pick the wallet to analyze.

    Priority:
    1. Wallet given on the command line
    2. WALLET_ADDRESS from the environment / .env
    3. `wallet` from config
    """
    return cli_wallet or secrets.wallet_address or config.wallet
