"""Shared test fixtures."""

from decimal import Decimal

import pytest

from chainhopper.chains.registry import ChainRegistry
from chainhopper.config import AppConfig, Secrets
from chainhopper.models import Portfolio, TokenBalance, parse_units

WALLET = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
USDC_ETH = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


@pytest.fixture
def registry() -> ChainRegistry:
    """The built-in four-chain registry."""
    return ChainRegistry()


@pytest.fixture
def test_config(tmp_path) -> AppConfig:
    """Provide a test configuration with safe defaults."""
    return AppConfig(
        providers={"strategy": "rules", "quotes": "lifi"},
        network={
            "request_timeout_seconds": 5,
            "retry_attempts": 1,
            "aggregation_timeout_seconds": 10,
            "quote_timeout_seconds": 10,
            "max_concurrent_quotes": 4,
        },
        rebalancing={
            "tolerance_pct": 2.0,
            "target_allocation": {"ETH": 40, "USDC": 40, "WETH": 20},
        },
        llm={"model": "gpt-4o", "temperature": 0.3, "max_output_tokens": 1024},
        wallets={"vitalik.eth": WALLET},
        logging={
            "level": "DEBUG",
            "app_log": str(tmp_path / "chainhopper.log"),
            "quote_log": str(tmp_path / "quotes.log"),
            "decision_log": str(tmp_path / "decisions.log"),
        },
    )


@pytest.fixture
def mock_secrets() -> Secrets:
    """Provide fake API keys for unit tests."""
    return Secrets(
        openai_api_key="test-openai-key",
        lifi_api_key="",
        wallet_address="",
    )


@pytest.fixture
def make_balance(registry):
    """Build a TokenBalance from a chain id, symbol and token-unit amount."""

    def _make(chain_id: int, symbol: str, amount) -> TokenBalance:
        chain = registry.get_chain(chain_id)
        asset = registry.get_asset(chain_id, symbol)
        return TokenBalance(chain=chain, asset=asset, raw=parse_units(Decimal(str(amount)), asset.decimals))

    return _make


@pytest.fixture
def make_portfolio(make_balance):
    """Build a Portfolio from (chain_id, symbol, amount) triples."""

    def _make(*holdings) -> Portfolio:
        return Portfolio(
            address=WALLET,
            balances=[make_balance(chain_id, symbol, amount) for chain_id, symbol, amount in holdings],
        )

    return _make


@pytest.fixture
def usdc_only_portfolio(make_portfolio) -> Portfolio:
    """1000 USDC on Ethereum and nothing else."""
    return make_portfolio((1, "USDC", 1000))
