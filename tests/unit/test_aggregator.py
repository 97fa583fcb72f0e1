"""Tests for concurrent portfolio aggregation."""

import asyncio
import time
from unittest.mock import MagicMock

import pytest

from chainhopper.chains.registry import ChainRegistry
from chainhopper.config import ChainConfig
from chainhopper.errors import InvalidInputError, OperationCancelledError
from chainhopper.models import TokenBalance
from chainhopper.portfolio.aggregator import PortfolioAggregator

WALLET = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
# Same account with one letter's case flipped, so the EIP-55 checksum fails
BAD_CHECKSUM = "0xD8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


def _balance(chain, asset, raw):
    return TokenBalance(chain=chain, asset=asset, raw=raw)


class TestPortfolioAggregator:
    def test_registry_order_regardless_of_completion(self, registry):
        """Later pairs finish first; the snapshot is still in registry order."""
        pairs = registry.pairs()
        delays = {(c.id, a.symbol): 0.002 * (len(pairs) - i) for i, (c, a) in enumerate(pairs)}

        def fetch(chain, asset, address):
            time.sleep(delays[(chain.id, asset.symbol)])
            return _balance(chain, asset, 1)

        fetcher = MagicMock()
        fetcher.fetch.side_effect = fetch

        portfolio = asyncio.run(PortfolioAggregator(registry, fetcher).aggregate(WALLET))

        got = [(b.chain.id, b.symbol) for b in portfolio.balances]
        assert got == [(c.id, a.symbol) for c, a in pairs]
        assert fetcher.fetch.call_count == len(pairs)

    def test_zero_balances_filtered(self, registry):
        def fetch(chain, asset, address):
            raw = 5 * 10**6 if (chain.id, asset.symbol) == (42161, "USDC") else 0
            return _balance(chain, asset, raw)

        fetcher = MagicMock()
        fetcher.fetch.side_effect = fetch

        portfolio = asyncio.run(PortfolioAggregator(registry, fetcher).aggregate(WALLET, "vitalik.eth"))
        assert [(b.chain.id, b.symbol, b.formatted) for b in portfolio.balances] == [(42161, "USDC", "5")]
        assert portfolio.display_name == "vitalik.eth"
        assert portfolio.address == WALLET

    def test_failed_reads_omitted(self):
        registry = ChainRegistry(
            [
                ChainConfig(
                    id=1,
                    key="eth",
                    name="Ethereum",
                    tokens=[
                        {"symbol": "USDC", "address": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "decimals": 6},
                        {"symbol": "WETH", "address": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "decimals": 18},
                    ],
                )
            ]
        )

        def fetch(chain, asset, address):
            if asset.symbol == "ETH":
                raise RuntimeError("endpoint exploded")
            if asset.symbol == "USDC":
                return None
            return _balance(chain, asset, 10**18)

        fetcher = MagicMock()
        fetcher.fetch.side_effect = fetch

        portfolio = asyncio.run(PortfolioAggregator(registry, fetcher).aggregate(WALLET))
        assert [b.symbol for b in portfolio.balances] == ["WETH"]
        assert portfolio.balances[0].formatted == "1"

    def test_all_reads_failing_gives_empty_portfolio(self, registry):
        fetcher = MagicMock()
        fetcher.fetch.return_value = None

        portfolio = asyncio.run(PortfolioAggregator(registry, fetcher).aggregate(WALLET))
        assert portfolio.balances == []

    @pytest.mark.parametrize("address", ["not-an-address", BAD_CHECKSUM])
    def test_invalid_address_rejected(self, registry, address):
        fetcher = MagicMock()
        with pytest.raises(InvalidInputError):
            asyncio.run(PortfolioAggregator(registry, fetcher).aggregate(address))
        fetcher.fetch.assert_not_called()

    def test_timeout_raises_cancelled(self, registry):
        def fetch(chain, asset, address):
            time.sleep(0.3)
            return _balance(chain, asset, 1)

        fetcher = MagicMock()
        fetcher.fetch.side_effect = fetch

        aggregator = PortfolioAggregator(registry, fetcher, timeout=0.01)
        with pytest.raises(OperationCancelledError):
            asyncio.run(aggregator.aggregate(WALLET))

    def test_balances_never_duplicated(self, registry):
        fetcher = MagicMock()
        fetcher.fetch.side_effect = lambda chain, asset, address: _balance(chain, asset, 7)

        portfolio = asyncio.run(PortfolioAggregator(registry, fetcher).aggregate(WALLET))
        pairs = [(b.chain.id, b.symbol) for b in portfolio.balances]
        assert len(pairs) == len(set(pairs)) == 14
