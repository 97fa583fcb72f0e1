"""Cross-chain balance collection."""

from chainhopper.portfolio.aggregator import PortfolioAggregator
from chainhopper.portfolio.fetcher import BalanceFetcher

__all__ = [
    "BalanceFetcher",
    "PortfolioAggregator",
]
