"""Cross-chain portfolio aggregation and rebalance planning."""

__version__ = "0.1.0"
