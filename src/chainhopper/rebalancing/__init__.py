"""Rebalance planning: allocation analysis, strategy generation and validation."""

from chainhopper.rebalancing.allocation import AllocationReport, analyze, parse_target
from chainhopper.rebalancing.base import StrategyGenerator
from chainhopper.rebalancing.planner import RebalancePlanner, validate_strategy
from chainhopper.rebalancing.rules import RulePolicy

__all__ = [
    "AllocationReport",
    "RebalancePlanner",
    "RulePolicy",
    "StrategyGenerator",
    "analyze",
    "parse_target",
    "validate_strategy",
]
