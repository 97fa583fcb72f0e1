"""Abstract base class for rebalance strategy generators."""

from abc import ABC, abstractmethod
from typing import Mapping

from chainhopper.models import Portfolio, RebalanceStrategy


class StrategyGenerator(ABC):
    """Interface for turning a portfolio and target into swap/bridge actions."""

    @abstractmethod
    def generate(self, portfolio: Portfolio, target: Mapping[str, float]) -> RebalanceStrategy:
        """Produce an ordered action list with a rationale.

        Output is validated by the planner; generators must not rely on it
        being repaired.
        """
        ...
