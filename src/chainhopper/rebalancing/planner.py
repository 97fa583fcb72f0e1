"""Rebalance planner - validates input, delegates, and checks the result."""

import re
from typing import Mapping

import structlog

from chainhopper.chains.registry import ChainRegistry
from chainhopper.errors import StrategyValidationError
from chainhopper.logging_config import get_decision_logger
from chainhopper.models import ActionKind, Portfolio, RebalanceAction, RebalanceStrategy
from chainhopper.rebalancing.allocation import analyze
from chainhopper.rebalancing.base import StrategyGenerator
from chainhopper.rebalancing.rules import NO_POSITIONS_REASONING, balanced_strategy

logger = structlog.get_logger(__name__)

_DIGITS = re.compile(r"[0-9]+")


def validate_action(action: RebalanceAction, registry: ChainRegistry) -> None:
    """Check one action against the swap/bridge invariants.

    Raises:
        StrategyValidationError: Naming the first rule the action breaks.
    """
    for label, chain_id in (("from_chain", action.from_chain), ("to_chain", action.to_chain)):
        if registry.get_chain(chain_id) is None:
            raise StrategyValidationError(f"{label} {chain_id} is not a supported chain")

    if action.kind == ActionKind.SWAP:
        if action.from_chain != action.to_chain:
            raise StrategyValidationError(
                f"swap must stay on one chain, got {action.from_chain} -> {action.to_chain}"
            )
        if action.from_token == action.to_token:
            raise StrategyValidationError(f"swap of {action.from_token} into itself")
    elif action.kind == ActionKind.BRIDGE:
        if action.from_token != action.to_token:
            raise StrategyValidationError(
                f"bridge must move one token, got {action.from_token} -> {action.to_token}"
            )
        if action.from_chain == action.to_chain:
            raise StrategyValidationError(f"bridge from chain {action.from_chain} to itself")

    if not _DIGITS.fullmatch(action.amount) or int(action.amount) <= 0:
        raise StrategyValidationError(
            f"amount must be a positive integer string, got {action.amount!r}"
        )

    if not registry.has_asset(action.from_chain, action.from_token):
        raise StrategyValidationError(
            f"{action.from_token} is not tracked on chain {action.from_chain}"
        )
    if not registry.has_asset(action.to_chain, action.to_token):
        raise StrategyValidationError(
            f"{action.to_token} is not tracked on chain {action.to_chain}"
        )


def validate_strategy(strategy: RebalanceStrategy, registry: ChainRegistry) -> None:
    """Reject (never repair) a strategy with any structurally invalid action."""
    for index, action in enumerate(strategy.actions):
        try:
            validate_action(action, registry)
        except StrategyValidationError as e:
            raise StrategyValidationError(f"action {index + 1}: {e}") from e


class RebalancePlanner:
    """Plans a rebalance with whichever StrategyGenerator is configured.

    The contract is the same for every generator: the target is validated
    first, empty and already-balanced portfolios short-circuit to an empty
    plan, and the generator's output must pass structural validation.
    """

    def __init__(
        self,
        generator: StrategyGenerator,
        registry: ChainRegistry,
        tolerance_pct: float = 2.0,
    ):
        self._generator = generator
        self._registry = registry
        self._tolerance_pct = tolerance_pct
        self._decision_log = get_decision_logger()

    def plan(self, portfolio: Portfolio, target: Mapping[str, float]) -> RebalanceStrategy:
        """Compute the action list moving portfolio toward target.

        Raises:
            InvalidInputError: If target has a negative or malformed entry.
            StrategyValidationError: If the generator returns an invalid action.
        """
        report = analyze(portfolio, target, self._registry, self._tolerance_pct)

        if not portfolio.balances:
            logger.info("planner.no_positions", address=portfolio.address)
            return RebalanceStrategy(actions=(), reasoning=NO_POSITIONS_REASONING)

        if report.is_balanced():
            logger.info("planner.balanced", address=portfolio.address, buckets=len(report.buckets))
            return balanced_strategy(report)

        generator_name = type(self._generator).__name__
        strategy = self._generator.generate(portfolio, target)

        try:
            validate_strategy(strategy, self._registry)
        except StrategyValidationError as e:
            logger.error("planner.invalid_strategy", generator=generator_name, error=str(e))
            raise

        self._decision_log.info(
            "decision.strategy_planned",
            address=portfolio.address,
            generator=generator_name,
            actions=[a.model_dump(mode="json") for a in strategy.actions],
            reasoning=strategy.reasoning,
            exceeding=[b.key for b in report.exceeding()],
        )

        return strategy
