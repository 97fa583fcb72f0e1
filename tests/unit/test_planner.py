"""Tests for the planner contract and structural validation."""

from unittest.mock import MagicMock

import pytest

from chainhopper.errors import InvalidInputError, StrategyValidationError
from chainhopper.models import RebalanceAction, RebalanceStrategy
from chainhopper.rebalancing.base import StrategyGenerator
from chainhopper.rebalancing.planner import RebalancePlanner, validate_action, validate_strategy
from chainhopper.rebalancing.rules import NO_POSITIONS_REASONING, RulePolicy


def _action(kind="swap", from_chain=1, to_chain=1, from_token="USDC", to_token="ETH", amount="1000"):
    return RebalanceAction(
        kind=kind,
        from_chain=from_chain,
        to_chain=to_chain,
        from_token=from_token,
        to_token=to_token,
        amount=amount,
    )


class TestValidateAction:
    def test_valid_swap(self, registry):
        validate_action(_action(), registry)

    def test_valid_bridge(self, registry):
        validate_action(_action("bridge", 1, 42161, "USDC", "USDC"), registry)

    def test_swap_across_chains_rejected(self, registry):
        with pytest.raises(StrategyValidationError, match="swap must stay on one chain"):
            validate_action(_action("swap", 1, 42161, "USDC", "ETH"), registry)

    def test_swap_into_same_token_rejected(self, registry):
        with pytest.raises(StrategyValidationError, match="into itself"):
            validate_action(_action("swap", 1, 1, "USDC", "USDC"), registry)

    def test_bridge_changing_token_rejected(self, registry):
        with pytest.raises(StrategyValidationError, match="bridge must move one token"):
            validate_action(_action("bridge", 1, 42161, "USDC", "USDT"), registry)

    def test_bridge_to_same_chain_rejected(self, registry):
        with pytest.raises(StrategyValidationError, match="to itself"):
            validate_action(_action("bridge", 1, 1, "USDC", "USDC"), registry)

    @pytest.mark.parametrize("amount", ["0", "-5", "1.5", "abc", "", "1e6", "١٢٣"])
    def test_bad_amount_rejected(self, registry, amount):
        with pytest.raises(StrategyValidationError, match="amount"):
            validate_action(_action(amount=amount), registry)

    def test_unsupported_chain_rejected(self, registry):
        with pytest.raises(StrategyValidationError, match="not a supported chain"):
            validate_action(_action("swap", 56, 56, "USDC", "ETH"), registry)

    def test_untracked_token_rejected(self, registry):
        with pytest.raises(StrategyValidationError, match="USDT is not tracked on chain 8453"):
            validate_action(_action("swap", 8453, 8453, "USDT", "USDC"), registry)

    def test_strategy_error_names_action_index(self, registry):
        strategy = RebalanceStrategy(
            actions=(_action(), _action("bridge", 1, 42161, "USDC", "WETH")),
            reasoning="test",
        )
        with pytest.raises(StrategyValidationError, match="action 2"):
            validate_strategy(strategy, registry)


class TestRebalancePlanner:
    @pytest.fixture
    def generator(self):
        return MagicMock(spec=StrategyGenerator)

    @pytest.fixture
    def planner(self, generator, registry):
        return RebalancePlanner(generator, registry, tolerance_pct=2.0)

    def test_empty_portfolio_short_circuits(self, planner, generator, make_portfolio):
        strategy = planner.plan(make_portfolio(), {"ETH": 100})
        assert strategy.actions == ()
        assert strategy.reasoning == NO_POSITIONS_REASONING
        generator.generate.assert_not_called()

    def test_balanced_portfolio_short_circuits(self, planner, generator, make_portfolio):
        portfolio = make_portfolio((1, "ETH", "40.5"), (1, "USDC", "39.5"), (1, "WETH", 20))
        strategy = planner.plan(portfolio, {"ETH": 40, "USDC": 40, "WETH": 20})
        assert strategy.actions == ()
        assert strategy.reasoning.startswith("Portfolio is balanced")
        generator.generate.assert_not_called()

    def test_negative_target_rejected_even_when_empty(self, planner, make_portfolio):
        with pytest.raises(InvalidInputError):
            planner.plan(make_portfolio(), {"ETH": -10, "USDC": 110})

    def test_generator_output_returned(self, planner, generator, usdc_only_portfolio):
        expected = RebalanceStrategy(actions=(_action(amount="400000000"),), reasoning="buy ETH")
        generator.generate.return_value = expected

        strategy = planner.plan(usdc_only_portfolio, {"ETH": 40, "USDC": 60})
        assert strategy == expected
        generator.generate.assert_called_once_with(usdc_only_portfolio, {"ETH": 40, "USDC": 60})

    def test_invalid_generator_output_rejected(self, planner, generator, usdc_only_portfolio):
        generator.generate.return_value = RebalanceStrategy(
            actions=(_action("swap", 1, 42161, "USDC", "ETH"),),
            reasoning="cross-chain swap",
        )
        with pytest.raises(StrategyValidationError, match="action 1"):
            planner.plan(usdc_only_portfolio, {"ETH": 40, "USDC": 60})

    def test_with_rule_policy(self, registry, usdc_only_portfolio):
        planner = RebalancePlanner(RulePolicy(registry), registry)
        strategy = planner.plan(usdc_only_portfolio, {"USDC": 40, "ETH": 40, "WETH": 20})

        assert [(a.from_token, a.to_token, a.amount) for a in strategy.actions] == [
            ("USDC", "ETH", "400000000"),
            ("USDC", "WETH", "200000000"),
            ("USDC", "USDC", "200000000"),
        ]

    def test_tolerance_honored(self, registry, make_portfolio):
        portfolio = make_portfolio((1, "ETH", 45), (1, "USDC", 55))
        generator = MagicMock(spec=StrategyGenerator)

        RebalancePlanner(generator, registry, tolerance_pct=5.0).plan(portfolio, {"ETH": 50, "USDC": 50})
        generator.generate.assert_not_called()

        generator.generate.return_value = RebalanceStrategy(actions=(), reasoning="nothing to do")
        RebalancePlanner(generator, registry, tolerance_pct=4.9).plan(portfolio, {"ETH": 50, "USDC": 50})
        generator.generate.assert_called_once()
