"""Tests for the OpenAI strategy generator with a mocked client."""

import json
from unittest.mock import MagicMock, patch

import pytest

from chainhopper.errors import StrategyValidationError
from chainhopper.models import ActionKind
from chainhopper.rebalancing.llm import OpenAIStrategyGenerator
from chainhopper.rebalancing.planner import RebalancePlanner


class TestOpenAIStrategyGenerator:
    @pytest.fixture
    def generator(self, test_config, mock_secrets, registry):
        with patch("chainhopper.rebalancing.llm.OpenAI"):
            g = OpenAIStrategyGenerator(test_config, mock_secrets, registry)
            g._client = MagicMock()
            return g

    def _mock_response(self, content) -> MagicMock:
        """Create a mock OpenAI chat completion response."""
        mock_message = MagicMock()
        mock_message.content = content if isinstance(content, str) else json.dumps(content)
        mock_choice = MagicMock()
        mock_choice.message = mock_message
        mock_resp = MagicMock()
        mock_resp.choices = [mock_choice]
        return mock_resp

    def test_requires_api_key(self, test_config, mock_secrets, registry):
        mock_secrets.openai_api_key = ""
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAIStrategyGenerator(test_config, mock_secrets, registry)

    def test_client_built_without_sdk_retries(self, test_config, mock_secrets, registry):
        with patch("chainhopper.rebalancing.llm.OpenAI") as mock_openai:
            OpenAIStrategyGenerator(test_config, mock_secrets, registry)
        assert mock_openai.call_args.kwargs["max_retries"] == 0
        assert mock_openai.call_args.kwargs["api_key"] == "test-openai-key"

    def test_generate_parses_actions(self, generator, usdc_only_portfolio):
        generator._client.chat.completions.create.return_value = self._mock_response(
            {
                "actions": [
                    {
                        "type": "swap",
                        "fromChain": 1,
                        "toChain": 1,
                        "fromToken": "USDC",
                        "toToken": "ETH",
                        "amount": "400000000",
                        "amountFormatted": "400 USDC",
                    }
                ],
                "reasoning": "Too much USDC.",
            }
        )

        strategy = generator.generate(usdc_only_portfolio, {"ETH": 40, "USDC": 60})
        assert len(strategy.actions) == 1
        assert strategy.actions[0].kind == ActionKind.SWAP
        assert strategy.actions[0].amount == "400000000"
        assert strategy.reasoning == "Too much USDC."

        kwargs = generator._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"

    def test_empty_actions(self, generator, usdc_only_portfolio):
        generator._client.chat.completions.create.return_value = self._mock_response(
            {"actions": [], "reasoning": "Already fine."}
        )
        strategy = generator.generate(usdc_only_portfolio, {"USDC": 100})
        assert strategy.actions == ()

    def test_invalid_json_raises(self, generator, usdc_only_portfolio):
        generator._client.chat.completions.create.return_value = self._mock_response("This is not valid JSON")
        with pytest.raises(StrategyValidationError, match="invalid JSON"):
            generator.generate(usdc_only_portfolio, {"USDC": 100})

    def test_non_object_raises(self, generator, usdc_only_portfolio):
        generator._client.chat.completions.create.return_value = self._mock_response("[1, 2]")
        with pytest.raises(StrategyValidationError, match="not a JSON object"):
            generator.generate(usdc_only_portfolio, {"USDC": 100})

    def test_actions_not_list_raises(self, generator, usdc_only_portfolio):
        generator._client.chat.completions.create.return_value = self._mock_response(
            {"actions": {"type": "swap"}, "reasoning": ""}
        )
        with pytest.raises(StrategyValidationError, match="not a list"):
            generator.generate(usdc_only_portfolio, {"USDC": 100})

    def test_malformed_action_raises(self, generator, usdc_only_portfolio):
        generator._client.chat.completions.create.return_value = self._mock_response(
            {"actions": [{"type": "swap", "fromChain": 1}], "reasoning": ""}
        )
        with pytest.raises(StrategyValidationError, match="malformed actions"):
            generator.generate(usdc_only_portfolio, {"USDC": 100})

    def test_empty_response_raises(self, generator, usdc_only_portfolio):
        mock_resp = MagicMock()
        mock_resp.choices = []
        generator._client.chat.completions.create.return_value = mock_resp
        with pytest.raises(StrategyValidationError, match="No response"):
            generator.generate(usdc_only_portfolio, {"USDC": 100})

    def test_system_prompt_lists_chains(self, generator):
        prompt = generator._system_prompt()
        assert "- Ethereum: 1 (ETH, USDC, USDT, WETH)" in prompt
        assert "- Base: 8453 (ETH, USDC, WETH)" in prompt
        assert "within 2%" in prompt
        assert '"fromChain": 1' in prompt

    def test_user_prompt_includes_portfolio(self, generator, usdc_only_portfolio):
        usdc_only_portfolio.display_name = "vitalik.eth"
        prompt = generator._build_prompt(usdc_only_portfolio, {"USDC@arb": 100})
        assert "(vitalik.eth)" in prompt
        assert "Ethereum (1): 1000 USDC (raw 1000000000, 6 decimals)" in prompt
        assert "USDC@arb: 100%" in prompt

    def test_cross_chain_swap_rejected_by_planner(self, generator, registry, usdc_only_portfolio):
        generator._client.chat.completions.create.return_value = self._mock_response(
            {
                "actions": [
                    {
                        "type": "swap",
                        "fromChain": 1,
                        "toChain": 42161,
                        "fromToken": "USDC",
                        "toToken": "ETH",
                        "amount": "400000000",
                    }
                ],
                "reasoning": "",
            }
        )
        planner = RebalancePlanner(generator, registry)
        with pytest.raises(StrategyValidationError, match="swap must stay on one chain"):
            planner.plan(usdc_only_portfolio, {"ETH": 40, "USDC": 60})
