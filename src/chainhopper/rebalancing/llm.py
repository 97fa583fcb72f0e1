"""Rebalance strategy generation with an OpenAI-compatible chat model."""

import json
from typing import Mapping

import openai
import structlog
from openai import OpenAI
from pydantic import ValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from chainhopper.chains.registry import ChainRegistry
from chainhopper.config import AppConfig, Secrets
from chainhopper.errors import StrategyValidationError
from chainhopper.logging_config import get_decision_logger
from chainhopper.models import Portfolio, RebalanceStrategy
from chainhopper.rebalancing.base import StrategyGenerator

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = """You are a DeFi portfolio rebalancing agent. Your job is to analyze a user's \
multi-chain crypto portfolio and generate a rebalancing strategy.

You will receive:
1. Current portfolio balances across multiple chains
2. Target allocation percentages (a key like "USDC@arb" pins that share to one chain)

You must output a JSON object with:
- actions: Array of rebalancing actions (swaps/bridges)
- reasoning: Brief explanation of the strategy

Rules:
- Minimize the number of transactions (gas efficiency)
- Prefer bridging over swap+bridge when moving the same token
- Consider that bridging has fees
- If the portfolio is already balanced (within {tolerance}%), return empty actions
- A swap stays on one chain: fromChain and toChain must be the same chain ID
- A bridge moves one token: fromToken and toToken must be the same symbol
- "amount" is an integer string in the source token's smallest unit
- Only use the tokens listed for each chain
- Always output valid JSON

Chains and tracked tokens:
{chain_table}

Example output:
{{
  "actions": [
    {{
      "type": "bridge",
      "fromChain": 1,
      "toChain": 42161,
      "fromToken": "USDC",
      "toToken": "USDC",
      "amount": "500000000",
      "amountFormatted": "500 USDC"
    }},
    {{
      "type": "swap",
      "fromChain": 1,
      "toChain": 1,
      "fromToken": "USDT",
      "toToken": "USDC",
      "amount": "100000000",
      "amountFormatted": "100 USDT"
    }}
  ],
  "reasoning": "USDC is 70% of the portfolio vs a 50% target. Swapping 100 USDT and moving 500 USDC to Arbitrum."
}}"""


class OpenAIStrategyGenerator(StrategyGenerator):
    """Asks a language model for a strategy and parses it into domain models.

    The output is not trusted: malformed JSON raises StrategyValidationError
    here, and the planner checks every action's structure afterwards.
    """

    def __init__(self, config: AppConfig, secrets: Secrets, registry: ChainRegistry):
        if not secrets.openai_api_key:
            raise ValueError(
                "OPENAI_API_KEY is required when using the openai strategy provider. "
                "Set it in .env or as an environment variable."
            )
        self._config = config.llm
        self._tolerance_pct = config.rebalancing.tolerance_pct
        self._retry_attempts = config.network.retry_attempts
        self._registry = registry
        self._client = OpenAI(
            api_key=secrets.openai_api_key,
            base_url=self._config.base_url,
            max_retries=0,
        )
        self._decision_log = get_decision_logger()

    def generate(self, portfolio: Portfolio, target: Mapping[str, float]) -> RebalanceStrategy:
        user_prompt = self._build_prompt(portfolio, target)
        logger.debug("llm.prompt_built", model=self._config.model, prompt=user_prompt)

        content = self._complete(user_prompt)
        strategy = self._parse_response(content)

        self._decision_log.info(
            "decision.llm_strategy",
            model=self._config.model,
            address=portfolio.address,
            actions=len(strategy.actions),
            reasoning=strategy.reasoning,
        )
        return strategy

    def _complete(self, user_prompt: str) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type((openai.APIConnectionError, openai.APITimeoutError)),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                response = self._client.chat.completions.create(
                    model=self._config.model,
                    messages=[
                        {"role": "system", "content": self._system_prompt()},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=self._config.temperature,
                    max_tokens=self._config.max_output_tokens,
                    response_format={"type": "json_object"},
                )

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise StrategyValidationError("No response from strategy model")
        return content

    def _system_prompt(self) -> str:
        lines = []
        for chain in self._registry.chains():
            symbols = ", ".join(a.symbol for a in self._registry.assets(chain.id))
            lines.append(f"- {chain.name}: {chain.id} ({symbols})")
        return SYSTEM_PROMPT.format(
            tolerance=f"{self._tolerance_pct:g}",
            chain_table="\n".join(lines),
        )

    def _build_prompt(self, portfolio: Portfolio, target: Mapping[str, float]) -> str:
        wallet = portfolio.address
        if portfolio.display_name:
            wallet += f" ({portfolio.display_name})"

        lines = [f"Wallet: {wallet}", "", "Current Balances:"]
        if not portfolio.balances:
            lines.append("  No balances found")
        for b in portfolio.balances:
            lines.append(
                f"  - {b.chain.name} ({b.chain.id}): {b.formatted} {b.symbol} "
                f"(raw {b.raw}, {b.decimals} decimals)"
            )

        lines += ["", "Target Allocation:"]
        for key, pct in target.items():
            lines.append(f"  - {key}: {pct}%")

        lines += [
            "",
            "Analyze this portfolio and generate a rebalancing strategy to achieve the target allocation.",
            "Output only valid JSON matching the schema described.",
        ]
        return "\n".join(lines)

    def _parse_response(self, response_text: str) -> RebalanceStrategy:
        try:
            data = json.loads(response_text)
        except json.JSONDecodeError as e:
            raise StrategyValidationError(f"Strategy model returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise StrategyValidationError("Strategy model output is not a JSON object")

        actions = data.get("actions") or []
        if not isinstance(actions, list):
            raise StrategyValidationError("Strategy model output 'actions' is not a list")

        try:
            return RebalanceStrategy(
                actions=tuple(actions),
                reasoning=str(data.get("reasoning", "")),
            )
        except ValidationError as e:
            raise StrategyValidationError(f"Strategy model output has malformed actions: {e}") from e
