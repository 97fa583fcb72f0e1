"""Provider factory: creates the right implementation based on config."""

from chainhopper.chains.registry import ChainRegistry
from chainhopper.config import AppConfig, Secrets
from chainhopper.quotes.base import QuoteProvider
from chainhopper.rebalancing.base import StrategyGenerator

STRATEGY_PROVIDERS = {
    "rules": "chainhopper.rebalancing.rules:RulePolicy",
    "openai": "chainhopper.rebalancing.llm:OpenAIStrategyGenerator",
}

QUOTE_PROVIDERS = {
    "lifi": "chainhopper.quotes.lifi:LiFiQuoteProvider",
}


def _import_class(path: str):
    """Import a class from a 'module:ClassName' string."""
    module_path, class_name = path.split(":")
    import importlib

    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def create_strategy_generator(
    config: AppConfig, secrets: Secrets, registry: ChainRegistry
) -> StrategyGenerator:
    """Create a strategy generator based on config.providers.strategy."""
    name = config.providers.strategy
    if name not in STRATEGY_PROVIDERS:
        raise ValueError(
            f"Unknown strategy provider: '{name}'. Available: {list(STRATEGY_PROVIDERS.keys())}"
        )
    cls = _import_class(STRATEGY_PROVIDERS[name])
    if name == "rules":
        return cls(registry, config.rebalancing.tolerance_pct, config.rebalancing.spread_chain)
    return cls(config, secrets, registry)


def create_quote_provider(config: AppConfig, secrets: Secrets) -> QuoteProvider:
    """Create a quote provider based on config.providers.quotes."""
    name = config.providers.quotes
    if name not in QUOTE_PROVIDERS:
        raise ValueError(
            f"Unknown quote provider: '{name}'. Available: {list(QUOTE_PROVIDERS.keys())}"
        )
    cls = _import_class(QUOTE_PROVIDERS[name])
    return cls(config, secrets)
