"""Orchestrates one rebalance run: resolve, aggregate, plan, quote."""

import asyncio
from typing import Mapping, Optional

import structlog

from chainhopper.chains.registry import ChainRegistry
from chainhopper.chains.rpc import ChainRpcClient, build_rpc_clients
from chainhopper.config import AppConfig, Secrets
from chainhopper.errors import ChainhopperError, InvalidInputError
from chainhopper.models import ExecutionStatus, RebalanceRun
from chainhopper.naming import AddressBookResolver, NameResolver, resolve_wallet
from chainhopper.portfolio import BalanceFetcher, PortfolioAggregator
from chainhopper.providers import create_quote_provider, create_strategy_generator
from chainhopper.quotes import QuotePipeline, QuoteProvider
from chainhopper.rebalancing import RebalancePlanner, StrategyGenerator

logger = structlog.get_logger(__name__)


class RebalanceEngine:
    """Wires every component once and runs the rebalance pipeline."""

    def __init__(
        self,
        config: AppConfig,
        secrets: Secrets,
        resolver: Optional[NameResolver] = None,
        generator: Optional[StrategyGenerator] = None,
        quote_provider: Optional[QuoteProvider] = None,
        clients: Optional[Mapping[int, ChainRpcClient]] = None,
    ):
        self._config = config
        self._secrets = secrets
        self._registry = ChainRegistry.from_config(config.chains)
        self._clients = clients if clients is not None else build_rpc_clients(config.network, self._registry)
        self._resolver = resolver or AddressBookResolver(config.wallets)

        fetcher = BalanceFetcher(self._registry, self._clients)
        self._aggregator = PortfolioAggregator(
            self._registry, fetcher, timeout=config.network.aggregation_timeout_seconds
        )
        self._planner = RebalancePlanner(
            generator or create_strategy_generator(config, secrets, self._registry),
            self._registry,
            tolerance_pct=config.rebalancing.tolerance_pct,
        )
        self._pipeline = QuotePipeline(
            quote_provider or create_quote_provider(config, secrets),
            max_concurrency=config.network.max_concurrent_quotes,
            timeout=config.network.quote_timeout_seconds,
        )

    @property
    def registry(self) -> ChainRegistry:
        return self._registry

    async def execute(self, wallet: str, target: Optional[Mapping[str, float]] = None) -> RebalanceRun:
        """Run the full pipeline for one wallet (address or name).

        Raises:
            InvalidInputError: If the wallet cannot be resolved or the target is malformed.
            StrategyValidationError: If the strategy generator breaks the planning contract.
            OperationCancelledError: If aggregation or quoting times out.
        """
        resolved = resolve_wallet(wallet, self._resolver)
        if resolved is None:
            raise InvalidInputError(f"Could not resolve wallet: {wallet}")

        target = dict(target if target is not None else self._config.rebalancing.target_allocation)
        logger.info(
            "engine.run_started",
            address=resolved.address,
            name=resolved.display_name,
            strategy=self._config.providers.strategy,
            quotes=self._config.providers.quotes,
        )

        portfolio = await self._aggregator.aggregate(resolved.address, resolved.display_name)
        strategy = await asyncio.to_thread(self._planner.plan, portfolio, target)

        results = []
        if strategy.actions:
            results = await self._pipeline.quote_all(strategy.actions, resolved.address)

        run = RebalanceRun(portfolio=portfolio, strategy=strategy, results=results)
        logger.info(
            "engine.run_complete",
            address=resolved.address,
            balances=len(portfolio.balances),
            actions=len(strategy.actions),
            quoted=run.quoted_count,
        )
        return run

    async def run(self, wallet: Optional[str] = None) -> int:
        """Execute and print a console summary. Returns a process exit code."""
        wallet = wallet or self._config.wallet
        if not wallet:
            print("ERROR: No wallet given. Pass one on the command line or set WALLET_ADDRESS.")
            return 1

        print("=" * 60)
        print("CHAINHOPPER")
        print("Cross-chain portfolio rebalancer")
        print("=" * 60)
        print(f"Wallet:   {wallet}")
        print(f"Strategy: {self._config.providers.strategy}")
        print(f"Target:   {self._format_target(self._config.rebalancing.target_allocation)}")
        print()

        try:
            run = await self.execute(wallet)
        except ChainhopperError as e:
            logger.error("engine.run_failed", wallet=wallet, error=str(e))
            print(f"ERROR: {e}")
            return 1
        except Exception as e:
            logger.error("engine.run_failed", wallet=wallet, error=str(e), exc_info=True)
            print(f"ERROR: {e}")
            return 1
        finally:
            self.close()

        self._print_run(run)
        return 0

    def _print_run(self, run: RebalanceRun) -> None:
        portfolio = run.portfolio
        label = portfolio.display_name or portfolio.address
        print(f"Portfolio for {label}:")
        if not portfolio.balances:
            print("  No balances found.")
            print("  Tip: use a wallet with tokens on one of the supported chains")
        for b in portfolio.balances:
            print(f"  {b.chain.name:<12} {b.symbol:<6} {b.formatted}")
        print()

        print(f"Strategy ({len(run.strategy.actions)} actions):")
        print(f"  {run.strategy.reasoning}")
        if not run.strategy.actions:
            print()
            return

        print("-" * 60)
        for i, result in enumerate(run.results, 1):
            a = result.action
            route = f"{a.from_token}@{a.from_chain} -> {a.to_token}@{a.to_chain}"
            print(f"  {i}. {a.kind.value.upper():<6} {a.amount_formatted or a.amount} {route}")
            if result.status == ExecutionStatus.FAILED:
                print(f"     Quote failed: {result.error}")
                continue
            quote = result.quote
            print(f"     Tool:        {quote.tool}")
            print(f"     Est. output: {quote.estimated_output} (min {quote.minimum_output})")
            print(f"     Duration:    ~{quote.execution_duration:.0f}s")
            if quote.fees:
                print(f"     Fees:        {', '.join(f'{f.amount} {f.symbol}' for f in quote.fees)}")
        print("-" * 60)
        print(f"Quoted {run.quoted_count}/{len(run.results)} actions.")

    @staticmethod
    def _format_target(target: Mapping[str, float]) -> str:
        return ", ".join(f"{key} {pct:g}%" for key, pct in target.items())

    def close(self) -> None:
        close = getattr(self._pipeline.provider, "close", None)
        if close is not None:
            close()
