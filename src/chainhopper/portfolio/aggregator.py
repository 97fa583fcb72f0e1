"""Concurrent fan-out of balance reads into one Portfolio snapshot."""

import asyncio
from typing import Optional

import structlog

from chainhopper.chains.registry import ChainRegistry
from chainhopper.errors import InvalidInputError, OperationCancelledError
from chainhopper.models import Portfolio, TokenBalance, is_valid_address
from chainhopper.portfolio.fetcher import BalanceFetcher

logger = structlog.get_logger(__name__)


class PortfolioAggregator:
    """Collects every tracked balance for an address across all chains.

    One concurrent unit is spawned per registry (chain, asset) pair. Each
    result is stored at its pair's registry position, so the snapshot order
    is registry order no matter which read finishes first. Individual read
    failures are omitted from the snapshot; they never fail the batch.
    """

    def __init__(
        self,
        registry: ChainRegistry,
        fetcher: BalanceFetcher,
        timeout: Optional[float] = None,
    ):
        self._registry = registry
        self._fetcher = fetcher
        self._timeout = timeout

    async def aggregate(self, address: str, display_name: Optional[str] = None) -> Portfolio:
        """Build a Portfolio of non-zero balances.

        Raises:
            InvalidInputError: If address is not a well-formed account address.
            OperationCancelledError: If the configured timeout elapses first.
        """
        if not is_valid_address(address):
            raise InvalidInputError(f"Invalid wallet address: {address!r}")

        pairs = self._registry.pairs()
        logger.info(
            "portfolio.aggregating",
            address=address,
            display_name=display_name,
            pairs=len(pairs),
            chains=len(self._registry.chains()),
        )

        tasks = [
            asyncio.to_thread(self._fetcher.fetch, chain, asset, address)
            for chain, asset in pairs
        ]

        try:
            results = await asyncio.wait_for(
                asyncio.gather(*tasks, return_exceptions=True),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("portfolio.aggregation_timeout", address=address, timeout=self._timeout)
            raise OperationCancelledError(
                f"Portfolio aggregation timed out after {self._timeout}s"
            ) from e

        # gather keeps task order, so results[i] belongs to pairs[i]
        slots: list[Optional[TokenBalance]] = [None] * len(pairs)
        unavailable = 0
        for index, result in enumerate(results):
            if isinstance(result, BaseException):
                chain, asset = pairs[index]
                logger.warning(
                    "portfolio.fetch_failed",
                    chain=chain.name,
                    symbol=asset.symbol,
                    error=str(result),
                )
                unavailable += 1
            elif result is None:
                unavailable += 1
            else:
                slots[index] = result

        balances = [b for b in slots if b is not None and b.raw > 0]

        logger.info(
            "portfolio.aggregated",
            address=address,
            requested=len(pairs),
            unavailable=unavailable,
            non_zero=len(balances),
        )

        return Portfolio(address=address, display_name=display_name, balances=balances)
