"""Concurrent quoting of planned actions."""

import asyncio
from typing import Optional, Sequence

import structlog

from chainhopper.errors import OperationCancelledError
from chainhopper.models import ExecutionResult, ExecutionStatus, RebalanceAction
from chainhopper.quotes.base import QuoteProvider

logger = structlog.get_logger(__name__)

# Routing-service transfer states mapped onto result states
_TERMINAL_STATUS = {
    "DONE": ExecutionStatus.SUCCESS,
    "FAILED": ExecutionStatus.FAILED,
    "INVALID": ExecutionStatus.FAILED,
}


class QuotePipeline:
    """Quotes every action and returns one result per action, in input order.

    A failure on one action is recorded on that action's result and never
    aborts the others.
    """

    def __init__(
        self,
        provider: QuoteProvider,
        max_concurrency: int = 4,
        timeout: Optional[float] = None,
    ):
        self._provider = provider
        self._max_concurrency = max(1, max_concurrency)
        self._timeout = timeout

    @property
    def provider(self) -> QuoteProvider:
        return self._provider

    async def quote_all(
        self, actions: Sequence[RebalanceAction], source_address: str
    ) -> list[ExecutionResult]:
        if not actions:
            return []

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _quote_one(index: int, action: RebalanceAction) -> ExecutionResult:
            async with semaphore:
                try:
                    quote = await asyncio.to_thread(self._provider.quote, action, source_address)
                except Exception as e:
                    logger.warning(
                        "quotes.action_failed",
                        index=index,
                        kind=action.kind.value,
                        from_token=action.from_token,
                        to_token=action.to_token,
                        error=str(e),
                    )
                    return ExecutionResult(
                        action=action, status=ExecutionStatus.FAILED, error=str(e) or type(e).__name__
                    )
            return ExecutionResult(action=action, quote=quote, status=ExecutionStatus.QUOTED)

        tasks = [_quote_one(i, a) for i, a in enumerate(actions)]
        try:
            results = await asyncio.wait_for(asyncio.gather(*tasks), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.error("quotes.timed_out", actions=len(actions), timeout=self._timeout)
            raise OperationCancelledError(
                f"Quoting {len(actions)} actions exceeded {self._timeout}s"
            ) from e

        quoted = sum(1 for r in results if r.status == ExecutionStatus.QUOTED)
        logger.info("quotes.completed", actions=len(actions), quoted=quoted, failed=len(actions) - quoted)
        return list(results)

    def track(self, result: ExecutionResult, tx_hash: str) -> ExecutionResult:
        """Refresh a submitted action's status from the routing service.

        Failed results are returned unchanged.
        """
        if result.status == ExecutionStatus.FAILED:
            return result

        action = result.action
        try:
            info = self._provider.transfer_status(tx_hash, action.from_chain, action.to_chain)
        except Exception as e:
            logger.warning("quotes.status_failed", tx_hash=tx_hash, error=str(e))
            return result.model_copy(update={"tx_hash": tx_hash, "status": ExecutionStatus.PENDING})

        status = _TERMINAL_STATUS.get(str(info.get("status", "")).upper(), ExecutionStatus.PENDING)
        error = None
        if status == ExecutionStatus.FAILED:
            error = info.get("substatus") or info.get("status")

        logger.info("quotes.status", tx_hash=tx_hash, status=status.value, substatus=info.get("substatus"))
        return result.model_copy(update={"tx_hash": tx_hash, "status": status, "error": error})
