"""LI.FI routing API client."""

import threading
from typing import Any, Optional

import requests
import structlog

from chainhopper.config import AppConfig, Secrets
from chainhopper.logging_config import get_quote_logger
from chainhopper.models import Fee, FeeKind, Quote, RebalanceAction, TransactionRequest
from chainhopper.network import build_session, retrying
from chainhopper.quotes.base import QuoteError, QuoteProvider

logger = structlog.get_logger(__name__)


class LiFiQuoteProvider(QuoteProvider):
    """Requests swap/bridge quotes and transfer status from LI.FI.

    The quote pipeline calls in from worker threads, so each thread gets its
    own HTTP session.
    """

    def __init__(self, config: AppConfig, secrets: Secrets):
        self._config = config.lifi
        self._base_url = config.lifi.base_url.rstrip("/")
        self._timeout = config.network.request_timeout_seconds
        self._retry_attempts = config.network.retry_attempts
        self._api_key = secrets.lifi_api_key
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self._quote_log = get_quote_logger()

    @property
    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = build_session()
            if self._api_key:
                session.headers["x-lifi-api-key"] = self._api_key
            with self._sessions_lock:
                self._sessions.append(session)
            self._local.session = session
        return session

    @_session.setter
    def _session(self, session: requests.Session) -> None:
        self._local.session = session

    def quote(self, action: RebalanceAction, from_address: str) -> Quote:
        params = {
            "fromChain": str(action.from_chain),
            "toChain": str(action.to_chain),
            "fromToken": action.from_token,
            "toToken": action.to_token,
            "fromAmount": action.amount,
            "fromAddress": from_address,
        }
        if self._config.integrator:
            params["integrator"] = self._config.integrator
        if self._config.slippage is not None:
            params["slippage"] = str(self._config.slippage)

        logger.debug(
            "lifi.quote_requested",
            route=f"{action.from_token}@{action.from_chain} -> {action.to_token}@{action.to_chain}",
            amount=action.amount_formatted,
        )

        data = self._get("/quote", params)
        quote = self._parse_quote(data)

        self._quote_log.info(
            "quote.received",
            kind=action.kind.value,
            from_chain=action.from_chain,
            to_chain=action.to_chain,
            from_token=action.from_token,
            to_token=action.to_token,
            amount=action.amount,
            tool=quote.tool,
            estimated_output=quote.estimated_output,
            minimum_output=quote.minimum_output,
            execution_duration=quote.execution_duration,
            fees=[f"{f.amount} {f.symbol}" for f in quote.fees],
            has_transaction=quote.transaction_request is not None,
        )
        return quote

    def transfer_status(
        self,
        tx_hash: str,
        from_chain: Optional[int] = None,
        to_chain: Optional[int] = None,
    ) -> dict:
        params = {"txHash": tx_hash}
        if from_chain:
            params["fromChain"] = str(from_chain)
        if to_chain:
            params["toChain"] = str(to_chain)
        data = self._get("/status", params)
        return {"status": data.get("status", "NOT_FOUND"), "substatus": data.get("substatus")}

    def supported_chains(self) -> list[dict]:
        data = self._get("/chains", {})
        return [
            {"id": c.get("id"), "key": c.get("key"), "name": c.get("name")}
            for c in data.get("chains", [])
        ]

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self._base_url}{path}"
        try:
            for attempt in retrying(self._retry_attempts):
                with attempt:
                    response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.exceptions.RequestException as e:
            logger.error("lifi.request_failed", path=path, error=str(e))
            raise QuoteError(f"LI.FI request to {path} failed: {e}") from e

        if not response.ok:
            logger.error("lifi.api_error", path=path, status=response.status_code, body=response.text[:500])
            raise QuoteError(
                f"LI.FI API error: {response.status_code} {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise QuoteError(f"LI.FI returned non-JSON response for {path}") from e
        if not isinstance(data, dict):
            raise QuoteError(f"LI.FI returned unexpected payload for {path}")
        return data

    def _parse_quote(self, data: dict[str, Any]) -> Quote:
        """Convert the LI.FI quote payload to our domain model."""
        estimate = data.get("estimate") or {}
        action = data.get("action") or {}

        fees = [
            Fee(kind=FeeKind.FEE, amount=str(f.get("amount", "0")), symbol=(f.get("token") or {}).get("symbol", ""))
            for f in estimate.get("feeCosts") or []
        ]
        fees += [
            Fee(kind=FeeKind.GAS, amount=str(g.get("amount", "0")), symbol=(g.get("token") or {}).get("symbol", ""))
            for g in estimate.get("gasCosts") or []
        ]

        tx = data.get("transactionRequest")
        transaction_request = None
        if tx:
            transaction_request = TransactionRequest(
                to=tx.get("to", ""),
                data=tx.get("data", "0x"),
                value=str(tx.get("value", "0")),
                gas_limit=str(tx["gasLimit"]) if tx.get("gasLimit") is not None else None,
                chain_id=int(tx.get("chainId") or action.get("fromChainId") or 0),
            )

        return Quote(
            id=str(data.get("id", "")),
            tool=str(data.get("tool", "")),
            type=str(data.get("type", "")),
            from_amount=str(estimate.get("fromAmount") or action.get("fromAmount") or "0"),
            estimated_output=str(estimate.get("toAmount", "0")),
            minimum_output=str(estimate.get("toAmountMin", "0")),
            execution_duration=float(estimate.get("executionDuration") or 0),
            fees=fees,
            transaction_request=transaction_request,
            raw=data,
        )

    def close(self) -> None:
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()
