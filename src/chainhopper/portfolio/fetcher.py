"""Single (chain, asset) balance reads."""

from typing import Mapping, Optional

import structlog

from chainhopper.chains.registry import ChainRegistry
from chainhopper.chains.rpc import ChainRpcClient, RpcError
from chainhopper.models import Asset, Chain, TokenBalance, is_valid_address

logger = structlog.get_logger(__name__)


class BalanceFetcher:
    """Reads one balance per call from the chain's injected RPC client.

    Every failure (endpoint error, malformed address, asset unknown on the
    chain, no client for the chain) maps to None. No retries happen here.
    """

    def __init__(self, registry: ChainRegistry, clients: Mapping[int, ChainRpcClient]):
        self._registry = registry
        self._clients = clients

    def fetch(self, chain: Chain, asset: Asset, address: str) -> Optional[TokenBalance]:
        """Return the balance of asset on chain for address, or None if unavailable."""
        if not is_valid_address(address):
            logger.warning("portfolio.fetch_skipped", reason="malformed_address", address=address)
            return None

        if self._registry.get_asset(chain.id, asset.symbol) != asset:
            logger.warning(
                "portfolio.fetch_skipped",
                reason="unknown_asset",
                chain_id=chain.id,
                symbol=asset.symbol,
            )
            return None

        client = self._clients.get(chain.id)
        if client is None:
            logger.warning("portfolio.fetch_skipped", reason="no_client", chain_id=chain.id)
            return None

        try:
            if asset.native:
                raw = client.get_balance(address)
            else:
                raw = client.erc20_balance_of(asset.address, address)
        except RpcError as e:
            logger.warning(
                "portfolio.fetch_failed",
                chain=chain.name,
                symbol=asset.symbol,
                error=str(e),
            )
            return None

        logger.debug("portfolio.fetched", chain=chain.name, symbol=asset.symbol, raw=str(raw))
        return TokenBalance(chain=chain, asset=asset, raw=raw)
