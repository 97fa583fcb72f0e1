"""On-chain balance reads through web3.py, one client per chain."""

from typing import Callable, TypeVar

import requests
import structlog
from web3 import Web3
from web3.exceptions import Web3Exception

from chainhopper.chains.registry import ChainRegistry
from chainhopper.config import NetworkConfig
from chainhopper.models import is_valid_address
from chainhopper.network import retrying

logger = structlog.get_logger(__name__)

T = TypeVar("T")

ERC20_BALANCE_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    }
]

# web3 raises ValueError for JSON-RPC error responses on some providers
_READ_ERRORS = (Web3Exception, requests.exceptions.RequestException, ValueError)


class RpcError(Exception):
    """Raised when a chain endpoint read fails or returns garbage."""


class ChainRpcClient:
    """Read-only client bound to one chain's Web3 instance.

    The HTTP provider pools one session per calling thread, so a single
    client may be shared by concurrent reads.
    """

    def __init__(self, chain_id: int, web3: Web3, retry_attempts: int = 1):
        self.chain_id = chain_id
        self._web3 = web3
        self._retry_attempts = retry_attempts

    @classmethod
    def from_url(
        cls, chain_id: int, url: str, timeout: float = 15.0, retry_attempts: int = 1
    ) -> "ChainRpcClient":
        # Retries are driven by retry_attempts only, not the provider's own policy
        provider = Web3.HTTPProvider(
            url,
            request_kwargs={"timeout": timeout},
            exception_retry_configuration=None,
        )
        return cls(chain_id, Web3(provider), retry_attempts)

    def get_balance(self, address: str) -> int:
        """Native currency balance in wei."""
        owner = self._checksum(address)
        return int(self._read("eth_getBalance", lambda: self._web3.eth.get_balance(owner)))

    def erc20_balance_of(self, token: str, address: str) -> int:
        """ERC-20 token balance in the token's smallest unit."""
        owner = self._checksum(address)
        contract = self._web3.eth.contract(address=self._checksum(token), abi=ERC20_BALANCE_ABI)
        return int(self._read("balanceOf", lambda: contract.functions.balanceOf(owner).call()))

    def _checksum(self, address: str) -> str:
        if not is_valid_address(address):
            raise RpcError(f"Malformed address: {address!r}")
        return Web3.to_checksum_address(address)

    def _read(self, what: str, call: Callable[[], T]) -> T:
        try:
            for attempt in retrying(self._retry_attempts):
                with attempt:
                    result = call()
        except _READ_ERRORS as e:
            raise RpcError(f"{what} on chain {self.chain_id} failed: {e}") from e
        return result


def build_rpc_clients(network: NetworkConfig, registry: ChainRegistry) -> dict[int, ChainRpcClient]:
    """Create one client per registry chain that has an endpoint configured."""
    clients: dict[int, ChainRpcClient] = {}
    for chain in registry.chains():
        url = network.rpc_url(chain.id)
        if not url:
            logger.warning("rpc.no_endpoint", chain_id=chain.id, chain=chain.name)
            continue
        clients[chain.id] = ChainRpcClient.from_url(
            chain_id=chain.id,
            url=url,
            timeout=network.request_timeout_seconds,
            retry_attempts=network.retry_attempts,
        )

    logger.info("rpc.clients_ready", chains=sorted(clients))
    return clients
