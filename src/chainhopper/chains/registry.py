"""Static table of supported chains and the assets tracked on each."""

from types import MappingProxyType
from typing import Iterable, Optional, Union

from chainhopper.config import ChainConfig
from chainhopper.models import ZERO_ADDRESS, Asset, Chain

DEFAULT_CHAINS: tuple[ChainConfig, ...] = (
    ChainConfig(
        id=1,
        key="eth",
        name="Ethereum",
        tokens=[
            {"symbol": "USDC", "address": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "decimals": 6},
            {"symbol": "USDT", "address": "0xdAC17F958D2ee523a2206206994597C13D831ec7", "decimals": 6},
            {"symbol": "WETH", "address": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "decimals": 18},
        ],
    ),
    ChainConfig(
        id=42161,
        key="arb",
        name="Arbitrum",
        tokens=[
            {"symbol": "USDC", "address": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831", "decimals": 6},
            {"symbol": "USDT", "address": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9", "decimals": 6},
            {"symbol": "WETH", "address": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", "decimals": 18},
        ],
    ),
    ChainConfig(
        id=8453,
        key="bas",
        name="Base",
        tokens=[
            {"symbol": "USDC", "address": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "decimals": 6},
            {"symbol": "WETH", "address": "0x4200000000000000000000000000000000000006", "decimals": 18},
        ],
    ),
    ChainConfig(
        id=10,
        key="opt",
        name="Optimism",
        tokens=[
            {"symbol": "USDC", "address": "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85", "decimals": 6},
            {"symbol": "WETH", "address": "0x4200000000000000000000000000000000000006", "decimals": 18},
        ],
    ),
)


class ChainRegistry:
    """Read-only registry of chains and their tracked assets.

    Fully built in the constructor and never mutated afterwards, so it can be
    shared between concurrent fetches without locking. Iteration order is the
    order chains and tokens were declared, native asset first on each chain.
    """

    def __init__(self, entries: Iterable[ChainConfig] = DEFAULT_CHAINS):
        chains: list[Chain] = []
        assets: dict[int, tuple[Asset, ...]] = {}

        for entry in entries:
            if entry.id in assets:
                raise ValueError(f"Duplicate chain id in registry: {entry.id}")
            chain = Chain(id=entry.id, key=entry.key, name=entry.name)
            native = Asset(
                symbol=entry.native_symbol,
                decimals=entry.native_decimals,
                address=ZERO_ADDRESS,
                native=True,
            )
            tokens = [
                Asset(symbol=t.symbol, decimals=t.decimals, address=t.address)
                for t in entry.tokens
            ]
            symbols = [native.symbol] + [t.symbol for t in tokens]
            if len(set(symbols)) != len(symbols):
                raise ValueError(f"Duplicate asset symbol on chain {entry.id}: {symbols}")

            chains.append(chain)
            assets[chain.id] = (native, *tokens)

        self._chains: tuple[Chain, ...] = tuple(chains)
        self._assets = MappingProxyType(assets)
        self._by_key = MappingProxyType({c.key: c for c in chains})
        self._by_id = MappingProxyType({c.id: c for c in chains})

    @classmethod
    def from_config(cls, entries: Optional[list[ChainConfig]]) -> "ChainRegistry":
        """Build from the `chains` config section, falling back to the default table."""
        return cls(entries) if entries else cls()

    def chains(self) -> tuple[Chain, ...]:
        return self._chains

    def get_chain(self, ref: Union[int, str]) -> Optional[Chain]:
        """Look up a chain by numeric id, numeric string, or short key."""
        if isinstance(ref, int):
            return self._by_id.get(ref)
        if ref.isdigit():
            return self._by_id.get(int(ref))
        return self._by_key.get(ref.lower())

    def position(self, chain_id: int) -> int:
        """Index of the chain in registry order (len(chains) when unknown)."""
        for index, chain in enumerate(self._chains):
            if chain.id == chain_id:
                return index
        return len(self._chains)

    def assets(self, chain_id: int) -> tuple[Asset, ...]:
        return self._assets.get(chain_id, ())

    def get_asset(self, chain_id: int, symbol: str) -> Optional[Asset]:
        for asset in self.assets(chain_id):
            if asset.symbol == symbol:
                return asset
        return None

    def has_asset(self, chain_id: int, symbol: str) -> bool:
        return self.get_asset(chain_id, symbol) is not None

    def chains_with(self, symbol: str) -> list[Chain]:
        """Chains on which symbol is tracked, in registry order."""
        return [c for c in self._chains if self.has_asset(c.id, symbol)]

    def pairs(self) -> list[tuple[Chain, Asset]]:
        """Every (chain, asset) pair in deterministic fetch order."""
        return [(chain, asset) for chain in self._chains for asset in self._assets[chain.id]]
