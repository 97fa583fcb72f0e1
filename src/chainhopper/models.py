"""Domain models for the chainhopper rebalancing system."""

from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def is_valid_address(value: str) -> bool:
    """Check that value is a 0x-prefixed account address.

    Mixed-case input must carry a valid EIP-55 checksum.
    """
    return isinstance(value, str) and value.startswith("0x") and Web3.is_address(value)


def format_units(raw: int, decimals: int) -> str:
    """Render a raw integer quantity as a decimal string without trailing zeros."""
    negative = raw < 0
    whole, frac = divmod(abs(raw), 10**decimals)
    text = str(whole)
    if decimals > 0 and frac:
        text += "." + str(frac).rjust(decimals, "0").rstrip("0")
    return f"-{text}" if negative else text


def parse_units(amount: Decimal, decimals: int) -> int:
    """Convert a token-unit amount to raw smallest units, rounding down."""
    return int((Decimal(amount) * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_FLOOR))


class Chain(BaseModel):
    """A supported blockchain."""

    id: int = Field(gt=0)
    key: str
    name: str

    model_config = {"frozen": True}


class Asset(BaseModel):
    """A fungible asset tracked on one chain (native currency or token contract)."""

    symbol: str
    decimals: int = Field(ge=0, le=36)
    address: str = ZERO_ADDRESS
    native: bool = False

    model_config = {"frozen": True}


class TokenBalance(BaseModel):
    """Quantity of one asset held by an address on one chain."""

    chain: Chain
    asset: Asset
    raw: int = Field(ge=0)
    formatted: str = ""

    @model_validator(mode="after")
    def derive_formatted(self):
        if not self.formatted:
            self.formatted = format_units(self.raw, self.asset.decimals)
        return self

    @property
    def symbol(self) -> str:
        return self.asset.symbol

    @property
    def decimals(self) -> int:
        return self.asset.decimals

    @property
    def amount(self) -> Decimal:
        """Balance in token units."""
        return Decimal(self.raw) / (Decimal(10) ** self.asset.decimals)


class Portfolio(BaseModel):
    """Snapshot of an address's non-zero holdings across all supported chains."""

    address: str
    display_name: Optional[str] = None
    balances: list[TokenBalance] = Field(default_factory=list)
    total_value_usd: float = 0.0  # no price oracle

    @model_validator(mode="after")
    def unique_pairs(self):
        seen: set[tuple[int, str]] = set()
        for balance in self.balances:
            pair = (balance.chain.id, balance.symbol)
            if pair in seen:
                raise ValueError(
                    f"Duplicate balance for {balance.symbol} on chain {balance.chain.id}"
                )
            seen.add(pair)
        return self


# Target key ("USDC" or "USDC@arb") -> percentage of the portfolio
TargetAllocation = dict[str, float]


class ActionKind(str, Enum):
    SWAP = "swap"
    BRIDGE = "bridge"


class RebalanceAction(BaseModel):
    """A single swap or bridge moving value toward the target allocation."""

    kind: ActionKind = Field(alias="type")
    from_chain: int = Field(alias="fromChain")
    to_chain: int = Field(alias="toChain")
    from_token: str = Field(alias="fromToken")
    to_token: str = Field(alias="toToken")
    amount: str  # raw integer string in the source asset's smallest unit
    amount_formatted: str = Field(default="", alias="amountFormatted")

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_string(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class RebalanceStrategy(BaseModel):
    """Ordered actions plus a human-readable rationale."""

    actions: tuple[RebalanceAction, ...] = ()
    reasoning: str

    model_config = {"frozen": True}


class FeeKind(str, Enum):
    FEE = "fee"
    GAS = "gas"


class Fee(BaseModel):
    kind: FeeKind
    amount: str
    symbol: str


class TransactionRequest(BaseModel):
    """Ready-to-sign transaction data returned by the routing service."""

    to: str
    data: str
    value: str = "0"
    gas_limit: Optional[str] = None
    chain_id: int


class Quote(BaseModel):
    """Routing service estimate for executing one action."""

    id: str = ""
    tool: str = ""
    type: str = ""
    from_amount: str = "0"
    estimated_output: str = "0"
    minimum_output: str = "0"
    execution_duration: float = 0.0
    fees: list[Fee] = Field(default_factory=list)
    transaction_request: Optional[TransactionRequest] = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)


class ExecutionStatus(str, Enum):
    QUOTED = "quoted"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ExecutionResult(BaseModel):
    """Outcome of quoting (and optionally tracking) one planned action."""

    action: RebalanceAction
    quote: Optional[Quote] = None
    status: ExecutionStatus
    tx_hash: Optional[str] = None
    error: Optional[str] = None


class RebalanceRun(BaseModel):
    """Everything one run produces for presentation layers."""

    portfolio: Portfolio
    strategy: RebalanceStrategy
    results: list[ExecutionResult] = Field(default_factory=list)

    @property
    def quoted_count(self) -> int:
        return sum(1 for r in self.results if r.status == ExecutionStatus.QUOTED)
