"""Allocation analysis - current vs target shares over token units.

There is no price oracle, so shares are computed over token units: each
balance's raw quantity is scaled by its asset's decimals and summed.
"""

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional

from chainhopper.chains.registry import ChainRegistry
from chainhopper.errors import InvalidInputError
from chainhopper.models import Portfolio, TokenBalance

HUNDRED = Decimal(100)
REMAINDER_KEY = "(unallocated)"


@dataclass(frozen=True)
class TargetKey:
    """A parsed target allocation key: plain symbol or symbol pinned to a chain."""

    label: str
    symbol: str
    chain_id: Optional[int]
    pct: Decimal


@dataclass
class Bucket:
    """The slice of the portfolio governed by one target key."""

    key: str
    symbol: Optional[str]
    chain_id: Optional[int]
    target_pct: Decimal
    holdings: list[TokenBalance] = field(default_factory=list)
    units: Decimal = Decimal(0)
    current_pct: Decimal = Decimal(0)

    @property
    def deviation(self) -> Decimal:
        """Target minus current share, in percentage points."""
        return self.target_pct - self.current_pct


@dataclass
class AllocationReport:
    total_units: Decimal
    tolerance: Decimal
    buckets: list[Bucket]
    remainder: Bucket

    def exceeding(self) -> list[Bucket]:
        """Targeted buckets whose deviation is outside the tolerance band."""
        return [b for b in self.buckets if abs(b.deviation) > self.tolerance]

    def is_balanced(self) -> bool:
        return not self.exceeding()

    def remainder_excess(self) -> Decimal:
        """How far untargeted holdings exceed the unconstrained remainder, in points."""
        return max(Decimal(0), self.remainder.current_pct - self.remainder.target_pct)

    def off_target(self) -> int:
        """Buckets outside tolerance, counting an over-full remainder pool."""
        return len(self.exceeding()) + (1 if self.remainder_excess() > self.tolerance else 0)

    def units_for(self, points: Decimal) -> Decimal:
        return points / HUNDRED * self.total_units


def parse_target(target: Mapping[str, float], registry: ChainRegistry) -> list[TargetKey]:
    """Validate a target allocation and split chain-qualified keys.

    Keys are "SYMBOL" or "SYMBOL@chain" where chain is a registry key or id.
    Percentages must be finite and >= 0; the sum may be below 100.

    Raises:
        InvalidInputError: On a negative or non-numeric percentage, an unknown
            chain qualifier, an asset not tracked on its qualified chain, or a
            symbol targeted both plain and chain-qualified.
    """
    keys: list[TargetKey] = []
    plain: set[str] = set()
    qualified: set[str] = set()
    seen: set[tuple[str, Optional[int]]] = set()

    for label, pct in target.items():
        if isinstance(pct, bool) or not isinstance(pct, (int, float, Decimal)):
            raise InvalidInputError(f"Target percentage for {label!r} is not a number: {pct!r}")
        if not math.isfinite(float(pct)):
            raise InvalidInputError(f"Target percentage for {label!r} must be finite")
        if pct < 0:
            raise InvalidInputError(f"Target percentage for {label!r} must be >= 0, got {pct}")

        symbol, _, chain_ref = label.partition("@")
        symbol = symbol.strip()
        if not symbol:
            raise InvalidInputError(f"Target key {label!r} has no symbol")

        chain_id: Optional[int] = None
        if chain_ref:
            chain = registry.get_chain(chain_ref.strip())
            if chain is None:
                raise InvalidInputError(f"Target key {label!r} names an unsupported chain")
            if not registry.has_asset(chain.id, symbol):
                raise InvalidInputError(f"{symbol} is not tracked on {chain.name} ({label!r})")
            chain_id = chain.id
            qualified.add(symbol)
        else:
            plain.add(symbol)

        if (symbol, chain_id) in seen:
            raise InvalidInputError(f"Target key {label!r} duplicates another key")
        seen.add((symbol, chain_id))

        keys.append(TargetKey(label=label, symbol=symbol, chain_id=chain_id, pct=Decimal(str(pct))))

    mixed = plain & qualified
    if mixed:
        raise InvalidInputError(
            f"Symbols targeted both plain and per-chain: {sorted(mixed)}"
        )

    return keys


def analyze(
    portfolio: Portfolio,
    target: Mapping[str, float],
    registry: ChainRegistry,
    tolerance_pct: float = 2.0,
) -> AllocationReport:
    """Assign holdings to target buckets and compute shares and deviations."""
    keys = parse_target(target, registry)

    buckets = [
        Bucket(key=k.label, symbol=k.symbol, chain_id=k.chain_id, target_pct=k.pct)
        for k in keys
    ]
    by_plain = {b.symbol: b for b in buckets if b.chain_id is None}
    by_chain = {(b.symbol, b.chain_id): b for b in buckets if b.chain_id is not None}

    allocated = sum((k.pct for k in keys), Decimal(0))
    remainder = Bucket(
        key=REMAINDER_KEY,
        symbol=None,
        chain_id=None,
        target_pct=max(Decimal(0), HUNDRED - allocated),
    )

    for balance in portfolio.balances:
        bucket = (
            by_chain.get((balance.symbol, balance.chain.id))
            or by_plain.get(balance.symbol)
            or remainder
        )
        bucket.holdings.append(balance)
        bucket.units += balance.amount

    total = sum((b.units for b in buckets), remainder.units)
    if total > 0:
        for bucket in [*buckets, remainder]:
            bucket.current_pct = bucket.units / total * HUNDRED

    return AllocationReport(
        total_units=total,
        tolerance=Decimal(str(tolerance_pct)),
        buckets=buckets,
        remainder=remainder,
    )


def describe(report: AllocationReport) -> str:
    """One-line summary of current vs target share per bucket."""
    parts = [
        f"{b.key} {_pct(b.current_pct)}% -> {_pct(b.target_pct)}%"
        for b in report.buckets
    ]
    if report.remainder.holdings:
        parts.append(
            f"{REMAINDER_KEY} {_pct(report.remainder.current_pct)}% "
            f"(up to {_pct(report.remainder.target_pct)}%)"
        )
    return ", ".join(parts)


def _pct(value: Decimal) -> str:
    return f"{value:.1f}"
