"""Deterministic rule-based rebalancing policy."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Union

import structlog

from chainhopper.chains.registry import ChainRegistry
from chainhopper.models import (
    ActionKind,
    Portfolio,
    RebalanceAction,
    RebalanceStrategy,
    TokenBalance,
    format_units,
    parse_units,
)
from chainhopper.rebalancing.allocation import AllocationReport, Bucket, analyze, describe
from chainhopper.rebalancing.base import StrategyGenerator

logger = structlog.get_logger(__name__)

NO_POSITIONS_REASONING = "no actionable positions found"


@dataclass(frozen=True)
class Step:
    """One hop of a route, before amounts are attached."""

    kind: ActionKind
    from_chain: int
    to_chain: int
    from_token: str
    to_token: str


@dataclass
class Surplus:
    bucket: Bucket
    left: Decimal


def balanced_strategy(report: AllocationReport) -> RebalanceStrategy:
    tolerance = f"{report.tolerance:.1f}"
    return RebalanceStrategy(
        actions=(),
        reasoning=(
            f"Portfolio is balanced: every target is within {tolerance} percentage points "
            f"({describe(report)})."
        ),
    )


class RulePolicy(StrategyGenerator):
    """Moves token units from over-allocated buckets to under-allocated ones.

    Deficits are filled largest first. For each fill, the candidate holding
    with the fewest hops wins; among equals, a same-token bridge beats a
    conversion, then the larger available quantity, then registry order.
    The number of actions never exceeds the number of buckets outside the
    tolerance band, an over-full remainder pool included.

    Once deficits are served, a plain-key surplus bucket held on a single
    chain bridges half of what it still holds to the spread chain, if the
    budget has room left.
    """

    def __init__(
        self,
        registry: ChainRegistry,
        tolerance_pct: float = 2.0,
        spread_chain: Optional[Union[int, str]] = "arb",
    ):
        self._registry = registry
        self._tolerance_pct = tolerance_pct
        self._spread_chain = registry.get_chain(spread_chain) if spread_chain is not None else None
        if spread_chain is not None and self._spread_chain is None:
            logger.warning("rules.unknown_spread_chain", spread_chain=spread_chain)

    def generate(self, portfolio: Portfolio, target: Mapping[str, float]) -> RebalanceStrategy:
        if not portfolio.balances:
            return RebalanceStrategy(actions=(), reasoning=NO_POSITIONS_REASONING)

        report = analyze(portfolio, target, self._registry, self._tolerance_pct)
        if report.is_balanced():
            return balanced_strategy(report)

        budget = report.off_target()
        surpluses = self._surpluses(report)
        deficits = sorted(
            (b for b in report.buckets if b.deviation > report.tolerance),
            key=lambda b: (-b.deviation, b.key),
        )
        holding_left: dict[tuple[int, str], Decimal] = {
            (h.chain.id, h.symbol): h.amount for s in surpluses for h in s.bucket.holdings
        }

        actions: list[RebalanceAction] = []
        notes: list[str] = []
        moved = Decimal(0)
        budget_reached = False

        for deficit in deficits:
            need = report.units_for(deficit.deviation)
            while need > 0:
                candidate = self._best_candidate(deficit, surpluses, holding_left)
                if candidate is None:
                    notes.append(f"no route found to fill {deficit.key}")
                    break

                surplus, holding, steps = candidate
                if len(actions) + len(steps) > budget:
                    budget_reached = True
                    break

                key = (holding.chain.id, holding.symbol)
                qty = min(need, surplus.left, holding_left[key])
                hop_actions = self._build_actions(steps, qty)
                if hop_actions is None:
                    # Dust that rounds to zero raw units on some hop
                    holding_left[key] = Decimal(0)
                    continue

                actions.extend(hop_actions)
                need -= qty
                surplus.left -= qty
                holding_left[key] -= qty
                moved += qty

            if budget_reached:
                notes.append(f"action budget of {budget} reached")
                break

        for surplus in surpluses:
            if len(actions) >= budget:
                break
            spread = self._spread(surplus.bucket, holding_left)
            if spread is not None:
                actions.append(spread)
                notes.append(f"spreading {spread.amount_formatted} to {self._spread_chain.name}")

        reasoning = self._reasoning(report, actions, moved, notes)
        logger.info(
            "rules.strategy_generated",
            actions=len(actions),
            budget=budget,
            moved_units=str(moved),
            notes=notes,
        )
        return RebalanceStrategy(actions=tuple(actions), reasoning=reasoning)

    def _surpluses(self, report: AllocationReport) -> list[Surplus]:
        surpluses = [
            Surplus(bucket=b, left=report.units_for(-b.deviation))
            for b in report.buckets
            if b.deviation < -report.tolerance
        ]
        excess = report.remainder_excess()
        if excess > report.tolerance:
            surpluses.append(Surplus(bucket=report.remainder, left=report.units_for(excess)))
        return surpluses

    def _spread(
        self, bucket: Bucket, holding_left: dict[tuple[int, str], Decimal]
    ) -> Optional[RebalanceAction]:
        target = self._spread_chain
        # Plain-key buckets only; the remainder pool has no symbol
        if target is None or bucket.symbol is None or bucket.chain_id is not None:
            return None
        if len(bucket.holdings) != 1:
            return None
        (holding,) = bucket.holdings
        if holding.chain.id == target.id or not self._registry.has_asset(target.id, holding.symbol):
            return None

        key = (holding.chain.id, holding.symbol)
        qty = holding_left[key] / 2
        step = Step(ActionKind.BRIDGE, holding.chain.id, target.id, holding.symbol, holding.symbol)
        built = self._build_actions([step], qty)
        if built is None:
            return None
        holding_left[key] -= qty
        return built[0]

    def _best_candidate(
        self,
        deficit: Bucket,
        surpluses: list[Surplus],
        holding_left: dict[tuple[int, str], Decimal],
    ) -> Optional[tuple[Surplus, TokenBalance, list[Step]]]:
        best = None
        best_rank = None
        for surplus in surpluses:
            if surplus.left <= 0:
                continue
            for holding in surplus.bucket.holdings:
                available = min(surplus.left, holding_left[(holding.chain.id, holding.symbol)])
                if available <= 0:
                    continue
                steps = self.route(holding.chain.id, holding.symbol, deficit.symbol, deficit.chain_id)
                if not steps:
                    continue
                rank = (
                    len(steps),
                    holding.symbol != deficit.symbol,
                    -available,
                    self._registry.position(holding.chain.id),
                    holding.symbol,
                )
                if best_rank is None or rank < best_rank:
                    best, best_rank = (surplus, holding, steps), rank
        return best

    def route(
        self,
        chain_id: int,
        symbol: str,
        want_symbol: str,
        want_chain: Optional[int],
    ) -> Optional[list[Step]]:
        """Cheapest hop sequence turning symbol on chain_id into want_symbol (on want_chain)."""
        has = self._registry.has_asset

        if symbol == want_symbol:
            if want_chain is None or want_chain == chain_id or not has(want_chain, symbol):
                return None
            return [Step(ActionKind.BRIDGE, chain_id, want_chain, symbol, symbol)]

        if want_chain is None or want_chain == chain_id:
            if has(chain_id, want_symbol):
                return [Step(ActionKind.SWAP, chain_id, chain_id, symbol, want_symbol)]
            if want_chain is None:
                for chain in self._registry.chains_with(symbol):
                    if chain.id != chain_id and has(chain.id, want_symbol):
                        return [
                            Step(ActionKind.BRIDGE, chain_id, chain.id, symbol, symbol),
                            Step(ActionKind.SWAP, chain.id, chain.id, symbol, want_symbol),
                        ]
            return None

        # Different token on a different chain: one swap plus one bridge
        if has(chain_id, want_symbol) and has(want_chain, want_symbol):
            return [
                Step(ActionKind.SWAP, chain_id, chain_id, symbol, want_symbol),
                Step(ActionKind.BRIDGE, chain_id, want_chain, want_symbol, want_symbol),
            ]
        if has(want_chain, symbol) and has(want_chain, want_symbol):
            return [
                Step(ActionKind.BRIDGE, chain_id, want_chain, symbol, symbol),
                Step(ActionKind.SWAP, want_chain, want_chain, symbol, want_symbol),
            ]
        return None

    def _build_actions(self, steps: list[Step], qty: Decimal) -> Optional[list[RebalanceAction]]:
        actions = []
        for step in steps:
            asset = self._registry.get_asset(step.from_chain, step.from_token)
            raw = parse_units(qty, asset.decimals)
            if raw <= 0:
                return None
            actions.append(
                RebalanceAction(
                    kind=step.kind,
                    from_chain=step.from_chain,
                    to_chain=step.to_chain,
                    from_token=step.from_token,
                    to_token=step.to_token,
                    amount=str(raw),
                    amount_formatted=f"{format_units(raw, asset.decimals)} {step.from_token}",
                )
            )
        return actions

    def _reasoning(
        self,
        report: AllocationReport,
        actions: list[RebalanceAction],
        moved: Decimal,
        notes: list[str],
    ) -> str:
        text = f"Current vs target: {describe(report)}."
        if actions:
            swaps = sum(1 for a in actions if a.kind == ActionKind.SWAP)
            bridges = len(actions) - swaps
            text += (
                f" Planned {len(actions)} action(s) ({swaps} swap, {bridges} bridge) "
                f"moving {_units(moved)} token units toward target."
            )
        else:
            text += " No executable action found."
        if notes:
            text += " Note: " + "; ".join(notes) + "."
        return text


def _units(value: Decimal) -> str:
    return format(value.normalize(), "f") if value else "0"
