# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
attrition.py — Layer 7: slow structural drift and the collapse filter.

Call order each turn:
    degrade_and_invest(regime, rules)     # every regime, after classification
    collapse_filter(world, rules, event_log)
"""

from __future__ import annotations

from .config import DEFAULT_RULES, Rules
from .model import Category, FallReason, Regime, World, clamp

REASON_STABILITY = "state capacity collapsed (low Stability)"
REASON_WEALTH    = "economic output collapsed (low Wealth)"
REASON_POPLAND   = "population & territory too small"
REASON_SYSTEMIC  = "systemic failure (multiple stresses)"


def degrade_and_invest(R: Regime, rules: Rules = DEFAULT_RULES) -> None:
    dr = rules.degrade
    E  = R.externals
    infra = R.market[Category.I]
    sign  = 1 if E.PS > 0.5 else -1
    infra.Inv = clamp(infra.Inv + dr.iInvStep * sign, 0.1, 3.0)
    E.TA = clamp(E.TA + dr.taOpenK * R.trade_open + dr.taSelfK * E.TA)
    E.PS = clamp(dr.psDecay * E.PS + dr.psMix * dr.psTarget, 0.01, 1.0)


def structural_causes(R: Regime, rules: Rules = DEFAULT_RULES) -> list[str]:
    """Failed survival thresholds in fixed order: stability, wealth, population/land."""
    fr = rules.filters
    causes = []
    if R.externals.PS <= fr.minPS:
        causes.append(REASON_STABILITY)
    if R.wealth <= fr.minWealth:
        causes.append(REASON_WEALTH)
    if R.pop_land <= fr.minPopLand:
        causes.append(REASON_POPLAND)
    return causes


def fall_reason(R: Regime, world: World, rules: Rules = DEFAULT_RULES) -> FallReason:
    causes = structural_causes(R, rules)
    hit = next((e for e in world.conflicts if e.to_id == R.id), None)
    if hit is not None:
        text = f"{causes[0]}; defeated by {hit.from_id}" if causes else f"defeated by {hit.from_id}"
        return FallReason(text, by=hit.from_id)
    return FallReason(causes[0] if causes else REASON_SYSTEMIC)


def collapse_filter(world: World, rules: Rules = DEFAULT_RULES,
                    event_log: list | None = None) -> list[Regime]:
    """Drop regimes that fail any threshold; record why.  Returns the fallen."""
    survivors, fallen = [], []
    for R in world.regimes:
        (fallen if structural_causes(R, rules) else survivors).append(R)
    if not fallen:
        return fallen

    for R in fallen:
        reason = fall_reason(R, world, rules)
        world.fall_reasons[R.id] = reason
        if event_log is not None:
            event_log.append(f"Turn {world.step:04d}: 💀 COLLAPSE — {R.name} falls: {reason.text}")
    world.regimes = survivors
    return fallen
