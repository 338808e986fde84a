# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
combat.py — Layer 3: resource-driven conflict between regimes.

Call order each turn:
    maybe_conflict(world, rng, rules, event_log)

A regime short of goods, wages and food (the essentials) is likelier to strike;
high stability restrains it.  A successful strike takes land from a uniformly
random other regime and costs both sides stability and infrastructure.
"""

from __future__ import annotations

import numpy as np

from .config import DEFAULT_RULES, Rules
from .model import Asset, Category, ConflictEvent, Regime, World, clamp

# Essential categories and their weights in the deficit score
ESSENTIALS: tuple[tuple[Category, float], ...] = (
    (Category.G, 1.0),
    (Category.W, 1.0),
    (Category.F, 0.5),
)


def unmet_demand(a: Asset) -> float:
    return max(0.0, a.D - (a.S + 0.3 * a.Inv))


def deficit_score(R: Regime) -> float:
    return sum(w * unmet_demand(R.market[cat]) for cat, w in ESSENTIALS)


def conflict_probability(R: Regime, rules: Rules = DEFAULT_RULES) -> float:
    cr = rules.conflict
    p = (cr.coefDeficit * deficit_score(R)
         + cr.coefCI * (1.0 if R.ci > 0.6 else 0.0)
         - cr.coefPS * R.externals.PS)
    return clamp(p, 0.0, cr.pMax)


def record_conflict(world: World, event: ConflictEvent, log_max: int) -> None:
    """Append to this turn's list and the capped history (oldest trimmed first)."""
    if event.kind == 'conflict':
        world.conflicts.append(event)
    world.conflict_log.append(event)
    if len(world.conflict_log) > log_max:
        del world.conflict_log[:len(world.conflict_log) - log_max]


def _strike(world: World, R: Regime, T: Regime, rules: Rules) -> ConflictEvent:
    cr = rules.conflict
    dLS = min(cr.dLSMaxFrac, cr.dLSFracOfTarget * T.externals.LS)
    R.externals.LS = clamp(R.externals.LS + dLS, 0.01, 1.0)
    T.externals.LS = clamp(T.externals.LS - dLS, 0.01, 1.0)
    R.externals.PS = clamp(R.externals.PS - cr.psLossAttacker, 0.01, 1.0)
    T.externals.PS = clamp(T.externals.PS - cr.psLossDefender, 0.01, 1.0)
    R.market[Category.I].Inv = max(0.1, cr.invHitAttacker * R.market[Category.I].Inv)
    T.market[Category.I].Inv = max(0.1, cr.invHitDefender * T.market[Category.I].Inv)
    T.last_conflict_loss = T.last_conflict_loss + dLS
    R.last_conflict_loss = max(0.0, R.last_conflict_loss * cr.lossDecay)
    world.globals.RA = clamp(world.globals.RA + cr.raBump, -0.5, 1.0)
    return ConflictEvent(at=world.step, from_id=R.id, to_id=T.id, dLS=dLS)


def maybe_conflict(world: World, rng: np.random.Generator,
                   rules: Rules = DEFAULT_RULES, event_log: list | None = None) -> list[ConflictEvent]:
    """Roll a conflict for every regime in list order; returns this turn's events."""
    events: list[ConflictEvent] = []
    for R in world.regimes:
        p = conflict_probability(R, rules)
        if rng.random() < p and len(world.regimes) >= 2:
            targets = [Q for Q in world.regimes if Q.id != R.id]
            T = targets[int(rng.integers(len(targets)))]
            ev = _strike(world, R, T, rules)
            record_conflict(world, ev, rules.conflict.logMax)
            events.append(ev)
            if event_log is not None:
                event_log.append(
                    f"Turn {world.step:04d}: ⚔ CONFLICT — {R.name} seizes "
                    f"{ev.dLS:.3f} land from {T.name}  (p={p:.2f})")
    return events
