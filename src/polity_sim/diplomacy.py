# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
diplomacy.py — Layer 4: alliances born from trade.

Call order each turn (after run_trade):
    maybe_alliance(world, rng, rules, event_log)

Only regimes that traded with each other this turn may ally.  Alliances are
keyed by frozenset({id_a, id_b}) so an unordered pair can never be stored
twice, and they never dissolve here.
"""

from __future__ import annotations

from itertools import combinations

import numpy as np

from .config import DEFAULT_RULES, Rules
from .model import Regime, World, alliance_key, clamp


def traded_together(a: Regime, b: Regime) -> bool:
    return (any(t.involves(b.id) for t in a.last_trades)
            and any(t.involves(a.id) for t in b.last_trades))


def alliance_probability(a: Regime, b: Regime, rules: Rules = DEFAULT_RULES) -> float:
    if not traded_together(a, b):
        return 0.0
    ar = rules.alliance
    return clamp(ar.base * (1 - ar.ciWeight * (a.ci + b.ci)))


def form_alliance(world: World, a: Regime, b: Regime, rules: Rules = DEFAULT_RULES) -> bool:
    """Add the pair and apply friction/stability effects.  False if already allied."""
    key = alliance_key(a.id, b.id)
    if a.id == b.id or key in world.alliances:
        return False
    ar = rules.alliance
    world.alliances.add(key)
    for R in (a, b):
        for asset in R.market.values():
            asset.tau = max(ar.tauMin, asset.tau - ar.tauDelta)
        R.externals.PS = clamp(R.externals.PS + ar.psBump)
    return True


def maybe_alliance(world: World, rng: np.random.Generator,
                   rules: Rules = DEFAULT_RULES, event_log: list | None = None) -> int:
    formed = 0
    for a, b in combinations(world.regimes, 2):
        if alliance_key(a.id, b.id) in world.alliances:
            continue
        p = alliance_probability(a, b, rules)
        if p > 0 and rng.random() < p and form_alliance(world, a, b, rules):
            formed += 1
            if event_log is not None:
                event_log.append(
                    f"Turn {world.step:04d}: 🤝 ALLIANCE — {a.name} & {b.name} "
                    f"bind their markets")
    return formed
