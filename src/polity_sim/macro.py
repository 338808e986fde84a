# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
macro.py — Layer 1: global macro signals.

Each turn the six world-wide shocks (growth, interest rate, risk aversion,
energy / tech / climate) take one mean-reverting step:

    new = rho·old + (1 − rho)·target + sigma·shockMul·U(−0.5, 0.5)

and are clamped to [lo, hi] from rules.signals.
"""

from __future__ import annotations

import numpy as np

from .config import DEFAULT_RULES, DIFFICULTY, Rules
from .model import Globals, clamp


def jitter(x: float, target: float, sigma: float, rho: float,
           rng: np.random.Generator) -> float:
    return rho * x + (1 - rho) * target + sigma * (rng.random() - 0.5)


def tick_globals(g: Globals, rng: np.random.Generator,
                 rules: Rules = DEFAULT_RULES) -> Globals:
    """Advance every macro signal one turn in place."""
    mul = g.shockMul if g.shockMul is not None else 1.0
    for name, s in rules.signals.items():
        value = jitter(getattr(g, name), s.target, s.sigma * mul, s.rho, rng)
        setattr(g, name, clamp(value, s.lo, s.hi))
    return g


def apply_difficulty(g: Globals, name: str) -> Globals:
    """Overwrite the pacing fields of *g* with a DIFFICULTY preset (MIN or MAX)."""
    key = str(name).upper()
    if key not in DIFFICULTY:
        raise ValueError(f"unknown difficulty {name!r} (expected one of {sorted(DIFFICULTY)})")
    for field_name, value in DIFFICULTY[key].items():
        setattr(g, field_name, type(getattr(g, field_name))(value))
    g.difficulty = key
    return g
