# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
governance.py — Layer 6: regime classification with hysteresis.

Two composite scores per regime each turn:

    Order     O — stability, infrastructure, openness, alliances, losses, volatility
    Inclusion I — wealth per capita, civic voice, openness, elite rents, media, losses

(O, I) picks a candidate bucket in fixed precedence order:

    O ≥ hi  & I ≥ hi            → Democratic
    O ≥ hi  & I < hi            → Authoritarian
    O < tribalLo & I < tribalLo → Tribal
    O < anarchicLo & I < …      → aNarchic
    otherwise                   → current type

The bucket's counter is bumped (cap), the other three leak by one (floor 0).
The displayed type only moves to the leading counter once that counter has
reached the per-type minimum in rules.typeMemory.
"""

from __future__ import annotations

import math

from .config import DEFAULT_RULES, Rules
from .economy import volatility
from .model import Category, Regime, RegimeType, World, clamp

# Tie-break order when two counters share the maximum
TYPE_ORDER: tuple[RegimeType, ...] = (
    RegimeType.DEMOCRATIC,
    RegimeType.AUTHORITARIAN,
    RegimeType.TRIBAL,
    RegimeType.ANARCHIC,
)

CIVIC_DEFAULT = 0.4
MEDIA_DEFAULT = 0.3


def elite_rents(R: Regime) -> float:
    if R.elite_rents is not None:
        return R.elite_rents
    return (R.market[Category.F].price + R.market[Category.M].price) / 200


def volatility_z(R: Regime, rules: Rules = DEFAULT_RULES) -> float:
    """Volatility z-score clamped to [-1, 1]; 0 until two turns of returns exist."""
    ow  = rules.orderWeights
    vol = volatility(R)
    if vol is None:
        return 0.0
    return clamp((vol - ow.volMean) / ow.volStd, -1.0, 1.0)


def order_inclusion_scores(R: Regime, world: World,
                           rules: Rules = DEFAULT_RULES) -> tuple[float, float]:
    """Return (O, I), each clamped to [0, 1]."""
    ow, iw = rules.orderWeights, rules.inclusionWeights
    E = R.externals
    loss = clamp(R.last_conflict_loss)
    z = volatility_z(R, rules)

    O = (ow.PS * clamp(E.PS)
         + ow.IInv * clamp(R.market[Category.I].Inv)
         + ow.tradeOpen * clamp(R.trade_open)
         + ow.ally * (1.0 if world.is_allied(R.id) else 0.0)
         + ow.loss * loss
         + ow.vol * z)

    wpc = R.wealth / max(1e-3, R.pop_land)
    civic = CIVIC_DEFAULT if R.civic_voice is None else R.civic_voice
    media = MEDIA_DEFAULT if R.media_control is None else R.media_control
    I = (iw.wpc * clamp(math.log1p(wpc) / math.log(1 + iw.wpcMax))
         + iw.civic * clamp(civic)
         + iw.tradeOpen * clamp(R.trade_open)
         + iw.rents * clamp(elite_rents(R))
         + iw.media * clamp(media)
         + iw.loss * loss)

    return clamp(O), clamp(I)


def candidate_type(O: float, I: float, current: RegimeType,
                   rules: Rules = DEFAULT_RULES) -> RegimeType:
    cb = rules.classifier
    if O >= cb.demHi and I >= cb.demHi:
        return RegimeType.DEMOCRATIC
    if O >= cb.demHi and I < cb.demHi:
        return RegimeType.AUTHORITARIAN
    if O < cb.tribalLo and I < cb.tribalLo:
        return RegimeType.TRIBAL
    if O < cb.anarchicLo and I < cb.anarchicLo:
        return RegimeType.ANARCHIC
    return current


def vote(mem: dict, bucket: RegimeType, cap: int) -> None:
    """Leaky-integrator bump: +1 for *bucket* (≤ cap), −1 for the rest (≥ 0)."""
    for t in TYPE_ORDER:
        if t is bucket:
            mem[t] = min(cap, mem.get(t, 0) + 1)
        else:
            mem[t] = max(0, mem.get(t, 0) - 1)


def leading_type(mem: dict) -> RegimeType:
    return max(TYPE_ORDER, key=lambda t: (mem.get(t, 0), -TYPE_ORDER.index(t)))


def update_regime_type(R: Regime, world: World, rules: Rules = DEFAULT_RULES,
                       event_log: list | None = None) -> RegimeType:
    """Run one FSM step for *R*; recompute ci = 0.6·O + 0.4·I.  Returns the displayed type."""
    O, I = order_inclusion_scores(R, world, rules)
    tm   = rules.typeMemory
    prev = R.type

    vote(R.mem, candidate_type(O, I, prev, rules), tm.cap)
    win = leading_type(R.mem)
    if R.mem[win] >= getattr(tm, win.value):
        R.type = win

    R.ci = 0.6 * O + 0.4 * I
    if R.type is not prev and event_log is not None:
        event_log.append(
            f"Turn {world.step:04d}: 🏛 REGIME SHIFT — {R.name} "
            f"{prev.label} → {R.type.label}  (O={O:.2f} I={I:.2f})")
    return R.type
