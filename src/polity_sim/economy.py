# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
economy.py — Layer 2: local markets, prices, wealth, trade clearing.

Call order each turn:
    local_market_update(regime, globals, rng)      # every regime
    ...
    run_trade(world, rules, event_log)             # after conflicts

Prices follow one step of geometric Brownian motion per turn; the normal draw
comes from a Box–Muller transform over the injected generator so a seeded run
replays bit-for-bit.
"""

from __future__ import annotations

import math

import numpy as np

from .config import DEFAULT_RULES, Rules
from .model import (CATS, TRADABLE, Asset, Category, Globals, Regime,
                    TradeRecord, World, clamp, is_cap_like, is_perishable)

RETURNS_WINDOW   = 12      # turns of per-category log returns kept for the volatility z-score
LAST_TRADES_MAX  = 5
_TRADE_EPS       = 1e-6


# ══════════════════════════════════════════════════════════════════════════
# Price process
# ══════════════════════════════════════════════════════════════════════════

def box_muller(rng: np.random.Generator) -> float:
    """One standard normal draw from two uniforms."""
    u = 1.0 - rng.random()          # (0, 1] keeps log() finite
    v = rng.random()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def next_price_gbm(a: Asset, g: Globals, dt: float, rng: np.random.Generator) -> float:
    mu    = a.ER - a.Rk
    sigma = a.V * g.volMul
    dW    = box_muller(rng) * math.sqrt(max(1e-6, dt))
    drift = (mu - 0.5 * sigma * sigma) * dt
    return clamp(a.price * math.exp(drift + sigma * dW), 0.01, 1.0e6)


def time_step(g: Globals) -> float:
    """GBM Δt in years: max(0.25, turnYears) split over the turn's substeps."""
    k = max(1, int(g.substeps or 1))
    return max(0.25, float(g.turnYears or 1.0)) / k


# ── Per-category shocks ────────────────────────────────────────────────────

def _demand_shock(cat: Category, g: Globals, PS: float) -> float:
    if   cat is Category.S:  return 0.3 * g.GG - 0.3 * g.RA
    elif cat is Category.B:  return -0.3 * g.IR - 0.2 * g.RA
    elif cat is Category.RE: return 0.2 * g.GG - 0.2 * g.IR
    elif cat is Category.F:  return 0.2 * g.GG + 0.4 * g.ES
    elif cat is Category.G:  return 0.1 * g.GG - 0.3 * g.CS
    elif cat is Category.W:  return -0.4 * g.CS
    elif cat is Category.T:  return 0.4 * g.TS
    elif cat is Category.C:  return 0.2 * g.RA + 0.2 * (1 - PS)
    return 0.1 * g.GG


def _supply_shock(cat: Category, R: Regime, g: Globals) -> float:
    E, en = R.externals, R.endow
    if   cat is Category.F: return 0.3 * en.fuel - 0.3 * g.ES
    elif cat is Category.M: return 0.3 * en.mineral
    elif cat is Category.G: return 0.3 * en.arable - 0.3 * g.CS
    elif cat is Category.W: return 0.3 * en.water - 0.3 * g.CS
    elif cat is Category.T: return 0.3 * E.TA + 0.2 * g.TS
    return 0.1 * E.EA


def _expected_return(cat: Category, g: Globals, PS: float) -> float:
    if cat is Category.B:
        return clamp(0.03 - g.IR - 0.01 * (1 - PS), -0.1, 0.1)
    if cat is Category.S:
        return clamp(0.05 + 0.02 * g.GG - 0.02 * g.RA, -0.2, 0.3)
    if cat is Category.RE:
        return clamp(0.03 + 0.01 * g.GG - 0.02 * g.IR, -0.1, 0.2)
    if cat is Category.C:
        return clamp(-0.01 + 0.5 * g.IR, -0.05, 0.05)
    return clamp(0.02 + 0.01 * g.GG, -0.1, 0.2)


# ══════════════════════════════════════════════════════════════════════════
# Local market update
# ══════════════════════════════════════════════════════════════════════════

def local_market_update(R: Regime, g: Globals, rng: np.random.Generator) -> None:
    """Shock S/D, move prices, recalibrate ER and inventory, then update wealth."""
    E  = R.externals
    dt = time_step(g)
    log_returns: list[float] = []

    for cat, a in R.market.items():
        a.D = clamp(a.D + 0.2 * _demand_shock(cat, g, E.PS), 0.05, 2.0)
        a.S = clamp(a.S + 0.15 * _supply_shock(cat, R, g), 0.05, 2.5)

        old_price = a.price
        a.price   = next_price_gbm(a, g, dt, rng)
        log_returns.append(math.log(a.price / old_price))

        a.ER = _expected_return(cat, g, E.PS)

        if is_cap_like(cat):
            a.Inv = clamp(a.Inv + 0.02 * (E.EA + E.PS - 1.0), 0.1, 3.0)
        else:
            net   = a.Prod + 0.2 * a.S - 0.2 * a.D
            decay = 0.1 if is_perishable(cat) else 0.02
            a.Inv = clamp(a.Inv + 0.1 * net - decay * a.Inv, 0.01, 2.0)

    R.returns.append(log_returns)
    del R.returns[:-RETURNS_WINDOW]

    out = sum(min(a.S + 0.2 * a.Inv, a.D) * a.price for a in R.market.values())
    R.wealth = clamp(0.7 * R.wealth + 0.3 * (out / len(CATS)), 0.05, 5.0)


def volatility(R: Regime) -> float | None:
    """Mean over categories of each category's return std; None below two turns of history."""
    if len(R.returns) < 2:
        return None
    return float(np.mean(np.std(np.asarray(R.returns, dtype=float), axis=0)))


# ══════════════════════════════════════════════════════════════════════════
# Trade clearing
# ══════════════════════════════════════════════════════════════════════════

def trade_gap(a: Asset) -> float:
    return (a.S + 0.3 * a.Inv) - a.D


def _settle(cat: Category, seller: Regime, buyer: Regime, vol: float,
            rules: Rules) -> TradeRecord:
    tr   = rules.trade
    sa, ba = seller.market[cat], buyer.market[cat]
    cost = 0.5 * (sa.tau + ba.tau)
    sE, bE = seller.externals, buyer.externals

    sa.Inv = max(0.01, sa.Inv - 0.2 * vol)
    ba.Inv = clamp(ba.Inv + 0.2 * vol, 0.01, 2.5)
    sE.EA  = clamp(sE.EA + tr.eaFrom * vol - 0.005 * cost, 0.05, 1.0)
    bE.EA  = clamp(bE.EA + tr.eaTo * vol - 0.003 * cost, 0.05, 1.0)
    sE.PS  = clamp(sE.PS + tr.psFrom * vol, 0.01, 1.0)
    bE.PS  = clamp(bE.PS + tr.psTo * vol, 0.01, 1.0)
    seller.trade_open = clamp(seller.trade_open + tr.openFrom * vol)
    buyer.trade_open  = clamp(buyer.trade_open + tr.openTo * vol)
    if cat is Category.T:
        bE.TA = clamp(bE.TA + tr.tTechGain * vol)
    return TradeRecord(cat, seller.id, buyer.id, vol)


def clear_category(cat: Category, regimes: list, rules: Rules = DEFAULT_RULES) -> list[TradeRecord]:
    """Greedy surplus/deficit matching for a single tradable category.

    Both sides are sorted by gap, largest first.  Each matched pair trades
    ``min(gaps) × volFrac`` once; both remaining gaps shrink by the traded
    volume and the side with the smaller remaining gap moves on.
    """
    tr = rules.trade
    sur: list[list] = []
    dfc: list[list] = []
    for R in regimes:
        gap = trade_gap(R.market[cat])
        if gap > tr.gapThresh:
            sur.append([R, gap])
        elif gap < -tr.gapThresh:
            dfc.append([R, -gap])
    sur.sort(key=lambda x: x[1], reverse=True)
    dfc.sort(key=lambda x: x[1], reverse=True)

    records: list[TradeRecord] = []
    i = j = guard = 0
    while i < len(sur) and j < len(dfc) and guard < tr.guard:
        guard += 1
        s, d = sur[i], dfc[j]
        vol = min(s[1], d[1]) * tr.volFrac
        if vol > _TRADE_EPS and s[0] is not d[0]:
            records.append(_settle(cat, s[0], d[0], vol, rules))
            s[1] -= vol
            d[1] -= vol
        if s[1] <= d[1]:
            i += 1
        else:
            j += 1
    return records


def run_trade(world: World, rules: Rules = DEFAULT_RULES,
              event_log: list | None = None) -> list[TradeRecord]:
    """Clear every tradable category; refresh each regime's lastTrades."""
    pairs: list[TradeRecord] = []
    for cat in TRADABLE:
        pairs.extend(clear_category(cat, world.regimes, rules))

    for R in world.regimes:
        mine = [p for p in pairs if p.involves(R.id)]
        R.last_trades = mine[-LAST_TRADES_MAX:]

    if event_log is not None and pairs:
        names = {R.id: R.name for R in world.regimes}
        for p in pairs:
            event_log.append(
                f"Turn {world.step:04d}: 🤝 Trade: {names.get(p.from_id, p.from_id)} → "
                f"{names.get(p.to_id, p.to_id)}  {p.vol:.3f} {p.cat.value}")
    return pairs
