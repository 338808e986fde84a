# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
world.py — Layer 0: procedural world generation.

Runs at world creation only (and when a spawn collaborator asks for extra
regimes).  Builds land, population, endowments, externals and a full
10-category market for every regime.

Public API
──────────
    create_world(regime_count, rng, rules)            → World
    generate_regimes(n, globals, rng, rules)          → [Regime]
    spawn_regimes(world, count, rng, rules, event_log) → [Regime]
    enforce_seats(world, rng, rules, event_log)       → [Regime]   (top-up to minSeats)
    seed_asset(cat, externals, endow, globals, rng)   → Asset
    type_from_ci(ci, bands)                           → RegimeType
    regime_from_dict(data, globals, rng, rules)       → Regime     (self-healing)
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import fields

import numpy as np

from .config import DEFAULT_RULES, AssetBounds, Rules
from .model import (CATS, Asset, Category, Endowment, Externals, Globals,
                    Market, Regime, RegimeType, TradeRecord, World, clamp,
                    empty_memory, is_cap_like, is_perishable)

# ── Dirichlet concentrations ───────────────────────────────────────────────
ALPHA_LAND    = 0.8
ALPHA_POP     = 1.3
ALPHA_FUEL    = 0.9
ALPHA_MINERAL = 1.0
ALPHA_ARABLE  = 1.1
ALPHA_WATER   = 1.0

# Endowment += weight · land share
_ENDOW_LAND_MIX = {'fuel': 0.2, 'mineral': 0.1, 'arable': 0.3, 'water': 0.1}

# (liquidity, volatility) per category; unlisted → (0.5, 0.25)
_LIQ_VOL: dict[Category, tuple[float, float]] = {
    Category.C:  (0.95, 0.05),
    Category.S:  (0.70, 0.40),
    Category.B:  (0.70, 0.25),
    Category.RE: (0.20, 0.25),
    Category.I:  (0.20, 0.25),
    Category.F:  (0.50, 0.40),
    Category.G:  (0.50, 0.40),
}


def _b64u(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode('ascii').rstrip('=')


def _short_id(text: str) -> str:
    return _b64u(hashlib.sha256(text.encode('utf-8')).digest())[:6]


def _unique_id(seed_text: str, taken: set) -> str:
    rid, attempt = _short_id(seed_text), 0
    while rid in taken:
        attempt += 1
        rid = _short_id(f"{seed_text}#{attempt}")
    taken.add(rid)
    return rid


def dirichlet(rng: np.random.Generator, k: int, alpha: float) -> list[float]:
    return [float(v) for v in rng.dirichlet(np.full(k, alpha))]


# ══════════════════════════════════════════════════════════════════════════
# Asset seeding
# ══════════════════════════════════════════════════════════════════════════

def _seed_supply(cat: Category, E: Externals, en: Endowment) -> float | None:
    if   cat is Category.RE: return 0.5 * E.LS + 0.2 * E.EA + 0.1
    elif cat is Category.S:  return 0.3 * E.EA + 0.3 * E.TA + 0.2
    elif cat is Category.B:  return 0.4 * E.PS + 0.2 * E.EA + 0.1
    elif cat is Category.C:  return 0.5 + 0.3 * E.PS
    elif cat is Category.F:  return 0.4 * en.fuel + 0.2 * E.EA
    elif cat is Category.M:  return 0.4 * en.mineral + 0.2 * E.EA
    elif cat is Category.G:  return 0.5 * en.arable + 0.2 * E.LS
    elif cat is Category.W:  return 0.4 * en.water + 0.2 * E.LS
    elif cat is Category.T:  return 0.3 * E.TA + 0.1 * E.EA
    elif cat is Category.I:  return 0.3 * E.EA + 0.2 * E.PS
    return None


def _seed_demand(cat: Category, E: Externals, g: Globals) -> float | None:
    if   cat is Category.RE: return 0.5 * E.PD + 0.3 * E.EA + 0.2
    elif cat is Category.S:  return 0.4 * E.EA + 0.2 * E.TA + 0.2
    elif cat is Category.B:  return 0.3 * (1 - E.PS) + 0.2 * E.EA
    elif cat is Category.C:  return 0.3 + 0.2 * (g.RA + 0.5) + 0.2 * (1 - E.PS)
    elif cat is Category.F:  return 0.4 * E.EA + 0.1
    elif cat is Category.M:  return 0.3 * E.EA + 0.1 * E.TA
    elif cat is Category.G:  return 0.4 * (E.PD * E.LS) + 0.2
    elif cat is Category.W:  return 0.4 * (E.PD * E.LS) + 0.1
    elif cat is Category.T:  return 0.4 * E.TA + 0.2 * E.EA
    elif cat is Category.I:  return 0.2 + 0.4 * E.EA
    return None


def seed_asset(cat, E: Externals, en: Endowment, g: Globals,
               rng: np.random.Generator, bounds: AssetBounds | None = None) -> Asset:
    """Fresh asset for *cat* from externals, endowments and current globals."""
    cat = Category(cat)
    S = _seed_supply(cat, E, en)
    D = _seed_demand(cat, E, g)
    if S is None:
        S = 0.2 + 0.6 * rng.random()
    if D is None:
        D = 0.2 + 0.6 * rng.random()
    L, V = _LIQ_VOL.get(cat, (0.5, 0.25))
    Rk   = 0.2 + 0.6 * rng.random()
    ER   = 0.02 + 0.05 * rng.random()
    Inv  = 1.0 if is_cap_like(cat) else (0.2 if is_perishable(cat) else 0.5)
    tau  = 0.1 + 0.2 * rng.random()
    return Asset(S=S, D=D, V=V, L=L, Rk=Rk, ER=ER, Inv=Inv,
                 Prod=max(0.05, S - 0.3), tau=tau, price=1.0).clamp(bounds)


def type_from_ci(ci: float, bands) -> RegimeType:
    if ci < bands.N:
        return RegimeType.ANARCHIC
    if ci < bands.D:
        return RegimeType.DEMOCRATIC
    if ci < bands.A:
        return RegimeType.AUTHORITARIAN
    return RegimeType.TRIBAL


# ══════════════════════════════════════════════════════════════════════════
# Regime generation
# ══════════════════════════════════════════════════════════════════════════

def generate_regimes(n: int, g: Globals, rng: np.random.Generator,
                     rules: Rules = DEFAULT_RULES, taken: set | None = None,
                     salt: str = '') -> list[Regime]:
    """Sample *n* regimes whose land shares sum to one."""
    taken = set() if taken is None else taken
    land  = dirichlet(rng, n, ALPHA_LAND)
    bias  = dirichlet(rng, n, ALPHA_POP)
    base_pop = [clamp((0.6 * bias[i] + 0.4 * (1 - ls)) * 1.5, 0.05, 0.9)
                for i, ls in enumerate(land)]
    raw_endow = {
        'fuel':    dirichlet(rng, n, ALPHA_FUEL),
        'mineral': dirichlet(rng, n, ALPHA_MINERAL),
        'arable':  dirichlet(rng, n, ALPHA_ARABLE),
        'water':   dirichlet(rng, n, ALPHA_WATER),
    }

    regimes: list[Regime] = []
    for i in range(n):
        LS = land[i]
        PD = clamp(base_pop[i], 0.05, 0.95)
        EA = clamp(0.3 + 0.5 * rng.random() + 0.2 * PD, 0.2, 0.95)
        TA = clamp(0.2 + 0.5 * rng.random(), 0.05, 0.95)
        PS = clamp(0.4 + 0.3 * rng.random(), 0.1, 0.95)
        ext = Externals(LS=LS, PD=PD, EA=EA, TA=TA, PS=PS)
        endow = Endowment(**{
            k: clamp(raw_endow[k][i] + _ENDOW_LAND_MIX[k] * LS)
            for k in _ENDOW_LAND_MIX
        })
        market = Market({c: seed_asset(c, ext, endow, g, rng, rules.assetBounds)
                         for c in CATS})

        rid = _unique_id(f"{salt}{i}-{LS}-{PD}", taken)
        ci  = (0.45 * (endow.fuel + endow.mineral) / 2
               + 0.2 * (1 / max(0.15, EA))
               + 0.1 * (1 - PS))
        rtype = type_from_ci(ci, rules.typeBands)
        regimes.append(Regime(
            id=rid,
            name=f"R-{rid}",
            externals=ext,
            endow=endow,
            market=market,
            wealth=1.0,
            ci=clamp(ci),
            type=rtype,
            trade_open=0.2 + 0.2 * rng.random(),
            debts=0.2 * rng.random(),
        ))
    return regimes


def initial_globals(rules: Rules = DEFAULT_RULES) -> Globals:
    gi = rules.globalsInit
    return Globals(GG=gi.GG, IR=gi.IR, RA=gi.RA, ES=gi.ES, TS=gi.TS, CS=gi.CS,
                   substeps=gi.substeps, turnYears=gi.turnYears, volMul=gi.volMul)


def create_world(regime_count: int = 4, rng: np.random.Generator | None = None,
                 rules: Rules = DEFAULT_RULES) -> World:
    """Build a fresh world with *regime_count* regimes (clamped to the rules' range)."""
    rng = rng if rng is not None else np.random.default_rng()
    n   = max(rules.regimes.min, min(rules.regimes.max, int(regime_count)))
    g   = initial_globals(rules)
    return World(
        id=_b64u(rng.bytes(12)),
        globals=g,
        regimes=generate_regimes(n, g, rng, rules),
    )


def spawn_regimes(world: World, count: int, rng: np.random.Generator,
                  rules: Rules = DEFAULT_RULES, event_log: list | None = None) -> list[Regime]:
    """Append *count* freshly generated regimes under ids unique in *world*.

    The new regimes come from their own generator batch, so their land shares
    sum to one among themselves rather than with the incumbents.
    """
    if count <= 0:
        return []
    taken = {r.id for r in world.regimes} | set(world.fall_reasons)
    batch = generate_regimes(max(count, 2), world.globals, rng, rules,
                             taken=taken, salt=f"{world.step}:{len(world.regimes)}:")
    new = batch[:count]
    world.regimes.extend(new)
    if event_log is not None:
        msg = (f"Turn {world.step:04d}: ✚ SPAWN — {len(new)} regime(s) join "
               f"({', '.join(r.name for r in new)})")
        event_log.append(msg)
    return new


def enforce_seats(world: World, rng: np.random.Generator, rules: Rules = DEFAULT_RULES,
                  event_log: list | None = None) -> list[Regime]:
    """Spawn regimes until the world holds rules.seats.minSeats again."""
    return spawn_regimes(world, rules.seats.minSeats - len(world.regimes),
                         rng, rules, event_log)


# ══════════════════════════════════════════════════════════════════════════
# Deserialisation with self-healing markets
# ══════════════════════════════════════════════════════════════════════════

_ASSET_KEYS = tuple(f.name for f in fields(Asset))


def heal_market(raw: dict, ext: Externals, endow: Endowment, g: Globals,
                rng: np.random.Generator,
                bounds: AssetBounds | None = None) -> tuple[Market, list[Category]]:
    """Build a Market from serialised entries.

    A missing category is seeded fresh; an entry lacking some fields keeps the
    fields it has and takes the rest from a freshly seeded asset.  Both count
    as healed.
    """
    assets: dict[Category, Asset] = {}
    healed: list[Category] = []
    for cat in CATS:
        entry = raw.get(cat.value) or {}
        if all(k in entry for k in _ASSET_KEYS):
            assets[cat] = Asset.from_dict(entry).clamp(bounds)
            continue
        fresh = seed_asset(cat, ext, endow, g, rng, bounds).to_dict()
        fresh.update({k: entry[k] for k in _ASSET_KEYS if k in entry})
        assets[cat] = Asset.from_dict(fresh).clamp(bounds)
        healed.append(cat)
    return Market(assets), healed


def _returns_rows(raw) -> list[list[float]]:
    """Keep only well-formed per-category rows; older flat histories are dropped."""
    return [[float(x) for x in row] for row in (raw or [])
            if isinstance(row, list) and len(row) == len(CATS)]


def regime_from_dict(data: dict, g: Globals, rng: np.random.Generator | None = None,
                     event_log: list | None = None, step: int = 0,
                     rules: Rules = DEFAULT_RULES) -> Regime:
    rng   = rng if rng is not None else np.random.default_rng()
    ext   = Externals(**{k: float(v) for k, v in data['externals'].items()})
    endow = Endowment(**{k: float(v) for k, v in data['endow'].items()})
    market, healed = heal_market(data.get('market') or {}, ext, endow, g, rng,
                                 rules.assetBounds)
    if healed and event_log is not None:
        event_log.append(
            f"Turn {step:04d}: MARKET HEALED — {data.get('name', data['id'])} "
            f"regenerated {', '.join(c.value for c in healed)}")

    mem = empty_memory()
    for k, v in (data.get('_mem') or {}).items():
        mem[RegimeType(k)] = int(v)
    return Regime(
        id=data['id'],
        name=data.get('name', f"R-{data['id']}"),
        externals=ext,
        endow=endow,
        market=market,
        wealth=float(data.get('wealth', 1.0)),
        ci=float(data.get('ci', 0.0)),
        type=RegimeType(data.get('type', RegimeType.AUTHORITARIAN.value)),
        trade_open=float(data.get('tradeOpen', 0.3)),
        debts=float(data.get('debts', 0.0)),
        last_conflict_loss=float(data.get('lastConflictLoss', 0.0)),
        last_trades=[TradeRecord.from_dict(t) for t in data.get('lastTrades', [])],
        mem=mem,
        returns=_returns_rows(data.get('returns')),
        civic_voice=data.get('civicVoice'),
        media_control=data.get('mediaControl'),
        elite_rents=data.get('eliteRents'),
        is_player=bool(data.get('isPlayer', False)),
    )
