# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
player.py — One seated player regime: selection, actions, meters, game over.

Public API
──────────
    start_game(n, select, difficulty, rng, rules)         → World
    select_player(world, rule, rng)                       → Regime
    is_player_alive(world)                                → bool
    mark_game_over_if_needed(world)                       → bool
    regen_meters(world)                                   → dict
    apply_player_acts(world, acts, rng, rules, event_log) → (applied, meters)
    step_game(world, acts, rng, on_progress, rules, event_log) → World

Actions spend two meters, political capital (PC) and human capital (HC), both
capped at 5.  HEAT (≤ 4) builds up from covert work and scales every cost by
1 + 0.25·HEAT.  Cost of a move of size dv is quadratic in u = |dv| / 0.01:

    cost = heatMul · base · (u + 0.15·u²)
"""

from __future__ import annotations

import numpy as np

from .combat import record_conflict
from .config import DEFAULT_RULES, Rules
from .macro import apply_difficulty
from .model import Category, ConflictEvent, Regime, World, clamp
from .sim import make_rng, step_world
from .world import create_world, enforce_seats

SELECT_RULES = ('rand', 'largest', 'wealthiest', 'techiest')
MAX_ACTS     = 8
PC_MAX       = 5.0
HC_MAX       = 5.0
HEAT_MAX     = 4.0
TRADE_TURN_BUDGET = 0.60     # total volume the player may push to others per turn


def _new_meters() -> dict:
    return {'PC': 1.0, 'HC': 1.0, 'HEAT': 0.0}


def _num(value, lo: float, hi: float, default: float) -> float:
    try:
        x = float(value)
    except (TypeError, ValueError):
        return default
    if x != x:          # NaN
        return default
    return clamp(x, lo, hi)


# ══════════════════════════════════════════════════════════════════════════
# Seat selection / lifecycle
# ══════════════════════════════════════════════════════════════════════════

def select_player(world: World, rule: str = 'rand',
                  rng: np.random.Generator | None = None) -> Regime:
    regs = world.regimes
    if not regs:
        raise ValueError("cannot seat a player in a world without regimes")
    if rule == 'largest':
        return max(regs, key=lambda r: r.externals.LS)
    if rule == 'wealthiest':
        return max(regs, key=lambda r: r.wealth)
    if rule == 'techiest':
        return max(regs, key=lambda r: r.externals.TA)
    rng = rng if rng is not None else np.random.default_rng()
    return regs[int(rng.integers(len(regs)))]


def start_game(n_regimes: int = 4, select: str | None = 'rand',
               difficulty: str | None = None,
               rng: np.random.Generator | None = None,
               rules: Rules = DEFAULT_RULES) -> World:
    """Create a world, apply a difficulty preset, and seat a player if *select* is given."""
    rng = rng if rng is not None else np.random.default_rng()
    world = create_world(n_regimes, rng, rules)
    if difficulty:
        apply_difficulty(world.globals, difficulty)
    if select:
        if select not in SELECT_RULES:
            raise ValueError(f"unknown select rule {select!r}")
        me = select_player(world, select, rng)
        me.is_player = True
        world.player = {'id': me.id, 'name': me.name, 'rule': select}
        world.meters = _new_meters()
    return world


def is_player_alive(world: World) -> bool:
    pid = (world.player or {}).get('id')
    if not pid:
        return True
    return any(R.id == pid for R in world.regimes)


def mark_game_over_if_needed(world: World) -> bool:
    if not is_player_alive(world):
        world.done = True
        world.ended_at = world.step
        pid = world.player['id']
        if pid in world.fall_reasons:
            world.player_fall = world.fall_reasons[pid]
    return world.done is True


def player_regime(world: World) -> Regime | None:
    pid = (world.player or {}).get('id')
    return world.regime(pid) if pid else None


# ══════════════════════════════════════════════════════════════════════════
# Meters
# ══════════════════════════════════════════════════════════════════════════

def regen_meters(world: World) -> dict:
    """Refill PC from stability/openness, HC from wealth/activity; cool HEAT."""
    me = player_regime(world)
    if me is None:
        return dict(world.meters)
    M = world.meters or _new_meters()
    E = me.externals
    M['PC'] = min(PC_MAX, M['PC'] + 0.10 * (0.6 * E.PS + 0.4 * me.trade_open))
    M['HC'] = min(HC_MAX, M['HC'] + 0.10 * (0.7 * min(1.0, me.wealth) + 0.3 * E.EA))
    decay = 0.05 * (1 + (0.5 if world.player.get('counterintel') else 0.0))
    M['HEAT'] = max(0.0, M['HEAT'] - decay)
    world.meters = M
    return dict(M)


def detection_chance(world: World, defender: Regime, x: float,
                     heat: float = 0.0, stealth: bool = False) -> float:
    p = 0.10 + 0.60 * defender.externals.PS + 0.20 * world.globals.RA + 0.10 * (heat / HEAT_MAX)
    if stealth:
        p *= 0.65
    p = clamp(p, 0.02, 0.95)
    return clamp(p + 0.5 * x, 0.02, 0.98)


# ══════════════════════════════════════════════════════════════════════════
# Actions
# ══════════════════════════════════════════════════════════════════════════

class _Turn:
    """Working copy of the meters for one batch of acts."""

    def __init__(self, world: World, me: Regime, rng, rules: Rules, event_log):
        self.world, self.me, self.rng = world, me, rng
        self.rules, self.event_log = rules, event_log
        M = world.meters or _new_meters()
        self.PC, self.HC, self.HEAT = M['PC'], M['HC'], M['HEAT']
        self.traded = 0.0

    def cost(self, base: float, dv: float) -> float:
        u = abs(dv) / 0.01
        return (1 + 0.25 * self.HEAT) * base * (u + 0.15 * u * u)

    def target(self, ref) -> Regime | None:
        if ref is None:
            return None
        ref = str(ref)
        for R in self.world.regimes:
            if R is not self.me and ref in (R.id, R.name):
                return R
        return None

    def log(self, msg: str) -> None:
        if self.event_log is not None:
            self.event_log.append(f"Turn {self.world.step:04d}: {msg}")

    # ── boost ─────────────────────────────────────────────────────────────
    def boost(self, act: dict) -> bool:
        ps  = _num(act.get('ps'), 0.0, 0.03, 0.0)
        ta  = _num(act.get('ta'), 0.0, 0.03, 0.0)
        ea  = _num(act.get('ea'), 0.0, 0.03, 0.0)
        inv = _num(act.get('investI'), 0.0, 0.12, 0.0)
        c_pc = self.cost(1.0, ps) + self.cost(1.5, ta) + self.cost(1.2, ea)
        c_hc = self.cost(0.8, inv)
        if self.PC < c_pc or self.HC < c_hc:
            return False

        E, m = self.me.externals, self.me.market
        policy = act.get('policy')
        E.PS = clamp(E.PS + ps, 0.01, 1.0)
        E.TA = clamp(E.TA + (ta * 0.9 if policy == 'price_stability' else ta))
        E.EA = clamp(E.EA + ea)
        m[Category.I].Inv = clamp(m[Category.I].Inv + inv, 0.1, 3.0)

        if policy == 'counterintel':
            self.world.player['counterintel'] = True
        elif policy == 'food_security':
            m[Category.F].Inv = clamp(m[Category.F].Inv + inv * 0.25 + 0.02, 0.01, 2.5)
        elif policy == 'price_stability':
            self.HEAT = max(0.0, self.HEAT - 0.1)
            E.PS = clamp(E.PS + 0.005, 0.01, 1.0)

        focus = str(act.get('focus') or '').lower()
        if focus == 'industry':
            m[Category.I].Inv = clamp(m[Category.I].Inv + 0.02, 0.1, 3.0)
            m[Category.G].Inv = clamp(m[Category.G].Inv + 0.02, 0.1, 2.5)
            m[Category.F].Inv = clamp(m[Category.F].Inv - 0.01, 0.01, 2.5)
        elif focus == 'services':
            E.EA = clamp(E.EA + 0.01, 0.01, 1.0)
            m[Category.G].Inv = clamp(m[Category.G].Inv + 0.015, 0.1, 2.5)
        elif focus == 'agri':
            m[Category.F].Inv = clamp(m[Category.F].Inv + 0.03, 0.01, 2.5)

        self.PC -= c_pc
        self.HC -= c_hc
        return True

    # ── trade ─────────────────────────────────────────────────────────────
    def trade(self, act: dict) -> bool:
        you = self.target(act.get('to'))
        if you is None:
            return False
        try:
            cat = Category(str(act.get('cat') or '').strip().upper())
        except ValueError:
            return False
        mine, theirs = self.me.market[cat], you.market[cat]
        if theirs.Inv >= 1.0:
            return False

        want     = _num(act.get('vol'), 0.01, 0.6, 0.1)
        max_send = clamp(mine.Inv * 0.25, 0.01, 0.6)
        quota    = clamp(min(0.25, max(0.05, 1.0 - theirs.Inv)), 0.05, 0.25)
        left     = clamp(TRADE_TURN_BUDGET - self.traded, 0.0, TRADE_TURN_BUDGET)
        vol = min(want, max_send, quota, left)
        if vol <= 1e-6:
            return False
        c_hc = self.cost(0.3, vol) * 1.5
        if self.HC < c_hc:
            return False

        mine.Inv   = max(0.01, mine.Inv - vol)
        theirs.Inv = clamp(theirs.Inv + vol, 0.01, 2.5)
        E = self.me.externals
        E.EA = clamp(E.EA + 0.20 * (0.5 * vol * 0.012), 0.01, 1.0)
        E.PS = clamp(E.PS + 0.20 * (0.5 * vol * 0.0025), 0.01, 1.0)

        self.HC -= c_hc
        self.traded += vol
        self.log(f"📦 Player ships {vol:.3f} {cat.value} to {you.name}")
        return True

    # ── covert ────────────────────────────────────────────────────────────
    def covert(self, act: dict) -> bool:
        you = self.target(act.get('to'))
        if you is None:
            return False
        kind    = str(act.get('kind') or 'destabilize').lower()
        x       = _num(act.get('x'), 0.001, 0.02, 0.005)
        stealth = bool(act.get('stealth'))
        base    = (3.0 if kind == 'steal_tech' else 2.0) * (1.25 if stealth else 1.0)
        c_pc    = self.cost(base, x)
        if self.PC < c_pc:
            return False

        p = detection_chance(self.world, you, x, self.HEAT, stealth)
        detected = self.rng.random() < p
        E, Y = self.me.externals, you.externals

        if kind == 'destabilize':
            Y.PS = clamp(Y.PS - x, 0.01, 1.0)
            if detected:
                Y.PS = clamp(Y.PS + 0.5 * x, 0.01, 1.0)
                self.HEAT = min(HEAT_MAX, self.HEAT + 0.35 * (x / 0.01))
        else:
            d = x * 0.6
            Y.TA = clamp(Y.TA - d)
            E.TA = clamp(E.TA + d * (0.4 if detected else 0.6))
            if detected:
                self.HEAT = min(HEAT_MAX, self.HEAT + 0.25 * (x / 0.01))
                Y.PS = clamp(Y.PS + 0.25 * x, 0.01, 1.0)

        if detected:
            record_conflict(self.world,
                            ConflictEvent(self.world.step, self.me.id, you.id, 0.0, 'covert_exposed'),
                            self.rules.conflict.logMax)
            self.log(f"🕵 COVERT EXPOSED — {self.me.name} caught working against {you.name}")

        g = self.world.globals
        g.RA = clamp(g.RA + 0.02 * (x / 0.01), -0.5, 1.0)
        self.HEAT = min(HEAT_MAX, self.HEAT + (0.16 if stealth else 0.20) * (x / 0.01))
        self.PC -= c_pc
        return True


def apply_player_acts(world: World, acts: list, rng: np.random.Generator | None = None,
                      rules: Rules = DEFAULT_RULES,
                      event_log: list | None = None) -> tuple[int, dict]:
    """Apply up to MAX_ACTS acts for the seated player.  Unaffordable or invalid acts are skipped."""
    me = player_regime(world)
    if me is None or not acts:
        return 0, dict(world.meters)
    rng  = rng if rng is not None else np.random.default_rng()
    turn = _Turn(world, me, rng, rules, event_log)
    handlers = {'boost': turn.boost, 'trade': turn.trade, 'covert': turn.covert}

    applied = 0
    for act in acts[:MAX_ACTS]:
        if not act:
            continue
        handler = handlers.get(str(act.get('type') or '').lower())
        if handler is not None and handler(act):
            applied += 1

    world.meters = {
        'PC':   clamp(turn.PC, 0.0, PC_MAX),
        'HC':   clamp(turn.HC, 0.0, HC_MAX),
        'HEAT': clamp(turn.HEAT, 0.0, HEAT_MAX),
    }
    return applied, dict(world.meters)


def step_game(world: World, acts: list | None = None,
              rng: np.random.Generator | None = None, on_progress=None,
              rules: Rules = DEFAULT_RULES, event_log: list | None = None) -> World:
    """Player turn: refill meters, apply acts, step the world, refill empty seats, check game over."""
    rng = rng if rng is not None else make_rng()
    if world.done:
        return world
    regen_meters(world)
    if acts:
        apply_player_acts(world, acts, rng, rules, event_log)
    step_world(world, rng, on_progress, rules, event_log)
    enforce_seats(world, rng, rules, event_log)
    mark_game_over_if_needed(world)
    return world
