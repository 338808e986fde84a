# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
config.py — Rule tables for the regime turn engine.

Every numeric constant the layers read lives here.  The defaults below are the
baseline rule set; ``load_rules()`` overlays a JSON file on top of them and CLI
arguments in sim.run() override individual globals at runtime.

Usage
─────
    rules = Rules()                          # baseline
    rules = load_rules('rules.json')         # baseline + overrides
    rules = Rules.from_dict({'trade': {'volFrac': 0.3}})
"""

from __future__ import annotations

import json
import pathlib
from dataclasses import dataclass, field, fields, is_dataclass

# ── Simulation length / CLI defaults ────────────────────────────────────
TURNS            = 200    # default number of turns for `python -m polity_sim`
DEFAULT_REGIMES  = 6      # default regime count at world creation
PRINT_EVERY      = 10     # progress line cadence in run()
EVENT_LOG_MAX    = 2000   # run() trims the in-memory event log beyond this

# Difficulty presets applied onto world.globals by apply_difficulty()
DIFFICULTY: dict[str, dict[str, float]] = {
    'MIN': {'shockMul': 1.0, 'volMul': 1.0, 'turnYears': 1.0, 'substeps': 2},
    'MAX': {'shockMul': 1.6, 'volMul': 1.4, 'turnYears': 3.0, 'substeps': 6},
}


# ══════════════════════════════════════════════════════════════════════════
# Rule sections
# ══════════════════════════════════════════════════════════════════════════

class _Table:
    """Rule section whose fields are all sub-records of one shape."""

    def items(self):
        return ((f.name, getattr(self, f.name)) for f in fields(self))


@dataclass
class Signal:
    target: float
    sigma:  float
    rho:    float
    lo:     float
    hi:     float


@dataclass
class SignalTable(_Table):
    """Globals oscillator: new = rho·old + (1 − rho)·target + sigma·U(−½, ½), clamped to [lo, hi]."""
    GG: Signal = field(default_factory=lambda: Signal(0.00, 0.12, 0.90, -0.8, 0.8))    # growth
    IR: Signal = field(default_factory=lambda: Signal(0.02, 0.02, 0.95,  0.0, 0.15))   # interest rate
    RA: Signal = field(default_factory=lambda: Signal(0.00, 0.15, 0.90, -0.5, 1.0))    # risk aversion
    ES: Signal = field(default_factory=lambda: Signal(0.00, 0.20, 0.90, -0.5, 1.0))    # energy shock
    TS: Signal = field(default_factory=lambda: Signal(0.00, 0.20, 0.90, -0.5, 1.0))    # tech shock
    CS: Signal = field(default_factory=lambda: Signal(0.00, 0.20, 0.90, -0.5, 1.0))    # climate shock


@dataclass
class Bounds:
    lo: float
    hi: float


def _bounds(lo: float, hi: float):
    return field(default_factory=lambda: Bounds(lo, hi))


@dataclass
class AssetBounds(_Table):
    """Per-field clamp range applied whenever an asset is seeded or restored."""
    S:     Bounds = _bounds(0.05, 2.5)
    D:     Bounds = _bounds(0.05, 2.0)
    V:     Bounds = _bounds(0.01, 1.0)
    L:     Bounds = _bounds(0.0,  1.0)
    Rk:    Bounds = _bounds(0.0,  1.0)
    ER:    Bounds = _bounds(-0.2, 0.3)
    Inv:   Bounds = _bounds(0.01, 3.0)
    Prod:  Bounds = _bounds(0.05, 2.5)
    tau:   Bounds = _bounds(0.0,  1.0)
    price: Bounds = _bounds(0.01, 1.0e6)


@dataclass
class RegimeCount:
    min: int = 2
    max: int = 10


@dataclass
class SeatRules:
    """Hosts top the world back up to minSeats living regimes after every turn (0 disables)."""
    minSeats: int = 4


@dataclass
class GlobalsInit:
    GG: float = 0.0
    IR: float = 0.02
    RA: float = 0.0
    ES: float = 0.0
    TS: float = 0.0
    CS: float = 0.0
    substeps: int = 2
    turnYears: float = 1.0
    volMul: float = 1.0


@dataclass
class FilterRules:
    """Collapse thresholds: a regime at or below any of these is pruned."""
    minPS: float = 0.05
    minWealth: float = 0.08
    minPopLand: float = 0.004


@dataclass
class TradeRules:
    gapThresh: float = 0.05
    guard: int = 200          # max matching iterations per category
    volFrac: float = 0.5
    eaFrom: float = 0.02
    eaTo: float = 0.015
    psFrom: float = 0.004
    psTo: float = 0.006
    openFrom: float = 0.01
    openTo: float = 0.008
    tTechGain: float = 0.01


@dataclass
class AllianceRules:
    base: float = 0.08
    ciWeight: float = 0.3
    tauMin: float = 0.02
    tauDelta: float = 0.02
    psBump: float = 0.01


@dataclass
class ConflictRules:
    coefDeficit: float = 0.15
    coefCI: float = 0.05
    coefPS: float = 0.10
    pMax: float = 0.25
    dLSMaxFrac: float = 0.05
    dLSFracOfTarget: float = 0.10
    psLossAttacker: float = 0.02
    psLossDefender: float = 0.05
    invHitAttacker: float = 0.95
    invHitDefender: float = 0.85
    raBump: float = 0.05
    lossDecay: float = 0.8
    logMax: int = 200


@dataclass
class MigrationRules:
    srcPS: float = 0.30
    dstPS: float = 0.60
    flowK: float = 0.10
    eaLoss: float = 0.05
    eaGain: float = 0.03


@dataclass
class DegradeRules:
    iInvStep: float = 0.02
    taOpenK: float = 0.002
    taSelfK: float = 0.001
    psDecay: float = 0.97
    psMix: float = 0.03
    psTarget: float = 0.5


@dataclass
class TypeBands:
    """Generation-time CI bands: ci < N → aNarchic, < D → Democratic, < A → Authoritarian, else Tribal."""
    N: float = 0.25
    D: float = 0.45
    A: float = 0.65


@dataclass
class TypeMemory:
    """Minimum hysteresis count a type needs before it is displayed."""
    D: int = 3
    A: int = 3
    T: int = 3
    N: int = 4
    cap: int = 5


@dataclass
class ClassifierBands:
    demHi: float = 0.55       # O and I at/above → Democratic; O above, I below → Authoritarian
    tribalLo: float = 0.40
    anarchicLo: float = 0.25


@dataclass
class OrderWeights:
    PS: float = 0.35
    IInv: float = 0.15
    tradeOpen: float = 0.15
    ally: float = 0.10
    loss: float = -0.15
    vol: float = -0.10
    # z-score of the mean per-category return std; one GBM step of
    # σ = V·volMul over Δt = 0.5 gives ≈ 0.19 at the default category V's
    volMean: float = 0.20
    volStd: float = 0.10


@dataclass
class InclusionWeights:
    wpc: float = 0.35
    wpcMax: float = 20.0
    civic: float = 0.20
    tradeOpen: float = 0.15
    rents: float = -0.10
    media: float = -0.15
    loss: float = -0.05


@dataclass
class Rules:
    """Complete rule set consumed by the engine.  Treated as read-only input."""
    regimes:      RegimeCount      = field(default_factory=RegimeCount)
    seats:        SeatRules        = field(default_factory=SeatRules)
    globalsInit:  GlobalsInit      = field(default_factory=GlobalsInit)
    signals:      SignalTable      = field(default_factory=SignalTable)
    assetBounds:  AssetBounds      = field(default_factory=AssetBounds)
    filters:      FilterRules      = field(default_factory=FilterRules)
    trade:        TradeRules       = field(default_factory=TradeRules)
    alliance:     AllianceRules    = field(default_factory=AllianceRules)
    conflict:     ConflictRules    = field(default_factory=ConflictRules)
    migration:    MigrationRules   = field(default_factory=MigrationRules)
    degrade:      DegradeRules     = field(default_factory=DegradeRules)
    typeBands:    TypeBands        = field(default_factory=TypeBands)
    typeMemory:   TypeMemory       = field(default_factory=TypeMemory)
    classifier:   ClassifierBands  = field(default_factory=ClassifierBands)
    orderWeights: OrderWeights     = field(default_factory=OrderWeights)
    inclusionWeights: InclusionWeights = field(default_factory=InclusionWeights)

    @classmethod
    def from_dict(cls, data: dict) -> 'Rules':
        """Overlay a (possibly partial) nested dict onto the default rules."""
        rules = cls()
        _overlay(rules, data or {}, 'rules')
        rules.validate()
        return rules

    def to_dict(self) -> dict:
        return _as_dict(self)

    def validate(self) -> None:
        """Raise ValueError on structurally inconsistent rule sets."""
        problems: list[str] = []
        if not 1 <= self.regimes.min <= self.regimes.max:
            problems.append(f"regimes.min/max out of order ({self.regimes.min}, {self.regimes.max})")
        if self.seats.minSeats < 0:
            problems.append("seats.minSeats must be >= 0")
        for name, s in self.signals.items():
            if not s.lo <= s.target <= s.hi:
                problems.append(f"signals.{name}: target must lie in [lo, hi]")
            if not 0.0 <= s.rho <= 1.0 or s.sigma < 0:
                problems.append(f"signals.{name}: need 0 <= rho <= 1 and sigma >= 0")
        for name, b in self.assetBounds.items():
            if b.lo > b.hi:
                problems.append(f"assetBounds.{name}: lo above hi")
        if self.assetBounds.price.lo <= 0:
            problems.append("assetBounds.price.lo must be > 0")
        cb = self.classifier
        if not cb.anarchicLo <= cb.tribalLo <= cb.demHi:
            problems.append("classifier must satisfy anarchicLo <= tribalLo <= demHi")
        if self.globalsInit.substeps < 1:
            problems.append("globalsInit.substeps must be >= 1")
        if self.globalsInit.turnYears <= 0:
            problems.append("globalsInit.turnYears must be > 0")
        for name in ('pMax',):
            v = getattr(self.conflict, name)
            if not 0.0 <= v <= 1.0:
                problems.append(f"conflict.{name} must be a probability")
        if not 0.0 <= self.alliance.base <= 1.0:
            problems.append("alliance.base must be a probability")
        if self.conflict.logMax < 1:
            problems.append("conflict.logMax must be >= 1")
        if self.trade.guard < 1:
            problems.append("trade.guard must be >= 1")
        if not 0.0 < self.trade.volFrac <= 1.0:
            problems.append("trade.volFrac must be in (0, 1]")
        if self.migration.srcPS >= self.migration.dstPS:
            problems.append("migration.srcPS must be below migration.dstPS")
        if not self.typeBands.N <= self.typeBands.D <= self.typeBands.A:
            problems.append("typeBands must satisfy N <= D <= A")
        cap = self.typeMemory.cap
        for k in ('D', 'A', 'T', 'N'):
            need = getattr(self.typeMemory, k)
            if not 0 <= need <= cap:
                problems.append(f"typeMemory.{k} must lie in [0, {cap}]")
        if self.orderWeights.volStd <= 0:
            problems.append("orderWeights.volStd must be > 0")
        if self.inclusionWeights.wpcMax <= 0:
            problems.append("inclusionWeights.wpcMax must be > 0")
        if problems:
            raise ValueError("invalid rules: " + "; ".join(problems))


# ──────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────

def _overlay(target, data: dict, path: str) -> None:
    known = {f.name: f for f in fields(target)}
    for key, value in data.items():
        if key not in known:
            raise ValueError(f"unknown rule key {path}.{key}")
        current = getattr(target, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ValueError(f"rule section {path}.{key} must be an object")
            _overlay(current, value, f"{path}.{key}")
        else:
            setattr(target, key, type(current)(value))


def _as_dict(obj) -> dict:
    out = {}
    for f in fields(obj):
        v = getattr(obj, f.name)
        out[f.name] = _as_dict(v) if is_dataclass(v) else v
    return out


def load_rules(path: str | pathlib.Path) -> Rules:
    """Read a JSON rules file and overlay it on the defaults."""
    text = pathlib.Path(path).read_text(encoding='utf-8')
    return Rules.from_dict(json.loads(text))


DEFAULT_RULES = Rules()
