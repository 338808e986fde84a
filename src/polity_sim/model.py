# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
model.py — Entities owned by a world: globals, regimes, markets, assets.

Ownership
─────────
  World   owns its ordered Regime list, alliances, conflict history, fall reasons.
  Regime  owns its Market; a Market always holds exactly one Asset per Category.

Every entity round-trips through ``to_dict()`` / ``from_dict()`` so a hosting
layer can persist a world between turns without loss.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import Iterator, Optional

from .config import DEFAULT_RULES, AssetBounds


def clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))


# ══════════════════════════════════════════════════════════════════════════
# Categories and regime types
# ══════════════════════════════════════════════════════════════════════════

class Category(str, enum.Enum):
    RE = 'RE'
    S  = 'S'
    B  = 'B'
    C  = 'C'
    F  = 'F'
    M  = 'M'
    G  = 'G'
    W  = 'W'
    T  = 'T'
    I  = 'I'


CATS: tuple[Category, ...] = tuple(Category)

CAT_LABEL: dict[Category, str] = {
    Category.RE: 'RealEst',
    Category.S:  'Stocks',
    Category.B:  'Bonds',
    Category.C:  'Commodities',
    Category.F:  'Food',
    Category.M:  'Metals',
    Category.G:  'Goods',
    Category.W:  'Wages',
    Category.T:  'Tradables',
    Category.I:  'Infra',
}

CAT_META: dict[Category, dict[str, bool]] = {
    Category.RE: {'tradable': False, 'capLike': True},
    Category.S:  {'tradable': True,  'financial': True},
    Category.B:  {'tradable': True,  'financial': True},
    Category.C:  {'tradable': True,  'financial': True},
    Category.F:  {'tradable': True},
    Category.M:  {'tradable': True},
    Category.G:  {'tradable': True,  'perishable': True},
    Category.W:  {'tradable': True,  'perishable': True},
    Category.T:  {'tradable': True,  'intangible': True},
    Category.I:  {'tradable': False, 'capLike': True},
}

TRADABLE: tuple[Category, ...] = tuple(c for c in CATS if CAT_META[c].get('tradable'))


def is_cap_like(cat: Category) -> bool:
    return CAT_META[cat].get('capLike', False)


def is_perishable(cat: Category) -> bool:
    return CAT_META[cat].get('perishable', False)


class RegimeType(str, enum.Enum):
    DEMOCRATIC    = 'D'
    AUTHORITARIAN = 'A'
    TRIBAL        = 'T'
    ANARCHIC      = 'N'

    @property
    def label(self) -> str:
        return _TYPE_LABEL[self]


_TYPE_LABEL = {
    RegimeType.DEMOCRATIC:    'Democratic',
    RegimeType.AUTHORITARIAN: 'Authoritarian',
    RegimeType.TRIBAL:        'Tribal',
    RegimeType.ANARCHIC:      'aNarchic',
}


def empty_memory() -> dict[RegimeType, int]:
    return {t: 0 for t in RegimeType}


# ══════════════════════════════════════════════════════════════════════════
# Asset / Market
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class Asset:
    S:     float
    D:     float
    V:     float
    L:     float
    Rk:    float
    ER:    float
    Inv:   float
    Prod:  float
    tau:   float
    price: float = 1.0

    def clamp(self, bounds: AssetBounds | None = None) -> 'Asset':
        """Pull every field back inside *bounds* (default: the baseline rules).  Returns self."""
        bounds = bounds if bounds is not None else DEFAULT_RULES.assetBounds
        for name, b in bounds.items():
            setattr(self, name, clamp(float(getattr(self, name)), b.lo, b.hi))
        return self

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> 'Asset':
        return cls(**{f.name: float(data[f.name]) for f in fields(cls)
                      if f.name in data})


class Market:
    """Fixed mapping Category → Asset.  Construction requires every category."""

    __slots__ = ('_assets',)

    def __init__(self, assets: dict) -> None:
        keyed: dict[Category, Asset] = {}
        for k, a in assets.items():
            cat = Category(k)
            if cat in keyed:
                raise ValueError(f"duplicate market category {cat.value}")
            if not isinstance(a, Asset):
                raise TypeError(f"market entry {cat.value} is not an Asset")
            keyed[cat] = a
        missing = [c.value for c in CATS if c not in keyed]
        if missing:
            raise ValueError(f"market missing categories: {', '.join(missing)}")
        self._assets: list[Asset] = [keyed[c] for c in CATS]

    def __getitem__(self, cat) -> Asset:
        return self._assets[CATS.index(Category(cat))]

    def __setitem__(self, cat, asset: Asset) -> None:
        if not isinstance(asset, Asset):
            raise TypeError("market entries must be Asset instances")
        self._assets[CATS.index(Category(cat))] = asset

    def __iter__(self) -> Iterator[Category]:
        return iter(CATS)

    def __len__(self) -> int:
        return len(self._assets)

    def items(self):
        return zip(CATS, self._assets)

    def values(self) -> list[Asset]:
        return list(self._assets)

    def to_dict(self) -> dict:
        return {c.value: a.to_dict() for c, a in self.items()}


# ══════════════════════════════════════════════════════════════════════════
# Regime
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class Externals:
    LS: float    # land share
    PD: float    # population density
    EA: float    # economic activity
    TA: float    # tech advancement
    PS: float    # political stability


@dataclass
class Endowment:
    fuel:    float
    mineral: float
    arable:  float
    water:   float


@dataclass
class TradeRecord:
    cat:     Category
    from_id: str
    to_id:   str
    vol:     float

    def involves(self, regime_id: str) -> bool:
        return regime_id in (self.from_id, self.to_id)

    def to_dict(self) -> dict:
        return {'cat': self.cat.value, 'from': self.from_id,
                'to': self.to_id, 'vol': self.vol}

    @classmethod
    def from_dict(cls, d: dict) -> 'TradeRecord':
        return cls(Category(d['cat']), d['from'], d['to'], float(d['vol']))


@dataclass
class Regime:
    id:        str
    name:      str
    externals: Externals
    endow:     Endowment
    market:    Market
    wealth:    float = 1.0
    ci:        float = 0.0
    type:      RegimeType = RegimeType.AUTHORITARIAN
    trade_open: float = 0.3
    debts:     float = 0.0
    last_conflict_loss: float = 0.0
    last_trades: list = field(default_factory=list)      # TradeRecord, newest last, ≤5
    mem:       dict = field(default_factory=empty_memory)
    returns:   list = field(default_factory=list)        # last 12 turns, one log return per category
    civic_voice:   Optional[float] = None
    media_control: Optional[float] = None
    elite_rents:   Optional[float] = None
    is_player: bool = False

    @property
    def pop_land(self) -> float:
        return self.externals.PD * self.externals.LS

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'externals': vars(self.externals).copy(),
            'endow': vars(self.endow).copy(),
            'market': self.market.to_dict(),
            'wealth': self.wealth,
            'ci': self.ci,
            'type': self.type.value,
            'tradeOpen': self.trade_open,
            'debts': self.debts,
            'lastConflictLoss': self.last_conflict_loss,
            'lastTrades': [t.to_dict() for t in self.last_trades],
            '_mem': {k.value: v for k, v in self.mem.items()},
            'returns': [list(row) for row in self.returns],
            'civicVoice': self.civic_voice,
            'mediaControl': self.media_control,
            'eliteRents': self.elite_rents,
            'isPlayer': self.is_player,
        }


# ══════════════════════════════════════════════════════════════════════════
# Globals / events / world
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class Globals:
    GG: float = 0.0
    IR: float = 0.02
    RA: float = 0.0
    ES: float = 0.0
    TS: float = 0.0
    CS: float = 0.0
    substeps:  int   = 2
    turnYears: float = 1.0
    volMul:    float = 1.0
    shockMul:  float = 1.0
    difficulty: Optional[str] = None

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, d: dict) -> 'Globals':
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


@dataclass
class ConflictEvent:
    at:      int
    from_id: str
    to_id:   str
    dLS:     float = 0.0
    kind:    str   = 'conflict'

    def to_dict(self) -> dict:
        return {'at': self.at, 'from': self.from_id, 'to': self.to_id,
                'dLS': self.dLS, 'kind': self.kind}

    @classmethod
    def from_dict(cls, d: dict) -> 'ConflictEvent':
        return cls(int(d['at']), d['from'], d['to'],
                   float(d.get('dLS', 0.0)), d.get('kind', 'conflict'))


@dataclass
class FallReason:
    text: str
    by:   Optional[str] = None

    def to_dict(self) -> dict:
        out = {'text': self.text}
        if self.by:
            out['by'] = self.by
        return out


def alliance_key(a: str, b: str) -> frozenset:
    return frozenset((a, b))


@dataclass
class World:
    id:      str
    globals: Globals
    regimes: list
    step:    int = 0
    alliances:    set  = field(default_factory=set)     # frozenset({id_a, id_b})
    conflicts:    list = field(default_factory=list)    # this turn only
    conflict_log: list = field(default_factory=list)    # capped history
    fall_reasons: dict = field(default_factory=dict)    # former id → FallReason
    player:   Optional[dict] = None
    done:     bool = False
    ended_at: Optional[int] = None
    player_fall: Optional[FallReason] = None
    meters:   dict = field(default_factory=dict)        # player action meters

    def regime(self, regime_id: str) -> Optional[Regime]:
        for r in self.regimes:
            if r.id == regime_id:
                return r
        return None

    def is_allied(self, regime_id: str) -> bool:
        return any(regime_id in pair for pair in self.alliances)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'step': self.step,
            'globals': self.globals.to_dict(),
            'regimes': [r.to_dict() for r in self.regimes],
            'alliances': sorted(sorted(p) for p in self.alliances),
            'conflicts': [e.to_dict() for e in self.conflicts],
            'conflictLog': [e.to_dict() for e in self.conflict_log],
            'fallReasons': {k: v.to_dict() for k, v in self.fall_reasons.items()},
            'player': dict(self.player) if self.player else None,
            'done': self.done,
            'endedAt': self.ended_at,
            'playerFall': self.player_fall.to_dict() if self.player_fall else None,
            'meters': dict(self.meters),
        }

    @classmethod
    def from_dict(cls, data: dict, rng=None, event_log: list = None,
                  rules=DEFAULT_RULES) -> 'World':
        """Rebuild a world from ``to_dict()`` output.

        Market entries missing from *data*, wholly or in part, are regenerated
        from the generator (see world.heal_market) so every regime comes back
        with all categories.
        """
        from .world import regime_from_dict   # circular: world imports model

        if not isinstance(data.get('regimes'), list):
            raise TypeError("world data has no regimes list")
        g = Globals.from_dict(data.get('globals', {}))
        step = int(data.get('step', 0))
        regimes = [regime_from_dict(rd, g, rng=rng, event_log=event_log,
                                    step=step, rules=rules)
                   for rd in data['regimes']]
        pf = data.get('playerFall')
        return cls(
            id=data.get('id', ''),
            globals=g,
            regimes=regimes,
            step=step,
            alliances={alliance_key(*p) for p in data.get('alliances', [])},
            conflicts=[ConflictEvent.from_dict(e) for e in data.get('conflicts', [])],
            conflict_log=[ConflictEvent.from_dict(e) for e in data.get('conflictLog', [])],
            fall_reasons={k: FallReason(v['text'], v.get('by'))
                          for k, v in data.get('fallReasons', {}).items()},
            player=dict(data['player']) if data.get('player') else None,
            done=bool(data.get('done', False)),
            ended_at=data.get('endedAt'),
            player_fall=FallReason(pf['text'], pf.get('by')) if pf else None,
            meters=dict(data.get('meters', {})),
        )
