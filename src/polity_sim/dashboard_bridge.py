"""
dashboard_bridge.py — Periodic JSON snapshot writer for the Streamlit live dashboard.

Call write_dashboard_snapshot() from sim.run() every DASHBOARD_WRITE_EVERY turns.
Uses an atomic rename-swap so the dashboard process never reads a half-written file.

No Streamlit dependency — this runs inside the main simulation process.
"""

import json
import os
import collections
import pathlib

from .model import CAT_LABEL, CATS

# ── Configuration ─────────────────────────────────────────────────────────
DASHBOARD_WRITE_EVERY: int    = 5                           # write interval (turns)
DASHBOARD_DATA_PATH:   pathlib.Path = pathlib.Path("dashboard_data.json")

_WEALTH_HISTORY_MAX = 120   # keep last 120 snapshots → 600 turns of history at interval=5

# ── Rolling wealth history (module-level, survives across calls) ──────────
_wealth_history: collections.deque = collections.deque(maxlen=_WEALTH_HISTORY_MAX)


# ──────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────

def _turn_rate(turn_times: list) -> float:
    """Turns per second averaged over the last 30 recorded turn durations."""
    if not turn_times:
        return 0.0
    recent = turn_times[-30:]
    total  = sum(recent)
    return round(len(recent) / total, 2) if total > 0 else 0.0


def reset_history() -> None:
    _wealth_history.clear()


# ──────────────────────────────────────────────────────────────────────────
# Main API
# ──────────────────────────────────────────────────────────────────────────

def build_snapshot(world, turn_times: list, event_log: list) -> dict:
    """Serialise what the dashboard shows; appends one point to the wealth history."""
    regimes = []
    for R in world.regimes:
        E = R.externals
        regimes.append({
            'id':        R.id,
            'name':      R.name,
            'type':      R.type.label,
            'ci':        round(R.ci, 4),
            'wealth':    round(R.wealth, 4),
            'LS':        round(E.LS, 4),
            'PD':        round(E.PD, 4),
            'EA':        round(E.EA, 4),
            'TA':        round(E.TA, 4),
            'PS':        round(E.PS, 4),
            'tradeOpen': round(R.trade_open, 4),
            'prices':    [round(R.market[c].price, 4) for c in CATS],
            'player':    R.is_player,
        })
    regimes.sort(key=lambda x: x['wealth'], reverse=True)

    _wealth_history.append({'turn': world.step,
                            'wealth': {r['name']: r['wealth'] for r in regimes}})

    names = {R.id: R.name for R in world.regimes}
    return {
        'turn':           world.step,
        'world_id':       world.id,
        'alive':          len(world.regimes),
        'turn_rate':      _turn_rate(turn_times),
        'globals':        {k: round(getattr(world.globals, k), 4)
                           for k in ('GG', 'IR', 'RA', 'ES', 'TS', 'CS')},
        'categories':     [CAT_LABEL[c] for c in CATS],
        'regimes':        regimes,
        'alliances':      [[names.get(a, a), names.get(b, b)]
                           for a, b in sorted(sorted(p) for p in world.alliances)],
        'conflicts':      [e.to_dict() for e in world.conflict_log[-10:]],
        'fallen':         {k: v.text for k, v in world.fall_reasons.items()},
        'wealth_history': list(_wealth_history),
        'event_tail':     event_log[-40:],     # last 40 events for the live feed
    }


def write_dashboard_snapshot(world, turn_times: list, event_log: list,
                             path: pathlib.Path = None) -> None:
    """Serialise current simulation state and write it atomically.

    The write goes to a .tmp file first; os.replace() then performs an atomic rename
    so the dashboard reader never sees a partial JSON file.
    """
    path = pathlib.Path(path) if path is not None else DASHBOARD_DATA_PATH
    snap = build_snapshot(world, turn_times, event_log)

    tmp = path.with_suffix('.tmp')
    tmp.write_text(json.dumps(snap, separators=(',', ':')), encoding='utf-8')
    os.replace(tmp, path)
