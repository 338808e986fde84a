# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
sim.py — Turn engine and command-line entry point for the regime simulation.

Run with:  python -m polity_sim [--seed N] [--regimes 6] [--turns 200]

Layer architecture (per-turn order)
───────────────────────────────────
  Layer 1 · macro       — global shock oscillator
  Layer 0 · world       — generator (creation / spawn only, not per turn)
  Layer 2 · economy     — local markets: S/D shocks, GBM prices, ER, inventory, wealth
  Layer 3 · combat      — deficit-driven conflict, land transfer
  Layer 2 · economy     — trade clearing per tradable category
  Layer 4 · diplomacy   — alliances between trading partners
  Layer 5 · migration   — population flow toward stable regimes
  Layer 6 · governance  — O/I scores, hysteretic type classification
  Layer 7 · attrition   — infra / tech / stability drift, collapse filter

step_world() mutates the world in place and performs no I/O; narration goes to
an optional event_log list.  run() owns all printing and file output, and
refills the world to rules.seats.minSeats regimes after every turn.
"""

from __future__ import annotations

import argparse
import pathlib
import sys
import time
from datetime import datetime
from typing import Callable, Optional

import numpy as np

from . import config
from . import dashboard_bridge
from .attrition import collapse_filter, degrade_and_invest
from .combat import maybe_conflict
from .config import DEFAULT_RULES, Rules, load_rules
from .diplomacy import maybe_alliance
from .economy import local_market_update, run_trade
from .governance import update_regime_type
from .macro import tick_globals
from .metrics import MetricsLogger
from .migration import migration
from .model import World
from .world import enforce_seats

ProgressObserver = Callable[[float, str], None]


def make_rng(seed: int | None = None) -> np.random.Generator:
    return np.random.default_rng(seed)


def _progress(on_progress: Optional[ProgressObserver], pct: float, label: str) -> None:
    """Call the observer; anything it raises is discarded."""
    if on_progress is None:
        return
    try:
        on_progress(pct, label)
    except Exception:
        pass


def _check_structure(world) -> None:
    if not isinstance(getattr(world, 'regimes', None), list):
        raise TypeError("step_world needs a World with a regimes list")
    ids = [R.id for R in world.regimes]
    if len(ids) != len(set(ids)):
        raise ValueError("world has duplicate regime ids")


# ══════════════════════════════════════════════════════════════════════════
# One turn
# ══════════════════════════════════════════════════════════════════════════

def step_world(world: World, rng: np.random.Generator | None = None,
               on_progress: Optional[ProgressObserver] = None,
               rules: Rules = DEFAULT_RULES,
               event_log: list | None = None) -> World:
    """Advance *world* by exactly one turn.  Mutates and returns the same object.

    The percentages passed to *on_progress* are display hints only; the layer
    order below is authoritative.
    """
    _check_structure(world)
    rng = rng if rng is not None else make_rng()

    _progress(on_progress, 0.00, "start")
    world.step += 1

    _progress(on_progress, 0.05, "globals")
    tick_globals(world.globals, rng, rules)

    n = len(world.regimes) or 1
    for i, R in enumerate(world.regimes):
        local_market_update(R, world.globals, rng)
        _progress(on_progress, 0.10 + 0.30 * ((i + 1) / n), "local_markets")

    _progress(on_progress, 0.65, "conflicts")
    world.conflicts = []
    maybe_conflict(world, rng, rules, event_log)

    _progress(on_progress, 0.45, "trade")
    run_trade(world, rules, event_log)

    _progress(on_progress, 0.55, "alliances")
    maybe_alliance(world, rng, rules, event_log)

    _progress(on_progress, 0.75, "migration")
    migration(world, rng, rules, event_log)

    for i, R in enumerate(world.regimes):
        update_regime_type(R, world, rules, event_log)
        degrade_and_invest(R, rules)
        _progress(on_progress, 0.80 + 0.15 * ((i + 1) / n), "regime_updates")

    _progress(on_progress, 0.96, "cleanup")
    collapse_filter(world, rules, event_log)

    _progress(on_progress, 1.00, "done")
    return world


# ══════════════════════════════════════════════════════════════════════════
# Logging helpers
# ══════════════════════════════════════════════════════════════════════════

class _LogTee:
    """Every byte goes to the log file.  Only filtered lines reach the terminal."""

    # Keywords that earn a line a spot on the terminal during the run
    _SHOW = frozenset({
        'CONFLICT', 'ALLIANCE', 'COLLAPSE', 'REGIME SHIFT',
        'SPAWN', 'MARKET HEALED', 'GAME OVER',
        '[Simulation interrupted', 'All regimes have fallen',
    })

    passthrough: bool = False   # True → show everything (used for final report)

    def __init__(self, log_fh, real_stdout):
        self._log  = log_fh
        self._real = real_stdout
        self._buf  = ''

    def write(self, text: str) -> None:
        self._log.write(text)
        self._log.flush()
        self._buf += text
        while '\n' in self._buf:
            line, self._buf = self._buf.split('\n', 1)
            show = self.passthrough or (
                any(kw in line for kw in self._SHOW)
                and '│' not in line   # skip box-border lines (│)
            )
            if show:
                self._real.write(line + '\n')
                self._real.flush()

    def flush(self) -> None:
        self._log.flush()

    def fileno(self) -> int:
        return self._real.fileno()


def _trim_event_log(event_log: list) -> None:
    if len(event_log) > config.EVENT_LOG_MAX:
        del event_log[:len(event_log) - config.EVENT_LOG_MAX]


def final_report(world: World, turns: int) -> None:
    """Print the end-of-run fundamentals table."""
    print(f"\n{'═' * 78}")
    print(f"  FINAL REPORT — world {world.id}  after {world.step}/{turns} turns")
    print(f"{'═' * 78}")
    g = world.globals
    print(f"  Globals  GG {g.GG:+.2f}  IR {g.IR * 100:.1f}%  RA {g.RA:+.2f}  "
          f"ES {g.ES:+.2f}  TS {g.TS:+.2f}  CS {g.CS:+.2f}")
    print(f"  {'Name':<10} {'Type':<14} {'CI':>6} {'Land':>6} {'PopDen':>7} "
          f"{'EconAct':>8} {'Tech':>6} {'Stab':>6} {'Wealth':>7} {'Trade':>6}")
    for R in world.regimes:
        E = R.externals
        star = '*' if R.is_player else ' '
        print(f" {star}{R.name:<10} {R.type.label:<14} {R.ci:6.2f} {E.LS:6.2f} "
              f"{E.PD:7.2f} {E.EA:8.2f} {E.TA:6.2f} {E.PS:6.2f} "
              f"{R.wealth:7.2f} {R.trade_open:6.2f}")
    print(f"\n  Alliances: {len(world.alliances)}   "
          f"Conflicts logged: {len(world.conflict_log)}   "
          f"Fallen: {len(world.fall_reasons)}")
    for rid, reason in world.fall_reasons.items():
        print(f"    ✝ R-{rid}: {reason.text}")
    if world.player_fall is not None:
        print(f"  Player regime fell at turn {world.ended_at}: {world.player_fall.text}")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='polity_sim',
        description='Run the regime turn simulation from the command line.',
    )
    parser.add_argument('--seed', type=int, default=None,
                        help='Seed for the random generator (omit for a fresh run)')
    parser.add_argument('--regimes', type=int, default=config.DEFAULT_REGIMES,
                        help=f'Number of regimes at creation (default {config.DEFAULT_REGIMES})')
    parser.add_argument('--turns', type=int, default=config.TURNS,
                        help=f'Number of turns to simulate (default {config.TURNS})')
    parser.add_argument('--rules', default=None,
                        help='JSON rules file overlaid on the defaults')
    parser.add_argument('--condition', default='baseline',
                        help='Experiment condition label written to the metrics files')
    parser.add_argument('--difficulty', choices=sorted(config.DIFFICULTY), default=None,
                        help='Pacing preset for turn length, volatility and shocks')
    parser.add_argument('--select', choices=('rand', 'largest', 'wealthiest', 'techiest'),
                        default=None, help='Seat a player regime by this rule')
    parser.add_argument('--metrics-dir', default=None,
                        help='Write per-turn CSV metrics into this directory')
    parser.add_argument('--dashboard', action='store_true',
                        help='Write dashboard_data.json for the live dashboard')
    return parser.parse_args(argv)


# ══════════════════════════════════════════════════════════════════════════
# Entry point
# ══════════════════════════════════════════════════════════════════════════

def run(argv=None) -> World:
    from .player import mark_game_over_if_needed, start_game

    args  = _parse_args(argv)
    rules = load_rules(args.rules) if args.rules else DEFAULT_RULES
    rng   = make_rng(args.seed)
    turns = args.turns

    # ── Set up file logging ────────────────────────────────────────────────
    pathlib.Path('logs').mkdir(exist_ok=True)
    _ts       = datetime.now().strftime('%Y%m%d_%H%M%S')
    _log_path = f'logs/run_{_ts}.txt'
    _log_fh   = open(_log_path, 'w', encoding='utf-8')
    _real     = sys.stdout
    _tee      = _LogTee(_log_fh, _real)
    sys.stdout = _tee

    _real.write(f"Log → {_log_path}\n")
    _real.write(f"Running {turns}-turn simulation  "
                f"(conflicts / alliances / collapses show below)\n\n")

    event_log: list = []
    world = start_game(args.regimes, select=args.select, difficulty=args.difficulty,
                       rng=rng, rules=rules)
    metrics = (MetricsLogger(args.seed if args.seed is not None else 0,
                             args.condition, args.metrics_dir)
               if args.metrics_dir else None)
    _turn_times: list = []
    _print_every = config.PRINT_EVERY if turns > 50 else 1

    try:
        for t in range(1, turns + 1):
            _t0 = time.time()
            _log_len_before = len(event_log)
            step_world(world, rng, rules=rules, event_log=event_log)
            enforce_seats(world, rng, rules, event_log)
            for line in event_log[_log_len_before:]:
                print(line)
            if metrics is not None:
                metrics.record_turn(world)
                metrics.record_events(world)

            _turn_times.append(time.time() - _t0)
            if args.dashboard and t % dashboard_bridge.DASHBOARD_WRITE_EVERY == 0:
                dashboard_bridge.write_dashboard_snapshot(world, _turn_times, event_log)

            if t % _print_every == 0:
                _real.write(f'  [{t:{len(str(turns))}d}/{turns}]  Regimes:{len(world.regimes):2d}  '
                            f'Conflicts:{len(world.conflicts)}  '
                            f'Alliances:{len(world.alliances)}  '
                            f'Fallen:{len(world.fall_reasons)}\n')
                _real.flush()

            if mark_game_over_if_needed(world):
                print(f"Turn {world.step:04d}: ☠ GAME OVER — player regime "
                      f"{world.player['name']} has fallen")
                break
            if not world.regimes:
                print('All regimes have fallen.')
                break
            _trim_event_log(event_log)

    except KeyboardInterrupt:
        print("\n\n[Simulation interrupted by user]\n")

    finally:
        _real.write('\n')
        _tee.passthrough = True
        final_report(world, turns)
        if metrics is not None:
            metrics.finalize(world)
            metrics.close()
        if args.dashboard:
            dashboard_bridge.write_dashboard_snapshot(world, _turn_times, event_log)
        sys.stdout = _real
        _log_fh.close()
        print(f"\nFull log saved → {_log_path}")
    return world


# ══════════════════════════════════════════════════════════════════════════
if __name__ == '__main__':
    run()
