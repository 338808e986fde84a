# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
metrics.py — Per-Turn Metrics Logger for the regime simulation.

Collects per-turn world metrics and discrete events (conflicts, alliances,
collapses, regime shifts), writing them to CSV files for batch analysis.
"""

import csv
import os
import time
import tracemalloc
from pathlib import Path

from .model import RegimeType


def gini(values) -> float:
    """Gini coefficient of non-negative values (0 = equal, →1 = concentrated)."""
    vals = sorted(max(0.0, float(v)) for v in values)
    n = len(vals)
    if n == 0:
        return 0.0
    total = sum(vals)
    if total == 0:
        return 0.0
    cum = sum((2 * (i + 1) - n - 1) * v for i, v in enumerate(vals))
    return round(cum / (n * total), 4)


class MetricsLogger:
    """Collects per-turn simulation metrics and writes them to CSV."""

    def __init__(self, seed: int, condition: str, output_dir: str = "data"):
        self.seed = seed
        self.condition = condition
        self.output_dir = output_dir

        Path(output_dir).mkdir(parents=True, exist_ok=True)

        self._metrics_path = os.path.join(output_dir, f"metrics_seed_{seed}.csv")
        self._events_path = os.path.join(output_dir, f"events_seed_{seed}.csv")

        self._metrics_fh = open(self._metrics_path, 'w', newline='', encoding='utf-8')
        self._events_fh = open(self._events_path, 'w', newline='', encoding='utf-8')

        self._metrics_writer = csv.writer(self._metrics_fh)
        self._events_writer = csv.writer(self._events_fh)

        self._metrics_writer.writerow([
            'seed', 'turn', 'regime_count', 'conflicts', 'alliance_count',
            'mean_wealth', 'min_wealth', 'max_wealth', 'gini',
            'mean_stability', 'mean_price',
            'democratic', 'authoritarian', 'tribal', 'anarchic',
            'GG', 'IR', 'RA',
        ])
        self._metrics_fh.flush()

        self._events_writer.writerow([
            'seed', 'turn', 'event_type', 'actor', 'target', 'detail',
        ])
        self._events_fh.flush()

        # Cumulative counters
        self.total_conflicts = 0
        self.total_alliances = 0
        self.total_collapses = 0
        self.total_regime_shifts = 0

        # Running stats for finalize
        self._initial_regimes = None
        self._peak_regimes = 0
        self._gini_values = []
        self._seen_alliances = set()
        self._seen_falls = set()
        self._last_types = {}

        self.start_time = time.time()
        tracemalloc.start()

    # ──────────────────────────────────────────────────────────────────────
    # Per-turn row
    # ──────────────────────────────────────────────────────────────────────

    def record_turn(self, world):
        """Called once per turn from the main loop.  Writes one CSV row."""
        try:
            regs = world.regimes
            n = len(regs)
            if self._initial_regimes is None:
                self._initial_regimes = n
            self._peak_regimes = max(self._peak_regimes, n)

            wealths = [R.wealth for R in regs]
            mean_w = round(sum(wealths) / n, 4) if n else 0.0
            g = gini(wealths)
            self._gini_values.append(g)
            mean_ps = round(sum(R.externals.PS for R in regs) / n, 4) if n else 0.0
            prices = [a.price for R in regs for a in R.market.values()]
            mean_price = round(sum(prices) / len(prices), 4) if prices else 0.0
            types = {t: sum(1 for R in regs if R.type is t) for t in RegimeType}

            G = world.globals
            self._metrics_writer.writerow([
                self.seed, world.step, n, len(world.conflicts), len(world.alliances),
                mean_w, round(min(wealths, default=0.0), 4),
                round(max(wealths, default=0.0), 4), g,
                mean_ps, mean_price,
                types[RegimeType.DEMOCRATIC], types[RegimeType.AUTHORITARIAN],
                types[RegimeType.TRIBAL], types[RegimeType.ANARCHIC],
                round(G.GG, 4), round(G.IR, 4), round(G.RA, 4),
            ])

            if world.step % 100 == 0:
                self._metrics_fh.flush()

        except Exception:
            pass  # Never crash the simulation

    # ──────────────────────────────────────────────────────────────────────
    # Discrete event recording
    # ──────────────────────────────────────────────────────────────────────

    def record_event(self, turn, event_type, actor="", target="", detail=""):
        """Write one event row and bump the matching counter.

        event_type is one of:
            'conflict', 'alliance', 'collapse', 'regime_shift'
        """
        try:
            self._events_writer.writerow([
                self.seed, turn, event_type, actor, target, detail,
            ])
            self._events_fh.flush()

            if event_type == 'conflict':
                self.total_conflicts += 1
            elif event_type == 'alliance':
                self.total_alliances += 1
            elif event_type == 'collapse':
                self.total_collapses += 1
            elif event_type == 'regime_shift':
                self.total_regime_shifts += 1

        except Exception:
            pass

    def record_events(self, world):
        """Diff *world* against what has been seen and record everything new."""
        try:
            t = world.step
            for ev in world.conflicts:
                self.record_event(t, 'conflict', ev.from_id, ev.to_id, f"{ev.dLS:.4f}")
            for pair in world.alliances - self._seen_alliances:
                a, b = sorted(pair)
                self.record_event(t, 'alliance', a, b)
            self._seen_alliances |= set(world.alliances)
            for rid in set(world.fall_reasons) - self._seen_falls:
                reason = world.fall_reasons[rid]
                self.record_event(t, 'collapse', reason.by or '', rid, reason.text)
            self._seen_falls |= set(world.fall_reasons)
            for R in world.regimes:
                prev = self._last_types.get(R.id)
                if prev is not None and prev is not R.type:
                    self.record_event(t, 'regime_shift', R.id, '', f"{prev.value}->{R.type.value}")
                self._last_types[R.id] = R.type
        except Exception:
            pass

    # ──────────────────────────────────────────────────────────────────────
    # Finalize — run-level summary
    # ──────────────────────────────────────────────────────────────────────

    def finalize(self, world):
        """Called once at end of simulation.  Appends one row to
        <output_dir>/run_summaries.csv.
        """
        try:
            wall_clock = round(time.time() - self.start_time, 2)

            try:
                peak_ram = round(
                    tracemalloc.get_traced_memory()[1] / (1024 * 1024), 2
                )
            except Exception:
                peak_ram = 0.0

            try:
                tracemalloc.stop()
            except Exception:
                pass

            mean_gini = 0.0
            final_gini = 0.0
            if self._gini_values:
                mean_gini = round(sum(self._gini_values) / len(self._gini_values), 4)
                final_gini = round(self._gini_values[-1], 4)

            summary_path = os.path.join(self.output_dir, "run_summaries.csv")
            file_exists = os.path.isfile(summary_path)
            with open(summary_path, 'a', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                if not file_exists:
                    writer.writerow([
                        'seed', 'condition', 'turns', 'initial_regimes',
                        'final_regimes', 'peak_regimes',
                        'total_conflicts', 'total_alliances',
                        'total_collapses', 'total_regime_shifts',
                        'mean_gini', 'final_gini', 'player_done',
                        'wall_clock_seconds', 'peak_ram_mb',
                    ])
                writer.writerow([
                    self.seed, self.condition, world.step,
                    self._initial_regimes or 0, len(world.regimes),
                    self._peak_regimes,
                    self.total_conflicts, self.total_alliances,
                    self.total_collapses, self.total_regime_shifts,
                    mean_gini, final_gini, int(bool(world.done)),
                    wall_clock, peak_ram,
                ])

        except Exception:
            pass

    # ──────────────────────────────────────────────────────────────────────
    # Cleanup
    # ──────────────────────────────────────────────────────────────────────

    def close(self):
        """Flush and close all CSV file handles.  Call after finalize()."""
        for fh in (self._metrics_fh, self._events_fh):
            try:
                fh.flush()
                fh.close()
            except Exception:
                pass
