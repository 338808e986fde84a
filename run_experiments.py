#!/usr/bin/env python3
# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
run_experiments.py — Batch runner for regime simulation experiments.

Usage examples
──────────────
    # Seeds 1-5, default (baseline) condition
    python run_experiments.py --seeds 1-5

    # Named condition with a rules overlay and harder pacing
    python run_experiments.py --seeds 1-20 --condition harsh --rules harsh.json --extra-args "--difficulty MAX"

    # From an experiment plan file
    python run_experiments.py --plan experiments.json

    # Verify outputs exist after a batch
    python run_experiments.py --verify --plan experiments.json

Plan format
───────────
    {"default_turns": 200,
     "conditions": [{"name": "baseline", "seeds": "1-10"},
                    {"name": "harsh", "seeds": "1-10", "rules": "harsh.json",
                     "extra_args": "--difficulty MAX --regimes 8"}]}

After every condition the runner reads back the rows the runs appended to
<output-dir>/run_summaries.csv and prints turns reached, surviving regimes
and collapses per condition.
"""

import argparse
import csv
import json
import os
import subprocess
import sys
import time
from dataclasses import dataclass, field


# ── Plan ───────────────────────────────────────────────────────────────────

@dataclass
class Condition:
    name: str
    seeds: list
    turns: int = 200
    rules: str = None
    extra_args: list = field(default_factory=list)

    @classmethod
    def from_plan_entry(cls, entry: dict, default_turns: int = 200) -> 'Condition':
        extra = entry.get('extra_args', [])
        if isinstance(extra, str):
            extra = extra.split()
        return cls(
            name=entry['name'],
            seeds=parse_seed_range(str(entry.get('seeds', '1-5'))),
            turns=int(entry.get('turns', default_turns)),
            rules=entry.get('rules'),
            extra_args=list(extra),
        )


def parse_seed_range(spec: str) -> list:
    """Parse a seed specification like '1-20' or '1,3,5' or '42' into a list.

    Supports:
        '1-20'      → [1, 2, ..., 20]
        '1,3,5,10'  → [1, 3, 5, 10]
        '42'         → [42]
    """
    seeds = []
    for part in spec.split(','):
        part = part.strip()
        if '-' in part:
            lo, hi = part.split('-', 1)
            seeds.extend(range(int(lo), int(hi) + 1))
        else:
            seeds.append(int(part))
    return seeds


def load_plan(plan_path: str) -> list:
    """Read a plan file into a list of Conditions."""
    with open(plan_path, 'r', encoding='utf-8') as f:
        plan = json.load(f)
    default_turns = int(plan.get('default_turns', 200))
    return [Condition.from_plan_entry(c, default_turns)
            for c in plan.get('conditions', [])]


def build_command(seed: int, condition: str, turns: int, extra_args: list,
                  output_dir: str = 'data', rules: str = None) -> list:
    cmd = [
        sys.executable, '-m', 'polity_sim',
        '--seed', str(seed),
        '--condition', condition,
        '--turns', str(turns),
        '--metrics-dir', output_dir,
    ]
    if rules:
        cmd += ['--rules', rules]
    return cmd + list(extra_args)


# ── Running ────────────────────────────────────────────────────────────────

def _run_seed(cond: Condition, seed: int, output_dir: str) -> dict:
    cmd = build_command(seed, cond.name, cond.turns, cond.extra_args,
                        output_dir, cond.rules)
    print(f'  [{cond.name}] seed={seed}  ...', end='', flush=True)
    t0 = time.time()
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True,
                              encoding='utf-8', errors='replace',
                              timeout=max(600, cond.turns))
        rc, stderr = proc.returncode, proc.stderr.strip()
    except subprocess.TimeoutExpired:
        rc, stderr = -1, 'timed out'

    elapsed = round(time.time() - t0, 1)
    print(f'  {"OK" if rc == 0 else f"FAIL(rc={rc})"}  ({elapsed}s)')
    if rc != 0:
        for line in stderr.splitlines()[-10:]:
            print(f'    | {line}')
    return {'seed': seed, 'condition': cond.name, 'ok': rc == 0,
            'elapsed': elapsed, 'returncode': rc}


def run_condition(cond: Condition, output_dir: str = 'data') -> list:
    """Run every seed of *cond* sequentially; returns one result dict per seed."""
    print(f'\n── Condition: {cond.name}  ({len(cond.seeds)} seeds, {cond.turns} turns) ──')
    results = [_run_seed(cond, seed, output_dir) for seed in cond.seeds]
    print_condition_report(cond, results, read_summaries(output_dir))
    return results


def run_plan(conditions: list, output_dir: str = 'data') -> list:
    all_results = []
    for cond in conditions:
        all_results.extend(run_condition(cond, output_dir))
    ok_total = sum(1 for r in all_results if r['ok'])
    print(f'\n{"=" * 60}')
    print(f'  Overall: {ok_total}/{len(all_results)} OK, '
          f'{len(all_results) - ok_total} FAIL')
    print(f'{"=" * 60}\n')
    return all_results


# ── Summaries ──────────────────────────────────────────────────────────────

def read_summaries(output_dir: str = 'data') -> dict:
    """(condition, seed) → latest run_summaries.csv row, values left as strings."""
    path = os.path.join(output_dir, 'run_summaries.csv')
    if not os.path.isfile(path):
        return {}
    with open(path, newline='', encoding='utf-8') as f:
        return {(row['condition'], int(row['seed'])): row for row in csv.DictReader(f)}


def condition_stats(cond: Condition, summaries: dict) -> dict:
    rows = [summaries[(cond.name, s)] for s in cond.seeds if (cond.name, s) in summaries]
    if not rows:
        return {'runs': 0}

    def mean(key):
        return round(sum(float(r[key]) for r in rows) / len(rows), 2)

    return {
        'runs': len(rows),
        'mean_turns': mean('turns'),
        'mean_final_regimes': mean('final_regimes'),
        'mean_collapses': mean('total_collapses'),
        'mean_gini': mean('mean_gini'),
        'player_lost': sum(int(r['player_done']) for r in rows),
    }


def print_condition_report(cond: Condition, results: list, summaries: dict) -> None:
    ok_n = sum(1 for r in results if r['ok'])
    print(f'   Done: {ok_n} OK, {len(results) - ok_n} FAIL  '
          f'({sum(r["elapsed"] for r in results):.0f}s total)')
    stats = condition_stats(cond, summaries)
    if stats['runs']:
        print(f'   turns {stats["mean_turns"]}  regimes {stats["mean_final_regimes"]}  '
              f'collapses {stats["mean_collapses"]}  gini {stats["mean_gini"]}  '
              f'player lost {stats["player_lost"]}/{stats["runs"]}')


# ── Verification ───────────────────────────────────────────────────────────

def expected_outputs(conditions: list, output_dir: str = 'data'):
    """Yield (condition, seed, path) for every file a finished plan should leave."""
    for cond in conditions:
        for seed in cond.seeds:
            for stem in ('metrics', 'events'):
                yield cond.name, seed, os.path.join(output_dir, f'{stem}_seed_{seed}.csv')
    yield '*', '*', os.path.join(output_dir, 'run_summaries.csv')


def verify_outputs(plan_path: str, output_dir: str = 'data') -> bool:
    """Check that expected CSV files exist for every condition × seed."""
    missing = [m for m in expected_outputs(load_plan(plan_path), output_dir)
               if not os.path.isfile(m[2])]
    if not missing:
        print('  ✓ All expected outputs found.')
        return True
    print(f'\n  ✗ {len(missing)} missing output(s):')
    for cond, seed, path in missing[:20]:
        print(f'    [{cond}] seed={seed}: {path}')
    if len(missing) > 20:
        print(f'    ... and {len(missing) - 20} more')
    return False


# ── Main ───────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Batch runner for regime simulation experiments')

    parser.add_argument('--seeds', type=str, default=None,
                        help='Seed range, e.g. "1-100" or "1,5,10"')
    parser.add_argument('--condition', type=str, default='baseline',
                        help='Condition label')
    parser.add_argument('--turns', type=int, default=200,
                        help='Turns per run (default: 200)')
    parser.add_argument('--rules', type=str, default=None,
                        help='JSON rules overlay passed to every run')
    parser.add_argument('--extra-args', type=str, default='',
                        help='Extra CLI arguments passed to the sim (quoted string)')
    parser.add_argument('--output-dir', type=str, default='data',
                        help='Directory for metrics CSVs (default: data)')
    parser.add_argument('--plan', type=str, default=None,
                        help='Path to experiment plan JSON')
    parser.add_argument('--verify', action='store_true',
                        help='Verify output files exist (use with --plan)')

    args = parser.parse_args(argv)

    if args.verify and args.plan:
        sys.exit(0 if verify_outputs(args.plan, args.output_dir) else 1)

    if args.plan:
        conditions = load_plan(args.plan)
        print(f'\n  Experiment plan: {args.plan}  ({len(conditions)} conditions)')
        run_plan(conditions, args.output_dir)
    elif args.seeds:
        cond = Condition(args.condition, parse_seed_range(args.seeds), args.turns,
                         args.rules, args.extra_args.split())
        run_plan([cond], args.output_dir)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
