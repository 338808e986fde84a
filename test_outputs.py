"""
test_outputs.py — pytest suite for the run-time outputs
========================================================
Covers: MetricsLogger CSVs, the dashboard JSON snapshot, the batch runner's
seed / command helpers, the stdout tee, and the run() CLI end-to-end path.
"""

import csv
import io
import json

import pytest

import run_experiments
from polity_sim import dashboard_bridge
from polity_sim.metrics import MetricsLogger, gini
from polity_sim.model import FallReason
from polity_sim.sim import _LogTee, final_report, run, step_world
from polity_sim.world import create_world


# ─────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────

def _rows(path):
    with open(path, newline='', encoding='utf-8') as f:
        return list(csv.reader(f))


# ─────────────────────────────────────────────────────
# gini
# ─────────────────────────────────────────────────────

class TestGini:
    def test_equal(self):
        assert gini([1.0, 1.0, 1.0]) == 0.0

    def test_concentrated(self):
        assert gini([0.0, 0.0, 1.0]) == pytest.approx(0.6667)

    def test_empty_and_zero(self):
        assert gini([]) == 0.0
        assert gini([0.0, 0.0]) == 0.0


# ─────────────────────────────────────────────────────
# MetricsLogger
# ─────────────────────────────────────────────────────

class TestMetricsLogger:
    def test_turn_rows_and_summary(self, tmp_path, rng):
        world = create_world(4, rng)
        ml = MetricsLogger(seed=3, condition='baseline', output_dir=str(tmp_path))
        for _ in range(5):
            step_world(world, rng)
            ml.record_turn(world)
            ml.record_events(world)
        ml.finalize(world)
        ml.close()

        metrics = _rows(tmp_path / "metrics_seed_3.csv")
        assert metrics[0][:3] == ['seed', 'turn', 'regime_count']
        assert len(metrics) == 6
        assert [r[1] for r in metrics[1:]] == ['1', '2', '3', '4', '5']

        summary = _rows(tmp_path / "run_summaries.csv")
        assert len(summary) == 2
        assert summary[1][0] == '3' and summary[1][1] == 'baseline'
        assert summary[1][2] == '5'

    def test_summary_appends(self, tmp_path, rng):
        for seed in (1, 2):
            world = create_world(3, rng)
            ml = MetricsLogger(seed, 'baseline', str(tmp_path))
            ml.finalize(world)
            ml.close()
        assert len(_rows(tmp_path / "run_summaries.csv")) == 3

    def test_events_diffed_once(self, tmp_path, rng):
        world = create_world(3, rng)
        a, b, c = (R.id for R in world.regimes)
        ml = MetricsLogger(1, 'x', str(tmp_path))
        world.alliances.add(frozenset((a, b)))
        world.fall_reasons[c] = FallReason("defeated by " + a, by=a)
        ml.record_events(world)
        ml.record_events(world)
        ml.finalize(world)
        ml.close()

        events = _rows(tmp_path / "events_seed_1.csv")[1:]
        kinds = [e[2] for e in events]
        assert kinds.count('alliance') == 1
        assert kinds.count('collapse') == 1
        assert ml.total_alliances == 1 and ml.total_collapses == 1

    def test_bad_world_never_raises(self, tmp_path):
        ml = MetricsLogger(1, 'x', str(tmp_path))
        ml.record_turn(object())
        ml.record_events(None)
        ml.finalize(object())
        ml.close()


# ─────────────────────────────────────────────────────
# Dashboard snapshot
# ─────────────────────────────────────────────────────

class TestDashboardBridge:
    def test_snapshot_written_atomically(self, tmp_path, rng):
        dashboard_bridge.reset_history()
        world = create_world(4, rng)
        step_world(world, rng)
        path = tmp_path / "dash.json"
        dashboard_bridge.write_dashboard_snapshot(world, [0.5, 0.5], ['hello'], path=path)

        data = json.loads(path.read_text(encoding='utf-8'))
        assert data['turn'] == 1
        assert data['alive'] == len(world.regimes)
        assert data['turn_rate'] == pytest.approx(2.0)
        assert len(data['categories']) == 10
        assert all(len(r['prices']) == 10 for r in data['regimes'])
        assert data['event_tail'] == ['hello']
        assert not (tmp_path / "dash.tmp").exists()

    def test_regimes_sorted_by_wealth(self, rng):
        world = create_world(5, rng)
        for i, R in enumerate(world.regimes):
            R.wealth = 0.5 + i
        snap = dashboard_bridge.build_snapshot(world, [], [])
        wealths = [r['wealth'] for r in snap['regimes']]
        assert wealths == sorted(wealths, reverse=True)
        assert snap['turn_rate'] == 0.0

    def test_wealth_history_grows(self, rng):
        dashboard_bridge.reset_history()
        world = create_world(3, rng)
        for _ in range(3):
            step_world(world, rng)
            snap = dashboard_bridge.build_snapshot(world, [], [])
        assert [h['turn'] for h in snap['wealth_history']] == [1, 2, 3]


# ─────────────────────────────────────────────────────
# run_experiments helpers
# ─────────────────────────────────────────────────────

class TestBatchRunner:
    @pytest.mark.parametrize("spec,expected", [
        ("1-4", [1, 2, 3, 4]),
        ("1,3,5", [1, 3, 5]),
        ("42", [42]),
        ("1-2, 7", [1, 2, 7]),
    ])
    def test_parse_seed_range(self, spec, expected):
        assert run_experiments.parse_seed_range(spec) == expected

    def test_build_command(self):
        cmd = run_experiments.build_command(5, 'harsh', 80, ['--difficulty', 'MAX'],
                                            output_dir='out', rules='harsh.json')
        assert cmd[1:3] == ['-m', 'polity_sim']
        assert cmd[cmd.index('--seed') + 1] == '5'
        assert cmd[cmd.index('--turns') + 1] == '80'
        assert cmd[cmd.index('--metrics-dir') + 1] == 'out'
        assert cmd[cmd.index('--rules') + 1] == 'harsh.json'
        assert cmd[-2:] == ['--difficulty', 'MAX']

    def test_verify_reports_missing(self, tmp_path, capsys):
        plan = tmp_path / "plan.json"
        plan.write_text(json.dumps({'conditions': [{'name': 'b', 'seeds': '1'}]}),
                        encoding='utf-8')
        assert run_experiments.verify_outputs(str(plan), str(tmp_path)) is False
        assert "missing" in capsys.readouterr().out

    def test_load_plan_defaults(self, tmp_path):
        plan = tmp_path / "plan.json"
        plan.write_text(json.dumps({
            'default_turns': 80,
            'conditions': [{'name': 'a', 'seeds': '1-3'},
                           {'name': 'b', 'seeds': 7, 'turns': 20, 'rules': 'r.json',
                            'extra_args': '--difficulty MAX'}],
        }), encoding='utf-8')
        a, b = run_experiments.load_plan(str(plan))
        assert (a.seeds, a.turns, a.rules, a.extra_args) == ([1, 2, 3], 80, None, [])
        assert (b.seeds, b.turns, b.rules) == ([7], 20, 'r.json')
        assert b.extra_args == ['--difficulty', 'MAX']

    def test_condition_stats_from_summaries(self, tmp_path, rng):
        for seed, turns in ((1, 4), (2, 6)):
            world = create_world(4, rng)
            world.step = turns
            ml = MetricsLogger(seed, 'calm', str(tmp_path))
            ml.finalize(world)
            ml.close()
        summaries = run_experiments.read_summaries(str(tmp_path))
        cond = run_experiments.Condition('calm', [1, 2, 3])
        stats = run_experiments.condition_stats(cond, summaries)
        assert stats['runs'] == 2
        assert stats['mean_turns'] == pytest.approx(5.0)
        assert stats['mean_final_regimes'] == pytest.approx(4.0)
        assert stats['player_lost'] == 0

    def test_stats_without_summaries(self, tmp_path):
        cond = run_experiments.Condition('x', [1])
        summaries = run_experiments.read_summaries(str(tmp_path))
        assert summaries == {}
        assert run_experiments.condition_stats(cond, summaries) == {'runs': 0}

    def test_verify_passes(self, tmp_path):
        plan = tmp_path / "plan.json"
        plan.write_text(json.dumps({'conditions': [{'name': 'b', 'seeds': '1'}]}),
                        encoding='utf-8')
        for name in ("metrics_seed_1.csv", "events_seed_1.csv", "run_summaries.csv"):
            (tmp_path / name).write_text("x\n", encoding='utf-8')
        assert run_experiments.verify_outputs(str(plan), str(tmp_path)) is True


# ─────────────────────────────────────────────────────
# Terminal tee / report
# ─────────────────────────────────────────────────────

class TestLogTee:
    def test_filters_terminal_lines(self):
        log, term = io.StringIO(), io.StringIO()
        tee = _LogTee(log, term)
        tee.write("Turn 0001: ⚔ CONFLICT — a seizes land\n")
        tee.write("Turn 0001: 🤝 Trade: a → b\n")
        tee.write("partial")
        assert "CONFLICT" in term.getvalue()
        assert "Trade" not in term.getvalue()
        assert "Trade" in log.getvalue() and "partial" in log.getvalue()

    def test_passthrough(self):
        log, term = io.StringIO(), io.StringIO()
        tee = _LogTee(log, term)
        tee.passthrough = True
        tee.write("anything\n")
        assert term.getvalue() == "anything\n"

    def test_final_report(self, rng, capsys):
        world = create_world(3, rng)
        world.fall_reasons['zz'] = FallReason("population & territory too small")
        final_report(world, 10)
        out = capsys.readouterr().out
        assert "FINAL REPORT" in out
        assert "population & territory too small" in out


# ─────────────────────────────────────────────────────
# run() end-to-end
# ─────────────────────────────────────────────────────

class TestRun:
    def test_cli_run_writes_outputs(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        world = run(['--seed', '4', '--turns', '6', '--regimes', '4',
                     '--metrics-dir', 'data', '--dashboard'])
        assert 1 <= world.step <= 6
        assert list((tmp_path / "logs").glob("run_*.txt"))
        assert (tmp_path / "data" / "metrics_seed_4.csv").exists()
        assert (tmp_path / "data" / "run_summaries.csv").exists()
        assert (tmp_path / "dashboard_data.json").exists()
        assert "Full log saved" in capsys.readouterr().out

    def test_cli_long_run_keeps_seats(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        world = run(['--seed', '11', '--turns', '100', '--regimes', '4'])
        assert world.step == 100
        assert len(world.regimes) >= 4
        assert "All regimes have fallen" not in capsys.readouterr().out

    def test_cli_with_player_and_rules(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "rules.json").write_text(
            json.dumps({'conflict': {'pMax': 0.0}}), encoding='utf-8')
        world = run(['--seed', '9', '--turns', '3', '--select', 'largest',
                     '--difficulty', 'MAX', '--rules', 'rules.json'])
        assert world.player is not None
        assert world.globals.difficulty == 'MAX'
        assert world.conflict_log == []
