"""
test_player.py — pytest suite for player.py
============================================
Covers: start_game / select_player, game-over bookkeeping, meter regeneration,
and the boost / trade / covert acts applied through apply_player_acts().
"""

import pytest

from polity_sim.config import Rules
from polity_sim.model import Category, FallReason
from polity_sim.player import (MAX_ACTS, PC_MAX, apply_player_acts,
                               is_player_alive, mark_game_over_if_needed,
                               regen_meters, select_player, start_game,
                               step_game)
from polity_sim.sim import make_rng


# ─────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────

class _FixedRng:
    """Stands in for the generator where a covert roll must be forced."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


@pytest.fixture
def seated(make_regime, make_world):
    me, them = make_regime('me'), make_regime('them')
    me.is_player = True
    world = make_world(me, them)
    world.player = {'id': 'me', 'name': me.name, 'rule': 'rand'}
    world.meters = {'PC': 5.0, 'HC': 5.0, 'HEAT': 0.0}
    return world, me, them


# ─────────────────────────────────────────────────────
# Seating / lifecycle
# ─────────────────────────────────────────────────────

class TestStartGame:
    def test_largest_rule(self, rng):
        world = start_game(5, select='largest', rng=rng)
        biggest = max(world.regimes, key=lambda R: R.externals.LS)
        assert world.player['id'] == biggest.id
        assert world.player['rule'] == 'largest'
        assert biggest.is_player
        assert sum(R.is_player for R in world.regimes) == 1
        assert world.meters == {'PC': 1.0, 'HC': 1.0, 'HEAT': 0.0}

    def test_wealthiest_and_techiest(self, rng):
        world = start_game(4, select=None, rng=rng)
        world.regimes[2].wealth = 3.0
        world.regimes[3].externals.TA = 0.99
        assert select_player(world, 'wealthiest') is world.regimes[2]
        assert select_player(world, 'techiest') is world.regimes[3]

    def test_no_player(self, rng):
        world = start_game(3, select=None, rng=rng)
        assert world.player is None
        assert is_player_alive(world)
        assert mark_game_over_if_needed(world) is False

    def test_difficulty_applied(self, rng):
        world = start_game(3, difficulty='MAX', rng=rng)
        assert world.globals.difficulty == 'MAX'
        assert world.globals.substeps == 6

    def test_unknown_rule_rejected(self, rng):
        with pytest.raises(ValueError):
            start_game(3, select='bravest', rng=rng)

    def test_empty_world_rejected(self, make_world):
        with pytest.raises(ValueError):
            select_player(make_world())


class TestGameOver:
    def test_fallen_player_ends_game(self, seated):
        world, me, them = seated
        world.step = 12
        world.regimes = [them]
        world.fall_reasons['me'] = FallReason("defeated by them", by='them')
        assert not is_player_alive(world)
        assert mark_game_over_if_needed(world) is True
        assert world.done and world.ended_at == 12
        assert world.player_fall.by == 'them'

    def test_living_player_continues(self, seated):
        world, _, _ = seated
        assert mark_game_over_if_needed(world) is False
        assert world.ended_at is None

    def test_step_game_advances(self, rng):
        world = start_game(4, select='rand', rng=rng)
        step_game(world, [], rng)
        assert world.step == 1

    def test_seats_refilled_over_long_game(self, rng):
        world = start_game(4, select=None, rng=rng)
        log = []
        for _ in range(100):
            step_game(world, [], rng, event_log=log)
            assert len(world.regimes) >= Rules().seats.minSeats
        assert world.step == 100
        assert world.fall_reasons
        assert any("SPAWN" in line for line in log)
        assert len({R.id for R in world.regimes} | set(world.fall_reasons)) == \
            len(world.regimes) + len(world.fall_reasons)

    def test_step_game_after_game_over_is_noop(self, seated, rng):
        world, _, _ = seated
        world.done = True
        step_game(world, [{'type': 'boost', 'ps': 0.01}], rng)
        assert world.step == 0


# ─────────────────────────────────────────────────────
# Meters
# ─────────────────────────────────────────────────────

class TestMeters:
    def test_regen(self, seated):
        world, me, _ = seated
        world.meters = {'PC': 1.0, 'HC': 1.0, 'HEAT': 1.0}
        me.trade_open = 0.5
        regen_meters(world)
        assert world.meters['PC'] == pytest.approx(1.0 + 0.1 * (0.6 * 0.5 + 0.4 * 0.5))
        assert world.meters['HC'] == pytest.approx(1.0 + 0.1 * (0.7 * 1.0 + 0.3 * 0.5))
        assert world.meters['HEAT'] == pytest.approx(0.95)

    def test_regen_capped(self, seated):
        world, _, _ = seated
        regen_meters(world)
        assert world.meters['PC'] == PC_MAX


# ─────────────────────────────────────────────────────
# Acts
# ─────────────────────────────────────────────────────

class TestActs:
    def test_boost_spends_pc(self, seated, rng):
        world, me, _ = seated
        applied, meters = apply_player_acts(world, [{'type': 'boost', 'ps': 0.01}], rng)
        assert applied == 1
        assert me.externals.PS == pytest.approx(0.51)
        assert meters['PC'] == pytest.approx(5.0 - 1.15)
        assert meters['HC'] == pytest.approx(5.0)

    def test_unaffordable_boost_skipped(self, seated, rng):
        world, me, _ = seated
        world.meters['PC'] = 1.0
        applied, _ = apply_player_acts(world, [{'type': 'boost', 'ps': 0.03}], rng)
        assert applied == 0
        assert me.externals.PS == pytest.approx(0.5)

    def test_at_most_eight_acts(self, seated, rng):
        world, _, _ = seated
        acts = [{'type': 'boost', 'ps': 0.001}] * (MAX_ACTS + 2)
        applied, _ = apply_player_acts(world, acts, rng)
        assert applied == MAX_ACTS

    def test_unknown_acts_ignored(self, seated, rng):
        world, _, _ = seated
        acts = [None, {}, {'type': 'bribe'}, {'type': 'trade', 'to': 'nobody', 'cat': 'M'}]
        assert apply_player_acts(world, acts, rng)[0] == 0

    def test_trade_by_name(self, seated, rng):
        world, me, them = seated
        me.market[Category.M].Inv = 1.0
        them.market[Category.M].Inv = 0.5
        log = []
        act = {'type': 'trade', 'to': them.name, 'cat': 'm', 'vol': 0.01}
        applied, meters = apply_player_acts(world, [act], rng, event_log=log)
        assert applied == 1
        assert me.market[Category.M].Inv == pytest.approx(0.99)
        assert them.market[Category.M].Inv == pytest.approx(0.51)
        assert meters['HC'] == pytest.approx(5.0 - 0.5175)
        assert "ships" in log[0]

    def test_trade_refused_when_partner_stocked(self, seated, rng):
        world, me, them = seated
        them.market[Category.F].Inv = 1.2
        act = {'type': 'trade', 'to': 'them', 'cat': 'F', 'vol': 0.01}
        assert apply_player_acts(world, [act], rng)[0] == 0

    def test_covert_exposed(self, seated):
        world, _, them = seated
        log = []
        act = {'type': 'covert', 'to': 'them', 'kind': 'destabilize', 'x': 0.005}
        applied, meters = apply_player_acts(world, [act], _FixedRng(0.0), event_log=log)
        assert applied == 1
        assert them.externals.PS == pytest.approx(0.5 - 0.005 + 0.0025)
        assert world.conflicts == []
        assert len(world.conflict_log) == 1
        assert world.conflict_log[0].kind == 'covert_exposed'
        assert meters['HEAT'] > 0.0
        assert any("COVERT EXPOSED" in line for line in log)

    def test_covert_unseen(self, seated):
        world, me, them = seated
        act = {'type': 'covert', 'to': 'them', 'kind': 'steal_tech', 'x': 0.01}
        apply_player_acts(world, [act], _FixedRng(0.999))
        assert world.conflict_log == []
        assert them.externals.TA == pytest.approx(0.5 - 0.006)
        assert me.externals.TA == pytest.approx(0.5 + 0.006 * 0.6)

    def test_no_player_no_acts(self, rng, make_regime, make_world):
        world = make_world(make_regime('a'), make_regime('b'))
        assert apply_player_acts(world, [{'type': 'boost', 'ps': 0.01}], rng)[0] == 0


class TestSeededGame:
    def test_same_seed_same_seat(self):
        a = start_game(6, select='rand', rng=make_rng(3))
        b = start_game(6, select='rand', rng=make_rng(3))
        assert a.player == b.player
