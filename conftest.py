"""
conftest.py — shared fixtures for the regime simulation test suites.
"""

import pytest

from polity_sim.model import (CATS, Asset, Endowment, Externals, Globals,
                              Market, Regime, World)
from polity_sim.sim import make_rng


def _asset(**kw) -> Asset:
    base = dict(S=1.0, D=1.0, V=0.2, L=0.5, Rk=0.3, ER=0.03,
                Inv=0.01, Prod=0.7, tau=0.2, price=1.0)
    base.update(kw)
    return Asset(**base)


def _regime(rid: str, assets: dict = None, **ext) -> Regime:
    """Regime with neutral markets (gap ≈ 0) unless *assets* overrides categories."""
    assets = assets or {}
    market = Market({c: assets.get(c, assets.get(c.value)) or _asset() for c in CATS})
    e = dict(LS=0.5, PD=0.5, EA=0.5, TA=0.5, PS=0.5)
    e.update(ext)
    return Regime(
        id=rid,
        name=f"R-{rid}",
        externals=Externals(**e),
        endow=Endowment(fuel=0.25, mineral=0.25, arable=0.25, water=0.25),
        market=market,
    )


@pytest.fixture
def rng():
    return make_rng(12345)


@pytest.fixture
def make_asset():
    return _asset


@pytest.fixture
def make_regime():
    return _regime


@pytest.fixture
def make_world():
    def _world(*regimes) -> World:
        return World(id='test-world', globals=Globals(), regimes=list(regimes))
    return _world
