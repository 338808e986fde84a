# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
migration.py — Layer 5: population drifts from unstable to stable regimes.
"""

from __future__ import annotations

import numpy as np

from .config import DEFAULT_RULES, Rules
from .model import World, clamp


def migration(world: World, rng: np.random.Generator,
              rules: Rules = DEFAULT_RULES, event_log: list | None = None) -> int:
    """Each low-stability regime pushes people to one random high-stability regime.

    Returns the number of flows applied (0 when either side is empty).
    """
    mr  = rules.migration
    src = [R for R in world.regimes if R.externals.PS < mr.srcPS]
    dst = [R for R in world.regimes if R.externals.PS > mr.dstPS]
    if not src or not dst:
        return 0
    for R in src:
        Q    = dst[int(rng.integers(len(dst)))]
        flow = mr.flowK * (mr.dstPS - R.externals.PS)
        R.externals.PD = clamp(R.externals.PD * (1 - flow), 0.02, 1.5)
        Q.externals.PD = clamp(Q.externals.PD * (1 + flow), 0.02, 1.5)
        R.externals.EA = clamp(R.externals.EA - mr.eaLoss * flow, 0.01, 1.0)
        Q.externals.EA = clamp(Q.externals.EA + mr.eaGain * flow, 0.01, 1.0)
        if event_log is not None:
            event_log.append(
                f"Turn {world.step:04d}: 🚶 MIGRATION — {flow:.1%} of {R.name} "
                f"leaves for {Q.name}")
    return len(src)
