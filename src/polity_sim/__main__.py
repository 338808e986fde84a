# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""Entry point for: python -m polity_sim"""

import os
import sys


def _ensure_hash_seed() -> None:
    """Re-exec with PYTHONHASHSEED=0 when a --seed argument is present.

    Alliances are stored as a set of frozensets, and set iteration order depends
    on the per-process string hash seed.  Pinning PYTHONHASHSEED=0 before the
    interpreter starts keeps that order, and therefore every seeded run,
    identical across invocations.

    Uses subprocess.run() rather than os.execve() so that stdout/stderr are
    correctly inherited on Windows.
    """
    if "--seed" not in sys.argv:
        return
    if os.environ.get("PYTHONHASHSEED") == "0":
        return  # already in a deterministic-hash process
    import subprocess
    env = dict(os.environ, PYTHONHASHSEED="0")
    pkg = __package__ or "polity_sim"
    result = subprocess.run(
        [sys.executable, "-m", pkg] + sys.argv[1:],
        env=env,
    )
    sys.exit(result.returncode)


if __name__ == "__main__":
    _ensure_hash_seed()

    from .sim import run  # noqa: E402 – import must come after re-exec guard

    run()
