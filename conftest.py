import os
import random

import numpy as np
import pytest

# no window is ever opened by the tests; keep SDL quiet on headless hosts
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def make_raster():
    def make(h, w, rgb=(0, 0, 0), alpha=255):
        r = np.zeros((h, w, 4), dtype=np.uint8)
        r[..., :3] = rgb
        r[..., 3] = alpha
        return r
    return make


def _settle(p):
    p.x, p.y = float(p.tx), float(p.ty)
    p.vx = p.vy = 0.0
    p.settled = True


@pytest.fixture
def settle():
    """Pin a particle onto its target as if it had arrived."""
    return _settle
