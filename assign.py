"""Matching drawn points to target slots.

Instead of searching the whole pool, every placement draws a fixed number of
random slots and keeps the one with the lowest penalty:

    distance to the point
  + color distance, weighted by the brush alpha
  + a large constant if the slot is already taken
  + a small bonus (smaller penalty) for high feature scores

The cost per placement is therefore constant no matter how large the pool is.
A slot that is already taken can still change hands, but only when the new
color is a clearly better match for the slot than the current occupant's.
"""

import itertools
import math
from typing import NamedTuple

import numpy as np

from motion import Particle, retarget

SAMPLE_COUNT      = 40
OCCUPIED_PENALTY  = 1000.0
PRIORITY_WEIGHT   = 100.0
REPLACE_MARGIN    = 0.9
FAVOR_CHANCE      = 0.5
MAX_DELAY         = 150.0

CLAIM     = "claim"
CHALLENGE = "challenge"
RETARGET  = "retarget"


def color_distance(c1, c2):
    return math.sqrt((c1[0] - c2[0]) ** 2 + (c1[1] - c2[1]) ** 2 + (c1[2] - c2[2]) ** 2)


class Placement(NamedTuple):
    kind: str
    particle: Particle
    slot: int


class Assigner:
    """Places drawn points into a ``TargetPool``.

    ``rng`` is a ``random.Random``; everything random in a placement (the
    sampled slots, the favor-colors coin, the delay and the new particle's
    coefficients) comes from it, so a seeded rng gives reproducible results.
    """

    def __init__(self, rng, samples=SAMPLE_COUNT, occupied_penalty=OCCUPIED_PENALTY,
                 priority_weight=PRIORITY_WEIGHT, replace_margin=REPLACE_MARGIN,
                 favor_colors=False, favor_chance=FAVOR_CHANCE, max_delay=MAX_DELAY):
        self.rng = rng
        self.samples          = samples
        self.occupied_penalty = occupied_penalty
        self.priority_weight  = priority_weight
        self.replace_margin   = replace_margin
        self.favor_colors     = favor_colors
        self.favor_chance     = favor_chance
        self.max_delay        = max_delay
        self._ids = itertools.count(1)

    # ── Scoring ────────────────────────────────────────────────────────────────
    def sample(self, n):
        """Draw ``samples`` slot indices uniformly, with replacement."""
        rr = self.rng.randrange
        return np.array([rr(n) for _ in range(self.samples)], dtype=np.int64)

    def penalties(self, pool, idx, x, y, color):
        alpha = color[3] if len(color) > 3 else 1.0
        d  = np.hypot(pool.xs[idx] - x, pool.ys[idx] - y)
        cd = np.sqrt(((pool.colors[idx] - np.asarray(color[:3], dtype=np.float64)) ** 2).sum(axis=1))
        taken = np.where(pool.occupants[idx] >= 0, self.occupied_penalty, 0.0)
        bonus = self.priority_weight / (1.0 + pool.scores[idx])
        return d + cd * alpha + taken + bonus

    def best_slot(self, pool, x, y, color):
        """Lowest-penalty slot among the sampled ones, or None."""
        n = len(pool)
        if n == 0 or self.samples <= 0:
            return None
        idx = self.sample(n)
        pen = self.penalties(pool, idx, x, y, color)
        k = int(np.argmin(pen))
        if not np.isfinite(pen[k]):
            return None
        return int(idx[k])

    # ── Placement ──────────────────────────────────────────────────────────────
    def place(self, pool, particles, x, y, color):
        """Try to place a point drawn at ``(x, y)`` with RGBA ``color``.

        ``particles`` maps pid -> Particle for the live population.  Returns a
        ``Placement`` or None when nothing happened.  A CLAIM or CHALLENGE
        placement carries a new particle the caller must add to its
        population; a RETARGET placement carries the existing occupant, which
        was redirected in place.
        """
        slot = self.best_slot(pool, x, y, color)
        if slot is None:
            return None

        rng = self.rng
        native = pool.color_at(slot)
        candidate = tuple(color)
        if len(candidate) == 3:
            candidate = candidate + (1.0,)
        if self.favor_colors and rng.random() < self.favor_chance:
            candidate = native + (1.0,)
        delay = rng.uniform(0.0, self.max_delay)
        tx, ty = pool.position(slot)

        owner_id = pool.occupant(slot)
        owner = particles.get(owner_id) if owner_id is not None else None
        if owner is None:
            p = Particle(next(self._ids), x, y, tx, ty, candidate, delay, rng,
                         slot=slot, generation=pool.generation)
            pool.claim(slot, p.pid)
            return Placement(CLAIM, p, slot)

        current  = color_distance(owner.rgb, native)
        proposed = color_distance(candidate, native)
        if not proposed < current * self.replace_margin:
            return None

        if not owner.settled:
            # still travelling: steer the occupant itself, no hand-off needed
            retarget(owner, x, y, candidate, delay, rng)
            return Placement(RETARGET, owner, slot)

        challenger = Particle(next(self._ids), x, y, tx, ty, candidate, delay, rng,
                              slot=slot, generation=pool.generation,
                              replaces=owner.pid)
        pool.claim(slot, challenger.pid)
        return Placement(CHALLENGE, challenger, slot)
