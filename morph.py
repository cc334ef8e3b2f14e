"""Pixel Morph simulation: the frame loop that ties pool, assignment, motion
and slot hand-off together.

Everything here runs on the pygame thread.  Strokes call into
``MorphSimulation.stroke`` between frames and ``MorphSimulation.tick`` runs
once per frame, so the pool and the particle list are never seen half
updated.
"""

import json
import logging
import math
import random
from typing import NamedTuple

from assign import Assigner, CLAIM, CHALLENGE
from motion import advance
from targets import (DEFAULT_STRIDE, ImageLoadError, TargetPool, build_pool,
                     load_raster)

logger = logging.getLogger("pixelmorph")

MORPH_DELAY_MS   = 3000
BRUSH_RADIUS     = 30.0
DEFAULT_DENSITY  = 8


# ---------------------------------------------------------------------------
#  Quiescence timer
# ---------------------------------------------------------------------------

class PhaseScheduler:
    """Fires once, ``delay_ms`` after the last ``arm``.

    Every ``arm`` issues a new token; ``cancel`` (and re-arming) invalidates
    the previous one, so a stale deadline can never start the morph.
    """

    def __init__(self, delay_ms=MORPH_DELAY_MS):
        self.delay_ms = delay_ms
        self.token    = 0
        self._armed   = None      # (token, deadline)

    @property
    def pending(self):
        return self._armed is not None

    def arm(self, now):
        self.token += 1
        self._armed = (self.token, now + self.delay_ms)
        return self.token

    def cancel(self):
        self.token += 1
        self._armed = None

    def remaining(self, now):
        if self._armed is None:
            return 0
        return max(0, self._armed[1] - now)

    def poll(self, now):
        if self._armed is None:
            return False
        token, deadline = self._armed
        if token != self.token or now < deadline:
            return False
        self._armed = None
        return True


# ---------------------------------------------------------------------------
#  Slot hand-off
# ---------------------------------------------------------------------------

class Handoff:
    """Removes an incumbent only once the challenger that took its slot has
    settled, so the slot is never drawn empty."""

    def __init__(self):
        self.doomed: set[int] = set()

    def observe(self, p, generation):
        """Call for every particle that settled this frame."""
        if p.replaces is None:
            return
        # links from a previous pool point at slots that no longer exist
        if p.generation == generation:
            self.doomed.add(p.replaces)
        p.replaces = None

    def apply(self, parts):
        """Return ``(kept, removed_pids)`` and reset for the next frame."""
        if not self.doomed:
            return parts, set()
        doomed, self.doomed = self.doomed, set()
        kept = [p for p in parts if p.pid not in doomed]
        return kept, doomed


class MorphStats(NamedTuple):
    total: int
    settled: int

    @property
    def percent(self):
        return round(self.settled * 100 / self.total) if self.total else 0


# ---------------------------------------------------------------------------
#  Simulation
# ---------------------------------------------------------------------------

class MorphSimulation:
    def __init__(self, w, h, seed=None):
        self.w = int(w)
        self.h = int(h)
        self.rng = random.Random(seed)
        self.assigner = Assigner(self.rng)
        self.handoff  = Handoff()

        self.pool: TargetPool = TargetPool.empty()
        self.raster = None
        self.stride = DEFAULT_STRIDE

        self.parts: list = []
        self.index: dict = {}        # pid -> Particle

        self.frame        = 0
        self.morphing     = False
        self.morph_start  = 0

        self.brush_radius  = BRUSH_RADIUS
        self.density       = DEFAULT_DENSITY
        self.random_pixels = False

    # ── Target image ───────────────────────────────────────────────────────────
    def rebuild(self, raster, stride=None):
        if stride is not None:
            self.stride = max(1, int(stride))
        self.pool = build_pool(raster, self.stride, self.pool.generation + 1)
        self.raster = raster
        logger.info(f"Loaded {len(self.pool)} target pixels, sorted by feature priority")
        return self.pool

    def set_raster(self, raster):
        return self.rebuild(raster)

    def load_image(self, path):
        """Rebuild from an image file.  On failure the current pool stays and
        False is returned."""
        try:
            raster = load_raster(path, self.w, self.h)
        except ImageLoadError as e:
            logger.warning(f"Failed to load target image: {e}")
            return False
        self.rebuild(raster)
        return True

    def set_resolution(self, stride):
        stride = max(1, int(stride))
        if stride == self.stride:
            return False
        self.stride = stride
        if self.raster is None:
            return False
        self.rebuild(self.raster)
        return True

    # ── Drawing ────────────────────────────────────────────────────────────────
    def random_color(self):
        r = self.rng
        return (r.randrange(256), r.randrange(256), r.randrange(256),
                round(r.random(), 2))

    def place(self, x, y, color):
        placement = self.assigner.place(self.pool, self.index, x, y, color)
        if placement is not None and placement.kind in (CLAIM, CHALLENGE):
            self.parts.append(placement.particle)
            self.index[placement.particle.pid] = placement.particle
        return placement

    def stroke(self, x, y, color, count=None):
        """Scatter ``count`` points in a disc around ``(x, y)`` and place each.
        Returns how many placements did something."""
        if count is None:
            count = self.density
        if not len(self.pool):
            return 0
        rng = self.rng
        radius = self.brush_radius
        placed = 0
        for _ in range(int(count)):
            angle = rng.random() * math.tau
            dist  = math.sqrt(rng.random()) * radius
            px = x + math.cos(angle) * dist
            py = y + math.sin(angle) * dist
            c = self.random_color() if self.random_pixels else color
            if self.place(px, py, c) is not None:
                placed += 1
        return placed

    # ── Phase ──────────────────────────────────────────────────────────────────
    def begin_morph(self):
        self.morphing    = True
        self.morph_start = self.frame

    def pause_morph(self):
        self.morphing = False

    # ── Frame ──────────────────────────────────────────────────────────────────
    def tick(self):
        """Advance one frame; returns the pids removed by slot hand-offs."""
        self.frame += 1
        if self.morphing:
            frame, start, rng = self.frame, self.morph_start, self.rng
            gen = self.pool.generation
            observe = self.handoff.observe
            for p in self.parts:
                if advance(p, frame, start, rng):
                    observe(p, gen)
        self.parts, removed = self.handoff.apply(self.parts)
        for pid in removed:
            self.index.pop(pid, None)
        return removed

    def clear(self):
        self.parts = []
        self.index = {}
        self.handoff = Handoff()
        self.morphing = False
        self.pool.release_all()

    def stats(self):
        settled = sum(1 for p in self.parts if p.settled)
        return MorphStats(len(self.parts), settled)

    # ── Settings ───────────────────────────────────────────────────────────────
    def settings(self):
        a = self.assigner
        return {
            'brush': {
                'radius': self.brush_radius,
                'density': self.density,
                'random_pixels': self.random_pixels,
            },
            'pool': {'stride': self.stride},
            'assign': {
                'samples': a.samples,
                'occupied_penalty': a.occupied_penalty,
                'priority_weight': a.priority_weight,
                'replace_margin': a.replace_margin,
                'favor_colors': a.favor_colors,
                'favor_chance': a.favor_chance,
                'max_delay': a.max_delay,
            },
        }

    def apply_settings(self, data):
        brush = data.get('brush', {})
        self.brush_radius  = brush.get('radius', self.brush_radius)
        self.density       = brush.get('density', self.density)
        self.random_pixels = brush.get('random_pixels', self.random_pixels)
        a = self.assigner
        known = self.settings()['assign']
        for key, val in data.get('assign', {}).items():
            if key in known:
                setattr(a, key, val)
        stride = data.get('pool', {}).get('stride')
        if stride is not None:
            self.set_resolution(stride)

    def save_config(self, path: str):
        """Write brush, pool and assignment settings (not particles) to JSON."""
        with open(path, 'w') as f:
            json.dump(self.settings(), f, indent=2)
        logger.info(f"Saved settings to {path}")

    def load_config(self, path: str):
        with open(path) as f:
            data = json.load(f)
        self.apply_settings(data)
        logger.info(f"Loaded settings from {path}")
