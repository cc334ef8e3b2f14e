"""Target pool construction for Pixel Morph.

The pool is the set of destination slots particles can morph into.  It is
built once per image/resolution change from an RGBA raster and stored as
parallel numpy arrays (an arena addressed by slot index) sorted so that the
most "interesting" pixels (edges, features in the upper-middle of the frame,
bright highlights) come first.

Occupancy is kept in the same arena as an array of particle ids; ``FREE``
marks an unclaimed slot.  Particles never hold a reference to the pool, only
a slot index plus the ``generation`` the index belongs to.
"""

import logging
import math
from typing import NamedTuple

import numpy as np
import pygame

logger = logging.getLogger("pixelmorph")

FREE = -1

# ── Builder defaults ───────────────────────────────────────────────────────────
ALPHA_THRESHOLD   = 20
BRIGHT_THRESHOLD  = 150
BRIGHT_BONUS      = 50.0
FEATURE_CENTER_Y  = 0.4      # fraction of image height where the weight peaks
DEFAULT_STRIDE    = 4


class ImageLoadError(Exception):
    """The source image could not be read or decoded."""


class TargetCell(NamedTuple):
    x: int
    y: int
    color: tuple
    score: float
    occupant: int | None


class TargetPool:
    """Priority-ordered arena of target slots."""

    def __init__(self, xs, ys, colors, scores, generation=0):
        self.xs     = np.asarray(xs, dtype=np.int32)
        self.ys     = np.asarray(ys, dtype=np.int32)
        self.colors = np.asarray(colors, dtype=np.int32).reshape(-1, 3)
        self.scores = np.asarray(scores, dtype=np.float64)
        self.occupants = np.full(len(self.xs), FREE, dtype=np.int64)
        self.generation = generation

    @classmethod
    def empty(cls, generation=0):
        return cls([], [], np.zeros((0, 3)), [], generation)

    @classmethod
    def from_cells(cls, cells, generation=0):
        """Build a pool from ``(x, y, (r, g, b), score)`` tuples, kept in the
        order given."""
        cells = list(cells)
        if not cells:
            return cls.empty(generation)
        xs, ys, colors, scores = zip(*cells)
        return cls(xs, ys, colors, scores, generation)

    def __len__(self):
        return len(self.xs)

    def __getitem__(self, slot):
        occ = int(self.occupants[slot])
        return TargetCell(int(self.xs[slot]), int(self.ys[slot]),
                          self.color_at(slot), float(self.scores[slot]),
                          None if occ == FREE else occ)

    # ── Occupancy ──────────────────────────────────────────────────────────────
    def color_at(self, slot):
        r, g, b = self.colors[slot]
        return int(r), int(g), int(b)

    def position(self, slot):
        return int(self.xs[slot]), int(self.ys[slot])

    def occupant(self, slot):
        occ = int(self.occupants[slot])
        return None if occ == FREE else occ

    def claim(self, slot, pid):
        self.occupants[slot] = pid

    def release_all(self):
        self.occupants.fill(FREE)

    def occupied_count(self):
        return int(np.count_nonzero(self.occupants != FREE))


# ═══════════════════════════════════════════════════════════════════════════════
#  BUILDER
# ═══════════════════════════════════════════════════════════════════════════════

def feature_scores(raster, stride):
    """Sample ``raster`` on a ``stride`` grid and score every visible cell.

    Returns ``(xs, ys, colors, scores)`` in raster order (row-major).  A one
    pixel border is skipped so every sample has four neighbours.
    """
    raster = np.asarray(raster)
    if raster.ndim != 3 or raster.shape[2] != 4:
        raise ValueError(f"expected an (h, w, 4) raster, got {raster.shape}")
    stride = max(1, int(stride))
    h, w = raster.shape[:2]
    if h < 3 or w < 3:
        return (np.zeros(0, np.int32), np.zeros(0, np.int32),
                np.zeros((0, 3), np.int32), np.zeros(0))

    bright = raster[:, :, :3].astype(np.float64).mean(axis=2)
    ys, xs = np.mgrid[1:h - 1:stride, 1:w - 1:stride]
    ys = ys.ravel()
    xs = xs.ravel()

    visible = raster[ys, xs, 3] > ALPHA_THRESHOLD
    ys = ys[visible]
    xs = xs[visible]

    contrast = (np.abs(bright[ys, xs - 1] - bright[ys, xs + 1])
                + np.abs(bright[ys - 1, xs] - bright[ys + 1, xs]))
    y_weight = 1.0 - np.abs(ys - h * FEATURE_CENTER_Y) / h
    b = bright[ys, xs]
    scores = contrast * y_weight + np.where(b > BRIGHT_THRESHOLD, BRIGHT_BONUS, 0.0)
    colors = raster[ys, xs, :3].astype(np.int32)
    return xs, ys, colors, scores


def build_pool(raster, stride=DEFAULT_STRIDE, generation=0):
    """Return a fresh, fully free ``TargetPool`` sorted by descending score."""
    xs, ys, colors, scores = feature_scores(raster, stride)
    order = np.argsort(-scores, kind="stable")
    return TargetPool(xs[order], ys[order], colors[order], scores[order], generation)


# ═══════════════════════════════════════════════════════════════════════════════
#  IMAGE SOURCES
# ═══════════════════════════════════════════════════════════════════════════════

def load_raster(path, width, height):
    """Decode ``path`` and fit it ("contain") into a transparent
    ``width`` x ``height`` canvas.  Returns an ``(height, width, 4)`` uint8
    array.  Raises ``ImageLoadError`` on any read/decode failure."""
    try:
        img = pygame.image.load(path)
        iw, ih = img.get_size()
        if iw == 0 or ih == 0:
            raise ValueError("image has no pixels")
        # normalise palette/24-bit images to 32-bit so smoothscale accepts them
        src = pygame.Surface((iw, ih), pygame.SRCALPHA, 32)
        src.blit(img, (0, 0))

        if iw / ih > width / height:
            scale = width / iw
        else:
            scale = height / ih
        sw = max(1, round(iw * scale))
        sh = max(1, round(ih * scale))
        scaled = pygame.transform.smoothscale(src, (sw, sh))

        canvas = pygame.Surface((width, height), pygame.SRCALPHA, 32)
        canvas.fill((0, 0, 0, 0))
        canvas.blit(scaled, ((width - sw) // 2, (height - sh) // 2))

        rgb   = pygame.surfarray.array3d(canvas)
        alpha = pygame.surfarray.array_alpha(canvas)
    except (pygame.error, OSError, ValueError) as e:
        raise ImageLoadError(f"could not load {path}: {e}") from e
    # surfarray is (x, y) indexed; the builder works row-major
    return np.dstack([rgb, alpha]).transpose(1, 0, 2).astype(np.uint8)


def demo_raster(width, height):
    """A procedural portrait-ish target: a shaded disc with two bright eyes
    and a mouth on a transparent background."""
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    cx, cy = width / 2, height * 0.45
    r = min(width, height) * 0.38
    d = np.hypot(xs - cx, ys - cy)

    out = np.zeros((height, width, 4), dtype=np.uint8)
    face = d < r
    shade = np.clip(1.0 - d / (r * 1.4), 0.0, 1.0)
    out[..., 0] = (60 + 170 * shade).astype(np.uint8)
    out[..., 1] = (40 + 110 * shade).astype(np.uint8)
    out[..., 2] = (90 + 60 * np.sin(xs / width * math.pi)).astype(np.uint8)
    out[..., 3] = np.where(face, 255, 0)

    for ex in (cx - r * 0.38, cx + r * 0.38):
        eye = np.hypot(xs - ex, ys - (cy - r * 0.2)) < r * 0.12
        out[eye] = (240, 240, 235, 255)
        pupil = np.hypot(xs - ex, ys - (cy - r * 0.2)) < r * 0.05
        out[pupil] = (20, 20, 30, 255)

    mouth = (np.abs(np.hypot(xs - cx, ys - (cy + r * 0.05)) - r * 0.45) < r * 0.04) \
        & (ys > cy + r * 0.25)
    out[mouth] = (200, 40, 50, 255)
    return out
