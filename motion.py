"""Per-particle motion for Pixel Morph.

Each particle is pulled toward its target by a spring term (``ease``), damped
by ``friction`` and shaken by a little noise that fades out near the target.
Both coefficients are randomised per particle so a population arrives
staggered and with slightly different "personalities".

Exponential damping never reaches the target exactly, so a particle closer
than ``SNAP_DISTANCE`` is pinned onto it and marked settled.
"""

import math

SNAP_DISTANCE   = 0.5
NOISE_CUTOFF    = 2.0       # no noise once this close
NOISE_FALLOFF   = 100.0     # full-strength noise beyond this distance
PARTICLE_SIZE   = 2

START_SPEED     = 2.5
EASE_RANGE      = (0.02, 0.07)
FRICTION_RANGE  = (0.85, 0.95)


class Particle:
    __slots__ = ("pid", "x", "y", "tx", "ty", "vx", "vy", "color", "size",
                 "delay", "settled", "ease", "friction", "replaces", "slot",
                 "generation")

    def __init__(self, pid, x, y, tx, ty, color, delay, rng,
                 slot=None, generation=0, replaces=None):
        self.pid   = pid
        self.x     = float(x)
        self.y     = float(y)
        self.tx    = tx
        self.ty    = ty
        self.vx    = rng.uniform(-START_SPEED, START_SPEED)
        self.vy    = rng.uniform(-START_SPEED, START_SPEED)
        self.color = tuple(color)
        self.size  = PARTICLE_SIZE
        self.delay = float(delay)
        self.settled  = False
        self.ease     = rng.uniform(*EASE_RANGE)
        self.friction = rng.uniform(*FRICTION_RANGE)
        self.replaces   = replaces
        self.slot       = slot
        self.generation = generation

    @property
    def rgb(self):
        return self.color[:3]

    @property
    def alpha(self):
        return self.color[3] if len(self.color) > 3 else 1.0

    def distance(self):
        return math.hypot(self.tx - self.x, self.ty - self.y)

    def __repr__(self):
        state = "settled" if self.settled else "moving"
        return (f"Particle({self.pid}, ({self.x:.1f}, {self.y:.1f}) -> "
                f"({self.tx}, {self.ty}), {state})")


def advance(p, frame, morph_start, rng):
    """Move ``p`` one frame.  Returns True only on the frame it settles."""
    if p.settled:
        return False
    if frame < morph_start + p.delay:
        return False

    dx = p.tx - p.x
    dy = p.ty - p.y
    d  = math.hypot(dx, dy)

    p.vx += dx * p.ease
    p.vy += dy * p.ease

    if d > NOISE_CUTOFF:
        noise = min(1.0, d / NOISE_FALLOFF)
        p.vx += rng.uniform(-1.0, 1.0) * noise
        p.vy += rng.uniform(-1.0, 1.0) * noise

    p.vx *= p.friction
    p.vy *= p.friction
    p.x  += p.vx
    p.y  += p.vy

    if math.hypot(p.tx - p.x, p.ty - p.y) < SNAP_DISTANCE:
        p.x  = float(p.tx)
        p.y  = float(p.ty)
        p.vx = 0.0
        p.vy = 0.0
        p.settled = True
        return True
    return False


def retarget(p, x, y, color, delay, rng, tx=None, ty=None):
    """Restart ``p``'s approach from ``(x, y)`` with a new color and delay.
    The target stays put unless ``tx``/``ty`` are given."""
    p.x = float(x)
    p.y = float(y)
    if tx is not None:
        p.tx = tx
    if ty is not None:
        p.ty = ty
    p.color   = tuple(color)
    p.delay   = float(delay)
    p.settled = False
    p.vx = rng.uniform(-START_SPEED, START_SPEED)
    p.vy = rng.uniform(-START_SPEED, START_SPEED)
