import random

import pytest

from motion import (EASE_RANGE, FRICTION_RANGE, SNAP_DISTANCE, Particle, advance,
                    retarget)


class NoNoise:
    """Stand-in rng that fails if the model asks for noise."""

    def uniform(self, a, b):
        raise AssertionError("noise drawn near the target")


def make(rng, x=0.0, y=0.0, tx=100, ty=50, delay=0.0):
    return Particle(1, x, y, tx, ty, (10, 20, 30, 1.0), delay, rng)


def test_randomised_coefficients(rng):
    for _ in range(50):
        p = make(rng)
        assert EASE_RANGE[0] <= p.ease <= EASE_RANGE[1]
        assert FRICTION_RANGE[0] <= p.friction <= FRICTION_RANGE[1]
        assert -2.5 <= p.vx <= 2.5 and -2.5 <= p.vy <= 2.5
        assert not p.settled


def test_waits_for_its_delay(rng):
    p = make(rng, delay=10)
    for frame in range(100, 110):
        assert advance(p, frame, 100, rng) is False
        assert (p.x, p.y) == (0.0, 0.0)
    advance(p, 110, 100, rng)
    assert (p.x, p.y) != (0.0, 0.0)


def test_settles_exactly_on_target(rng):
    p = make(rng)
    transitions = 0
    for frame in range(3000):
        if advance(p, frame, 0, rng):
            transitions += 1
    assert transitions == 1
    assert p.settled
    assert (p.x, p.y) == (100.0, 50.0)
    assert (p.vx, p.vy) == (0.0, 0.0)


def test_settled_particle_stays_put(rng):
    p = make(rng, x=100.2, y=50.1)
    p.vx = p.vy = 0.0
    assert advance(p, 0, 0, NoNoise())
    for frame in range(1, 50):
        assert advance(p, frame, 0, rng) is False
        assert (p.x, p.y, p.vx, p.vy) == (100.0, 50.0, 0.0, 0.0)


def test_no_noise_close_to_target(rng):
    p = make(rng, x=101.5, y=50.0)
    # distance 1.5 < 2: must not touch the rng
    advance(p, 0, 0, NoNoise())


def test_snap_threshold(rng):
    p = make(rng, x=100.0 + SNAP_DISTANCE * 3, y=50.0)
    # a full-strength spring lands it on the target in one step
    p.vx, p.vy = 0.0, 0.0
    p.ease = 1.0
    p.friction = 1.0
    assert advance(p, 0, 0, NoNoise())
    assert (p.x, p.y) == (100.0, 50.0)


def test_distance_shrinks_over_windows():
    rng = random.Random(99)
    parts = [Particle(i, rng.uniform(0, 600), rng.uniform(0, 450), 300, 225,
                      (0, 0, 0, 1.0), 0.0, rng) for i in range(200)]

    def window_mean(start):
        total = 0.0
        for frame in range(start, start + 20):
            for p in parts:
                advance(p, frame, 0, rng)
            total += sum(p.distance() for p in parts) / len(parts)
        return total / 20

    means = [window_mean(s) for s in (0, 20, 40, 60)]
    assert all(m >= 0 for m in means)
    assert means[0] > means[1] > means[2] > means[3]


def test_retarget_restarts_approach(rng):
    p = make(rng)
    for frame in range(3000):
        advance(p, frame, 0, rng)
    assert p.settled

    retarget(p, 5, 6, (200, 100, 0, 0.5), 42, rng)
    assert not p.settled
    assert (p.x, p.y) == (5.0, 6.0)
    assert (p.tx, p.ty) == (100, 50)
    assert p.color == (200, 100, 0, 0.5)
    assert p.delay == 42.0

    retarget(p, 5, 6, (0, 0, 0, 1.0), 0, rng, tx=7, ty=8)
    assert (p.tx, p.ty) == (7, 8)


@pytest.mark.parametrize("color,alpha", [((1, 2, 3), 1.0), ((1, 2, 3, 0.25), 0.25)])
def test_color_accessors(rng, color, alpha):
    p = Particle(1, 0, 0, 0, 0, color, 0, rng)
    assert p.rgb == (1, 2, 3)
    assert p.alpha == alpha
