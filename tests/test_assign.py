import math
import random

import numpy as np

from assign import CHALLENGE, CLAIM, RETARGET, Assigner, color_distance
from targets import TargetPool

RED  = (255, 0, 0, 1.0)
BLUE = (0, 0, 255, 1.0)


def one_cell_pool(color=(255, 0, 0)):
    return TargetPool.from_cells([(10, 10, color, 5.0)])


def test_empty_pool_is_a_noop(rng):
    a = Assigner(rng)
    assert a.place(TargetPool.empty(), {}, 10, 10, RED) is None


def test_claims_free_cell(rng):
    pool = one_cell_pool()
    res = Assigner(rng).place(pool, {}, 10, 10, BLUE)
    assert res.kind == CLAIM
    p = res.particle
    assert (p.tx, p.ty) == (10, 10)
    assert (p.x, p.y) == (10.0, 10.0)
    assert p.color == BLUE
    assert p.replaces is None
    assert 0 <= p.delay <= 150
    assert pool.occupant(0) == p.pid


def test_rgb_color_gets_full_alpha(rng):
    res = Assigner(rng).place(one_cell_pool(), {}, 10, 10, (1, 2, 3))
    assert res.particle.color == (1, 2, 3, 1.0)


def test_equal_match_never_replaces(rng, settle):
    pool = one_cell_pool()
    a = Assigner(rng)
    first = a.place(pool, {}, 10, 10, RED).particle
    settle(first)
    live = {first.pid: first}

    assert a.place(pool, live, 10, 10, RED) is None
    assert a.place(pool, live, 10, 10, BLUE) is None
    assert pool.occupant(0) == first.pid


def test_replacement_margin(rng, settle):
    pool = one_cell_pool(color=(0, 0, 0))
    a = Assigner(rng)
    first = a.place(pool, {}, 10, 10, (100, 0, 0, 1.0)).particle
    settle(first)
    live = {first.pid: first}

    # 95 is better than 100 but not by 10%
    assert a.place(pool, live, 10, 10, (95, 0, 0, 1.0)) is None
    res = a.place(pool, live, 10, 10, (89, 0, 0, 1.0))
    assert res.kind == CHALLENGE


def test_challenger_for_settled_occupant(rng, settle):
    pool = one_cell_pool()
    a = Assigner(rng)
    incumbent = a.place(pool, {}, 10, 10, BLUE).particle
    settle(incumbent)

    res = a.place(pool, {incumbent.pid: incumbent}, 12, 14, RED)
    assert res.kind == CHALLENGE
    challenger = res.particle
    assert challenger is not incumbent
    assert challenger.replaces == incumbent.pid
    assert (challenger.tx, challenger.ty) == (10, 10)
    assert (challenger.x, challenger.y) == (12.0, 14.0)
    assert pool.occupant(0) == challenger.pid


def test_moving_occupant_is_redirected_in_place(rng):
    pool = one_cell_pool()
    a = Assigner(rng)
    mover = a.place(pool, {}, 40, 40, BLUE).particle
    assert not mover.settled

    res = a.place(pool, {mover.pid: mover}, 20, 25, RED)
    assert res.kind == RETARGET
    assert res.particle is mover
    assert (mover.x, mover.y) == (20.0, 25.0)
    assert mover.color == RED
    assert (mover.tx, mover.ty) == (10, 10)
    assert pool.occupant(0) == mover.pid


def test_favor_colors_uses_native_color(rng):
    a = Assigner(rng, favor_colors=True, favor_chance=1.0)
    res = a.place(one_cell_pool(color=(7, 8, 9)), {}, 10, 10, BLUE)
    assert res.particle.color == (7, 8, 9, 1.0)


def test_best_slot_is_the_minimum_of_the_samples():
    cells = [(x, y, (x % 256, y % 256, (x * y) % 256), float((x + y) % 13))
             for x in range(0, 200, 10) for y in range(0, 150, 10)]
    pool = TargetPool.from_cells(cells)
    pool.claim(3, 99)
    pool.claim(17, 98)
    point = (57.0, 81.0)
    color = (120, 30, 200, 0.6)

    for seed in range(5):
        got = Assigner(random.Random(seed)).best_slot(pool, *point, color)

        replay = random.Random(seed)
        best, best_pen = None, math.inf
        for _ in range(40):
            i = replay.randrange(len(pool))
            x, y, rgb, score = cells[i]
            pen = (math.hypot(x - point[0], y - point[1])
                   + color_distance(color, rgb) * color[3]
                   + (1000 if pool.occupant(i) is not None else 0)
                   + 100 / (1 + score))
            if pen < best_pen:
                best, best_pen = i, pen
        assert got == best


def test_prefers_free_cells(rng):
    pool = TargetPool.from_cells([(10, 10, (255, 0, 0), 5.0), (10, 10, (255, 0, 0), 5.0)])
    pool.claim(0, 1)
    a = Assigner(rng)
    for _ in range(20):
        assert a.best_slot(pool, 10, 10, RED) == 1


def test_transparent_brush_ignores_color(rng):
    # same position, only color differs; with alpha 0 the priority bonus decides
    pool = TargetPool.from_cells([(10, 10, (0, 0, 0), 1.0), (10, 10, (255, 0, 0), 50.0)])
    a = Assigner(rng)
    assert a.best_slot(pool, 10, 10, (0, 0, 0, 0.0)) == 1
    assert a.best_slot(pool, 10, 10, (0, 0, 0, 1.0)) == 0


def test_one_call_creates_at_most_one_particle(rng):
    pool = TargetPool.from_cells([(x, 5, (0, 0, 0), 1.0) for x in range(30)])
    a = Assigner(rng)
    live = {}
    for _ in range(60):
        res = a.place(pool, live, 15, 5, (0, 0, 0, 1.0))
        if res is not None and res.kind == CLAIM:
            live[res.particle.pid] = res.particle
    owners = pool.occupants[pool.occupants >= 0]
    assert len(owners) == len(set(owners.tolist())) == len(live)
    assert all(pool.occupant(p.slot) == p.pid for p in live.values())
    assert np.count_nonzero(pool.occupants >= 0) <= len(pool)
