import numpy as np
import pygame
import pytest

from targets import (FREE, ImageLoadError, TargetPool, build_pool, demo_raster,
                     feature_scores, load_raster)


def test_border_is_skipped(make_raster):
    pool = build_pool(make_raster(10, 10), stride=1)
    assert len(pool) == 64
    assert pool.xs.min() == 1 and pool.xs.max() == 8
    assert pool.ys.min() == 1 and pool.ys.max() == 8


def test_stride_thins_the_grid(make_raster):
    pool = build_pool(make_raster(10, 10), stride=3)
    assert sorted(set(pool.xs.tolist())) == [1, 4, 7]
    assert sorted(set(pool.ys.tolist())) == [1, 4, 7]
    assert len(pool) == 9


def test_alpha_threshold(make_raster):
    assert len(build_pool(make_raster(6, 6, alpha=20), stride=1)) == 0
    assert len(build_pool(make_raster(6, 6, alpha=21), stride=1)) == 16


def test_tiny_raster_gives_empty_pool(make_raster):
    assert len(build_pool(make_raster(2, 2), stride=1)) == 0


def test_scores_contrast_weight_and_bonus(make_raster):
    raster = make_raster(5, 5)
    raster[2, 3, :3] = 255          # one white pixel at x=3, y=2
    pool = build_pool(raster, stride=1)

    # left of the white pixel: full horizontal contrast, on the weight peak row
    assert pool[0].x == 2 and pool[0].y == 2
    assert pool[0].score == pytest.approx(255.0)
    # above and below: vertical contrast on rows weighted 1 - 1/5
    assert (pool[1].x, pool[1].y) == (3, 1)
    assert (pool[2].x, pool[2].y) == (3, 3)
    assert pool[1].score == pytest.approx(204.0)
    assert pool[2].score == pytest.approx(204.0)
    # the white pixel itself only gets the brightness bonus
    assert (pool[3].x, pool[3].y) == (3, 2)
    assert pool[3].score == pytest.approx(50.0)
    assert pool[3].color == (255, 255, 255)
    assert all(pool[i].score == 0 for i in range(4, len(pool)))


def test_pool_is_sorted_descending(make_raster):
    pool = build_pool(demo_raster(120, 90), stride=2)
    assert len(pool) > 0
    assert np.all(np.diff(pool.scores) <= 0)


def test_new_pool_is_free_and_tagged(make_raster):
    pool = build_pool(make_raster(8, 8), stride=1, generation=7)
    assert pool.generation == 7
    assert np.all(pool.occupants == FREE)
    assert pool.occupied_count() == 0


def test_feature_scores_rejects_bad_shape():
    with pytest.raises(ValueError):
        feature_scores(np.zeros((4, 4, 3), np.uint8), 1)


def test_from_cells_and_occupancy():
    pool = TargetPool.from_cells([(10, 10, (255, 0, 0), 5.0), (3, 4, (0, 0, 255), 1.0)])
    assert len(pool) == 2
    cell = pool[0]
    assert (cell.x, cell.y, cell.color, cell.score, cell.occupant) == (10, 10, (255, 0, 0), 5.0, None)

    pool.claim(1, 42)
    assert pool.occupant(1) == 42
    assert pool[1].occupant == 42
    pool.release_all()
    assert pool.occupant(1) is None


def test_load_raster_missing_file(tmp_path):
    with pytest.raises(ImageLoadError):
        load_raster(str(tmp_path / "nope.png"), 40, 30)


def test_load_raster_not_an_image(tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"definitely not a png")
    with pytest.raises(ImageLoadError):
        load_raster(str(bad), 40, 30)


def test_load_raster_contains_and_centers(tmp_path):
    img = pygame.Surface((20, 10), pygame.SRCALPHA, 32)
    img.fill((255, 0, 0, 255))
    path = tmp_path / "wide.png"
    pygame.image.save(img, str(path))

    raster = load_raster(str(path), 40, 40)
    assert raster.shape == (40, 40, 4)
    assert raster.dtype == np.uint8
    # 2:1 image scaled to 40x20, letterboxed vertically
    assert tuple(raster[20, 20]) == (255, 0, 0, 255)
    assert raster[2, 20, 3] == 0
    assert raster[37, 20, 3] == 0


def test_demo_raster_shape():
    r = demo_raster(60, 40)
    assert r.shape == (40, 60, 4)
    assert (r[..., 3] > 0).any()
    assert (r[..., 3] == 0).any()
