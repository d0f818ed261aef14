import math

import numpy as np
import pytest

from worldgen.biomes import BiomeMap, WarpConfig, WarpedDistance
from worldgen.biomes.biome_map import smootherstep
from worldgen.errors import EmptyBiomeMapError


def _two_cell_map(catalog, blend_width=10.0):
    biome_map = BiomeMap(catalog, blend_width)
    biome_map.add_cell((0.0, 0.0), "a")
    biome_map.add_cell((40.0, 0.0), "b")
    return biome_map


def test_empty_map_queries_raise(two_biome_catalog):
    biome_map = BiomeMap(two_biome_catalog, 5.0)
    assert biome_map.is_empty
    with pytest.raises(EmptyBiomeMapError):
        biome_map.query(0.0, 0.0)
    with pytest.raises(LookupError):
        biome_map.get_biome_at(1.0, 1.0)


def test_unknown_biome_type_is_rejected(two_biome_catalog):
    biome_map = BiomeMap(two_biome_catalog, 5.0)
    with pytest.raises(KeyError):
        biome_map.add_cell((0.0, 0.0), "swamp")


def test_single_cell_has_full_weight(two_biome_catalog):
    biome_map = BiomeMap(two_biome_catalog, 5.0)
    biome_map.add_cell((10.0, 10.0), "a")
    query = biome_map.query(100.0, -30.0)
    assert query.primary_type == "a"
    assert query.primary_weight == 1.0
    assert query.secondary_type is None
    assert query.secondary_weight == 0.0
    assert not query.is_blending
    assert math.isinf(biome_map.distance_to_border(5.0, 5.0))


def test_equidistant_point_blends_evenly(two_biome_catalog):
    biome_map = _two_cell_map(two_biome_catalog)
    query = biome_map.query(20.0, 5.0)
    assert query.primary_weight == pytest.approx(0.5)
    assert query.secondary_weight == pytest.approx(0.5)
    assert biome_map.distance_to_border(20.0, 5.0) == pytest.approx(0.0)


def test_weights_sum_to_one_and_saturate(two_biome_catalog):
    biome_map = _two_cell_map(two_biome_catalog, blend_width=10.0)
    xs = np.linspace(-20.0, 60.0, 161)
    batch = biome_map.query_many(xs, np.zeros_like(xs))
    np.testing.assert_allclose(batch.primary_weight + batch.secondary_weight, 1.0)
    assert np.all(batch.primary_weight >= 0.5)
    # d2 - d1 >= blend_width once a point is 5 units off the border
    outside = np.abs(xs - 20.0) >= 5.0
    np.testing.assert_allclose(batch.primary_weight[outside], 1.0)


def test_blend_is_continuous_at_blend_edge(two_biome_catalog):
    biome_map = _two_cell_map(two_biome_catalog, blend_width=10.0)
    eps = 1e-6
    inside = biome_map.query(15.0 + eps, 0.0).primary_weight
    edge = biome_map.query(15.0, 0.0).primary_weight
    assert edge == pytest.approx(1.0)
    assert inside == pytest.approx(edge, abs=1e-6)


def test_zero_blend_width_gives_hard_borders(two_biome_catalog):
    biome_map = _two_cell_map(two_biome_catalog, blend_width=0.0)
    batch = biome_map.query_many(np.array([19.0, 21.0]), np.zeros(2))
    np.testing.assert_array_equal(batch.primary_weight, [1.0, 1.0])
    assert biome_map.get_biome_at(19.0, 0.0) == "a"
    assert biome_map.get_biome_at(21.0, 0.0) == "b"


def test_blend_weight_and_biome_data(two_biome_catalog):
    biome_map = _two_cell_map(two_biome_catalog)
    assert biome_map.blend_weight(0.0, 0.0, "a") == pytest.approx(1.0)
    assert biome_map.blend_weight(0.0, 0.0, "b") == pytest.approx(0.0)
    assert biome_map.blend_weight(20.0, 0.0, "b") == pytest.approx(0.5)
    assert biome_map.get_biome_data_at(39.0, 1.0).name == "b"
    assert biome_map.get_cell_at(1.0, 1.0).center == (0.0, 0.0)


def test_distance_to_border_ignores_same_type_cells(two_biome_catalog):
    biome_map = BiomeMap(two_biome_catalog, 5.0)
    biome_map.add_cell((0.0, 0.0), "a")
    biome_map.add_cell((10.0, 0.0), "a")
    biome_map.add_cell((40.0, 0.0), "b")
    # nearest "a" is 2 away, nearest "b" is 38 away
    assert biome_map.distance_to_border(2.0, 0.0) == pytest.approx(18.0)


def test_border_distances_name_the_foreign_cell(two_biome_catalog):
    biome_map = BiomeMap(two_biome_catalog, 5.0)
    biome_map.add_cell((0.0, 0.0), "a")
    biome_map.add_cell((10.0, 0.0), "a")
    biome_map.add_cell((40.0, 0.0), "b")
    foreign, border = biome_map.border_distances(np.array([2.0, 38.0]), np.zeros(2))
    np.testing.assert_array_equal(foreign, [2, 1])
    np.testing.assert_allclose(border, [18.0, 13.0])

    single = BiomeMap(two_biome_catalog, 5.0)
    single.add_cell((0.0, 0.0), "a")
    foreign, border = single.border_distances(np.array([3.0]), np.array([4.0]))
    assert foreign[0] == -1
    assert math.isinf(border[0])


def test_normalized_distance_to_center(two_biome_catalog):
    biome_map = _two_cell_map(two_biome_catalog)
    values = biome_map.normalized_distances_to_center(np.array([0.0, 10.0, 20.0, 40.0]), np.zeros(4))
    np.testing.assert_allclose(values, [0.0, 0.5, 1.0, 0.0])


def test_smootherstep_endpoints():
    values = smootherstep(np.array([0.0, 0.5, 1.0]))
    np.testing.assert_allclose(values, [0.0, 0.5, 1.0])


def test_warped_distance_is_bounded_and_deterministic(two_biome_catalog):
    warp = WarpConfig(amplitude=6.0, frequency=0.05)
    biome_map = BiomeMap(two_biome_catalog, 5.0, distance=WarpedDistance(warp, seed=9))
    biome_map.add_cell((0.0, 0.0), "a")
    xs = np.linspace(-30.0, 30.0, 40)
    zs = np.linspace(5.0, 25.0, 40)
    warped = biome_map.distances(xs, zs)[0]
    plain = np.hypot(xs, zs)
    assert np.all(np.abs(warped - plain) <= 6.0 + 1e-9)
    assert not np.allclose(warped, plain)
    again = BiomeMap(two_biome_catalog, 5.0, distance=WarpedDistance(warp, seed=9))
    again.add_cell((0.0, 0.0), "a")
    np.testing.assert_array_equal(again.distances(xs, zs)[0], warped)


def test_disabled_warp_is_euclidean(two_biome_catalog):
    distance = WarpedDistance(WarpConfig(enabled=False), seed=1)
    biome_map = BiomeMap(two_biome_catalog, 5.0, distance=distance)
    cell = biome_map.add_cell((3.0, 4.0), "a")
    np.testing.assert_allclose(distance(np.array([0.0]), np.array([0.0]), cell), [5.0])
