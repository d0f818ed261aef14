import math

import numpy as np
import pytest

from worldgen.rng import WorldRandom
from worldgen.scatter import (
    BiomeScatter,
    ChildScatter,
    MAX_CHILD_DEPTH,
    Placement,
    PlacementValidator,
    PositionGenerator,
    ScatterRule,
    TerrainFeatureMap,
    parse_scatter_rules,
)
from worldgen.terrain import Bounds, GridTerrain


def _generator(bounds, seed=1, terrain=None, splat=None):
    validator = PlacementValidator(bounds, terrain=terrain, splat=splat)
    return PositionGenerator(validator, WorldRandom.from_seed(seed))


def _min_pair_distance(points):
    best = math.inf
    for i, (ax, az) in enumerate(points):
        for bx, bz in points[i + 1 :]:
            best = min(best, math.hypot(ax - bx, az - bz))
    return best


def test_impossible_fixed_count_terminates_and_underfills():
    bounds = Bounds(0.0, 0.0, 20.0, 20.0)
    rule = ScatterRule("stone", fixed_count=5, min_spacing=10.0)
    output, spawned = [], []
    stats = _generator(bounds).generate(BiomeScatter(rule), None, bounds, output, spawned)
    assert len(output) <= 5
    assert stats.attempts <= 5 * rule.max_attempts
    assert _min_pair_distance(spawned) >= 10.0


def test_spacing_wider_than_bounds_places_single_point():
    bounds = Bounds(0.0, 0.0, 20.0, 20.0)
    rule = ScatterRule("boulder", fixed_count=5, min_spacing=30.0)
    output, spawned = [], []
    stats = _generator(bounds, seed=99).generate(BiomeScatter(rule), None, bounds, output, spawned)
    assert stats.placed == 1
    assert len(output) == 1


def test_uniform_points_respect_min_spacing():
    bounds = Bounds(0.0, 0.0, 100.0, 100.0)
    rule = ScatterRule("tree", density=1.0, min_spacing=6.0)
    output, spawned = [], []
    stats = _generator(bounds, seed=5).generate(BiomeScatter(rule), None, bounds, output, spawned)
    assert stats.requested == 100
    assert stats.placed > 20
    assert _min_pair_distance(spawned) >= 6.0
    assert all(bounds.contains(p.x, p.z) for p in output)


def test_target_count_prefers_fixed_count():
    bounds = Bounds(0.0, 0.0, 50.0, 40.0)
    assert ScatterRule("a", density=0.5).target_count(bounds) == 10
    assert ScatterRule("a", density=0.5, fixed_count=3).target_count(bounds) == 3


def test_clustered_members_stay_near_centres():
    bounds = Bounds(0.0, 0.0, 80.0, 80.0)
    rule = ScatterRule("bush", fixed_count=12, min_spacing=2.0, cluster_size=(3, 4), cluster_spread=4.0)
    output, spawned = [], []
    stats = _generator(bounds, seed=11).generate(BiomeScatter(rule), None, bounds, output, spawned)
    assert 0 < stats.placed <= 12
    assert stats.attempts <= 12 * 10
    assert _min_pair_distance(spawned) >= 2.0 * 0.3 - 1e-9


def test_children_are_placed_in_annulus():
    bounds = Bounds(0.0, 0.0, 100.0, 100.0)
    mushroom = ScatterRule("mushroom", min_spacing=0.5, max_attempts=20)
    oak = ScatterRule(
        "oak",
        fixed_count=3,
        min_spacing=25.0,
        children=[ChildScatter(mushroom, count_per_parent=(2, 2), radius_min=2.0, radius_max=4.0)],
    )
    output, spawned = [], []
    _generator(bounds, seed=21).generate(BiomeScatter(oak), None, bounds, output, spawned)
    parents = [p for p in output if p.depth == 0]
    children = [p for p in output if p.depth == 1]
    assert parents
    assert children
    for child in children:
        nearest = min(math.hypot(child.x - p.x, child.z - p.z) for p in parents)
        assert 2.0 - 1e-9 <= nearest <= 4.0 + 1e-9


def test_cyclic_rules_stop_at_depth_cap():
    rules = parse_scatter_rules(
        {
            "vine": {
                "fixed_count": 1,
                "min_spacing": 0.0,
                "children": [{"rule": "vine", "count_per_parent": [1, 1], "radius_min": 1, "radius_max": 2}],
            }
        }
    )
    vine = rules["vine"]
    assert vine.children[0].rule is vine
    bounds = Bounds(0.0, 0.0, 200.0, 200.0)
    output, spawned = [], []
    _generator(bounds, seed=2).generate(BiomeScatter(vine), None, bounds, output, spawned)
    assert max(p.depth for p in output) == MAX_CHILD_DEPTH
    assert len(output) == MAX_CHILD_DEPTH + 1


def test_placement_category_overrides_slope_range():
    rule = ScatterRule("rock", slope_range=(0.0, 80.0))
    assert BiomeScatter(rule, Placement.FLAT).slope_range() == (0.0, 15.0)
    assert BiomeScatter(rule, Placement.CLIFF).slope_range() == (45.0, 90.0)
    assert BiomeScatter(rule, slope_override=(5.0, 10.0)).slope_range() == (5.0, 10.0)
    assert BiomeScatter(rule).slope_range() == (0.0, 80.0)
    assert BiomeScatter(rule, Placement.VALLEY).requires_feature_map


def test_validator_checks_height_slope_and_layers():
    terrain = GridTerrain(size=(100.0, 50.0, 100.0), heightmap_resolution=11, alphamap_layers=2)
    heights = np.tile(np.linspace(0.0, 1.0, 11, dtype=np.float32), (11, 1))
    terrain.set_heights(heights)
    splat = np.zeros((11, 11, 2), dtype=np.float32)
    splat[:, :6, 0] = 1.0
    splat[:, 6:, 1] = 1.0
    bounds = terrain.footprint()
    validator = PlacementValidator(bounds, terrain=terrain, splat=splat)

    low = ScatterRule("low", height_range=(0.0, 10.0), slope_range=(0.0, 90.0))
    assert validator.validate_terrain_rule(low, 5.0, 50.0)
    assert not validator.validate_terrain_rule(low, 90.0, 50.0)

    flat_only = ScatterRule("flat", height_range=(0.0, 100.0), slope_range=(0.0, 10.0))
    # constant gradient of 50 over 100 is about 26.6 degrees
    assert not validator.validate_terrain_rule(flat_only, 50.0, 50.0)

    layered = ScatterRule("cactus", height_range=(0.0, 100.0), slope_range=(0.0, 90.0), allowed_layers=(1,))
    assert validator.validate_terrain_rule(layered, 90.0, 50.0)
    assert not validator.validate_terrain_rule(layered, 10.0, 50.0)
    assert not validator.validate_terrain_rule(layered, 150.0, 50.0)


def test_spacing_window():
    points = [(0.0, 0.0), (10.0, 0.0)]
    assert not PlacementValidator.validate_spacing(5.0, 1.0, 0.0, points)
    assert PlacementValidator.validate_spacing(5.0, 1.0, 0.0, points, start=1)
    assert PlacementValidator.validate_spacing(5.0, 9.0, 0.0, points, end=1)


def test_feature_map_finds_cliff_and_valley():
    heights = np.zeros((33, 33), dtype=np.float32)
    heights[:, 17:] = 0.8
    feature_map = TerrainFeatureMap(heights, size=(64.0, 100.0, 64.0))
    step_x = 64.0 * 16.5 / 32.0
    assert feature_map.edge_strength_at(step_x, 32.0) > 0.5
    assert feature_map.edge_strength_at(4.0, 32.0) == pytest.approx(0.0)
    assert feature_map.check_placement(4.0, 32.0, Placement.ANY)
    # cols 16/17 hold the step; grid spacing is 2 world units
    assert feature_map.is_cliff_edge(38.0, 32.0)
    assert not feature_map.is_cliff_edge(28.0, 32.0)
    assert feature_map.is_cliff_base(28.0, 32.0)
    assert feature_map.is_valley(4.0, 32.0)
    assert not feature_map.is_valley(60.0, 32.0)
