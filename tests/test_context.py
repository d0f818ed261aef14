import numpy as np
import pytest

from worldgen.errors import GenerationCancelled
from worldgen.pipeline import GenerationContext, RunLogger


class RecordingSink:
    def __init__(self):
        self.shown = []
        self.cleared = 0

    def show_overlay(self, name, image):
        self.shown.append((name, image))

    def clear_overlay(self):
        self.cleared += 1


def test_zero_seed_is_drawn_and_written_back(small_config, small_terrain):
    small_config.seed = 0
    ctx = GenerationContext(small_config, small_terrain)
    assert ctx.seed != 0
    assert small_config.seed == ctx.seed
    again = GenerationContext(small_config, small_terrain)
    assert again.seed == ctx.seed


def test_bounds_shrink_by_edge_margin(small_config, small_terrain):
    small_config.edge_margin = 4.0
    ctx = GenerationContext(small_config, small_terrain)
    assert (ctx.bounds.min_x, ctx.bounds.min_z) == (4.0, 4.0)
    assert (ctx.bounds.size_x, ctx.bounds.size_z) == (56.0, 56.0)

    small_config.edge_margin = 100.0
    assert GenerationContext(small_config, small_terrain).bounds.area == 0.0


def test_grid_shapes_are_fixed(small_config, small_terrain):
    ctx = GenerationContext(small_config, small_terrain)
    with pytest.raises(ValueError):
        ctx.heights = np.zeros((5, 5), dtype=np.float32)
    with pytest.raises(ValueError):
        ctx.splat = np.zeros((17, 17, 3), dtype=np.float32)
    ctx.heights = np.full((17, 17), 0.25, dtype=np.float32)
    assert ctx.heights.shape == (17, 17)


def test_commit_and_restore(small_config, small_terrain):
    ctx = GenerationContext(small_config, small_terrain)
    original = small_terrain.checksums()
    ctx.heights = np.full((17, 17), 0.5, dtype=np.float32)
    ctx.commit_heights()
    ctx.detail[0, 3, 3] = 7
    ctx.commit_detail()
    assert small_terrain.get_heights()[0, 0] == pytest.approx(0.5)
    assert small_terrain.checksums() != original

    ctx.restore_all()
    assert small_terrain.checksums() == original
    np.testing.assert_array_equal(ctx.heights, ctx.original("heights"))


def test_original_snapshots_are_read_only(small_config, small_terrain):
    ctx = GenerationContext(small_config, small_terrain)
    with pytest.raises(ValueError):
        ctx.original("splat")[0, 0, 0] = 0.5


def test_keyed_streams_are_order_independent(small_config, small_terrain):
    ctx = GenerationContext(small_config, small_terrain)
    a_first = ctx.rng("vegetation", 0, 3).random(4)
    ctx.rng("vegetation", 1, 3).random(100)
    a_again = ctx.rng("vegetation", 0, 3).random(4)
    np.testing.assert_array_equal(a_first, a_again)
    assert not np.allclose(a_first, ctx.rng("vegetation", 0, 4).random(4))


def test_random_draws_follow_seed(small_config, small_terrain):
    first = GenerationContext(small_config, small_terrain)
    second = GenerationContext(small_config, small_terrain)
    assert [first.random_value() for _ in range(3)] == [second.random_value() for _ in range(3)]
    value = first.random_range(5.0, 6.0)
    assert 5.0 <= value < 6.0


def test_cancellation_raises_once_requested(small_config, small_terrain):
    ctx = GenerationContext(small_config, small_terrain)
    ctx.check_cancelled()
    ctx.request_cancel()
    with pytest.raises(GenerationCancelled):
        ctx.check_cancelled()
    ctx.clear_cancel()
    ctx.check_cancelled()


def test_overlay_is_forwarded_to_sink(small_config, small_terrain):
    sink = RecordingSink()
    ctx = GenerationContext(small_config, small_terrain, overlay_sink=sink)
    marker = object()
    ctx.set_debug_overlay(marker, name="preview")
    ctx.set_debug_overlay(None)
    assert sink.shown == [("preview", marker)]
    assert sink.cleared == 1
    assert ctx.debug_overlay is None


def test_timed_scope_logs_event(small_config, small_terrain):
    run_logger = RunLogger(None)
    ctx = GenerationContext(small_config, small_terrain, logger=run_logger)
    ctx.current_phase = "demo"
    with ctx.timed("work"):
        pass
    (event,) = run_logger.events_of("timed_scope")
    assert event["phase"] == "demo"
    assert event["label"] == "work"
    assert event["duration_ns"] >= 0


def test_index_to_world_mapping(small_config, small_terrain):
    small_config.edge_margin = 2.0
    ctx = GenerationContext(small_config, small_terrain)
    xs = ctx.world_x(np.array([0, 16]), 17)
    np.testing.assert_allclose(xs, [2.0, 62.0])
    assert float(ctx.world_z(8, 17)) == pytest.approx(32.0)
