"""Command-line entry point for world generation."""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Optional, Sequence

from worldgen.pipeline import DatasetWriter, GenerationPipeline, VisualManager, default_config, load_config
from worldgen.pipeline.config import GenerationConfig
from worldgen.terrain import GridTerrain


def build_terrain(config: GenerationConfig, size: float, height: float, resolution: int) -> GridTerrain:
    """In-memory terrain with enough splat and detail layers for ``config``."""
    detail_layers = max(
        [layer.layer + 1 for biome in config.catalog for layer in biome.vegetation] or [2]
    )
    return GridTerrain(
        size=(size, height, size),
        heightmap_resolution=resolution,
        alphamap_layers=max(len(config.catalog.texture_layers), 1),
        detail_layers=detail_layers,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("worldgen")
    parser.add_argument("--config", type=str, default=None, help="YAML or JSON config file")
    parser.add_argument("--seed", type=int, default=None, help="Override the configured seed (0 = random)")
    parser.add_argument("--resolution", type=int, default=129, help="Height grid resolution")
    parser.add_argument("--size", type=float, default=500.0, help="World size along X and Z")
    parser.add_argument("--height", type=float, default=100.0, help="Terrain height scale")
    parser.add_argument("--out", type=str, default="out/world")
    parser.add_argument("--visuals", action="store_true", help="Write a PNG preview after every phase")
    parser.add_argument("--blend-aware", action="store_true", help="Blend heights and textures across borders")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config) if args.config else default_config()
    if args.seed is not None:
        config.seed = args.seed
    if args.blend_aware:
        config.blend_aware_sampling = True
    out_dir = Path(args.out)
    if config.log_dir is None:
        config.log_dir = out_dir / "logs"

    log = logging.getLogger("worldgen")
    report = config.catalog.validate(args.height, config.blend_width, config.water_level)
    for warning in report.warnings:
        log.warning(warning)
    if not report.is_valid:
        for error in report.errors:
            log.error(error)
        return 1

    t0 = time.time()
    terrain = build_terrain(config, args.size, args.height, args.resolution)
    sink = VisualManager(out_dir / "visuals") if args.visuals else None
    pipeline = GenerationPipeline(overlay_sink=sink)
    ctx = pipeline.begin(config, terrain, artist_mode=args.visuals)
    while pipeline.is_paused:
        pipeline.continue_()

    failed = [phase for phase in pipeline.phases if phase.error is not None]
    writer = DatasetWriter(out_dir)
    manifest = writer.write_context(ctx)

    elapsed = time.time() - t0
    states = ", ".join(f"{phase.name}={phase.state.value}" for phase in pipeline.phases)
    print(f"Seed {ctx.seed}: {states}")
    print(f"Wrote {len(ctx.spawn_records)} spawn records and {manifest} in {elapsed:.2f}s")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
