"""CLI entry point: preview a streamed window for a seed charm."""

import argparse
import logging
import time

import structlog

from .chunks import StreamConfig
from .config import Config, find_config, load_config
from .seed import canonicalize, seed64
from .streaming import ChunkStreamer
from .terrain.classification import tile_value
from .terrain.validation import validate_chunk
from .terrain_types import TileType
from .types import EntityKind


def main() -> None:
    """Stream chunks around a (possibly walking) viewer and report stats."""
    parser = argparse.ArgumentParser(
        description="Glasslands world streamer - build and inspect chunks for a seed charm"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path or name of streamer TOML config file",
    )
    parser.add_argument(
        "--charm",
        type=str,
        default=None,
        help="Seed charm (overrides config)",
    )
    parser.add_argument(
        "--radius", type=int, default=None, help="Window radius in chunks (overrides config)"
    )
    parser.add_argument(
        "--workers", type=int, default=None, help="Build threads, 0 for inline (overrides config)"
    )
    parser.add_argument(
        "--walk", type=int, default=0, help="Number of steps to walk along +x (default: 0)"
    )
    parser.add_argument(
        "--step", type=float, default=24.0, help="World units per walking step (default: 24)"
    )
    parser.add_argument(
        "--validate", action="store_true", help="Validate every loaded chunk"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )

    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )

    logger = structlog.get_logger()

    if args.config:
        try:
            config_path = find_config(args.config)
        except FileNotFoundError:
            logger.error("config_not_found", path=args.config)
            raise SystemExit(1)
        config = load_config(config_path)
        logger.info("config_loaded", path=str(config_path))
    else:
        config = Config()
        logger.info("using_default_config")

    if args.charm is not None:
        config = config.model_copy(update={"charm": args.charm})
    overrides = {}
    if args.radius is not None:
        overrides["window_radius"] = args.radius
    if args.workers is not None:
        overrides["workers"] = args.workers
    if overrides:
        stream = StreamConfig.model_validate(config.stream.model_dump() | overrides)
        config = config.model_copy(update={"stream": stream})

    canonical = canonicalize(config.charm)
    world_seed = seed64(config.charm)
    recipe = config.resolved_recipe()
    print(f"Charm: {canonical}")
    print(f"Seed64: 0x{world_seed:016X}")
    print(f"Weather: {recipe.weather_bias}, height noise: {recipe.height.base.value}")
    print()

    failed = 0
    start_time = time.time()
    with ChunkStreamer(world_seed, recipe, config.stream) as streamer:
        x = z = 0.0
        for step in range(args.walk + 1):
            update = streamer.settle(x, z)
            logger.info(
                "window_settled",
                step=step,
                cx=update.center.cx,
                cz=update.center.cz,
                loaded=len(streamer.loaded_coords()),
            )
            if args.validate:
                for coord in streamer.loaded_coords():
                    result = validate_chunk(streamer.record(coord), recipe, config.stream)
                    if not result.passed:
                        failed += 1
            x += args.step

        elapsed = time.time() - start_time
        _print_summary(streamer, elapsed)

    if failed:
        logger.error("validation_failed", chunks=failed)
        raise SystemExit(1)


def _print_summary(streamer: ChunkStreamer, elapsed: float) -> None:
    coords = streamer.loaded_coords()
    tile_counts = {tile: 0 for tile in TileType}
    total = 0
    for coord in coords:
        tiles = streamer.record(coord).tiles
        total += tiles.size
        for tile in TileType:
            tile_counts[tile] += int((tiles == tile_value(tile)).sum())

    print()
    print(f"Streaming complete in {elapsed:.1f}s, {len(coords)} chunks loaded")
    print(f"Tiles ({total:,}):")
    for tile, count in tile_counts.items():
        pct = count / total * 100 if total else 0.0
        print(f"  {tile.value}: {count:,} ({pct:.1f}%)")
    print("Entities:")
    for kind in EntityKind:
        print(f"  {kind.value}: {len(streamer.entities(kind))}")


if __name__ == "__main__":
    main()
