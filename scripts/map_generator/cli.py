#!/usr/bin/env python3
"""
Build terrain maps for the game client.

For every map in the catalog this reads ``assets/maps/<name>/image.png`` and
``info.json`` (``assets/test_maps`` for test maps) from the working directory
and writes ``map.bin``, ``map4x.bin``, ``map16x.bin``, ``thumbnail.webp`` and
``manifest.json`` to ``../resources/maps/<name>/`` (``../tests/testdata/maps``
for test maps).

Example usage:

    python -m map_generator --maps world,europe,test:plains --report build/maps.json
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from map_generator.catalog import effective_catalog
from map_generator.driver import run
from map_generator.errors import MapGenerationError

SUCCESS_MESSAGE = "Terrain maps generated successfully"


def parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate terrain binaries, thumbnails and manifests for the map catalog."
    )
    parser.add_argument(
        "--maps",
        default="",
        metavar="LIST",
        help=(
            "Comma-separated list of map names to process instead of the built-in catalog. "
            "Prefix a name with 'test:' to mark it as a test map (example: world,test:plains). "
            "An empty list, or one with only blank entries, keeps the built-in catalog. "
            "Names are not checked here; an unknown map fails when its inputs are read. "
            "A bare 'test:' with no name is rejected as a usage error."
        ),
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Maximum number of worker processes (default: one per map).",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Optional path to store a JSON summary of per-map results.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    args = parser.parse_args(argv)

    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be >= 1")
    try:
        args.catalog = effective_catalog(args.maps)
    except ValueError as exc:
        parser.error(f"invalid --maps value: {exc}")
    return args


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    logging.getLogger("PIL").setLevel(logging.INFO)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)
    logging.debug(
        "Catalog: %s",
        ", ".join(f"test:{item.name}" if item.is_test else item.name for item in args.catalog),
    )

    try:
        run(args.catalog, workers=args.workers, report_path=args.report)
    except MapGenerationError as exc:
        logging.error("Error generating terrain maps: %s", exc)
        return 1

    print(SUCCESS_MESSAGE)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
