"""Contract between the pipeline and the terrain kernel.

The processor only needs the three layers' dimensions and payloads plus a
WebP thumbnail; how they are computed is up to the generator callable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from map_generator.errors import GeneratorError


@dataclass(frozen=True)
class GeneratorArgs:
    image_buffer: bytes
    remove_small: bool
    name: str


@dataclass(frozen=True)
class MapLayer:
    width: int
    height: int
    num_land_tiles: int
    data: bytes


@dataclass(frozen=True)
class MapResult:
    map: MapLayer
    map4x: MapLayer
    map16x: MapLayer
    thumbnail: bytes


MapGenerator = Callable[[GeneratorArgs], MapResult]


def default_generator() -> MapGenerator:
    from map_generator.terrain import generate_map

    return generate_map


def invoke_generator(generator: MapGenerator, args: GeneratorArgs) -> MapResult:
    try:
        result = generator(args)
    except GeneratorError as exc:
        raise GeneratorError(f"failed to generate map for {args.name}: {exc}") from exc
    except Exception as exc:  # noqa: BLE001
        raise GeneratorError(
            f"failed to generate map for {args.name}: {type(exc).__name__}: {exc}"
        ) from exc
    if not isinstance(result, MapResult):
        raise GeneratorError(
            f"failed to generate map for {args.name}: generator returned {type(result).__name__}"
        )
    return result
