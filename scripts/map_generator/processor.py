from __future__ import annotations

from pathlib import Path
from typing import Optional

from map_generator import paths
from map_generator.errors import (
    InputReadError,
    ManifestParseError,
    ManifestSerializeError,
    OutputWriteError,
    PathResolutionError,
)
from map_generator.generator import (
    GeneratorArgs,
    MapGenerator,
    default_generator,
    invoke_generator,
)
from map_generator.manifest import apply_layer_dimensions, dump_manifest, load_manifest


def read_input(path: Path, what: str, name: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise InputReadError(f"failed to read {what} {path} for {name}: {exc}") from exc


def write_output(path: Path, payload: bytes, what: str, name: str) -> None:
    try:
        path.write_bytes(payload)
    except OSError as exc:
        raise OutputWriteError(f"failed to write {what} {path} for {name}: {exc}") from exc


def process_map(
    name: str,
    is_test: bool,
    generator: Optional[MapGenerator] = None,
    base_dir: Optional[Path] = None,
) -> Path:
    """Generate every output for one catalog entry and return its output directory.

    Steps run strictly in order and the first failure aborts the map. Files
    already written are left behind; the next successful run overwrites them.
    """
    if generator is None:
        generator = default_generator()

    try:
        input_root = paths.input_map_dir(is_test, base_dir)
        output_root = paths.output_map_dir(is_test, base_dir)
    except PathResolutionError as exc:
        raise PathResolutionError(f"failed to resolve map directories for {name}: {exc}") from exc

    source_dir = input_root / name
    image_path = source_dir / paths.IMAGE_FILE
    image_buffer = read_input(image_path, "map file", name)

    info_path = source_dir / paths.INFO_FILE
    info_buffer = read_input(info_path, "info file", name)
    try:
        manifest = load_manifest(info_buffer, str(info_path))
    except ManifestParseError as exc:
        raise ManifestParseError(f"failed to parse info.json for {name}: {exc}") from exc

    result = invoke_generator(
        generator,
        GeneratorArgs(image_buffer=image_buffer, remove_small=not is_test, name=name),
    )

    apply_layer_dimensions(manifest, result)
    try:
        manifest_bytes = dump_manifest(manifest)
    except ManifestSerializeError as exc:
        raise ManifestSerializeError(f"failed to serialize manifest for {name}: {exc}") from exc

    map_dir = output_root / name
    try:
        map_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputWriteError(f"failed to create output directory {map_dir} for {name}: {exc}") from exc

    write_output(map_dir / paths.MAP_FILE, result.map.data, "map binary", name)
    write_output(map_dir / paths.MAP4X_FILE, result.map4x.data, "map binary", name)
    write_output(map_dir / paths.MAP16X_FILE, result.map16x.data, "map binary", name)
    write_output(map_dir / paths.THUMBNAIL_FILE, result.thumbnail, "thumbnail", name)
    write_output(map_dir / paths.MANIFEST_FILE, manifest_bytes, "manifest", name)
    return map_dir
