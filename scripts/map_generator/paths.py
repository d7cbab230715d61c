from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple

from map_generator.errors import PathResolutionError

# Relative to the working directory the tool is launched from.
INPUT_MAPS_DIR = Path("assets") / "maps"
INPUT_TEST_MAPS_DIR = Path("assets") / "test_maps"
# Relative to the parent of the working directory.
OUTPUT_MAPS_DIR = Path("resources") / "maps"
OUTPUT_TEST_MAPS_DIR = Path("tests") / "testdata" / "maps"

IMAGE_FILE = "image.png"
INFO_FILE = "info.json"

MAP_FILE = "map.bin"
MAP4X_FILE = "map4x.bin"
MAP16X_FILE = "map16x.bin"
THUMBNAIL_FILE = "thumbnail.webp"
MANIFEST_FILE = "manifest.json"
OUTPUT_FILES: Tuple[str, ...] = (
    MAP_FILE,
    MAP4X_FILE,
    MAP16X_FILE,
    THUMBNAIL_FILE,
    MANIFEST_FILE,
)


def working_dir() -> Path:
    """Return the working directory, keeping symlinks when $PWD still points at it."""
    try:
        cwd = Path.cwd()
    except OSError as exc:
        raise PathResolutionError(f"failed to get working directory: {exc}") from exc
    pwd = os.environ.get("PWD")
    if pwd and os.path.isabs(pwd):
        try:
            if os.path.samefile(pwd, cwd):
                return Path(pwd)
        except OSError:
            pass  # stale $PWD
    return cwd


def _base(base_dir: Optional[Path]) -> Path:
    if base_dir is None:
        return working_dir()
    base = Path(base_dir)
    if not base.is_absolute():
        base = working_dir() / base
    return base


def input_map_dir(is_test: bool, base_dir: Optional[Path] = None) -> Path:
    return _base(base_dir) / (INPUT_TEST_MAPS_DIR if is_test else INPUT_MAPS_DIR)


def output_map_dir(is_test: bool, base_dir: Optional[Path] = None) -> Path:
    # `<base>/..` collapsed lexically, without touching the filesystem.
    return _base(base_dir).parent / (OUTPUT_TEST_MAPS_DIR if is_test else OUTPUT_MAPS_DIR)
