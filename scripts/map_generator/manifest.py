from __future__ import annotations

import json
from typing import Any, Dict

from map_generator.errors import ManifestParseError, ManifestSerializeError
from map_generator.generator import MapLayer, MapResult

LAYER_KEYS = ("map", "map4x", "map16x")


def _reject_constant(value: str) -> Any:
    raise ValueError(f"invalid JSON constant {value}")


def load_manifest(raw: bytes, source: str = "info.json") -> Dict[str, Any]:
    try:
        manifest = json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:  # JSONDecodeError and UnicodeDecodeError
        raise ManifestParseError(f"invalid JSON in {source}: {exc}") from exc
    if not isinstance(manifest, dict):
        raise ManifestParseError(
            f"expected a JSON object in {source}, got {type(manifest).__name__}"
        )
    return manifest


def layer_dimensions(layer: MapLayer) -> Dict[str, int]:
    return {
        "width": layer.width,
        "height": layer.height,
        "num_land_tiles": layer.num_land_tiles,
    }


def apply_layer_dimensions(manifest: Dict[str, Any], result: MapResult) -> Dict[str, Any]:
    """Overwrite the reserved layer keys; every other key is left untouched."""
    for key in LAYER_KEYS:
        manifest[key] = layer_dimensions(getattr(result, key))
    return manifest


def dump_manifest(manifest: Dict[str, Any]) -> bytes:
    try:
        text = json.dumps(manifest, indent=2, sort_keys=True, ensure_ascii=False, allow_nan=False)
        return text.encode("utf-8")
    except (TypeError, ValueError, RecursionError) as exc:  # UnicodeEncodeError for lone surrogates
        raise ManifestSerializeError(f"cannot serialize manifest: {exc}") from exc


def merge_manifest(raw: bytes, result: MapResult, source: str = "info.json") -> bytes:
    manifest = load_manifest(raw, source)
    apply_layer_dimensions(manifest, result)
    return dump_manifest(manifest)
