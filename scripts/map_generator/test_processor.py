#!/usr/bin/env python3
import json
import os
import stat
import tempfile
import unittest
from pathlib import Path
from typing import List

from map_generator import paths
from map_generator.errors import (
    GeneratorError,
    InputReadError,
    ManifestParseError,
    OutputWriteError,
)
from map_generator.generator import GeneratorArgs, MapLayer, MapResult
from map_generator.processor import process_map


class FakeGenerator:
    """Deterministic stand-in that records every call."""

    def __init__(self) -> None:
        self.calls: List[GeneratorArgs] = []

    def __call__(self, args: GeneratorArgs) -> MapResult:
        self.calls.append(args)
        seed = args.name.encode("utf-8")
        return MapResult(
            map=MapLayer(width=64, height=32, num_land_tiles=1000, data=b"L1:" + seed + bytes(range(256))),
            map4x=MapLayer(width=32, height=16, num_land_tiles=250, data=b"L4:" + seed),
            map16x=MapLayer(width=16, height=8, num_land_tiles=60, data=b"L16:" + seed),
            thumbnail=b"RIFF\x00\x00\x00\x00WEBP" + seed,
        )


def _write_inputs(base: Path, name: str, info: bytes = b'{"tiles": 42}', is_test: bool = False) -> Path:
    source = paths.input_map_dir(is_test, base) / name
    source.mkdir(parents=True, exist_ok=True)
    (source / paths.IMAGE_FILE).write_bytes(b"\x89PNG fake image for " + name.encode())
    (source / paths.INFO_FILE).write_bytes(info)
    return source


class ProcessMapTests(unittest.TestCase):
    def setUp(self) -> None:
        temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(temp_dir.cleanup)
        self.root = Path(temp_dir.name)
        self.base = self.root / "generator"
        self.base.mkdir()
        self.generator = FakeGenerator()

    def _process(self, name: str, is_test: bool = False) -> Path:
        return process_map(name, is_test, generator=self.generator, base_dir=self.base)

    def test_writes_all_outputs_for_production_map(self) -> None:
        _write_inputs(self.base, "europe")

        out_dir = self._process("europe")

        self.assertEqual(out_dir, self.root / "resources" / "maps" / "europe")
        self.assertEqual(sorted(p.name for p in out_dir.iterdir()), sorted(paths.OUTPUT_FILES))
        result = FakeGenerator()(GeneratorArgs(b"", True, "europe"))
        self.assertEqual((out_dir / "map.bin").read_bytes(), result.map.data)
        self.assertEqual((out_dir / "map4x.bin").read_bytes(), result.map4x.data)
        self.assertEqual((out_dir / "map16x.bin").read_bytes(), result.map16x.data)
        self.assertEqual((out_dir / "thumbnail.webp").read_bytes(), result.thumbnail)

        manifest = json.loads((out_dir / "manifest.json").read_text())
        self.assertEqual(manifest["tiles"], 42)
        self.assertEqual(manifest["map"], {"width": 64, "height": 32, "num_land_tiles": 1000})
        self.assertEqual(manifest["map4x"], {"width": 32, "height": 16, "num_land_tiles": 250})
        self.assertEqual(manifest["map16x"], {"width": 16, "height": 8, "num_land_tiles": 60})

    def test_passes_image_and_remove_small_to_generator(self) -> None:
        source = _write_inputs(self.base, "europe")
        self._process("europe")

        self.assertEqual(len(self.generator.calls), 1)
        call = self.generator.calls[0]
        self.assertEqual(call.name, "europe")
        self.assertTrue(call.remove_small)
        self.assertEqual(call.image_buffer, (source / "image.png").read_bytes())

    def test_stale_layer_key_is_replaced(self) -> None:
        _write_inputs(self.base, "europe", info=b'{"map": "stale"}')
        out_dir = self._process("europe")

        manifest = json.loads((out_dir / "manifest.json").read_text())
        self.assertEqual(manifest["map"], {"width": 64, "height": 32, "num_land_tiles": 1000})

    def test_test_map_uses_test_roots_and_keeps_small_islands(self) -> None:
        _write_inputs(self.base, "plains", is_test=True)

        out_dir = self._process("plains", is_test=True)

        self.assertEqual(out_dir, self.root / "tests" / "testdata" / "maps" / "plains")
        self.assertEqual(sorted(p.name for p in out_dir.iterdir()), sorted(paths.OUTPUT_FILES))
        self.assertFalse(self.generator.calls[0].remove_small)
        self.assertFalse((self.root / "resources").exists())

    def test_missing_image_names_path_and_map(self) -> None:
        with self.assertRaises(InputReadError) as ctx:
            self._process("europe")
        message = str(ctx.exception)
        self.assertIn(str(self.base / "assets" / "maps" / "europe" / "image.png"), message)
        self.assertIn("europe", message)
        self.assertEqual(self.generator.calls, [])
        self.assertFalse((self.root / "resources").exists())

    def test_missing_info_file(self) -> None:
        source = _write_inputs(self.base, "europe")
        (source / "info.json").unlink()
        with self.assertRaises(InputReadError) as ctx:
            self._process("europe")
        self.assertIn("info.json", str(ctx.exception))

    def test_array_manifest_is_a_parse_error(self) -> None:
        _write_inputs(self.base, "europe", info=b"[]")
        with self.assertRaises(ManifestParseError) as ctx:
            self._process("europe")
        message = str(ctx.exception)
        self.assertIn("europe", message)
        self.assertIn(str(self.base / "assets" / "maps" / "europe" / "info.json"), message)
        self.assertEqual(self.generator.calls, [])

    def test_generator_failure_is_wrapped_with_map_name(self) -> None:
        _write_inputs(self.base, "europe")

        def broken(args: GeneratorArgs) -> MapResult:
            raise ValueError("bad pixels")

        with self.assertRaises(GeneratorError) as ctx:
            process_map("europe", False, generator=broken, base_dir=self.base)
        self.assertIn("europe", str(ctx.exception))
        self.assertIn("bad pixels", str(ctx.exception))

    def test_non_finite_constant_is_a_parse_error_before_writing(self) -> None:
        _write_inputs(self.base, "europe", info=b'{"scale": NaN}')
        with self.assertRaises(ManifestParseError) as ctx:
            self._process("europe")
        message = str(ctx.exception)
        self.assertIn("europe", message)
        self.assertIn(str(self.base / "assets" / "maps" / "europe" / "info.json"), message)
        self.assertEqual(self.generator.calls, [])
        self.assertFalse((self.root / "resources" / "maps" / "europe").exists())

    @unittest.skipIf(os.name == "nt", "POSIX permission bits")
    def test_output_modes(self) -> None:
        previous = os.umask(0o022)
        self.addCleanup(os.umask, previous)
        _write_inputs(self.base, "europe")

        out_dir = self._process("europe")

        self.assertEqual(stat.S_IMODE(out_dir.stat().st_mode), 0o755)
        for name in paths.OUTPUT_FILES:
            with self.subTest(name=name):
                self.assertEqual(stat.S_IMODE((out_dir / name).stat().st_mode), 0o644)

    def test_output_directory_blocked_by_file(self) -> None:
        _write_inputs(self.base, "europe")
        output_root = self.root / "resources" / "maps"
        output_root.mkdir(parents=True)
        (output_root / "europe").write_bytes(b"not a directory")

        with self.assertRaises(OutputWriteError) as ctx:
            self._process("europe")
        self.assertIn("europe", str(ctx.exception))

    def test_rerun_produces_identical_outputs(self) -> None:
        _write_inputs(self.base, "europe")
        out_dir = self._process("europe")
        first = {name: (out_dir / name).read_bytes() for name in paths.OUTPUT_FILES}

        self._process("europe")
        second = {name: (out_dir / name).read_bytes() for name in paths.OUTPUT_FILES}

        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()
