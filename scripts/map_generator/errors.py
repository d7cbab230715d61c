"""Error kinds raised by the map pipeline.

Every class takes a single message argument so instances survive the trip
back from worker processes.
"""

from __future__ import annotations


class MapGenerationError(RuntimeError):
    pass


class PathResolutionError(MapGenerationError):
    pass


class InputReadError(MapGenerationError):
    pass


class ManifestParseError(MapGenerationError):
    pass


class GeneratorError(MapGenerationError):
    pass


class OutputWriteError(MapGenerationError):
    pass


class ManifestSerializeError(MapGenerationError):
    pass
