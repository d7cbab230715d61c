"""Terrain map build pipeline: source PNG catalog -> binary layers, thumbnails, manifests."""

__version__ = "0.1.0"
