"""Core tile pipeline: raster I/O, errors, and the orchestrating manager."""

from .errors import DimensionMismatchError, FetchError, FormatError, GlobeError

__all__ = ["GlobeError", "FetchError", "FormatError", "DimensionMismatchError"]
