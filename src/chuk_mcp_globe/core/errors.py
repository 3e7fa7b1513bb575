"""Error kinds raised by the tile pipeline. All of them are fatal to a run."""


class GlobeError(Exception):
    """Base class for pipeline failures."""


class FetchError(GlobeError):
    """A header or tile could not be retrieved (network, HTTP status, timeout)."""


class FormatError(GlobeError, ValueError):
    """A header is malformed or a tile buffer does not match its header."""


class DimensionMismatchError(GlobeError, ValueError):
    """Grids cannot be combined on a shared lattice."""
