"""
Constants for chuk-mcp-globe server.

Tile catalogue, URL templates, pipeline defaults, and message strings live here.
"""


class ServerConfig:
    NAME = "chuk-mcp-globe"
    VERSION = "0.1.0"
    DESCRIPTION = "GLOBE Elevation Tile Retrieval, Mosaicking & Resampling MCP Server"


class StorageProvider:
    MEMORY = "memory"
    S3 = "s3"
    FILESYSTEM = "filesystem"


class SessionProvider:
    MEMORY = "memory"
    REDIS = "redis"


class EnvVar:
    ARTIFACTS_PROVIDER = "CHUK_ARTIFACTS_PROVIDER"
    BUCKET_NAME = "BUCKET_NAME"
    REDIS_URL = "REDIS_URL"
    ARTIFACTS_PATH = "CHUK_ARTIFACTS_PATH"
    AWS_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
    AWS_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"
    AWS_ENDPOINT_URL_S3 = "AWS_ENDPOINT_URL_S3"
    MCP_STDIO = "MCP_STDIO"
    HEADER_URL = "GLOBE_HEADER_URL"
    TILE_URL = "GLOBE_TILE_URL"
    FETCH_TIMEOUT = "GLOBE_FETCH_TIMEOUT"
    BLOCK_FACTOR = "GLOBE_BLOCK_FACTOR"


# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------

DATASET_NAME = "GLOBE v1.0 (Global Land One-km Base Elevation)"
DATASET_CRS = "EPSG:4326"
CELL_SIZE_DEGREES = 30.0 / 3600.0  # 30 arc-seconds
NODATA_VALUE = -500.0  # ocean cells in the source tiles

DEFAULT_HEADER_URL = "https://www.ngdc.noaa.gov/mgg/topo/elev/esri/hdr/{code}10g.hdr"
DEFAULT_TILE_URL = "https://www.ngdc.noaa.gov/mgg/topo/DATATILES/elev/{code}10g.zip"


def _tile(code: str, west: float, south: float, east: float, north: float, rows: int) -> dict:
    return {
        "code": code,
        "name": f"GLOBE tile {code.upper()}",
        "bounds": [west, south, east, north],
        "rows": rows,
        "cols": 10800,
        "dtype": "int16",
        "nodata_value": NODATA_VALUE,
        "file_stem": f"{code}10g",
    }


# Tiles run west to east within four latitude bands; polar bands are shorter.
GLOBE_TILES: dict[str, dict] = {
    "a": _tile("a", -180, 50, -90, 90, 4800),
    "b": _tile("b", -90, 50, 0, 90, 4800),
    "c": _tile("c", 0, 50, 90, 90, 4800),
    "d": _tile("d", 90, 50, 180, 90, 4800),
    "e": _tile("e", -180, 0, -90, 50, 6000),
    "f": _tile("f", -90, 0, 0, 50, 6000),
    "g": _tile("g", 0, 0, 90, 50, 6000),
    "h": _tile("h", 90, 0, 180, 50, 6000),
    "i": _tile("i", -180, -50, -90, 0, 6000),
    "j": _tile("j", -90, -50, 0, 0, 6000),
    "k": _tile("k", 0, -50, 90, 0, 6000),
    "l": _tile("l", 90, -50, 180, 0, 6000),
    "m": _tile("m", -180, -90, -90, -50, 4800),
    "n": _tile("n", -90, -90, 0, -50, 4800),
    "o": _tile("o", 0, -90, 90, -50, 4800),
    "p": _tile("p", 90, -90, 180, -50, 4800),
}

ALL_TILE_CODES = list(GLOBE_TILES.keys())


# ---------------------------------------------------------------------------
# Header format
# ---------------------------------------------------------------------------


class HeaderKey:
    BYTEORDER = "BYTEORDER"
    LAYOUT = "LAYOUT"
    NROWS = "NROWS"
    NCOLS = "NCOLS"
    NBANDS = "NBANDS"
    NBITS = "NBITS"
    NODATA = "NODATA"
    ULXMAP = "ULXMAP"
    ULYMAP = "ULYMAP"
    XDIM = "XDIM"
    YDIM = "YDIM"


REQUIRED_HEADER_KEYS = [
    HeaderKey.NROWS,
    HeaderKey.NCOLS,
    HeaderKey.ULXMAP,
    HeaderKey.ULYMAP,
    HeaderKey.XDIM,
    HeaderKey.YDIM,
]
TEXT_HEADER_KEYS = [HeaderKey.BYTEORDER, HeaderKey.LAYOUT]
BYTE_ORDERS = {"I": "<", "M": ">"}
SAMPLE_BITS = 16
SAMPLE_BYTES = SAMPLE_BITS // 8


# ---------------------------------------------------------------------------
# Pipeline defaults
# ---------------------------------------------------------------------------

DEFAULT_BLOCK_FACTOR = 10
DEFAULT_VALIDITY_THRESHOLD = 0.0
OVERLAP_POLICIES = ["last", "first", "error"]
DEFAULT_OVERLAP = "last"

# Cache, retry & timeouts
TILE_CACHE_MAX_BYTES = 512 * 1024 * 1024  # 512 MB total
TILE_CACHE_MAX_ITEM = 160 * 1024 * 1024  # a full 10800x6000 int16 tile is ~124 MB
RETRY_ATTEMPTS = 3
RETRY_WAIT_MIN = 1
RETRY_WAIT_MAX = 10
DEFAULT_FETCH_TIMEOUT_S = 120.0


class ErrorMessages:
    UNKNOWN_TILE = "Unknown GLOBE tile '{}'. Available: {}"
    NO_TILES = "At least one tile code is required"
    NO_GRIDS = "At least one grid is required to merge"
    NO_ARTIFACT_STORE = (
        "No artifact store available. Configure CHUK_ARTIFACTS_PROVIDER "
        "environment variable (memory, filesystem, or s3)."
    )
    NETWORK_ERROR = "Failed to fetch {} after {} attempts: {}"
    HTTP_ERROR = "Failed to fetch {}: HTTP {}"
    HEADER_MISSING_KEYS = "Header is missing required keys: {}"
    HEADER_DUPLICATE_KEY = "Header key '{}' appears more than once"
    HEADER_BAD_ROW = "Header row {} has no value: '{}'"
    HEADER_NOT_NUMERIC = "Header key '{}' has non-numeric value '{}'"
    HEADER_NOT_POSITIVE_INT = "Header key '{}' must be a positive integer, got {}"
    HEADER_NOT_POSITIVE = "Header key '{}' must be positive, got {}"
    HEADER_BAD_BYTEORDER = "Unsupported byte order '{}'. Expected one of: {}"
    HEADER_BAD_NBITS = "Unsupported sample size {} bits. Only 16-bit tiles are supported"
    HEADER_BAD_NBANDS = "Unsupported band count {}. Only single-band tiles are supported"
    BUFFER_LENGTH = "Buffer holds {} bytes but header declares {}x{} int16 samples ({} bytes)"
    CORRUPT_ARCHIVE = "Tile payload could not be unpacked: {}"
    EMPTY_ARCHIVE = "Tile archive contains no files"
    CELL_SIZE_MISMATCH = "Cell sizes differ: {} vs {}"
    GRID_MISALIGNED = "Grid origin ({}, {}) is not aligned to the merge lattice"
    GRID_REVERSED = "Cannot merge a grid whose columns have been reversed"
    GRIDS_OVERLAP = "Grids overlap and overlap policy is 'error'"
    INVALID_OVERLAP = "Invalid overlap policy '{}'. Available: {}"
    INVALID_FACTOR = "Block factor must be an integer >= 1, got {}"


class SuccessMessages:
    TILES_LIST = "{} GLOBE tiles available"
    TILE_DESCRIBE = "Tile {} covers [{}]"
    HEADER_FETCHED = "Header for tile {}: {}x{} cells at {:.6f} degrees"
    TILE_FETCHED = "Decoded tile {} ({}x{}, {} nodata cells)"
    MOSAIC_COMPLETE = "Mosaic of {} tiles resampled by {} to {}x{}"
