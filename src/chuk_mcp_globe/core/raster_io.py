"""
Raster I/O operations for GLOBE elevation tiles.

All functions are synchronous; callers wrap them in asyncio.to_thread().
Handles tile download and unpacking, header parsing, int16 tile decoding,
tile merging, block-average resampling, and GeoTIFF export.
"""

import gzip
import io
import logging
import math
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Any, Mapping, NamedTuple, Sequence

import numpy as np
import requests
from numpy.typing import NDArray
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..constants import (
    BYTE_ORDERS,
    DATASET_CRS,
    DEFAULT_FETCH_TIMEOUT_S,
    DEFAULT_OVERLAP,
    DEFAULT_VALIDITY_THRESHOLD,
    OVERLAP_POLICIES,
    REQUIRED_HEADER_KEYS,
    RETRY_ATTEMPTS,
    RETRY_WAIT_MAX,
    RETRY_WAIT_MIN,
    SAMPLE_BITS,
    SAMPLE_BYTES,
    TEXT_HEADER_KEYS,
    ErrorMessages,
    HeaderKey,
)
from .errors import DimensionMismatchError, FetchError, FormatError

logger = logging.getLogger(__name__)

# Type aliases
FloatArray = NDArray[np.floating[Any]]
Transform = Any  # rasterio.Affine

# Tolerance for lattice alignment, in cells
_ALIGN_TOLERANCE = 1e-6


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


class BoundingBox(NamedTuple):
    xmin: float
    xmax: float
    ymin: float
    ymax: float


@dataclass(frozen=True)
class HeaderRecord:
    """
    Geospatial parameters of one tile, parsed from its text header.

    Attributes:
        nrows: Number of rows in the paired binary tile
        ncols: Number of columns in the paired binary tile
        x_origin: X coordinate of the western edge (ULXMAP)
        y_origin: Y coordinate of the northern edge (ULYMAP)
        x_cell_size: Cell width in map units
        y_cell_size: Cell height in map units
        byteorder: "I" (little-endian) or "M" (big-endian)
        nodata: Sentinel sample value meaning "no data", if declared
        extras: Any other header keys, kept verbatim
    """

    nrows: int
    ncols: int
    x_origin: float
    y_origin: float
    x_cell_size: float
    y_cell_size: float
    byteorder: str = "I"
    nodata: float | None = None
    extras: dict[str, float | str] = field(default_factory=dict)

    @property
    def sample_count(self) -> int:
        return self.nrows * self.ncols

    @property
    def expected_bytes(self) -> int:
        return self.sample_count * SAMPLE_BYTES

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(f"{BYTE_ORDERS[self.byteorder]}i{SAMPLE_BYTES}")

    @property
    def bounds(self) -> BoundingBox:
        return _bounds(
            self.x_origin, self.y_origin, self.nrows, self.ncols, self.x_cell_size, self.y_cell_size
        )

    def to_dict(self) -> dict:
        return {
            "nrows": self.nrows,
            "ncols": self.ncols,
            "x_origin": self.x_origin,
            "y_origin": self.y_origin,
            "x_cell_size": self.x_cell_size,
            "y_cell_size": self.y_cell_size,
            "byteorder": self.byteorder,
            "nodata": self.nodata,
            "extras": dict(self.extras),
        }


@dataclass
class Grid:
    """
    A 2D elevation raster on a regular lattice.

    Rows run south from the top edge ``y_origin`` and columns run east from
    ``x_origin``, so cell ``(r, c)`` has its upper-left corner at
    ``(x_origin + c * x_cell_size, y_origin - r * y_cell_size)``. Missing
    data is NaN.
    """

    values: FloatArray
    x_origin: float
    y_origin: float
    x_cell_size: float
    y_cell_size: float
    tile_code: str | None = None
    columns_reversed: bool = False

    @property
    def rows(self) -> int:
        return int(self.values.shape[0])

    @property
    def cols(self) -> int:
        return int(self.values.shape[1])

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.cols

    @property
    def bounds(self) -> BoundingBox:
        return _bounds(
            self.x_origin, self.y_origin, self.rows, self.cols, self.x_cell_size, self.y_cell_size
        )

    @property
    def valid_mask(self) -> NDArray[np.bool_]:
        return ~np.isnan(self.values)

    @property
    def nodata_count(self) -> int:
        return int(np.sum(np.isnan(self.values)))

    @property
    def transform(self) -> Transform:
        """Affine transform mapping (col, row) to (x, y)."""
        from rasterio.transform import Affine

        if self.columns_reversed:
            return Affine(
                -self.x_cell_size, 0.0, self.bounds.xmax, 0.0, -self.y_cell_size, self.y_origin
            )
        return Affine(self.x_cell_size, 0.0, self.x_origin, 0.0, -self.y_cell_size, self.y_origin)


def _bounds(
    x_origin: float,
    y_origin: float,
    rows: int,
    cols: int,
    x_cell_size: float,
    y_cell_size: float,
) -> BoundingBox:
    # y_origin is the top edge; rows run south
    return BoundingBox(
        xmin=x_origin,
        xmax=x_origin + cols * x_cell_size,
        ymin=y_origin - rows * y_cell_size,
        ymax=y_origin,
    )


# ---------------------------------------------------------------------------
# Retry decorator for network I/O
# ---------------------------------------------------------------------------

_retry_network = retry(
    stop=stop_after_attempt(RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=RETRY_WAIT_MIN, max=RETRY_WAIT_MAX),
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    reraise=True,
)


# ---------------------------------------------------------------------------
# Download & unpacking
# ---------------------------------------------------------------------------


@_retry_network
def _http_get(url: str, timeout_s: float) -> bytes:
    response = requests.get(url, timeout=timeout_s)
    response.raise_for_status()
    return response.content


def download_bytes(url: str, timeout_s: float = DEFAULT_FETCH_TIMEOUT_S) -> bytes:
    """
    Download a remote artifact.

    Connection errors and timeouts are retried; anything still failing
    after the retry budget, and any HTTP error status, raises FetchError.

    Args:
        url: HTTP(S) URL of the header or tile
        timeout_s: Per-request timeout in seconds

    Returns:
        Response body
    """
    logger.info(f"Fetching {url} (timeout {timeout_s:.0f}s)")
    try:
        return _http_get(url, timeout_s)
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else "unknown"
        raise FetchError(ErrorMessages.HTTP_ERROR.format(url, status)) from e
    except requests.RequestException as e:
        raise FetchError(ErrorMessages.NETWORK_ERROR.format(url, RETRY_ATTEMPTS, e)) from e


def unpack_payload(data: bytes, member_hint: str | None = None) -> bytes:
    """
    Return the raw tile buffer from a downloaded payload.

    Zip archives yield the member whose name contains ``member_hint``
    (falling back to the largest file), gzip streams are decompressed,
    and anything else is returned unchanged.
    """
    if data[:4] == b"PK\x03\x04":
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                members = [m for m in archive.infolist() if not m.is_dir()]
                if not members:
                    raise FormatError(ErrorMessages.EMPTY_ARCHIVE)
                chosen = None
                if member_hint:
                    hinted = [m for m in members if member_hint in m.filename]
                    if hinted:
                        chosen = hinted[0]
                if chosen is None:
                    chosen = max(members, key=lambda m: m.file_size)
                logger.debug(f"Unpacking zip member {chosen.filename}")
                return archive.read(chosen)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError) as e:
            raise FormatError(ErrorMessages.CORRUPT_ARCHIVE.format(e)) from e

    if data[:2] == b"\x1f\x8b":
        try:
            return gzip.decompress(data)
        except (OSError, zlib.error, EOFError) as e:
            raise FormatError(ErrorMessages.CORRUPT_ARCHIVE.format(e)) from e

    return data


# ---------------------------------------------------------------------------
# Header parsing
# ---------------------------------------------------------------------------


def parse_header(text: str) -> HeaderRecord:
    """
    Parse a BIL-style text header into a HeaderRecord.

    Each non-blank line holds a key and a value separated by whitespace.
    Keys are matched by name (case-insensitive), never by line position.

    Args:
        text: Header file contents

    Returns:
        Parsed HeaderRecord

    Raises:
        FormatError: On missing, duplicated, or non-numeric required keys,
            or on values the decoder cannot honour
    """
    raw: dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped:
            continue
        parts = stripped.split(None, 1)
        if len(parts) < 2:
            raise FormatError(ErrorMessages.HEADER_BAD_ROW.format(lineno, stripped))
        key = parts[0].upper()
        if key in raw:
            raise FormatError(ErrorMessages.HEADER_DUPLICATE_KEY.format(key))
        raw[key] = parts[1].strip()

    missing = [k for k in REQUIRED_HEADER_KEYS if k not in raw]
    if missing:
        raise FormatError(ErrorMessages.HEADER_MISSING_KEYS.format(", ".join(missing)))

    nrows = _positive_int(HeaderKey.NROWS, raw[HeaderKey.NROWS])
    ncols = _positive_int(HeaderKey.NCOLS, raw[HeaderKey.NCOLS])
    x_cell = _positive_float(HeaderKey.XDIM, raw[HeaderKey.XDIM])
    y_cell = _positive_float(HeaderKey.YDIM, raw[HeaderKey.YDIM])

    byteorder = raw.get(HeaderKey.BYTEORDER, "I").upper()
    if byteorder not in BYTE_ORDERS:
        raise FormatError(
            ErrorMessages.HEADER_BAD_BYTEORDER.format(byteorder, ", ".join(BYTE_ORDERS))
        )

    if HeaderKey.NBITS in raw:
        nbits = _number(HeaderKey.NBITS, raw[HeaderKey.NBITS])
        if nbits != SAMPLE_BITS:
            raise FormatError(ErrorMessages.HEADER_BAD_NBITS.format(raw[HeaderKey.NBITS]))
    if HeaderKey.NBANDS in raw:
        nbands = _number(HeaderKey.NBANDS, raw[HeaderKey.NBANDS])
        if nbands != 1:
            raise FormatError(ErrorMessages.HEADER_BAD_NBANDS.format(raw[HeaderKey.NBANDS]))

    nodata = None
    if HeaderKey.NODATA in raw:
        nodata = _number(HeaderKey.NODATA, raw[HeaderKey.NODATA])

    consumed = set(REQUIRED_HEADER_KEYS) | {HeaderKey.BYTEORDER, HeaderKey.NODATA}
    extras: dict[str, float | str] = {}
    for key, value in raw.items():
        if key in consumed:
            continue
        if key in TEXT_HEADER_KEYS:
            extras[key] = value
            continue
        try:
            extras[key] = float(value)
        except ValueError:
            logger.debug(f"Keeping non-numeric header key {key}={value!r}")
            extras[key] = value

    return HeaderRecord(
        nrows=nrows,
        ncols=ncols,
        x_origin=_number(HeaderKey.ULXMAP, raw[HeaderKey.ULXMAP]),
        y_origin=_number(HeaderKey.ULYMAP, raw[HeaderKey.ULYMAP]),
        x_cell_size=x_cell,
        y_cell_size=y_cell,
        byteorder=byteorder,
        nodata=nodata,
        extras=extras,
    )


def _number(key: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise FormatError(ErrorMessages.HEADER_NOT_NUMERIC.format(key, value)) from None
    if not math.isfinite(number):
        raise FormatError(ErrorMessages.HEADER_NOT_NUMERIC.format(key, value))
    return number


def _positive_int(key: str, value: str) -> int:
    number = _number(key, value)
    if number <= 0 or not number.is_integer():
        raise FormatError(ErrorMessages.HEADER_NOT_POSITIVE_INT.format(key, value))
    return int(number)


def _positive_float(key: str, value: str) -> float:
    number = _number(key, value)
    if number <= 0:
        raise FormatError(ErrorMessages.HEADER_NOT_POSITIVE.format(key, value))
    return number


# ---------------------------------------------------------------------------
# Tile decoding
# ---------------------------------------------------------------------------


def decode_tile(
    buffer: bytes | bytearray | memoryview,
    header: HeaderRecord,
    tile_code: str | None = None,
) -> Grid:
    """
    Decode a raw int16 tile buffer into a Grid.

    Samples are read row-major (BIL, single band) in the header's byte
    order. Samples equal to the header's NODATA value become NaN.

    Args:
        buffer: Raw tile bytes with no embedded header
        header: Parsed header for this tile
        tile_code: Optional tile identifier carried on the Grid

    Returns:
        float32 Grid with bounds derived from the header

    Raises:
        FormatError: If the buffer length is not nrows * ncols * 2
    """
    size = len(buffer) if not isinstance(buffer, memoryview) else buffer.nbytes
    if size != header.expected_bytes:
        raise FormatError(
            ErrorMessages.BUFFER_LENGTH.format(
                size, header.nrows, header.ncols, header.expected_bytes
            )
        )

    samples = np.frombuffer(buffer, dtype=header.dtype, count=header.sample_count)
    values = samples.reshape(header.nrows, header.ncols).astype(np.float32)

    if header.nodata is not None:
        values[values == np.float32(header.nodata)] = np.nan

    return Grid(
        values=values,
        x_origin=header.x_origin,
        y_origin=header.y_origin,
        x_cell_size=header.x_cell_size,
        y_cell_size=header.y_cell_size,
        tile_code=tile_code,
    )


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def merge_grids(grids: Sequence[Grid], overlap: str = DEFAULT_OVERLAP) -> Grid:
    """
    Merge adjacent grids into one grid spanning their union bounding box.

    Cells covered by no source grid are NaN. Where footprints overlap,
    ``overlap`` decides: "last" lets later grids win, "first" lets earlier
    grids win, "error" refuses to merge. Only valid (non-NaN) cells are
    written, so a no-data cell never hides a measured one.

    Raises:
        DimensionMismatchError: If cell sizes differ, a grid is off the
            shared lattice, or overlap is "error" and footprints intersect
    """
    grids = list(grids)
    if not grids:
        raise DimensionMismatchError(ErrorMessages.NO_GRIDS)
    if overlap not in OVERLAP_POLICIES:
        raise ValueError(
            ErrorMessages.INVALID_OVERLAP.format(overlap, ", ".join(OVERLAP_POLICIES))
        )

    ref = grids[0]
    for grid in grids:
        if grid.columns_reversed:
            raise DimensionMismatchError(ErrorMessages.GRID_REVERSED)
        if not (
            math.isclose(grid.x_cell_size, ref.x_cell_size, rel_tol=1e-9)
            and math.isclose(grid.y_cell_size, ref.y_cell_size, rel_tol=1e-9)
        ):
            raise DimensionMismatchError(
                ErrorMessages.CELL_SIZE_MISMATCH.format(
                    (ref.x_cell_size, ref.y_cell_size), (grid.x_cell_size, grid.y_cell_size)
                )
            )

    x_min = min(g.x_origin for g in grids)
    y_max = max(g.y_origin for g in grids)

    placements = []
    for grid in grids:
        row_off = _lattice_offset(y_max - grid.y_origin, ref.y_cell_size, grid)
        col_off = _lattice_offset(grid.x_origin - x_min, ref.x_cell_size, grid)
        placements.append((grid, row_off, col_off))

    total_rows = max(row_off + g.rows for g, row_off, _ in placements)
    total_cols = max(col_off + g.cols for g, _, col_off in placements)
    merged = np.full((total_rows, total_cols), np.nan, dtype=np.float32)

    if overlap == "error":
        covered = np.zeros((total_rows, total_cols), dtype=bool)
        for grid, row_off, col_off in placements:
            footprint = covered[row_off : row_off + grid.rows, col_off : col_off + grid.cols]
            if footprint.any():
                raise DimensionMismatchError(ErrorMessages.GRIDS_OVERLAP)
            footprint[...] = True

    order = placements if overlap != "first" else list(reversed(placements))
    for grid, row_off, col_off in order:
        target = merged[row_off : row_off + grid.rows, col_off : col_off + grid.cols]
        valid = ~np.isnan(grid.values)
        target[valid] = grid.values[valid]

    codes = [g.tile_code for g in grids if g.tile_code]
    logger.info(f"Merged {len(grids)} grids into {total_rows}x{total_cols}")

    return Grid(
        values=merged,
        x_origin=x_min,
        y_origin=y_max,
        x_cell_size=ref.x_cell_size,
        y_cell_size=ref.y_cell_size,
        tile_code="+".join(codes) if codes else None,
    )


def _lattice_offset(distance: float, cell_size: float, grid: Grid) -> int:
    cells = distance / cell_size
    offset = int(round(cells))
    if abs(cells - offset) > _ALIGN_TOLERANCE:
        raise DimensionMismatchError(
            ErrorMessages.GRID_MISALIGNED.format(grid.x_origin, grid.y_origin)
        )
    return offset


# ---------------------------------------------------------------------------
# Resampling
# ---------------------------------------------------------------------------


def resample_grid(
    grid: Grid,
    factor: int,
    validity_threshold: float | None = DEFAULT_VALIDITY_THRESHOLD,
    reverse_columns: bool = True,
) -> Grid:
    """
    Downsample a grid by block-averaging.

    Each output cell is the mean of its factor x factor input block (edge
    blocks may be partial). NaN cells and cells below ``validity_threshold``
    are excluded; a block with no valid cells yields NaN. Negative
    elevations are treated as no data by default, which discards real
    below-sea-level land.

    The column order of the result is reversed unless ``reverse_columns`` is
    False, to match renderers that draw the x axis the other way round.

    Args:
        grid: Input grid
        factor: Block size (>= 1)
        validity_threshold: Minimum valid value, or None to keep all finite cells
        reverse_columns: Flip the column order of the output

    Returns:
        Grid of shape ceil(rows/factor) x ceil(cols/factor) with cell size
        multiplied by factor
    """
    if isinstance(factor, bool) or not isinstance(factor, (int, np.integer)) or factor < 1:
        raise ValueError(ErrorMessages.INVALID_FACTOR.format(factor))
    factor = int(factor)

    data = grid.values.astype(np.float64)
    invalid = np.isnan(data)
    if validity_threshold is not None:
        with np.errstate(invalid="ignore"):
            invalid |= data < validity_threshold

    out_rows = -(-grid.rows // factor)
    out_cols = -(-grid.cols // factor)

    padded = np.zeros((out_rows * factor, out_cols * factor), dtype=np.float64)
    padded[: grid.rows, : grid.cols] = np.where(invalid, 0.0, data)
    valid = np.zeros(padded.shape, dtype=bool)
    valid[: grid.rows, : grid.cols] = ~invalid

    sums = padded.reshape(out_rows, factor, out_cols, factor).sum(axis=(1, 3))
    counts = valid.reshape(out_rows, factor, out_cols, factor).sum(axis=(1, 3))

    means = np.full((out_rows, out_cols), np.nan, dtype=np.float64)
    np.divide(sums, counts, out=means, where=counts > 0)
    result = means.astype(np.float32)

    if reverse_columns:
        result = np.ascontiguousarray(result[:, ::-1])

    logger.info(f"Resampled {grid.rows}x{grid.cols} by {factor} to {out_rows}x{out_cols}")

    return Grid(
        values=result,
        x_origin=grid.x_origin,
        y_origin=grid.y_origin,
        x_cell_size=grid.x_cell_size * factor,
        y_cell_size=grid.y_cell_size * factor,
        tile_code=grid.tile_code,
        columns_reversed=grid.columns_reversed != reverse_columns,
    )


def compose_mosaic(
    tiles: Mapping[str, Grid],
    factor: int,
    overlap: str = DEFAULT_OVERLAP,
    validity_threshold: float | None = DEFAULT_VALIDITY_THRESHOLD,
    reverse_columns: bool = True,
) -> Grid:
    """
    Merge decoded tiles (in mapping order) and resample the result.

    Args:
        tiles: Tile code -> decoded Grid
        factor: Resample block factor
        overlap: Merge overlap policy
        validity_threshold: Resampler validity threshold
        reverse_columns: Flip the output column order

    Returns:
        Resampled mosaic Grid
    """
    if not tiles:
        raise ValueError(ErrorMessages.NO_TILES)
    merged = merge_grids(list(tiles.values()), overlap=overlap)
    return resample_grid(
        merged,
        factor,
        validity_threshold=validity_threshold,
        reverse_columns=reverse_columns,
    )


# ---------------------------------------------------------------------------
# Output conversion
# ---------------------------------------------------------------------------


def grid_summary(grid: Grid) -> dict:
    """Shape, extent, and value statistics for a grid."""
    valid = grid.values[~np.isnan(grid.values)]
    if len(valid) > 0:
        elevation_range = [float(np.min(valid)), float(np.max(valid))]
    else:
        elevation_range = None

    return {
        "tile_code": grid.tile_code,
        "shape": list(grid.shape),
        "bounds": list(grid.bounds),
        "cell_size": [grid.x_cell_size, grid.y_cell_size],
        "elevation_range": elevation_range,
        "nodata_cells": grid.nodata_count,
        "columns_reversed": grid.columns_reversed,
    }


def arrays_to_geotiff(
    array: FloatArray,
    crs: Any,
    transform: Transform,
    dtype: str = "float32",
    nodata: float | None = None,
) -> bytes:
    """
    Convert a 2D NumPy array to GeoTIFF bytes.

    Args:
        array: 2D elevation array
        crs: Coordinate reference system
        transform: Affine transform
        dtype: Output data type
        nodata: Nodata value

    Returns:
        GeoTIFF bytes
    """
    from rasterio.io import MemoryFile

    height, width = array.shape

    memfile = MemoryFile()
    with memfile.open(
        driver="GTiff",
        height=height,
        width=width,
        count=1,
        dtype=dtype,
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dst:
        dst.write(array[np.newaxis, :].astype(dtype))

    return memfile.read()


def grid_to_geotiff(grid: Grid, crs: Any = DATASET_CRS) -> bytes:
    """Export a grid as float32 GeoTIFF bytes with NaN nodata."""
    return arrays_to_geotiff(grid.values, crs, grid.transform, "float32", float("nan"))
