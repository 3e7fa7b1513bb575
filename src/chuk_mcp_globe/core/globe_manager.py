"""
Globe Manager - central orchestrator for GLOBE tile operations.

Manages the tile catalogue, URL construction, download cache, the
decode -> merge -> resample pipeline, and artifact storage.
All public async methods wrap synchronous raster I/O via asyncio.to_thread(),
one stage at a time.
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Iterable

from ..constants import (
    ALL_TILE_CODES,
    DATASET_CRS,
    DEFAULT_BLOCK_FACTOR,
    DEFAULT_FETCH_TIMEOUT_S,
    DEFAULT_HEADER_URL,
    DEFAULT_OVERLAP,
    DEFAULT_TILE_URL,
    DEFAULT_VALIDITY_THRESHOLD,
    GLOBE_TILES,
    OVERLAP_POLICIES,
    TILE_CACHE_MAX_BYTES,
    TILE_CACHE_MAX_ITEM,
    EnvVar,
    ErrorMessages,
)
from .raster_io import Grid, HeaderRecord

logger = logging.getLogger(__name__)


@dataclass
class TileResult:
    """Result of fetching and storing a single decoded tile."""

    artifact_ref: str
    tile_code: str
    crs: str
    shape: list[int]
    bounds: list[float]
    cell_size: list[float]
    elevation_range: list[float] | None
    nodata_cells: int


@dataclass
class MosaicResult:
    """Result of a merge + resample run over several tiles."""

    artifact_ref: str
    tile_codes: list[str]
    crs: str
    block_factor: int
    overlap: str
    shape: list[int]
    bounds: list[float]
    cell_size: list[float]
    elevation_range: list[float] | None
    nodata_cells: int
    columns_reversed: bool


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring {name}={raw!r}: must be positive, using {default}")
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer, using {default}")
        return default
    if value < 1:
        logger.warning(f"Ignoring {name}={raw!r}: must be >= 1, using {default}")
        return default
    return value


class GlobeManager:
    """Central manager for GLOBE tile retrieval and mosaicking."""

    def __init__(
        self,
        header_url: str | None = None,
        tile_url: str | None = None,
        timeout_s: float | None = None,
        default_block_factor: int | None = None,
    ) -> None:
        self.header_url = header_url or os.environ.get(EnvVar.HEADER_URL, DEFAULT_HEADER_URL)
        self.tile_url = tile_url or os.environ.get(EnvVar.TILE_URL, DEFAULT_TILE_URL)
        self.timeout_s = timeout_s or _env_float(EnvVar.FETCH_TIMEOUT, DEFAULT_FETCH_TIMEOUT_S)
        self.default_block_factor = default_block_factor or _env_int(
            EnvVar.BLOCK_FACTOR, DEFAULT_BLOCK_FACTOR
        )

        # Download LRU cache: url -> bytes
        self._tile_cache: dict[str, bytes] = {}
        self._tile_cache_sizes: dict[str, int] = {}
        self._tile_cache_total: int = 0

    # ------------------------------------------------------------------
    # Catalogue (sync, no I/O)
    # ------------------------------------------------------------------

    def list_tiles(self) -> list[dict]:
        """List all GLOBE tiles."""
        return [
            {
                "code": tile["code"],
                "name": tile["name"],
                "bounds": tile["bounds"],
                "rows": tile["rows"],
                "cols": tile["cols"],
            }
            for tile in GLOBE_TILES.values()
        ]

    def describe_tile(self, code: str) -> dict:
        """Get catalogue metadata and source URLs for a tile."""
        code = self._normalise_code(code)
        detail = dict(GLOBE_TILES[code])
        detail["header_url"] = self.header_url_for(code)
        detail["tile_url"] = self.tile_url_for(code)
        return detail

    def header_url_for(self, code: str) -> str:
        return self.header_url.format(code=self._normalise_code(code))

    def tile_url_for(self, code: str) -> str:
        return self.tile_url.format(code=self._normalise_code(code))

    # ------------------------------------------------------------------
    # Retrieval (async)
    # ------------------------------------------------------------------

    async def fetch_header(self, code: str) -> HeaderRecord:
        """Download and parse the text header for a tile."""
        from . import raster_io

        code = self._normalise_code(code)
        raw = await self._download(self.header_url_for(code))
        return raster_io.parse_header(raw.decode("utf-8", errors="replace"))

    async def fetch_tile(self, code: str) -> Grid:
        """Download, unpack, and decode one tile."""
        from . import raster_io

        code = self._normalise_code(code)
        header = await self.fetch_header(code)
        payload = await self._download(self.tile_url_for(code))

        buffer = await asyncio.to_thread(
            raster_io.unpack_payload, payload, GLOBE_TILES[code]["file_stem"]
        )
        grid = await asyncio.to_thread(raster_io.decode_tile, buffer, header, code)

        logger.info(f"Decoded tile {code}: {grid.rows}x{grid.cols}, bounds {tuple(grid.bounds)}")
        return grid

    async def fetch_tiles(self, codes: Iterable[str]) -> dict[str, Grid]:
        """Fetch several tiles in order. Duplicate codes are fetched once."""
        ordered = self._normalise_codes(codes)
        tiles: dict[str, Grid] = {}
        for code in ordered:
            tiles[code] = await self.fetch_tile(code)
        return tiles

    async def fetch_tile_artifact(self, code: str) -> TileResult:
        """Fetch one tile and store it as a GeoTIFF artifact."""
        from . import raster_io

        grid = await self.fetch_tile(code)
        summary = raster_io.grid_summary(grid)

        geotiff_bytes = await asyncio.to_thread(raster_io.grid_to_geotiff, grid, DATASET_CRS)
        artifact_ref = await self._store_raster(
            geotiff_bytes,
            {
                "schema_version": "1.0",
                "type": "globe_tile",
                "crs": DATASET_CRS,
                **summary,
            },
            suffix=".tif",
        )

        return TileResult(
            artifact_ref=artifact_ref,
            tile_code=str(grid.tile_code),
            crs=DATASET_CRS,
            shape=summary["shape"],
            bounds=summary["bounds"],
            cell_size=summary["cell_size"],
            elevation_range=summary["elevation_range"],
            nodata_cells=summary["nodata_cells"],
        )

    # ------------------------------------------------------------------
    # Mosaic pipeline (async)
    # ------------------------------------------------------------------

    async def build_mosaic(
        self,
        codes: Iterable[str],
        block_factor: int | None = None,
        overlap: str = DEFAULT_OVERLAP,
        validity_threshold: float | None = DEFAULT_VALIDITY_THRESHOLD,
        reverse_columns: bool = True,
    ) -> MosaicResult:
        """Fetch tiles, merge them, block-average the result, and store it."""
        from . import raster_io

        ordered = self._normalise_codes(codes)
        factor = block_factor if block_factor is not None else self.default_block_factor
        if isinstance(factor, bool) or not isinstance(factor, int) or factor < 1:
            raise ValueError(ErrorMessages.INVALID_FACTOR.format(factor))
        if overlap not in OVERLAP_POLICIES:
            raise ValueError(
                ErrorMessages.INVALID_OVERLAP.format(overlap, ", ".join(OVERLAP_POLICIES))
            )

        tiles = await self.fetch_tiles(ordered)

        mosaic = await asyncio.to_thread(
            raster_io.compose_mosaic,
            tiles,
            factor,
            overlap,
            validity_threshold,
            reverse_columns,
        )
        summary = raster_io.grid_summary(mosaic)

        geotiff_bytes = await asyncio.to_thread(raster_io.grid_to_geotiff, mosaic, DATASET_CRS)
        artifact_ref = await self._store_raster(
            geotiff_bytes,
            {
                "schema_version": "1.0",
                "type": "globe_mosaic",
                "tile_codes": ordered,
                "crs": DATASET_CRS,
                "block_factor": factor,
                "overlap": overlap,
                "validity_threshold": validity_threshold,
                **summary,
            },
            suffix=".tif",
        )

        return MosaicResult(
            artifact_ref=artifact_ref,
            tile_codes=ordered,
            crs=DATASET_CRS,
            block_factor=factor,
            overlap=overlap,
            shape=summary["shape"],
            bounds=summary["bounds"],
            cell_size=summary["cell_size"],
            elevation_range=summary["elevation_range"],
            nodata_cells=summary["nodata_cells"],
            columns_reversed=summary["columns_reversed"],
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _normalise_code(self, code: str) -> str:
        """Lower-case a tile code, raising ValueError if unknown."""
        key = code.strip().lower() if isinstance(code, str) else code
        if key not in GLOBE_TILES:
            raise ValueError(ErrorMessages.UNKNOWN_TILE.format(code, ", ".join(ALL_TILE_CODES)))
        return key

    def _normalise_codes(self, codes: Iterable[str]) -> list[str]:
        ordered: list[str] = []
        for code in codes:
            key = self._normalise_code(code)
            if key not in ordered:
                ordered.append(key)
        if not ordered:
            raise ValueError(ErrorMessages.NO_TILES)
        return ordered

    async def _download(self, url: str) -> bytes:
        """Download a URL through the LRU cache."""
        from . import raster_io

        cached = self._get_cached_tile(url)
        if cached is not None:
            logger.debug(f"Cache hit for {url}")
            return cached

        data = await asyncio.to_thread(raster_io.download_bytes, url, self.timeout_s)
        self._cache_tile(url, data)
        return data

    def _get_store(self) -> Any:
        """Get the artifact store instance."""
        from chuk_mcp_server import get_artifact_store

        store = get_artifact_store()
        if store is None:
            raise RuntimeError(ErrorMessages.NO_ARTIFACT_STORE)
        return store

    async def _store_raster(
        self,
        data: bytes,
        metadata: dict,
        suffix: str = ".tif",
    ) -> str:
        """Store raster data in the artifact store."""
        try:
            store = self._get_store()
            ref = f"globe/{uuid.uuid4().hex[:12]}{suffix}"

            await store.store(
                ref,
                data,
                mime_type="image/tiff",
                metadata=metadata,
                summary=f"GLOBE elevation ({metadata.get('type', 'unknown')})",
            )
            return ref
        except Exception as e:
            logger.error(f"Failed to store raster: {e}")
            raise

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def _cache_tile(self, key: str, data: bytes) -> None:
        """Cache downloaded bytes with LRU eviction."""
        size = len(data)
        if size > TILE_CACHE_MAX_ITEM:
            return

        if key in self._tile_cache:
            self._tile_cache_total -= self._tile_cache_sizes.pop(key)
            del self._tile_cache[key]

        while self._tile_cache_total + size > TILE_CACHE_MAX_BYTES and self._tile_cache:
            oldest_key = next(iter(self._tile_cache))
            evicted_size = self._tile_cache_sizes.pop(oldest_key, 0)
            del self._tile_cache[oldest_key]
            self._tile_cache_total -= evicted_size

        self._tile_cache[key] = data
        self._tile_cache_sizes[key] = size
        self._tile_cache_total += size

    def _get_cached_tile(self, key: str) -> bytes | None:
        """Get cached bytes, moving the entry to the end of the LRU."""
        if key not in self._tile_cache:
            return None
        data = self._tile_cache.pop(key)
        size = self._tile_cache_sizes.pop(key)
        self._tile_cache[key] = data
        self._tile_cache_sizes[key] = size
        return data
