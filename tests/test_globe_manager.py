"""
Comprehensive tests for GlobeManager.

Covers catalogue lookups (sync), URL construction, environment overrides,
async retrieval and mosaic methods (downloads mocked), artifact storage,
and the LRU download cache.
"""

from unittest.mock import patch

import numpy as np
import pytest

from chuk_mcp_globe.constants import (
    ALL_TILE_CODES,
    DEFAULT_BLOCK_FACTOR,
    DEFAULT_FETCH_TIMEOUT_S,
    DEFAULT_HEADER_URL,
    DEFAULT_TILE_URL,
    GLOBE_TILES,
    EnvVar,
)
from chuk_mcp_globe.core.errors import DimensionMismatchError, FetchError, FormatError
from chuk_mcp_globe.core.globe_manager import GlobeManager, MosaicResult, TileResult
from chuk_mcp_globe.core.raster_io import Grid, HeaderRecord

DOWNLOAD = "chuk_mcp_globe.core.raster_io.download_bytes"
TO_GEOTIFF = "chuk_mcp_globe.core.raster_io.grid_to_geotiff"


@pytest.fixture
def remote(make_header_text, make_zip):
    """Fake remote holding 2x2 tiles e (x 0..2) and f (x 2..4)."""
    files = {
        "https://example.com/hdr/e10g.hdr": make_header_text(ulx=0.0).encode(),
        "https://example.com/hdr/f10g.hdr": make_header_text(ulx=2.0).encode(),
        "https://example.com/tiles/e10g.zip": make_zip(
            {"e10g": np.array([10, 20, 30, 40], dtype="<i2").tobytes()}
        ),
        "https://example.com/tiles/f10g.zip": make_zip(
            {"f10g": np.array([50, 60, 70, -500], dtype="<i2").tobytes()}
        ),
    }

    def fake_download(url, timeout_s):
        if url not in files:
            raise FetchError(f"Failed to fetch {url}: HTTP 404")
        return files[url]

    return fake_download


# ===================================================================
# Construction & configuration
# ===================================================================


class TestConfiguration:
    """Tests for GlobeManager construction and environment overrides."""

    def test_defaults(self):
        with patch.dict("os.environ", {}, clear=True):
            manager = GlobeManager()
        assert manager.header_url == DEFAULT_HEADER_URL
        assert manager.tile_url == DEFAULT_TILE_URL
        assert manager.timeout_s == DEFAULT_FETCH_TIMEOUT_S
        assert manager.default_block_factor == DEFAULT_BLOCK_FACTOR

    def test_env_overrides(self):
        env = {
            EnvVar.HEADER_URL: "http://mirror/{code}.hdr",
            EnvVar.TILE_URL: "http://mirror/{code}.bin",
            EnvVar.FETCH_TIMEOUT: "30",
            EnvVar.BLOCK_FACTOR: "4",
        }
        with patch.dict("os.environ", env, clear=True):
            manager = GlobeManager()
        assert manager.header_url_for("e") == "http://mirror/e.hdr"
        assert manager.tile_url_for("e") == "http://mirror/e.bin"
        assert manager.timeout_s == 30.0
        assert manager.default_block_factor == 4

    def test_bad_timeout_falls_back(self):
        with patch.dict("os.environ", {EnvVar.FETCH_TIMEOUT: "soon"}, clear=True):
            assert GlobeManager().timeout_s == DEFAULT_FETCH_TIMEOUT_S

    def test_negative_timeout_falls_back(self):
        with patch.dict("os.environ", {EnvVar.FETCH_TIMEOUT: "-5"}, clear=True):
            assert GlobeManager().timeout_s == DEFAULT_FETCH_TIMEOUT_S

    def test_bad_block_factor_falls_back(self):
        with patch.dict("os.environ", {EnvVar.BLOCK_FACTOR: "0"}, clear=True):
            assert GlobeManager().default_block_factor == DEFAULT_BLOCK_FACTOR

    def test_explicit_arguments_win(self):
        with patch.dict("os.environ", {EnvVar.FETCH_TIMEOUT: "30"}, clear=True):
            manager = GlobeManager(timeout_s=2.5, default_block_factor=3)
        assert manager.timeout_s == 2.5
        assert manager.default_block_factor == 3


# ===================================================================
# Catalogue (sync)
# ===================================================================


class TestListTiles:
    """Tests for GlobeManager.list_tiles()."""

    def test_correct_count(self, mock_manager):
        assert len(mock_manager.list_tiles()) == 16

    def test_correct_keys(self, mock_manager):
        for item in mock_manager.list_tiles():
            assert set(item.keys()) == {"code", "name", "bounds", "rows", "cols"}

    def test_codes_in_order(self, mock_manager):
        assert [t["code"] for t in mock_manager.list_tiles()] == ALL_TILE_CODES


class TestDescribeTile:
    """Tests for GlobeManager.describe_tile()."""

    def test_known_tile(self, mock_manager):
        detail = mock_manager.describe_tile("e")
        assert detail["code"] == "e"
        assert detail["bounds"] == [-180, 0, -90, 50]
        assert detail["header_url"] == "https://example.com/hdr/e10g.hdr"
        assert detail["tile_url"] == "https://example.com/tiles/e10g.zip"

    def test_case_and_whitespace_insensitive(self, mock_manager):
        assert mock_manager.describe_tile(" F ")["code"] == "f"

    def test_unknown_tile(self, mock_manager):
        with pytest.raises(ValueError, match="Unknown GLOBE tile"):
            mock_manager.describe_tile("z")

    def test_does_not_mutate_catalogue(self, mock_manager):
        mock_manager.describe_tile("a")
        assert "header_url" not in GLOBE_TILES["a"]


# ===================================================================
# Retrieval (async, downloads mocked)
# ===================================================================


class TestFetchHeader:
    """Tests for GlobeManager.fetch_header()."""

    @pytest.mark.asyncio
    async def test_parses_header(self, mock_manager, remote):
        with patch(DOWNLOAD, side_effect=remote):
            header = await mock_manager.fetch_header("e")
        assert isinstance(header, HeaderRecord)
        assert header.nrows == 2
        assert header.x_origin == 0.0

    @pytest.mark.asyncio
    async def test_passes_timeout(self, mock_manager, remote):
        with patch(DOWNLOAD, side_effect=remote) as download:
            await mock_manager.fetch_header("e")
        download.assert_called_once_with("https://example.com/hdr/e10g.hdr", 5.0)

    @pytest.mark.asyncio
    async def test_second_call_uses_cache(self, mock_manager, remote):
        with patch(DOWNLOAD, side_effect=remote) as download:
            await mock_manager.fetch_header("e")
            await mock_manager.fetch_header("E")
        assert download.call_count == 1

    @pytest.mark.asyncio
    async def test_bad_header_raises_format_error(self, mock_manager):
        with patch(DOWNLOAD, return_value=b"NROWS 2\nNCOLS 2\n"):
            with pytest.raises(FormatError):
                await mock_manager.fetch_header("e")

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self, mock_manager):
        with patch(DOWNLOAD, side_effect=FetchError("down")):
            with pytest.raises(FetchError):
                await mock_manager.fetch_header("e")

    @pytest.mark.asyncio
    async def test_unknown_tile_not_downloaded(self, mock_manager):
        with patch(DOWNLOAD) as download:
            with pytest.raises(ValueError):
                await mock_manager.fetch_header("q")
        download.assert_not_called()


class TestFetchTile:
    """Tests for GlobeManager.fetch_tile() and fetch_tiles()."""

    @pytest.mark.asyncio
    async def test_decodes_tile(self, mock_manager, remote):
        with patch(DOWNLOAD, side_effect=remote):
            grid = await mock_manager.fetch_tile("e")
        assert isinstance(grid, Grid)
        assert grid.tile_code == "e"
        np.testing.assert_array_equal(grid.values, [[10, 20], [30, 40]])
        assert tuple(grid.bounds) == (0.0, 2.0, -2.0, 0.0)

    @pytest.mark.asyncio
    async def test_nodata_is_nan(self, mock_manager, remote):
        with patch(DOWNLOAD, side_effect=remote):
            grid = await mock_manager.fetch_tile("f")
        assert np.isnan(grid.values[1, 1])

    @pytest.mark.asyncio
    async def test_buffer_mismatch_raises(self, mock_manager, make_header_text):
        def fake(url, timeout_s):
            if url.endswith(".hdr"):
                return make_header_text().encode()
            return b"\x00" * 6

        with patch(DOWNLOAD, side_effect=fake):
            with pytest.raises(FormatError, match="6 bytes"):
                await mock_manager.fetch_tile("e")

    @pytest.mark.asyncio
    async def test_fetch_tiles_dedups_in_order(self, mock_manager, remote):
        with patch(DOWNLOAD, side_effect=remote):
            tiles = await mock_manager.fetch_tiles(["f", "E", "e"])
        assert list(tiles.keys()) == ["f", "e"]

    @pytest.mark.asyncio
    async def test_fetch_tiles_empty(self, mock_manager):
        with pytest.raises(ValueError, match="At least one tile"):
            await mock_manager.fetch_tiles([])


class TestFetchTileArtifact:
    """Tests for GlobeManager.fetch_tile_artifact()."""

    @pytest.mark.asyncio
    async def test_stores_geotiff(self, mock_manager, mock_artifact_store, remote):
        with patch(DOWNLOAD, side_effect=remote), patch(TO_GEOTIFF, return_value=b"tif"):
            result = await mock_manager.fetch_tile_artifact("e")

        assert isinstance(result, TileResult)
        assert result.artifact_ref.startswith("globe/")
        assert result.artifact_ref.endswith(".tif")
        assert result.tile_code == "e"
        assert result.crs == "EPSG:4326"
        assert result.shape == [2, 2]
        assert result.elevation_range == [10.0, 40.0]
        assert result.nodata_cells == 0

        mock_artifact_store.store.assert_awaited_once()
        args, kwargs = mock_artifact_store.store.call_args
        assert args[1] == b"tif"
        assert kwargs["mime_type"] == "image/tiff"
        assert kwargs["metadata"]["type"] == "globe_tile"
        assert kwargs["metadata"]["tile_code"] == "e"


# ===================================================================
# Mosaic pipeline
# ===================================================================


class TestBuildMosaic:
    """Tests for GlobeManager.build_mosaic()."""

    @pytest.mark.asyncio
    async def test_merges_and_resamples(self, mock_manager, remote):
        with patch(DOWNLOAD, side_effect=remote), patch(TO_GEOTIFF, return_value=b"tif"):
            result = await mock_manager.build_mosaic(["e", "f"], block_factor=2)

        assert isinstance(result, MosaicResult)
        assert result.tile_codes == ["e", "f"]
        assert result.block_factor == 2
        assert result.shape == [1, 2]
        assert result.bounds == [0.0, 4.0, -2.0, 0.0]
        assert result.cell_size == [2.0, 2.0]
        assert result.columns_reversed is True
        # f block (50, 60, 70; -500 excluded) comes first after the column flip
        assert result.elevation_range == [25.0, 60.0]

    @pytest.mark.asyncio
    async def test_factor_one_without_flip(self, mock_manager, remote):
        captured = {}

        def capture(grid, crs):
            captured["grid"] = grid
            return b"tif"

        with patch(DOWNLOAD, side_effect=remote), patch(TO_GEOTIFF, side_effect=capture):
            result = await mock_manager.build_mosaic(
                ["e", "f"], block_factor=1, reverse_columns=False
            )

        assert result.shape == [2, 4]
        assert result.nodata_cells == 1
        np.testing.assert_array_equal(
            captured["grid"].values[0], np.array([10, 20, 50, 60], dtype=np.float32)
        )

    @pytest.mark.asyncio
    async def test_uses_default_block_factor(self, mock_manager, remote):
        with patch(DOWNLOAD, side_effect=remote), patch(TO_GEOTIFF, return_value=b"tif"):
            result = await mock_manager.build_mosaic(["e"])
        assert result.block_factor == 10
        assert result.shape == [1, 1]

    @pytest.mark.asyncio
    async def test_metadata(self, mock_manager, mock_artifact_store, remote):
        with patch(DOWNLOAD, side_effect=remote), patch(TO_GEOTIFF, return_value=b"tif"):
            await mock_manager.build_mosaic(["e", "f"], block_factor=2, overlap="error")

        metadata = mock_artifact_store.store.call_args.kwargs["metadata"]
        assert metadata["type"] == "globe_mosaic"
        assert metadata["tile_codes"] == ["e", "f"]
        assert metadata["block_factor"] == 2
        assert metadata["overlap"] == "error"
        assert metadata["validity_threshold"] == 0.0

    @pytest.mark.asyncio
    async def test_invalid_factor_rejected_before_download(self, mock_manager):
        with patch(DOWNLOAD) as download:
            with pytest.raises(ValueError, match="Block factor"):
                await mock_manager.build_mosaic(["e"], block_factor=0)
        download.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_overlap_rejected_before_download(self, mock_manager):
        with patch(DOWNLOAD) as download:
            with pytest.raises(ValueError, match="overlap policy"):
                await mock_manager.build_mosaic(["e"], overlap="mean")
        download.assert_not_called()

    @pytest.mark.asyncio
    async def test_mismatched_tiles(self, mock_manager, make_header_text, make_zip):
        buffer = np.zeros(4, dtype="<i2").tobytes()

        def fake(url, timeout_s):
            if url.endswith("e10g.hdr"):
                return make_header_text().encode()
            if url.endswith("f10g.hdr"):
                return make_header_text(ulx=2.0, xdim=0.5, ydim=0.5).encode()
            return make_zip({"tile": buffer})

        with patch(DOWNLOAD, side_effect=fake):
            with pytest.raises(DimensionMismatchError):
                await mock_manager.build_mosaic(["e", "f"], block_factor=1)


# ===================================================================
# Artifact store
# ===================================================================


class TestStoreRaster:
    """Tests for GlobeManager._get_store() and _store_raster()."""

    def test_no_store_raises(self):
        manager = GlobeManager()
        with patch("chuk_mcp_server.get_artifact_store", return_value=None):
            with pytest.raises(RuntimeError, match="No artifact store"):
                manager._get_store()

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, mock_manager, mock_artifact_store):
        mock_artifact_store.store.side_effect = OSError("disk full")
        with pytest.raises(OSError):
            await mock_manager._store_raster(b"data", {"type": "globe_tile"})


# ===================================================================
# LRU cache
# ===================================================================


class TestDownloadCache:
    """Tests for the LRU download cache."""

    def test_put_and_get(self, mock_manager):
        mock_manager._cache_tile("a", b"1234")
        assert mock_manager._get_cached_tile("a") == b"1234"
        assert mock_manager._tile_cache_total == 4

    def test_miss_returns_none(self, mock_manager):
        assert mock_manager._get_cached_tile("missing") is None

    def test_recache_same_key(self, mock_manager):
        mock_manager._cache_tile("a", b"1234")
        mock_manager._cache_tile("a", b"12")
        assert mock_manager._tile_cache_total == 2
        assert mock_manager._get_cached_tile("a") == b"12"

    def test_oversized_item_skipped(self, mock_manager):
        with patch("chuk_mcp_globe.core.globe_manager.TILE_CACHE_MAX_ITEM", 3):
            mock_manager._cache_tile("a", b"1234")
        assert mock_manager._get_cached_tile("a") is None
        assert mock_manager._tile_cache_total == 0

    def test_evicts_least_recently_used(self, mock_manager):
        with patch("chuk_mcp_globe.core.globe_manager.TILE_CACHE_MAX_BYTES", 8):
            mock_manager._cache_tile("a", b"1234")
            mock_manager._cache_tile("b", b"5678")
            mock_manager._get_cached_tile("a")
            mock_manager._cache_tile("c", b"9999")
        assert mock_manager._get_cached_tile("b") is None
        assert mock_manager._get_cached_tile("a") == b"1234"
        assert mock_manager._get_cached_tile("c") == b"9999"
        assert mock_manager._tile_cache_total == 8
