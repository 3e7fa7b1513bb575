"""Shared test fixtures for chuk-mcp-globe."""

import io
import zipfile

import numpy as np
import pytest
from unittest.mock import AsyncMock, MagicMock


def _header_lines(
    nrows=2,
    ncols=2,
    ulx=0.0,
    uly=0.0,
    xdim=1.0,
    ydim=1.0,
    byteorder="I",
    nodata=-500,
):
    return [
        ("BYTEORDER", byteorder),
        ("LAYOUT", "BIL"),
        ("NROWS", nrows),
        ("NCOLS", ncols),
        ("NBANDS", 1),
        ("NBITS", 16),
        ("BANDROWBYTES", ncols * 2),
        ("TOTALROWBYTES", ncols * 2),
        ("BANDGAPBYTES", 0),
        ("NODATA", nodata),
        ("ULXMAP", ulx),
        ("ULYMAP", uly),
        ("XDIM", xdim),
        ("YDIM", ydim),
    ]


@pytest.fixture
def make_header_text():
    """Factory for 14-row BIL header text; ``drop`` removes keys by name."""

    def _make(drop=(), **overrides):
        lines = _header_lines(**overrides)
        return "\n".join(f"{key:<14}{value}" for key, value in lines if key not in drop) + "\n"

    return _make


@pytest.fixture
def header_text(make_header_text):
    """Header for a 2x2 little-endian tile at the origin with unit cells."""
    return make_header_text()


@pytest.fixture
def tile_buffer():
    """Raw little-endian int16 samples 10, 20, 30, 40."""
    return np.array([10, 20, 30, 40], dtype="<i2").tobytes()


@pytest.fixture
def make_zip():
    """Factory for in-memory zip archives from a {member: bytes} mapping."""

    def _make(members):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, data in members.items():
                archive.writestr(name, data)
        return buf.getvalue()

    return _make


@pytest.fixture
def make_grid():
    """Factory for small float32 Grids."""
    from chuk_mcp_globe.core.raster_io import Grid

    def _make(values, x_origin=0.0, y_origin=0.0, cell=1.0, tile_code=None):
        return Grid(
            values=np.asarray(values, dtype=np.float32),
            x_origin=x_origin,
            y_origin=y_origin,
            x_cell_size=cell,
            y_cell_size=cell,
            tile_code=tile_code,
        )

    return _make


@pytest.fixture
def mock_artifact_store():
    """Mock artifact store."""
    store = AsyncMock()
    store.store = AsyncMock(return_value=None)
    store.retrieve = AsyncMock(return_value=b"fake-geotiff-bytes")
    return store


@pytest.fixture
def mock_manager(mock_artifact_store):
    """GlobeManager with mocked store."""
    from chuk_mcp_globe.core.globe_manager import GlobeManager

    manager = GlobeManager(
        header_url="https://example.com/hdr/{code}10g.hdr",
        tile_url="https://example.com/tiles/{code}10g.zip",
        timeout_s=5.0,
        default_block_factor=10,
    )
    manager._get_store = MagicMock(return_value=mock_artifact_store)
    return manager


@pytest.fixture
def mock_mcp():
    """Mock ChukMCPServer."""
    mcp = MagicMock()
    mcp.tool = MagicMock(return_value=lambda fn: fn)
    return mcp
