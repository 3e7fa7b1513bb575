"""Response models for chuk-mcp-globe."""

from .responses import (
    CapabilitiesResponse,
    ErrorResponse,
    HeaderResponse,
    MosaicResponse,
    StatusResponse,
    TileDetailResponse,
    TileFetchResponse,
    TileInfo,
    TilesResponse,
    format_response,
)

__all__ = [
    "ErrorResponse",
    "TileInfo",
    "TilesResponse",
    "TileDetailResponse",
    "HeaderResponse",
    "TileFetchResponse",
    "MosaicResponse",
    "StatusResponse",
    "CapabilitiesResponse",
    "format_response",
]
