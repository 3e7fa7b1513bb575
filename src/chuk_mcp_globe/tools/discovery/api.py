"""
Discovery tools - tile catalogue listing, description, status, capabilities.

These tools require no network I/O and return information about
the GLOBE tile catalogue and server configuration.
"""

import logging
import os

from ...constants import (
    ALL_TILE_CODES,
    DATASET_NAME,
    OVERLAP_POLICIES,
    EnvVar,
    ServerConfig,
    StorageProvider,
    SuccessMessages,
)
from ...models.responses import (
    CapabilitiesResponse,
    ErrorResponse,
    StatusResponse,
    TileDetailResponse,
    TileInfo,
    TilesResponse,
    format_response,
)

logger = logging.getLogger(__name__)

TOOL_COUNT = 7


def register_discovery_tools(mcp, manager):
    """Register discovery tools with the MCP server."""

    @mcp.tool()
    async def globe_list_tiles(output_mode: str = "json") -> str:
        """List the 16 GLOBE elevation tiles with their extents and full-resolution sizes.

        Use this to pick tile codes before fetching headers, tiles, or a mosaic.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Tile catalogue
        """
        try:
            tiles = [TileInfo(**t) for t in manager.list_tiles()]
            response = TilesResponse(
                dataset=DATASET_NAME,
                tiles=tiles,
                message=SuccessMessages.TILES_LIST.format(len(tiles)),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"globe_list_tiles failed: {e}")
            return format_response(
                ErrorResponse(error=str(e), error_type=type(e).__name__), output_mode
            )

    @mcp.tool()
    async def globe_describe_tile(code: str, output_mode: str = "json") -> str:
        """Get catalogue metadata for one tile, including the header and data URLs.

        Args:
            code: Single-letter tile code (a-p, case-insensitive)
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Tile extent, size, sample type, and source URLs
        """
        try:
            data = manager.describe_tile(code)
            bounds = ", ".join(str(b) for b in data["bounds"])
            response = TileDetailResponse(
                **data,
                message=SuccessMessages.TILE_DESCRIBE.format(data["code"], bounds),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"globe_describe_tile failed: {e}")
            return format_response(
                ErrorResponse(error=str(e), error_type=type(e).__name__), output_mode
            )

    @mcp.tool()
    async def globe_status(output_mode: str = "json") -> str:
        """Get server status including version, storage, timeout, and cache usage.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Server status information
        """
        try:
            provider = os.environ.get(EnvVar.ARTIFACTS_PROVIDER, StorageProvider.MEMORY)

            store_available = False
            try:
                manager._get_store()
                store_available = True
            except Exception as e:
                logger.debug(f"Artifact store unavailable: {e}")

            cache_mb = manager._tile_cache_total / (1024 * 1024)

            response = StatusResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                available_tiles=ALL_TILE_CODES,
                storage_provider=provider,
                artifact_store_available=store_available,
                fetch_timeout_s=manager.timeout_s,
                default_block_factor=manager.default_block_factor,
                cache_size_mb=round(cache_mb, 1),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"globe_status failed: {e}")
            return format_response(
                ErrorResponse(error=str(e), error_type=type(e).__name__), output_mode
            )

    @mcp.tool()
    async def globe_capabilities(output_mode: str = "json") -> str:
        """Get full server capabilities: tiles, merge policies, defaults, and usage guidance.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Complete server capabilities
        """
        try:
            tiles = [TileInfo(**t) for t in manager.list_tiles()]

            response = CapabilitiesResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                dataset=DATASET_NAME,
                tiles=tiles,
                overlap_policies=OVERLAP_POLICIES,
                default_block_factor=manager.default_block_factor,
                tool_count=TOOL_COUNT,
                llm_guidance=(
                    "Use globe_list_tiles to find tile codes (a-p). "
                    "Use globe_fetch_header to inspect a tile's grid before downloading it. "
                    "Use globe_fetch_tile for one full-resolution tile. "
                    "Use globe_fetch_mosaic to merge adjacent tiles (e.g. e,f for North America) "
                    "and block-average them for 3D surface rendering. "
                    "Negative elevations are treated as no data when resampling."
                ),
                message=f"{ServerConfig.NAME} v{ServerConfig.VERSION} capabilities",
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"globe_capabilities failed: {e}")
            return format_response(
                ErrorResponse(error=str(e), error_type=type(e).__name__), output_mode
            )
