"""
Download tools - tile header inspection, single-tile fetch, mosaic build.

These tools perform network I/O to download GLOBE tiles and store results
in the artifact store.
"""

import logging

from ...constants import (
    DEFAULT_OVERLAP,
    DEFAULT_VALIDITY_THRESHOLD,
    SuccessMessages,
)
from ...models.responses import (
    ErrorResponse,
    HeaderResponse,
    MosaicResponse,
    TileFetchResponse,
    format_response,
)

logger = logging.getLogger(__name__)


def register_download_tools(mcp, manager):
    """Register download tools with the MCP server."""

    @mcp.tool()
    async def globe_fetch_header(code: str, output_mode: str = "json") -> str:
        """Download and parse a tile's text header without fetching the elevation data.

        Args:
            code: Single-letter tile code (a-p)
            output_mode: "json" or "text"

        Returns:
            Grid dimensions, origin, cell size, byte order, and derived bounds
        """
        try:
            header = await manager.fetch_header(code)
            tile_code = code.strip().lower()

            response = HeaderResponse(
                tile_code=tile_code,
                nrows=header.nrows,
                ncols=header.ncols,
                x_origin=header.x_origin,
                y_origin=header.y_origin,
                x_cell_size=header.x_cell_size,
                y_cell_size=header.y_cell_size,
                byteorder=header.byteorder,
                nodata=header.nodata,
                bounds=list(header.bounds),
                expected_bytes=header.expected_bytes,
                message=SuccessMessages.HEADER_FETCHED.format(
                    tile_code, header.nrows, header.ncols, header.x_cell_size
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"globe_fetch_header failed: {e}")
            return format_response(
                ErrorResponse(error=str(e), error_type=type(e).__name__), output_mode
            )

    @mcp.tool()
    async def globe_fetch_tile(code: str, output_mode: str = "json") -> str:
        """Download and decode one full-resolution tile. Returns a GeoTIFF artifact.

        Ocean and other NODATA cells are stored as NaN.

        Args:
            code: Single-letter tile code (a-p)
            output_mode: "json" or "text"

        Returns:
            Artifact reference with shape, bounds, and elevation range
        """
        try:
            result = await manager.fetch_tile_artifact(code)

            response = TileFetchResponse(
                tile_code=result.tile_code,
                artifact_ref=result.artifact_ref,
                crs=result.crs,
                shape=result.shape,
                bounds=result.bounds,
                cell_size=result.cell_size,
                elevation_range=result.elevation_range,
                nodata_cells=result.nodata_cells,
                message=SuccessMessages.TILE_FETCHED.format(
                    result.tile_code, result.shape[0], result.shape[1], result.nodata_cells
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"globe_fetch_tile failed: {e}")
            return format_response(
                ErrorResponse(error=str(e), error_type=type(e).__name__), output_mode
            )

    @mcp.tool()
    async def globe_fetch_mosaic(
        codes: list[str],
        block_factor: int | None = None,
        overlap: str = DEFAULT_OVERLAP,
        validity_threshold: float | None = DEFAULT_VALIDITY_THRESHOLD,
        reverse_columns: bool = True,
        output_mode: str = "json",
    ) -> str:
        """Merge adjacent tiles into one raster and block-average it. Returns a GeoTIFF artifact.

        Args:
            codes: Tile codes in merge order (e.g. ["e", "f"])
            block_factor: Resample block size (None = server default)
            overlap: Overlap policy when footprints intersect (last, first, error)
            validity_threshold: Cells below this are excluded from averages (None = keep all)
            reverse_columns: Flip the output column order for renderer axis conventions
            output_mode: "json" or "text"

        Returns:
            Artifact reference with resampled shape, bounds, and elevation range
        """
        try:
            result = await manager.build_mosaic(
                codes=codes,
                block_factor=block_factor,
                overlap=overlap,
                validity_threshold=validity_threshold,
                reverse_columns=reverse_columns,
            )

            response = MosaicResponse(
                tile_codes=result.tile_codes,
                artifact_ref=result.artifact_ref,
                crs=result.crs,
                block_factor=result.block_factor,
                overlap=result.overlap,
                shape=result.shape,
                bounds=result.bounds,
                cell_size=result.cell_size,
                elevation_range=result.elevation_range,
                nodata_cells=result.nodata_cells,
                columns_reversed=result.columns_reversed,
                message=SuccessMessages.MOSAIC_COMPLETE.format(
                    len(result.tile_codes), result.block_factor, result.shape[0], result.shape[1]
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"globe_fetch_mosaic failed: {e}")
            return format_response(
                ErrorResponse(error=str(e), error_type=type(e).__name__), output_mode
            )
