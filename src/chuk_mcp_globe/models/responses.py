"""
Response models for chuk-mcp-globe tools.

All tool responses are Pydantic models for type safety and consistent API.
"""

from pydantic import BaseModel, ConfigDict, Field


def format_response(model: BaseModel, output_mode: str = "json") -> str:
    """Format a response model as JSON or human-readable text.

    Args:
        model: Pydantic response model instance
        output_mode: "json" (default) or "text"

    Returns:
        Formatted string
    """
    if output_mode == "text" and hasattr(model, "to_text"):
        return str(model.to_text())
    return str(model.model_dump_json())


def _fmt_bounds(bounds: list[float]) -> str:
    return ", ".join(f"{b:.4f}" for b in bounds)


def _fmt_elevation(elevation_range: list[float] | None) -> str:
    if elevation_range is None:
        return "Elevation range: no valid cells"
    elev_min, elev_max = elevation_range
    return f"Elevation range: {elev_min:.1f}m to {elev_max:.1f}m"


class ErrorResponse(BaseModel):
    """Error response model for tool failures."""

    model_config = ConfigDict(extra="forbid")

    error: str = Field(..., description="Error message describing what went wrong")
    error_type: str | None = Field(
        None, description="Error kind (FetchError, FormatError, DimensionMismatchError, ...)"
    )

    def to_text(self) -> str:
        if self.error_type:
            return f"Error ({self.error_type}): {self.error}"
        return f"Error: {self.error}"


class TileInfo(BaseModel):
    """Summary information about a GLOBE tile."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(..., description="Single-letter tile code (a-p)")
    name: str = Field(..., description="Human-readable tile name")
    bounds: list[float] = Field(..., description="Tile extent [west, south, east, north]")
    rows: int = Field(..., description="Rows in the full-resolution tile", gt=0)
    cols: int = Field(..., description="Columns in the full-resolution tile", gt=0)

    def to_text(self) -> str:
        return f"{self.code}: [{_fmt_bounds(self.bounds)}] {self.rows}x{self.cols}"


class TilesResponse(BaseModel):
    """Response model for listing the tile catalogue."""

    model_config = ConfigDict(extra="forbid")

    dataset: str = Field(..., description="Dataset name")
    tiles: list[TileInfo] = Field(..., description="Available tiles")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [self.message, f"Dataset: {self.dataset}", ""]
        for t in self.tiles:
            lines.append(f"  {t.to_text()}")
        return "\n".join(lines)


class TileDetailResponse(BaseModel):
    """Response model for a single tile's catalogue entry."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(..., description="Single-letter tile code")
    name: str = Field(..., description="Human-readable tile name")
    bounds: list[float] = Field(..., description="Tile extent [west, south, east, north]")
    rows: int = Field(..., description="Rows in the full-resolution tile", gt=0)
    cols: int = Field(..., description="Columns in the full-resolution tile", gt=0)
    dtype: str = Field(..., description="Sample type of the binary tile")
    nodata_value: float = Field(..., description="NoData sentinel value")
    file_stem: str = Field(..., description="File name stem of the tile and header")
    header_url: str = Field(..., description="URL of the text header")
    tile_url: str = Field(..., description="URL of the compressed binary tile")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"{self.name} ({self.code})",
            f"Bounds: [{_fmt_bounds(self.bounds)}]",
            f"Size: {self.rows}x{self.cols} {self.dtype}, nodata {self.nodata_value}",
            f"Header: {self.header_url}",
            f"Tile: {self.tile_url}",
        ]
        return "\n".join(lines)


class HeaderResponse(BaseModel):
    """Response model for a parsed tile header."""

    model_config = ConfigDict(extra="forbid")

    tile_code: str = Field(..., description="Tile code")
    nrows: int = Field(..., description="Row count", gt=0)
    ncols: int = Field(..., description="Column count", gt=0)
    x_origin: float = Field(..., description="X origin")
    y_origin: float = Field(..., description="Y origin")
    x_cell_size: float = Field(..., description="Cell width", gt=0)
    y_cell_size: float = Field(..., description="Cell height", gt=0)
    byteorder: str = Field(..., description="Sample byte order (I or M)")
    nodata: float | None = Field(None, description="Declared NoData sentinel")
    bounds: list[float] = Field(..., description="Derived extent [xmin, xmax, ymin, ymax]")
    expected_bytes: int = Field(..., description="Expected binary tile size in bytes", gt=0)
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"Header for tile {self.tile_code}",
            f"Size: {self.nrows}x{self.ncols} ({self.expected_bytes} bytes, order {self.byteorder})",
            f"Origin: ({self.x_origin:.6f}, {self.y_origin:.6f})",
            f"Cell size: {self.x_cell_size:.8f} x {self.y_cell_size:.8f}",
            f"Bounds: [{_fmt_bounds(self.bounds)}]",
        ]
        if self.nodata is not None:
            lines.append(f"NoData: {self.nodata}")
        return "\n".join(lines)


class TileFetchResponse(BaseModel):
    """Response model for fetching and storing a single decoded tile."""

    model_config = ConfigDict(extra="forbid")

    tile_code: str = Field(..., description="Tile code")
    artifact_ref: str = Field(..., description="Artifact store reference for the GeoTIFF")
    crs: str = Field(..., description="Coordinate reference system")
    shape: list[int] = Field(..., description="Array shape [rows, cols]")
    bounds: list[float] = Field(..., description="Extent [xmin, xmax, ymin, ymax]")
    cell_size: list[float] = Field(..., description="[x, y] cell size")
    elevation_range: list[float] | None = Field(
        None, description="[min, max] valid elevation, null when every cell is no-data"
    )
    nodata_cells: int = Field(..., description="Number of no-data cells", ge=0)
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"Tile {self.tile_code}: {self.shape[0]}x{self.shape[1]} ({self.crs})",
            f"Artifact: {self.artifact_ref}",
            f"Bounds: [{_fmt_bounds(self.bounds)}]",
            _fmt_elevation(self.elevation_range),
            f"NoData cells: {self.nodata_cells}",
        ]
        return "\n".join(lines)


class MosaicResponse(BaseModel):
    """Response model for a merged and resampled mosaic."""

    model_config = ConfigDict(extra="forbid")

    tile_codes: list[str] = Field(..., description="Tiles merged, in merge order")
    artifact_ref: str = Field(..., description="Artifact store reference for the GeoTIFF")
    crs: str = Field(..., description="Coordinate reference system")
    block_factor: int = Field(..., description="Resample block factor", ge=1)
    overlap: str = Field(..., description="Merge overlap policy")
    shape: list[int] = Field(..., description="Resampled shape [rows, cols]")
    bounds: list[float] = Field(..., description="Extent [xmin, xmax, ymin, ymax]")
    cell_size: list[float] = Field(..., description="[x, y] cell size after resampling")
    elevation_range: list[float] | None = Field(
        None, description="[min, max] valid elevation, null when every cell is no-data"
    )
    nodata_cells: int = Field(..., description="Number of no-data cells", ge=0)
    columns_reversed: bool = Field(..., description="Whether the column order was flipped")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        flipped = "reversed" if self.columns_reversed else "natural"
        lines = [
            f"Mosaic of {', '.join(self.tile_codes)} ({self.crs})",
            f"Artifact: {self.artifact_ref}",
            f"Shape: {self.shape[0]}x{self.shape[1]} (factor {self.block_factor}, {flipped} columns)",
            f"Bounds: [{_fmt_bounds(self.bounds)}]",
            _fmt_elevation(self.elevation_range),
            f"NoData cells: {self.nodata_cells}",
            f"Overlap policy: {self.overlap}",
        ]
        return "\n".join(lines)


class StatusResponse(BaseModel):
    """Response model for server status queries."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(default="chuk-mcp-globe", description="Server name")
    version: str = Field(default="0.1.0", description="Server version")
    available_tiles: list[str] = Field(..., description="Available tile codes")
    storage_provider: str = Field(..., description="Active storage provider (memory/filesystem/s3)")
    artifact_store_available: bool = Field(
        default=False, description="Whether artifact store is available"
    )
    fetch_timeout_s: float = Field(..., description="Per-request download timeout", gt=0)
    default_block_factor: int = Field(..., description="Default resample factor", ge=1)
    cache_size_mb: float = Field(default=0.0, description="Current download cache size in megabytes")

    def to_text(self) -> str:
        store_status = "available" if self.artifact_store_available else "not available"
        lines = [
            f"{self.server} v{self.version}",
            f"Tiles: {', '.join(self.available_tiles)}",
            f"Storage: {self.storage_provider}",
            f"Artifact store: {store_status}",
            f"Fetch timeout: {self.fetch_timeout_s:.0f}s",
            f"Default block factor: {self.default_block_factor}",
            f"Cache: {self.cache_size_mb:.1f} MB",
        ]
        return "\n".join(lines)


class CapabilitiesResponse(BaseModel):
    """Response model for server capabilities listing."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(..., description="Server name")
    version: str = Field(..., description="Server version")
    dataset: str = Field(..., description="Dataset name")
    tiles: list[TileInfo] = Field(..., description="Available tiles")
    overlap_policies: list[str] = Field(..., description="Supported merge overlap policies")
    default_block_factor: int = Field(..., description="Default resample factor", ge=1)
    tool_count: int = Field(..., description="Number of available tools", ge=0)
    llm_guidance: str = Field(..., description="LLM-friendly usage guidance for the server")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"{self.server} v{self.version}",
            f"Tools: {self.tool_count}",
            f"Dataset: {self.dataset}",
            f"Tiles: {', '.join(t.code for t in self.tiles)}",
            f"Overlap policies: {', '.join(self.overlap_policies)}",
            f"Default block factor: {self.default_block_factor}",
            f"Guidance: {self.llm_guidance}",
        ]
        return "\n".join(lines)
