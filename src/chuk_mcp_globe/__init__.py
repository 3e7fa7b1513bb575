"""
chuk-mcp-globe: GLOBE Elevation Tile Retrieval, Mosaicking & Resampling MCP Server

Retrieves 30 arc-second GLOBE elevation tiles from NOAA, decodes their raw
int16 rasters, merges adjacent tiles into a continental grid, and
block-averages the result for 3D surface rendering. Results are stored
in chuk-artifacts for downstream analysis.
"""
