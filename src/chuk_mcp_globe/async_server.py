#!/usr/bin/env python3
"""
Async GLOBE MCP Server using chuk-mcp-server

Retrieves GLOBE elevation tiles, merges them into continental grids, and
block-averages the result. Decoded tiles and mosaics are stored as GeoTIFF
artifacts through chuk-mcp-server's built-in artifact store context.
"""

import logging

from chuk_mcp_server import ChukMCPServer

from .constants import ServerConfig
from .core.globe_manager import GlobeManager
from .tools.discovery import register_discovery_tools
from .tools.download import register_download_tools

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

mcp = ChukMCPServer(ServerConfig.NAME)

# Reads GLOBE_* environment overrides at import time
manager = GlobeManager()

register_discovery_tools(mcp, manager)
register_download_tools(mcp, manager)

if __name__ == "__main__":
    logger.info("Starting GLOBE MCP Server...")
    logger.info(f"Tile source: {manager.tile_url} (timeout {manager.timeout_s:.0f}s)")
    mcp.run(stdio=True)
