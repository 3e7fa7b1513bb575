"""Download tools: headers, single tiles, and mosaics."""

from .api import register_download_tools

__all__ = ["register_download_tools"]
