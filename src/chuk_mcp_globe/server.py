#!/usr/bin/env python3
"""
GLOBE MCP Server - Entry Point

Starts the async MCP server for GLOBE tile retrieval and mosaicking.
Supports both stdio (for Claude Desktop) and HTTP (for API access) transports.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .constants import EnvVar, ServerConfig, SessionProvider, StorageProvider

# .env at the project root may set GLOBE_* and artifact store variables
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

logger = logging.getLogger(__name__)


def _resolve_provider() -> tuple[str, dict[str, Any]]:
    """
    Work out the storage provider and ArtifactStore keyword arguments.

    Returns:
        (provider, store_kwargs); provider is empty when the configuration
        is unusable
    """
    provider = os.environ.get(EnvVar.ARTIFACTS_PROVIDER, StorageProvider.MEMORY)
    redis_url = os.environ.get(EnvVar.REDIS_URL)
    kwargs: dict[str, Any] = {
        "session_provider": SessionProvider.REDIS if redis_url else SessionProvider.MEMORY,
    }

    if provider == StorageProvider.S3:
        bucket = os.environ.get(EnvVar.BUCKET_NAME)
        creds = [
            os.environ.get(EnvVar.AWS_ACCESS_KEY_ID),
            os.environ.get(EnvVar.AWS_SECRET_ACCESS_KEY),
        ]
        if not bucket or not all(creds):
            logger.warning(
                f"S3 storage needs {EnvVar.BUCKET_NAME}, {EnvVar.AWS_ACCESS_KEY_ID} "
                f"and {EnvVar.AWS_SECRET_ACCESS_KEY}; artifact store not initialised."
            )
            return "", kwargs
        kwargs["bucket"] = bucket
        logger.info(
            f"S3 artifact storage (bucket: {bucket}, "
            f"endpoint: {os.environ.get(EnvVar.AWS_ENDPOINT_URL_S3) or 'default'})"
        )

    elif provider == StorageProvider.FILESYSTEM:
        artifacts_path = os.environ.get(EnvVar.ARTIFACTS_PATH)
        if not artifacts_path:
            logger.warning(
                f"{EnvVar.ARTIFACTS_PATH} not set for filesystem storage; using memory instead."
            )
            provider = StorageProvider.MEMORY
        else:
            Path(artifacts_path).mkdir(parents=True, exist_ok=True)
            kwargs["bucket"] = artifacts_path
            logger.info(f"Filesystem artifact storage at {artifacts_path}")

    return provider, {"storage_provider": provider, **kwargs}


def _init_artifact_store() -> bool:
    """
    Initialize the artifact store from environment variables.

    Returns:
        True if artifact store was initialized, False otherwise
    """
    provider, store_kwargs = _resolve_provider()
    if not provider:
        return False

    try:
        from chuk_artifacts import ArtifactStore
        from chuk_mcp_server import set_global_artifact_store

        set_global_artifact_store(ArtifactStore(**store_kwargs))
        logger.info(f"Artifact store ready (provider: {provider})")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize artifact store: {e}")
        return False


# Import mcp instance and all registered tools from async server
from .async_server import mcp  # noqa: F401, E402


def main() -> None:
    """Main entry point for the MCP server."""
    import argparse

    _init_artifact_store()

    parser = argparse.ArgumentParser(description=ServerConfig.DESCRIPTION)
    parser.add_argument(
        "mode",
        nargs="?",
        choices=["stdio", "http"],
        default=None,
        help="Transport mode (stdio for Claude Desktop, http for API)",
    )
    parser.add_argument(
        "--host", default="localhost", help="Host for HTTP mode (default: localhost)"
    )
    parser.add_argument("--port", type=int, default=8004, help="Port for HTTP mode (default: 8004)")

    args = parser.parse_args()

    stdio = args.mode == "stdio" or (
        args.mode is None and (os.environ.get(EnvVar.MCP_STDIO) or not sys.stdin.isatty())
    )
    if stdio:
        print("GLOBE MCP Server starting in STDIO mode", file=sys.stderr)
        mcp.run(stdio=True)
    else:
        print(
            f"GLOBE MCP Server starting in HTTP mode on {args.host}:{args.port}",
            file=sys.stderr,
        )
        mcp.run(host=args.host, port=args.port, stdio=False)


if __name__ == "__main__":
    main()
