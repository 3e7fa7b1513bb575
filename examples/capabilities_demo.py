#!/usr/bin/env python3
"""
Capabilities Demo -- chuk-mcp-globe

Quick-start script showing what the server can do, without any network
access. Lists the GLOBE tile catalogue, server status, full capabilities,
and the dual output mode (JSON vs text).

Usage:
    python examples/capabilities_demo.py
"""

import asyncio

from tool_runner import ToolRunner


async def main() -> None:
    runner = ToolRunner()

    print("=" * 60)
    print("chuk-mcp-globe -- Server Capabilities")
    print("=" * 60)

    print(f"\nRegistered tools ({len(runner.tool_names)}):")
    for name in sorted(runner.tool_names):
        print(f"  - {name}")

    tiles = await runner.run("globe_list_tiles")
    print(f"\n{tiles['dataset']}")
    for t in tiles["tiles"]:
        west, south, east, north = t["bounds"]
        print(
            f"  {t['code']}  lon {west:7.1f} .. {east:7.1f}  "
            f"lat {south:6.1f} .. {north:5.1f}  {t['rows']}x{t['cols']}"
        )

    detail = await runner.run("globe_describe_tile", code="e")
    print(f"\nTile detail: {detail['name']}")
    print(f"  Samples: {detail['dtype']}, nodata {detail['nodata_value']}")
    print(f"  Header: {detail['header_url']}")
    print(f"  Data:   {detail['tile_url']}")

    status = await runner.run("globe_status")
    print("\nServer Status:")
    print(f"  {status['server']} v{status['version']}")
    print(f"  Storage: {status['storage_provider']}")
    print(f"  Fetch timeout: {status['fetch_timeout_s']:.0f}s")
    print(f"  Default block factor: {status['default_block_factor']}")

    caps = await runner.run("globe_capabilities")
    print("\nCapabilities:")
    print(f"  Tools: {caps['tool_count']}")
    print(f"  Overlap policies: {', '.join(caps['overlap_policies'])}")
    print(f"  Guidance: {caps['llm_guidance']}")

    # ---------------------------------------------------------------
    # Dual output mode: text vs JSON
    # ---------------------------------------------------------------
    print("\n" + "-" * 60)
    print("Dual Output Mode Demo")
    print("-" * 60)

    print("\nglobe_status (output_mode='text'):")
    print(await runner.run_text("globe_status"))

    print("\nglobe_describe_tile (output_mode='text'):")
    print(await runner.run_text("globe_describe_tile", code="g"))

    print("\n" + "=" * 60)
    print("Nothing above touched the network. Run north_america_demo.py")
    print("to download tiles e and f and build a resampled mosaic.")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
