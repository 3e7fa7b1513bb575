#!/usr/bin/env python3
"""
North America Demo -- chuk-mcp-globe

Downloads GLOBE tiles E and F (the northern Americas between 0 and 50N),
merges them into one grid, block-averages it by a factor of 10, and
renders the result as a 3D surface.

Usage:
    python examples/north_america_demo.py

Output:
    examples/output/north_america_surface.png

Requirements:
    pip install chuk-mcp-globe matplotlib
    (Requires network access to the NOAA GLOBE archive; each tile is ~30 MB)
"""

import asyncio
import io
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import rasterio

from tool_runner import ToolRunner

# -- Configuration -----------------------------------------------------------

TILES = ["e", "f"]
BLOCK_FACTOR = 10
OUTPUT_DIR = Path(__file__).parent / "output"


# -- Main pipeline -----------------------------------------------------------


async def main() -> None:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    runner = ToolRunner()
    store = runner.manager._get_store()

    print("=" * 60)
    print("North America -- GLOBE Mosaic")
    print("=" * 60)

    # Step 1: Inspect headers before downloading the data
    print("\nStep 1: Reading tile headers...")
    for code in TILES:
        header = await runner.run("globe_fetch_header", code=code)
        if "error" in header:
            print(f"  ERROR: {header['error']}")
            sys.exit(1)
        print(f"  {header['message']}")

    # Step 2: Merge and resample
    print(f"\nStep 2: Building mosaic of {', '.join(TILES)} (factor {BLOCK_FACTOR})...")
    mosaic = await runner.run("globe_fetch_mosaic", codes=TILES, block_factor=BLOCK_FACTOR)
    if "error" in mosaic:
        print(f"  ERROR: {mosaic['error']}")
        sys.exit(1)
    print(f"  {mosaic['message']}")
    if mosaic["elevation_range"] is None:
        print("  ERROR: mosaic holds no valid elevation cells")
        sys.exit(1)
    elev_min, elev_max = mosaic["elevation_range"]
    print(f"  Elevation: {elev_min:.0f}m to {elev_max:.0f}m")
    print(f"  No-data cells: {mosaic['nodata_cells']}")

    # Step 3: Render
    print("\nStep 3: Rendering surface...")
    data = await store.retrieve(mosaic["artifact_ref"])
    with rasterio.open(io.BytesIO(data)) as src:
        elevation = src.read(1)

    rows, cols = elevation.shape
    x, y = np.meshgrid(np.arange(cols), np.arange(rows))
    surface = np.nan_to_num(elevation, nan=0.0)

    fig = plt.figure(figsize=(14, 7))
    ax = fig.add_subplot(111, projection="3d")
    ax.plot_surface(x, y, surface, cmap="terrain", linewidth=0, antialiased=False)
    ax.set_zlim(0, max(elev_max, 1.0) * 4)
    ax.set_title(f"GLOBE tiles {'+'.join(TILES)}, block factor {BLOCK_FACTOR}")
    ax.set_axis_off()

    out_path = OUTPUT_DIR / "north_america_surface.png"
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"  Saved to {out_path}")


if __name__ == "__main__":
    asyncio.run(main())
