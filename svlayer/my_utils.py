"""
Utility module for the road-view tile layer.

This module provides helper functions and classes for:

- Timing code execution (`timer` context manager).
- Detecting empty output tiles (`transparent_percentage`, `is_blank`).
- Parsing command-line arguments for the tile renderer (`parse_args`).
- Saving rendered tiles and formatting file sizes (`save_img`, `format_size`).

Dependencies:
- numpy for pixel analysis
- PIL/Pillow for image handling
- argparse for CLI argument parsing
"""
import argparse
import os
import time

import numpy as np
from PIL import Image

from .constants import DEFAULT_TIMEOUT
from .types import TileCoords


class timer:
    """
    Context manager to measure elapsed execution time.

    >>> with timer() as t:
    ...     time.sleep(2)
    >>> print(t.time_elapsed)
    '0h 0m 2.00s'
    """

    def __enter__(self):
        self.start = time.time()
        self.time_elapsed = None
        return self

    def __exit__(self, *args):
        self.end = time.time()
        self.interval = self.end - self.start
        hrs, rem = divmod(self.interval, 3600)
        mins, secs = divmod(rem, 60)
        self.time_elapsed = f"{int(hrs)}h {int(mins)}m {secs:.2f}s"
        return False


def transparent_percentage(tile: Image.Image, threshold: int = 0) -> float:
    """
    Calculate the percentage of fully transparent pixels in a tile.

    Args:
        tile (PIL.Image.Image): Tile image to analyze.
        threshold (int, optional): Max alpha value considered transparent. Defaults to 0.

    Returns:
        float: Percentage of transparent pixels (0–100). Tiles without an
        alpha channel are 0.
    """
    if "A" not in tile.getbands():
        return 0.0
    alpha = np.array(tile.getchannel("A"))
    return float(np.sum(alpha <= threshold) / alpha.size * 100)


def is_blank(tile: Image.Image) -> bool:
    """True if no pixel of the tile is visible."""
    return transparent_percentage(tile) == 100


def parse_args(argv=None):
    """
    Parse command-line arguments for the tile renderer.

    Arguments:
        --zoom (int): Host zoom level (0–13).
        --x-range (int int): First and last host tile column.
        --y-range (int int): First and last host tile row.
        --output (str, optional): Output directory (Default: current working directory)
        --filter (str, optional): Display filter attached to every tile.
        --korea-only (flag): Skip tiles outside the Korean peninsula.
        --timeout (float, optional): Seconds per source tile request (Default: 30)
        --max-tile (int, optional): Max concurrent host tiles. (Default: 20)
        --conn-limit (int, optional): Maximum TCP connections per host (Default: 20)
        --serve (flag): Run the HTTP tile server instead of rendering.
        --host / --port: Tile server bind address.

    Returns:
        argparse.Namespace: Parsed arguments object.
    """
    parser = argparse.ArgumentParser(
        description="Kakao road-view tile reprojector"
    )

    parser.add_argument("--zoom", type=int, default=5, help="Host zoom level (0-13)")
    parser.add_argument("--x-range", type=int, nargs=2, default=(0, 0), metavar=("FIRST", "LAST"), help="Host tile columns")
    parser.add_argument("--y-range", type=int, nargs=2, default=(0, 0), metavar=("FIRST", "LAST"), help="Host tile rows")
    parser.add_argument("--output", type=str, default=os.getcwd(), help="Output directory (default: current working directory)")
    parser.add_argument("--filter", type=str, default="", help="Display filter attached to tiles")
    parser.add_argument("--korea-only", action="store_true", help="Skip tiles outside the Korean peninsula")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT, help="Seconds per source tile request (default: 30)")
    parser.add_argument("--max-tile", type=int, default=20, help="Max concurrent host tiles")
    parser.add_argument("--conn-limit", type=int, default=20, help="Maximum TCP connections per host (default: 20)")
    parser.add_argument("--serve", action="store_true", help="Serve tiles over HTTP instead of rendering them")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Tile server bind host")
    parser.add_argument("--port", type=int, default=8080, help="Tile server port")

    return parser.parse_args(argv)


def format_size(num_bytes: int) -> str:
    """
    Convert a file size in bytes into a human-readable string.

    Args:
        num_bytes (int): File size in bytes.

    Returns:
        str: Formatted size (e.g., '512.00 KB', '384.00 MB').
    """
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if num_bytes < 1024:
            return f"{num_bytes:.2f} {unit}"
        num_bytes /= 1024
    return f"{num_bytes:.2f} PB"


def save_img(img: Image.Image, output_dir: str, coords: TileCoords) -> str:
    """
    Save a rendered tile as `<output_dir>/tiles_z<z>/<x>_<y>.png`.

    Args:
        img (Image): Tile image.
        output_dir (str): Base directory.
        coords (TileCoords): Host coordinates of the tile.

    Returns:
        str: File size of the saved image in a human-readable format.
    """
    zoom_output_folder = os.path.join(output_dir, f"tiles_z{coords.z}")
    os.makedirs(zoom_output_folder, exist_ok=True)
    out_path = os.path.join(zoom_output_folder, f"{coords.x}_{coords.y}.png")

    img.save(out_path)
    return format_size(os.path.getsize(out_path))
