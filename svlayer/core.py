"""
Core module for reprojecting Daum/Kakao road-view tiles.

This module provides asynchronous functions to:

- Fetch and decode a single source tile, honouring a cancellation token (`fetch_tile`).
- Work out which source tiles cover a geographic bounding box (`plan_region`).
- Download those tiles and stitch them into one staging image (`composite_region`).
- Cut the requested tile's exact window out of the staging image (`crop_tile`).
- Run the whole pipeline for one bounding box (`render_tile`).

Source tiles are fetched one after another in row-major order. A single failed
tile aborts the whole region: there is no retry and no partial output.

Dependencies:
- aiohttp for asynchronous HTTP requests
- PIL/Pillow for decoding, stitching and cropping
"""
import asyncio
import math
from dataclasses import dataclass
from io import BytesIO
from typing import Iterator, Optional, Tuple

import aiohttp
from aiohttp import ClientTimeout

from PIL import Image

from .constants import DEFAULT_TIMEOUT, TILE_EPSILON, TILE_SIZE
from .errors import FetchError
from .types import CancelToken, GeoBBox, TileAddress, blank_image


async def fetch_tile(
    session: aiohttp.ClientSession,
    address: TileAddress,
    token: CancelToken,
    timeout: Optional[float] = DEFAULT_TIMEOUT
) -> Image.Image:
    """
    Fetch a single source tile from the Daum tile server.

    The token is checked right before the request is issued. Once the request
    is on the wire it is allowed to finish even if the token is signalled.

    Args:
        session (aiohttp.ClientSession): The active HTTP session.
        address (TileAddress): Source tile to download.
        token (CancelToken): Cancellation token of the enclosing tile request.
        timeout (float | None): Total seconds allowed for the request (default: 30).

    Returns:
        PIL.Image.Image: The decoded tile, in RGBA mode.

    Raises:
        TileCancelled: The token was signalled before the request started.
        FetchError: Network failure, timeout, non-200 status or undecodable body.
    """
    token.raise_if_cancelled()

    try:
        async with session.get(address.url, timeout=ClientTimeout(timeout)) as response:
            status = response.status
            data = await response.read() if status == 200 else None
    except (aiohttp.ClientError, asyncio.TimeoutError) as error:
        raise FetchError(address, str(error) or type(error).__name__) from error

    if status != 200:
        raise FetchError(address, f"HTTP {status}")

    try:
        tile = Image.open(BytesIO(data))
        tile.load()
    except (OSError, Image.DecompressionBombError) as error:
        raise FetchError(address, f"undecodable image: {error}") from error

    if tile.mode != "RGBA":
        rgba = tile.convert("RGBA")
        tile.close()
        return rgba
    return tile


@dataclass(frozen=True)
class RegionPlan:
    """
    Source tiles covering a bounding box, and where the box starts inside them.

    `offset` is the pixel position of the box's top-left corner inside the
    staging image, whose origin is tile (min_x, min_y).
    """
    zoom: int
    min_x: int
    min_y: int
    max_x: int
    max_y: int
    offset: Tuple[float, float]

    @property
    def size(self) -> Tuple[int, int]:
        return (
            TILE_SIZE * (self.max_x - self.min_x + 1),
            TILE_SIZE * (self.max_y - self.min_y + 1)
        )

    def addresses(self) -> Iterator[TileAddress]:
        """Row-major: top row first, left to right."""
        for y in range(self.min_y, self.max_y + 1):
            for x in range(self.min_x, self.max_x + 1):
                yield TileAddress(self.zoom, x, y)

    def position(self, address: TileAddress) -> Tuple[int, int]:
        return (
            (address.x - self.min_x) * TILE_SIZE,
            (address.y - self.min_y) * TILE_SIZE
        )


def _snap(value: float) -> float:
    nearest = round(value)
    return nearest if abs(value - nearest) < TILE_EPSILON else value


def plan_region(crs, bbox: GeoBBox, zoom: int) -> RegionPlan:
    """
    Compute the source tiles covering `bbox` at `zoom`.

    Args:
        crs: Anything with `to_pixel(lat, lng, zoom) -> (x, y)`, e.g. `DaumCRS`.
        bbox (GeoBBox): Requested area.
        zoom (int): Source zoom level.

    Returns:
        RegionPlan: Inclusive tile ranges and the top-left pixel offset.
    """
    tl_x, tl_y = (_snap(v / TILE_SIZE) for v in crs.to_pixel(*bbox.top_left, zoom))
    br_x, br_y = (_snap(v / TILE_SIZE) for v in crs.to_pixel(*bbox.bottom_right, zoom))

    min_x, min_y = math.floor(tl_x), math.floor(tl_y)
    # a corner lying on a tile edge does not reach into the next tile
    max_x = max(min_x, math.ceil(br_x) - 1)
    max_y = max(min_y, math.ceil(br_y) - 1)

    offset = ((tl_x - min_x) * TILE_SIZE, (tl_y - min_y) * TILE_SIZE)
    return RegionPlan(zoom, min_x, min_y, max_x, max_y, offset)


async def composite_region(
    session: aiohttp.ClientSession,
    crs,
    bbox: GeoBBox,
    zoom: int,
    token: CancelToken,
    timeout: Optional[float] = DEFAULT_TIMEOUT
) -> Tuple[Image.Image, Tuple[float, float]]:
    """
    Download every source tile covering `bbox` and stitch them together.

    Tiles are fetched sequentially in row-major order. The token is checked
    before each fetch; remaining fetches are abandoned as soon as it is
    signalled.

    Args:
        session (aiohttp.ClientSession): The active HTTP session.
        crs: CRS adapter used to project the bbox corners.
        bbox (GeoBBox): Requested area.
        zoom (int): Source zoom level.
        token (CancelToken): Cancellation token of the tile request.
        timeout (float | None): Per-tile request timeout in seconds.

    Returns:
        tuple[PIL.Image.Image, tuple[float, float]]: The staging image and the
        pixel offset of the bbox's top-left corner inside it.

    Raises:
        TileCancelled: The token was signalled between fetches.
        FetchError: Any one source tile failed; nothing is returned.
    """
    plan = plan_region(crs, bbox, zoom)
    staging = blank_image(*plan.size)

    try:
        for address in plan.addresses():
            token.raise_if_cancelled()
            tile = await fetch_tile(session, address, token, timeout=timeout)
            staging.paste(tile, plan.position(address))
            tile.close()
    except BaseException:
        staging.close()
        raise

    return staging, plan.offset


def crop_tile(staging: Image.Image, offset: Tuple[float, float]) -> Image.Image:
    """
    Copy the TILE_SIZE x TILE_SIZE window starting at `offset` out of the staging image.

    The offset is rounded to whole pixels; nothing is rescaled. Any part of
    the window beyond the staging image comes out transparent.

    Args:
        staging (PIL.Image.Image): Stitched source tiles.
        offset (tuple[float, float]): Top-left corner of the window.

    Returns:
        PIL.Image.Image: A new TILE_SIZE x TILE_SIZE image.
    """
    left, top = round(offset[0]), round(offset[1])
    return staging.crop((left, top, left + TILE_SIZE, top + TILE_SIZE))


async def render_tile(
    session: aiohttp.ClientSession,
    crs,
    bbox: GeoBBox,
    zoom: int,
    token: CancelToken,
    timeout: Optional[float] = DEFAULT_TIMEOUT
) -> Image.Image:
    """Composite the source tiles under `bbox` and crop out the requested tile."""
    staging, offset = await composite_region(session, crs, bbox, zoom, token, timeout=timeout)
    try:
        return crop_tile(staging, offset)
    finally:
        staging.close()
