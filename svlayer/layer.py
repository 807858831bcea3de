"""
Grid layer that serves Daum/Kakao road-view tiles to a host tile grid.

The host calls `create_tile(coords, done)` for every visible tile and
`unload_tile(tile)` when a tile scrolls away. Each request owns one
`CancelToken`; the layer only keeps a table from output surface to token while
the request is in flight.
"""
import asyncio
import os
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

import aiohttp
from rich import print

from .constants import DEFAULT_TIMEOUT, MAX_ZOOM, TILE_SIZE
from .core import render_tile
from .crs import DaumCRS
from .errors import InvalidTileError, TileCancelled
from .my_utils import is_blank, save_img
from .types import CancelToken, GeoBBox, TileCoords, TileSurface

DoneCallback = Callable[[Optional[BaseException], TileSurface], None]


class KakaoLayer:
    """
    Reprojects Daum road-view tiles into the host's tile grid.

    Args:
        session (aiohttp.ClientSession): Session used for every source tile fetch.
        crs (DaumCRS | None): CRS adapter (default: a new `DaumCRS`).
        filter (str): Display filter attached to every completed tile.
        coverage (GeoBBox | sequence | None): Tiles whose bbox misses this area
            resolve blank without any fetch. None treats every tile as covered.
        timeout (float | None): Per source tile request timeout in seconds.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        crs: Optional[DaumCRS] = None,
        filter: str = "",
        coverage: Union[GeoBBox, Tuple[float, float, float, float], None] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT
    ):
        self.session = session
        self.crs = crs or DaumCRS()
        self.filter = filter
        if coverage is not None and not isinstance(coverage, GeoBBox):
            coverage = GeoBBox(*coverage)
        self.coverage = coverage
        self.timeout = timeout
        self._tiles: Dict[TileSurface, CancelToken] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of tile requests still in flight."""
        return len(self._tiles)

    def source_zoom(self, host_zoom: int) -> int:
        zoom = MAX_ZOOM - host_zoom
        if not 0 <= zoom < self.crs.zoom_count:
            raise InvalidTileError(
                f"Host zoom {host_zoom} maps to source zoom {zoom}, "
                f"outside 0-{self.crs.zoom_count - 1}"
            )
        return zoom

    def tile_bbox(self, coords: TileCoords, zoom: int) -> GeoBBox:
        north, west = self.crs.to_latlng(coords.x * TILE_SIZE, coords.y * TILE_SIZE, zoom)
        south, east = self.crs.to_latlng((coords.x + 1) * TILE_SIZE, (coords.y + 1) * TILE_SIZE, zoom)
        return GeoBBox(west, south, east, north)

    def in_coverage(self, bbox: GeoBBox) -> bool:
        return self.coverage is None or bbox.intersects(self.coverage)

    def create_tile(self, coords: TileCoords, done: DoneCallback) -> TileSurface:
        """
        Start loading one host tile.

        Must be called from inside a running event loop. `done(error, tile)` is
        called exactly once: with the error if the tile failed, with None if it
        completed, was cancelled or lies outside the coverage area. A tile the
        inverse projection cannot map reports `InvalidTileError`.

        Args:
            coords (TileCoords): Host tile x, y and zoom.
            done (Callable): Completion callback.

        Returns:
            TileSurface: The output handle, blank until the tile completes.
        """
        tile = TileSurface(coords)

        try:
            zoom = self.source_zoom(coords.z)
        except InvalidTileError as error:
            print(f"[red][TILE ERROR] {coords}: {error}[/]")
            done(error, tile)
            return tile

        try:
            bbox = self.tile_bbox(coords, zoom)
        except ValueError as error:
            # far outside the projection the inverse transform degenerates
            invalid = InvalidTileError(f"Tile {coords} has no geographic extent: {error}")
            print(f"[red][TILE ERROR] {invalid}[/]")
            done(invalid, tile)
            return tile

        if not self.in_coverage(bbox):
            done(None, tile)
            return tile

        loop = asyncio.get_running_loop()
        token = CancelToken()
        self._tiles[tile] = token

        task = loop.create_task(self._load(tile, bbox, zoom, token, done))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return tile

    def unload_tile(self, tile: TileSurface):
        """Cancel a tile the host no longer shows. Finished or unknown tiles are ignored."""
        token = self._tiles.pop(tile, None)
        if token is not None:
            token.cancel()

    async def close(self):
        """Cancel every in-flight tile and wait for their callbacks."""
        for tile in list(self._tiles):
            self.unload_tile(tile)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _load(self, tile, bbox, zoom, token, done):
        try:
            error = await self._render_into(tile, bbox, zoom, token)
        except asyncio.CancelledError:
            done(None, tile)
            raise
        finally:
            self._tiles.pop(tile, None)
        done(error, tile)

    async def _render_into(self, tile, bbox, zoom, token) -> Optional[Exception]:
        try:
            image = await render_tile(self.session, self.crs, bbox, zoom, token, timeout=self.timeout)
        except TileCancelled:
            print(f"[yellow][CANCELLED] Tile {tile.coords}[/]")
            return None
        except Exception as error:
            print(f"[red][TILE ERROR] Tile {tile.coords}: {error}[/]")
            return error

        tile.image.paste(image, (0, 0))
        image.close()
        tile.filter = self.filter
        return None


async def request_tile(layer: KakaoLayer, coords: TileCoords) -> TileSurface:
    """
    Await one tile from `layer`.

    If the awaiting task is cancelled, the tile is unloaded so its remaining
    source fetches never start.

    Raises:
        Exception: Whatever error the layer reported for the tile.
    """
    future = asyncio.get_running_loop().create_future()

    def done(error, tile):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(tile)

    tile = layer.create_tile(coords, done)
    try:
        return await future
    except asyncio.CancelledError:
        layer.unload_tile(tile)
        raise


async def process_tile(
    layer: KakaoLayer,
    coords: TileCoords,
    sem_tile: asyncio.Semaphore,
    output_dir: str
) -> Optional[dict]:
    """
    Render one host tile and save it to disk.

    Args:
        layer (KakaoLayer): Layer producing the tile.
        coords (TileCoords): Host tile to render.
        sem_tile (asyncio.Semaphore): Limits concurrent host tiles.
        output_dir (str): Directory to save the tile in.

    Returns:
        dict | None: Metadata with "coords" and "file_size", or None when the
        tile failed or came out blank.
    """
    async with sem_tile:
        try:
            tile = await request_tile(layer, coords)
        except Exception as error:
            print(f"[red][FAIL] Tile {coords.z}/{coords.x}/{coords.y}: {error}[/]")
            return None

    if is_blank(tile.image):
        print(f"[yellow][SKIP] Tile {coords.z}/{coords.x}/{coords.y} | empty[/]")
        return None

    file_size = save_img(tile.image, output_dir, coords)
    print(f"[green][OK] Tile {coords.z}/{coords.x}/{coords.y} | size {file_size}[/]")
    return {"coords": coords, "file_size": file_size}


async def render_tiles(
    sem_tile: asyncio.Semaphore,
    connector: aiohttp.TCPConnector,
    tiles: List[TileCoords],
    output_dir: Optional[str] = None,
    **layer_kwargs
) -> Tuple[int, int, str]:
    """
    Render and save many host tiles concurrently.

    Args:
        sem_tile (asyncio.Semaphore): Limits concurrent host tiles.
        connector (aiohttp.TCPConnector): Connector with concurrency limits for aiohttp.
        tiles (list[TileCoords]): Host tiles to render.
        output_dir (str | None): Output directory (default: current working directory).
        **layer_kwargs: Passed to `KakaoLayer` (filter, coverage, timeout).

    Returns:
        tuple[int, int, str]: Requested tiles, saved tiles, output directory.
    """
    print("[green]| Rendering tiles..[/]\n")

    if output_dir is None:
        output_dir = os.getcwd()

    async with aiohttp.ClientSession(connector=connector) as session:
        layer = KakaoLayer(session, **layer_kwargs)
        results = await asyncio.gather(*[process_tile(layer, coords, sem_tile, output_dir) for coords in tiles])

    saved = [result for result in results if result is not None]
    return len(tiles), len(saved), output_dir
