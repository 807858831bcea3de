"""
svlayer - Street view providers and a Kakao road-view grid layer

This package reprojects Daum/Kakao road-view tiles (EPSG:5181, 512 px tiles,
irregular per-zoom resolutions) into the tile grid a host renderer asks for,
and looks up street view panoramas across providers.

Key features:
- Geo <-> pixel conversion on the Daum grid via pyproj.
- Sequential, cancellable source tile fetching using asyncio + aiohttp.
- Stitching source tiles and cropping the requested window with Pillow.
- A grid layer with `create_tile` / `unload_tile` callbacks for hosts.
- An aiohttp tile server and a CLI renderer built on the layer.
- Panorama lookups for Google, Tencent and Kakao behind one interface.

Example usage::

    import asyncio
    import aiohttp
    from svlayer import KakaoLayer, TileCoords, request_tile

    async def main():
        async with aiohttp.ClientSession() as session:
            layer = KakaoLayer(session, filter="grayscale(1)")
            tile = await request_tile(layer, TileCoords(x=2, y=-4, z=7))
            tile.image.save("tile.png")

    asyncio.run(main())
"""
from .constants import *
from .errors import *
from .types import *
from .crs import DaumCRS
from .core import *
from .layer import *
from .providers import *
