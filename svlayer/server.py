"""
HTTP host for the road-view layer.

Routes:

- `GET /tiles/{z}/{x}/{y}.png`: one reprojected tile. 200 with PNG bytes, 204
  when the tile is empty (outside coverage or cancelled), 400 for an invalid
  zoom, 502 when a source tile failed.
- `GET /panorama/{provider}?lat=&lng=&radius=&pano=`: panorama lookup as JSON.

A client that disconnects mid-request cancels its handler, which unloads the
tile so no further source tiles are fetched for it.
"""
import json
from dataclasses import asdict
from functools import partial
from io import BytesIO
from typing import Optional

import aiohttp
from aiohttp import web
from rich import print

from .errors import FetchError, InvalidTileError
from .layer import KakaoLayer, request_tile
from .my_utils import is_blank
from .providers import LatLng, PanoramaRequest, Provider, get_panorama
from .types import TileCoords

LAYER_KEY = web.AppKey("layer", KakaoLayer)


async def handle_tile(request: web.Request) -> web.Response:
    coords = TileCoords(
        x=int(request.match_info["x"]),
        y=int(request.match_info["y"]),
        z=int(request.match_info["z"])
    )

    try:
        tile = await request_tile(request.app[LAYER_KEY], coords)
    except InvalidTileError as error:
        raise web.HTTPBadRequest(text=str(error))
    except FetchError as error:
        raise web.HTTPBadGateway(text=str(error))

    if is_blank(tile.image):
        return web.Response(status=204)

    buf = BytesIO()
    tile.image.save(buf, format="PNG")
    headers = {"X-Tile-Filter": tile.filter} if tile.filter else None
    return web.Response(body=buf.getvalue(), content_type="image/png", headers=headers)


async def handle_panorama(request: web.Request) -> web.Response:
    try:
        provider = Provider(request.match_info["provider"])
    except ValueError:
        raise web.HTTPNotFound(text=f"Unknown provider {request.match_info['provider']!r}")

    query = request.query
    try:
        location = LatLng(float(query["lat"]), float(query["lng"])) if "lat" in query and "lng" in query else None
        radius = float(query["radius"]) if "radius" in query else None
    except ValueError as error:
        raise web.HTTPBadRequest(text=str(error))

    panorama, status = await get_panorama(
        request.app[LAYER_KEY].session,
        provider,
        PanoramaRequest(location=location, pano=query.get("pano"), radius=radius)
    )
    return web.json_response(
        {"status": status.value, "panorama": asdict(panorama) if panorama else None},
        dumps=partial(json.dumps, default=str)
    )


def create_app(layer: Optional[KakaoLayer] = None, conn_limit: int = 20, **layer_kwargs) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        layer (KakaoLayer | None): Existing layer to serve. When None, a
            session and layer are created on startup and closed on shutdown.
        conn_limit (int): Max TCP connections for the owned session.
        **layer_kwargs: Passed to `KakaoLayer` (filter, coverage, timeout).
    """
    app = web.Application()

    if layer is not None:
        app[LAYER_KEY] = layer
    else:
        async def layer_ctx(app):
            connector = aiohttp.TCPConnector(limit=conn_limit, limit_per_host=conn_limit)
            async with aiohttp.ClientSession(connector=connector) as session:
                app[LAYER_KEY] = KakaoLayer(session, **layer_kwargs)
                yield
                await app[LAYER_KEY].close()

        app.cleanup_ctx.append(layer_ctx)

    app.router.add_get(r"/tiles/{z:-?\d+}/{x:-?\d+}/{y:-?\d+}.png", handle_tile)
    app.router.add_get("/panorama/{provider}", handle_panorama)
    return app


def serve(host: str = "127.0.0.1", port: int = 8080, conn_limit: int = 20, **layer_kwargs):
    print(f"[green]| Serving tiles on http://{host}:{port}/tiles/{{z}}/{{x}}/{{y}}.png[/]\n")
    web.run_app(
        create_app(conn_limit=conn_limit, **layer_kwargs),
        host=host,
        port=port,
        handler_cancellation=True,
        print=None
    )
