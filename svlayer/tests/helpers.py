"""
Shared test doubles: in-memory PNG tiles, a scripted aiohttp-like session and
linear CRS stand-ins whose tile coordinates are easy to reason about.
"""
import asyncio
from io import BytesIO

import aiohttp
from PIL import Image

from ..constants import TILE_SIZE


def dummy_image(size=(TILE_SIZE, TILE_SIZE), color=(255, 0, 0, 255)):
    """Return a PIL Image object."""
    return Image.new("RGBA", size, color)


def dummy_image_bytes(size=(TILE_SIZE, TILE_SIZE), color=(255, 0, 0, 255)):
    """Generate PNG bytes for testing purposes."""
    buf = BytesIO()
    dummy_image(size, color).save(buf, format="PNG")
    return buf.getvalue()


def tile_color(x, y):
    """Distinct opaque colour per source tile."""
    return (x * 10 % 256, y * 10 % 256, 150, 255)


def url_xy(url):
    """(x, y) from a Daum tile URL."""
    x, y = url.rsplit("/", 2)[-2:]
    return int(x), int(y.split(".")[0])


class MockResponse:

    def __init__(self, status=200, body=b"", payload=None, error=None, gate=None):
        self.status = status
        self.body = body
        self.payload = payload
        self.error = error
        self.gate = gate

    async def read(self):
        if self.gate is not None:
            await self.gate.wait()
        return self.body

    async def json(self, content_type="application/json"):
        return self.payload

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientError(f"HTTP {self.status}")

    async def __aenter__(self):
        if self.error is not None:
            raise self.error
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


def colored_tile_response(url):
    return MockResponse(body=dummy_image_bytes(color=tile_color(*url_xy(url))))


class FakeSession:
    """
    Stand-in for aiohttp.ClientSession.

    `respond(url)` builds the MockResponse for each GET; `on_get(url)` runs
    right after a request is recorded. Every requested URL is kept in
    `requested`.
    """

    def __init__(self, respond=colored_tile_response, on_get=None):
        self.respond = respond
        self.on_get = on_get
        self.requested = []
        self.kwargs = []

    def get(self, url, **kwargs):
        self.requested.append(url)
        self.kwargs.append(kwargs)
        if self.on_get is not None:
            self.on_get(url)
        return self.respond(url)


class LinearCRS:
    """
    Pixel = (lng, -lat) * TILE_SIZE, so a tile coordinate is just (lng, -lat).
    """
    zoom_count = 14

    def to_pixel(self, lat, lng, zoom):
        return lng * TILE_SIZE, -lat * TILE_SIZE

    def to_latlng(self, x, y, zoom):
        return -y / TILE_SIZE, x / TILE_SIZE


class ShiftedCRS(LinearCRS):
    """
    Host tiles sit half a tile right of and below the source grid, so every
    host tile straddles 2x2 source tiles.
    """

    def to_latlng(self, x, y, zoom):
        return -(y + TILE_SIZE / 2) / TILE_SIZE, (x + TILE_SIZE / 2) / TILE_SIZE


class UnboundedCRS(LinearCRS):
    """Inverse projection that blows up to infinity, as pyproj does far off the grid."""

    def to_latlng(self, x, y, zoom):
        return float("inf"), float("inf")


async def wait_for(condition, attempts=100):
    """Yield to the event loop until `condition()` holds."""
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")
