"""
Value types shared by the tile pipeline.

- `GeoBBox`: a (west, south, east, north) box in degrees.
- `TileAddress`: a source tile on the Daum grid, with its download URL.
- `TileCoords`: a tile as the host rendering library names it.
- `CancelToken`: one-shot cooperative cancellation flag, one per tile request.
- `TileSurface`: the fixed-size output handle handed back to the host.
"""
from dataclasses import dataclass, field
from typing import Tuple

from PIL import Image

from .constants import TILE_SIZE, TILE_URL
from .errors import TileCancelled


@dataclass(frozen=True)
class GeoBBox:
    west: float
    south: float
    east: float
    north: float

    def __post_init__(self):
        if not self.west < self.east:
            raise ValueError(f"west ({self.west}) must be smaller than east ({self.east})")
        if not self.south < self.north:
            raise ValueError(f"south ({self.south}) must be smaller than north ({self.north})")

    @property
    def top_left(self) -> Tuple[float, float]:
        """(lat, lng) of the north-west corner."""
        return self.north, self.west

    @property
    def bottom_right(self) -> Tuple[float, float]:
        """(lat, lng) of the south-east corner."""
        return self.south, self.east

    def intersects(self, other: "GeoBBox") -> bool:
        return (
            self.west <= other.east and other.west <= self.east
            and self.south <= other.north and other.south <= self.north
        )


@dataclass(frozen=True)
class TileAddress:
    zoom: int
    x: int
    y: int

    @property
    def url(self) -> str:
        return TILE_URL.format(zoom=self.zoom, x=self.x, y=self.y)


@dataclass(frozen=True)
class TileCoords:
    x: int
    y: int
    z: int


class CancelToken:
    """
    Cooperative cancellation flag owned by exactly one tile request.

    The token is signalled at most once; later calls to `cancel` are ignored.
    Fetches consult it before every network request and never abort a request
    that is already in flight.
    """

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Signal the token. Returns False if it was already signalled."""
        if self._cancelled:
            return False
        self._cancelled = True
        return True

    def raise_if_cancelled(self):
        if self._cancelled:
            raise TileCancelled("Tile request was cancelled")


def blank_image(width: int = TILE_SIZE, height: int = TILE_SIZE) -> Image.Image:
    """Fully transparent RGBA image."""
    return Image.new("RGBA", (width, height), (0, 0, 0, 0))


@dataclass(eq=False)
class TileSurface:
    """
    Output handle for one `create_tile` call.

    Compared and hashed by identity, so it can key the layer's table of
    in-flight requests. `filter` is a display-only string (CSS filter syntax)
    that the host applies when drawing; the pipeline never interprets it.
    """
    coords: TileCoords
    image: Image.Image = field(default_factory=blank_image)
    filter: str = ""
