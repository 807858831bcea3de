"""
Daum/Kakao map CRS (EPSG:5181) with its fixed resolution table.

Geographic coordinates are projected with pyproj, then mapped to pixel space
at a given zoom the way Proj4Leaflet does it: pixel x grows eastward from the
grid origin and pixel y grows southward.
"""
from typing import Sequence, Tuple

from pyproj import Transformer

from .constants import DAUM_PROJ, ORIGIN, RESOLUTIONS


class DaumCRS:
    """
    Geo <-> pixel conversion for a transverse Mercator grid with explicit
    per-zoom resolutions.

    Args:
        proj (str): proj4 definition of the projected CRS.
        resolutions (Sequence[float]): metres per pixel for zoom 0..N-1.
        origin (tuple[float, float]): grid origin in projected units.
    """

    def __init__(
        self,
        proj: str = DAUM_PROJ,
        resolutions: Sequence[float] = RESOLUTIONS,
        origin: Tuple[float, float] = ORIGIN
    ):
        self.resolutions = tuple(resolutions)
        self.origin = origin
        # always_xy: (lon, lat) in, (x, y) out
        self._forward = Transformer.from_crs("EPSG:4326", proj, always_xy=True)
        self._inverse = Transformer.from_crs(proj, "EPSG:4326", always_xy=True)

    @property
    def zoom_count(self) -> int:
        return len(self.resolutions)

    def resolution(self, zoom: int) -> float:
        if not 0 <= zoom < self.zoom_count:
            raise ValueError(f"Zoom {zoom} outside resolution table (0-{self.zoom_count - 1})")
        return self.resolutions[zoom]

    def to_pixel(self, lat: float, lng: float, zoom: int) -> Tuple[float, float]:
        res = self.resolution(zoom)
        x, y = self._forward.transform(lng, lat)
        return (x - self.origin[0]) / res, (self.origin[1] - y) / res

    def to_latlng(self, x: float, y: float, zoom: int) -> Tuple[float, float]:
        res = self.resolution(zoom)
        lng, lat = self._inverse.transform(
            x * res + self.origin[0],
            self.origin[1] - y * res
        )
        return lat, lng
