"""
Street view panorama lookups across providers.

Every provider in `Provider` has exactly one lookup coroutine with the same
signature, `lookup(session, request) -> (Panorama | None, StreetViewStatus)`.
`get_panorama` dispatches on the enum member and reports the result through an
optional `on_completed(panorama, status)` callback as well as its return value.

The aiohttp session is owned by the caller and passed in explicitly.
"""
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import aiohttp
from rich import print

from .constants import (
    DEFAULT_RADIUS,
    GOOGLE_API_KEY_ENV,
    GOOGLE_METADATA_URL,
    GOOGLE_WORLD_SIZE,
    KAKAO_NODE_URL,
    KAKAO_SEARCH_URL,
    PANO_TILE_SIZE,
    PANO_WORLD_SIZE,
    TENCENT_DETAIL_URL,
    TENCENT_SEARCH_URL
)


class Provider(str, Enum):
    GOOGLE = "google"
    TENCENT = "tencent"
    KAKAO = "kakao"
    YANDEX = "yandex"
    BAIDU = "baidu"


class StreetViewStatus(str, Enum):
    OK = "OK"
    ZERO_RESULTS = "ZERO_RESULTS"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float


@dataclass
class PanoramaRequest:
    location: Optional[LatLng] = None
    pano: Optional[str] = None
    radius: Optional[float] = None


@dataclass
class PanoramaLink:
    pano: str
    heading: float


@dataclass
class PanoramaTiles:
    center_heading: float
    tile_size: Tuple[int, int] = PANO_TILE_SIZE
    world_size: Tuple[int, int] = PANO_WORLD_SIZE


@dataclass
class PanoramaTime:
    pano: str
    date: datetime


@dataclass
class Panorama:
    pano: str
    location: LatLng
    description: Optional[str] = None
    links: List[PanoramaLink] = field(default_factory=list)
    tiles: Optional[PanoramaTiles] = None
    image_date: Optional[str] = None
    copyright: str = ""
    time: List[PanoramaTime] = field(default_factory=list)


LookupResult = Tuple[Optional[Panorama], StreetViewStatus]
Lookup = Callable[[aiohttp.ClientSession, PanoramaRequest], Awaitable[LookupResult]]

_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d", "%Y-%m", "%Y%m%d%H%M%S")


def parse_date(value: str) -> datetime:
    """
    Parse the date formats the providers use ("2021-05-12 10:11:12", "2021-05", ...).

    Raises:
        ValueError: None of the known formats match.
    """
    value = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date: {value!r}")


def extract_date_from_pano_id(svid: str) -> str:
    """
    Tencent svids embed the capture date as YYMMDD at characters 8-13,
    e.g. "10011022120723095353200" -> "2012-07-23".
    """
    digits = str(svid)[8:14]
    if len(digits) != 6 or not digits.isdigit():
        raise ValueError(f"No date in Tencent svid {svid!r}")
    return f"20{digits[0:2]}-{digits[2:4]}-{digits[4:6]}"


def _history(entries: List[PanoramaTime]) -> List[PanoramaTime]:
    return sorted(entries, key=lambda entry: entry.date)


async def _get_json(session: aiohttp.ClientSession, url: str, **kwargs) -> dict:
    async with session.get(url, **kwargs) as response:
        response.raise_for_status()
        # both Tencent and Kakao answer JSON with text/* content types
        return await response.json(content_type=None)


async def lookup_google(session: aiohttp.ClientSession, request: PanoramaRequest) -> LookupResult:
    """Google Street View via the metadata endpoint. Needs GOOGLE_MAPS_API_KEY."""
    key = os.environ.get(GOOGLE_API_KEY_ENV)
    if not key:
        print(f"[yellow][Google] {GOOGLE_API_KEY_ENV} is not set[/]")
        return None, StreetViewStatus.UNKNOWN_ERROR

    params = {"key": key}
    if request.pano:
        params["pano"] = request.pano
    elif request.location:
        params["location"] = f"{request.location.lat},{request.location.lng}"
        params["radius"] = str(request.radius or DEFAULT_RADIUS)
    else:
        return None, StreetViewStatus.ZERO_RESULTS

    json = await _get_json(session, GOOGLE_METADATA_URL, params=params)
    status = json.get("status")
    if status == "ZERO_RESULTS" or status == "NOT_FOUND":
        return None, StreetViewStatus.ZERO_RESULTS
    if status != "OK":
        print(f"[red][Google] metadata status {status}: {json.get('error_message', '')}[/]")
        return None, StreetViewStatus.UNKNOWN_ERROR

    pano_id = json["pano_id"]
    date = json.get("date")
    time = [PanoramaTime(pano_id, parse_date(date))] if date else []

    return Panorama(
        pano=pano_id,
        location=LatLng(json["location"]["lat"], json["location"]["lng"]),
        tiles=PanoramaTiles(center_heading=0, world_size=GOOGLE_WORLD_SIZE),
        image_date=date,
        copyright=json.get("copyright", "© Google"),
        time=time
    ), StreetViewStatus.OK


async def lookup_tencent(session: aiohttp.ClientSession, request: PanoramaRequest) -> LookupResult:
    pano_id = None
    if request.pano:
        pano_id = request.pano
    elif request.location:
        url = TENCENT_SEARCH_URL.format(
            lng=request.location.lng,
            lat=request.location.lat,
            radius=request.radius or DEFAULT_RADIUS
        )
        json = await _get_json(session, url)
        svid = ((json or {}).get("detail") or {}).get("svid")
        pano_id = str(svid) if svid else None

    if not pano_id:
        return None, StreetViewStatus.ZERO_RESULTS

    json = await _get_json(session, TENCENT_DETAIL_URL.format(pano=pano_id))
    result = (json or {}).get("detail") or {}
    basic = result.get("basic") or {}

    if not basic.get("svid"):
        return None, StreetViewStatus.ZERO_RESULTS

    date = extract_date_from_pano_id(basic["svid"])
    addr = result.get("addr") or {}
    history = (result.get("history") or {}).get("nodes") or []

    return Panorama(
        pano=pano_id,
        location=LatLng(float(addr["y_lat"]), float(addr["x_lng"])),
        description=basic.get("append_addr"),
        links=[PanoramaLink(str(scene["svid"]), 0) for scene in result.get("all_scenes") or []],
        tiles=PanoramaTiles(center_heading=float(basic["dir"])),
        image_date=date,
        copyright="© Tencent Maps",
        time=_history(
            [PanoramaTime(str(node["svid"]), parse_date(extract_date_from_pano_id(node["svid"]))) for node in history]
            + [PanoramaTime(pano_id, parse_date(date))]
        )
    ), StreetViewStatus.OK


async def lookup_kakao(session: aiohttp.ClientSession, request: PanoramaRequest) -> LookupResult:
    if request.pano:
        url = KAKAO_NODE_URL.format(pano=request.pano)
    elif request.location:
        url = KAKAO_SEARCH_URL.format(
            lng=request.location.lng,
            lat=request.location.lat,
            radius=request.radius or DEFAULT_RADIUS
        )
    else:
        return None, StreetViewStatus.ZERO_RESULTS

    json = await _get_json(session, url)
    street_view = (json or {}).get("street_view") or {}
    result = street_view.get("street") or (street_view.get("streetList") or [None])[0]

    if not result:
        return None, StreetViewStatus.ZERO_RESULTS

    date = result["shot_date"]
    pano_id = str(result["id"])
    heading = (float(result["angle"]) + 180) % 360

    return Panorama(
        pano=pano_id,
        location=LatLng(float(result["wgsy"]), float(result["wgsx"])),
        description=result.get("addr"),
        links=[
            PanoramaLink(str(spot["id"]), (float(spot["pan"]) % 180) + (180 if heading > 180 else 0))
            for spot in result.get("spot") or []
        ],
        tiles=PanoramaTiles(center_heading=heading),
        image_date=date,
        copyright="© Kakao Maps",
        time=_history(
            [PanoramaTime(str(past["id"]), parse_date(past["shot_date"])) for past in result.get("past") or []]
            + [PanoramaTime(pano_id, parse_date(date))]
        )
    ), StreetViewStatus.OK


async def lookup_unsupported(session: aiohttp.ClientSession, request: PanoramaRequest) -> LookupResult:
    return None, StreetViewStatus.UNKNOWN_ERROR


LOOKUPS: Dict[Provider, Lookup] = {
    Provider.GOOGLE: lookup_google,
    Provider.TENCENT: lookup_tencent,
    Provider.KAKAO: lookup_kakao,
    Provider.YANDEX: lookup_unsupported,
    Provider.BAIDU: lookup_unsupported,
}


async def get_panorama(
    session: aiohttp.ClientSession,
    provider: Provider,
    request: PanoramaRequest,
    on_completed: Optional[Callable[[Optional[Panorama], StreetViewStatus], None]] = None
) -> LookupResult:
    """
    Look up a panorama with `provider`.

    Args:
        session (aiohttp.ClientSession): The active HTTP session.
        provider (Provider): Provider to ask.
        request (PanoramaRequest): Pano id, or location plus search radius.
        on_completed (Callable | None): Called once with (panorama, status).

    Returns:
        tuple[Panorama | None, StreetViewStatus]: Same values passed to `on_completed`.
    """
    provider = Provider(provider)
    lookup = LOOKUPS[provider]

    if lookup is lookup_unsupported:
        print(f"[yellow][{provider.name.capitalize()}] panorama lookup is not supported[/]")

    try:
        result = await lookup(session, request)
    except Exception as error:
        print(f"[red][{provider.name.capitalize()}] panorama fetch error: {error}[/]")
        result = (None, StreetViewStatus.UNKNOWN_ERROR)

    if on_completed is not None:
        on_completed(*result)
    return result
