"""
Tests for the panorama provider lookups with scripted provider responses.
"""
from datetime import datetime

import aiohttp
import pytest

from .. import providers
from ..providers import (
    LOOKUPS,
    LatLng,
    PanoramaRequest,
    Provider,
    StreetViewStatus,
    extract_date_from_pano_id,
    get_panorama,
    parse_date
)
from .helpers import FakeSession, MockResponse

TENCENT_SVID = "10011022120723095353200"

TENCENT_DETAIL = {
    "detail": {
        "basic": {"svid": TENCENT_SVID, "dir": "45", "append_addr": "Wangfujing"},
        "addr": {"y_lat": "39.9", "x_lng": "116.4"},
        "all_scenes": [{"svid": 10011022120723095353201}],
        "history": {"nodes": [{"svid": "10011022100512095353200"}]},
    }
}

KAKAO_NODE = {
    "street_view": {
        "street": {
            "id": 1160290831,
            "shot_date": "2021-05-12 10:11:12",
            "angle": "90",
            "wgsx": 126.978,
            "wgsy": 37.5665,
            "addr": "Sejong-daero",
            "spot": [{"id": 1160290832, "pan": "100"}],
            "past": [{"id": 1001, "shot_date": "2019-03-01 09:00:00"}],
        }
    }
}


def json_session(routes):
    def respond(url):
        for prefix, payload in routes.items():
            if url.startswith(prefix):
                return MockResponse(payload=payload)
        return MockResponse(status=404)

    return FakeSession(respond)


def test_every_provider_has_a_lookup():
    assert set(LOOKUPS) == set(Provider)


def test_extract_date_from_pano_id():
    assert extract_date_from_pano_id(TENCENT_SVID) == "2012-07-23"
    with pytest.raises(ValueError):
        extract_date_from_pano_id("short")


@pytest.mark.parametrize("value, expected", [
    ("2021-05-12 10:11:12", datetime(2021, 5, 12, 10, 11, 12)),
    ("2021-05-12", datetime(2021, 5, 12)),
    ("2019-08", datetime(2019, 8, 1)),
])
def test_parse_date(value, expected):
    assert parse_date(value) == expected


@pytest.mark.asyncio
async def test_tencent_by_location():
    session = json_session({
        "https://sv.map.qq.com/xf": {"detail": {"svid": TENCENT_SVID}},
        "https://sv.map.qq.com/sv": TENCENT_DETAIL,
    })
    calls = []

    panorama, status = await get_panorama(
        session,
        Provider.TENCENT,
        PanoramaRequest(location=LatLng(39.9, 116.4), radius=80),
        on_completed=lambda *args: calls.append(args)
    )

    assert status == StreetViewStatus.OK
    assert calls == [(panorama, status)]
    assert "r=80" in session.requested[0]
    assert session.requested[1].endswith(f"svid={TENCENT_SVID}")
    assert panorama.pano == TENCENT_SVID
    assert panorama.location == LatLng(39.9, 116.4)
    assert panorama.description == "Wangfujing"
    assert panorama.tiles.center_heading == 45
    assert panorama.tiles.world_size == (8192, 4096)
    assert panorama.image_date == "2012-07-23"
    assert [link.pano for link in panorama.links] == ["10011022120723095353201"]
    assert [entry.pano for entry in panorama.time] == ["10011022100512095353200", TENCENT_SVID]
    assert panorama.copyright == "© Tencent Maps"


@pytest.mark.asyncio
async def test_tencent_no_result():
    session = json_session({"https://sv.map.qq.com/xf": {"detail": {}}})

    panorama, status = await get_panorama(session, Provider.TENCENT, PanoramaRequest(location=LatLng(0, 0)))
    assert (panorama, status) == (None, StreetViewStatus.ZERO_RESULTS)
    assert len(session.requested) == 1


@pytest.mark.asyncio
async def test_kakao_by_pano():
    session = json_session({"https://rv.map.kakao.com/roadview-search/v2/node/1160290831": KAKAO_NODE})

    panorama, status = await get_panorama(session, "kakao", PanoramaRequest(pano="1160290831"))

    assert status == StreetViewStatus.OK
    assert panorama.pano == "1160290831"
    assert panorama.location == LatLng(37.5665, 126.978)
    assert panorama.tiles.center_heading == 270
    assert panorama.links[0].pano == "1160290832"
    assert panorama.links[0].heading == 280
    assert [entry.pano for entry in panorama.time] == ["1001", "1160290831"]
    assert panorama.time[0].date < panorama.time[1].date


@pytest.mark.asyncio
async def test_kakao_by_location_uses_first_of_list():
    street = KAKAO_NODE["street_view"]["street"]
    session = json_session({
        "https://rv.map.kakao.com/roadview-search/v2/nodes": {"street_view": {"streetList": [street]}}
    })

    panorama, status = await get_panorama(session, Provider.KAKAO, PanoramaRequest(location=LatLng(37.5, 127.0)))

    assert status == StreetViewStatus.OK
    assert panorama.pano == "1160290831"
    assert "PX=127.0&PY=37.5&RAD=50" in session.requested[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("provider", [Provider.TENCENT, Provider.KAKAO])
async def test_empty_request_is_zero_results(provider):
    session = FakeSession()
    assert await get_panorama(session, provider, PanoramaRequest()) == (None, StreetViewStatus.ZERO_RESULTS)
    assert session.requested == []


@pytest.mark.asyncio
async def test_network_error_is_unknown_error():
    session = FakeSession(lambda url: MockResponse(error=aiohttp.ClientConnectionError("down")))
    calls = []

    result = await get_panorama(
        session, Provider.KAKAO, PanoramaRequest(pano="1"), on_completed=lambda *args: calls.append(args)
    )

    assert result == (None, StreetViewStatus.UNKNOWN_ERROR)
    assert calls == [result]


@pytest.mark.asyncio
@pytest.mark.parametrize("provider", [Provider.YANDEX, Provider.BAIDU])
async def test_unsupported_providers(provider):
    session = FakeSession()
    assert await get_panorama(session, provider, PanoramaRequest(pano="x")) == (None, StreetViewStatus.UNKNOWN_ERROR)
    assert session.requested == []


@pytest.mark.asyncio
async def test_google_without_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    session = FakeSession()

    assert await get_panorama(session, Provider.GOOGLE, PanoramaRequest(pano="abc")) == (None, StreetViewStatus.UNKNOWN_ERROR)
    assert session.requested == []


@pytest.mark.asyncio
async def test_google_metadata(monkeypatch):
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "test-key")
    session = json_session({
        providers.GOOGLE_METADATA_URL: {
            "status": "OK",
            "pano_id": "abc",
            "location": {"lat": 48.85, "lng": 2.29},
            "date": "2019-08",
            "copyright": "© Google",
        }
    })

    panorama, status = await get_panorama(session, Provider.GOOGLE, PanoramaRequest(location=LatLng(48.85, 2.29)))

    assert status == StreetViewStatus.OK
    assert panorama.pano == "abc"
    assert panorama.image_date == "2019-08"
    assert panorama.time[0].date == datetime(2019, 8, 1)
    params = session.kwargs[0]["params"]
    assert params["key"] == "test-key"
    assert params["location"] == "48.85,2.29"


@pytest.mark.asyncio
async def test_google_zero_results(monkeypatch):
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "test-key")
    session = json_session({providers.GOOGLE_METADATA_URL: {"status": "ZERO_RESULTS"}})

    assert await get_panorama(session, Provider.GOOGLE, PanoramaRequest(pano="abc")) == (None, StreetViewStatus.ZERO_RESULTS)
