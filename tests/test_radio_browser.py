"""Tests for the radio-browser client using a fake HTTP session."""

from __future__ import annotations

import random
from typing import Any, Optional

import pytest
import requests

from clio_radio import radio_browser
from clio_radio.errors import DirectoryError
from clio_radio.radio_browser import RadioBrowserClient, Station


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(
        self,
        response: Optional[FakeResponse] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.response = response or FakeResponse(payload=[])
        self.error = error
        self.gets: list[tuple[str, dict[str, Any]]] = []
        self.posts: list[str] = []

    def get(self, url: str, params: Optional[dict] = None, timeout: float = 0) -> FakeResponse:
        self.gets.append((url, dict(params or {})))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url: str, timeout: float = 0) -> FakeResponse:
        self.posts.append(url)
        if self.error is not None:
            raise self.error
        return self.response


STATION = {
    "name": " Groove Salad ",
    "country": "The United States Of America",
    "codec": "mp3",
    "bitrate": 128,
    "url": "http://ice.somafm.com/groovesalad",
    "url_resolved": "http://ice2.somafm.com/groovesalad-128-mp3",
    "stationuuid": "960e57c5-0601-11e8-ae97-52543be04c81",
}


@pytest.fixture(autouse=True)
def no_dns(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(radio_browser.socket, "getaddrinfo", lambda *a, **k: [])


def test_station_from_api() -> None:
    station = Station.from_api(STATION)
    assert station.name == "Groove Salad"
    assert station.bitrate == 128
    assert station.stream_url == STATION["url_resolved"]
    assert station.display_name == "Groove Salad"


def test_station_from_api_tolerates_bad_fields() -> None:
    station = Station.from_api({"name": None, "bitrate": "n/a", "url": "http://x"})
    assert station.name == ""
    assert station.bitrate == 0
    assert station.stream_url == "http://x"
    assert station.display_name == "(unnamed station)"


def test_station_without_urls_has_empty_stream_url() -> None:
    assert Station.from_api({"name": "Ghost"}).stream_url == ""


def test_search_by_name() -> None:
    session = FakeSession(FakeResponse(payload=[STATION, "junk"]))
    client = RadioBrowserClient("https://de1.api.radio-browser.info/", session=session)
    stations = client.search("groove", limit=5)
    assert [station.name for station in stations] == ["Groove Salad"]
    url, params = session.gets[0]
    assert url == "https://de1.api.radio-browser.info/json/stations/search"
    assert params == {"order": "votes", "reverse": "true", "limit": "5", "name": "groove"}


def test_search_by_tag() -> None:
    session = FakeSession()
    client = RadioBrowserClient("https://api.example", session=session)
    assert client.search("tag:ambient") == []
    _, params = session.gets[0]
    assert params["tag"] == "ambient"
    assert "name" not in params


def test_search_error_status_raises() -> None:
    session = FakeSession(FakeResponse(status_code=503))
    client = RadioBrowserClient("https://api.example", session=session)
    with pytest.raises(DirectoryError, match="search failed with status 503"):
        client.search("groove")


def test_search_network_error_raises() -> None:
    session = FakeSession(error=requests.ConnectionError("offline"))
    client = RadioBrowserClient("https://api.example", session=session)
    with pytest.raises(DirectoryError, match="offline"):
        client.search("groove")


def test_search_invalid_json_raises() -> None:
    session = FakeSession(FakeResponse(payload=ValueError("bad json")))
    client = RadioBrowserClient("https://api.example", session=session)
    with pytest.raises(DirectoryError):
        client.search("groove")


def test_search_non_list_payload_is_empty() -> None:
    session = FakeSession(FakeResponse(payload={"error": "nope"}))
    client = RadioBrowserClient("https://api.example", session=session)
    assert client.search("groove") == []


def test_register_click_posts() -> None:
    session = FakeSession()
    client = RadioBrowserClient("https://api.example", session=session)
    client.register_click("abc")
    assert session.posts == ["https://api.example/json/url/abc"]


def test_register_click_skips_empty_and_swallows_errors() -> None:
    session = FakeSession(error=requests.Timeout("slow"))
    client = RadioBrowserClient("https://api.example", session=session)
    client.register_click("")
    assert session.posts == []
    client.register_click("abc")
    assert session.posts == ["https://api.example/json/url/abc"]


def test_resolve_server_picks_named_mirror() -> None:
    payload = [{"name": "de1.api.radio-browser.info"}, {"name": ""}, {"ip": "1.2.3.4"}]
    session = FakeSession(FakeResponse(payload=payload))
    choice = radio_browser.resolve_server(session, rng=random.Random(1))
    assert choice.base_url == "https://de1.api.radio-browser.info"
    assert choice.warning is None
    assert session.gets[0][0] == "https://all.api.radio-browser.info/json/servers"


def test_resolve_server_empty_list_falls_back() -> None:
    session = FakeSession(FakeResponse(payload=[]))
    choice = radio_browser.resolve_server(session)
    assert choice.base_url == radio_browser.DEFAULT_BASE_URL
    assert choice.warning == "server discovery returned no servers"


def test_resolve_server_failure_falls_back() -> None:
    session = FakeSession(FakeResponse(status_code=500))
    choice = radio_browser.resolve_server(session)
    assert choice.base_url == radio_browser.DEFAULT_BASE_URL
    assert choice.warning == "server discovery failed: status 500"


def test_resolve_server_ignores_dns_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*_args: object, **_kwargs: object) -> None:
        raise OSError("no dns")

    monkeypatch.setattr(radio_browser.socket, "getaddrinfo", fail)
    session = FakeSession(error=requests.ConnectionError("offline"))
    choice = radio_browser.resolve_server(session)
    assert choice.base_url == radio_browser.DEFAULT_BASE_URL
    assert choice.warning is not None
    assert choice.warning.startswith("server discovery failed: ")


def test_new_session_sets_user_agent() -> None:
    session = radio_browser.new_session()
    assert session.headers["User-Agent"].startswith("clio-radio/")
