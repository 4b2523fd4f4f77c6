"""Client for the radio-browser.info station directory."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
import socket
from typing import Any, Optional

import requests

from clio_radio import __version__
from clio_radio.errors import DirectoryError

logger = logging.getLogger(__name__)

DISCOVERY_HOST = "all.api.radio-browser.info"
DEFAULT_BASE_URL = f"https://{DISCOVERY_HOST}"
USER_AGENT = f"clio-radio/{__version__}"


@dataclass(frozen=True)
class Station:
    """A station record as returned by ``/json/stations/search``."""

    name: str = ""
    country: str = ""
    codec: str = ""
    bitrate: int = 0
    url: str = ""
    url_resolved: str = ""
    stationuuid: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "Station":
        def text(key: str) -> str:
            value = raw.get(key)
            return value.strip() if isinstance(value, str) else ""

        bitrate = raw.get("bitrate")
        try:
            bitrate_value = int(bitrate) if bitrate is not None else 0
        except (TypeError, ValueError):
            bitrate_value = 0
        return cls(
            name=text("name"),
            country=text("country"),
            codec=text("codec"),
            bitrate=max(0, bitrate_value),
            url=text("url"),
            url_resolved=text("url_resolved"),
            stationuuid=text("stationuuid"),
        )

    @property
    def stream_url(self) -> str:
        return self.url_resolved or self.url or ""

    @property
    def display_name(self) -> str:
        return self.name or "(unnamed station)"


@dataclass(frozen=True)
class ServerChoice:
    base_url: str
    warning: Optional[str] = None


def new_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    return session


def resolve_server(
    session: Optional[requests.Session] = None,
    *,
    rng: Optional[random.Random] = None,
    timeout: float = 10.0,
) -> ServerChoice:
    """Pick a random API mirror, falling back to the round-robin host."""
    try:
        socket.getaddrinfo(DISCOVERY_HOST, 443)
    except OSError:
        logger.debug("DNS lookup for %s failed", DISCOVERY_HOST, exc_info=True)

    http = session or new_session()
    try:
        response = http.get(f"{DEFAULT_BASE_URL}/json/servers", timeout=timeout)
        if not response.ok:
            raise DirectoryError(f"status {response.status_code}")
        payload = response.json()
    except (requests.RequestException, ValueError, DirectoryError) as exc:
        logger.warning("Server discovery failed: %s", exc)
        return ServerChoice(DEFAULT_BASE_URL, f"server discovery failed: {exc}")

    servers = [
        item["name"]
        for item in payload or []
        if isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"]
    ]
    if not servers:
        return ServerChoice(DEFAULT_BASE_URL, "server discovery returned no servers")
    pick = (rng or random).choice(servers)
    logger.info("Using radio-browser server %s", pick)
    return ServerChoice(f"https://{pick}")


class RadioBrowserClient:
    """Search and click registration against one API mirror."""

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session or new_session()
        self._timeout = timeout

    def search(self, query: str, limit: int = 20) -> list[Station]:
        """Search by name, or by tag for ``tag:<name>`` queries."""
        params = {"order": "votes", "reverse": "true", "limit": str(limit)}
        if query.startswith("tag:"):
            params["tag"] = query[4:]
        else:
            params["name"] = query
        logger.info("Searching stations params=%s", params)
        try:
            response = self._session.get(
                f"{self.base_url}/json/stations/search",
                params=params,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise DirectoryError(f"search failed: {exc}") from exc
        if not response.ok:
            raise DirectoryError(f"search failed with status {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise DirectoryError("search returned invalid JSON") from exc
        if not isinstance(payload, list):
            return []
        return [Station.from_api(item) for item in payload if isinstance(item, dict)]

    def register_click(self, stationuuid: str) -> None:
        """Count a play for the station. Failures are logged and ignored."""
        if not stationuuid:
            return
        try:
            self._session.post(
                f"{self.base_url}/json/url/{stationuuid}", timeout=self._timeout
            )
        except requests.RequestException:
            logger.debug("Click registration failed for %s", stationuuid, exc_info=True)
