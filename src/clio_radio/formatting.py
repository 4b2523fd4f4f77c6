"""Text formatting for search results and the now-playing line."""

from __future__ import annotations

from clio_radio.radio_browser import Station


def ellipsize(text: str, max_len: int) -> str:
    if max_len <= 0:
        return ""
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return "." * max_len
    return text[: max_len - 3] + "..."


def truncate_line(text: str, width: int) -> str:
    """Flatten ``text`` to one line and fit it in ``width`` cells."""
    line = " ".join(text.splitlines())
    return ellipsize(line, max(0, width))


def station_details(station: Station) -> str:
    parts: list[str] = []
    if station.country:
        parts.append(station.country)
    if station.codec:
        parts.append(station.codec.upper())
    if station.bitrate:
        parts.append(f"{station.bitrate}kbps")
    return " | ".join(parts)


def format_station(station: Station) -> str:
    details = station_details(station)
    if not details:
        return station.display_name
    return f"{station.display_name} ({details})"


def format_result_line(index: int, station: Station) -> str:
    return f"{index:>2}. {format_station(station)}"


def format_now_playing(station: str, track: str) -> str:
    if station and track:
        return f"{station} - {track}"
    return station or track
