"""Now-playing text derived from mpv stream metadata."""

from __future__ import annotations

from collections.abc import Mapping

ARTIST_KEYS = ("artist", "album_artist")
STREAM_TITLE_KEYS = ("icy-title", "streamtitle", "icy_title", "stream_title")


def _extract_text(value: object | None) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def normalize_metadata(raw: object | None) -> dict[str, str]:
    """Return lower-cased keys mapped to trimmed, non-empty string values.

    mpv reports tags with whatever casing the container or ICY headers used,
    so ``Artist`` and ``ARTIST`` collapse to one key; the first usable value
    wins.
    """
    if not isinstance(raw, Mapping):
        return {}
    snapshot: dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            continue
        text = _extract_text(value)
        if text is None:
            continue
        snapshot.setdefault(key.lower(), text)
    return snapshot


def _first(snapshot: Mapping[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        text = snapshot.get(key)
        if text:
            return text
    return None


def pick_track_text(raw: object | None, fallback_title: object | None) -> str:
    """Pick the best human-readable track string, or "" when nothing is usable."""
    snapshot = normalize_metadata(raw)
    artist = _first(snapshot, ARTIST_KEYS)
    title = snapshot.get("title")
    if artist and title:
        return f"{artist} - {title}"
    stream_title = _first(snapshot, STREAM_TITLE_KEYS)
    if stream_title:
        return stream_title
    return _extract_text(fallback_title) or ""
