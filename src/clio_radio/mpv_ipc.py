"""One-shot property queries against mpv's JSON IPC socket."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from clio_radio.errors import EndpointConnectError, EndpointTimeout, MalformedResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 0.8
MAX_LINE_BYTES = 1024 * 1024


def build_request(name: str) -> bytes:
    """Encode a ``get_property`` command as a newline-terminated JSON line."""
    payload = {"command": ["get_property", name]}
    return (json.dumps(payload) + "\n").encode("utf-8")


def decode_message(line: bytes) -> dict[str, Any]:
    try:
        message = json.loads(line.decode("utf-8", errors="replace"))
    except ValueError as exc:
        raise MalformedResponse(f"invalid JSON from mpv: {exc}") from exc
    if not isinstance(message, dict):
        raise MalformedResponse("mpv response is not a JSON object")
    return message


def response_data(response: dict[str, Any]) -> Any:
    """Return ``data`` from a decoded reply, or None if mpv reported an error.

    mpv answers unavailable properties with ``{"error": "property
    unavailable"}``; that is not malformed, just empty.
    """
    if response.get("error", "success") != "success":
        return None
    return response.get("data")


def parse_response(line: bytes) -> Any:
    """Return the ``data`` field of one IPC response line."""
    return response_data(decode_message(line))


async def _read_reply(reader: asyncio.StreamReader, address: str) -> Any:
    # mpv broadcasts event lines to every client; the reply is the first
    # line without an "event" key.
    while True:
        try:
            line = await reader.readline()
        except (OSError, ValueError) as exc:
            raise MalformedResponse(f"read from {address} failed: {exc}") from exc
        if not line.endswith(b"\n"):
            raise MalformedResponse("connection closed before a full line arrived")
        message = decode_message(line)
        if "event" in message:
            logger.debug("Skipping mpv event %r from %s", message["event"], address)
            continue
        return response_data(message)


async def _round_trip(address: str, name: str) -> Any:
    try:
        reader, writer = await asyncio.open_unix_connection(
            address, limit=MAX_LINE_BYTES
        )
    except OSError as exc:
        raise EndpointConnectError(f"cannot connect to {address}: {exc}") from exc
    try:
        writer.write(build_request(name))
        try:
            await writer.drain()
        except OSError as exc:
            raise MalformedResponse(f"write to {address} failed: {exc}") from exc
        return await _read_reply(reader, address)
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            logger.debug("IPC close failed for %s", address, exc_info=True)


async def request_property(
    address: str, name: str, *, timeout: float = DEFAULT_TIMEOUT
) -> Any:
    """Query a single mpv property over a fresh connection to ``address``.

    ``timeout`` bounds the whole exchange, connect to close.
    """
    try:
        return await asyncio.wait_for(_round_trip(address, name), timeout)
    except asyncio.TimeoutError as exc:
        raise EndpointTimeout(
            f"no reply for {name!r} from {address} within {timeout:.2f}s"
        ) from exc
