"""Playback session manager for the mpv decoder process.

One ``SessionController`` owns at most one mpv process at a time. Every
``play`` call allocates a new session id; background work (process exit
watchers and metadata polls) captures that id and reports back through an
event queue. ``_handle_event`` is the only place events touch controller
state, and it drops anything whose session is no longer the active one.
"""

from __future__ import annotations

import asyncio
import enum
import functools
import logging
import os
import tempfile
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from clio_radio.errors import AbnormalExit, InvalidInput, LaunchError, PlayerError
from clio_radio.mpv_ipc import DEFAULT_TIMEOUT, request_property
from clio_radio.track_text import pick_track_text

logger = logging.getLogger(__name__)

METADATA_PROPERTY = "metadata"
TITLE_PROPERTY = "media-title"


class NotificationSink(Protocol):
    """Receiver for user-facing playback updates. Calls must not block."""

    def status(self, message: str) -> None: ...

    def now_playing(self, station: str, track: str) -> None: ...


class ProcessHandle(Protocol):
    """The subset of ``asyncio.subprocess.Process`` the controller uses."""

    @property
    def returncode(self) -> Optional[int]: ...

    def terminate(self) -> None: ...

    async def wait(self) -> int: ...


Launcher = Callable[[list[str]], Awaitable[ProcessHandle]]
Requester = Callable[[str, str], Awaitable[Any]]


class SessionState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    PLAYING = "playing"
    STOPPING = "stopping"


@dataclass
class PlaybackSession:
    """Resources owned by one play-to-stop lifetime."""

    session_id: int
    station_name: str
    url: str
    ipc_path: Path
    process: Optional[ProcessHandle] = None
    last_track: str = ""
    poll_task: Optional[asyncio.Task[None]] = field(default=None, repr=False)
    first_poll_task: Optional[asyncio.Task[None]] = field(default=None, repr=False)
    watch_task: Optional[asyncio.Task[None]] = field(default=None, repr=False)

    def tasks(self) -> list[asyncio.Task[None]]:
        return [
            task
            for task in (self.poll_task, self.first_poll_task, self.watch_task)
            if task is not None
        ]


@dataclass(frozen=True)
class TrackPolled:
    session_id: int
    text: str
    endpoint_ok: bool = True


@dataclass(frozen=True)
class ProcessExited:
    session_id: int
    returncode: Optional[int]


@dataclass(frozen=True)
class ProcessFailed:
    session_id: int
    message: str


SessionEvent = Union[TrackPolled, ProcessExited, ProcessFailed]


async def spawn_mpv(argv: list[str]) -> ProcessHandle:
    """Start mpv detached from the terminal the TUI is drawing on."""
    return await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
        start_new_session=True,
    )


def remove_socket(path: Path) -> None:
    """Best-effort removal of an IPC socket path."""
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.debug("Could not remove IPC socket %s", path, exc_info=True)


def _terminate(process: ProcessHandle) -> None:
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    except OSError:
        logger.warning("Failed to signal mpv", exc_info=True)


def _require_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise InvalidInput("station has no stream url")
    return url


class SessionController:
    """Owns the mpv subprocess, its IPC socket and the metadata polls."""

    def __init__(
        self,
        sink: NotificationSink,
        *,
        mpv_path: str = "mpv",
        ipc_dir: Optional[Path] = None,
        poll_interval: float = 2.0,
        first_poll_delay: float = 0.8,
        ipc_timeout: float = DEFAULT_TIMEOUT,
        launcher: Optional[Launcher] = None,
        requester: Optional[Requester] = None,
        pid: Optional[int] = None,
    ) -> None:
        self._sink = sink
        self._mpv_path = mpv_path
        self._ipc_dir = ipc_dir or Path(tempfile.gettempdir())
        self._poll_interval = poll_interval
        self._first_poll_delay = first_poll_delay
        self._launcher: Launcher = launcher or spawn_mpv
        self._requester: Requester = requester or functools.partial(
            request_property, timeout=ipc_timeout
        )
        self._pid = os.getpid() if pid is None else pid
        self._session_id = 0
        self._session: Optional[PlaybackSession] = None
        self._station_name = ""
        self._state = SessionState.IDLE
        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._dispatcher: Optional[asyncio.Task[None]] = None
        self._launch_lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def station_name(self) -> str:
        return self._station_name

    @property
    def current(self) -> Optional[PlaybackSession]:
        """The active session, or None when idle."""
        return self._session

    def ipc_path_for(self, session_id: int) -> Path:
        return self._ipc_dir / f"clio-mpv-{self._pid}-{session_id}.sock"

    def build_argv(self, url: str, ipc_path: Path) -> list[str]:
        return [
            self._mpv_path,
            "--no-video",
            "--really-quiet",
            "--no-terminal",
            f"--input-ipc-server={ipc_path}",
            "--",
            url,
        ]

    # --- Lifecycle ---
    def start(self) -> None:
        """Start the event dispatcher. Requires a running event loop."""
        if self._dispatcher is not None and not self._dispatcher.done():
            return
        self._dispatcher = asyncio.get_running_loop().create_task(
            self._dispatch_events(), name="clio-session-events"
        )

    async def close(self) -> None:
        """Tear down any session quietly and stop the dispatcher."""
        session = self._session
        if session is not None:
            logger.info("Session %s closed", session.session_id)
            self._teardown(session)
        dispatcher = self._dispatcher
        self._dispatcher = None
        if dispatcher is None:
            return
        dispatcher.cancel()
        try:
            await dispatcher
        except asyncio.CancelledError:
            pass

    async def flush(self) -> None:
        """Wait until every queued event has been handled."""
        await self._events.join()

    # --- Operations ---
    async def play(self, url: str, name: str) -> None:
        """Stop whatever is playing and start streaming ``url``."""
        try:
            url = _require_url(url)
        except InvalidInput as exc:
            logger.info("Refusing to play %r: %s", name, exc)
            self._sink.status(str(exc))
            return
        self.start()
        async with self._launch_lock:
            await self._replace_session(url, name)

    def stop(self) -> None:
        """Stop playback. Safe to call when nothing is playing."""
        session = self._session
        if session is not None:
            logger.info("Session %s stopping", session.session_id)
            self._teardown(session)
        self._sink.now_playing(self._station_name, "")
        self._sink.status("stopped")

    # --- Internal helpers ---
    async def _replace_session(self, url: str, name: str) -> None:
        # Caller holds the launch lock: the previous mpv is signalled before
        # the next one is spawned.
        self.stop()

        self._session_id += 1
        session_id = self._session_id
        self._station_name = name
        self._sink.now_playing(name, "")

        ipc_path = self.ipc_path_for(session_id)
        remove_socket(ipc_path)
        session = PlaybackSession(
            session_id=session_id, station_name=name, url=url, ipc_path=ipc_path
        )
        self._session = session
        self._state = SessionState.STARTING
        logger.info("Session %s starting station=%r url=%s", session_id, name, url)

        try:
            process = await self._launcher(self.build_argv(url, ipc_path))
        except (OSError, ValueError) as exc:
            error = LaunchError(str(exc))
            logger.error("Session %s launch failed: %s", session_id, error)
            self._post(ProcessFailed(session_id, str(error)))
            return

        if self._session is not session:
            # Superseded while mpv was starting.
            logger.info("Session %s superseded during launch", session_id)
            _terminate(process)
            remove_socket(ipc_path)
            return

        session.process = process
        self._sink.status(f"playing: {name}")
        loop = asyncio.get_running_loop()
        session.watch_task = loop.create_task(
            self._watch_process(session_id, process)
        )
        session.first_poll_task = loop.create_task(
            self._poll_after(session_id, ipc_path, self._first_poll_delay)
        )
        session.poll_task = loop.create_task(self._poll_loop(session_id, ipc_path))

    def _teardown(self, session: PlaybackSession) -> None:
        self._state = SessionState.STOPPING
        if self._session is session:
            self._session = None
        for task in session.tasks():
            task.cancel()
        session.poll_task = session.first_poll_task = session.watch_task = None
        process = session.process
        session.process = None
        if process is not None:
            _terminate(process)
        remove_socket(session.ipc_path)
        self._state = SessionState.IDLE

    def _post(self, event: SessionEvent) -> None:
        self._events.put_nowait(event)

    async def _dispatch_events(self) -> None:
        while True:
            event = await self._events.get()
            try:
                self._handle_event(event)
            except Exception:
                logger.exception("Session event handler failed for %r", event)
            finally:
                self._events.task_done()

    def _handle_event(self, event: SessionEvent) -> None:
        session = self._session
        if session is None or session.session_id != event.session_id:
            logger.debug(
                "Discarding %s from session %s (current %s)",
                type(event).__name__,
                event.session_id,
                session.session_id if session else None,
            )
            return
        if isinstance(event, TrackPolled):
            self._on_track_polled(session, event)
        elif isinstance(event, ProcessExited):
            self._on_process_exited(session, event.returncode)
        else:
            self._on_process_failed(session, event.message)

    def _on_track_polled(self, session: PlaybackSession, event: TrackPolled) -> None:
        if event.endpoint_ok and self._state is SessionState.STARTING:
            self._state = SessionState.PLAYING
            logger.info("Session %s IPC endpoint ready", session.session_id)
        text = event.text
        if not text or text == session.last_track:
            return
        session.last_track = text
        logger.info("Session %s track=%r", session.session_id, text)
        self._sink.now_playing(session.station_name, text)

    def _on_process_exited(
        self, session: PlaybackSession, returncode: Optional[int]
    ) -> None:
        session.process = None
        self._teardown(session)
        self._sink.now_playing(session.station_name, "")
        if returncode == 0:
            logger.info("Session %s mpv exited cleanly", session.session_id)
            self._sink.status("stopped")
            return
        logger.warning("Session %s: %s", session.session_id, AbnormalExit(returncode))
        self._sink.status("mpv exited with error")

    def _on_process_failed(self, session: PlaybackSession, message: str) -> None:
        session.process = None
        self._teardown(session)
        self._sink.now_playing(session.station_name, "")
        self._sink.status(f"mpv error: {message}")

    async def _watch_process(self, session_id: int, process: ProcessHandle) -> None:
        try:
            returncode = await process.wait()
        except OSError as exc:
            self._post(ProcessFailed(session_id, str(exc)))
            return
        self._post(ProcessExited(session_id, returncode))

    async def _poll_after(self, session_id: int, address: Path, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._poll_tick(session_id, address)

    async def _poll_loop(self, session_id: int, address: Path) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            await self._poll_tick(session_id, address)

    async def _poll_tick(self, session_id: int, address: Path) -> None:
        session = self._session
        if session is None or session.session_id != session_id:
            return
        results = await asyncio.gather(
            self._requester(str(address), METADATA_PROPERTY),
            self._requester(str(address), TITLE_PROPERTY),
            return_exceptions=True,
        )
        values: list[Any] = []
        for name, result in zip((METADATA_PROPERTY, TITLE_PROPERTY), results):
            if isinstance(result, PlayerError):
                logger.debug("Session %s %s poll failed: %s", session_id, name, result)
                values.append(None)
            elif isinstance(result, BaseException):
                logger.warning(
                    "Session %s %s poll raised", session_id, name, exc_info=result
                )
                values.append(None)
            else:
                values.append(result)
        endpoint_ok = not all(isinstance(result, BaseException) for result in results)
        text = pick_track_text(values[0], values[1])
        self._post(TrackPolled(session_id, text, endpoint_ok))
