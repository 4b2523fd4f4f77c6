"""Textual-based TUI for clio-radio."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Any, Callable, Optional

try:
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.widgets import DataTable, Header, Input, Static
    from rich.text import Text
except Exception as exc:  # pragma: no cover - depends on environment
    raise RuntimeError(
        "Textual is required for the TUI. Install the 'textual' dependency."
    ) from exc

from clio_radio.config import AppConfig, save_config
from clio_radio.errors import DirectoryError
from clio_radio.formatting import ellipsize, format_now_playing, station_details
from clio_radio.logging_setup import set_console_level
from clio_radio.radio_browser import RadioBrowserClient, Station, resolve_server
from clio_radio.session import NotificationSink, SessionController
from clio_radio.ui.status_controller import StatusController

logger = logging.getLogger(__name__)

ControllerFactory = Callable[[NotificationSink], SessionController]


class StatusBar(Static):
    """Status bar widget."""

    def __init__(self, controller: StatusController, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._controller = controller

    def render(self) -> Text:
        width = max(1, self.size.width)
        focused = getattr(self.app, "focused", None)
        return self._controller.render_line(width, focused=focused)


class ClioApp(App):
    """Search the station directory and play stations through mpv."""

    CSS_PATH = "app.tcss"
    TITLE = "clio - terminal radio"
    NAME_WIDTH = 48

    BINDINGS = [
        Binding("slash", "focus_search", "Search"),
        Binding("s", "stop", "Stop"),
        Binding("q", "quit_app", "Quit"),
        Binding("ctrl+c", "quit_app", "Quit", priority=True),
    ]

    def __init__(
        self,
        *,
        config: AppConfig,
        client: Optional[RadioBrowserClient] = None,
        controller_factory: Optional[ControllerFactory] = None,
        initial_query: Optional[str] = None,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self._config = config
        self._client = client
        if self._client is None and config.api_base_url:
            self._client = RadioBrowserClient(config.api_base_url)
        self._controller_factory = controller_factory or self._default_controller
        self.controller: Optional[SessionController] = None
        self._status_controller = StatusController(now)
        self._status_bar: Optional[StatusBar] = None
        self._now_playing_widget: Optional[Static] = None
        self._stations: list[Station] = []
        self._search_request_id = 0
        self._play_request_id = 0
        self._pending_query = initial_query
        self._last_query = config.last_query
        self._now_playing: tuple[str, str] = ("", "")

    def _default_controller(self, sink: NotificationSink) -> SessionController:
        cfg = self._config
        return SessionController(
            sink,
            mpv_path=cfg.mpv_path,
            poll_interval=cfg.poll_interval,
            first_poll_delay=cfg.first_poll_delay,
            ipc_timeout=cfg.ipc_timeout,
        )

    def compose(self) -> ComposeResult:
        yield Header(show_clock=False)
        yield Input(placeholder="soma fm or tag:ambient", id="search_input")
        yield DataTable(id="results_table", cursor_type="row", zebra_stripes=True)
        yield Static("", id="now_playing")
        yield StatusBar(self._status_controller, id="status_bar")

    # --- Notification sink ---
    def status(self, message: str) -> None:
        if "error" in message:
            level = "error"
        elif message.startswith("station has no"):
            level = "warn"
        else:
            level = "info"
        self._set_message(message, level=level)

    def now_playing(self, station: str, track: str) -> None:
        self._now_playing = (station, track)
        line = format_now_playing(station, track)
        self.sub_title = line
        if self._now_playing_widget is not None:
            self._now_playing_widget.update(Text(line or "nothing playing"))

    # --- Internal helpers ---
    def _install_asyncio_exception_handler(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        def handler(_loop: asyncio.AbstractEventLoop, context: dict) -> None:
            exc = context.get("exception")
            if exc:
                logger.exception("Asyncio exception", exc_info=exc)
            else:
                logger.error("Asyncio error: %s", context.get("message"))

        loop.set_exception_handler(handler)

    def _set_message(
        self,
        text: str,
        *,
        level: str = "info",
        timeout: Optional[float] = None,
    ) -> None:
        self._status_controller.show_message(text, level=level, timeout=timeout)
        self._refresh_status_bar()

    def _refresh_status_bar(self) -> None:
        if self._status_bar is not None:
            self._status_bar.refresh()

    def _results_table(self) -> DataTable:
        return self.query_one("#results_table", DataTable)

    async def _discover_server(self) -> None:
        choice = await asyncio.to_thread(resolve_server)
        self._client = RadioBrowserClient(choice.base_url)
        if choice.warning:
            self._set_message(f"warning: {choice.warning}", level="warn")
        if self._pending_query:
            query, self._pending_query = self._pending_query, None
            self._start_search(query)

    def _start_search(self, query: str) -> None:
        if self._client is None:
            self._pending_query = query
            self._set_message("Resolving server...", timeout=0)
            return
        self._last_query = query
        self._search_request_id += 1
        self._set_message(f"Searching: {query}", timeout=0)
        self.run_worker(
            self._search_worker(self._client, query, self._search_request_id),
            exclusive=True,
            group="search",
        )

    async def _search_worker(
        self, client: RadioBrowserClient, query: str, request_id: int
    ) -> None:
        try:
            stations = await asyncio.to_thread(
                client.search, query, self._config.search_limit
            )
        except DirectoryError as exc:
            self._handle_search_error(exc, request_id)
        else:
            self._handle_search_results(stations, request_id)

    def _handle_search_error(self, exc: DirectoryError, request_id: int) -> None:
        if request_id != self._search_request_id:
            return
        logger.warning("Search failed: %s", exc)
        self._set_message(f"error: {exc}", level="error")

    def _handle_search_results(self, stations: list[Station], request_id: int) -> None:
        if request_id != self._search_request_id:
            return
        self._stations = stations
        table = self._results_table()
        table.clear()
        for index, station in enumerate(stations, start=1):
            table.add_row(
                f"{index:>2}",
                ellipsize(station.display_name, self.NAME_WIDTH),
                station_details(station),
                key=str(index - 1),
            )
        if not stations:
            self._set_message("no results")
            return
        self._set_message(f"{len(stations)} stations")
        self.set_focus(table)

    def _play_index(self, index: int) -> None:
        if not 0 <= index < len(self._stations):
            self._set_message("invalid selection", level="warn")
            return
        self._play_request_id += 1
        self.run_worker(
            self._play_station(self._stations[index], self._play_request_id),
            exclusive=True,
            group="play",
        )

    async def _play_station(self, station: Station, request_id: int) -> None:
        client = self._client
        if client is not None:
            await asyncio.to_thread(client.register_click, station.stationuuid)
        if request_id != self._play_request_id or self.controller is None:
            return
        logger.info("Play requested station=%r", station.display_name)
        # A newer selection must not cancel a launch in progress.
        await asyncio.shield(
            self.controller.play(station.stream_url, station.display_name)
        )

    # --- Actions ---
    def action_focus_search(self) -> None:
        self.set_focus(self.query_one("#search_input", Input))

    def action_stop(self) -> None:
        if self.controller is not None:
            self.controller.stop()

    async def action_quit_app(self) -> None:
        logger.info("TUI exit requested")
        if self.controller is not None:
            await self.controller.close()
        self._config = dataclasses.replace(self._config, last_query=self._last_query)
        try:
            save_config(self._config)
        except OSError:
            logger.exception("Failed to save config")
        self.exit()

    # --- Events ---
    async def on_mount(self) -> None:
        self._status_bar = self.query_one("#status_bar", StatusBar)
        self._now_playing_widget = self.query_one("#now_playing", Static)
        self._now_playing_widget.border_title = "Now Playing"
        table = self._results_table()
        table.border_title = "Stations"
        table.add_columns("#", "Station", "Details")
        self.now_playing("", "")
        self._install_asyncio_exception_handler()
        self.controller = self._controller_factory(self)
        self.controller.start()
        search_input = self.query_one("#search_input", Input)
        if self._pending_query:
            search_input.value = self._pending_query
        elif self._last_query:
            search_input.value = self._last_query
        self.set_focus(search_input)
        self.set_interval(0.5, self._refresh_status_bar)
        if self._client is None:
            self.run_worker(self._discover_server(), group="discovery")
        elif self._pending_query:
            query, self._pending_query = self._pending_query, None
            self._start_search(query)
        logger.info("TUI mounted")

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        query = event.value.strip()
        if not query:
            return
        if query.lower() == "q":
            await self.action_quit_app()
            return
        self._start_search(query)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self._play_index(event.cursor_row)


def run_tui(config: AppConfig, *, initial_query: Optional[str] = None) -> int:
    """Run the TUI and return an exit code."""
    logger.info("TUI start query=%s", initial_query)
    try:
        set_console_level(logging.WARNING)
    except Exception:
        logger.exception("Failed to set console log level for TUI")
    app = ClioApp(config=config, initial_query=initial_query)
    app.run()
    logger.info("TUI exit")
    return 0
