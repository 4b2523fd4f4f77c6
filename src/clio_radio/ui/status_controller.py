"""Status bar controller for the TUI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from rich.text import Text

from clio_radio.formatting import truncate_line

LEVEL_STYLES = {"warn": "#ffcc66", "error": "#ff5f52"}

HINTS = {
    "search": "Enter: search  tag:<name>: search by tag  Tab: results",
    "results": "Enter: play  s: stop  /: search  q: quit",
    "general": "/: search  s: stop  q: quit",
}


@dataclass(frozen=True)
class StatusMessage:
    text: str
    level: str
    until: Optional[float]


class StatusController:
    """Status bar state and rendering."""

    def __init__(self, now: Callable[[], float]) -> None:
        self._now = now
        self._message: Optional[StatusMessage] = None

    @property
    def message(self) -> Optional[StatusMessage]:
        return self._current_message()

    def show_message(
        self,
        text: str,
        *,
        level: str = "info",
        timeout: Optional[float] = None,
    ) -> None:
        if timeout is None:
            timeout = 6.0 if level in LEVEL_STYLES else 3.0
        until = None if timeout == 0 else self._now() + max(0.0, timeout)
        self._message = StatusMessage(text=text, level=level, until=until)

    def clear_message(self) -> None:
        self._message = None

    def render_line(self, width: int, *, focused: object | None = None) -> Text:
        message = self._current_message()
        if message:
            line = truncate_line(message.text, width)
            style = LEVEL_STYLES.get(message.level)
            return Text(line, style=style) if style else Text(line)
        hint = HINTS[self._context_from_focus(focused)]
        return Text(truncate_line(hint, width))

    def _current_message(self) -> Optional[StatusMessage]:
        if not self._message:
            return None
        if self._message.until is None or self._message.until > self._now():
            return self._message
        self._message = None
        return None

    def _context_from_focus(self, focused: object | None) -> str:
        focus_id = focused if isinstance(focused, str) else getattr(focused, "id", None)
        if focus_id == "search_input":
            return "search"
        if focus_id == "results_table":
            return "results"
        return "general"
