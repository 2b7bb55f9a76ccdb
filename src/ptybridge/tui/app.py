"""Textual application for the local interactive terminal."""

from __future__ import annotations

import logging

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.timer import Timer
from textual.widgets import Static

from ptybridge.config import DEFAULT_TICK_MS
from ptybridge.tui.terminal import (
    END_OF_INPUT_KEY,
    INTERRUPT_KEY,
    QUIT_KEY,
    LocalTerminal,
)

logger = logging.getLogger(__name__)


class TUILogHandler(logging.Handler):
    """Logging handler that keeps the last log message for the status bar.

    Writing to stderr would corrupt the Textual display, so records are
    formatted and stored; the app picks the latest one up on its next tick.
    """

    def __init__(self) -> None:
        super().__init__()
        self.last_message: str = ""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.last_message = self.format(record)
        except Exception:
            self.handleError(record)


class TerminalApp(App):
    """ptybridge local terminal: a shell in a scrollback pane."""

    TITLE = "ptybridge"
    ENABLE_COMMAND_PALETTE = False
    CSS = """
    Screen {
        layout: vertical;
    }

    #output {
        height: 1fr;
        border: solid $primary;
        border-title-color: $primary;
        overflow: hidden;
    }

    #input-line {
        height: 3;
        border: solid $secondary;
        border-title-color: $secondary;
        border-title-style: bold;
    }

    #status-bar {
        dock: bottom;
        height: 1;
        background: $surface;
        color: $text-muted;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding(QUIT_KEY, "quit_shell", "Quit", priority=True),
        Binding(INTERRUPT_KEY, "send_key('ctrl+c')", "Interrupt", priority=True),
        Binding(END_OF_INPUT_KEY, "send_key('ctrl+d')", "EOF", priority=True),
    ]

    def __init__(
        self,
        terminal: LocalTerminal,
        tick_ms: int = DEFAULT_TICK_MS,
        log_handler: TUILogHandler | None = None,
    ) -> None:
        super().__init__()
        self.terminal = terminal
        self._tick_seconds = tick_ms / 1000
        self._log_handler = log_handler
        self._tick_timer: Timer | None = None

    def compose(self) -> ComposeResult:
        output = Static(id="output")
        output.border_title = "ptybridge session"
        yield output
        yield Static(id="input-line")
        yield Static(id="status-bar")

    def on_mount(self) -> None:
        self._tick_timer = self.set_interval(self._tick_seconds, self._tick)
        self._tick()

    def _tick(self) -> None:
        """Drain output, follow the pane size, redraw."""
        term = self.terminal
        term.drain_output()

        output = self.query_one("#output", Static)
        size = output.content_size
        term.sync_size(size.width, size.height)
        output.update(Text(term.render_output(size.height)))

        input_line = self.query_one("#input-line", Static)
        input_line.border_title = term.title
        input_line.update(Text(term.input_line(input_line.content_size.width or None)))

        if self._log_handler is not None:
            self.query_one("#status-bar", Static).update(
                Text(self._log_handler.last_message)
            )

    # --- Input ---

    def on_key(self, event: events.Key) -> None:
        self.terminal.handle_key(event.key, event.character)
        event.stop()
        event.prevent_default()
        self._tick()

    def on_paste(self, event: events.Paste) -> None:
        self.terminal.handle_paste(event.text)
        event.stop()
        self._tick()

    def action_send_key(self, key: str) -> None:
        self.terminal.handle_key(key)

    def action_quit_shell(self) -> None:
        self.terminal.handle_key(QUIT_KEY)
        if self._tick_timer is not None:
            self._tick_timer.stop()
        self.terminal.shutdown()
        self.exit()

    def on_unmount(self) -> None:
        self.terminal.session.close()
