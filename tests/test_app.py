"""Tests for ptybridge.tui.app.TerminalApp driven through Textual's pilot."""

from __future__ import annotations

import logging

from textual.widgets import Static

from ptybridge.pty.buffer import OutputBuffer
from ptybridge.tui.app import TerminalApp, TUILogHandler
from ptybridge.tui.terminal import LocalTerminal

from test_terminal import FakeSession


def _app() -> tuple[TerminalApp, FakeSession]:
    fake = FakeSession()
    term = LocalTerminal(fake, OutputBuffer(), banner=())  # type: ignore[arg-type]
    return TerminalApp(term), fake


class TestTerminalApp:
    async def test_typing_and_submit(self) -> None:
        app, fake = _app()
        async with app.run_test() as pilot:
            await pilot.press("l", "s", "enter")
            assert fake.sent == [b"ls\n"]
            assert app.terminal.input == ""

    async def test_control_keys(self) -> None:
        app, fake = _app()
        async with app.run_test() as pilot:
            await pilot.press("ctrl+c", "ctrl+d")
            assert fake.sent == [b"\x03", b"\x04"]

    async def test_quit_sends_exit_and_closes(self) -> None:
        app, fake = _app()
        async with app.run_test() as pilot:
            await pilot.press("ctrl+q")
        assert fake.sent == [b"exit\n"]
        assert fake.closed

    async def test_output_rendered_and_pty_resized(self) -> None:
        app, fake = _app()
        async with app.run_test(size=(60, 20)) as pilot:
            fake.output.publish(b"hello\r\n")
            await pilot.pause(0.1)
            assert "hello" in app.terminal.buffer.lines
            assert fake.resizes
            cols, rows = fake.resizes[-1]
            assert 0 < cols < 60
            assert 0 < rows < 20

    async def test_exit_shown_in_title_app_keeps_running(self) -> None:
        app, fake = _app()
        async with app.run_test() as pilot:
            fake.simulate_exit()
            await pilot.pause(0.1)
            assert app.terminal.shell_exited
            assert app.is_running
            title = app.query_one("#input-line", Static).border_title
            assert "Shell exited" in str(title)


class TestTUILogHandler:
    def test_keeps_last_message(self) -> None:
        handler = TUILogHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        log = logging.getLogger("ptybridge.test")
        log.addHandler(handler)
        log.setLevel(logging.INFO)
        try:
            log.info("first")
            log.info("second")
        finally:
            log.removeHandler(handler)
        assert handler.last_message == "second"
