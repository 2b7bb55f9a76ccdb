"""Tests for ptybridge.bridge.server (WebSocket endpoint)."""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from ptybridge.bridge.protocol import encode_resize
from ptybridge.bridge.server import create_app
from ptybridge.config import ServerConfig
from ptybridge.pty.buffer import OutputBuffer
from ptybridge.pty.session import PtySession, PtyStatus

from helpers import SH, requires_sh, wait_for

MAX_FRAMES = 500


def _client(token: str | None = None, shell: str = SH) -> TestClient:
    return TestClient(create_app(ServerConfig(shell=shell, shell_args=(), token=token)))


def _read_until_line(ws, line: str) -> OutputBuffer:
    """Feed binary output frames into a buffer until ``line`` is completed."""
    buf = OutputBuffer()
    for _ in range(MAX_FRAMES):
        buf.push_bytes(ws.receive_bytes())
        if line in buf.lines:
            return buf
    raise AssertionError(f"{line!r} not seen in {buf.lines!r}")


class TestHealth:
    def test_healthz(self) -> None:
        response = _client().get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestStartupWarning:
    def test_open_mode_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="ptybridge.bridge.server"):
            create_app(ServerConfig(shell=SH))
        assert "allows all connections" in caplog.text

    def test_token_mode_is_quiet(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="ptybridge.bridge.server"):
            create_app(ServerConfig(shell=SH, token="secret123"))
        assert "allows all connections" not in caplog.text


class TestAuthRejection:
    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "wrong"}],
    )
    def test_rejected_before_spawn(
        self, headers: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from ptybridge.pty import session as session_module

        def no_spawn(*args, **kwargs):
            raise AssertionError("session must not be opened for rejected clients")

        monkeypatch.setattr(session_module.PtySession, "open", no_spawn)
        client = _client(token="secret123")
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws", headers=headers):
                pass
        assert exc_info.value.code == 1008


class TestSpawnFailure:
    def test_diagnostic_frame_then_close(self) -> None:
        client = _client(shell="/nonexistent/definitely-not-a-shell")
        with client.websocket_connect("/ws") as ws:
            message = ws.receive_text()
            assert message.startswith("Failed to start shell:")
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_bytes()
            assert exc_info.value.code == 1011

    def test_server_keeps_serving(self) -> None:
        client = _client(shell="/nonexistent/definitely-not-a-shell")
        with client.websocket_connect("/ws") as ws:
            ws.receive_text()
        assert client.get("/healthz").status_code == 200


@requires_sh
class TestBridge:
    @pytest.mark.parametrize(
        "headers",
        [{"Authorization": "Bearer secret123"}, {"Authorization": "secret123"}],
    )
    def test_echo_roundtrip(self, headers: dict[str, str]) -> None:
        client = _client(token="secret123")
        with client.websocket_connect("/ws", headers=headers) as ws:
            ws.send_text("echo hi\n")
            _read_until_line(ws, "hi")

    def test_open_mode_accepts_without_header(self) -> None:
        client = _client()
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"echo bin-ok\n")
            _read_until_line(ws, "bin-ok")

    def test_resize_is_applied_not_typed(self) -> None:
        client = _client()
        with client.websocket_connect("/ws") as ws:
            ws.send_text(encode_resize(100, 40))
            ws.send_text("__RESIZE__ abc 24")
            ws.send_text("stty size\n")
            buf = _read_until_line(ws, "40 100")
            assert not any("__RESIZE__" in line for line in buf.lines)

    def test_shell_exit_closes_connection(self) -> None:
        client = _client()
        with client.websocket_connect("/ws") as ws:
            ws.send_text("exit\n")
            with pytest.raises(WebSocketDisconnect) as exc_info:
                for _ in range(MAX_FRAMES):
                    ws.receive_bytes()
            assert exc_info.value.code == 1000

    def test_connections_are_independent(self) -> None:
        client = _client()
        with client.websocket_connect("/ws") as first:
            with client.websocket_connect("/ws") as second:
                first.send_text("echo one\n")
                second.send_text("echo two\n")
                assert "two" not in _read_until_line(first, "one").lines
                assert "one" not in _read_until_line(second, "two").lines


@pytest.fixture
def opened(monkeypatch: pytest.MonkeyPatch):
    """Record every session the server opens."""
    sessions: list[PtySession] = []
    original = PtySession.open

    def recording_open(*args, **kwargs) -> PtySession:
        session = original(*args, **kwargs)
        sessions.append(session)
        return session

    monkeypatch.setattr(PtySession, "open", recording_open)
    yield sessions
    for session in sessions:
        session.close()


def _reaped(session: PtySession) -> bool:
    return session.status is PtyStatus.CLOSED and session.exit_code is not None


@requires_sh
class TestTeardown:
    def test_client_disconnect_reaps_shell(self, opened: list[PtySession]) -> None:
        client = _client()
        with client.websocket_connect("/ws") as ws:
            ws.send_text("echo before-leave\n")
            _read_until_line(ws, "before-leave")
        assert len(opened) == 1
        assert wait_for(lambda: _reaped(opened[0]), timeout=5.0)
        assert wait_for(lambda: opened[0].output.closed, timeout=5.0)

    def test_shell_exit_reaps_shell(self, opened: list[PtySession]) -> None:
        client = _client()
        with client.websocket_connect("/ws") as ws:
            ws.send_text("exit\n")
            with pytest.raises(WebSocketDisconnect):
                for _ in range(MAX_FRAMES):
                    ws.receive_bytes()
        assert len(opened) == 1
        assert wait_for(lambda: _reaped(opened[0]), timeout=5.0)

    def test_next_connection_after_teardown(self, opened: list[PtySession]) -> None:
        client = _client()
        with client.websocket_connect("/ws") as ws:
            ws.send_text("echo first\n")
            _read_until_line(ws, "first")
        with client.websocket_connect("/ws") as ws:
            ws.send_text("echo second\n")
            _read_until_line(ws, "second")
        assert len(opened) == 2
        assert opened[0].pid != opened[1].pid
        assert wait_for(lambda: _reaped(opened[0]), timeout=5.0)
