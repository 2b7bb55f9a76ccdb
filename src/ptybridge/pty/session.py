"""PTY session — one shell process behind a pseudo-terminal."""

from __future__ import annotations

import asyncio
import enum
import errno
import fcntl
import logging
import os
import pty
import signal
import struct
import subprocess
import termios
import threading
from typing import Sequence

from ptybridge.errors import PtyIOError, SpawnError
from ptybridge.pty.channel import OutputChannel

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096
DEFAULT_SIZE = (80, 24)


class PtyStatus(enum.Enum):
    """Lifecycle states for a PTY session."""

    RUNNING = "running"
    EXITED = "exited"  # Shell went away on its own (reader hit EOF)
    CLOSED = "closed"  # Torn down by us


def set_winsize(fd: int, cols: int, rows: int) -> None:
    """Apply a window size to a pty fd (raises OSError on failure)."""
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


def _acquire_controlling_tty() -> None:
    """Child side, after setsid: make the pty on stdin the controlling tty.

    Without it the line discipline has no foreground process group, so
    ^C never turns into SIGINT and the shell runs without job control.
    """
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class PtySession:
    """A shell running on the slave side of a pty.

    The session owns the master fd, the child process and a daemon reader
    thread.  The reader does blocking 4 KiB reads from the master and
    publishes every nonempty chunk on :attr:`output`; EOF or a read error
    closes the channel, which is how consumers learn the shell has exited.

    There is no way to interrupt the reader directly.  :meth:`close` kills
    the child's process group, which hangs up the pty so the pending read
    fails, and only then closes the master fd.

    Use :meth:`open` to create one.
    """

    def __init__(
        self,
        shell_path: str,
        master_fd: int,
        proc: subprocess.Popen,
        size: tuple[int, int],
    ) -> None:
        self.shell_path = shell_path
        self.output = OutputChannel()
        self._master_fd = master_fd
        self._proc = proc
        self._size = size
        self._status = PtyStatus.RUNNING
        self._write_lock = threading.Lock()
        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"pty-reader-{proc.pid}",
            daemon=True,
        )

    @classmethod
    def open(
        cls,
        shell_path: str,
        size: tuple[int, int] = DEFAULT_SIZE,
        args: Sequence[str] = ("-i",),
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> PtySession:
        """Allocate a pty and start ``shell_path`` on it.

        Args:
            shell_path: Executable to run.
            size: Initial window size as (cols, rows).
            args: Extra arguments for the shell.
            env: Variables layered over the current environment.
            cwd: Working directory for the shell.
            loop: If given, output is delivered to this asyncio loop
                  (``await session.output.recv()``) instead of polling.

        Raises:
            SpawnError: the pty could not be allocated or the shell could
                not be started.
        """
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise SpawnError(f"open pty: {e}") from e

        cols, rows = size
        try:
            set_winsize(slave_fd, cols, rows)
        except (OSError, struct.error) as e:
            logger.debug("Could not set initial pty size %sx%s: %s", cols, rows, e)

        child_env = {**os.environ, **(env or {})}
        child_env.setdefault("TERM", "xterm-256color")

        try:
            proc = subprocess.Popen(
                [shell_path, *args],
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
                env=child_env,
                cwd=cwd,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise SpawnError(f"spawn {shell_path}: {e}") from e
        finally:
            # Parent never uses the slave side
            os.close(slave_fd)

        session = cls(shell_path, master_fd, proc, size)
        if loop is not None:
            session.output.attach_loop(loop)
        session._reader.start()

        logger.info(
            "PTY session started: pid=%d shell=%s size=%dx%d",
            proc.pid,
            shell_path,
            cols,
            rows,
        )
        return session

    def _read_loop(self) -> None:
        """Reader thread body: master fd -> output channel."""
        try:
            while True:
                try:
                    data = os.read(self._master_fd, READ_CHUNK_SIZE)
                except OSError as e:
                    # EIO is the normal "slave side hung up" on Linux
                    if e.errno != errno.EIO:
                        logger.debug("PTY read failed (pid=%d): %s", self.pid, e)
                    break
                if not data:
                    break
                self.output.publish(data)
        finally:
            if self._status == PtyStatus.RUNNING:
                self._status = PtyStatus.EXITED
                logger.info(
                    "PTY session exited: pid=%d code=%s", self.pid, self._proc.poll()
                )
            self.output.close()

    def send(self, data: bytes) -> None:
        """Write all of ``data`` to the shell's input.

        Raises:
            PtyIOError: the session is closed or the write failed.
        """
        with self._write_lock:
            if self._status == PtyStatus.CLOSED:
                raise PtyIOError("session is closed")
            if self._status == PtyStatus.EXITED:
                raise PtyIOError("shell has exited")
            view = memoryview(data)
            while view:
                try:
                    written = os.write(self._master_fd, view)
                except OSError as e:
                    raise PtyIOError(f"write to pty: {e}") from e
                view = view[written:]

    def resize(self, cols: int, rows: int) -> None:
        """Best-effort window resize; failures are logged and ignored."""
        if cols <= 0 or rows <= 0 or self._status == PtyStatus.CLOSED:
            return
        try:
            set_winsize(self._master_fd, cols, rows)
        except (OSError, struct.error) as e:
            logger.debug("Resize to %dx%d failed (pid=%d): %s", cols, rows, self.pid, e)
            return
        self._size = (cols, rows)

    def close(self, timeout: float = 2.0) -> None:
        """Kill and reap the shell, retire the reader, release the master fd.

        Safe to call more than once.
        """
        with self._write_lock:
            if self._status == PtyStatus.CLOSED:
                return
            self._status = PtyStatus.CLOSED

        # The group outlives its leader, so kill it even if the shell is gone.
        # With job control the foreground job runs in a group of its own.
        for pgid in self._process_groups():
            try:
                os.killpg(pgid, signal.SIGKILL)
            except ProcessLookupError:
                logger.debug("Process group already gone: %d", pgid)
            except PermissionError as e:
                logger.warning("Cannot kill process group %d: %s", pgid, e)
                if pgid == self._proc.pid:
                    self._proc.kill()

        try:
            self._proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Shell pid=%d did not exit after SIGKILL", self._proc.pid)

        if self._reader.is_alive() and self._reader is not threading.current_thread():
            self._reader.join(timeout=timeout)
            if self._reader.is_alive():
                logger.warning("PTY reader for pid=%d is still blocked", self._proc.pid)

        try:
            os.close(self._master_fd)
        except OSError:
            pass

        logger.info("PTY session closed: pid=%d code=%s", self.pid, self._proc.returncode)

    def _process_groups(self) -> list[int]:
        """The shell's group, then the pty's foreground group if different."""
        groups = [self._proc.pid]
        try:
            foreground = os.tcgetpgrp(self._master_fd)
        except OSError:
            return groups
        if foreground > 0 and foreground != self._proc.pid:
            groups.append(foreground)
        return groups

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def status(self) -> PtyStatus:
        return self._status

    @property
    def alive(self) -> bool:
        return self._status == PtyStatus.RUNNING

    @property
    def exit_code(self) -> int | None:
        return self._proc.poll()

    @property
    def size(self) -> tuple[int, int]:
        return self._size

    def __enter__(self) -> PtySession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:
        # Finalizers must not block: signal only, no wait, join or fd close
        if getattr(self, "_status", PtyStatus.CLOSED) == PtyStatus.CLOSED:
            return
        try:
            os.killpg(self._proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass
