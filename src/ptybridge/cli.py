"""CLI entry point for ptybridge."""

from __future__ import annotations

import logging

import typer
from pydantic import ValidationError

from ptybridge import __version__
from ptybridge.config import PtyBridgeConfig, ServerConfig, TerminalConfig

app = typer.Typer(
    name="ptybridge",
    help="Bridge an interactive shell to a local screen or a WebSocket client.",
    no_args_is_help=True,
)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_config(config_file: str | None) -> PtyBridgeConfig:
    try:
        return PtyBridgeConfig.load(config_file)
    except (ValidationError, ValueError) as e:
        typer.echo(f"Error: invalid configuration: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def serve(
    bind: str | None = typer.Option(
        None, "--bind", "-b", help="host:port to listen on (default: 0.0.0.0:7070)."
    ),
    token: str | None = typer.Option(
        None, "--token", "-t", help="Shared secret clients must present."
    ),
    shell: str | None = typer.Option(
        None, "--shell", "-s", help="Shell executable (default: auto-detected)."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Serve shells over a WebSocket, one per connection."""
    setup_logging(verbose)
    from ptybridge.bridge.server import run_server

    config = _load_config(config_file)
    overrides = {
        key: value
        for key, value in (("bind", bind), ("token", token), ("shell", shell))
        if value is not None
    }
    try:
        server_config = ServerConfig.model_validate(
            {**config.server.model_dump(), **overrides}
        )
    except ValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"ptybridge v{__version__}")
    typer.echo(f"Shell: {server_config.shell}")
    run_server(server_config, log_level="debug" if verbose else "info")


@app.command()
def local(
    shell: str | None = typer.Option(
        None, "--shell", "-s", help="Shell executable (default: auto-detected)."
    ),
    max_lines: int | None = typer.Option(
        None, "--max-lines", "-n", help="Scrollback size in lines."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run a shell in the interactive terminal UI."""
    # No stderr handler here: it would corrupt the Textual display.  Log
    # records go to the TUI status bar instead.
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    for h in root.handlers[:]:
        root.removeHandler(h)

    from ptybridge.errors import SpawnError
    from ptybridge.pty.buffer import OutputBuffer
    from ptybridge.pty.session import PtySession
    from ptybridge.tui.app import TerminalApp, TUILogHandler
    from ptybridge.tui.terminal import LocalTerminal

    config = _load_config(config_file)
    term_config = config.terminal
    if shell is not None or max_lines is not None:
        overrides = {"shell": shell, "max_lines": max_lines}
        try:
            term_config = TerminalConfig.model_validate(
                {
                    **term_config.model_dump(),
                    **{k: v for k, v in overrides.items() if v is not None},
                }
            )
        except ValidationError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    try:
        session = PtySession.open(term_config.shell, args=term_config.shell_args)
    except SpawnError as e:
        typer.echo(f"Error: failed to start shell: {e}", err=True)
        raise typer.Exit(1)

    handler = TUILogHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(handler)

    terminal = LocalTerminal(session, OutputBuffer(term_config.max_lines))
    try:
        TerminalApp(terminal, tick_ms=term_config.tick_ms, log_handler=handler).run()
    finally:
        session.close()
        root.removeHandler(handler)


@app.command(name="shell")
def show_shell() -> None:
    """Print the shell that would be started."""
    config = _load_config(None)
    typer.echo(config.server.shell)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
