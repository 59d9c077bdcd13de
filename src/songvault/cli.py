"""CLI interface for SongVault."""

from __future__ import annotations

import os
from collections import deque
from pathlib import Path

import structlog
import typer
from dotenv import load_dotenv
from pydantic import SecretStr
from rich.console import Console
from rich.table import Table

from songvault.config import load_config
from songvault.errors import ConfigError
from songvault.logging import setup_logging
from songvault.player.client import DEFAULT_SERVER_URL, CatalogClient, ServerError

app = typer.Typer(
    name="songvault",
    help="Minimal MP3 catalog server with local or Cloudinary storage.",
    add_completion=False,
)
console = Console()

_URL_OPTION = typer.Option(
    DEFAULT_SERVER_URL,
    "--url",
    envvar="SONGVAULT_URL",
    help="Base URL of a running SongVault server",
)


def main() -> None:
    """Entry point that wraps ``app()`` with a clean KeyboardInterrupt handler."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("Interrupted.")
        raise SystemExit(130) from None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_config_or_exit():  # noqa: ANN202
    load_dotenv()
    try:
        return load_config()
    except ConfigError as exc:
        structlog.get_logger("songvault.cli").error("config_error", error=str(exc))
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(1) from exc


def _client(url: str) -> CatalogClient:
    return CatalogClient(url)


def _fail(exc: ServerError) -> typer.Exit:
    if exc.status_code is None:
        console.print(f"[red]Could not connect to server.[/red]  {exc}")
    else:
        console.print(f"[red]Server returned {exc.status_code}:[/red] {exc}")
    return typer.Exit(1)


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve() -> None:
    """Run the HTTP server in the foreground (configured from the environment)."""
    from songvault.server.runner import run

    # console logging until the configured handlers are known
    setup_logging(os.environ.get("LOG_LEVEL") or "info", console=True)
    cfg = _load_config_or_exit()
    setup_logging(cfg.server.log_level, cfg.server.log_dir, console=True)
    structlog.get_logger("songvault.cli").info("config_loaded", storage=cfg.storage.type)

    console.print(f"[green]Serving[/green] on http://{cfg.server.host}:{cfg.server.port} ({cfg.storage.type} storage)")
    run(cfg)


# ---------------------------------------------------------------------------
# Catalog commands (talk to a running server)
# ---------------------------------------------------------------------------


@app.command()
def songs(url: str = _URL_OPTION) -> None:
    """List the songs in the catalog."""
    with _client(url) as client:
        try:
            tracks = client.list_songs()
        except ServerError as exc:
            raise _fail(exc) from exc

    if not tracks:
        console.print("[dim]The catalog is empty.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("URL", overflow="fold")
    for track in tracks:
        table.add_row(track.id, track.title, track.url)
    console.print(table)


@app.command()
def upload(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="MP3 files to upload"),
    url: str = _URL_OPTION,
) -> None:
    """Upload MP3 files."""
    with _client(url) as client:
        try:
            result = client.upload(files)
        except ServerError as exc:
            raise _fail(exc) from exc

    console.print(f"[green]{result.get('message', 'Uploaded.')}[/green]")
    for song in result.get("songs", []):
        console.print(f"  {song['_id']}  {song['title']}")


@app.command()
def delete(
    song_id: str = typer.Argument(help="Id of the song to delete"),
    url: str = _URL_OPTION,
) -> None:
    """Delete a song and its stored file."""
    with _client(url) as client:
        try:
            result = client.delete(song_id)
        except ServerError as exc:
            raise _fail(exc) from exc
    console.print(f"[green]{result.get('message', 'Deleted.')}[/green]")


@app.command()
def resync(url: str = _URL_OPTION) -> None:
    """Catalog MP3 files already present in the server's songs folder."""
    with _client(url) as client:
        try:
            result = client.resync()
        except ServerError as exc:
            if exc.status_code == 409:
                console.print("[dim]Nothing to do: every file is already cataloged.[/dim]")
                return
            raise _fail(exc) from exc
    console.print(f"[green]{result.get('message', 'Resynced.')}[/green]")


# ---------------------------------------------------------------------------
# Player
# ---------------------------------------------------------------------------


_PLAYER_HELP = "[dim]<n> play/pause  n next  p previous  /text search  / clear  r reload  q quit[/dim]"


def _render_player(state) -> None:  # noqa: ANN001
    if state.error:
        console.print(f"[red]{state.error}[/red]")
    visible = state.visible
    if not visible:
        console.print("[dim]No songs to show.[/dim]")
    for position, track in enumerate(visible, start=1):
        marker = "  "
        if track.id == state.current_id:
            marker = "▶ " if state.is_playing else "⏸ "
        console.print(f"{marker}{position:>3}. {track.title}")
    if state.search_query:
        console.print(f"[dim]filter: {state.search_query!r}[/dim]")
    console.print(_PLAYER_HELP)


@app.command()
def play(url: str = _URL_OPTION) -> None:
    """Interactive terminal player (requires mpv)."""
    from songvault.player import PlayerSession, fetch_state
    from songvault.player.audio import MpvOutput, mpv_available

    if not mpv_available():
        console.print("[red]mpv not found.[/red]  Install mpv to use the player.")
        raise typer.Exit(1)

    output = MpvOutput()
    if not output.start():
        console.print("[red]Could not start mpv.[/red]")
        raise typer.Exit(1)

    try:
        with _client(url) as client:
            console.print("[dim]Loading songs...[/dim]")
            session = PlayerSession(output, fetch_state(client))
            while True:
                session.poll()
                _render_player(session.state)
                command = console.input("[bold]> [/bold]").strip()
                session.poll()
                if command == "q":
                    break
                if command == "n":
                    session.next()
                elif command == "p":
                    session.previous()
                elif command == "r":
                    session.state = fetch_state(client, session.state)
                elif command.startswith("/"):
                    session.search(command[1:])
                elif command.isdigit():
                    session.select_visible(int(command))
    finally:
        output.stop()


# ---------------------------------------------------------------------------
# Logs & config
# ---------------------------------------------------------------------------


@app.command()
def logs(
    tail_lines: int = typer.Option(50, "--lines", "-n", help="Number of lines to show"),
    catalog: bool = typer.Option(False, "--catalog", help="Show catalog.log (JSON) instead of server.log"),
) -> None:
    """Show recent server log output (needs LOG_DIR)."""
    log_dir = os.environ.get("LOG_DIR")
    if not log_dir:
        console.print("[yellow]LOG_DIR is not set; the server logs to the console only.[/yellow]")
        raise typer.Exit(1)

    log_file = Path(log_dir) / ("catalog.log" if catalog else "server.log")
    if not log_file.exists():
        console.print(f"[yellow]Log file not found:[/yellow] {log_file}")
        raise typer.Exit(1)

    with open(log_file, encoding="utf-8") as fh:
        last_lines = deque(fh, maxlen=tail_lines)

    if not last_lines:
        console.print("[dim]Log file is empty.[/dim]")
        return

    for line in last_lines:
        _print_log_line(line)


def _log_line_style(line: str) -> str | None:
    """Return a Rich style string based on the log level found in *line*."""
    lower = line.lower()
    if "[error" in lower or "[critical" in lower or '"level": "error"' in lower or '"level": "critical"' in lower:
        return "red"
    if "[warning" in lower or '"level": "warning"' in lower:
        return "yellow"
    if "[debug" in lower or '"level": "debug"' in lower:
        return "dim"
    return None


def _print_log_line(line: str) -> None:
    line = line.rstrip("\n")
    if not line:
        return
    console.print(line, style=_log_line_style(line), highlight=False, markup=False)


def _mask(secret: SecretStr) -> str:
    """Return '***' if the secret is non-empty, else '(not set)'."""
    return "[bold]***[/bold]" if secret.get_secret_value() else "[dim](not set)[/dim]"


@app.command(name="config")
def config_show() -> None:
    """Show the configuration resolved from the environment (secrets are masked)."""
    cfg = _load_config_or_exit()

    console.print("\n[bold]Current Configuration[/bold]\n")

    console.print("[bold cyan]\\[server][/bold cyan]")
    console.print(f"  host             = {cfg.server.host}")
    console.print(f"  port             = {cfg.server.port}")
    console.print(f"  public_base_url  = {cfg.server.base_url}")
    console.print(f"  max_upload_files = {cfg.server.max_upload_files}")
    console.print(f"  log_level        = {cfg.server.log_level}")
    console.print(f"  log_dir          = {cfg.server.log_dir or '[dim](not set)[/dim]'}")

    console.print("\n[bold cyan]\\[storage][/bold cyan]")
    console.print(f"  database     = {cfg.storage.database_path}")
    console.print(f"  type         = {cfg.storage.type}")
    console.print(f"  songs_folder = {cfg.storage.songs_folder}")

    cloud = cfg.storage.cloudinary
    console.print("\n[bold cyan]\\[cloudinary][/bold cyan]")
    console.print(f"  cloud_name = {cloud.cloud_name or '[dim](not set)[/dim]'}")
    console.print(f"  api_key    = {cloud.api_key or '[dim](not set)[/dim]'}")
    console.print(f"  api_secret = {_mask(cloud.api_secret)}")
    console.print(f"  folder     = {cloud.folder}")
    console.print()
