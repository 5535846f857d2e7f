"""memtui CLI commands."""

import logging
import time

import typer
from memtui_core import (
    CancelToken,
    ConnectError,
    EnumerationTimeout,
    MemtuiError,
    NotFoundError,
    ProtocolClient,
    detect,
    enumerate_keys,
    filter_keys,
    remaining_ttl,
)
from memtui_core.models import format_bytes, format_ttl
from memtui_view import ViewMode, render
from rich.console import Console
from rich.table import Table

from memtui_cli import __version__
from memtui_cli.config import (
    Config,
    ConfigError,
    add_server,
    load_config,
    load_servers,
    log_path,
    remove_server,
    resolve_address,
    set_default,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M"

# Initialize
app = typer.Typer(help="memtui - inspect and edit a memcached server from the terminal")
servers_app = typer.Typer(help="Manage saved memcached servers")
app.add_typer(servers_app, name="servers")
console = Console()

# Configure logging (default to WARNING, can be lowered to INFO in debug mode)
logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)


def _version_callback(value: bool):
    if value:
        console.print(f"memtui version {__version__}")
        raise typer.Exit(0)


def _load_config() -> Config:
    try:
        return load_config()
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from e


def _address(cfg: Config, addr: str | None, server: str | None = None) -> str:
    try:
        return resolve_address(cfg, addr, server)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _log_to_file(level: int) -> None:
    """Send log records to the log file while the full-screen UI owns the terminal."""
    path = log_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    addr: str | None = typer.Option(None, "--addr", "-a", help="Memcached address (host:port)"),
    server: str | None = typer.Option(None, "--server", "-s", help="Saved server name"),
    debug: bool = typer.Option(False, "--debug", help="Log at INFO level"),
    version: bool = typer.Option(
        False, "--version", "-v", callback=_version_callback, is_eager=True,
        help="Show version and exit",
    ),
):
    """
    Start the interactive inspector (default), or run a one-shot subcommand.

    Address resolution: --addr, then --server NAME, then the default saved
    server, then connection.default_address from config.yaml.
    """
    level = logging.INFO if debug else logging.WARNING
    logging.getLogger().setLevel(level)
    if ctx.invoked_subcommand is not None:
        return

    cfg = _load_config()
    address = _address(cfg, addr, server)

    # prompt_toolkit is only needed for the interactive UI
    from memtui_cli.app import AppCore
    from memtui_cli.tui import run_tui

    try:
        _log_to_file(level)
    except OSError as e:
        console.print(f"[red]Cannot open log file {log_path()}:[/red] {e}")
        raise typer.Exit(1) from e

    logger.info(f"Starting memtui against {address}")
    try:
        run_tui(AppCore(address, cfg))
    except Exception as e:
        logger.exception("Terminal UI failed")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


# ---------- one-shot commands ----------
@app.command()
def stats(
    addr: str | None = typer.Option(None, "--addr", "-a", help="Memcached address (host:port)"),
    server: str | None = typer.Option(None, "--server", "-s", help="Saved server name"),
):
    """Print the server's headline statistics."""
    cfg = _load_config()
    address = _address(cfg, addr, server)
    t = cfg.connection.timeouts
    client = None
    try:
        client = ProtocolClient(address, connect_timeout=t.connection, timeout=t.operation)
        s = client.server_stats()
    except MemtuiError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    finally:
        if client is not None:
            client.close()

    table = Table(show_header=True, header_style="bold", title=f"Memcached Statistics ({address})")
    table.add_column("Stat")
    table.add_column("Value", justify="right")
    rows = [
        ("Version", s.version),
        ("PID", str(s.pid)),
        ("Uptime", s.uptime_formatted),
        ("Current Connections", str(s.curr_connections)),
        ("Total Connections", str(s.total_connections)),
        ("Current Items", str(s.curr_items)),
        ("Total Items", str(s.total_items)),
        ("Evictions", str(s.evictions)),
        ("Memory Used", format_bytes(s.bytes)),
        ("Memory Limit", format_bytes(s.limit_maxbytes)),
        ("Memory Usage", f"{s.memory_usage:.2f}%"),
        ("Hit Rate", f"{s.hit_rate:.2f}%"),
        ("Get Hits", str(s.get_hits)),
        ("Get Misses", str(s.get_misses)),
        ("Bytes Read", format_bytes(s.bytes_read)),
        ("Bytes Written", format_bytes(s.bytes_written)),
    ]
    for name, value in rows:
        table.add_row(name, value)
    console.print(table)


@app.command()
def keys(
    addr: str | None = typer.Option(None, "--addr", "-a", help="Memcached address (host:port)"),
    server: str | None = typer.Option(None, "--server", "-s", help="Saved server name"),
    pattern: str = typer.Option("", "--filter", "-f", help="Only keys containing this substring"),
    limit: int = typer.Option(0, "--limit", "-n", min=0, help="Show at most N keys (0 = all)"),
):
    """List keys via lru_crawler metadump."""
    cfg = _load_config()
    address = _address(cfg, addr, server)
    t = cfg.connection.timeouts
    try:
        cap = detect(address, timeout=t.connection)
    except ConnectError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    if not cap.supports_metadump:
        console.print(
            f"[yellow]memcached {cap.version} does not support key enumeration "
            "(requires >= 1.4.31)[/yellow]"
        )
        raise typer.Exit(1)

    try:
        records = enumerate_keys(
            address,
            token=CancelToken(t.key_enumeration),
            connect_timeout=t.connection,
            timeout=t.key_enumeration,
        )
    except EnumerationTimeout as e:
        records = e.records
        console.print(f"[yellow]Key enumeration timed out; showing {len(records)} keys[/yellow]")
    except MemtuiError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    records = filter_keys(records, pattern)
    total = len(records)
    if limit:
        records = records[:limit]

    now = int(time.time())
    table = Table(show_header=True, header_style="bold")
    table.add_column("Key")
    table.add_column("Size", justify="right")
    table.add_column("TTL", justify="right")
    table.add_column("Slab", justify="right")
    for r in records:
        table.add_row(r.key, format_bytes(r.size_bytes), format_ttl(remaining_ttl(r.expiration_abs_unix, now)),
                      str(r.slab_class))
    console.print(table)
    console.print(f"[dim]{len(records)} of {total} keys[/dim]")


@app.command()
def get(
    key: str = typer.Argument(..., help="Key to fetch"),
    addr: str | None = typer.Option(None, "--addr", "-a", help="Memcached address (host:port)"),
    server: str | None = typer.Option(None, "--server", "-s", help="Saved server name"),
    mode: str = typer.Option("auto", "--mode", "-m", help="auto, json, hex or text"),
):
    """Print one value, formatted like the viewer pane."""
    try:
        view_mode = ViewMode.parse(mode)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--mode") from e

    cfg = _load_config()
    address = _address(cfg, addr, server)
    t = cfg.connection.timeouts
    client = None
    try:
        client = ProtocolClient(address, connect_timeout=t.connection, timeout=t.operation)
        value = client.get(key)
    except NotFoundError as e:
        console.print(f"[red]Key not found:[/red] {key}")
        raise typer.Exit(1) from e
    except MemtuiError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    finally:
        if client is not None:
            client.close()

    rendered = render(value, view_mode)
    console.print(f"[dim]Size: {len(value)} bytes | Type: {rendered.type_label} | Mode: {view_mode}[/dim]")
    if rendered.error:
        console.print(f"[yellow]{rendered.error}[/yellow]")
    console.print(rendered.text, markup=False, highlight=False, end="")


# ---------- saved servers ----------
@servers_app.command("list")
def servers_list():
    """List saved servers."""
    try:
        cfg = load_servers()
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Address")
    table.add_column("Default")
    for s in cfg.servers:
        table.add_row(s.name, s.address, "*" if s.default else "")
    console.print(table)


@servers_app.command("add")
def servers_add(
    name: str = typer.Argument(..., help="Server name"),
    address: str = typer.Argument(..., help="host:port"),
):
    """Save a server under NAME."""
    try:
        add_server(name, address)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    console.print(f"[green][OK][/green] Added server [bold]{name}[/bold] ({address})")


@servers_app.command("remove")
def servers_remove(name: str = typer.Argument(..., help="Server name")):
    """Forget a saved server."""
    try:
        remove_server(name)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    console.print(f"[green][OK][/green] Removed server [bold]{name}[/bold]")


@servers_app.command("default")
def servers_default(name: str = typer.Argument(..., help="Server name")):
    """Make NAME the default server."""
    try:
        set_default(name)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    console.print(f"[green][OK][/green] Default server is now [bold]{name}[/bold]")


if __name__ == "__main__":
    app()
