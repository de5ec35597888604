"""CLI commands for relaygate.

In the overall architecture: the CLI is the single entry point, registering serve (the HTTP
gateway), mint (issue a redeem link locally), targets and status.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from relaygate import __logo__, __version__
from relaygate.cli.shared.logging_utils import ensure_rotating_log_file
from relaygate.cli.shared.network_utils import is_port_in_use

app = typer.Typer(
    name="relaygate",
    help=f"{__logo__} relaygate - single-use signed links for door relays",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} relaygate v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
):
    """relaygate - single-use signed links for door relays."""
    pass


def _load(config_path: Path | None):
    from relaygate.config.loader import load_config

    try:
        return load_config(config_path)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Gateway
# ============================================================================


@app.command()
def serve(
    host: str = typer.Option(None, "--host", "-h", help="Bind host (default: gateway.host)"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port (default: gateway.port / PORT)"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file (default: ~/.relaygate/config.json)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Start the HTTP gateway (token issuance, redirect links, redemption)."""
    config = _load(config_path)
    bind_host = host or config.gateway.host
    bind_port = port or config.gateway.port
    if is_port_in_use(bind_host, bind_port):
        console.print(
            f"[red]Port {bind_port} is already in use.[/red] "
            f"Close the process using it, or pass [cyan]--port[/cyan] (current: {bind_host}:{bind_port})."
        )
        raise typer.Exit(1)

    log_path = ensure_rotating_log_file("gateway", level="DEBUG" if verbose else "INFO")
    console.print(f"{__logo__} Starting relaygate on {bind_host}:{bind_port}...")
    console.print(f"[dim]Logs: {log_path}[/dim]")
    if config.uses_default_secret:
        console.print("[yellow]Warning: token secret is the default 'changeme'; set TOKEN_SECRET.[/yellow]")
    if not config.has_api_key:
        console.print("[yellow]Warning: no upstream api key; actuation will fail until SHELLY_API_KEY is set.[/yellow]")

    from relaygate.api.server import run_server

    run_server(config, host=bind_host, port=bind_port)


# ============================================================================
# Tokens
# ============================================================================


@app.command()
def mint(
    target: str = typer.Argument(..., help="Target key, e.g. scala-door"),
    base_url: str = typer.Option(None, "--base-url", help="Public base URL for the link (default: gateway.public_base_url)"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Issue a single-use redeem link for a target."""
    from relaygate.gateway.token_codec import TokenCodec
    from relaygate.targets.registry import TargetRegistry

    config = _load(config_path)
    registry = TargetRegistry.from_config(config.targets)
    if target not in registry:
        console.print(f"[red]Unknown target: {target}[/red]")
        raise typer.Exit(1)
    token = TokenCodec(config.tokens.secret).issue(target)
    base = (base_url or config.gateway.public_base_url or f"http://localhost:{config.gateway.port}").rstrip("/")
    console.print(f"{base}{token.redeem_path()}", soft_wrap=True)


@app.command()
def targets(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """List configured targets."""
    from relaygate.targets.registry import TargetRegistry

    registry = TargetRegistry.from_config(_load(config_path).targets)
    table = Table(title=f"Targets ({len(registry)})")
    table.add_column("Key", style="cyan")
    table.add_column("Device id")
    table.add_column("Name")
    for t in registry:
        table.add_row(t.key, t.device_id, t.display_name)
    console.print(table)


# ============================================================================
# Status Commands
# ============================================================================


@app.command()
def status(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Show relaygate configuration status."""
    from relaygate.config.loader import get_config_path

    path = config_path or get_config_path()
    config = _load(config_path)

    console.print(f"{__logo__} relaygate Status\n")
    console.print(f"Config: {path} {'[green]✓[/green]' if path.exists() else '[dim](defaults)[/dim]'}")
    console.print(f"Upstream: {config.upstream.base_url}")
    console.print(f"API key: {'[green]✓[/green]' if config.has_api_key else '[red]not set[/red]'}")
    console.print(
        f"Token secret: {'[yellow]default (changeme)[/yellow]' if config.uses_default_secret else '[green]✓[/green]'}"
    )
    console.print(f"Validity window: {config.tokens.validity_window_ms // 1000}s")
    console.print(f"Operator endpoints: {'enabled' if config.gateway.operator_token else '[dim]disabled[/dim]'}")
    console.print(f"Timezone: {config.gateway.timezone}")
    console.print(f"Targets: {len(config.targets)}")


if __name__ == "__main__":
    app()
