"""CLI for the explorer gateway."""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.traceback import install

from explorer_gateway.config import GatewaySettings
from explorer_gateway.core import ChainConfig, NetworkContext, Protocol, RequestFacade
from explorer_gateway.data import load_chains
from explorer_gateway.exceptions import GatewayError
from explorer_gateway.pricing import PriceWaterfall, default_providers

install(show_locals=False)

app = typer.Typer(
    name="explorer-gateway",
    help="Query Cosmos chains through load-balanced, cached REST and RPC endpoints",
    add_completion=False,
)

console = Console()


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging")) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _parse_params(pairs: list[str] | None) -> dict[str, str]:
    params = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            msg = f"Expected key=value, got '{pair}'"
            raise typer.BadParameter(msg)
        params[key] = value
    return params


def _chains(settings: GatewaySettings) -> dict[str, ChainConfig]:
    return load_chains(settings.chains_file)


@contextlib.asynccontextmanager
async def _open_context(settings: GatewaySettings) -> AsyncIterator[NetworkContext]:
    # One-shot commands skip the periodic prober
    context = NetworkContext(settings)
    await context.start(probe=False)
    try:
        yield context
    finally:
        await context.close()


@app.command()
def chains() -> None:
    """List configured chains and their endpoint pools."""
    settings = GatewaySettings.from_env()

    table = Table(title="Configured Chains", show_header=True, header_style="bold magenta")
    table.add_column("Chain", style="cyan")
    table.add_column("Chain ID", style="blue")
    table.add_column("API", style="green", justify="right")
    table.add_column("RPC", style="green", justify="right")
    table.add_column("Assets", style="yellow")

    for chain in _chains(settings).values():
        table.add_row(
            chain.chain_name,
            chain.chain_id or "-",
            str(len(chain.api)),
            str(len(chain.rpc)),
            ", ".join(asset.symbol for asset in chain.assets) or "-",
        )

    console.print(table)


@app.command()
def fetch(
    chain: str = typer.Argument(..., help="Chain name (e.g., cosmoshub)"),
    endpoint: str = typer.Argument(..., help="Logical endpoint (e.g., validators, block)"),
    param: list[str] | None = typer.Option(None, "--param", "-p", help="Parameter as key=value, repeatable"),
) -> None:
    """
    Fetch a logical endpoint and print the JSON response.

    Examples:

        explorer-gateway fetch cosmoshub validators

        explorer-gateway fetch cosmoshub block -p height=1000
    """
    settings = GatewaySettings.from_env()
    params = _parse_params(param)

    async def run() -> Any:
        async with _open_context(settings) as context:
            facade = RequestFacade(context, _chains(settings))
            return await facade.request(chain, endpoint, params)

    try:
        data = asyncio.run(run())
    except (GatewayError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e

    console.print_json(json.dumps(data))


@app.command()
def health(chain: str = typer.Argument(..., help="Chain name (e.g., cosmoshub)")) -> None:
    """Probe every endpoint of a chain once and show latency."""
    settings = GatewaySettings.from_env()
    configured = _chains(settings)
    if chain not in configured:
        console.print(f"[bold red]Unknown chain:[/bold red] {chain}")
        raise typer.Exit(1)

    async def run() -> dict[str, Any]:
        async with _open_context(settings) as context:
            context.get_balancers(configured[chain])
            await context.prober.probe_once()
            return context.stats(chain) or {}

    stats = asyncio.run(run())

    table = Table(title=f"Endpoint Health: {chain}", show_header=True, header_style="bold magenta")
    table.add_column("Pool", style="blue")
    table.add_column("Provider", style="cyan")
    table.add_column("Address", style="white")
    table.add_column("Status", style="green")
    table.add_column("Latency", justify="right")

    for protocol in Protocol:
        pool = stats.get(str(protocol))
        if pool is None:
            continue
        for endpoint in pool.endpoints:
            probe = endpoint.health
            if probe is None:
                status, latency = "[dim]unknown[/dim]", "-"
            elif probe.healthy:
                status, latency = "✓ up", f"{probe.latency_ms:.0f} ms"
            else:
                status, latency = "[red]✗ down[/red]", "-"
            table.add_row(str(protocol), endpoint.provider, endpoint.address, status, latency)

    console.print(table)


@app.command()
def price(symbol: str = typer.Argument(..., help="Token symbol (e.g., ATOM)")) -> None:
    """Look up a USD price from the first provider that has one."""
    settings = GatewaySettings.from_env()

    async def run():
        async with _open_context(settings) as context:
            waterfall = PriceWaterfall(
                context.client,
                providers=default_providers(settings.price_timeout, settings.price_listing_timeout),
                ttl=settings.price_ttl,
            )
            return await waterfall.get_price(symbol)

    quote = asyncio.run(run())
    if quote is None:
        console.print(f"[yellow]No price found for {symbol.upper()}[/yellow]")
        raise typer.Exit(1)

    change_style = "green" if quote.change_24h >= 0 else "red"
    console.print(
        f"[bold cyan]{symbol.upper()}[/bold cyan] ${quote.price:,.6g} "
        f"[{change_style}]{quote.change_24h:+.2f}%[/{change_style}] [dim]via {quote.source}[/dim]"
    )


if __name__ == "__main__":
    app()
