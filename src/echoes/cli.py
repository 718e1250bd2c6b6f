"""CLI interface for errors-and-echoes using Typer framework."""

import json as jsonlib
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from echoes import __description__, __version__
from echoes.config import load_config
from echoes.errors import ConfigError
from echoes.reporting import HttpTransport, probe_endpoint
from echoes.schemas import generate_payload_schema, save_payload_schema

app = typer.Typer(
    name="echoes",
    help=__description__,
    add_completion=False,
    rich_markup_mode="rich"
)

console = Console()


def version_callback(value: bool) -> None:
    """Show version information and exit."""
    if value:
        console.print(f"errors-and-echoes version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", callback=version_callback, help="Show version and exit")
    ] = False,
) -> None:
    """errors-and-echoes - error telemetry with extension attribution."""


@app.command()
def config(
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Configuration file (default: search for .echoes.json)")
    ] = None,
    json: Annotated[bool, typer.Option("--json", help="Print raw JSON")] = False,
) -> None:
    """Show the effective configuration."""
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if json:
        console.print_json(cfg.model_dump_json(by_alias=True))
        return

    reporting = cfg.reporting
    table = Table(title="Reporting")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Dedup window", f"{reporting.dedup_window_seconds:g}s")
    table.add_row("Max reports / window", str(reporting.max_reports_per_hour))
    table.add_row("Rate window", f"{reporting.rate_window_seconds:g}s")
    table.add_row("Request timeout", f"{reporting.request_timeout:g}s")
    table.add_row("Consent expiry", f"{cfg.consent.expiry_days} days")
    table.add_row("Extension root", cfg.attribution.extension_root)
    console.print(table)

    endpoints = Table(title="Endpoints")
    endpoints.add_column("Name", style="cyan")
    endpoints.add_column("URL")
    endpoints.add_column("Author")
    endpoints.add_column("Extensions")
    endpoints.add_column("Enabled")
    for endpoint in cfg.endpoints:
        endpoints.add_row(
            endpoint.name,
            endpoint.url,
            endpoint.author or "-",
            ", ".join(endpoint.extensions) or "-",
            "yes" if endpoint.enabled else "no",
        )
    if cfg.endpoints:
        console.print(endpoints)
    else:
        console.print("[yellow]No endpoints configured[/yellow]")


@app.command("test-endpoint")
def test_endpoint(
    url: Annotated[str, typer.Argument(help="Report URL of the endpoint")],
) -> None:
    """Send a test request to an endpoint's test route."""
    if probe_endpoint(HttpTransport(), url):
        console.print(f"[green]Endpoint OK:[/green] {url}")
        return
    console.print(f"[red]Endpoint test failed:[/red] {url}")
    raise typer.Exit(1)


@app.command("payload-schema")
def payload_schema(
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Directory to write report-payload.schema.json into")
    ] = None,
) -> None:
    """Print or save the JSON Schema of the report payload."""
    if output is not None:
        schema_file = save_payload_schema(output)
        console.print(f"Saved schema: {schema_file}")
        return
    typer.echo(jsonlib.dumps(generate_payload_schema(), indent=2))


if __name__ == "__main__":
    app()
