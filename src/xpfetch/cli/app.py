import asyncio
import importlib
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from xpfetch.core.config import FetcherSettings
from xpfetch.core.context import RequestContext
from xpfetch.core.exceptions import ConfigError
from xpfetch.core.logging import configure_logging, get_logger
from xpfetch.core.ports import ComponentRegistryPort
from xpfetch.core.registry import ComponentRegistry
from xpfetch.core.types import ComponentDescriptor, QueryAndVariables
from xpfetch.engine.combiner import combine_multiple_queries
from xpfetch.engine.fetcher import build_content_fetcher

app = typer.Typer(name="xpfetch", help="xpfetch - resolve Enonic XP content through Guillotine")

console = Console()
logger = get_logger(__name__)


def _load_settings(site_root: Path | None) -> FetcherSettings:
    try:
        return FetcherSettings.load(site_root)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise typer.Exit(code=2) from exc


def _load_registry(target: str | None) -> ComponentRegistryPort:
    """Import ``module:attribute`` and return the registry it names."""
    if not target:
        return ComponentRegistry().freeze()
    module_name, _, attribute = target.partition(":")
    try:
        module = importlib.import_module(module_name)
        registry = getattr(module, attribute or "registry")
    except (ImportError, AttributeError) as exc:
        console.print(f"[bold red]Cannot load registry[/] {target!r}: {exc}")
        raise typer.Exit(code=2) from exc
    if not isinstance(registry, ComponentRegistryPort):
        console.print(f"[bold red]{target!r} is not a component registry.[/]")
        raise typer.Exit(code=2)
    return registry


def _parse_headers(values: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, header_value = value.partition("=")
        if not sep:
            raise typer.BadParameter(f"Header must look like name=value, got {value!r}")
        headers[name.strip()] = header_value.strip()
    return headers


@app.command()
def fetch(
    path: str = typer.Argument("", help="Site-relative content path, e.g. 'movies/lost'."),
    registry: str | None = typer.Option(None, "--registry", "-r", help="Registry to use, as 'module:attribute'."),
    header: list[str] = typer.Option([], "--header", "-H", help="Request header as name=value (repeatable)."),
    site_root: Path | None = typer.Option(None, "--site-root", help="Directory holding .xpfetch.toml."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (default: XPFETCH_LOG_LEVEL or INFO)."),
):
    """
    Fetch one content path and print the result as JSON.
    """
    configure_logging(log_level)
    settings = _load_settings(site_root)
    fetcher = build_content_fetcher(settings, _load_registry(registry))
    context = RequestContext(headers=_parse_headers(header))
    logger.debug("Fetching %r from %s", path, settings.content_api_url)

    result = asyncio.run(fetcher(path, context))
    console.print_json(json.dumps(result.to_json_dict(), default=str))
    if result.error is not None:
        raise typer.Exit(code=1)


@app.command()
def combine(
    files: list[Path] = typer.Argument(..., help="Files holding one Guillotine query each."),
):
    """
    Combine query files into one batched query and print it.
    """
    descriptors = [
        ComponentDescriptor(query_and_variables=QueryAndVariables(query=file.read_text(), variables={}))
        for file in files
    ]
    combined = combine_multiple_queries(descriptors)
    for file, alias in zip(files, combined.aliases, strict=True):
        if alias is None:
            console.print(f"[yellow]Skipped[/] {file}: not a 'query {{ guillotine {{ ... }} }}' query")
    console.print(Syntax(combined.query, "graphql"))
    if combined.is_empty:
        raise typer.Exit(code=1)


@app.command("config")
def show_config(
    site_root: Path | None = typer.Option(None, "--site-root", help="Directory holding .xpfetch.toml."),
):
    """
    Show the resolved settings.
    """
    settings = _load_settings(site_root)
    table = Table(title="xpfetch settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in settings.model_dump().items():
        table.add_row(key, str(value))
    table.add_row("is_dev_mode", str(settings.is_dev_mode))
    table.add_row("app_name_dashed", settings.app_name_dashed)
    console.print(table)


if __name__ == "__main__":
    app()
