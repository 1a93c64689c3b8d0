from __future__ import annotations

import logging
from typing import Optional

import typer
from rich import print

from . import config
from .logging_config import setup_logging
from .output import print_result, print_summary, write_json
from .plugins.dns import POPULAR_DNS_SERVERS
from .services.query_service import QueryValidationError, build_query_config, run_query
from .version import version_banner

log = logging.getLogger(__name__)

app = typer.Typer(no_args_is_help=True)


@app.callback()
def cli(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Log level (debug, info, warn, error)"
    ),
):
    """Query DNS records from several nameservers, or serve the same over HTTP."""
    setup_logging(log_level or config.log_level())


@app.command("query")
def query(
    domain: str = typer.Argument(..., help="Domain to query"),
    nameservers: Optional[list[str]] = typer.Argument(None, help="Nameservers (host[:port])"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format"),
    record_filter: str = typer.Option("", "--filter", "-f", help="Record types, e.g. A,AAAA,MX"),
    timeout: int = typer.Option(5, "--timeout", "-t", help="Query timeout in seconds"),
    retries: int = typer.Option(3, "--retries", "-r", help="Attempts per record type"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print a summary at the end"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write JSON output to a file"),
):
    """Query DNS records from the given nameservers."""
    query_config = build_query_config(timeout, retries, [record_filter] if record_filter else None)
    try:
        results = run_query(
            domain,
            nameservers or [],
            query_config,
            progress_cb=None if json_output else print_result,
        )
    except QueryValidationError as e:
        log.error("%s", e)
        raise typer.Exit(code=1)

    if json_output:
        write_json(results, output)
    if verbose:
        print_summary(results)


@app.command("api")
def api(
    port: int = typer.Option(config.DEFAULT_API_PORT, "--port", "-p", help="API server port"),
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
):
    """Start the HTTP API for synchronous and background queries."""
    import uvicorn

    from .api_main import app as api_app

    log.info("Starting API server on %s:%d", host, port)
    uvicorn.run(
        api_app,
        host=host,
        port=port,
        log_config=None,
        timeout_graceful_shutdown=config.shutdown_grace_seconds(),
    )
    log.info("Server exiting")


@app.command("version")
def version():
    """Show version information."""
    print(version_banner())


@app.command("dns-list")
def dns_list():
    """Show popular DNS servers."""
    print("[bold]Popular DNS Servers:[/bold]")
    print("====================")
    for ip, name in POPULAR_DNS_SERVERS.items():
        print(f"{ip:<15} - {name}")
    print("\n[bold]Usage Examples:[/bold]")
    print("cdns query google.com 8.8.8.8 1.1.1.1")
    print("cdns query -j example.com 8.8.8.8")
    print("cdns query --filter A,AAAA cloudflare.com 1.1.1.1")


def main():
    app()


if __name__ == "__main__":
    main()
