"""Command line entry point: run the server or smoke-check a running one."""

from __future__ import annotations

import click
import httpx
import uvicorn

from . import __version__
from .config import get_settings
from .smoke import SmokeTestFailure, run_smoke


@click.group()
@click.version_option(version=__version__, prog_name="booklog")
def cli() -> None:
    """booklog — personal library REST service."""


@cli.command()
@click.option("--host", default=None, help="Interface to bind (default: HOST or 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Port to listen on (default: PORT or 3333).")
@click.option("--reload", is_flag=True, help="Restart on code changes (development).")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        "booklog.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_config=None,
        access_log=False,
    )


@cli.command()
@click.option("--base-url", default=None, help="Server to check (default: http://localhost:PORT).")
def smoke(base_url: str | None) -> None:
    """Create, read, list, patch and delete a book against a running server."""
    url = base_url or f"http://localhost:{get_settings().port}"
    try:
        with httpx.Client(base_url=url, timeout=10.0) as client:
            run_smoke(client)
    except (SmokeTestFailure, httpx.HTTPError) as exc:
        raise click.ClickException(f"Smoke test failed: {exc}") from exc
    click.echo("Smoke test passed.")
