"""Tests for the booklog CLI and the smoke check."""

import pytest
from click.testing import CliRunner

from booklog import __version__
from booklog.cli import cli
from booklog.smoke import SmokeTestFailure, run_smoke


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


def test_cli_help(cli_runner):
    result = cli_runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "serve" in result.output
    assert "smoke" in result.output


def test_cli_version(cli_runner):
    result = cli_runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_serve_passes_options_to_uvicorn(cli_runner, monkeypatch):
    calls = []
    monkeypatch.setattr("booklog.cli.uvicorn.run", lambda target, **kwargs: calls.append((target, kwargs)))
    result = cli_runner.invoke(cli, ["serve", "--host", "0.0.0.0", "--port", "4000"])
    assert result.exit_code == 0
    target, kwargs = calls[0]
    assert target == "booklog.main:app"
    assert kwargs["host"] == "0.0.0.0"
    assert kwargs["port"] == 4000


def test_smoke_reports_unreachable_server(cli_runner):
    result = cli_runner.invoke(cli, ["smoke", "--base-url", "http://127.0.0.1:9"])
    assert result.exit_code == 1
    assert "Smoke test failed" in result.output


def test_smoke_passes_against_app(client):
    run_smoke(client)
    # The smoke check cleans up after itself.
    assert client.get("/api/books").json()["total"] == 0


def test_smoke_fails_on_conflict(client):
    client.post("/api/books", json={"title": "Taken", "isbn13": "9780201558029"})
    with pytest.raises(SmokeTestFailure, match="Create failed"):
        run_smoke(client)
