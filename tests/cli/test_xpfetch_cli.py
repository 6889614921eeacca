import os
import textwrap

import httpx
import pytest
import respx
from typer.testing import CliRunner

from xpfetch.cli.app import app

runner = CliRunner()

API_URL = "http://xp.test/api"
ENV = {"XPFETCH_CONTENT_API_URL": API_URL, "XPFETCH_APP_NAME": "com.example.myproject"}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("XPFETCH_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


def test_combine_prints_the_batched_query(tmp_path):
    movie = tmp_path / "movie.graphql"
    movie.write_text("query($path: ID!) { guillotine { get(key: $path) { _id } } }")
    other = tmp_path / "other.graphql"
    other.write_text("query { site { _id } }")

    result = runner.invoke(app, ["combine", str(movie), str(other)])

    assert result.exit_code == 0
    assert "request0:guillotine" in result.output
    assert "$request0_path" in result.output
    assert "Skipped" in result.output


def test_combine_fails_when_nothing_matches(tmp_path):
    other = tmp_path / "other.graphql"
    other.write_text("query { site { _id } }")

    result = runner.invoke(app, ["combine", str(other)])

    assert result.exit_code == 1


def test_config_shows_resolved_settings(tmp_path):
    (tmp_path / ".xpfetch.toml").write_text('mode = "development"\n')

    result = runner.invoke(app, ["config", "--site-root", str(tmp_path)], env=ENV)

    assert result.exit_code == 0
    assert API_URL in result.output
    assert "com-example-myproject" in result.output
    assert "development" in result.output


def test_config_reports_missing_values(tmp_path):
    result = runner.invoke(app, ["config", "--site-root", str(tmp_path)])

    assert result.exit_code == 2
    assert "Configuration error" in result.output


@respx.mock
def test_fetch_prints_the_result(tmp_path, monkeypatch):
    (tmp_path / "site_registry.py").write_text(
        textwrap.dedent(
            """
            from xpfetch.core.registry import ComponentRegistry

            registry = ComponentRegistry()
            registry.add_content_type(
                "com.example.myproject:movie",
                query="query($path: ID!) { guillotine { get(key: $path) { displayName } } }",
                view="Movie",
            )
            registry.freeze()
            """
        )
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    meta = {"_path": "/hmdb/movies/lost", "type": "com.example.myproject:movie", "components": []}
    respx.post(API_URL).mock(
        side_effect=[
            httpx.Response(200, json={"data": {"guillotine": {"get": meta}}}),
            httpx.Response(200, json={"data": {"request0": {"get": {"displayName": "Lost"}}}}),
        ]
    )

    result = runner.invoke(
        app,
        ["fetch", "movies/lost", "--registry", "site_registry:registry", "--log-level", "WARNING"],
        env=ENV,
    )

    assert result.exit_code == 0, result.output
    assert '"canRender": true' in result.output
    assert '"displayName": "Lost"' in result.output


@respx.mock
def test_fetch_exits_with_error_for_missing_content():
    respx.post(API_URL).mock(return_value=httpx.Response(200, json={"data": {"guillotine": {"get": None}}}))

    result = runner.invoke(app, ["fetch", "movies/nope", "--log-level", "WARNING"], env=ENV)

    assert result.exit_code == 1
    assert '"code": "404"' in result.output


def test_fetch_rejects_unknown_registry():
    result = runner.invoke(app, ["fetch", "movies", "--registry", "no_such_module:registry"], env=ENV)

    assert result.exit_code == 2
    assert "Cannot load registry" in result.output


def test_fetch_rejects_malformed_headers():
    result = runner.invoke(app, ["fetch", "movies", "-H", "no-equals-sign"], env=ENV)

    assert result.exit_code != 0
