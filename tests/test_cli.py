"""
test_cli.py — Tests para los comandos de línea de comandos.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from gitpub.cli import main

CONFIG_YAML = """\
github:
  username: octocat
sites:
  blog:
    site_url: https://example.com
    github_repo: example.github.io
"""


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GITPUB_SKIP_TOKEN_VERIFICATION", raising=False)
    ruta = tmp_path / "config.yaml"
    ruta.write_text(CONFIG_YAML, encoding="utf-8")
    return str(ruta)


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "gitpub" in result.output


def test_config_show(config_path):
    result = CliRunner().invoke(main, ["config", "--show", "--config", config_path])
    assert result.exit_code == 0


def test_config_validate_ok(config_path, monkeypatch):
    monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "ghp_test")
    result = CliRunner().invoke(main, ["config", "--validate", "--config", config_path])
    assert result.exit_code == 0


def test_config_validate_falla(config_path, monkeypatch):
    monkeypatch.delenv("GITHUB_ACCESS_TOKEN", raising=False)
    result = CliRunner().invoke(main, ["config", "--validate", "--config", config_path])
    assert result.exit_code == 1


def test_health(config_path, monkeypatch):
    monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "ghp_test")
    result = CliRunner().invoke(main, ["health", "--config", config_path])
    assert result.exit_code == 0


def test_health_sin_plantilla(config_path, monkeypatch, tmp_path):
    monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "ghp_test")
    monkeypatch.setattr("gitpub.cli.TEMPLATES_DIR", tmp_path / "vacio")
    result = CliRunner().invoke(main, ["health", "--config", config_path])
    assert result.exit_code == 1


def test_serve(config_path, monkeypatch):
    monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "ghp_test")
    with patch("uvicorn.run") as run:
        result = CliRunner().invoke(main, ["serve", "--port", "8080", "--config", config_path])
    assert result.exit_code == 0
    _, kwargs = run.call_args
    assert kwargs["port"] == 8080
    assert kwargs["host"] == "127.0.0.1"
