"""
test_config.py — Tests para el módulo de configuración.

Verificamos que:
1. Las variables de entorno se resuelven y se convierten al tipo correcto
2. Los valores por defecto funcionan cuando no hay archivo
3. validate_config detecta configuraciones incompletas
4. El modo desarrollo se puede activar por entorno
"""

import os
from unittest.mock import patch

import pytest

from gitpub.config import (
    AppConfig,
    SiteConfig,
    _resolve_env_recursive,
    _resolve_env_vars,
    config_from_dict,
    load_config,
    validate_config,
)


@pytest.fixture(autouse=True)
def entorno_limpio(monkeypatch, tmp_path):
    """Sin .env ni variables de gitpub del entorno real."""
    monkeypatch.chdir(tmp_path)
    for var in (
        "GITPUB_CONFIG",
        "GITPUB_SKIP_TOKEN_VERIFICATION",
        "GITHUB_ACCESS_TOKEN",
        "GITHUB_APP_ID",
        "GITHUB_APP_PRIVATE_KEY_PATH",
        "GITHUB_APP_INSTALLATION_ID",
    ):
        monkeypatch.delenv(var, raising=False)


class TestResolveEnvVars:
    def test_resuelve_variable_existente(self):
        with patch.dict("os.environ", {"MI_VAR": "hola"}):
            assert _resolve_env_vars("${MI_VAR}/path") == "hola/path"

    def test_mantiene_variable_inexistente(self):
        assert _resolve_env_vars("${NO_EXISTE_GITPUB}") == "${NO_EXISTE_GITPUB}"

    def test_recursivo(self):
        with patch.dict("os.environ", {"VAL": "ok"}):
            datos = {"a": {"b": ["${VAL}", 3]}}
            assert _resolve_env_recursive(datos) == {"a": {"b": ["ok", 3]}}


class TestConfigFromDict:
    def test_secciones(self, raw_config):
        config = config_from_dict(raw_config)
        assert config.github.username == "octocat"
        assert config.micropub.download_photos is True
        assert config.sites["blog"].github_repo == "example.github.io"
        assert config.syndicate_to["twitter"].silo_pub_token == "silo-secret"

    def test_valores_por_defecto(self):
        config = config_from_dict({})
        assert config.micropub.skip_token_verification is False
        assert config.github.branch == "master"
        assert config.sites == {}

    def test_coercion_desde_variables(self):
        """${VAR} siempre resuelve a string: se convierte al tipo del campo."""
        raw = {
            "micropub": {"download_photos": "${FOTOS}", "timeout_seconds": "5"},
            "github": {"max_commit_attempts": "${INTENTOS}"},
        }
        with patch.dict("os.environ", {"FOTOS": "true", "INTENTOS": "7"}):
            config = config_from_dict(raw)
        assert config.micropub.download_photos is True
        assert config.micropub.timeout_seconds == 5.0
        assert config.github.max_commit_attempts == 7

    def test_keys_desconocidas_se_ignoran(self):
        config = config_from_dict({"github": {"username": "x", "viejo": 1}})
        assert config.github.username == "x"

    def test_skip_por_entorno(self, monkeypatch, raw_config):
        monkeypatch.setenv("GITPUB_SKIP_TOKEN_VERIFICATION", "1")
        assert config_from_dict(raw_config).micropub.skip_token_verification is True

    def test_secretos_del_entorno(self, monkeypatch):
        monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "ghp_test")
        assert config_from_dict({}).github_access_token == "ghp_test"

    def test_inmutable(self, raw_config):
        config = config_from_dict(raw_config)
        with pytest.raises(AttributeError):
            config.github = None  # type: ignore[misc]

    def test_repo_y_branch(self, raw_config):
        config = config_from_dict(raw_config)
        site = config.sites["blog"]
        assert config.repo_for(site) == "octocat/example.github.io"
        assert config.branch_for(site) == "master"
        assert config.branch_for(SiteConfig(branch="gh-pages")) == "gh-pages"


class TestLoadConfig:
    def test_sin_archivo(self, tmp_path):
        config = load_config(tmp_path / "no-existe.yaml")
        assert isinstance(config, AppConfig)
        assert config.sites == {}

    def test_desde_yaml(self, tmp_path):
        ruta = tmp_path / "config.yaml"
        ruta.write_text(
            "github:\n  username: octocat\n"
            "sites:\n  blog:\n    site_url: https://example.com\n    github_repo: repo\n",
            encoding="utf-8",
        )
        config = load_config(ruta)
        assert config.repo_for(config.sites["blog"]) == "octocat/repo"

    def test_gitpub_config_env(self, tmp_path, monkeypatch):
        ruta = tmp_path / "otra.yaml"
        ruta.write_text("github:\n  username: desde-env\n", encoding="utf-8")
        monkeypatch.setenv("GITPUB_CONFIG", str(ruta))
        assert load_config().github.username == "desde-env"

    def test_dotenv(self, tmp_path, monkeypatch):
        (tmp_path / "config.yaml").write_text("{}\n", encoding="utf-8")
        (tmp_path / ".env").write_text("GITHUB_ACCESS_TOKEN=ghp_dotenv\n", encoding="utf-8")
        try:
            assert load_config().github_access_token == "ghp_dotenv"
        finally:
            os.environ.pop("GITHUB_ACCESS_TOKEN", None)


class TestValidateConfig:
    def test_config_valida(self, monkeypatch, raw_config):
        monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "ghp_test")
        assert validate_config(config_from_dict(raw_config)) == []

    def test_config_vacia(self):
        problemas = validate_config(config_from_dict({}))
        assert any("github.username" in p for p in problemas)
        assert any("sitios" in p for p in problemas)
        assert any("GITHUB_ACCESS_TOKEN" in p for p in problemas)

    def test_app_auth_incompleta(self, monkeypatch, raw_config):
        raw = {**raw_config, "github": {"username": "octocat", "use_app_auth": True}}
        monkeypatch.setenv("GITHUB_APP_ID", "123")
        problemas = validate_config(config_from_dict(raw))
        assert any("use_app_auth" in p for p in problemas)

    def test_uids_duplicados(self, monkeypatch, raw_config):
        monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "ghp_test")
        destino = {"uid": "https://x", "name": "X", "silo_pub_token": "t"}
        raw = {**raw_config, "syndicate_to": {"a": destino, "b": destino}}
        assert "syndicate_to tiene uids duplicados" in validate_config(config_from_dict(raw))
