"""
config.py — Carga y gestiona la configuración de gitpub.

Se encarga de:
1. Cargar config.yaml (sitios, plantillas de permalink, destinos)
2. Cargar .env (secretos: tokens de GitHub, private key de la App)
3. Resolver ${VARIABLES} en los valores de config
4. Validar que la configuración esté completa

La configuración se carga UNA vez al arrancar y es inmutable
(dataclasses frozen). Cada componente la recibe explícitamente;
nada dentro del pipeline lee variables de entorno por su cuenta.

Ejemplo de config.yaml:

    micropub:
      token_endpoint: https://tokens.indieauth.com/token
      download_photos: true
    github:
      username: octocat
    sites:
      blog:
        site_url: https://example.com
        github_repo: example.github.io
        image_dir: img
        permalink_style: /:year/:month/:title
        full_image_urls: false
    syndicate_to:
      twitter:
        uid: https://twitter.com/example
        name: Twitter
        silo_pub_token: ${SILO_PUB_TWITTER_TOKEN}

Uso:
    from gitpub.config import load_config
    config = load_config()
    print(config.sites["blog"].site_url)
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


# ============================================================
# Dataclasses de configuración
# ============================================================

@dataclass(frozen=True)
class MicropubConfig:
    """Comportamiento del endpoint Micropub."""
    token_endpoint: str = "https://tokens.indieauth.com/token"
    # Solo para desarrollo local: NUNCA activar en producción.
    # Desactiva la verificación del token contra token_endpoint.
    skip_token_verification: bool = False
    download_photos: bool = False
    # Devuelve el documento renderizado en el body del 201
    echo_content: bool = False
    templates_dir: str = ""
    syndication_endpoint: str = "https://silo.pub/micropub"
    timeout_seconds: float = 15.0
    max_media_workers: int = 4


@dataclass(frozen=True)
class GitHubConfig:
    """Repositorio destino y política de commits."""
    username: str = ""
    branch: str = "master"
    max_commit_attempts: int = 3
    use_app_auth: bool = False
    api_base: str = "https://api.github.com"


@dataclass(frozen=True)
class SiteConfig:
    """Un sitio Jekyll publicado desde un repo de GitHub."""
    site_url: str = ""
    github_repo: str = ""
    image_dir: str = "img"
    permalink_style: str = "/:categories/:year/:month/:day/:title"
    full_image_urls: bool = False
    branch: str = ""


@dataclass(frozen=True)
class SyndicationTarget:
    """Destino de sindicación (relay tipo silo.pub)."""
    uid: str = ""
    name: str = ""
    silo_pub_token: str = ""

    def public_dict(self) -> dict[str, str]:
        """Representación sin el token secreto."""
        return {"uid": self.uid, "name": self.name}


@dataclass(frozen=True)
class AppConfig:
    """Configuración completa de la aplicación."""
    micropub: MicropubConfig = field(default_factory=MicropubConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    sites: dict[str, SiteConfig] = field(default_factory=dict)
    syndicate_to: dict[str, SyndicationTarget] = field(default_factory=dict)

    # Valores del .env (no están en config.yaml)
    github_access_token: str = ""
    github_app_id: str = ""
    github_app_private_key_path: str = ""
    github_app_installation_id: str = ""

    def get_site(self, site_id: str) -> SiteConfig | None:
        """Sitio configurado o None si el identificador no existe."""
        return self.sites.get(site_id)

    def repo_for(self, site: SiteConfig) -> str:
        """Repo en formato "owner/name" para un sitio."""
        return f"{self.github.username}/{site.github_repo}"

    def branch_for(self, site: SiteConfig) -> str:
        """Branch de publicación: override del sitio o el global."""
        return site.branch or self.github.branch


# ============================================================
# Funciones de carga
# ============================================================

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _resolve_env_vars(value: str) -> str:
    """
    Resuelve variables de entorno en un string.

    Ejemplo:
        "${SILO_TOKEN}" → "abc123"

    Si la variable no existe se deja el placeholder tal cual.
    """
    def reemplazar(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(0))

    return _ENV_PATTERN.sub(reemplazar, value)


def _resolve_env_recursive(data: Any) -> Any:
    """Resuelve ${VARIABLE} recursivamente en dicts y listas del YAML."""
    if isinstance(data, str):
        return _resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_recursive(item) for item in data]
    return data


def _coerce(value: Any, default: Any) -> Any:
    """
    Ajusta un valor del YAML al tipo del default de la dataclass.

    Necesario porque ${VAR} resuelto siempre es string, pero
    download_photos o max_commit_attempts no lo son.
    """
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_VALUES
        return bool(value)
    if isinstance(default, int) and isinstance(value, str):
        return int(value)
    if isinstance(default, float) and isinstance(value, (str, int)):
        return float(value)
    if isinstance(default, str) and value is None:
        return default
    return value


def _dict_to_dataclass(data: dict | None, cls: type) -> Any:
    """
    Convierte un diccionario a una dataclass, ignorando keys desconocidas.

    Un YAML con campos extra (o viejos) no debe tumbar el servidor.
    """
    data = data or {}
    defaults = cls()
    valores = {}
    for f in fields(cls):
        if f.name in data:
            valores[f.name] = _coerce(data[f.name], getattr(defaults, f.name))
    return cls(**valores)


def _find_config_dir() -> Path:
    """
    Encuentra el directorio raíz del proyecto (donde está config.yaml).

    Busca hacia arriba desde el directorio actual.
    """
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        if (parent / "config.yaml").exists():
            return parent
    return current


def config_from_dict(raw_config: dict[str, Any]) -> AppConfig:
    """
    Construye un AppConfig desde el dict ya parseado del YAML.

    Separado de load_config para que los tests armen configs
    sin tocar el filesystem.
    """
    config_resuelto = _resolve_env_recursive(raw_config or {})

    sites = {
        str(site_id): _dict_to_dataclass(site_data, SiteConfig)
        for site_id, site_data in (config_resuelto.get("sites") or {}).items()
    }
    destinos = {
        str(key): _dict_to_dataclass(dest_data, SyndicationTarget)
        for key, dest_data in (config_resuelto.get("syndicate_to") or {}).items()
    }

    micropub_raw = dict(config_resuelto.get("micropub") or {})
    # El interruptor de desarrollo también se puede activar por entorno
    env_skip = os.environ.get("GITPUB_SKIP_TOKEN_VERIFICATION")
    if env_skip is not None:
        micropub_raw["skip_token_verification"] = env_skip

    return AppConfig(
        micropub=_dict_to_dataclass(micropub_raw, MicropubConfig),
        github=_dict_to_dataclass(config_resuelto.get("github"), GitHubConfig),
        sites=sites,
        syndicate_to=destinos,
        github_access_token=os.environ.get("GITHUB_ACCESS_TOKEN", ""),
        github_app_id=os.environ.get("GITHUB_APP_ID", ""),
        github_app_private_key_path=os.environ.get("GITHUB_APP_PRIVATE_KEY_PATH", ""),
        github_app_installation_id=os.environ.get("GITHUB_APP_INSTALLATION_ID", ""),
    )


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Carga la configuración completa de gitpub.

    Pasos:
    1. Carga .env para tener las variables de entorno disponibles
    2. Lee config.yaml (o GITPUB_CONFIG si está definida)
    3. Resuelve ${VARIABLES} y convierte cada sección a su dataclass
    4. Agrega los secretos del .env

    Args:
        config_path: Ruta al config.yaml. Si es None, busca automáticamente.

    Returns:
        AppConfig inmutable.
    """
    proyecto_dir = _find_config_dir()
    env_path = proyecto_dir / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        env_config = os.environ.get("GITPUB_CONFIG")
        config_path = Path(env_config) if env_config else proyecto_dir / "config.yaml"

    if not config_path.exists():
        return config_from_dict({})

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f) or {}

    return config_from_dict(raw_config)


def validate_config(cfg: AppConfig) -> list[str]:
    """
    Revisa la configuración y devuelve la lista de problemas.

    Lista vacía = configuración válida.
    """
    problemas = []

    if not cfg.github.username:
        problemas.append("github.username no configurado")
    if not cfg.sites:
        problemas.append("No hay sitios configurados en 'sites'")
    for site_id, site in cfg.sites.items():
        if not site.site_url:
            problemas.append(f"sites.{site_id}.site_url vacío")
        if not site.github_repo:
            problemas.append(f"sites.{site_id}.github_repo vacío")

    if cfg.github.use_app_auth:
        if not (cfg.github_app_id and cfg.github_app_installation_id
                and cfg.github_app_private_key_path):
            problemas.append(
                "use_app_auth activo pero faltan GITHUB_APP_ID, "
                "GITHUB_APP_INSTALLATION_ID o GITHUB_APP_PRIVATE_KEY_PATH"
            )
    elif not cfg.github_access_token:
        problemas.append("GITHUB_ACCESS_TOKEN no configurado en .env")

    if not cfg.micropub.skip_token_verification and not cfg.micropub.token_endpoint:
        problemas.append("micropub.token_endpoint vacío")

    uids = [d.uid for d in cfg.syndicate_to.values()]
    if len(uids) != len(set(uids)):
        problemas.append("syndicate_to tiene uids duplicados")

    return problemas
