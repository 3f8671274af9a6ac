"""
github_app.py — Credenciales para la API de GitHub.

Dos formas de autenticarse:

1. Personal Access Token (GITHUB_ACCESS_TOKEN): lo más simple.
2. GitHub App: permisos granulares, no atada a una cuenta personal.
   Los commits aparecen como "<app> [bot]".

Flujo de la GitHub App (JWT → Installation Token):
    1. Leer la private key (.pem)
    2. Generar un JWT firmado con RS256 (válido 10 min)
    3. Intercambiar el JWT por un Installation Access Token (1 hora)
    4. Renovarlo automáticamente cuando está por expirar

Permisos necesarios en la App:
    - contents: write (blobs, trees, commits, refs)
    - metadata: read

Uso:
    from gitpub.publishing.github_app import build_token_provider
    provider = build_token_provider(config)
    token = provider.get_token()
"""

from __future__ import annotations

import threading
import time
from pathlib import Path

import jwt
import requests

from gitpub.config import AppConfig
from gitpub.errors import PublishError
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.github")


class StaticToken:
    """Personal Access Token fijo."""

    def __init__(self, token: str):
        self._token = token

    def get_token(self) -> str:
        return self._token

    def is_configured(self) -> bool:
        return bool(self._token)


class GitHubApp:
    """
    Gestiona la autenticación como GitHub App.

    El installation token se cachea y se comparte entre requests;
    el lock evita que dos requests concurrentes lo renueven a la vez.

    Args:
        app_id: ID numérico de la GitHub App
        private_key_path: Ruta al .pem (o el PEM mismo, para CI)
        installation_id: ID de la instalación
        api_base: URL base de la API de GitHub
    """

    def __init__(
        self,
        app_id: str,
        private_key_path: str,
        installation_id: str,
        api_base: str = "https://api.github.com",
    ):
        self._app_id = app_id
        self._private_key_path = private_key_path
        self._installation_id = installation_id
        self._api_base = api_base.rstrip("/")

        self._token: str | None = None
        self._token_expires_at: float = 0
        self._lock = threading.Lock()

        self._private_key = self._load_private_key()

    def _load_private_key(self) -> str:
        """
        Carga la private key desde el archivo .pem.

        Si la variable trae el PEM directamente (GitHub Actions, Docker
        secrets) se usa tal cual.

        Raises:
            FileNotFoundError: Si no es un PEM ni un archivo existente.
        """
        if self._private_key_path.startswith("-----BEGIN"):
            return self._private_key_path

        path = Path(self._private_key_path)
        if not path.exists():
            raise FileNotFoundError(
                f"No se encontró la private key en: {path}\n"
                "Descárgala desde la configuración de tu GitHub App."
            )
        return path.read_text(encoding="utf-8")

    def _generate_jwt(self) -> str:
        """
        Genera el JWT de la App firmado con RS256.

        Campos:
        - iss: ID de la app
        - iat: ahora - 60s (margen por relojes desfasados)
        - exp: ahora + 10 min (máximo que acepta GitHub)
        """
        ahora = int(time.time())
        payload = {
            "iss": self._app_id,
            "iat": ahora - 60,
            "exp": ahora + (10 * 60),
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    def get_token(self) -> str:
        """
        Obtiene un Installation Access Token válido.

        Raises:
            PublishError: Si GitHub rechaza el JWT o no responde.
        """
        with self._lock:
            if self._token and time.time() < self._token_expires_at:
                return self._token

            url = (
                f"{self._api_base}/app/installations/"
                f"{self._installation_id}/access_tokens"
            )
            headers = {
                "Authorization": f"Bearer {self._generate_jwt()}",
                "Accept": "application/vnd.github+json",
            }

            try:
                response = requests.post(url, headers=headers, timeout=30)
                response.raise_for_status()
            except requests.RequestException as e:
                raise PublishError(
                    f"Error al obtener Installation Token: {e}\n"
                    "Verifica GITHUB_APP_ID, GITHUB_APP_INSTALLATION_ID y la private key."
                ) from e

            self._token = response.json()["token"]
            # El token dura 1 hora; renovamos 5 min antes
            self._token_expires_at = time.time() + (55 * 60)

            logger.success("Autenticación GitHub App exitosa")
            return self._token  # type: ignore[return-value]

    def is_configured(self) -> bool:
        return bool(self._app_id and self._installation_id and self._private_key)


def build_token_provider(config: AppConfig) -> StaticToken | GitHubApp:
    """Elige PAT o GitHub App según github.use_app_auth."""
    if config.github.use_app_auth:
        return GitHubApp(
            app_id=config.github_app_id,
            private_key_path=config.github_app_private_key_path,
            installation_id=config.github_app_installation_id,
            api_base=config.github.api_base,
        )
    return StaticToken(config.github_access_token)
