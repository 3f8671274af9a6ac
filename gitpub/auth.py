"""
auth.py — Verificación del token IndieAuth de cada request.

Flujo:
    1. Sacar el token del header "Authorization: Bearer <token>"
       o del parámetro access_token (que se elimina enseguida para
       que no viaje a ningún otro lado).
    2. Preguntarle al token endpoint configurado quién es el dueño:
       GET token_endpoint con el mismo Bearer.
    3. La respuesta (form-encoded, a veces JSON) debe traer "scope"
       y "me". Si falta alguno → insufficient_scope.

Modo desarrollo:
    micropub.skip_token_verification = true (o la variable de entorno
    GITPUB_SKIP_TOKEN_VERIFICATION=1) desactiva el paso 2. Es una
    frontera de confianza: por defecto está apagado y el servidor
    avisa en el log al arrancar si está prendido.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl

import requests

from gitpub.config import MicropubConfig
from gitpub.errors import MicropubError, PublishError
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.auth")

_BEARER = re.compile(r"Bearer\s+(.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class TokenClaims:
    """
    Lo que el token endpoint dice del token.

    Attributes:
        me: URL del dueño del token.
        scope: Scopes separados por espacio ("create update").
        client_id: App que pidió el token (si el endpoint lo manda).
    """
    me: str
    scope: str
    client_id: str = ""

    @property
    def scopes(self) -> set[str]:
        return set(self.scope.split())


# Claims del modo desarrollo
DEVELOPMENT_CLAIMS = TokenClaims(me="", scope="create", client_id="development")


def extract_token(authorization: str | None, params: Mapping[str, Any]) -> str:
    """
    Obtiene el access token del request.

    Prioridad: header Authorization, luego parámetro access_token.

    Raises:
        MicropubError: unauthorized si no hay token.
    """
    if authorization:
        match = _BEARER.match(authorization.strip())
        if match:
            return match.group(1).strip()

    token = params.get("access_token")
    if isinstance(token, list):
        token = token[0] if token else None
    if token:
        return str(token)

    logger.info("Request recibido sin token")
    raise MicropubError("unauthorized")


def parse_token_response(response: requests.Response) -> dict[str, str]:
    """Decodifica la respuesta del token endpoint (form-encoded o JSON)."""
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            data = response.json()
        except ValueError:
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}
    return dict(parse_qsl(response.text, keep_blank_values=True))


class TokenVerifier:
    """
    Verifica tokens contra el token endpoint.

    Args:
        config: Sección micropub de la configuración.
        session: requests.Session opcional (para tests o pooling).
    """

    def __init__(self, config: MicropubConfig, session: requests.Session | None = None):
        self._config = config
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return not self._config.skip_token_verification

    def verify(self, token: str) -> TokenClaims:
        """
        Pregunta al token endpoint por el token.

        Returns:
            TokenClaims con scope y me.

        Raises:
            MicropubError: insufficient_scope si faltan scope o me.
            PublishError: si el token endpoint no responde.
        """
        if not self.enabled:
            return DEVELOPMENT_CLAIMS

        try:
            response = self._session.get(
                self._config.token_endpoint,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/x-www-form-urlencoded, application/json",
                    "Authorization": f"Bearer {token}",
                },
                timeout=self._config.timeout_seconds,
            )
        except requests.RequestException as e:
            raise PublishError(f"Token endpoint inaccesible: {e}") from e

        datos = parse_token_response(response)
        if "scope" not in datos or "me" not in datos:
            logger.warning(
                f"Token rechazado por {self._config.token_endpoint} "
                f"(status {response.status_code})"
            )
            raise MicropubError("insufficient_scope")

        return TokenClaims(
            me=datos["me"],
            scope=datos["scope"],
            client_id=datos.get("client_id", ""),
        )
