"""
syndication.py — Sindicación a terceros via un relay Micropub (silo.pub).

En vez de implementar la API de cada red social, reenviamos el post
a un relay que ya lo hace. Cada destino configurado tiene su uid
(lo que el cliente manda en syndicate-to) y su token del relay.

La sindicación es best-effort: corre DESPUÉS de que el commit quedó
hecho, y si falla se loguea y se reporta en la respuesta, pero la
publicación sigue siendo exitosa.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import requests

from gitpub.config import AppConfig, SyndicationTarget
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.syndication")


@dataclass(frozen=True)
class SyndicationResult:
    """
    Resultado de sindicar a un destino.

    Attributes:
        uid: Destino.
        ok: True si el relay aceptó el post.
        url: URL del post sindicado (header Location del relay), si vino.
        error: Descripción del fallo.
    """
    uid: str
    ok: bool
    url: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"uid": self.uid, "ok": self.ok, "url": self.url, "error": self.error}


def list_destinations(config: AppConfig) -> dict[str, list[dict[str, str]]]:
    """Respuesta de q=syndicate-to: destinos sin sus tokens."""
    return {
        "syndicate-to": [d.public_dict() for d in config.syndicate_to.values()]
    }


def _requested_uid(post: Mapping[str, Any]) -> str | None:
    valor = post.get("syndicate-to")
    if isinstance(valor, list):
        return str(valor[0]) if valor else None
    return str(valor) if valor else None


class Syndicator:
    """
    Reenvía posts al relay de sindicación.

    Args:
        config: Configuración completa (destinos + endpoint del relay).
        session: requests.Session inyectable.
    """

    def __init__(self, config: AppConfig, session: requests.Session | None = None):
        self._targets = list(config.syndicate_to.values())
        self._endpoint = config.micropub.syndication_endpoint
        self._timeout = config.micropub.timeout_seconds
        self._session = session or requests.Session()

    def find_target(self, uid: str | None) -> SyndicationTarget | None:
        if uid is None:
            return None
        return next((t for t in self._targets if t.uid == uid), None)

    def syndicate(self, post: Mapping[str, Any], location: str) -> SyndicationResult | None:
        """
        Sindica el post al primer destino pedido en syndicate-to.

        Returns:
            None si no se pidió (o no se conoce) ningún destino.
        """
        uid = _requested_uid(post)
        target = self.find_target(uid)
        if target is None:
            if uid is not None:
                logger.warning(f"Destino de sindicación desconocido: {uid}")
            return None

        form_data = {"url": location, "content": post.get("content") or ""}
        if post.get("name"):
            form_data["name"] = post["name"]

        try:
            response = self._session.post(
                self._endpoint,
                headers={"Authorization": f"Bearer {target.silo_pub_token}"},
                data=form_data,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Sindicación a {target.uid} falló: {e}")
            return SyndicationResult(uid=target.uid, ok=False, error=str(e))

        url = response.headers.get("Location")
        logger.success(f"Sindicado a {target.uid}" + (f": {url}" if url else ""))
        return SyndicationResult(uid=target.uid, ok=True, url=url)
