"""
source.py — Consulta q=source: devuelve un post existente en JSON Micropub.

El cliente manda la URL pública del post. Asumimos que el último
segmento de la URL aparece en el nombre del archivo en _posts/
(https://example.com/2024/05/mi-post → 2024-05-01-mi-post.md),
buscamos ese nombre en el repo y, si hay exactamente un resultado,
lo convertimos de documento Jekyll a JSON Micropub:

    {"type": ["h-entry"],
     "properties": {"published": [...], "content": [...],
                    "slug": [...], "category": [...]}}
"""

from __future__ import annotations

import base64
import binascii
import re
from datetime import date, datetime
from typing import Any

import yaml

from gitpub.errors import MicropubError
from gitpub.publishing.github_api import GitHubClient
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.source")

# El mismo patrón que usa Jekyll (Jekyll::Document::YAML_FRONT_MATTER_REGEXP)
FRONT_MATTER = re.compile(
    r"\A(---\s*\n.*?\n?)^((---|\.\.\.)\s*$\n?)", re.MULTILINE | re.DOTALL
)


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """
    Separa front matter YAML y cuerpo de un documento Jekyll.

    Sin front matter devuelve ({}, texto completo).
    """
    match = FRONT_MATTER.match(text)
    if match is None:
        return {}, text
    datos = yaml.safe_load(match.group(1)) or {}
    if not isinstance(datos, dict):
        datos = {}
    return datos, text[match.end():]


def _as_text(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def jekyll_post_to_json(text: str) -> dict[str, Any]:
    """Convierte un documento Jekyll a su representación JSON Micropub."""
    front_matter, body = split_front_matter(text)

    properties: dict[str, Any] = {
        "published": [_as_text(front_matter.get("date"))],
        "content": [body.strip()],
    }
    if front_matter.get("title"):
        properties["name"] = [front_matter["title"]]
    if front_matter.get("permalink"):
        properties["slug"] = [front_matter["permalink"]]
    tags = front_matter.get("tags")
    if tags:
        properties["category"] = tags if isinstance(tags, list) else [tags]

    return {"type": ["h-entry"], "properties": properties}


class SourceReader:
    """Busca y decodifica posts existentes en un repo."""

    def __init__(self, client: GitHubClient):
        self._client = client

    def get_source(self, url: str, repo: str, ref: str | None = None) -> dict[str, Any]:
        """
        Devuelve el post que corresponde a una URL pública.

        Raises:
            MicropubError: invalid_request si falta la URL o no hay
                exactamente un archivo que coincida, o si el archivo no es
                texto UTF-8 (una imagen, por ejemplo).
        """
        if not url:
            raise MicropubError("invalid_request", "Missing url parameter")

        fuzzy = url.rstrip("/").split("/")[-1]
        resultado = self._client.search_code(f"filename:{fuzzy} repo:{repo}")
        total = resultado.get("total_count", 0)
        if total != 1:
            logger.warning(f"q=source para {url}: {total} coincidencias")
            raise MicropubError(
                "invalid_request",
                f"Expected exactly one post matching '{fuzzy}', found {total}",
            )

        path = resultado["items"][0]["path"]
        contenido = self._client.get_contents(repo, path, ref=ref)
        if contenido is None:
            raise MicropubError("invalid_request", f"Post not found: {path}")

        try:
            texto = base64.b64decode(contenido.get("content", "")).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise MicropubError("invalid_request", f"{path} is not a text post") from e
        return jekyll_post_to_json(texto)
