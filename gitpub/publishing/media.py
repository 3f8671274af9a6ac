"""
media.py — Descarga las fotos referenciadas por un post.

Cada foto se procesa por separado y SIEMPRE produce un resultado:

    FetchedMedia   → se descargó; va al commit en image_dir/<archivo>
    FallbackMedia  → falló (red, status, lo que sea); el post enlaza
                     la URL original y no se sube nada

Una foto que falla nunca tumba la publicación ni afecta a las demás.

Formatos de entrada (Micropub):
    "https://example.com/a.jpg"
    {"value": "https://example.com/a.jpg", "alt": "Un gato"}
"""

from __future__ import annotations

import base64
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Union
from urllib.parse import unquote, urlparse

import requests

from gitpub.config import SiteConfig
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.media")


@dataclass(frozen=True)
class MediaReference:
    """Una foto tal como la mandó el cliente."""
    url: str
    alt: str = ""

    @classmethod
    def from_value(cls, value: Any) -> MediaReference:
        if isinstance(value, dict):
            return cls(url=str(value.get("value") or value.get("url") or ""),
                       alt=str(value.get("alt") or ""))
        return cls(url=str(value))


@dataclass(frozen=True)
class FetchedMedia:
    """
    Foto descargada.

    Attributes:
        url: URL pública con la que el post la enlaza.
        alt: Texto alternativo.
        upload_path: Ruta dentro del repo (image_dir/archivo).
        content: Contenido en base64, listo para un blob.
    """
    url: str
    alt: str
    upload_path: str
    content: str

    def to_render(self) -> dict[str, str]:
        return {"url": self.url, "alt": self.alt}


@dataclass(frozen=True)
class FallbackMedia:
    """Foto que no se pudo descargar: se enlaza la URL original."""
    url: str
    alt: str
    reason: str = ""

    def to_render(self) -> dict[str, str]:
        return {"url": self.url, "alt": self.alt}


MediaResult = Union[FetchedMedia, FallbackMedia]


def media_filename(url: str) -> str:
    """Último segmento del path de la URL ("a.jpg"), sin query string."""
    nombre = unquote(urlparse(url).path.rstrip("/").split("/")[-1])
    if not nombre:
        raise ValueError(f"URL sin nombre de archivo: {url}")
    return nombre


def upload_paths(site: SiteConfig, filename: str) -> tuple[str, str]:
    """
    (ruta en el repo, URL pública) para una foto.

    Con full_image_urls la URL pública lleva el site_url delante;
    si no, es relativa a la raíz del sitio.
    """
    upload_path = f"{site.image_dir.strip('/')}/{filename}"
    public = f"/{upload_path}"
    if site.full_image_urls:
        public = site.site_url.rstrip("/") + public
    return upload_path, public


class MediaFetcher:
    """
    Descarga fotos en paralelo, aislando los fallos por foto.

    Args:
        timeout: Timeout por descarga.
        max_workers: Descargas simultáneas.
        session: requests.Session inyectable.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        max_workers: int = 4,
        session: requests.Session | None = None,
    ):
        self._timeout = timeout
        self._max_workers = max(1, max_workers)
        self._session = session or requests.Session()

    def fetch(self, ref: MediaReference, site: SiteConfig) -> MediaResult:
        """
        Descarga una foto. Nunca lanza: cualquier error → FallbackMedia.
        """
        try:
            filename = media_filename(ref.url)
            response = self._session.get(
                ref.url, timeout=self._timeout, allow_redirects=True
            )
            response.raise_for_status()
            content = base64.b64encode(response.content).decode("ascii")
        except Exception as e:
            logger.warning(f"No se pudo descargar {ref.url}: {e}")
            return FallbackMedia(url=ref.url, alt=ref.alt, reason=str(e))

        upload_path, public_url = upload_paths(site, filename)
        logger.info(f"Foto descargada: {ref.url} → {upload_path}")
        return FetchedMedia(
            url=public_url, alt=ref.alt, upload_path=upload_path, content=content
        )

    def fetch_all(self, values: Sequence[Any], site: SiteConfig) -> list[MediaResult]:
        """
        Descarga todas las fotos; el orden del resultado es el de entrada.
        """
        refs = [MediaReference.from_value(v) for v in values]
        if not refs:
            return []
        workers = min(self._max_workers, len(refs))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda r: self.fetch(r, site), refs))
