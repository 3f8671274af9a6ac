"""
slugs.py — Slugs, permalinks y nombres de archivo de los posts.

Funciones puras: reciben el post normalizado (y el sitio) y devuelven
strings. El slug se calcula una sola vez y se reutiliza para el nombre
del archivo en _posts/ y para el permalink.

Prioridad del slug:
    1. "slug" explícito del cliente
    2. slugify(name)
    3. Segundos desde epoch módulo un día (ver nota abajo)

Nota sobre el slug por fecha:
    Dos posts sin nombre publicados a la misma hora del día en días
    distintos generan el mismo slug. Como el nombre del archivo lleva
    la fecha (2024-05-01-3600.md) no chocan en el repo, pero el
    permalink sí puede chocar si la plantilla no incluye la fecha.

Permalinks (variables de Jekyll, https://jekyllrb.com/docs/permalinks/):
    /:year/:month/:title → /2024/05/mi-post
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from gitpub.config import SiteConfig
from gitpub.errors import MicropubError

SECONDS_PER_DAY = 24 * 60 * 60

_SEPARATORS = re.compile(r"[\s./_]+")
_DISALLOWED = re.compile(r"[^\w\s-]", re.ASCII)
_SPACES = re.compile(r" +")
_HYPHENS = re.compile(r"-{2,}")
_TOKEN = re.compile(r":[a-z_]+")
_DOUBLE_SLASH = re.compile(r"/{2,}")

# Formatos que no entiende datetime.fromisoformat
_EXTRA_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",   # Time#to_s: 2024-05-01 10:00:00 +0000
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%a, %d %b %Y %H:%M:%S %z",
)


def slugify(text: str) -> str:
    """
    Convierte texto libre en un slug ASCII.

    Reglas:
    - Acentos fuera ("Cómo" → "como") y minúsculas
    - Espacios y separadores (. / _) se colapsan a un espacio
    - Se elimina todo lo que no sea [a-z0-9], espacio o guión
    - Espacios → guiones, sin guiones repetidos ni en los extremos

    Es idempotente: slugify(slugify(x)) == slugify(x).

    Más estricto que solo borrar caracteres: pliega acentos en vez de
    perderlos ("é" → "e") y colapsa guiones ("a - b" → "a-b").

    Ejemplos:
        "Hello World"          → "hello-world"
        "Post #1: My First!!!" → "post-1-my-first"
        "file_name.v2"         → "file-name-v2"
    """
    texto = unicodedata.normalize("NFD", str(text))
    texto = "".join(c for c in texto if unicodedata.category(c) != "Mn")
    texto = texto.lower()
    texto = _SEPARATORS.sub(" ", texto)
    texto = _DISALLOWED.sub("", texto)
    texto = _SPACES.sub(" ", texto).strip()
    texto = texto.replace(" ", "-")
    return _HYPHENS.sub("-", texto).strip("-")


def parse_published(value: Any) -> datetime:
    """
    Interpreta la fecha de publicación de un post.

    Acepta datetime, ISO 8601 (con o sin "Z") y el formato de
    Time#to_s que mandan algunos clientes. Fechas sin zona horaria
    se asumen UTC.

    Raises:
        MicropubError: invalid_request si la fecha no se entiende.
    """
    if isinstance(value, (list, tuple)) and value:
        value = value[0]

    if isinstance(value, datetime):
        fecha = value
    else:
        texto = str(value).strip()
        fecha = None
        try:
            fecha = datetime.fromisoformat(texto.replace("Z", "+00:00"))
        except ValueError:
            for formato in _EXTRA_FORMATS:
                try:
                    fecha = datetime.strptime(texto, formato)
                    break
                except ValueError:
                    continue
        if fecha is None:
            raise MicropubError("invalid_request", f"Unparseable published date: {texto}")

    if fecha.tzinfo is None:
        fecha = fecha.replace(tzinfo=timezone.utc)
    return fecha


def timestamp_slug(published: datetime) -> str:
    """Segundos desde epoch módulo un día, como string."""
    return str(int(published.timestamp()) % SECONDS_PER_DAY)


def create_slug(post: Mapping[str, Any]) -> str:
    """
    Deriva el slug de un post normalizado.

    Un "name" que queda vacío al slugificarse ("!!!") cae a la
    variante por fecha.
    """
    slug = post.get("slug")
    if isinstance(slug, (list, tuple)):
        slug = slug[0] if slug else None
    if slug:
        return str(slug)

    name = post.get("name")
    if name:
        slug_name = slugify(name)
        if slug_name:
            return slug_name

    return timestamp_slug(parse_published(post["published"]))


def permalink_variables(published: datetime, slug: str) -> dict[str, str]:
    """Valores de las variables de plantilla de Jekyll para un post."""
    return {
        ":year": published.strftime("%Y"),
        ":month": published.strftime("%m"),
        ":i_month": str(published.month),
        ":day": published.strftime("%d"),
        ":i_day": str(published.day),
        ":short_year": published.strftime("%y"),
        ":hour": published.strftime("%H"),
        ":minute": published.strftime("%M"),
        ":second": published.strftime("%S"),
        ":title": slug,
        ":categories": "",
    }


def render_permalink(template: str, published: datetime, slug: str) -> str:
    """
    Sustituye las variables de una plantilla de permalink.

    Variables desconocidas se dejan tal cual. Las barras dobles que
    quedan (por ejemplo con :categories vacío) se colapsan.
    """
    variables = permalink_variables(published, slug)
    ruta = _TOKEN.sub(lambda m: variables.get(m.group(0), m.group(0)), template)
    return _DOUBLE_SLASH.sub("/", ruta)


def create_permalink(post: Mapping[str, Any], site: SiteConfig, slug: str) -> str:
    """
    Permalink (ruta) de un post.

    El "permalink_style" del post tiene prioridad sobre el del sitio.
    """
    template = post.get("permalink_style") or site.permalink_style
    return render_permalink(str(template), parse_published(post["published"]), slug)


def absolute_location(site: SiteConfig, permalink: str) -> str:
    """URL final: site_url + permalink, sin barra doble en la unión."""
    base = site.site_url.rstrip("/")
    if not permalink.startswith("/"):
        permalink = "/" + permalink
    return base + permalink


def post_filename(post: Mapping[str, Any], slug: str) -> str:
    """Ruta del post en el repo: _posts/YYYY-MM-DD-slug.md"""
    fecha = parse_published(post["published"])
    return f"_posts/{fecha.strftime('%Y-%m-%d')}-{slug}.md"
