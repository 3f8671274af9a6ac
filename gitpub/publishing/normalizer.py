"""
normalizer.py — Convierte un request Micropub en un post canónico.

Micropub permite dos codificaciones para crear posts:

    JSON (application/json):
        {"type": ["h-entry"],
         "properties": {"content": ["Hola"], "category": ["a", "b"]}}

    Form (application/x-www-form-urlencoded / multipart):
        h=entry&content=Hola&category[]=a&category[]=b

Ambas terminan en el mismo NormalizedPost:

    {"h": "entry", "content": "Hola", "category": ["a", "b"],
     "published": "2024-05-01T10:00:00+00:00"}

Extra no estándar: si el contenido empieza con un heading markdown
("# Título") y el cliente no mandó name, el heading se vuelve el name
y se quita del contenido.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime, timezone
from typing import Any

from gitpub.errors import MicropubError

# Campos de ruteo que nunca son parte del post
ROUTING_KEYS = ("site", "splat", "captures", "access_token")

# Siempre listas en form-encoded, aunque venga un solo valor
LIST_KEYS = ("photo", "syndicate-to", "category")

# Propiedades JSON de un solo valor que se desenvuelven de su lista
SINGLE_VALUED = (
    "name", "published", "slug", "mp-slug", "summary", "permalink_style",
    "in-reply-to", "repost-of", "bookmark-of", "like-of",
)

# Grafía Micropub → nombre usable desde las plantillas Liquid
KEY_ALIASES = {
    "in-reply-to": "in_reply_to",
    "repost-of": "repost_of",
    "bookmark-of": "bookmark_of",
    "like-of": "like_of",
    "mp-slug": "slug",
}

# Heading ATX en la primera línea, seguido de al menos un salto de línea
_HEADING = re.compile(r"\A#{1,6}[ \t]+(\S[^\n]*?)[ \t]*\n+")


class NormalizedPost(Mapping[str, Any]):
    """
    Post canónico, de solo lectura.

    Se comporta como un dict inmutable. Para el backfill de slug y
    type el pipeline usa replace(), que devuelve una copia nueva.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any]):
        self._data = dict(data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"NormalizedPost({self._data!r})"

    def replace(self, **changes: Any) -> NormalizedPost:
        """Copia con los campos dados reemplazados."""
        datos = dict(self._data)
        datos.update(changes)
        return NormalizedPost(datos)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


# ============================================================
# Heurística markdown
# ============================================================

def extract_markdown_title(content: str) -> tuple[str | None, str]:
    """
    Separa un heading markdown inicial del resto del contenido.

    Solo mira la PRIMERA línea y solo una vez:
    - "# Hola\\n\\nMundo"   → ("Hola", "Mundo")
    - "## A\\n# B\\ntexto"  → ("A", "# B\\ntexto")  (no recursivo)
    - "Texto\\n# Hola\\n"   → (None, contenido intacto)
    - "# Hola" sin salto   → (None, contenido intacto)
    - "#hashtag\\n..."     → (None, ...) (sin espacio no es heading)

    Returns:
        (título o None, contenido restante)
    """
    match = _HEADING.match(content)
    if match is None:
        return None, content
    return match.group(1).strip(), content[match.end():]


# ============================================================
# Codificaciones
# ============================================================

def _strip_routing(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in ROUTING_KEYS}


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _json_content(value: Any) -> Any:
    """content puede ser ["texto"] o [{"html": "...", "value": "..."}]."""
    primero = _first(value)
    if isinstance(primero, dict):
        return primero.get("html", primero.get("value"))
    return primero


def normalize_json(body: Any) -> dict[str, Any]:
    """
    Normaliza un body Micropub JSON.

    - type[0] sin el prefijo "h-" → h
    - properties se sube al nivel superior
    - content expone su html (o el primer valor plano)
    - name y las demás propiedades de un solo valor se desenvuelven
    """
    if not isinstance(body, dict):
        raise MicropubError("invalid_request", "JSON body must be an object")

    post = _strip_routing(body)
    if not post:
        raise MicropubError("invalid_request")

    tipos = post.pop("type", None)
    if tipos:
        h = str(_first(tipos))
        post["h"] = h[2:] if h.startswith("h-") else h

    propiedades = post.pop("properties", None)
    if isinstance(propiedades, dict):
        post.update(propiedades)

    if "content" in post:
        post["content"] = _json_content(post["content"])

    for key in SINGLE_VALUED:
        if key in post:
            post[key] = _first(post[key])

    return post


def _iter_pairs(fields: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> Iterator[tuple[str, Any]]:
    if isinstance(fields, Mapping):
        for key, value in fields.items():
            if isinstance(value, list):
                for item in value:
                    yield key, item
            else:
                yield key, value
    else:
        yield from fields


def normalize_form(fields: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """
    Normaliza un body form-encoded.

    Acepta un dict o la lista de pares (key, value) de un multi-dict,
    para no perder valores repetidos. "category[]" se junta con
    "category". photo, syndicate-to y category siempre son listas.
    """
    post: dict[str, Any] = {}
    for raw_key, value in _iter_pairs(fields):
        key = raw_key[:-2] if raw_key.endswith("[]") else raw_key
        if key in post:
            actual = post[key]
            post[key] = (actual if isinstance(actual, list) else [actual]) + [value]
        elif raw_key.endswith("[]"):
            post[key] = [value]
        else:
            post[key] = value

    post = _strip_routing(post)
    if not post:
        raise MicropubError("invalid_request")

    for key in LIST_KEYS:
        if key in post and not isinstance(post[key], list):
            post[key] = [post[key]]

    return post


# ============================================================
# Entrada principal
# ============================================================

def _apply_aliases(post: dict[str, Any]) -> None:
    for micropub_key, alias in KEY_ALIASES.items():
        if micropub_key in post and alias not in post:
            post[alias] = post.pop(micropub_key)


def normalize(raw: Any, is_json: bool, now: datetime | None = None) -> NormalizedPost:
    """
    Convierte un request (JSON o form) en un NormalizedPost.

    Args:
        raw: Body JSON ya parseado, o los campos del form.
        is_json: True si el Content-Type era application/json.
        now: Reloj inyectable para published por defecto.

    Sin h el post es un h-entry (el tipo por defecto de Micropub).

    Raises:
        MicropubError: invalid_request si el post queda vacío.
    """
    post = normalize_json(raw) if is_json else normalize_form(raw)

    if not post:
        raise MicropubError("invalid_request", "Request has no recognized fields")
    post.setdefault("h", "entry")

    _apply_aliases(post)

    content = post.get("content")
    if isinstance(content, str) and not post.get("name"):
        titulo, cuerpo = extract_markdown_title(content)
        if titulo is not None:
            post["name"] = titulo
            post["content"] = cuerpo

    if not post.get("published"):
        reloj = now or datetime.now(timezone.utc)
        post["published"] = reloj.isoformat(timespec="seconds")

    return NormalizedPost(post)
