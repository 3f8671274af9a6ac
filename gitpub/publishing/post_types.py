"""
post_types.py — Clasifica un post normalizado en su tipo de contenido.

El tipo decide qué plantilla se usa para renderizar. Reglas para
h=entry, evaluadas en orden (gana la primera):

    name        → article
    in_reply_to → reply
    repost_of   → repost
    bookmark_of → bookmark
    content     → note
    (ninguna)   → dump_all

Si h no es "entry" (por ejemplo h=event) el tipo es el propio h.

Uso:
    from gitpub.publishing.post_types import classify
    tipo = classify(post)
    tipo.template_name  # "article"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class PostType(Enum):
    """Tipos de h-entry que sabemos renderizar."""
    ARTICLE = "article"
    REPLY = "reply"
    REPOST = "repost"
    BOOKMARK = "bookmark"
    NOTE = "note"
    DUMP_ALL = "dump_all"
    # h distinto de "entry": el nombre real va en Classification.tag
    OTHER = "other"


# Orden importa: article gana a note si hay name y content
ENTRY_RULES: tuple[tuple[str, PostType], ...] = (
    ("name", PostType.ARTICLE),
    ("in_reply_to", PostType.REPLY),
    ("repost_of", PostType.REPOST),
    ("bookmark_of", PostType.BOOKMARK),
    ("content", PostType.NOTE),
)


@dataclass(frozen=True)
class Classification:
    """
    Resultado de clasificar un post.

    Attributes:
        post_type: Variante del enum.
        tag: Nombre del tipo tal cual ("article", "event", ...).
    """
    post_type: PostType
    tag: str

    @property
    def template_name(self) -> str:
        """Nombre de la plantilla a buscar (sin extensión)."""
        return self.tag

    @property
    def is_entry(self) -> bool:
        return self.post_type is not PostType.OTHER


def _has_field(post: Mapping[str, Any], key: str) -> bool:
    """Un campo cuenta si está presente con cualquiera de sus dos grafías."""
    return key in post or key.replace("_", "-") in post


def classify(post: Mapping[str, Any]) -> Classification:
    """
    Clasifica un post normalizado. Determinista: mismo post, mismo tipo.

    Acepta tanto in_reply_to como in-reply-to (la grafía de Micropub).
    """
    h = str(post.get("h") or "entry")
    if h != "entry":
        return Classification(PostType.OTHER, h)

    for key, post_type in ENTRY_RULES:
        if _has_field(post, key):
            return Classification(post_type, post_type.value)

    return Classification(PostType.DUMP_ALL, PostType.DUMP_ALL.value)
