"""
renderer.py — Renderiza un post con la plantilla Liquid de su tipo.

Cada tipo tiene su plantilla en templates/<tipo>.liquid:

    article.liquid  note.liquid  reply.liquid  repost.liquid
    bookmark.liquid dump_all.liquid

El resultado es un documento Jekyll: front matter YAML entre "---"
seguido del cuerpo. Los valores del front matter pasan por el filtro
"yaml" (serializa como JSON, que es YAML válido) para que comillas o
dos puntos en un título no rompan el documento.

Tipos que no son h-entry (h=event, ...) usan su propia plantilla si
existe y si no caen a dump_all.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

from liquid import Environment

from gitpub.errors import PublishError
from gitpub.publishing.post_types import Classification, PostType
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.renderer")

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
TEMPLATE_SUFFIX = ".liquid"

# Campos internos que no van al dump genérico
_DUMP_EXCLUDE = {"fields", "type", "location", "permalink"}


def stringify_keys(value: Any) -> Any:
    """Convierte recursivamente las keys de los dicts a str."""
    if isinstance(value, Mapping):
        return {str(k): stringify_keys(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [stringify_keys(v) for v in value]
    return value


def yaml_value(value: Any) -> str:
    """Filtro Liquid "yaml": valor seguro para el front matter."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return json.dumps(value, ensure_ascii=False, default=str)


class ContentRenderer:
    """
    Elige y renderiza la plantilla de un post.

    Args:
        templates_dir: Directorio con plantillas propias del usuario.
            Las que falten se buscan en las plantillas incluidas.
    """

    def __init__(self, templates_dir: str | Path | None = None):
        self._search_path = [TEMPLATES_DIR]
        if templates_dir:
            self._search_path.insert(0, Path(templates_dir))
        self._env = Environment()
        self._env.filters["yaml"] = yaml_value
        self._cache: dict[Path, Any] = {}

    def find_template(self, classification: Classification) -> Path:
        """
        Ruta de la plantilla para una clasificación.

        Raises:
            PublishError: si ni siquiera existe dump_all.
        """
        nombres = [classification.template_name]
        if classification.post_type is PostType.OTHER:
            nombres.append(PostType.DUMP_ALL.value)

        for nombre in nombres:
            for directorio in self._search_path:
                ruta = directorio / f"{nombre}{TEMPLATE_SUFFIX}"
                if ruta.is_file():
                    return ruta

        raise PublishError(f"No hay plantilla para el tipo '{classification.tag}'")

    def _load(self, ruta: Path) -> Any:
        if ruta not in self._cache:
            self._cache[ruta] = self._env.from_string(ruta.read_text(encoding="utf-8"))
        return self._cache[ruta]

    def render(self, post: Mapping[str, Any], classification: Classification) -> str:
        """
        Renderiza el post y devuelve el documento completo.

        Además de los campos del post, la plantilla recibe "fields":
        la lista [{name, value}] que usa dump_all para volcar todo.
        """
        ruta = self.find_template(classification)
        contexto = stringify_keys(post)
        contexto["fields"] = [
            {"name": k, "value": v}
            for k, v in contexto.items()
            if k not in _DUMP_EXCLUDE
        ]

        logger.debug(f"Renderizando {classification.tag} con {ruta.name}")
        return self._load(ruta).render(**contexto)
