"""
errors.py — Errores de gitpub.

Dos familias:
1. MicropubError: errores terminales visibles al cliente, con el
   cuerpo estandar de Micropub (https://www.w3.org/TR/micropub/#error-response)
       {"error": "<kind>", "error_description": "<texto o null>"}
2. Errores aguas abajo (GitHub, red): se propagan como PublishError
   y el API los traduce a un 502 generico.

Uso:
    from gitpub.errors import MicropubError
    raise MicropubError("invalid_request")
"""

from __future__ import annotations

from typing import Any

# kind → (status HTTP, descripcion por defecto)
ERROR_TYPES: dict[str, tuple[int, str | None]] = {
    "invalid_request": (400, "Invalid request"),
    "unauthorized": (401, None),
    "insufficient_scope": (401, "Insufficient scope information provided."),
    "invalid_repo": (422, "Repository doesn't exist."),
}


class MicropubError(Exception):
    """
    Error terminal de Micropub.

    Detiene el procesamiento del request y se serializa tal cual
    al cliente. Nunca se reintenta.

    Args:
        kind: Uno de ERROR_TYPES (ej: "invalid_request").
        description: Sobrescribe la descripcion por defecto.
    """

    def __init__(self, kind: str, description: str | None = None):
        if kind not in ERROR_TYPES:
            raise ValueError(f"Tipo de error desconocido: {kind}")
        status_code, default_description = ERROR_TYPES[kind]
        self.kind = kind
        self.status_code = status_code
        self.description = description if description is not None else default_description
        super().__init__(f"{kind}: {self.description}")

    def to_dict(self) -> dict[str, Any]:
        """Cuerpo JSON de la respuesta de error."""
        return {"error": self.kind, "error_description": self.description}


class PublishError(Exception):
    """Fallo aguas abajo no clasificado (red, API remota, template)."""

    status_code = 502


class GitHubAPIError(PublishError):
    """
    Respuesta no exitosa de la API de GitHub.

    Attributes:
        status_code_remote: Status HTTP que devolvio GitHub.
        message: Mensaje de error de GitHub (campo "message").
    """

    def __init__(self, method: str, path: str, status_code: int, message: str = ""):
        self.method = method
        self.path = path
        self.status_code_remote = status_code
        self.message = message
        super().__init__(f"GitHub {method} {path} → {status_code}: {message}")

    @property
    def is_ref_conflict(self) -> bool:
        """
        True si el update del ref fue rechazado por no ser fast-forward.

        GitHub responde 422 "Update is not a fast forward" (y a veces 409)
        cuando otro commit se metio entre la lectura del base tree y el
        update del ref.
        """
        if self.status_code_remote == 409:
            return True
        return self.status_code_remote == 422 and "fast forward" in self.message.lower()


class RefConflictError(PublishError):
    """El ref siguio en conflicto despues de todos los reintentos."""

    status_code = 409


class UnknownSiteError(LookupError):
    """El identificador de sitio de la URL no está en la configuración."""
