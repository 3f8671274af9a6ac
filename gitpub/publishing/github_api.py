"""
github_api.py — Cliente mínimo de la API REST de GitHub.

Solo lo que necesita gitpub: la Git Data API (refs, commits, trees,
blobs) para commits atómicos sin clonar el repo, más búsqueda de
código y lectura de contenidos para las consultas q=source.

Cualquier respuesta no exitosa se convierte en GitHubAPIError con
el status remoto, para que CommitBuilder pueda distinguir un
conflicto de ref (reintentable) de lo demás.

Uso:
    from gitpub.publishing.github_api import GitHubClient
    client = GitHubClient(token_provider)
    sha = client.get_ref("octocat/blog", "heads/master")
"""

from __future__ import annotations

from typing import Any, Protocol

import requests

from gitpub.errors import GitHubAPIError, PublishError
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.github")

# Modo de archivo normal (no ejecutable) en un tree de Git
FILE_MODE = "100644"


class TokenProvider(Protocol):
    def get_token(self) -> str: ...


class GitHubClient:
    """
    Cliente REST de GitHub sobre requests.Session.

    Args:
        token_provider: StaticToken o GitHubApp.
        api_base: URL base (GitHub Enterprise usa otra).
        timeout: Timeout por llamada, en segundos.
        session: Sesión inyectable para tests.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        api_base: str = "https://api.github.com",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self._tokens = token_provider
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    # ============================================================
    # Transporte
    # ============================================================

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        allow_404: bool = False,
    ) -> dict[str, Any] | None:
        """
        Hace una llamada a la API y devuelve el JSON.

        Con allow_404 un 404 devuelve None en vez de explotar.
        """
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        token = self._tokens.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self._session.request(
                method,
                f"{self._api_base}{path}",
                headers=headers,
                json=json,
                params=params,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise PublishError(f"Error de conexión con GitHub: {e}") from e

        if allow_404 and response.status_code == 404:
            return None

        if not response.ok:
            try:
                message = response.json().get("message", "")
            except ValueError:
                message = response.text[:200]
            raise GitHubAPIError(method, path, response.status_code, message)

        if not response.content:
            return {}
        return response.json()

    # ============================================================
    # Repos
    # ============================================================

    def repository_exists(self, repo: str) -> bool:
        """True si el repo existe y el token puede verlo."""
        return self._request("GET", f"/repos/{repo}", allow_404=True) is not None

    # ============================================================
    # Git Data API
    # ============================================================

    def get_ref(self, repo: str, ref: str) -> str:
        """Sha del commit al que apunta un ref (ej: "heads/master")."""
        data = self._request("GET", f"/repos/{repo}/git/ref/{ref}")
        return data["object"]["sha"]

    def get_commit_tree(self, repo: str, commit_sha: str) -> str:
        """Sha del tree raíz de un commit."""
        data = self._request("GET", f"/repos/{repo}/git/commits/{commit_sha}")
        return data["tree"]["sha"]

    def create_blob(self, repo: str, content_b64: str) -> str:
        """Crea un blob desde contenido base64 y devuelve su sha."""
        data = self._request(
            "POST",
            f"/repos/{repo}/git/blobs",
            json={"content": content_b64, "encoding": "base64"},
        )
        return data["sha"]

    def create_tree(self, repo: str, entries: list[dict[str, str]], base_tree: str) -> str:
        """Crea un tree nuevo encima de base_tree con las entradas dadas."""
        data = self._request(
            "POST",
            f"/repos/{repo}/git/trees",
            json={"base_tree": base_tree, "tree": entries},
        )
        return data["sha"]

    def create_commit(self, repo: str, message: str, tree_sha: str, parent_sha: str) -> str:
        """Crea un commit con un solo padre."""
        data = self._request(
            "POST",
            f"/repos/{repo}/git/commits",
            json={"message": message, "tree": tree_sha, "parents": [parent_sha]},
        )
        return data["sha"]

    def update_ref(self, repo: str, ref: str, commit_sha: str) -> None:
        """
        Mueve el ref al commit nuevo.

        force=False: GitHub rechaza el update si no es fast-forward,
        que es justo lo que detecta una publicación concurrente.
        """
        self._request(
            "PATCH",
            f"/repos/{repo}/git/refs/{ref}",
            json={"sha": commit_sha, "force": False},
        )

    # ============================================================
    # Búsqueda y contenidos
    # ============================================================

    def search_code(self, query: str) -> dict[str, Any]:
        """Búsqueda de código: {"total_count": N, "items": [...]}"""
        return self._request("GET", "/search/code", params={"q": query}) or {}

    def get_contents(self, repo: str, path: str, ref: str | None = None) -> dict[str, Any] | None:
        """Contenido de un archivo (base64 en "content"), o None si no existe."""
        params = {"ref": ref} if ref else None
        return self._request(
            "GET", f"/repos/{repo}/contents/{path}", params=params, allow_404=True
        )
