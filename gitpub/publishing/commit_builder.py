"""
commit_builder.py — Commit atómico de varios archivos via Git Data API.

En vez de clonar el repo, armamos el commit directamente en GitHub:

    1. Verificar que el repo existe           (si no → invalid_repo)
    2. Crear un blob por archivo
    3. Leer el ref → sha del último commit → sha de su tree
    4. Crear un tree nuevo = tree base + los blobs
    5. Crear el commit (padre = último commit) y mover el ref

Hasta que el paso 5 termina, el repo no cambia: blobs y trees sueltos
no son visibles desde ningún branch.

Concurrencia:
    Dos publicaciones a la vez leen el mismo tree base. La que llega
    segunda al paso 5 no es fast-forward y GitHub la rechaza. En ese
    caso repetimos 3, 4 y 5 con una lectura fresca del ref (los blobs
    no dependen del tree base y se reutilizan), con backoff exponencial
    y un número máximo de intentos.

Uso:
    builder = CommitBuilder(client, max_attempts=3)
    sha = builder.commit("octocat/blog", "heads/master", files, "New note")
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType

from gitpub.errors import GitHubAPIError, MicropubError, RefConflictError
from gitpub.publishing.github_api import FILE_MODE, GitHubClient
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.commit")


class CommitFileSet(Mapping[str, str]):
    """
    Conjunto inmutable de archivos a commitear: {ruta: contenido base64}.

    Se construye una sola vez con todos los archivos (post renderizado
    y fotos descargadas); a partir de ahí nadie lo puede modificar.
    """

    def __init__(self, files: Mapping[str, str] | None = None):
        self._files = MappingProxyType(dict(files or {}))

    def __getitem__(self, path: str) -> str:
        return self._files[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"CommitFileSet({sorted(self._files)})"


class CommitBuilder:
    """
    Ejecuta la secuencia de 5 pasos contra un repo de GitHub.

    Args:
        client: GitHubClient autenticado.
        max_attempts: Intentos totales de los pasos 2-5 ante conflictos.
        backoff_seconds: Espera base entre intentos (se duplica).
        sleep: Inyectable para tests.
    """

    def __init__(
        self,
        client: GitHubClient,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts debe ser >= 1")
        self._client = client
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._sleep = sleep

    def ensure_repository(self, repo: str) -> None:
        """
        Paso 1: el repo tiene que existir.

        Raises:
            MicropubError: invalid_repo si el repo no existe.
        """
        logger.step(1, 5, f"Verificando repo {repo}")
        if not self._client.repository_exists(repo):
            raise MicropubError("invalid_repo")

    def commit(
        self,
        repo: str,
        ref: str,
        files: CommitFileSet,
        message: str,
        repo_checked: bool = False,
    ) -> str:
        """
        Commitea todos los archivos juntos y devuelve el sha del commit.

        Con repo_checked=True se salta el paso 1 (quien llama ya
        ejecutó ensure_repository).

        Raises:
            MicropubError: invalid_repo si el repo no existe.
            RefConflictError: si el ref sigue en conflicto tras todos los intentos.
            GitHubAPIError: cualquier otro error de la API (no se reintenta).
        """
        if not repo_checked:
            self.ensure_repository(repo)

        logger.step(2, 5, f"Creando {len(files)} blob(s)")
        blobs = {
            path: self._client.create_blob(repo, content)
            for path, content in files.items()
        }
        entries = [
            {"path": path, "mode": FILE_MODE, "type": "blob", "sha": sha}
            for path, sha in blobs.items()
        ]

        for intento in range(1, self._max_attempts + 1):
            try:
                return self._commit_on_head(repo, ref, entries, message)
            except GitHubAPIError as e:
                if not e.is_ref_conflict:
                    raise
                if intento == self._max_attempts:
                    raise RefConflictError(
                        f"{repo} {ref}: conflicto tras {intento} intentos"
                    ) from e
                espera = self._backoff * (2 ** (intento - 1))
                logger.warning(
                    f"Conflicto en {ref} (intento {intento}/{self._max_attempts}), "
                    f"reintentando en {espera:.1f}s"
                )
                self._sleep(espera)

        raise AssertionError("unreachable")

    def _commit_on_head(
        self,
        repo: str,
        ref: str,
        entries: list[dict[str, str]],
        message: str,
    ) -> str:
        """Pasos 3, 4 y 5 sobre el head actual del ref."""
        logger.step(3, 5, f"Leyendo {ref}")
        parent_sha = self._client.get_ref(repo, ref)
        base_tree = self._client.get_commit_tree(repo, parent_sha)

        logger.step(4, 5, "Creando tree")
        tree_sha = self._client.create_tree(repo, entries, base_tree=base_tree)

        logger.step(5, 5, "Creando commit y moviendo el ref")
        commit_sha = self._client.create_commit(repo, message, tree_sha, parent_sha)
        self._client.update_ref(repo, ref, commit_sha)

        logger.success(f"Commit {commit_sha[:7]} en {repo} ({message})")
        return commit_sha
