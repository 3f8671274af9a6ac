"""
pipeline.py — Orquesta la publicación de un post de principio a fin.

    token ─► normalizar ─► clasificar ─► slug/permalink
          ─► fotos (opcional) ─► renderizar ─► commit ─► sindicar

Cada request crea su propio estado; lo único compartido entre requests
es la configuración (inmutable) y los clientes HTTP.

Uso:
    pipeline = PublishPipeline.from_config(config)
    claims = pipeline.authorize(token)
    result = pipeline.publish(body, is_json=True, site_id="blog")
    result.location  # "https://example.com/2024/05/mi-post"
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any

from gitpub.auth import TokenClaims, TokenVerifier
from gitpub.config import AppConfig, SiteConfig
from gitpub.errors import MicropubError, UnknownSiteError
from gitpub.publishing.commit_builder import CommitBuilder, CommitFileSet
from gitpub.publishing.github_api import GitHubClient
from gitpub.publishing.github_app import build_token_provider
from gitpub.publishing.media import (
    FetchedMedia,
    MediaFetcher,
    MediaReference,
    MediaResult,
)
from gitpub.publishing.normalizer import NormalizedPost, normalize
from gitpub.publishing.post_types import classify
from gitpub.publishing.renderer import ContentRenderer
from gitpub.publishing.slugs import (
    absolute_location,
    create_permalink,
    create_slug,
    post_filename,
)
from gitpub.publishing.source import SourceReader
from gitpub.publishing.syndication import (
    SyndicationResult,
    Syndicator,
    list_destinations,
)
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.pipeline")


@dataclass(frozen=True)
class PublishResult:
    """
    Resultado de una publicación exitosa.

    Attributes:
        location: Permalink absoluto (header Location del 201).
        content: Documento renderizado que se commiteó.
        post_type: Tipo con el que se clasificó.
        path: Ruta del post en el repo.
        commit_sha: Commit creado.
        media: Resultado por foto (descargada o fallback).
        syndication: Resultado de la sindicación, si se pidió.
    """
    location: str
    content: str
    post_type: str
    path: str
    commit_sha: str
    media: tuple[MediaResult, ...] = ()
    syndication: SyndicationResult | None = None


def encode_file(content: str | bytes) -> str:
    """Contenido → base64 para un blob de GitHub."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return base64.b64encode(content).decode("ascii")


class PublishPipeline:
    """
    Une todos los componentes de publicación.

    Los colaboradores se inyectan para poder testear cada paso;
    from_config() arma la versión de producción.
    """

    def __init__(
        self,
        config: AppConfig,
        verifier: TokenVerifier,
        github: GitHubClient,
        media_fetcher: MediaFetcher,
        renderer: ContentRenderer,
        commit_builder: CommitBuilder,
        syndicator: Syndicator,
    ):
        self.config = config
        self._verifier = verifier
        self._github = github
        self._media = media_fetcher
        self._renderer = renderer
        self._commits = commit_builder
        self._syndicator = syndicator
        self._source = SourceReader(github)

    @classmethod
    def from_config(cls, config: AppConfig) -> PublishPipeline:
        """Construye el pipeline de producción a partir de la configuración."""
        github = GitHubClient(
            build_token_provider(config),
            api_base=config.github.api_base,
        )
        return cls(
            config=config,
            verifier=TokenVerifier(config.micropub),
            github=github,
            media_fetcher=MediaFetcher(
                timeout=config.micropub.timeout_seconds,
                max_workers=config.micropub.max_media_workers,
            ),
            renderer=ContentRenderer(config.micropub.templates_dir or None),
            commit_builder=CommitBuilder(
                github, max_attempts=config.github.max_commit_attempts
            ),
            syndicator=Syndicator(config),
        )

    # ============================================================
    # Helpers
    # ============================================================

    def site(self, site_id: str) -> SiteConfig:
        """
        Raises:
            UnknownSiteError: si el sitio no está configurado.
        """
        site = self.config.get_site(site_id)
        if site is None:
            raise UnknownSiteError(site_id)
        return site

    def authorize(self, token: str) -> TokenClaims:
        """Verifica el token (o lo deja pasar en modo desarrollo)."""
        return self._verifier.verify(token)

    def _collect_media(
        self, post: NormalizedPost, site: SiteConfig
    ) -> tuple[list[MediaResult], list[dict[str, str]]]:
        """
        Resuelve las fotos del post.

        Returns:
            (resultados de descarga, fotos en formato {url, alt} para la plantilla)
        """
        fotos = post.get("photo")
        if not fotos:
            return [], []
        if not isinstance(fotos, list):
            fotos = [fotos]

        if not self.config.micropub.download_photos:
            refs = [MediaReference.from_value(f) for f in fotos]
            return [], [{"url": r.url, "alt": r.alt} for r in refs]

        resultados = self._media.fetch_all(fotos, site)
        return resultados, [r.to_render() for r in resultados]

    # ============================================================
    # Operaciones
    # ============================================================

    def publish(self, raw: Any, is_json: bool, site_id: str) -> PublishResult:
        """
        Publica un post nuevo.

        Raises:
            UnknownSiteError: sitio no configurado.
            MicropubError: request inválido o repo inexistente.
            PublishError: fallos de GitHub, red o plantillas.
        """
        site = self.site(site_id)
        post = normalize(raw, is_json)

        if "action" in post:
            raise MicropubError(
                "invalid_request", f"Action '{post['action']}' is not supported"
            )
        if "q" in post:
            raise MicropubError("invalid_request", "Queries must use GET")

        clasificacion = classify(post)
        slug = create_slug(post)
        permalink = create_permalink(post, site, slug)
        location = absolute_location(site, permalink)
        path = post_filename(post, slug)
        logger.info(f"Publicando {clasificacion.tag} en {path}")

        # El repo se verifica antes de bajar fotos
        repo = self.config.repo_for(site)
        ref = f"heads/{self.config.branch_for(site)}"
        self._commits.ensure_repository(repo)

        resultados, fotos = self._collect_media(post, site)

        cambios: dict[str, Any] = {
            "slug": slug,
            "type": clasificacion.tag,
            "permalink": permalink,
            "location": location,
        }
        if fotos:
            cambios["photo"] = fotos
        post = post.replace(**cambios)

        content = self._renderer.render(post, clasificacion)

        archivos = {
            r.upload_path: r.content for r in resultados if isinstance(r, FetchedMedia)
        }
        archivos[path] = encode_file(content)
        file_set = CommitFileSet(archivos)

        commit_sha = self._commits.commit(
            repo, ref, file_set, f"New {clasificacion.tag}", repo_checked=True
        )

        syndication = self._syndicator.syndicate(post, location)

        return PublishResult(
            location=location,
            content=content,
            post_type=clasificacion.tag,
            path=path,
            commit_sha=commit_sha,
            media=tuple(resultados),
            syndication=syndication,
        )

    def query(self, q: str, site_id: str, url: str | None = None) -> dict[str, Any]:
        """
        Consultas GET: config, source, syndicate-to.

        Raises:
            UnknownSiteError: sitio no configurado.
            MicropubError: invalid_request para q desconocida o source sin match.
        """
        site = self.site(site_id)

        if q == "config":
            # Sin media-endpoint todavía: objeto vacío
            return {}
        if q == "source":
            return self._source.get_source(
                url or "", self.config.repo_for(site), ref=self.config.branch_for(site)
            )
        if q == "syndicate-to":
            return list_destinations(self.config)

        raise MicropubError("invalid_request", f"Unsupported query: {q}")
