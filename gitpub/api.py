"""
api.py — Servidor FastAPI del endpoint Micropub.

Endpoints:
    GET  /micropub/{site}?q=config        — Capacidades (objeto vacío)
    GET  /micropub/{site}?q=source&url=…  — Post existente en JSON Micropub
    GET  /micropub/{site}?q=syndicate-to  — Destinos de sindicación
    POST /micropub/{site}                 — Crear post (JSON o form)
    GET  /health                          — Health check para monitoreo

/publish/{site} es un alias de /micropub/{site} con los mismos handlers.

Autenticación: "Authorization: Bearer <token>" o access_token en
query/form. El access_token se saca de los parámetros antes de que
lleguen al pipeline.

Errores Micropub: {"error": "<kind>", "error_description": "..."}
Cualquier otra ruta: 404 con "404: Not Found".

Uso:
    python -m gitpub serve
    python -m gitpub serve --port 8080
"""

from __future__ import annotations

import json
import time
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from gitpub.auth import extract_token
from gitpub.config import AppConfig, load_config
from gitpub.errors import MicropubError, PublishError, UnknownSiteError
from gitpub.pipeline import PublishPipeline, PublishResult
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.api")

NOT_FOUND_BODY = "404: Not Found"

# ================================================================
# App factory
# ================================================================


def create_app(
    config: AppConfig | None = None,
    pipeline: PublishPipeline | None = None,
) -> FastAPI:
    """
    Crea la app FastAPI.

    Args:
        config: Configuración ya cargada. Si es None se lee config.yaml.
        pipeline: Pipeline existente (tests). Si es None se arma desde config.

    Returns:
        FastAPI app lista para servir.
    """
    if pipeline is None:
        pipeline = PublishPipeline.from_config(config or load_config())

    app = FastAPI(
        title="gitpub",
        description="Endpoint Micropub que publica en repos de GitHub",
        version="1.0.0",
    )
    app.state.pipeline = pipeline
    app.state.start_time = time.time()

    if pipeline.config.micropub.skip_token_verification:
        logger.warning(
            "skip_token_verification activo: los tokens NO se verifican. "
            "Solo para desarrollo local."
        )

    _register_error_handlers(app)
    _register_routes(app)
    return app


# ================================================================
# Errores
# ================================================================


def _register_error_handlers(app: FastAPI) -> None:
    """Traduce las excepciones de gitpub a respuestas HTTP."""

    @app.exception_handler(MicropubError)
    async def micropub_error(request: Request, exc: MicropubError):
        return JSONResponse(content=exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(UnknownSiteError)
    async def unknown_site(request: Request, exc: UnknownSiteError):
        return PlainTextResponse(NOT_FOUND_BODY, status_code=404)

    @app.exception_handler(PublishError)
    async def publish_error(request: Request, exc: PublishError):
        logger.error(f"Publicación fallida: {exc}")
        return JSONResponse(
            content={"error": "publish_failed", "error_description": str(exc)},
            status_code=exc.status_code,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return PlainTextResponse(NOT_FOUND_BODY, status_code=404)
        return JSONResponse(content={"error": exc.detail}, status_code=exc.status_code)


# ================================================================
# Helpers de request
# ================================================================


def _is_json(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";")[0].strip().lower() == "application/json"


async def _read_body(request: Request) -> tuple[Any, dict[str, Any]]:
    """
    Lee el body según su Content-Type.

    Returns:
        (body para el normalizador, parámetros planos para buscar access_token)

    Raises:
        MicropubError: invalid_request si el multipart trae archivos
            (las fotos se mandan como URL).
    """
    if _is_json(request):
        try:
            body = json.loads(await request.body() or b"{}")
        except ValueError as e:
            raise MicropubError("invalid_request", "Malformed JSON body") from e
        params = body if isinstance(body, dict) else {}
        return body, params

    form = await request.form()
    archivos = [k for k, v in form.multi_items() if not isinstance(v, str)]
    if archivos:
        raise MicropubError(
            "invalid_request",
            f"File uploads are not supported, send photo URLs ({', '.join(archivos)})",
        )
    pairs = list(form.multi_items())
    return pairs, dict(pairs)


async def _authorize(request: Request, params: dict[str, Any]) -> None:
    """Gate de autenticación: token presente y válido."""
    merged = {**request.query_params, **params}
    token = extract_token(request.headers.get("authorization"), merged)
    pipeline: PublishPipeline = request.app.state.pipeline
    await run_in_threadpool(pipeline.authorize, token)


def _strip_token(body: Any) -> Any:
    """Quita access_token del body antes de procesarlo."""
    if isinstance(body, dict):
        return {k: v for k, v in body.items() if k != "access_token"}
    if isinstance(body, list):
        return [(k, v) for k, v in body if k != "access_token"]
    return body


def _created_response(result: PublishResult, echo_content: bool) -> Response:
    """201 con Location; el body depende de la configuración."""
    headers = {"Location": result.location}
    if echo_content:
        return PlainTextResponse(result.content, status_code=201, headers=headers)
    if result.syndication is not None:
        return JSONResponse(
            content={"syndication": [result.syndication.to_dict()]},
            status_code=201,
            headers=headers,
        )
    return Response(status_code=201, headers=headers)


# ================================================================
# Routes
# ================================================================


def _register_routes(app: FastAPI) -> None:
    """Registra todos los endpoints."""

    @app.get("/health")
    async def health():
        """Health check: sitios configurados y uptime."""
        pipeline: PublishPipeline = app.state.pipeline
        return {
            "status": "healthy",
            "sites": sorted(pipeline.config.sites),
            "uptime_seconds": int(time.time() - app.state.start_time),
            "timestamp": datetime.now().isoformat(),
        }

    @app.get("/micropub/{site}")
    @app.get("/publish/{site}")
    async def micropub_query(site: str, request: Request):
        """Consultas Micropub (q=config|source|syndicate-to)."""
        await _authorize(request, {})
        pipeline: PublishPipeline = app.state.pipeline
        pipeline.site(site)

        q = request.query_params.get("q")
        if not q:
            return PlainTextResponse(NOT_FOUND_BODY, status_code=404)

        resultado = await run_in_threadpool(
            pipeline.query, q, site, request.query_params.get("url")
        )
        return JSONResponse(content=resultado, status_code=200)

    @app.post("/micropub/{site}")
    @app.post("/publish/{site}")
    async def micropub_create(site: str, request: Request):
        """Crea un post nuevo y responde 201 con su Location."""
        body, params = await _read_body(request)
        await _authorize(request, params)
        body = _strip_token(body)

        pipeline: PublishPipeline = app.state.pipeline
        result = await run_in_threadpool(pipeline.publish, body, _is_json(request), site)

        logger.success(f"Publicado {result.post_type}: {result.location}")
        return _created_response(result, pipeline.config.micropub.echo_content)
