"""
cli.py — Punto de entrada de línea de comandos de gitpub (Click + Rich).

Comandos disponibles:
    python -m gitpub serve                  → Levanta el endpoint Micropub
    python -m gitpub serve --port 8080
    python -m gitpub config --show          → Muestra configuración
    python -m gitpub config --validate      → Valida configuración
    python -m gitpub health                 → Verifica configuración y plantillas

Desde código (testing):
    from click.testing import CliRunner
    CliRunner().invoke(main, ["config", "--show"])
"""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.panel import Panel
from rich.table import Table

from gitpub import __version__
from gitpub.config import AppConfig, load_config, validate_config
from gitpub.publishing.post_types import PostType
from gitpub.publishing.renderer import TEMPLATES_DIR, TEMPLATE_SUFFIX
from gitpub.utils.logger import console as rich_console
from gitpub.utils.logger import get_logger

logger = get_logger("gitpub.cli")


def _load(config_path: str | None) -> AppConfig:
    return load_config(Path(config_path) if config_path else None)


@click.group()
@click.version_option(version=__version__, prog_name="gitpub")
def main():
    """gitpub — Endpoint Micropub que publica en GitHub."""
    pass


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interfaz a escuchar")
@click.option("--port", "-p", default=4567, show_default=True, type=int, help="Puerto")
@click.option("--config", "config_path", default=None, help="Ruta a config.yaml")
def serve(host: str, port: int, config_path: str | None):
    """Levanta el servidor Micropub."""
    import uvicorn

    from gitpub.api import create_app

    cfg = _load(config_path)
    problemas = validate_config(cfg)
    for p in problemas:
        logger.warning(p)

    logger.info(f"Sirviendo {len(cfg.sites)} sitio(s) en http://{host}:{port}/micropub/<site>")
    uvicorn.run(create_app(cfg), host=host, port=port)


@main.command()
@click.option("--show", is_flag=True, default=False, help="Muestra la configuración actual")
@click.option("--validate", is_flag=True, default=False, help="Valida la configuración")
@click.option("--config", "config_path", default=None, help="Ruta a config.yaml")
def config(show: bool, validate: bool, config_path: str | None):
    """Gestiona la configuración."""
    cfg = _load(config_path)

    if show:
        tabla = Table(title="Configuración de gitpub")
        tabla.add_column("Parámetro", style="cyan")
        tabla.add_column("Valor", style="green")

        tabla.add_row("Token endpoint", cfg.micropub.token_endpoint)
        tabla.add_row(
            "Verificar tokens",
            "NO (modo desarrollo)" if cfg.micropub.skip_token_verification else "Sí",
        )
        tabla.add_row("Descargar fotos", "Sí" if cfg.micropub.download_photos else "No")
        tabla.add_row("GitHub user", cfg.github.username or "(no configurado)")
        tabla.add_row("Branch", cfg.github.branch)
        tabla.add_row("Auth", "GitHub App" if cfg.github.use_app_auth else "Access token")
        for site_id, site in cfg.sites.items():
            tabla.add_row(f"Sitio {site_id}", f"{site.site_url} → {cfg.repo_for(site)}")
        tabla.add_row(
            "Sindicación",
            ", ".join(d.uid for d in cfg.syndicate_to.values()) or "(ninguna)",
        )

        rich_console.print(tabla)

    if validate:
        problemas = validate_config(cfg)
        if problemas:
            for p in problemas:
                logger.error(p)
            sys.exit(1)
        logger.success("Configuración válida")


@main.command()
@click.option("--config", "config_path", default=None, help="Ruta a config.yaml")
def health(config_path: str | None):
    """Verifica configuración y plantillas."""
    cfg = _load(config_path)
    errores = validate_config(cfg)

    # Plantillas: cada tipo de entry necesita la suya
    directorios = [TEMPLATES_DIR]
    if cfg.micropub.templates_dir:
        directorios.insert(0, Path(cfg.micropub.templates_dir))
    for post_type in PostType:
        if post_type is PostType.OTHER:
            continue
        nombre = f"{post_type.value}{TEMPLATE_SUFFIX}"
        if any((d / nombre).is_file() for d in directorios):
            logger.success(f"Plantilla {nombre}")
        else:
            errores.append(f"Falta la plantilla {nombre}")
            logger.error(f"Plantilla {nombre}: NO encontrada")

    if cfg.micropub.skip_token_verification:
        logger.warning("Verificación de tokens desactivada (solo desarrollo)")

    if errores:
        rich_console.print(Panel(
            "\n".join(f"- {e}" for e in errores),
            title="Problemas encontrados",
            border_style="red",
        ))
        sys.exit(1)

    rich_console.print(Panel(
        "Todo funcionando correctamente",
        title="Estado de salud",
        border_style="green",
    ))


if __name__ == "__main__":
    main()
