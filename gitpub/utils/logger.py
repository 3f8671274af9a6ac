"""
logger.py — Logging para gitpub usando Rich + archivo.

Dual output:
- Rich console: colores para uso interactivo (cli serve, health)
- Archivo rotativo: logs/gitpub.log para el servidor y debugging post-mortem

Uso:
    from gitpub.utils.logger import get_logger, console
    logger = get_logger("gitpub.pipeline")
    logger.info("Publicando post...")
    logger.success("Commit creado")
    logger.error("El repo no existe")
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme

# No escribir archivos de log cuando corremos bajo pytest
_in_pytest = "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ

gitpub_theme = Theme({
    "info": "cyan",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "step": "bold magenta",
})

# Consola global — se usa en todo el proyecto
console = Console(theme=gitpub_theme)

# ================================================================
# File logging setup
# ================================================================

_file_logger: logging.Logger | None = None


def _setup_file_logger() -> logging.Logger:
    """Configura el logger de archivo con rotacion."""
    global _file_logger
    if _file_logger is not None:
        return _file_logger

    if _in_pytest:
        _file_logger = logging.getLogger("gitpub.null")
        _file_logger.addHandler(logging.NullHandler())
        return _file_logger

    log_dir = Path(os.environ.get("GITPUB_LOG_DIR", "logs"))
    log_dir.mkdir(exist_ok=True)

    _file_logger = logging.getLogger("gitpub.file")
    _file_logger.setLevel(logging.DEBUG)

    # Evitar handlers duplicados
    if not _file_logger.handlers:
        handler = RotatingFileHandler(
            log_dir / "gitpub.log",
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=5,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        _file_logger.addHandler(handler)

    return _file_logger


class GitpubLogger:
    """
    Logger que escribe a la consola Rich y al archivo rotativo.

    Cada modulo crea su propio logger con un nombre para
    identificar de donde viene cada mensaje.

    Args:
        name: Nombre del modulo (ej: "gitpub.commit")
    """

    def __init__(self, name: str):
        self._name = name
        self._file = _setup_file_logger()

    def debug(self, message: str) -> None:
        """Solo al archivo; la consola queda limpia."""
        self._file.debug(f"[{self._name}] {message}")

    def info(self, message: str) -> None:
        """Mensaje informativo (cyan)."""
        console.print(f"[info]i  {escape(message)}[/info]", highlight=False)
        self._file.info(f"[{self._name}] {message}")

    def success(self, message: str) -> None:
        """Mensaje de exito (verde)."""
        console.print(f"[success][OK] {escape(message)}[/success]", highlight=False)
        self._file.info(f"[{self._name}] OK: {message}")

    def warning(self, message: str) -> None:
        """Mensaje de advertencia (amarillo)."""
        console.print(f"[warning][!] {escape(message)}[/warning]", highlight=False)
        self._file.warning(f"[{self._name}] {message}")

    def error(self, message: str) -> None:
        """Mensaje de error (rojo)."""
        console.print(f"[error][X] {escape(message)}[/error]", highlight=False)
        self._file.error(f"[{self._name}] {message}")

    def step(self, number: int, total: int, message: str) -> None:
        """Paso numerado de un proceso (ej: las 5 fases del commit)."""
        console.print(f"[step]  [{number}/{total}] {escape(message)}[/step]", highlight=False)
        self._file.info(f"[{self._name}] [{number}/{total}] {message}")


def get_logger(name: str = "gitpub") -> GitpubLogger:
    """
    Obtiene un logger para el modulo especificado.

    Ejemplo:
        logger = get_logger("gitpub.media")
        logger.warning("No se pudo descargar la foto")
    """
    return GitpubLogger(name)
