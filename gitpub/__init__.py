"""
gitpub — Endpoint Micropub que publica posts en repos de GitHub.

Este paquete contiene:
- publishing/ → Normalización, slugs, plantillas, fotos y commits via GitHub
- utils/      → Utilidades compartidas (logger)
- api.py      → Servidor FastAPI
- pipeline.py → Orquestación de una publicación
- cli.py      → Comandos de línea (serve, config, health)

Uso:
    python -m gitpub serve
    python -m gitpub config --validate
    python -m gitpub health
"""

__version__ = "1.0.0"
