"""
__main__.py — Permite ejecutar gitpub como módulo.

    python -m gitpub serve --port 8080
"""

from gitpub.cli import main

if __name__ == "__main__":
    main()
