"""utils/ — Utilidades compartidas."""
