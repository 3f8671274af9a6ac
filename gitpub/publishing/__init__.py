"""
publishing/ — Todo lo relacionado con convertir un request en un commit.

Módulos:
- normalizer.py     → JSON / form → NormalizedPost
- post_types.py     → Clasificación article/note/reply/...
- slugs.py          → Slug, permalink y nombre de archivo
- media.py          → Descarga de fotos con fallback por foto
- renderer.py       → Plantillas Liquid con front matter
- github_app.py     → Credenciales (PAT o GitHub App)
- github_api.py     → Cliente REST de GitHub
- commit_builder.py → Commit atómico via Git Data API
- source.py         → Consulta q=source
- syndication.py    → Sindicación best-effort via relay
"""
