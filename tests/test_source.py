"""
test_source.py — Tests para q=source (post existente → JSON Micropub).
"""

import base64

import pytest

from gitpub.errors import MicropubError
from gitpub.publishing.source import SourceReader, jekyll_post_to_json, split_front_matter

REPO = "octocat/example.github.io"

POST = """---
layout: post
title: "Mi post"
date: 2024-05-01T10:00:00+00:00
permalink: /2024/05/mi-post
tags:
- python
- web
---

Contenido del post.
"""


class TestFrontMatter:
    def test_separa_front_matter(self):
        datos, cuerpo = split_front_matter(POST)
        assert datos["title"] == "Mi post"
        assert cuerpo.strip() == "Contenido del post."

    def test_sin_front_matter(self):
        assert split_front_matter("solo texto") == ({}, "solo texto")

    def test_a_json_micropub(self):
        resultado = jekyll_post_to_json(POST)
        props = resultado["properties"]
        assert resultado["type"] == ["h-entry"]
        assert props["name"] == ["Mi post"]
        assert props["content"] == ["Contenido del post."]
        assert props["slug"] == ["/2024/05/mi-post"]
        assert props["category"] == ["python", "web"]
        assert props["published"][0].startswith("2024-05-01T10:00:00")

    def test_tag_suelto_es_lista(self):
        texto = "---\ntags: solo\n---\nx\n"
        assert jekyll_post_to_json(texto)["properties"]["category"] == ["solo"]


class TestSourceReader:
    def test_un_resultado(self, fake_github):
        path = "_posts/2024-05-01-mi-post.md"
        fake_github.search_results = {"total_count": 1, "items": [{"path": path}]}
        fake_github.contents[path] = {"content": base64.b64encode(POST.encode()).decode()}

        resultado = SourceReader(fake_github).get_source(
            "https://example.com/2024/05/mi-post/", REPO, ref="master"
        )

        assert resultado["properties"]["name"] == ["Mi post"]
        assert ("search_code", f"filename:mi-post repo:{REPO}") in fake_github.calls
        assert ("get_contents", REPO, path, "master") in fake_github.calls

    @pytest.mark.parametrize("total", [0, 2])
    def test_cero_o_varios_resultados(self, fake_github, total):
        fake_github.search_results = {
            "total_count": total,
            "items": [{"path": f"_posts/{i}.md"} for i in range(total)],
        }
        with pytest.raises(MicropubError) as exc:
            SourceReader(fake_github).get_source("https://example.com/x", REPO)
        assert exc.value.kind == "invalid_request"

    def test_sin_url(self, fake_github):
        with pytest.raises(MicropubError):
            SourceReader(fake_github).get_source("", REPO)
        assert fake_github.count("search_code") == 0

    def test_archivo_binario(self, fake_github):
        """Si la búsqueda cae en una imagen, es invalid_request y no un 500."""
        path = "img/foto.jpg"
        fake_github.search_results = {"total_count": 1, "items": [{"path": path}]}
        fake_github.contents[path] = {"content": base64.b64encode(b"\xff\xd8\xff\xe0").decode()}

        with pytest.raises(MicropubError) as exc:
            SourceReader(fake_github).get_source("https://example.com/foto.jpg", REPO)
        assert exc.value.kind == "invalid_request"
        assert path in exc.value.description

    def test_base64_invalido(self, fake_github):
        path = "_posts/2024-05-01-roto.md"
        fake_github.search_results = {"total_count": 1, "items": [{"path": path}]}
        fake_github.contents[path] = {"content": "a"}

        with pytest.raises(MicropubError):
            SourceReader(fake_github).get_source("https://example.com/roto", REPO)
