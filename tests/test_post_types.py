"""
test_post_types.py — Tests para la clasificación de posts.
"""

import pytest

from gitpub.publishing.post_types import Classification, PostType, classify


class TestClassify:
    @pytest.mark.parametrize("campos, esperado", [
        ({"name": "T"}, PostType.ARTICLE),
        ({"in_reply_to": "https://x"}, PostType.REPLY),
        ({"repost_of": "https://x"}, PostType.REPOST),
        ({"bookmark_of": "https://x"}, PostType.BOOKMARK),
        ({"content": "hola"}, PostType.NOTE),
        ({}, PostType.DUMP_ALL),
    ])
    def test_reglas_basicas(self, campos, esperado):
        post = {"h": "entry", **campos}
        assert classify(post).post_type is esperado

    def test_article_gana_a_note(self):
        """name + content → article, nunca note."""
        post = {"h": "entry", "name": "Título", "content": "cuerpo"}
        assert classify(post).post_type is PostType.ARTICLE

    def test_reply_gana_a_note(self):
        post = {"h": "entry", "content": "sí", "in_reply_to": "https://x"}
        assert classify(post).post_type is PostType.REPLY

    def test_grafia_con_guiones(self):
        post = {"h": "entry", "in-reply-to": "https://x", "content": "hola"}
        assert classify(post).post_type is PostType.REPLY

    def test_h_no_entry_pasa_tal_cual(self):
        resultado = classify({"h": "event", "name": "Fiesta"})
        assert resultado.post_type is PostType.OTHER
        assert resultado.tag == "event"
        assert resultado.template_name == "event"
        assert not resultado.is_entry

    def test_h_ausente_es_entry(self):
        assert classify({"content": "x"}).post_type is PostType.NOTE

    def test_determinista(self):
        post = {"h": "entry", "name": "a", "bookmark_of": "b"}
        assert classify(post) == classify(post)

    def test_template_name_de_entry(self):
        resultado = classify({"h": "entry", "content": "x"})
        assert resultado == Classification(PostType.NOTE, "note")
        assert resultado.template_name == "note"
