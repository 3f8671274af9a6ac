"""
test_syndication.py — Tests para la sindicación via silo.pub.
"""

from unittest.mock import MagicMock

import pytest
import requests

from gitpub.publishing.syndication import Syndicator, list_destinations

UID = "https://twitter.com/example"
LOCATION = "https://example.com/2024/05/01/hola"


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


def _ok(location="https://twitter.com/example/status/1"):
    resp = MagicMock()
    resp.headers = {"Location": location} if location else {}
    resp.raise_for_status = MagicMock()
    return resp


class TestListDestinations:
    def test_sin_tokens(self, app_config):
        resultado = list_destinations(app_config)
        assert resultado == {"syndicate-to": [{"uid": UID, "name": "Twitter"}]}
        assert "silo-secret" not in str(resultado)


class TestSyndicator:
    def test_sindica_al_destino_pedido(self, app_config, session):
        session.post.return_value = _ok()
        syndicator = Syndicator(app_config, session)

        resultado = syndicator.syndicate(
            {"syndicate-to": [UID], "content": "Hola", "name": "Título"}, LOCATION
        )

        assert resultado.ok is True
        assert resultado.url == "https://twitter.com/example/status/1"
        args, kwargs = session.post.call_args
        assert args[0] == "https://silo.pub/micropub"
        assert kwargs["headers"]["Authorization"] == "Bearer silo-secret"
        assert kwargs["data"] == {"url": LOCATION, "content": "Hola", "name": "Título"}

    def test_sin_syndicate_to(self, app_config, session):
        assert Syndicator(app_config, session).syndicate({"content": "x"}, LOCATION) is None
        session.post.assert_not_called()

    def test_destino_desconocido(self, app_config, session):
        post = {"syndicate-to": ["https://mastodon.social/@x"], "content": "x"}
        assert Syndicator(app_config, session).syndicate(post, LOCATION) is None
        session.post.assert_not_called()

    def test_fallo_del_relay(self, app_config, session):
        session.post.side_effect = requests.ConnectionError("caído")
        resultado = Syndicator(app_config, session).syndicate({"syndicate-to": UID}, LOCATION)
        assert resultado.ok is False
        assert "caído" in resultado.error
        assert resultado.to_dict()["uid"] == UID
