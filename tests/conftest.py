"""
conftest.py — Fixtures compartidas: configuración de prueba y un
GitHub falso en memoria para CommitBuilder, pipeline y API.
"""

from __future__ import annotations

import copy
import itertools

import pytest

from gitpub.config import config_from_dict
from gitpub.errors import GitHubAPIError


class FakeGitHub:
    """
    Imita la Git Data API de un repo en memoria.

    Attributes:
        heads: ref → sha del commit actual.
        commits: sha → {"tree": sha, "parents": [...], "message": str}
        trees: sha → {"base_tree": sha, "entries": [...]}
        blobs: sha → contenido base64
        conflicts: cuántos update_ref rechazar como no fast-forward
    """

    def __init__(self, repos=("octocat/example.github.io",)):
        self.repos = set(repos)
        self._ids = itertools.count(1)
        self.heads = {}
        self.commits = {}
        self.trees = {}
        self.blobs = {}
        self.conflicts = 0
        self.calls = []
        self.search_results = {"total_count": 0, "items": []}
        self.contents = {}
        for repo in self.repos:
            self._seed(repo, "heads/master")

    def _sha(self, prefix):
        return f"{prefix}{next(self._ids):04d}"

    def _seed(self, repo, ref):
        tree = self._sha("tree")
        self.trees[tree] = {"base_tree": None, "entries": []}
        commit = self._sha("commit")
        self.commits[commit] = {"tree": tree, "parents": [], "message": "init"}
        self.heads[(repo, ref)] = commit

    def advance(self, repo="octocat/example.github.io", ref="heads/master"):
        """Simula que otro cliente commiteó en el ref."""
        parent = self.heads[(repo, ref)]
        commit = self._sha("commit")
        self.commits[commit] = {
            "tree": self.commits[parent]["tree"],
            "parents": [parent],
            "message": "concurrent",
        }
        self.heads[(repo, ref)] = commit
        return commit

    # --- API ---

    def repository_exists(self, repo):
        self.calls.append(("repository_exists", repo))
        return repo in self.repos

    def get_ref(self, repo, ref):
        self.calls.append(("get_ref", repo, ref))
        return self.heads[(repo, ref)]

    def get_commit_tree(self, repo, sha):
        self.calls.append(("get_commit_tree", repo, sha))
        return self.commits[sha]["tree"]

    def create_blob(self, repo, content):
        self.calls.append(("create_blob", repo))
        sha = self._sha("blob")
        self.blobs[sha] = content
        return sha

    def create_tree(self, repo, entries, base_tree):
        self.calls.append(("create_tree", repo, base_tree))
        sha = self._sha("tree")
        self.trees[sha] = {"base_tree": base_tree, "entries": list(entries)}
        return sha

    def create_commit(self, repo, message, tree_sha, parent_sha):
        self.calls.append(("create_commit", repo, message))
        sha = self._sha("commit")
        self.commits[sha] = {"tree": tree_sha, "parents": [parent_sha], "message": message}
        return sha

    def update_ref(self, repo, ref, sha):
        self.calls.append(("update_ref", repo, ref, sha))
        if self.conflicts > 0:
            self.conflicts -= 1
            self.advance(repo, ref)
            raise GitHubAPIError("PATCH", f"/repos/{repo}/git/refs/{ref}", 422,
                                 "Update is not a fast forward")
        parent = self.commits[sha]["parents"][0]
        if self.heads[(repo, ref)] != parent:
            raise GitHubAPIError("PATCH", f"/repos/{repo}/git/refs/{ref}", 422,
                                 "Update is not a fast forward")
        self.heads[(repo, ref)] = sha

    def search_code(self, query):
        self.calls.append(("search_code", query))
        return self.search_results

    def get_contents(self, repo, path, ref=None):
        self.calls.append(("get_contents", repo, path, ref))
        return self.contents.get(path)

    def count(self, name):
        return sum(1 for c in self.calls if c[0] == name)


RAW_CONFIG = {
    "micropub": {
        "token_endpoint": "https://tokens.example.com/token",
        "download_photos": True,
    },
    "github": {"username": "octocat"},
    "sites": {
        "blog": {
            "site_url": "https://example.com",
            "github_repo": "example.github.io",
            "image_dir": "img",
            "permalink_style": "/:categories/:year/:month/:day/:title",
            "full_image_urls": False,
        },
    },
    "syndicate_to": {
        "twitter": {
            "uid": "https://twitter.com/example",
            "name": "Twitter",
            "silo_pub_token": "silo-secret",
        },
    },
}


@pytest.fixture
def app_config(monkeypatch):
    """Configuración de prueba con un sitio "blog"."""
    monkeypatch.delenv("GITPUB_SKIP_TOKEN_VERIFICATION", raising=False)
    return config_from_dict(RAW_CONFIG)


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def raw_config():
    """El dict de RAW_CONFIG, copiado para poder modificarlo."""
    return copy.deepcopy(RAW_CONFIG)
