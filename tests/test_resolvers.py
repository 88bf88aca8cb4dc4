import hashlib

import pytest
import requests

from ratchet.core.errors import UnexpectedCallError
from ratchet.core.settings import Settings
from ratchet.resolver.container import (
    ContainerResolver,
    ImageReference,
    parse_image_reference,
)
from ratchet.resolver.default import DefaultResolver
from ratchet.resolver.github import GitHubResolver, parse_version
from ratchet.resolver.stub import StubResolver

SHA = "692973e3d937129bcbf40652eb9f2f61becf3332"
DIGEST = "sha256:" + "d" * 64


class FakeResponse:
    def __init__(self, status_code=200, text="", json_body=None, headers=None,
                 links=None, content=b""):
        self.status_code = status_code
        self.text = text
        self._json = json_body
        self.headers = headers or {}
        self.links = links or {}
        self.content = content

    def json(self):
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Answers requests from a queue of (method, url prefix, response)."""

    def __init__(self, *routes):
        self.headers = {}
        self.routes = list(routes)
        self.requests = []

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        for i, (m, prefix, resp) in enumerate(self.routes):
            if m == method and url.startswith(prefix):
                del self.routes[i]
                return resp
        raise AssertionError(f"unexpected {method} {url}")


# --- GitHub --------------------------------------------------------------------

def test_github_resolve():
    session = FakeSession(
        ("GET", "https://api.github.com/repos/actions/checkout/commits/v4", FakeResponse(text=SHA + "\n")),
    )
    resolver = GitHubResolver(token="secret", session=session)

    assert resolver.resolve("actions://actions/checkout@v4") == f"actions/checkout@{SHA}"
    assert session.headers["Authorization"] == "Bearer secret"
    _, _, kwargs = session.requests[0]
    assert kwargs["headers"] == {"Accept": "application/vnd.github.sha"}


def test_github_resolve_keeps_path():
    session = FakeSession(
        ("GET", "https://ghe.example.com/api/v3/repos/org/workflows/commits/main", FakeResponse(text=SHA)),
    )
    resolver = GitHubResolver(base_url="https://ghe.example.com/api/v3/", session=session)
    assert resolver.resolve("actions://org/workflows/.github/workflows/ci.yml@main") == (
        f"org/workflows/.github/workflows/ci.yml@{SHA}"
    )


def test_github_resolve_errors():
    session = FakeSession(
        ("GET", "https://api.github.com/repos/a/b/commits/v1", FakeResponse(status_code=404)),
        ("GET", "https://api.github.com/repos/a/b/commits/v2", FakeResponse(text="<html>")),
    )
    resolver = GitHubResolver(session=session)
    with pytest.raises(requests.HTTPError):
        resolver.resolve("actions://a/b@v1")
    with pytest.raises(ValueError, match="unexpected commit sha"):
        resolver.resolve("actions://a/b@v2")
    with pytest.raises(ValueError, match="missing @"):
        resolver.resolve("actions://a/b")


def test_github_latest_version_follows_tag_pages():
    """
    PAGINATION TEST: Tags are collected across every linked page.
    """
    session = FakeSession(
        ("GET", "https://api.github.com/repos/actions/checkout/tags", FakeResponse(
            json_body=[{"name": "v4.1.1"}, {"name": "v4"}, {"name": "v3"}],
            links={"next": {"url": "https://api.github.com/repositories/1/tags?page=2"}},
        )),
        ("GET", "https://api.github.com/repositories/1/tags", FakeResponse(
            json_body=[{"name": "v2"}, {"name": "5"}, {"name": "release-9"}],
        )),
    )
    resolver = GitHubResolver(session=session)
    assert resolver.latest_version("actions://actions/checkout@v3") == "actions://actions/checkout@v4"
    assert len(session.requests) == 2


@pytest.mark.parametrize("ref", [
    "actions://actions/checkout@main",
    f"actions://actions/checkout@{SHA}",
])
def test_github_latest_version_leaves_branches_and_shas(ref):
    session = FakeSession()
    assert GitHubResolver(session=session).latest_version(ref) == ref
    assert session.requests == []


@pytest.mark.parametrize("ref, expected", [
    ("v4", ("v", (4,))),
    ("v3.1", ("v", (3, 1))),
    ("1.2.3", ("", (1, 2, 3))),
    ("main", None),
    ("v1.2.3-beta", None),
    ("", None),
])
def test_parse_version(ref, expected):
    assert parse_version(ref) == expected


# --- containers ----------------------------------------------------------------

@pytest.mark.parametrize("value, expected", [
    ("ubuntu", ImageReference("index.docker.io", "library/ubuntu", "latest")),
    ("ubuntu:20.04", ImageReference("index.docker.io", "library/ubuntu", "20.04")),
    ("docker.io/grafana/grafana:10", ImageReference("index.docker.io", "grafana/grafana", "10")),
    ("gcr.io/cloud-builders/docker", ImageReference("gcr.io", "cloud-builders/docker", "latest")),
    ("localhost:5000/app:dev", ImageReference("localhost:5000", "app", "dev")),
    (f"alpine@{DIGEST}", ImageReference("index.docker.io", "library/alpine", "latest", DIGEST)),
])
def test_parse_image_reference(value, expected):
    assert parse_image_reference(value) == expected


@pytest.mark.parametrize("value", ["", "Ubuntu:20.04", "alpine@sha256:abc", "alpine:bad tag"])
def test_parse_image_reference_invalid(value):
    with pytest.raises(ValueError):
        parse_image_reference(value)


def test_container_resolve_with_bearer_challenge():
    """
    AUTH TEST: A bearer challenge is answered with an anonymous token.
    """
    challenge = 'Bearer realm="https://auth.docker.io/token",service="registry.docker.io",scope="repository:library/ubuntu:pull"'
    manifest = "https://registry-1.docker.io/v2/library/ubuntu/manifests/20.04"
    session = FakeSession(
        ("HEAD", manifest, FakeResponse(status_code=401, headers={"WWW-Authenticate": challenge})),
        ("GET", "https://auth.docker.io/token", FakeResponse(json_body={"token": "anon"})),
        ("HEAD", manifest, FakeResponse(headers={"Docker-Content-Digest": DIGEST})),
    )
    resolver = ContainerResolver(session=session)

    assert resolver.resolve("container://ubuntu:20.04") == f"index.docker.io/library/ubuntu@{DIGEST}"

    _, _, token_kwargs = session.requests[1]
    assert token_kwargs["params"] == {"scope": "repository:library/ubuntu:pull", "service": "registry.docker.io"}
    _, _, retry_kwargs = session.requests[2]
    assert retry_kwargs["headers"]["Authorization"] == "Bearer anon"


def test_container_resolve_hashes_manifest_without_digest_header():
    body = b'{"schemaVersion":2}'
    manifest = "https://ghcr.io/v2/org/app/manifests/v1"
    session = FakeSession(
        ("HEAD", manifest, FakeResponse()),
        ("GET", manifest, FakeResponse(content=body)),
    )
    resolved = ContainerResolver(session=session).resolve("container://ghcr.io/org/app:v1")
    assert resolved == "ghcr.io/org/app@sha256:" + hashlib.sha256(body).hexdigest()


def test_container_resolve_already_pinned():
    session = FakeSession()
    value = f"alpine@{DIGEST}"
    assert ContainerResolver(session=session).resolve(f"container://{value}") == value
    assert session.requests == []


def test_container_resolve_not_found():
    manifest = "https://gcr.io/v2/nope/image/manifests/latest"
    session = FakeSession(("HEAD", manifest, FakeResponse(status_code=404)))
    with pytest.raises(requests.HTTPError):
        ContainerResolver(session=session).resolve("container://gcr.io/nope/image")


# --- dispatch & stub -------------------------------------------------------------

def test_default_resolver_dispatch():
    actions = StubResolver(resolved={"actions://a/b@v1": "a/b@" + SHA},
                           latest={"actions://a/b@v1": "actions://a/b@v2"})
    container = StubResolver(resolved={"container://alpine:3": f"alpine@{DIGEST}"})
    resolver = DefaultResolver(actions=actions, container=container)

    assert resolver.resolve("actions://a/b@v1") == "a/b@" + SHA
    assert resolver.resolve("container://alpine:3") == f"alpine@{DIGEST}"
    assert resolver.latest_version("actions://a/b@v1") == "actions://a/b@v2"
    assert resolver.latest_version("container://alpine:3") == "container://alpine:3"
    with pytest.raises(ValueError, match="missing resolver protocol"):
        resolver.resolve("a/b@v1")


def test_default_resolver_from_settings(monkeypatch):
    monkeypatch.delenv("ACTIONS_TOKEN", raising=False)
    settings = Settings(ACTIONS_BASE_URL="https://ghe.example.com/api/v3", GITHUB_TOKEN="gh")
    resolver = DefaultResolver.from_settings(settings)
    assert resolver.actions.base_url == "https://ghe.example.com/api/v3"
    assert resolver.actions.session.headers["Authorization"] == "Bearer gh"
    assert isinstance(resolver.container, ContainerResolver)


def test_stub_resolver():
    stub = StubResolver(resolved={"actions://a/b@v1": "a/b@" + SHA, "actions://x/y@v1": RuntimeError("down")})
    assert stub.resolve("actions://a/b@v1") == "a/b@" + SHA
    with pytest.raises(RuntimeError, match="down"):
        stub.resolve("actions://x/y@v1")
    with pytest.raises(UnexpectedCallError) as excinfo:
        stub.latest_version("actions://a/b@v1")
    assert excinfo.value.ref == "actions://a/b@v1"
    assert stub.call_counts()["resolve:actions://a/b@v1"] == 1
