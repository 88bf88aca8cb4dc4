#!/usr/bin/env python3
"""
RATCHET RESOLVER - Container Images
-----------------------------------
Resolves image references to manifest digests with the OCI distribution
API. The manifest is requested with HEAD; registries that answer with a
bearer challenge (Docker Hub, GHCR, ...) get an anonymous token first.

    ubuntu:24.04 -> index.docker.io/library/ubuntu@sha256:...

Author: Ratchet Team
Date: 2026-10-18
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from ratchet.core.refs import denormalize_ref
from ratchet.resolver.base import Resolver

logger = logging.getLogger("ratchet.resolver")

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"

# Docker Hub serves the API from a different host than its canonical name
_API_HOSTS = {DEFAULT_REGISTRY: "registry-1.docker.io"}

_MANIFEST_TYPES = ", ".join([
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
])

_REPO = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*(?:/[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*)*$")
_TAG = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST = re.compile(r"^sha256:[0-9a-fA-F]{64}$")
_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


@dataclass(frozen=True)
class ImageReference:
    registry: str
    repository: str
    tag: str = DEFAULT_TAG
    digest: str = ""

    @property
    def name(self) -> str:
        return f"{self.registry}/{self.repository}"

    @property
    def identifier(self) -> str:
        return self.digest or self.tag


def parse_image_reference(value: str) -> ImageReference:
    """Parses `[registry/]repository[:tag][@digest]` with Docker Hub defaults."""
    rest = value.strip()
    if not rest:
        raise ValueError("empty image reference")

    digest = ""
    if "@" in rest:
        rest, digest = rest.rsplit("@", 1)
        if not _DIGEST.match(digest):
            raise ValueError(f"invalid digest {digest!r} in image reference {value!r}")

    tag = DEFAULT_TAG
    last = rest.rfind("/")
    colon = rest.rfind(":")
    if colon > last:
        rest, tag = rest[:colon], rest[colon + 1:]
        if not _TAG.match(tag):
            raise ValueError(f"invalid tag {tag!r} in image reference {value!r}")

    registry = DEFAULT_REGISTRY
    first, sep, remainder = rest.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        registry, rest = first, remainder
    if registry == "docker.io":
        registry = DEFAULT_REGISTRY
    if registry == DEFAULT_REGISTRY and "/" not in rest:
        rest = f"library/{rest}"

    if not _REPO.match(rest):
        raise ValueError(f"invalid repository {rest!r} in image reference {value!r}")

    return ImageReference(registry=registry, repository=rest, tag=tag, digest=digest)


class ContainerResolver(Resolver):

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self._tokens: Dict[str, str] = {}

    def resolve(self, ref: str) -> str:
        value = denormalize_ref(ref)
        image = parse_image_reference(value)
        if image.digest:
            return value

        digest = self._manifest_digest(image)
        logger.debug("resolved %s:%s to %s", image.name, image.tag, digest)
        return f"{image.name}@{digest}"

    def latest_version(self, ref: str) -> str:
        # Tags carry no ordering that could be upgraded safely
        return ref

    def _manifest_url(self, image: ImageReference) -> str:
        host = _API_HOSTS.get(image.registry, image.registry)
        scheme = "http" if host.startswith(("localhost", "127.0.0.1")) else "https"
        return f"{scheme}://{host}/v2/{image.repository}/manifests/{image.identifier}"

    def _manifest_digest(self, image: ImageReference) -> str:
        url = self._manifest_url(image)
        resp = self._request("HEAD", url, image)
        resp.raise_for_status()

        digest = resp.headers.get("Docker-Content-Digest", "")
        if _DIGEST.match(digest):
            return digest

        # Some registries omit the header on HEAD, hash the manifest instead
        resp = self._request("GET", url, image)
        resp.raise_for_status()
        return "sha256:" + hashlib.sha256(resp.content).hexdigest()

    def _request(self, method: str, url: str, image: ImageReference) -> requests.Response:
        headers = {"Accept": _MANIFEST_TYPES}
        token = self._tokens.get(image.name)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        resp = self.session.request(method, url, headers=headers, timeout=self.timeout)
        if resp.status_code != 401 or token:
            return resp

        challenge = resp.headers.get("WWW-Authenticate", "")
        token = self._anonymous_token(challenge, image)
        if not token:
            return resp

        self._tokens[image.name] = token
        headers["Authorization"] = f"Bearer {token}"
        return self.session.request(method, url, headers=headers, timeout=self.timeout)

    def _anonymous_token(self, challenge: str, image: ImageReference) -> Optional[str]:
        scheme, _, params = challenge.partition(" ")
        if scheme.lower() != "bearer":
            return None

        fields = dict(_CHALLENGE_PARAM.findall(params))
        realm = fields.get("realm")
        if not realm:
            return None

        query = {"scope": fields.get("scope") or f"repository:{image.repository}:pull"}
        if fields.get("service"):
            query["service"] = fields["service"]

        resp = self.session.get(realm, params=query, timeout=self.timeout)
        resp.raise_for_status()
        body = resp.json()
        return body.get("token") or body.get("access_token")
