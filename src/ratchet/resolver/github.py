#!/usr/bin/env python3
"""
RATCHET RESOLVER - GitHub Actions
---------------------------------
Resolves `owner/repo[/path]@ref` against the GitHub REST API.

    GET /repos/{owner}/{repo}/commits/{ref}
    Accept: application/vnd.github.sha

returns the bare commit SHA for any branch, tag or SHA. Upgrades look at
the repository tags and pick the newest one written in the same shape as
the current constraint (v3 -> v4, v3.1 -> v3.4, 1.2.3 -> 1.4.0).

Author: Ratchet Team
Date: 2026-10-18
"""

import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import quote

import requests

from ratchet.core.refs import (
    ACTIONS_PROTOCOL,
    denormalize_ref,
    is_absolute,
    normalize_actions_ref,
    parse_actions_ref,
)
from ratchet.resolver.base import Resolver

logger = logging.getLogger("ratchet.resolver")

_VERSION = re.compile(r"^(v?)(\d+)(?:\.(\d+))?(?:\.(\d+))?$")
_SHA = re.compile(r"^[0-9a-fA-F]{40}$")

# Upper bound on tag pages walked for one repository
_MAX_TAG_PAGES = 10


class GitHubResolver(Resolver):

    def __init__(self, base_url: str = "https://api.github.com", token: Optional[str] = None,
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "User-Agent": "ratchet",
            "X-GitHub-Api-Version": "2022-11-28",
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def resolve(self, ref: str) -> str:
        action = parse_actions_ref(denormalize_ref(ref))

        url = f"{self.base_url}/repos/{action.owner}/{action.repo}/commits/{quote(action.ref, safe='')}"
        resp = self.session.get(url, headers={"Accept": "application/vnd.github.sha"},
                                timeout=self.timeout)
        resp.raise_for_status()

        sha = resp.text.strip()
        if not _SHA.match(sha):
            raise ValueError(f"unexpected commit sha {sha!r} for {action.name}@{action.ref}")

        logger.debug("resolved %s@%s to %s", action.name, action.ref, sha)
        return f"{action.name}@{sha}"

    def latest_version(self, ref: str) -> str:
        raw = denormalize_ref(ref)
        action = parse_actions_ref(raw)

        current = parse_version(action.ref)
        if is_absolute(raw) or current is None:
            # Branches, SHAs and free-form refs are never moved
            return normalize_actions_ref(raw)

        prefix, numbers = current
        best = numbers
        best_tag = action.ref
        for tag in self.list_tags(action.owner, action.repo):
            parsed = parse_version(tag)
            if parsed is None:
                continue
            tag_prefix, tag_numbers = parsed
            if tag_prefix != prefix or len(tag_numbers) != len(numbers):
                continue
            if tag_numbers > best:
                best, best_tag = tag_numbers, tag

        if best_tag != action.ref:
            logger.info("upgrading %s from %s to %s", action.name, action.ref, best_tag)
        return f"{ACTIONS_PROTOCOL}{action.name}@{best_tag}"

    def list_tags(self, owner: str, repo: str) -> List[str]:
        tags: List[str] = []
        url: Optional[str] = f"{self.base_url}/repos/{owner}/{repo}/tags"
        params: Optional[dict] = {"per_page": 100}

        for _ in range(_MAX_TAG_PAGES):
            if not url:
                break
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            tags.extend(item["name"] for item in resp.json() if "name" in item)

            url = resp.links.get("next", {}).get("url")
            params = None  # the next link carries its own query
        return tags


def parse_version(ref: str) -> Optional[Tuple[str, Tuple[int, ...]]]:
    """
    Returns (prefix, numbers) for version-like refs such as 'v4' or
    '1.2.3', None for anything else.
    """
    match = _VERSION.match(ref or "")
    if not match:
        return None
    prefix = match.group(1)
    numbers = tuple(int(g) for g in match.groups()[1:] if g is not None)
    return prefix, numbers
