#!/usr/bin/env python3
"""
RATCHET RESOLVER - Protocol Dispatch
------------------------------------
Author: Ratchet Team
Date: 2026-10-18
"""

from typing import Optional

from ratchet.core.refs import ACTIONS_PROTOCOL, CONTAINER_PROTOCOL
from ratchet.core.settings import Settings
from ratchet.resolver.base import Resolver
from ratchet.resolver.container import ContainerResolver
from ratchet.resolver.github import GitHubResolver


class DefaultResolver(Resolver):
    """Routes each normalized reference to the resolver for its protocol."""

    def __init__(self, actions: Resolver, container: Resolver):
        self.actions = actions
        self.container = container

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "DefaultResolver":
        settings = settings or Settings()
        return cls(
            actions=GitHubResolver(
                base_url=settings.actions_base_url,
                token=settings.token,
                timeout=settings.request_timeout,
            ),
            container=ContainerResolver(timeout=settings.request_timeout),
        )

    def resolve(self, ref: str) -> str:
        return self._for(ref).resolve(ref)

    def latest_version(self, ref: str) -> str:
        if ref.startswith(CONTAINER_PROTOCOL):
            return ref
        return self._for(ref).latest_version(ref)

    def _for(self, ref: str) -> Resolver:
        if ref.startswith(ACTIONS_PROTOCOL):
            return self.actions
        if ref.startswith(CONTAINER_PROTOCOL):
            return self.container
        raise ValueError("missing resolver protocol")
