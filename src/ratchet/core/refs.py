#!/usr/bin/env python3
"""
RATCHET REFERENCES - Normalizer
-------------------------------
References travel through the engine with a protocol prefix so that
resolution can be dispatched without re-deriving the type from syntax:

    actions/checkout@v4         -> actions://actions/checkout@v4
    docker://ubuntu:24.04       -> container://ubuntu:24.04

Denormalizing strips the prefix again. Whether a reference is already
pinned is decided purely syntactically by is_absolute().

Author: Ratchet Team
Date: 2026-10-18
"""

import string
from dataclasses import dataclass

ACTIONS_PROTOCOL = "actions://"
CONTAINER_PROTOCOL = "container://"
DOCKER_SCHEME = "docker://"

_HEX = frozenset(string.hexdigits)


def normalize_actions_ref(raw: str) -> str:
    if raw.startswith(ACTIONS_PROTOCOL):
        return raw
    return ACTIONS_PROTOCOL + raw


def normalize_container_ref(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith(CONTAINER_PROTOCOL):
        return raw
    if raw.startswith(DOCKER_SCHEME):
        raw = raw[len(DOCKER_SCHEME):]
    return CONTAINER_PROTOCOL + raw


def denormalize_ref(ref: str) -> str:
    """Removes either known protocol prefix, no-op otherwise."""
    for protocol in (ACTIONS_PROTOCOL, CONTAINER_PROTOCOL):
        if ref.startswith(protocol):
            return ref[len(protocol):]
    return ref


def ref_protocol(ref: str) -> str:
    """Returns the protocol prefix of a normalized reference, or ''."""
    for protocol in (ACTIONS_PROTOCOL, CONTAINER_PROTOCOL):
        if ref.startswith(protocol):
            return protocol
    return ""


def renormalize(protocol: str, raw: str) -> str:
    """Normalizes raw text with the same protocol as an existing reference."""
    if protocol == CONTAINER_PROTOCOL:
        return normalize_container_ref(raw)
    if protocol == ACTIONS_PROTOCOL:
        return normalize_actions_ref(raw)
    return raw


def is_absolute(ref: str) -> bool:
    """
    True when the portion after the last '@' is an immutable address:
    a 40 character hex commit SHA (GitHub forbids such branch names), or
    'sha256:' followed by a 64 character hex digest.
    """
    last = ref.split("@")[-1]

    if len(last) == 40 and _is_all_hex(last):
        return True

    if len(last) == 71 and last.startswith("sha256:") and _is_all_hex(last[7:]):
        return True

    return False


def _is_all_hex(s: str) -> bool:
    return all(ch in _HEX for ch in s)


@dataclass(frozen=True)
class ActionsRef:
    owner: str
    repo: str
    path: str
    ref: str

    @property
    def name(self) -> str:
        name = f"{self.owner}/{self.repo}"
        if self.path:
            name = f"{name}/{self.path}"
        return name


def parse_actions_ref(s: str) -> ActionsRef:
    """Splits 'owner/repo[/path]@ref' into its parts."""
    owner, sep, rest = s.partition("/")
    if not sep:
        raise ValueError(f"missing owner/repo in actions reference: {s!r}")

    name, sep, ref = rest.partition("@")
    if not sep:
        raise ValueError(f"missing @ in actions reference: {s!r}")

    repo, _, path = name.partition("/")
    return ActionsRef(owner=owner, repo=repo, path=path, ref=ref)
