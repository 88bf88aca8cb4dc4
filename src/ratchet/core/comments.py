#!/usr/bin/env python3
"""
RATCHET COMMENT CODEC
---------------------
The unpinned constraint survives a pin as a token in the node's trailing
comment:

    uses: 'actions/checkout@692973e3...' # ratchet:actions/checkout@v4

The grammar is `[free text] ratchet:<token> [free text]`, and the sentinel
`ratchet:exclude` opts a node out of every rewrite. Comments written by
earlier runs must keep parsing to byte-identical tokens.

Author: Ratchet Team
Date: 2026-10-18
"""

from typing import Tuple

RATCHET_PREFIX = "ratchet:"
RATCHET_EXCLUDE = "ratchet:exclude"


def should_exclude(comment: str) -> bool:
    return RATCHET_EXCLUDE in (comment or "")


def extract_original(comment: str) -> Tuple[str, str]:
    """
    Returns (token, rest). The token runs from the first 'ratchet:' up to
    the next space; rest is the free text around it joined by one space.
    A comment with no token comes back unchanged as rest.
    """
    comment = comment or ""
    idx = comment.find(RATCHET_PREFIX)
    if idx < 0:
        return "", comment

    before = comment[:idx].strip()
    token, _, after = comment[idx + len(RATCHET_PREFIX):].partition(" ")
    rest = " ".join(part for part in (before, after.strip()) if part)
    return token, rest


def append_original(comment: str, token: str) -> str:
    """Replaces any existing token in the comment with the given one."""
    _, rest = extract_original(comment)
    if not rest:
        return RATCHET_PREFIX + token
    return f"{rest} {RATCHET_PREFIX}{token}"
