#!/usr/bin/env python3
"""
RATCHET PARSER - GitLab CI
--------------------------
Every top-level key that is not a global keyword is a job. A job's
`image` and each of its `services` may be written as a plain string or
as a mapping with a `name` key:

    build:
      image: golang:1.22
      services:
        - postgres:16
        - name: redis:7
          alias: cache

Author: Ratchet Team
Date: 2026-10-18
"""

from typing import Optional

from ratchet.core.models import Node, NodeKind
from ratchet.core.refs import normalize_container_ref
from ratchet.parsers.base import Parser, RefsList, register, scalar, sequence_items

GLOBAL_KEYWORDS = frozenset({"default", "include", "stages", "variables", "workflow"})


@register
class GitLabCIParser(Parser):
    name = "gitlabci"

    def parse_mapping(self, refs: RefsList, root: Node):
        for key, job in root.pairs():
            if not key.value or key.value in GLOBAL_KEYWORDS:
                continue
            if job.kind is not NodeKind.MAPPING:
                continue

            self._add_image(refs, job.get("image"))
            for service in sequence_items(job.get("services")):
                self._add_image(refs, service)

    def _add_image(self, refs: RefsList, node: Optional[Node]):
        if node is not None and node.kind is NodeKind.MAPPING:
            node = node.get("name")
        image = scalar(node)
        if image is not None:
            refs.add(normalize_container_ref(image.value), image)
