#!/usr/bin/env python3
"""
RATCHET PARSER - Google Cloud Build
-----------------------------------
The `name` of every build step is the container image it runs in.

Author: Ratchet Team
Date: 2026-10-18
"""

from ratchet.core.models import Node, NodeKind
from ratchet.core.refs import normalize_container_ref
from ratchet.parsers.base import Parser, RefsList, register, scalar, sequence_items


@register
class CloudBuildParser(Parser):
    name = "cloudbuild"

    def parse_mapping(self, refs: RefsList, root: Node):
        for step in sequence_items(root.get("steps")):
            if step.kind is not NodeKind.MAPPING:
                continue
            image = scalar(step.get("name"))
            if image is not None:
                refs.add(normalize_container_ref(image.value), image)
