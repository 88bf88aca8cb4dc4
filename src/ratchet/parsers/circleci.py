#!/usr/bin/env python3
"""
RATCHET PARSER - CircleCI
-------------------------
Only the `docker:` executor images are references. Orbs are left alone,
they have no immutable form to pin to.

    jobs.<id>.docker[].image
    executors.<id>.docker[].image

Author: Ratchet Team
Date: 2026-10-18
"""

from ratchet.core.models import Node, NodeKind
from ratchet.core.refs import normalize_container_ref
from ratchet.parsers.base import Parser, RefsList, mapping_values, register, scalar, sequence_items


@register
class CircleCIParser(Parser):
    name = "circleci"

    def parse_mapping(self, refs: RefsList, root: Node):
        for section in ("jobs", "executors"):
            entries = root.get(section)
            if entries is None or entries.kind is not NodeKind.MAPPING:
                continue

            for entry in mapping_values(entries):
                if entry.kind is not NodeKind.MAPPING:
                    continue
                for item in sequence_items(entry.get("docker")):
                    if item.kind is not NodeKind.MAPPING:
                        continue
                    image = scalar(item.get("image"))
                    if image is not None:
                        refs.add(normalize_container_ref(image.value), image)
