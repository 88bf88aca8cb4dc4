#!/usr/bin/env python3
"""
RATCHET PARSER - Tekton
-----------------------
Tekton resources nest images at many depths (Task steps, sidecars,
inline taskSpecs of a Pipeline, ...). Any document with an `apiVersion`
is searched through its `spec` for every `image` key.

Author: Ratchet Team
Date: 2026-10-18
"""

from ratchet.core.models import Node, NodeKind
from ratchet.core.refs import normalize_container_ref
from ratchet.parsers.base import Parser, RefsList, register, scalar


@register
class TektonParser(Parser):
    name = "tekton"

    def parse_mapping(self, refs: RefsList, root: Node):
        if root.get("apiVersion") is None:
            return
        spec = root.get("spec")
        if spec is not None:
            self._find_images(refs, spec)

    def _find_images(self, refs: RefsList, node: Node):
        if node.kind is NodeKind.MAPPING:
            for key, value in node.pairs():
                if key.value == "image":
                    image = scalar(value)
                    if image is not None:
                        refs.add(normalize_container_ref(image.value), image)
                        continue
                self._find_images(refs, value)
        elif node.kind is NodeKind.SEQUENCE:
            for item in node.content:
                self._find_images(refs, item)
