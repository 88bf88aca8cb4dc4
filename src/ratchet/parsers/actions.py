#!/usr/bin/env python3
"""
RATCHET PARSER - GitHub Actions
-------------------------------
Workflow files:
    jobs.<id>.container.image        (or the `container: image` shorthand)
    jobs.<id>.services.<id>.image
    jobs.<id>.steps[].uses
    jobs.<id>.uses                   (reusable workflows)

Composite action metadata (action.yml with `runs.using: composite`):
    runs.steps[].uses

Author: Ratchet Team
Date: 2026-10-18
"""

from typing import Optional

from ratchet.core.models import Node, NodeKind
from ratchet.core.refs import (
    CONTAINER_PROTOCOL,
    DOCKER_SCHEME,
    denormalize_ref,
    normalize_actions_ref,
    normalize_container_ref,
)
from ratchet.parsers.base import (
    Parser,
    RefsList,
    mapping_values,
    register,
    scalar,
    sequence_items,
)


@register
class ActionsParser(Parser):
    name = "actions"

    def denormalize_ref(self, ref: str) -> str:
        # Container references inside `uses:` are written with the docker scheme
        if ref.startswith(CONTAINER_PROTOCOL):
            return DOCKER_SCHEME + denormalize_ref(ref)
        return denormalize_ref(ref)

    def parse_mapping(self, refs: RefsList, root: Node):
        jobs = root.get("jobs")
        if jobs is not None and jobs.kind is NodeKind.MAPPING:
            for job in mapping_values(jobs):
                if job.kind is NodeKind.MAPPING:
                    self._parse_job(refs, job)

        runs = root.get("runs")
        if runs is not None and runs.kind is NodeKind.MAPPING:
            using = runs.get("using")
            if using is not None and using.value == "composite":
                self._parse_steps(refs, runs.get("steps"))

    def _parse_job(self, refs: RefsList, job: Node):
        container = job.get("container")
        if container is not None:
            if container.kind is NodeKind.MAPPING:
                self._add_image(refs, container.get("image"))
            else:
                self._add_image(refs, container)

        services = job.get("services")
        if services is not None and services.kind is NodeKind.MAPPING:
            for service in mapping_values(services):
                if service.kind is NodeKind.MAPPING:
                    self._add_image(refs, service.get("image"))

        self._parse_steps(refs, job.get("steps"))
        self._add_uses(refs, job.get("uses"))

    def _parse_steps(self, refs: RefsList, steps: Optional[Node]):
        for step in sequence_items(steps):
            if step.kind is NodeKind.MAPPING:
                self._add_uses(refs, step.get("uses"))

    def _add_image(self, refs: RefsList, node: Optional[Node]):
        image = scalar(node)
        if image is not None:
            refs.add(normalize_container_ref(image.value), image)

    def _add_uses(self, refs: RefsList, node: Optional[Node]):
        uses = scalar(node)
        if uses is None:
            return
        value = uses.value.strip()
        if value.startswith(DOCKER_SCHEME):
            refs.add(normalize_container_ref(value), uses)
        elif "@" in value:
            refs.add(normalize_actions_ref(value), uses)
        # Anything else is a local action or workflow path
