"""
Binding specifications to a concrete sidecar container.
"""
from __future__ import annotations

from typing import Iterable

from .daemon import Selection
from .specification import BaseSpecification

__all__ = [
    "OWNER_LABEL_KEY",
    "IDENTIFIER_LENGTH",
    "chop_identifier",
    "ownership_labels",
    "ownership_selection",
    "reify_specifications",
]

OWNER_LABEL_KEY = "sidecar-session-owner"
"""
Label binding a session to the sidecar container which owns it.
"""

IDENTIFIER_LENGTH = 12
"""
Length of the container id used as label value, same as Docker's short ids.
"""


def chop_identifier(identifier: str) -> str:
    """
    Truncate a container id to fit within label value constraints.
    """
    return identifier[:IDENTIFIER_LENGTH]


def ownership_labels(sidecar_id: str) -> dict[str, str]:
    return {OWNER_LABEL_KEY: chop_identifier(sidecar_id)}


def ownership_selection(sidecar_id: str) -> Selection:
    """
    Get selection of all sessions owned by the given sidecar container.
    """
    return Selection(
        label_selector=f"{OWNER_LABEL_KEY}=={chop_identifier(sidecar_id)}"
    )


def reify_specifications(
    specifications: Iterable[BaseSpecification],
    sidecar_id: str,
    docker_host: str,
):
    """
    Bind every placeholder endpoint to the sidecar container and stamp the
    ownership label. Specifications are modified in place, so this must only
    happen once per build.
    """
    labels = ownership_labels(sidecar_id)

    for specification in specifications:
        for endpoint in specification.placeholders:
            endpoint.reify(sidecar_id, docker_host)
        specification.labels = dict(labels)
