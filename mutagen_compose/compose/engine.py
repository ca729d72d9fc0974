"""
Interface to the container engine.
"""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod

import docker
from docker.errors import DockerException

from ..core.exceptions import CollaboratorError, MetadataUnavailable
from ..core.specification import SIDECAR_ROLE_LABEL_KEY, SIDECAR_ROLE_LABEL_VALUE

__all__ = [
    "DEFAULT_DOCKER_HOST",
    "PROJECT_LABEL_KEY",
    "Engine",
    "DockerEngine",
]

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"

PROJECT_LABEL_KEY = "com.docker.compose.project"
"""
Label set by the orchestrator on every container of a project.
"""


class Engine(ABC):
    """
    Container engine operations needed to manage the sidecar.
    """

    @property
    @abstractmethod
    def host(self) -> str:
        """
        Address of the engine, as used by the daemon to reach containers.
        """
        ...

    @abstractmethod
    def os_type(self) -> str:
        """
        Get the engine's OS type, e.g. `linux`. Raises
        {obj}`MetadataUnavailable` upon failure.
        """
        ...

    @abstractmethod
    def sidecar_ids(self, project_name: str) -> list[str]:
        """
        Get ids of the sidecar containers of a project, running or not.
        """
        ...

    def find_sidecar(self, project_name: str) -> str | None:
        """
        Get id of the project's sidecar container, if it exists.
        """
        ids = self.sidecar_ids(project_name)

        if len(ids) > 1:
            raise CollaboratorError(
                "find sidecar",
                f"multiple sidecar containers found for project {project_name}",
            )

        return ids[0] if ids else None


class DockerEngine(Engine):
    """
    Engine accessed through the Docker API.
    """

    _host: str
    _client: docker.DockerClient | None = None
    _logger: logging.Logger

    def __init__(
        self, host: str | None = None, *, logger: logging.Logger | None = None
    ):
        self._host = host or os.environ.get("DOCKER_HOST") or DEFAULT_DOCKER_HOST
        self._logger = logger or logging.getLogger()

    @property
    def host(self) -> str:
        return self._host

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._logger.debug(f"Connecting to engine at {self._host}")

            try:
                self._client = docker.DockerClient(base_url=self._host)
            except DockerException as e:
                raise CollaboratorError("connect to engine", str(e)) from e

        return self._client

    def os_type(self) -> str:
        try:
            info = self.client.info()
        except DockerException as e:
            raise MetadataUnavailable(str(e)) from e

        return info["OSType"]

    def sidecar_ids(self, project_name: str) -> list[str]:
        filters = {
            "label": [
                f"{PROJECT_LABEL_KEY}={project_name}",
                f"{SIDECAR_ROLE_LABEL_KEY}={SIDECAR_ROLE_LABEL_VALUE}",
            ]
        }

        try:
            containers = self.client.containers.list(all=True, filters=filters)
        except DockerException as e:
            raise CollaboratorError("list containers", str(e)) from e

        return [container.id for container in containers]
