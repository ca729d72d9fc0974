"""
Interface to the orchestrator which manages a project's containers.
"""
from __future__ import annotations

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from typing import Sequence

from ..core.exceptions import CollaboratorError
from ..core.project import Project

__all__ = [
    "DEFAULT_COMPOSE_COMMAND",
    "Orchestrator",
    "ComposeCLI",
]

DEFAULT_COMPOSE_COMMAND = ("docker", "compose")


class Orchestrator(ABC):
    """
    Lifecycle operations on a project. Operations take the project by value,
    so callers pass whichever view (with or without the sidecar) is needed.
    An empty list of services means all services of the given project.
    """

    @abstractmethod
    def up(
        self,
        project: Project,
        services: Sequence[str] = (),
        *,
        ignore_orphans: bool = False,
        args: Sequence[str] = (),
    ):
        ...

    @abstractmethod
    def create(self, project: Project, services: Sequence[str] = ()):
        ...

    @abstractmethod
    def start(self, project: Project, services: Sequence[str] = ()):
        ...

    @abstractmethod
    def stop(self, project: Project, services: Sequence[str] = ()):
        ...

    @abstractmethod
    def down(self, project: Project, *, args: Sequence[str] = ()):
        ...

    @abstractmethod
    def pull(self, project: Project, services: Sequence[str] = ()):
        ...

    @abstractmethod
    def ps(self, project: Project, services: Sequence[str] = ()):
        ...


class ComposeCLI(Orchestrator):
    """
    Orchestrator driving the `docker compose` command line. The project is
    passed on stdin so the sidecar service is seen without modifying the
    user's files.
    """

    _command: list[str]
    _logger: logging.Logger

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMPOSE_COMMAND,
        *,
        logger: logging.Logger | None = None,
    ):
        self._command = list(command)
        self._logger = logger or logging.getLogger()

    def up(
        self,
        project: Project,
        services: Sequence[str] = (),
        *,
        ignore_orphans: bool = False,
        args: Sequence[str] = (),
    ):
        env = {"COMPOSE_IGNORE_ORPHANS": "true"} if ignore_orphans else None
        self._run(project, ["up", "--detach", *args, *services], env=env)

    def create(self, project: Project, services: Sequence[str] = ()):
        self._run(project, ["create", *services])

    def start(self, project: Project, services: Sequence[str] = ()):
        self._run(project, ["start", *services])

    def stop(self, project: Project, services: Sequence[str] = ()):
        self._run(project, ["stop", *services])

    def down(self, project: Project, *, args: Sequence[str] = ()):
        self._run(project, ["down", *args])

    def pull(self, project: Project, services: Sequence[str] = ()):
        self._run(project, ["pull", *services])

    def ps(self, project: Project, services: Sequence[str] = ()):
        self._run(project, ["ps", *services])

    def _run(
        self,
        project: Project,
        args: list[str],
        *,
        env: dict[str, str] | None = None,
    ):
        command = [
            *self._command,
            "--project-name",
            project.name,
            "--project-directory",
            str(project.working_dir),
            "--file",
            "-",
            *args,
        ]

        self._logger.debug(f"Running: {' '.join(command)}")

        try:
            subprocess.run(
                command,
                input=project.dump_compose(),
                text=True,
                check=True,
                env=os.environ | env if env else None,
            )
        except FileNotFoundError as e:
            raise CollaboratorError(
                f"compose {args[0]}", f"command not found: {self._command[0]}"
            ) from e
        except subprocess.CalledProcessError as e:
            raise CollaboratorError(
                f"compose {args[0]}", f"exited with code {e.returncode}"
            ) from e
