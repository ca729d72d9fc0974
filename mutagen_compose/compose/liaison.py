"""
Integration of session management with the project lifecycle.
"""
from __future__ import annotations

import logging
from typing import Callable, Sequence

from ..core.daemon import DaemonClient, SessionState
from ..core.exceptions import CollaboratorError
from ..core.identity import reify_specifications
from ..core.project import Project
from ..core.reconcile import (
    ReconciliationDriver,
    list_sessions,
    pause_sessions,
    resume_sessions,
    terminate_sessions,
)
from ..core.specification import (
    SIDECAR_SERVICE_NAME,
    BuildResult,
    SpecificationBuilder,
)
from ..core.types import SessionKind
from .engine import Engine
from .orchestrator import Orchestrator

__all__ = [
    "Liaison",
]


class Liaison:
    """
    Wraps the orchestrator's lifecycle operations so the sidecar service is
    managed alongside user services and sessions are reconciled once the
    sidecar container exists.

    The user's project is never modified; each operation passes a derived
    copy with the sidecar present, absent or alone as needed.
    """

    _orchestrator: Orchestrator
    _engine: Engine
    _daemon_factory: Callable[[], DaemonClient]
    _builder: SpecificationBuilder
    _logger: logging.Logger

    def __init__(
        self,
        orchestrator: Orchestrator,
        engine: Engine,
        daemon_factory: Callable[[], DaemonClient],
        *,
        builder: SpecificationBuilder | None = None,
        logger: logging.Logger | None = None,
    ):
        self._orchestrator = orchestrator
        self._engine = engine
        self._daemon_factory = daemon_factory
        self._logger = logger or logging.getLogger()
        self._builder = builder or SpecificationBuilder(
            engine, logger=self._logger
        )

    def build(self, project: Project) -> BuildResult:
        return self._builder.build(project)

    def up(self, project: Project, *, args: Sequence[str] = ()):
        """
        Bring up the sidecar by itself, reconcile sessions, then bring up
        user services.
        """
        result = self.build(project)
        sidecar_view = result.sidecar_view()

        # stop sidecar so reconciliation also happens if it's already running
        previous_id = self._engine.find_sidecar(project.name)
        if previous_id is not None:
            self._orchestrator.stop(sidecar_view, [SIDECAR_SERVICE_NAME])

        self._orchestrator.up(
            sidecar_view, [SIDECAR_SERVICE_NAME], ignore_orphans=True
        )

        sidecar_id = self._require_sidecar(project)

        if previous_id is not None and previous_id != sidecar_id:
            self._logger.info("Terminating sessions of replaced sidecar")
            terminate_sessions(self._daemon_factory(), previous_id)

        self._reconcile(result, sidecar_id)

        if result.user_services:
            self._orchestrator.up(result.project, result.user_services, args=args)

    def create(self, project: Project):
        """
        Create the sidecar first, then user services.
        """
        result = self.build(project)

        self._orchestrator.create(result.sidecar_view(), [SIDECAR_SERVICE_NAME])

        if result.user_services:
            self._orchestrator.create(result.project, result.user_services)

    def start(self, project: Project):
        """
        Start the sidecar and reconcile sessions, then start user services.
        """
        result = self.build(project)

        self._orchestrator.start(result.project, [SIDECAR_SERVICE_NAME])
        self._reconcile(result, self._require_sidecar(project))

        if result.user_services:
            self._orchestrator.start(result.project, result.user_services)

    def stop(self, project: Project, services: Sequence[str] = ()):
        """
        Stop services. When stopping the whole project, sessions are paused
        before the sidecar stops.
        """
        result = self.build(project)

        if not services or SIDECAR_SERVICE_NAME in services:
            sidecar_id = self._engine.find_sidecar(project.name)
            if sidecar_id is not None:
                self._logger.info("Pausing sessions")
                pause_sessions(self._daemon_factory(), sidecar_id)

        self._orchestrator.stop(result.project, services)

    def down(self, project: Project, *, args: Sequence[str] = ()):
        """
        Terminate sessions, then tear down the project including the sidecar.
        """
        result = self.build(project)

        sidecar_id = self._engine.find_sidecar(project.name)
        if sidecar_id is not None:
            self._logger.info("Terminating sessions")
            terminate_sessions(self._daemon_factory(), sidecar_id)

        self._orchestrator.down(result.project, args=args)

    def pull(self, project: Project, services: Sequence[str] = ()):
        result = self.build(project)
        self._orchestrator.pull(result.project, services)

    def ps(self, project: Project) -> dict[SessionKind, list[SessionState]]:
        """
        Show project containers, returning sessions owned by the sidecar if
        it exists.
        """
        result = self.build(project)
        sessions = self.list_sessions(project)

        self._orchestrator.ps(result.project)
        return sessions

    def list_sessions(
        self, project: Project
    ) -> dict[SessionKind, list[SessionState]]:
        sidecar_id = self._engine.find_sidecar(project.name)
        if sidecar_id is None:
            return {kind: [] for kind in SessionKind}
        return list_sessions(self._daemon_factory(), sidecar_id)

    def pause_sessions(self, project: Project):
        pause_sessions(self._daemon_factory(), self._require_sidecar(project))

    def resume_sessions(self, project: Project):
        resume_sessions(self._daemon_factory(), self._require_sidecar(project))

    def terminate_sessions(self, project: Project):
        terminate_sessions(
            self._daemon_factory(), self._require_sidecar(project)
        )

    def _reconcile(self, result: BuildResult, sidecar_id: str):
        reify_specifications(result.specifications, sidecar_id, self._engine.host)

        driver = ReconciliationDriver(
            self._daemon_factory(),
            sidecar_id,
            forwarding=result.forwarding,
            synchronization=result.synchronization,
            logger=self._logger,
        )
        driver.run()

    def _require_sidecar(self, project: Project) -> str:
        sidecar_id = self._engine.find_sidecar(project.name)
        if sidecar_id is None:
            raise CollaboratorError(
                "find sidecar",
                f"no sidecar container found for project {project.name}",
            )
        return sidecar_id
