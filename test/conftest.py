from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

import yaml
from pytest import fixture

from mutagen_compose import (
    BaseSpecification,
    DaemonClient,
    DaemonError,
    Engine,
    Liaison,
    MetadataUnavailable,
    Orchestrator,
    Project,
    Selection,
    SessionKind,
    SessionState,
    SpecificationBuilder,
)

logging.basicConfig(level=logging.WARNING)

SIDECAR_ID = "0123456789abcdef0123456789abcdef"
"""
Container id assigned to sidecars brought up by the fake orchestrator.
"""

DOCKER_HOST = "unix:///var/run/docker.sock"

SCENARIO = {
    "services": {
        "web": {
            "image": "nginx",
            "networks": ["backend"],
            "volumes": ["cache:/srv/cache"],
        },
        "db": {
            "image": "postgres",
            "volumes": ["./pgdata:/var/lib/postgresql/data"],
        },
    },
    "networks": {"backend": None},
    "volumes": {"cache": None},
    "x-mutagen": {
        "forward": {
            "web": {
                "source": "tcp:localhost:8080",
                "destination": "network://backend:tcp:web:80",
            },
        },
        "sync": {
            "data": {
                "alpha": "./app",
                "beta": "volume://cache",
            },
        },
    },
}
"""
Project with one forwarding session and one synchronization session.
"""


class FakeEngine(Engine):
    """
    In-memory engine tracking sidecar containers by project name.
    """

    sidecars: dict[str, list[str]]
    metadata_calls: int
    metadata_error: str | None

    def __init__(self, os_type: str = "linux"):
        self._os_type = os_type
        self.sidecars = {}
        self.metadata_calls = 0
        self.metadata_error = None

    @property
    def host(self) -> str:
        return DOCKER_HOST

    def os_type(self) -> str:
        self.metadata_calls += 1
        if self.metadata_error:
            raise MetadataUnavailable(self.metadata_error)
        return self._os_type

    def sidecar_ids(self, project_name: str) -> list[str]:
        return list(self.sidecars.get(project_name, []))


class FakeOrchestrator(Orchestrator):
    """
    Records operations; bringing up or creating the sidecar registers a
    sidecar container with the engine.
    """

    calls: list[tuple[str, tuple[str, ...], tuple[str, ...]]]
    sidecar_id: str

    def __init__(self, engine: FakeEngine, sidecar_id: str = SIDECAR_ID):
        self._engine = engine
        self.sidecar_id = sidecar_id
        self.calls = []

    def up(self, project, services=(), *, ignore_orphans=False, args=()):
        self._record("up", project, services)
        self._materialize(project, services)

    def create(self, project, services=()):
        self._record("create", project, services)
        self._materialize(project, services)

    def start(self, project, services=()):
        self._record("start", project, services)

    def stop(self, project, services=()):
        self._record("stop", project, services)

    def down(self, project, *, args=()):
        self._record("down", project, ())
        self._engine.sidecars.pop(project.name, None)

    def pull(self, project, services=()):
        self._record("pull", project, services)

    def ps(self, project, services=()):
        self._record("ps", project, services)

    def _record(self, operation: str, project: Project, services):
        self.calls.append(
            (operation, tuple(project.services), tuple(services))
        )

    def _materialize(self, project: Project, services):
        if "mutagen" in project.services and (
            not services or "mutagen" in services
        ):
            self._engine.sidecars[project.name] = [self.sidecar_id]


class FakeDaemon(DaemonClient):
    """
    In-memory daemon recording every operation.
    """

    sessions: dict[SessionKind, list[SessionState]]
    calls: list[tuple[Any, ...]]
    fail: dict[str, str]
    connected: bool

    def __init__(self):
        self.sessions = {kind: [] for kind in SessionKind}
        self.calls = []
        self.fail = {}
        self.connected = False
        self._count = 0

    def connect(self):
        self._check("connect")
        self.connected = True

    def close(self):
        self.connected = False

    def list(self, kind, selection):
        self._check("list")
        self.calls.append(("list", kind))
        return [s for s in self.sessions[kind] if _selected(s, selection)]

    def create(self, specification):
        self._check("create", specification.name)
        self.calls.append(("create", specification.kind, specification.name))

        self._count += 1
        identifier = f"{specification.kind.value}_{self._count}"
        self.sessions[specification.kind].append(
            state_from_specification(specification, identifier)
        )
        return identifier

    def terminate(self, kind, selection):
        self._check("terminate")
        self.calls.append(("terminate", kind, str(selection)))
        self.sessions[kind] = [
            s for s in self.sessions[kind] if not _selected(s, selection)
        ]

    def pause(self, kind, selection):
        self._check("pause")
        self.calls.append(("pause", kind, str(selection)))
        for state in self.sessions[kind]:
            if _selected(state, selection):
                state.paused = True

    def resume(self, kind, selection):
        self._check("resume")
        self.calls.append(("resume", kind, str(selection)))
        for state in self.sessions[kind]:
            if _selected(state, selection):
                state.paused = False

    def flush(self, selection, *, background=False):
        self._check("flush")
        self.calls.append(("flush", tuple(selection.identifiers), background))

    @property
    def operations(self) -> list[str]:
        """
        Operations other than listing, in order.
        """
        return [call[0] for call in self.calls if call[0] != "list"]

    def add(self, state: SessionState):
        self.sessions[state.kind].append(state)

    def _check(self, operation: str, session: str | None = None):
        if operation in self.fail:
            raise DaemonError(operation, self.fail[operation], session=session)


def state_from_specification(
    specification: BaseSpecification, identifier: str
) -> SessionState:
    """
    Get state of a session exactly matching the given specification.
    """
    configuration, first, second = specification.configurations
    return SessionState(
        identifier=identifier,
        name=specification.name,
        kind=specification.kind,
        urls=specification.urls,
        configuration=configuration,
        configuration_first=first,
        configuration_second=second,
        labels=dict(specification.labels),
    )


def _selected(state: SessionState, selection: Selection) -> bool:
    if selection.label_selector:
        key, _, value = selection.label_selector.partition("==")
        return state.labels.get(key) == value
    return state.identifier in selection.identifiers


@fixture
def engine() -> FakeEngine:
    return FakeEngine()


@fixture
def daemon() -> FakeDaemon:
    return FakeDaemon()


@fixture
def orchestrator(engine: FakeEngine) -> FakeOrchestrator:
    return FakeOrchestrator(engine)


@fixture
def builder(engine: FakeEngine) -> SpecificationBuilder:
    return SpecificationBuilder(engine)


@fixture
def liaison(
    orchestrator: FakeOrchestrator, engine: FakeEngine, daemon: FakeDaemon
) -> Liaison:
    return Liaison(orchestrator, engine, lambda: daemon)


@fixture
def make_project(tmp_path: Path) -> Callable[..., Project]:
    """
    Get factory which writes a Compose file and loads it as a project.
    """

    def make(data: dict[str, Any], *, name: str = "demo") -> Project:
        file = tmp_path / "compose.yaml"
        file.write_text(yaml.safe_dump({"name": name} | data, sort_keys=False))
        return Project.load(file)

    return make


@fixture
def project(make_project: Callable[..., Project]) -> Project:
    return make_project(SCENARIO)


@fixture
def sidecar_id() -> str:
    return SIDECAR_ID


@fixture
def make_state() -> Callable[[BaseSpecification, str], SessionState]:
    return state_from_specification
