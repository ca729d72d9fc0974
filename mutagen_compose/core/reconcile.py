"""
Reconciliation of desired session specifications against sessions held by
the daemon.

A pass runs the following phases in order, each for forwarding and then
synchronization sessions:

1. {obj}`Phase.LIST`: list sessions carrying the ownership label and plan
   which to prune and create
2. {obj}`Phase.PRUNE`: terminate orphaned, duplicate and stale sessions in
   one batch
3. {obj}`Phase.RESUME`: resume all owned sessions, recovering sessions left
   paused or disconnected
4. {obj}`Phase.CREATE`: create missing sessions one at a time
5. {obj}`Phase.FLUSH`: wait for an initial synchronization of newly created
   synchronization sessions

Any failure aborts the pass. Since planning compares against the daemon's
current state, rerunning a pass converges from wherever the last one stopped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence

from .daemon import DaemonClient, Selection, SessionState
from .exceptions import DaemonError
from .identity import ownership_selection
from .specification import (
    BaseSpecification,
    ForwardingSpecification,
    SynchronizationSpecification,
)
from .types import SessionKind

__all__ = [
    "Phase",
    "Plan",
    "plan_reconciliation",
    "ReconciliationDriver",
    "list_sessions",
    "pause_sessions",
    "resume_sessions",
    "terminate_sessions",
]

KINDS = (SessionKind.FORWARDING, SessionKind.SYNCHRONIZATION)


class Phase(Enum):
    """
    Phase of a reconciliation pass, in order of execution.
    """

    LIST = "list"
    PRUNE = "prune"
    RESUME = "resume"
    CREATE = "create"
    FLUSH = "flush"


@dataclass(kw_only=True)
class Plan:
    """
    Operations needed to converge one kind of session.
    """

    orphans: list[str] = field(default_factory=list)
    """
    Identifiers of sessions with no corresponding specification.
    """

    duplicates: list[str] = field(default_factory=list)
    """
    Identifiers of sessions whose name was already claimed by an earlier
    session.
    """

    stale: list[str] = field(default_factory=list)
    """
    Identifiers of sessions which don't match their specification.
    """

    current: dict[str, SessionState] = field(default_factory=dict)
    """
    Mapping of session name to the session claiming it.
    """

    create: list[BaseSpecification] = field(default_factory=list)

    @property
    def prune(self) -> list[str]:
        return self.orphans + self.duplicates + self.stale

    @property
    def is_empty(self) -> bool:
        return not (self.prune or self.create)


def plan_reconciliation(
    desired: Mapping[str, BaseSpecification],
    existing: Sequence[SessionState],
) -> Plan:
    """
    Classify existing sessions and determine which to prune and which
    specifications to create. Doesn't interact with the daemon.
    """
    plan = Plan()

    for state in existing:
        if state.name not in desired:
            plan.orphans.append(state.identifier)
        elif state.name in plan.current:
            plan.duplicates.append(state.identifier)
        else:
            plan.current[state.name] = state

    for name, specification in desired.items():
        state = plan.current.get(name)

        if state is None:
            plan.create.append(specification)
        elif not state.is_current(specification):
            plan.stale.append(state.identifier)
            plan.create.append(specification)

    return plan


class ReconciliationDriver:
    """
    Drives the daemon to converge on the given specifications. Specifications
    must already be reified for the sidecar with id `sidecar_id`.
    """

    _client: DaemonClient
    _sidecar_id: str
    _desired: dict[SessionKind, Mapping[str, BaseSpecification]]
    _plans: dict[SessionKind, Plan]
    _created: list[str]
    _logger: logging.Logger

    def __init__(
        self,
        client: DaemonClient,
        sidecar_id: str,
        *,
        forwarding: Mapping[str, ForwardingSpecification],
        synchronization: Mapping[str, SynchronizationSpecification],
        logger: logging.Logger | None = None,
    ):
        self._client = client
        self._sidecar_id = sidecar_id
        self._desired = {
            SessionKind.FORWARDING: forwarding,
            SessionKind.SYNCHRONIZATION: synchronization,
        }
        self._plans = {}
        self._created = []
        self._logger = logger or logging.getLogger()

    @property
    def selection(self) -> Selection:
        return ownership_selection(self._sidecar_id)

    @property
    def plans(self) -> dict[SessionKind, Plan]:
        return self._plans

    def run(self):
        """
        Run all phases in order, connecting to the daemon for the duration.
        """
        with self._client:
            self.list()
            self.prune()
            self.resume()
            self.create()
            self.flush()

    def list(self):
        for kind in KINDS:
            states = _call(
                Phase.LIST,
                kind,
                lambda: self._client.list(kind, self.selection),
            )
            plan = plan_reconciliation(self._desired[kind], states)

            self._logger.debug(
                f"Planned {kind} sessions: {len(states)} existing, {len(plan.prune)} to prune, {len(plan.create)} to create"
            )
            self._plans[kind] = plan

    def prune(self):
        for kind in KINDS:
            prune = self._plans[kind].prune
            if not prune:
                continue

            self._logger.info(f"Pruning {kind} sessions")
            _call(
                Phase.PRUNE,
                kind,
                lambda: self._client.terminate(kind, Selection.of(prune)),
            )

    def resume(self):
        for kind in KINDS:
            self._logger.info(f"Resuming existing {kind} sessions")
            _call(
                Phase.RESUME,
                kind,
                lambda: self._client.resume(kind, self.selection),
            )

    def create(self):
        for kind in KINDS:
            for specification in self._plans[kind].create:
                self._logger.info(
                    f'Creating {kind} session "{specification.name}"'
                )
                identifier = _call(
                    Phase.CREATE,
                    kind,
                    lambda: self._client.create(specification),
                    session=specification.name,
                )

                if kind is SessionKind.SYNCHRONIZATION:
                    self._created.append(identifier)

    def flush(self):
        if not self._created:
            return

        self._logger.info("Performing initial synchronization")
        _call(
            Phase.FLUSH,
            SessionKind.SYNCHRONIZATION,
            lambda: self._client.flush(Selection.of(self._created)),
        )


def list_sessions(
    client: DaemonClient, sidecar_id: str
) -> dict[SessionKind, list[SessionState]]:
    """
    List sessions owned by the sidecar container, by kind.
    """
    selection = ownership_selection(sidecar_id)
    with client:
        return {
            kind: _call(Phase.LIST, kind, lambda: client.list(kind, selection))
            for kind in KINDS
        }


def pause_sessions(client: DaemonClient, sidecar_id: str):
    selection = ownership_selection(sidecar_id)
    with client:
        for kind in KINDS:
            _call("pause", kind, lambda: client.pause(kind, selection))


def resume_sessions(client: DaemonClient, sidecar_id: str):
    selection = ownership_selection(sidecar_id)
    with client:
        for kind in KINDS:
            _call(Phase.RESUME, kind, lambda: client.resume(kind, selection))


def terminate_sessions(client: DaemonClient, sidecar_id: str):
    selection = ownership_selection(sidecar_id)
    with client:
        for kind in KINDS:
            _call("terminate", kind, lambda: client.terminate(kind, selection))


def _call(phase: Phase | str, kind: SessionKind, func, *, session: str | None = None):
    """
    Invoke a daemon operation, attributing failures to the phase and session.
    """
    operation = phase.value if isinstance(phase, Phase) else phase

    try:
        return func()
    except DaemonError as e:
        raise DaemonError(
            e.operation,
            e.message,
            session=session or e.session,
            phase=f"{kind} {operation}",
        ) from e
