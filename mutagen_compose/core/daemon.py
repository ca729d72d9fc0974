"""
Interface to the session daemon.

The daemon is accessed through a {obj}`DaemonClient`, which is used as a
context manager so the connection is released on every exit path:

```python
with client:
    states = client.list(SessionKind.SYNCHRONIZATION, selection)
```
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

from .configuration import (
    BaseConfiguration,
    ForwardingConfiguration,
    SynchronizationConfiguration,
)
from .endpoint import docker_url
from .types import SessionKind

if TYPE_CHECKING:
    from .specification import BaseSpecification

__all__ = [
    "Selection",
    "SessionState",
    "DaemonClient",
]


@dataclass(frozen=True, kw_only=True)
class Selection:
    """
    Selection of sessions: either explicit identifiers or a label selector
    of the form `key==value`.
    """

    identifiers: tuple[str, ...] = ()
    label_selector: str | None = None

    def __post_init__(self):
        assert bool(self.identifiers) != bool(
            self.label_selector
        ), "Exactly one of identifiers or label selector required"

    @classmethod
    def of(cls, identifiers: list[str]) -> Self:
        return cls(identifiers=tuple(identifiers))

    def __str__(self) -> str:
        if self.label_selector:
            return self.label_selector
        return ", ".join(self.identifiers)


@dataclass(kw_only=True)
class SessionState:
    """
    Session as reported by the daemon.
    """

    identifier: str
    name: str
    kind: SessionKind
    urls: tuple[str, str]
    configuration: BaseConfiguration
    configuration_first: BaseConfiguration
    configuration_second: BaseConfiguration
    labels: dict[str, str] = field(default_factory=dict)
    paused: bool = False
    status: str | None = None

    @property
    def configurations(
        self,
    ) -> tuple[BaseConfiguration, BaseConfiguration, BaseConfiguration]:
        return (
            self.configuration,
            self.configuration_first,
            self.configuration_second,
        )

    def is_current(self, specification: BaseSpecification) -> bool:
        """
        Check whether this session matches the given specification: endpoints
        and every configuration field must be equal.
        """
        return (
            self.kind is specification.kind
            and self.urls == specification.urls
            and self.configurations == specification.configurations
        )

    @classmethod
    def from_listing(cls, kind: SessionKind, data: dict[str, Any]) -> Self:
        """
        Create from a session as listed by the daemon in JSON form, where
        session-wide configuration is inline and endpoint-specific
        configuration is nested in each endpoint.
        """
        configuration_cls = (
            ForwardingConfiguration
            if kind is SessionKind.FORWARDING
            else SynchronizationConfiguration
        )
        first_role, second_role = kind.roles
        first = data.get(first_role) or {}
        second = data.get(second_role) or {}

        return cls(
            identifier=data["identifier"],
            name=data.get("name", ""),
            kind=kind,
            urls=(_endpoint_url(first), _endpoint_url(second)),
            configuration=configuration_cls.from_nested(data),
            configuration_first=configuration_cls.from_nested(first),
            configuration_second=configuration_cls.from_nested(second),
            labels=data.get("labels") or {},
            paused=data.get("paused", False),
            status=data.get("status"),
        )


class DaemonClient(ABC):
    """
    Connection to the session daemon. Every operation raises
    {obj}`DaemonError` upon failure; nothing is retried.
    """

    def __enter__(self) -> Self:
        self.connect()
        return self

    def __exit__(self, *_):
        self.close()

    @abstractmethod
    def connect(self):
        """
        Connect to the daemon, starting it if necessary.
        """
        ...

    def close(self):
        ...

    @abstractmethod
    def list(self, kind: SessionKind, selection: Selection) -> list[SessionState]:
        ...

    @abstractmethod
    def create(self, specification: BaseSpecification) -> str:
        """
        Create session and return its identifier.
        """
        ...

    @abstractmethod
    def terminate(self, kind: SessionKind, selection: Selection):
        ...

    @abstractmethod
    def pause(self, kind: SessionKind, selection: Selection):
        ...

    @abstractmethod
    def resume(self, kind: SessionKind, selection: Selection):
        ...

    @abstractmethod
    def flush(self, selection: Selection, *, background: bool = False):
        """
        Flush synchronization sessions. Unless `background` is set, blocks
        until one synchronization cycle completes.
        """
        ...


def _endpoint_url(endpoint: dict[str, Any]) -> str:
    address = endpoint.get("path") or endpoint.get("endpoint") or ""

    if endpoint.get("protocol") == "docker":
        return docker_url(endpoint.get("host", ""), address)
    return address
