"""
Building session specifications from a project's `x-mutagen` section, and
injecting the sidecar service which anchors their network and volume access.
"""
from __future__ import annotations

import logging
import re
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from pydantic import BaseModel, Field

from .configuration import (
    BaseConfiguration,
    ForwardingConfiguration,
    SynchronizationConfiguration,
    merge_configurations,
)
from .endpoint import (
    Endpoint,
    SidecarEndpoint,
    VolumeEndpoint,
    parse_forwarding_destination,
    parse_forwarding_source,
    parse_synchronization_endpoints,
    volume_mount_path,
)
from .exceptions import InvalidSessionName, SidecarNameConflict, UndefinedDependency
from .extension import (
    DEFAULTS_KEY,
    DefaultsSection,
    ExtensionSection,
    ForwardingEntry,
    SessionDefaults,
    SynchronizationEntry,
    decode_extension,
)
from .project import Project, Service, ServiceDependency, ServiceVolume
from .types import SessionKind

if TYPE_CHECKING:
    from ..compose.engine import Engine

__all__ = [
    "SIDECAR_SERVICE_NAME",
    "SIDECAR_IMAGE",
    "SIDECAR_ROLE_LABEL_KEY",
    "SIDECAR_ROLE_LABEL_VALUE",
    "SIDECAR_VERSION_LABEL_KEY",
    "DEFAULT_SIDECAR_VERSION",
    "BaseSpecification",
    "ForwardingSpecification",
    "SynchronizationSpecification",
    "Dependencies",
    "BuildResult",
    "SpecificationBuilder",
]

SIDECAR_SERVICE_NAME = "mutagen"
SIDECAR_IMAGE = "mutagenio/sidecar"
SIDECAR_ROLE_LABEL_KEY = "io.mutagen.compose.sidecar.role"
SIDECAR_ROLE_LABEL_VALUE = "sidecar"
SIDECAR_VERSION_LABEL_KEY = "io.mutagen.compose.sidecar.version"

DEFAULT_SIDECAR_VERSION = "0.18.1"
"""
Sidecar image tag, which should match the version of the session daemon.
"""

SESSION_NAME = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]*$")


class BaseSpecification(BaseModel):
    """
    Desired state of a single session. Endpoints reached through the sidecar
    are placeholders until reified with the sidecar's container id.
    """

    kind: ClassVar[SessionKind]

    name: str
    labels: dict[str, str] = Field(default_factory=dict)

    @property
    @abstractmethod
    def endpoints(self) -> tuple[Endpoint, Endpoint]:
        ...

    @property
    @abstractmethod
    def configurations(
        self,
    ) -> tuple[BaseConfiguration, BaseConfiguration, BaseConfiguration]:
        """
        Session-wide configuration followed by each role's configuration.
        """

    @property
    def placeholders(self) -> list[SidecarEndpoint]:
        return [e for e in self.endpoints if isinstance(e, SidecarEndpoint)]

    @property
    def urls(self) -> tuple[str, str]:
        first, second = self.endpoints
        return (first.url, second.url)

    @property
    def environment(self) -> dict[str, str]:
        """
        Environment needed by the daemon to reach this session's endpoints.
        """
        environment: dict[str, str] = {}
        for endpoint in self.placeholders:
            environment |= endpoint.environment
        return environment


class ForwardingSpecification(BaseSpecification):
    kind = SessionKind.FORWARDING

    source: Endpoint
    destination: Endpoint
    configuration: ForwardingConfiguration = Field(
        default_factory=ForwardingConfiguration
    )
    configuration_source: ForwardingConfiguration = Field(
        default_factory=ForwardingConfiguration
    )
    configuration_destination: ForwardingConfiguration = Field(
        default_factory=ForwardingConfiguration
    )

    @property
    def endpoints(self) -> tuple[Endpoint, Endpoint]:
        return (self.source, self.destination)

    @property
    def configurations(
        self,
    ) -> tuple[BaseConfiguration, BaseConfiguration, BaseConfiguration]:
        return (
            self.configuration,
            self.configuration_source,
            self.configuration_destination,
        )


class SynchronizationSpecification(BaseSpecification):
    kind = SessionKind.SYNCHRONIZATION

    alpha: Endpoint
    beta: Endpoint
    configuration: SynchronizationConfiguration = Field(
        default_factory=SynchronizationConfiguration
    )
    configuration_alpha: SynchronizationConfiguration = Field(
        default_factory=SynchronizationConfiguration
    )
    configuration_beta: SynchronizationConfiguration = Field(
        default_factory=SynchronizationConfiguration
    )

    @property
    def endpoints(self) -> tuple[Endpoint, Endpoint]:
        return (self.alpha, self.beta)

    @property
    def configurations(
        self,
    ) -> tuple[BaseConfiguration, BaseConfiguration, BaseConfiguration]:
        return (
            self.configuration,
            self.configuration_alpha,
            self.configuration_beta,
        )


@dataclass(kw_only=True)
class Dependencies:
    """
    Networks and volumes referenced by sessions, accumulated while building.
    """

    networks: set[str] = field(default_factory=set)
    volumes: set[str] = field(default_factory=set)

    def ensure_declared(self, project: Project):
        """
        Ensure every dependency is declared by the project.
        """
        for network in sorted(self.networks - project.declared_networks):
            raise UndefinedDependency(
                f"undefined network ({network}) referenced by forwarding session"
            )

        for volume in sorted(self.volumes - project.declared_volumes):
            raise UndefinedDependency(
                f"undefined volume ({volume}) referenced by synchronization session"
            )


@dataclass(kw_only=True)
class BuildResult:
    """
    Output of a build pass. The original project is left untouched; `project`
    is an augmented copy including the sidecar service and ordering edges.
    """

    project: Project
    sidecar: Service
    forwarding: dict[str, ForwardingSpecification]
    synchronization: dict[str, SynchronizationSpecification]
    dependencies: Dependencies

    @property
    def user_services(self) -> list[str]:
        return [s for s in self.project.services if s != SIDECAR_SERVICE_NAME]

    @property
    def specifications(self) -> list[BaseSpecification]:
        return [*self.forwarding.values(), *self.synchronization.values()]

    def sidecar_view(self) -> Project:
        """
        Get a copy of the project containing only the sidecar service.
        """
        return self.project.with_services({SIDECAR_SERVICE_NAME: self.sidecar})

    def user_view(self) -> Project:
        """
        Get a copy of the project without the sidecar service.
        """
        return self.project.with_services(
            {
                name: service
                for name, service in self.project.services.items()
                if name != SIDECAR_SERVICE_NAME
            }
        )


class SpecificationBuilder:
    """
    Builds session specifications and the augmented project. Building is a
    pure function of the project and the engine's OS type.
    """

    _engine: Engine
    _sidecar_version: str
    _global_defaults: DefaultsSection
    _logger: logging.Logger

    def __init__(
        self,
        engine: Engine,
        *,
        sidecar_version: str = DEFAULT_SIDECAR_VERSION,
        global_defaults: DefaultsSection | None = None,
        logger: logging.Logger | None = None,
    ):
        self._engine = engine
        self._sidecar_version = sidecar_version
        self._global_defaults = global_defaults or DefaultsSection()
        self._logger = logger or logging.getLogger()

    @property
    def sidecar_image(self) -> str:
        return f"{SIDECAR_IMAGE}:{self._sidecar_version}"

    def build(self, project: Project) -> BuildResult:
        if SIDECAR_SERVICE_NAME in project.services:
            raise SidecarNameConflict(
                f"sidecar service name ({SIDECAR_SERVICE_NAME}) conflicts with existing service"
            )

        os_type = self._engine.os_type()

        extension = decode_extension(project.mutagen_extension)
        dependencies = Dependencies()

        forwarding = self._build_forwarding(extension, dependencies)
        synchronization = self._build_synchronization(
            extension, project, os_type, dependencies
        )

        dependencies.ensure_declared(project)

        sidecar = self._create_sidecar(dependencies, os_type)
        augmented = self._augment(project, sidecar, dependencies)

        self._logger.debug(
            f"Built {len(forwarding)} forwarding and {len(synchronization)} synchronization specification(s) for project {project.name}"
        )

        return BuildResult(
            project=augmented,
            sidecar=sidecar,
            forwarding=forwarding,
            synchronization=synchronization,
            dependencies=dependencies,
        )

    def _build_forwarding(
        self, extension: ExtensionSection, dependencies: Dependencies
    ) -> dict[str, ForwardingSpecification]:
        kind = SessionKind.FORWARDING
        entries, global_defaults, project_defaults = self._split_entries(
            kind, extension
        )
        specifications: dict[str, ForwardingSpecification] = {}

        for name, entry in entries.items():
            assert isinstance(entry, ForwardingEntry)
            _ensure_name_valid(kind, name)

            source = parse_forwarding_source(entry.source or "")
            destination = parse_forwarding_destination(entry.destination or "")
            dependencies.networks.add(destination.network)

            configuration, first, second = _merge(
                entry, global_defaults, project_defaults
            )

            specifications[name] = ForwardingSpecification(
                name=name,
                source=source,
                destination=destination.to_sidecar(),
                configuration=configuration,
                configuration_source=first,
                configuration_destination=second,
            )

        return specifications

    def _build_synchronization(
        self,
        extension: ExtensionSection,
        project: Project,
        os_type: str,
        dependencies: Dependencies,
    ) -> dict[str, SynchronizationSpecification]:
        kind = SessionKind.SYNCHRONIZATION
        entries, global_defaults, project_defaults = self._split_entries(
            kind, extension
        )
        specifications: dict[str, SynchronizationSpecification] = {}

        for name, entry in entries.items():
            assert isinstance(entry, SynchronizationEntry)
            _ensure_name_valid(kind, name)

            alpha, beta = parse_synchronization_endpoints(
                entry.alpha or "",
                entry.beta or "",
                working_dir=project.working_dir,
                os_type=os_type,
            )

            def resolve(endpoint):
                if isinstance(endpoint, VolumeEndpoint):
                    dependencies.volumes.add(endpoint.volume)
                    return endpoint.to_sidecar()
                return endpoint

            configuration, first, second = _merge(
                entry, global_defaults, project_defaults
            )

            specifications[name] = SynchronizationSpecification(
                name=name,
                alpha=resolve(alpha),
                beta=resolve(beta),
                configuration=configuration,
                configuration_alpha=first,
                configuration_beta=second,
            )

        return specifications

    def _split_entries(
        self, kind: SessionKind, extension: ExtensionSection
    ) -> tuple[
        dict[str, ForwardingEntry | SynchronizationEntry],
        SessionDefaults,
        SessionDefaults,
    ]:
        """
        Separate the reserved defaults entry from session entries, without
        modifying the decoded extension.
        """
        entries = dict(extension.entries(kind))
        defaults_entry = entries.pop(DEFAULTS_KEY, None)

        project_defaults = (
            SessionDefaults.from_entry(kind, defaults_entry)
            if defaults_entry is not None
            else SessionDefaults.empty(kind)
        )

        return (
            entries,
            self._global_defaults.session_defaults(kind),
            project_defaults,
        )

    def _create_sidecar(self, dependencies: Dependencies, os_type: str) -> Service:
        return Service(
            image=self.sidecar_image,
            labels={
                SIDECAR_ROLE_LABEL_KEY: SIDECAR_ROLE_LABEL_VALUE,
                SIDECAR_VERSION_LABEL_KEY: self._sidecar_version,
            },
            networks={network: {} for network in sorted(dependencies.networks)},
            volumes=[
                ServiceVolume(
                    type="volume",
                    source=volume,
                    target=volume_mount_path(os_type, volume),
                )
                for volume in sorted(dependencies.volumes)
            ],
        )

    def _augment(
        self, project: Project, sidecar: Service, dependencies: Dependencies
    ) -> Project:
        """
        Get a copy of the project with the sidecar appended and services
        mounting dependency volumes ordered after it.
        """
        services: dict[str, Service] = {}

        for name, service in project.services.items():
            if service.volume_sources & dependencies.volumes:
                service = service.model_copy(deep=True)
                service.depends_on[SIDECAR_SERVICE_NAME] = ServiceDependency(
                    condition="service_started"
                )
                self._logger.debug(
                    f"Service {name} depends on {SIDECAR_SERVICE_NAME}"
                )
            services[name] = service

        services[SIDECAR_SERVICE_NAME] = sidecar

        return project.with_services(services)


def _ensure_name_valid(kind: SessionKind, name: str):
    if not SESSION_NAME.match(name):
        raise InvalidSessionName(f"invalid {kind} session name ({name})")


def _merge(
    entry: ForwardingEntry | SynchronizationEntry,
    global_defaults: SessionDefaults,
    project_defaults: SessionDefaults,
) -> tuple[BaseConfiguration, BaseConfiguration, BaseConfiguration]:
    """
    Merge session-wide and each role's configuration across the three tiers.
    """
    first_section, second_section = entry.role_sections

    configuration = merge_configurations(
        [
            global_defaults.configuration,
            project_defaults.configuration,
            entry.configuration(),
        ],
        endpoint_specific=False,
    )
    first = merge_configurations(
        [global_defaults.first, project_defaults.first, first_section.configuration()],
        endpoint_specific=True,
    )
    second = merge_configurations(
        [
            global_defaults.second,
            project_defaults.second,
            second_section.configuration(),
        ],
        endpoint_specific=True,
    )

    return configuration, first, second
