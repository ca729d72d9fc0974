"""
Schema of the `x-mutagen` project extension.

Example:

```yaml
x-mutagen:
  sync:
    defaults:
      ignore:
        vcs: true
    code:
      alpha: "./app"
      beta: "volume://code"
      mode: "two-way-resolved"
      configurationBeta:
        permissions:
          defaultOwner: "id:1000"
  forward:
    web:
      source: "tcp:localhost:8080"
      destination: "network://backend:tcp:web:80"
```

Decoding is strict: unknown keys at any level are rejected so typos fail
loudly instead of being silently ignored.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, PositiveInt
from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator
from pydantic.alias_generators import to_camel

from .configuration import (
    BaseConfiguration,
    ForwardingConfiguration,
    IgnoreVCSMode,
    PermissionsMode,
    ProbeMode,
    ScanMode,
    SocketOverwriteMode,
    StageMode,
    SymlinkMode,
    SynchronizationConfiguration,
    SynchronizationMode,
    WatchMode,
)
from .exceptions import DefaultsMustNotDeclareEndpoints, ExtensionDecodeError
from .types import SessionKind

__all__ = [
    "EXTENSION_KEY",
    "DEFAULTS_KEY",
    "ForwardingEntry",
    "SynchronizationEntry",
    "ExtensionSection",
    "DefaultsSection",
    "SessionDefaults",
    "decode_extension",
]

EXTENSION_KEY = "x-mutagen"
"""
Key of the extension in the project.
"""

DEFAULTS_KEY = "defaults"
"""
Reserved session name holding defaults for a session kind.
"""

ENDPOINT_KEYS = {"alpha", "beta", "source", "destination"}


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SymlinkSection(StrictModel):
    mode: SymlinkMode | None = None


class WatchSection(StrictModel):
    mode: WatchMode | None = None
    polling_interval: PositiveInt | None = None


class IgnoreSection(StrictModel):
    paths: list[str] | None = None
    vcs: bool | IgnoreVCSMode | None = None


class PermissionsSection(StrictModel):
    mode: PermissionsMode | None = None
    default_file_mode: int | str | None = None
    default_directory_mode: int | str | None = None
    default_owner: str | None = None
    default_group: str | None = None


class SocketSection(StrictModel):
    overwrite_mode: SocketOverwriteMode | None = None
    owner: str | None = None
    group: str | None = None
    permission_mode: int | str | None = None


class ConfigurationSection(StrictModel):
    """
    Base for sections which convert to a flat configuration.
    """

    configuration_cls: ClassVar[type[BaseConfiguration]]

    def configuration(self) -> BaseConfiguration:
        exclude = {
            name
            for name in type(self).model_fields
            if name in ENDPOINT_KEYS or name.startswith("configuration_")
        }
        data = self.model_dump(by_alias=True, exclude_none=True, exclude=exclude)

        try:
            return self.configuration_cls.from_nested(data)
        except PydanticValidationError as e:
            raise ExtensionDecodeError(str(e)) from e


class SynchronizationConfigurationSection(ConfigurationSection):
    configuration_cls = SynchronizationConfiguration

    mode: SynchronizationMode | None = None
    max_entry_count: PositiveInt | None = None
    max_staging_file_size: int | str | None = None
    probe_mode: ProbeMode | None = None
    scan_mode: ScanMode | None = None
    stage_mode: StageMode | None = None
    symlink: SymlinkSection | None = None
    watch: WatchSection | None = None
    ignore: IgnoreSection | None = None
    permissions: PermissionsSection | None = None


class ForwardingConfigurationSection(ConfigurationSection):
    configuration_cls = ForwardingConfiguration

    socket: SocketSection | None = None


class SynchronizationEntry(SynchronizationConfigurationSection):
    """
    Synchronization session: endpoints and session-wide configuration inline,
    plus endpoint-specific configuration.
    """

    alpha: str | None = None
    beta: str | None = None
    configuration_alpha: SynchronizationConfigurationSection = Field(
        default_factory=SynchronizationConfigurationSection
    )
    configuration_beta: SynchronizationConfigurationSection = Field(
        default_factory=SynchronizationConfigurationSection
    )

    @property
    def endpoints(self) -> tuple[str | None, str | None]:
        return (self.alpha, self.beta)

    @property
    def role_sections(
        self,
    ) -> tuple[ConfigurationSection, ConfigurationSection]:
        return (self.configuration_alpha, self.configuration_beta)


class ForwardingEntry(ForwardingConfigurationSection):
    """
    Forwarding session: endpoints and session-wide configuration inline, plus
    endpoint-specific configuration.
    """

    source: str | None = None
    destination: str | None = None
    configuration_source: ForwardingConfigurationSection = Field(
        default_factory=ForwardingConfigurationSection
    )
    configuration_destination: ForwardingConfigurationSection = Field(
        default_factory=ForwardingConfigurationSection
    )

    @property
    def endpoints(self) -> tuple[str | None, str | None]:
        return (self.source, self.destination)

    @property
    def role_sections(
        self,
    ) -> tuple[ConfigurationSection, ConfigurationSection]:
        return (self.configuration_source, self.configuration_destination)


class ExtensionSection(StrictModel):
    """
    Top-level `x-mutagen` section.
    """

    forwarding: dict[str, ForwardingEntry] = Field(
        default_factory=dict, alias="forward"
    )
    synchronization: dict[str, SynchronizationEntry] = Field(
        default_factory=dict, alias="sync"
    )

    @field_validator("forwarding", "synchronization", mode="before")
    @classmethod
    def validate_sessions(cls, value: Any) -> Any:
        # allow an empty section, e.g. "sync:" with no value
        return {} if value is None else value

    def entries(
        self, kind: SessionKind
    ) -> dict[str, ForwardingEntry] | dict[str, SynchronizationEntry]:
        if kind is SessionKind.FORWARDING:
            return self.forwarding
        return self.synchronization


class DefaultsSection(StrictModel):
    """
    Defaults for each session kind, as provided by the tool configuration.
    """

    forwarding: ForwardingEntry | None = Field(default=None, alias="forward")
    synchronization: SynchronizationEntry | None = Field(
        default=None, alias="sync"
    )

    def session_defaults(self, kind: SessionKind) -> SessionDefaults:
        entry = (
            self.forwarding
            if kind is SessionKind.FORWARDING
            else self.synchronization
        )
        if entry is None:
            return SessionDefaults.empty(kind)
        return SessionDefaults.from_entry(kind, entry, source="global")


@dataclass(kw_only=True)
class SessionDefaults:
    """
    Validated default configurations for one session kind: session-wide and
    for each endpoint role.
    """

    configuration: BaseConfiguration
    first: BaseConfiguration
    second: BaseConfiguration

    @classmethod
    def empty(cls, kind: SessionKind) -> Self:
        configuration_cls = _configuration_cls(kind)
        return cls(
            configuration=configuration_cls(),
            first=configuration_cls(),
            second=configuration_cls(),
        )

    @classmethod
    def from_entry(
        cls,
        kind: SessionKind,
        entry: ForwardingEntry | SynchronizationEntry,
        *,
        source: str = "project",
    ) -> Self:
        """
        Extract defaults from an entry, which must not declare endpoints.
        """
        for role, url in zip(kind.roles, entry.endpoints):
            if url:
                raise DefaultsMustNotDeclareEndpoints(
                    f"{role} URL not allowed in {source} default {kind} configuration"
                )

        first, second = entry.role_sections
        defaults = cls(
            configuration=entry.configuration(),
            first=first.configuration(),
            second=second.configuration(),
        )

        defaults.configuration.ensure_valid(False)
        defaults.first.ensure_valid(True)
        defaults.second.ensure_valid(True)

        return defaults


def decode_extension(data: Any) -> ExtensionSection:
    """
    Decode the raw `x-mutagen` value from the project.
    """
    if data is None:
        return ExtensionSection()

    try:
        return ExtensionSection.model_validate(data)
    except PydanticValidationError as e:
        raise ExtensionDecodeError(
            f"unable to decode {EXTENSION_KEY} section: {e}"
        ) from e


def _configuration_cls(kind: SessionKind) -> type[BaseConfiguration]:
    if kind is SessionKind.FORWARDING:
        return ForwardingConfiguration
    return SynchronizationConfiguration
