"""
Compose project model: the subset of the Compose file format which is
needed to inject the sidecar service, with everything else preserved as-is.

Short syntaxes are normalized to their long forms so the project can be
inspected and modified uniformly, then written back out for the orchestrator.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..tools.yaml_model import BaseYamlModel
from .extension import EXTENSION_KEY

__all__ = [
    "DEFAULT_NETWORK",
    "ServiceVolume",
    "ServiceDependency",
    "Service",
    "Project",
]

DEFAULT_NETWORK = "default"
"""
Network which the orchestrator creates implicitly for every project.
"""

_BIND_PREFIXES = (".", "/", "~")
_PROJECT_NAME_INVALID = re.compile(r"[^a-z0-9_-]")
_WINDOWS_DRIVE = re.compile(r"^[a-zA-Z]:[\\/]")
_PROPAGATION_MODES = {
    "shared",
    "slave",
    "private",
    "rshared",
    "rslave",
    "rprivate",
}
_CONSISTENCY_MODES = {"consistent", "cached", "delegated"}


class ServiceVolume(BaseModel):
    """
    Volume mounted by a service, in Compose's long syntax.
    """

    model_config = ConfigDict(extra="allow")

    type: str = "volume"
    source: str | None = None
    target: str
    read_only: bool | None = None

    @model_validator(mode="before")
    @classmethod
    def from_str(cls, data: Any) -> Any:
        """
        Parse short syntax: `[source:]target[:mode]`, where the source may be
        a Windows path such as `C:\\src`.
        """
        if not isinstance(data, str):
            return data

        drive = ""
        if _WINDOWS_DRIVE.match(data):
            drive, data = data[:2], data[2:]

        parts = data.split(":")
        parts[0] = drive + parts[0]

        if len(parts) == 1:
            return {"type": "volume", "target": parts[0]}

        source, target = parts[0], parts[1]
        volume_type = (
            "bind"
            if source.startswith(_BIND_PREFIXES) or _WINDOWS_DRIVE.match(source)
            else "volume"
        )

        result: dict[str, Any] = {
            "type": volume_type,
            "source": source,
            "target": target,
        }

        if len(parts) > 2:
            for flag in parts[2].split(","):
                _apply_mode(result, flag)

        return result


class ServiceDependency(BaseModel):
    model_config = ConfigDict(extra="allow")

    condition: str = "service_started"


class Service(BaseModel):
    """
    Service definition. Fields not modeled here are preserved.
    """

    model_config = ConfigDict(extra="allow")

    image: str | None = None
    labels: dict[str, Any] = Field(default_factory=dict)
    networks: dict[str, dict[str, Any]] = Field(default_factory=dict)
    volumes: list[ServiceVolume] = Field(default_factory=list)
    depends_on: dict[str, ServiceDependency] = Field(default_factory=dict)

    @field_validator("labels", mode="before")
    @classmethod
    def validate_labels(cls, value: Any) -> Any:
        if isinstance(value, list):
            return dict(_split_label(label) for label in value)
        return value

    @field_validator("networks", mode="before")
    @classmethod
    def validate_networks(cls, value: Any) -> Any:
        return _normalize_mapping(value)

    @field_validator("depends_on", mode="before")
    @classmethod
    def validate_depends_on(cls, value: Any) -> Any:
        return _normalize_mapping(value)

    @property
    def volume_sources(self) -> set[str]:
        """
        Names of named volumes mounted by this service.
        """
        return {
            v.source for v in self.volumes if v.type == "volume" and v.source
        }


class Project(BaseYamlModel):
    """
    Compose project. Top-level keys other than those modeled here, including
    extensions like `x-mutagen`, are preserved.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    working_dir: Path = Field(exclude=True)
    services: dict[str, Service] = Field(default_factory=dict)
    networks: dict[str, dict[str, Any]] = Field(default_factory=dict)
    volumes: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("services", mode="before")
    @classmethod
    def validate_services(cls, value: Any) -> Any:
        return _normalize_mapping(value)

    @field_validator("networks", "volumes", mode="before")
    @classmethod
    def validate_resources(cls, value: Any) -> Any:
        return _normalize_mapping(value)

    @classmethod
    def load(cls, file: Path, *, name: str | None = None) -> Self:
        """
        Load project from a Compose file. The project name is taken from the
        argument, the file's `name` key or the file's folder, in that order.
        """
        file = file.resolve()
        working_dir = file.parent

        overrides: dict[str, Any] = {"working_dir": working_dir}
        if name:
            overrides["name"] = name

        return cls.load_yaml(
            file,
            default_name=_normalize_project_name(working_dir.name),
            **overrides,
        )

    @model_validator(mode="before")
    @classmethod
    def validate_name(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            default_name = data.pop("default_name", None)
            if not data.get("name") and default_name:
                data["name"] = default_name
        return data

    @property
    def extensions(self) -> dict[str, Any]:
        """
        Top-level `x-` extension keys.
        """
        return {
            key: value
            for key, value in (self.model_extra or {}).items()
            if key.startswith("x-")
        }

    @property
    def mutagen_extension(self) -> Any:
        return self.extensions.get(EXTENSION_KEY)

    @property
    def declared_networks(self) -> set[str]:
        return set(self.networks) | {DEFAULT_NETWORK}

    @property
    def declared_volumes(self) -> set[str]:
        return set(self.volumes)

    def with_services(self, services: dict[str, Service]) -> Project:
        """
        Get a copy of this project with the given services, leaving this
        project untouched.
        """
        project = self.model_copy(deep=True)
        project.services = {
            name: service.model_copy(deep=True)
            for name, service in services.items()
        }
        return project

    def to_compose(self) -> dict[str, Any]:
        """
        Get the project in Compose file form.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def dump_compose(self) -> str:
        return self.to_yaml()


def _normalize_mapping(value: Any) -> Any:
    """
    Normalize list syntax `[a, b]` to a mapping and null values to empty
    mappings.
    """
    if value is None:
        return {}
    if isinstance(value, list):
        return {item: {} for item in value}
    if isinstance(value, dict):
        return {k: ({} if v is None else v) for k, v in value.items()}
    return value


def _split_label(label: str) -> tuple[str, str]:
    key, _, value = label.partition("=")
    return key, value


def _normalize_project_name(name: str) -> str:
    return _PROJECT_NAME_INVALID.sub("", name.lower())


def _apply_mode(volume: dict[str, Any], flag: str):
    """
    Carry a short syntax mode flag over to its long syntax equivalent.
    """
    if flag == "ro":
        volume["read_only"] = True
    elif flag == "rw":
        volume["read_only"] = False
    elif flag in ("z", "Z"):
        volume.setdefault("bind", {})["selinux"] = flag
    elif flag in _PROPAGATION_MODES:
        volume.setdefault("bind", {})["propagation"] = flag
    elif flag == "nocopy":
        volume.setdefault("volume", {})["nocopy"] = True
    elif flag in _CONSISTENCY_MODES:
        volume["consistency"] = flag
    elif flag:
        raise ValueError(f"unknown volume mode: {flag}")
