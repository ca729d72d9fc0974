"""
Session configuration records and the three-tier merge used to compute
effective configurations.

Configurations are sparse: every field is optional and an unset field lets
the daemon apply its own default. Each field is tagged with a scope:

- `session`: only allowed in session-wide blocks
- `endpoint`: only allowed in endpoint-specific blocks
- `any`: allowed in either
"""
from __future__ import annotations

from typing import Any, ClassVar, Iterable, Literal, Self, TypeVar

from pydantic import BaseModel, ByteSize, ConfigDict, field_validator

from .exceptions import IllegalFieldForRole

__all__ = [
    "SynchronizationMode",
    "ProbeMode",
    "ScanMode",
    "StageMode",
    "SymlinkMode",
    "WatchMode",
    "IgnoreVCSMode",
    "PermissionsMode",
    "SocketOverwriteMode",
    "BaseConfiguration",
    "SynchronizationConfiguration",
    "ForwardingConfiguration",
    "merge_configurations",
]

SynchronizationMode = Literal[
    "two-way-safe", "two-way-resolved", "one-way-safe", "one-way-replica"
]
ProbeMode = Literal["probe", "assume"]
ScanMode = Literal["full", "accelerated"]
StageMode = Literal["mutagen", "neighboring", "internal"]
SymlinkMode = Literal["ignore", "portable", "posix-raw"]
WatchMode = Literal["portable", "force-poll", "no-watch"]
IgnoreVCSMode = Literal["ignore", "propagate"]
PermissionsMode = Literal["portable", "manual"]
SocketOverwriteMode = Literal["leave", "overwrite"]

Scope = Literal["session", "endpoint", "any"]

ConfigT = TypeVar("ConfigT", bound="BaseConfiguration")


class BaseConfiguration(BaseModel):
    """
    Sparse record of session parameters. Two configurations are equal only
    if every field compares equal.
    """

    model_config = ConfigDict(frozen=True)

    field_specs: ClassVar[dict[str, tuple[tuple[str, ...], str, Scope]]]
    """
    Mapping of field name to (path in nested YAML/JSON form, daemon CLI flag,
    scope).
    """

    @field_validator("*", mode="before")
    @classmethod
    def normalize_default(cls, value: Any) -> Any:
        # daemon reports unset enums as "default"
        if value in ("", "default"):
            return None
        return value

    @classmethod
    def from_nested(cls, data: dict[str, Any] | None) -> Self:
        """
        Populate from the nested form used in YAML and daemon listings,
        ignoring keys which aren't recognized.
        """
        values: dict[str, Any] = {}

        for name, (path, _, _) in cls.field_specs.items():
            value: Any = data or {}
            for key in path:
                value = value.get(key) if isinstance(value, dict) else None
            if value is not None:
                values[name] = value

        return cls(**values)

    @property
    def set_fields(self) -> dict[str, Any]:
        """
        Mapping of field name to value for fields which are set.
        """
        return {
            name: getattr(self, name)
            for name in self.field_specs
            if getattr(self, name) is not None
        }

    def ensure_valid(self, endpoint_specific: bool):
        """
        Ensure no field is set outside of the scope where it's allowed.
        """
        illegal_scope = "session" if endpoint_specific else "endpoint"
        block = "endpoint-specific" if endpoint_specific else "session-wide"

        for name in self.set_fields:
            path, _, scope = self.field_specs[name]
            if scope == illegal_scope:
                raise IllegalFieldForRole(
                    name,
                    f"{'.'.join(path)} cannot be specified in {block} configuration",
                )

    def to_flags(self, suffix: str | None = None) -> list[str]:
        """
        Convert to daemon CLI flags, with an optional role suffix like
        `alpha` for endpoint-specific configuration.
        """
        flags: list[str] = []

        for name, value in self.set_fields.items():
            _, flag, _ = self.field_specs[name]
            flags += _format_flag(flag, value, suffix)

        return flags

    def is_empty(self) -> bool:
        return not self.set_fields


class SynchronizationConfiguration(BaseConfiguration):
    mode: SynchronizationMode | None = None
    max_entry_count: int | None = None
    max_staging_file_size: ByteSize | None = None
    probe_mode: ProbeMode | None = None
    scan_mode: ScanMode | None = None
    stage_mode: StageMode | None = None
    symlink_mode: SymlinkMode | None = None
    watch_mode: WatchMode | None = None
    watch_polling_interval: int | None = None
    ignores: tuple[str, ...] | None = None
    ignore_vcs_mode: IgnoreVCSMode | None = None
    permissions_mode: PermissionsMode | None = None
    default_file_mode: int | None = None
    default_directory_mode: int | None = None
    default_owner: str | None = None
    default_group: str | None = None

    field_specs = {
        "mode": (("mode",), "mode", "session"),
        "max_entry_count": (("maxEntryCount",), "max-entry-count", "session"),
        "max_staging_file_size": (
            ("maxStagingFileSize",),
            "max-staging-file-size",
            "any",
        ),
        "probe_mode": (("probeMode",), "probe-mode", "any"),
        "scan_mode": (("scanMode",), "scan-mode", "any"),
        "stage_mode": (("stageMode",), "stage-mode", "any"),
        "symlink_mode": (("symlink", "mode"), "symlink-mode", "session"),
        "watch_mode": (("watch", "mode"), "watch-mode", "any"),
        "watch_polling_interval": (
            ("watch", "pollingInterval"),
            "watch-polling-interval",
            "any",
        ),
        "ignores": (("ignore", "paths"), "ignore", "session"),
        "ignore_vcs_mode": (("ignore", "vcs"), "ignore-vcs", "session"),
        "permissions_mode": (
            ("permissions", "mode"),
            "permissions-mode",
            "session",
        ),
        "default_file_mode": (
            ("permissions", "defaultFileMode"),
            "default-file-mode",
            "any",
        ),
        "default_directory_mode": (
            ("permissions", "defaultDirectoryMode"),
            "default-directory-mode",
            "any",
        ),
        "default_owner": (
            ("permissions", "defaultOwner"),
            "default-owner",
            "any",
        ),
        "default_group": (
            ("permissions", "defaultGroup"),
            "default-group",
            "any",
        ),
    }

    @field_validator("ignore_vcs_mode", mode="before")
    @classmethod
    def validate_ignore_vcs_mode(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "ignore" if value else "propagate"
        return value

    @field_validator("max_staging_file_size", mode="before")
    @classmethod
    def validate_max_staging_file_size(cls, value: Any) -> Any:
        # daemon reports an unset size as 0
        if value == 0:
            return None
        return value

    @field_validator("ignores", mode="before")
    @classmethod
    def validate_ignores(cls, value: Any) -> Any:
        if isinstance(value, list):
            return tuple(value)
        return value

    @field_validator("default_file_mode", "default_directory_mode", mode="before")
    @classmethod
    def validate_permission_mode(cls, value: Any) -> Any:
        return _parse_permission_mode(value)


class ForwardingConfiguration(BaseConfiguration):
    socket_overwrite_mode: SocketOverwriteMode | None = None
    socket_owner: str | None = None
    socket_group: str | None = None
    socket_permission_mode: int | None = None

    field_specs = {
        "socket_overwrite_mode": (
            ("socket", "overwriteMode"),
            "socket-overwrite-mode",
            "any",
        ),
        "socket_owner": (("socket", "owner"), "socket-owner", "any"),
        "socket_group": (("socket", "group"), "socket-group", "any"),
        "socket_permission_mode": (
            ("socket", "permissionMode"),
            "socket-permission-mode",
            "any",
        ),
    }

    @field_validator("socket_permission_mode", mode="before")
    @classmethod
    def validate_permission_mode(cls, value: Any) -> Any:
        return _parse_permission_mode(value)


def merge_configurations(
    layers: Iterable[ConfigT], *, endpoint_specific: bool
) -> ConfigT:
    """
    Validate each layer, then merge them field by field. Layers are ordered
    from lowest to highest precedence, e.g. (global, role default, session).
    """
    layers = list(layers)
    assert len(layers)

    cls = type(layers[0])
    values: dict[str, Any] = {}

    for layer in layers:
        assert type(layer) is cls
        layer.ensure_valid(endpoint_specific)
        values.update(layer.set_fields)

    return cls(**values)


def _parse_permission_mode(value: Any) -> Any:
    """
    Accept octal strings like `"0644"` as well as integers already decoded
    from YAML octal literals.
    """
    if value in ("", "default", 0):
        return None

    if isinstance(value, str):
        try:
            value = int(value, 8)
        except ValueError:
            raise ValueError(f"invalid octal permission mode: '{value}'")

    if isinstance(value, int) and not 0 < value <= 0o777:
        raise ValueError(f"permission mode out of range: {oct(value)}")

    return value


def _format_flag(flag: str, value: Any, suffix: str | None) -> list[str]:
    name = f"{flag}-{suffix}" if suffix else flag

    if flag == "ignore-vcs":
        return [f"--{name}" if value == "ignore" else f"--no-{name}"]
    if flag == "ignore":
        return [f"--{name}={v}" for v in value]
    if flag.endswith(("file-mode", "directory-mode", "permission-mode")):
        return [f"--{name}={value:o}"]
    return [f"--{name}={value}"]
