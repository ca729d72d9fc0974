"""
Parsing and classification of session endpoint addresses.

Supported addresses:

- Local paths, e.g. `./app` or `/home/me/app` (synchronization)
- Local forwarding endpoints, e.g. `tcp:localhost:8080` (forwarding source)
- Volume references, e.g. `volume://cache/sub/dir` (synchronization)
- Network references, e.g. `network://backend:tcp:api:80` (forwarding
  destination)

Volume and network references are reached through the sidecar container, so
they're converted to {obj}`SidecarEndpoint` placeholders when building
specifications and reified once the sidecar's container id is known.
"""
from __future__ import annotations

import os
import re
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .exceptions import (
    AmbiguousVolumeRole,
    ExpectedNetworkEndpoint,
    InvalidEndpoint,
    PathResolutionFailed,
    UnsupportedProtocol,
    UnsupportedTransport,
)
from .types import AddressKind, SessionKind

__all__ = [
    "LocalEndpoint",
    "VolumeEndpoint",
    "NetworkEndpoint",
    "SidecarEndpoint",
    "Endpoint",
    "classify_address",
    "parse_forwarding_source",
    "parse_forwarding_destination",
    "parse_synchronization_endpoints",
    "docker_url",
    "volume_mount_path",
]

VOLUME_PREFIX = "volume://"
NETWORK_PREFIX = "network://"

TCP_PROTOCOLS = ("tcp", "tcp4", "tcp6")
"""
Forwarding protocols which are TCP-based.
"""

FORWARDING_PROTOCOLS = TCP_PROTOCOLS + ("unix", "npipe")
"""
All forwarding protocols understood by the daemon.
"""

VOLUME_MOUNT_ROOTS = {
    "linux": PurePosixPath("/volumes"),
    "windows": PureWindowsPath("c:\\volumes"),
}
"""
Root folder for volume mounts in the sidecar container, by engine OS type.
"""

_RESOURCE_NAME = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")
_WINDOWS_DRIVE = re.compile(r"^[a-zA-Z]:[\\/]")


class LocalEndpoint(BaseModel):
    """
    Endpoint on the local host: an absolute path for synchronization or a
    forwarding endpoint like `tcp:localhost:8080`.
    """

    kind: Literal["local"] = "local"
    path: str

    @property
    def url(self) -> str:
        return self.path


class VolumeEndpoint(BaseModel):
    """
    Path inside a project volume, as mounted in the sidecar container.
    """

    kind: Literal["volume"] = "volume"
    volume: str
    path: str

    def to_sidecar(self) -> SidecarEndpoint:
        return SidecarEndpoint(address=self.path)


class NetworkEndpoint(BaseModel):
    """
    TCP endpoint reachable on a project network.
    """

    kind: Literal["network"] = "network"
    network: str
    address: str

    def to_sidecar(self) -> SidecarEndpoint:
        return SidecarEndpoint(address=self.address)


class SidecarEndpoint(BaseModel):
    """
    Endpoint inside the sidecar container. Until the container exists,
    `container` is unset and the endpoint is only a placeholder.
    """

    kind: Literal["sidecar"] = "sidecar"
    address: str
    container: str | None = None
    docker_host: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.container is None

    def reify(self, container: str, docker_host: str):
        """
        Bind this endpoint to a concrete container.
        """
        if not self.is_placeholder:
            raise ValueError(
                f"Endpoint already bound to container {self.container}"
            )

        self.container = container
        self.docker_host = docker_host

    @property
    def url(self) -> str:
        """
        Address in the daemon's Docker URL format.
        """
        if self.container is None:
            raise ValueError(f"Placeholder endpoint has no URL: {self.address}")
        return docker_url(self.container, self.address)

    @property
    def environment(self) -> dict[str, str]:
        return {"DOCKER_HOST": self.docker_host} if self.docker_host else {}


Endpoint = Annotated[
    Union[LocalEndpoint, VolumeEndpoint, NetworkEndpoint, SidecarEndpoint],
    Field(discriminator="kind"),
]


def classify_address(raw: str, kind: SessionKind) -> AddressKind:
    """
    Classify a raw address without validating it.
    """
    if raw.startswith(NETWORK_PREFIX):
        return AddressKind.NETWORK
    if raw.startswith(VOLUME_PREFIX):
        return AddressKind.VOLUME
    if "://" in raw:
        return AddressKind.REMOTE

    if kind is SessionKind.FORWARDING:
        if _is_forwarding_endpoint(raw):
            return AddressKind.LOCAL

        # e.g. user@host:tcp:localhost:80
        if "@" in raw or ":" in raw:
            return AddressKind.REMOTE
        return AddressKind.LOCAL

    return AddressKind.REMOTE if _is_scp_style(raw) else AddressKind.LOCAL


def parse_forwarding_source(raw: str) -> LocalEndpoint:
    """
    Parse a forwarding source, which must be a local TCP-based endpoint.
    """
    address_kind = classify_address(raw, SessionKind.FORWARDING)

    if address_kind is AddressKind.NETWORK:
        raise InvalidEndpoint(
            f"network URL ({raw}) not allowed as forwarding source"
        )
    elif address_kind is not AddressKind.LOCAL:
        raise UnsupportedProtocol(
            f"only local URLs allowed as forwarding sources: {raw}"
        )

    _parse_tcp_endpoint(raw)
    return LocalEndpoint(path=raw)


def parse_forwarding_destination(raw: str) -> NetworkEndpoint:
    """
    Parse a forwarding destination of the form
    `network://<network>:<tcp endpoint>`.
    """
    if classify_address(raw, SessionKind.FORWARDING) is not AddressKind.NETWORK:
        raise ExpectedNetworkEndpoint(
            f"forwarding destination ({raw}) should be a network URL"
        )

    network, sep, address = raw[len(NETWORK_PREFIX) :].partition(":")
    if not sep or not network:
        raise InvalidEndpoint(f"network URL ({raw}) missing network name")

    _ensure_resource_name(network, raw)
    _parse_tcp_endpoint(address)

    return NetworkEndpoint(network=network, address=address)


def parse_synchronization_endpoints(
    alpha: str,
    beta: str,
    *,
    working_dir: Path,
    os_type: str,
) -> tuple[LocalEndpoint | VolumeEndpoint, LocalEndpoint | VolumeEndpoint]:
    """
    Parse the endpoints of a synchronization session, exactly one of which
    must reference a volume.
    """
    alpha_kind = classify_address(alpha, SessionKind.SYNCHRONIZATION)
    beta_kind = classify_address(beta, SessionKind.SYNCHRONIZATION)

    alpha_is_volume = alpha_kind is AddressKind.VOLUME
    beta_is_volume = beta_kind is AddressKind.VOLUME

    if not (alpha_is_volume or beta_is_volume):
        raise AmbiguousVolumeRole("neither alpha nor beta references a volume")
    elif alpha_is_volume and beta_is_volume:
        raise AmbiguousVolumeRole("both alpha and beta reference volumes")

    def parse(raw: str, address_kind: AddressKind):
        if address_kind is AddressKind.VOLUME:
            return _parse_volume(raw, os_type)
        elif address_kind is AddressKind.LOCAL:
            return _resolve_local(raw, working_dir)
        raise UnsupportedProtocol(
            f"only local and volume URLs allowed as synchronization URLs: {raw}"
        )

    return parse(alpha, alpha_kind), parse(beta, beta_kind)


def docker_url(container: str, address: str) -> str:
    """
    Format an address inside a container in the daemon's Docker URL format.
    """
    if address.startswith("/"):
        return f"docker://{container}{address}"
    elif _is_forwarding_endpoint(address):
        return f"docker://{container}:{address}"
    return f"docker://{container}/{address}"


def volume_mount_path(os_type: str, volume: str) -> str:
    """
    Get the path at which a volume is mounted in the sidecar container.
    """
    root = VOLUME_MOUNT_ROOTS.get(os_type.lower())
    if root is None:
        raise InvalidEndpoint(f"unsupported engine OS type: {os_type}")
    return str(root / volume)


def _parse_volume(raw: str, os_type: str) -> VolumeEndpoint:
    volume, _, subpath = raw[len(VOLUME_PREFIX) :].partition("/")
    if not volume:
        raise InvalidEndpoint(f"volume URL ({raw}) missing volume name")

    _ensure_resource_name(volume, raw)

    parts = [p for p in subpath.split("/") if p]
    if ".." in parts:
        raise InvalidEndpoint(f"volume URL ({raw}) escapes its volume")

    mount_path = volume_mount_path(os_type, volume)
    root = VOLUME_MOUNT_ROOTS[os_type.lower()]
    path = str(type(root)(mount_path, *parts))

    return VolumeEndpoint(volume=volume, path=path)


def _resolve_local(raw: str, working_dir: Path) -> LocalEndpoint:
    if not raw:
        raise InvalidEndpoint("empty synchronization URL")

    try:
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = working_dir / path
        resolved = os.path.abspath(path)
    except (OSError, RuntimeError) as e:
        raise PathResolutionFailed(
            f"unable to resolve relative URL ({raw}): {e}"
        ) from e

    return LocalEndpoint(path=resolved)


def _parse_tcp_endpoint(address: str):
    """
    Ensure address is a valid TCP-based forwarding endpoint.
    """
    protocol, sep, target = address.partition(":")
    if not sep or protocol not in FORWARDING_PROTOCOLS:
        raise InvalidEndpoint(f"invalid forwarding endpoint: {address}")

    if protocol not in TCP_PROTOCOLS:
        raise UnsupportedTransport(
            f"non-TCP-based forwarding endpoint ({address}) unsupported"
        )

    host, sep, port = target.rpartition(":")
    if not sep or not port.isdigit() or not 0 < int(port) < 65536:
        raise InvalidEndpoint(f"invalid forwarding endpoint port: {address}")
    if protocol == "tcp" and not host:
        raise InvalidEndpoint(f"forwarding endpoint missing host: {address}")


def _is_forwarding_endpoint(raw: str) -> bool:
    return any(raw.startswith(f"{p}:") for p in FORWARDING_PROTOCOLS)


def _is_scp_style(raw: str) -> bool:
    """
    Check for `[user@]host:path` style remote addresses.
    """
    if raw.startswith(("/", ".", "~")) or _WINDOWS_DRIVE.match(raw):
        return False

    colon = raw.find(":")
    if colon < 0:
        return False

    slash = raw.find("/")
    return slash < 0 or colon < slash


def _ensure_resource_name(name: str, raw: str):
    if not _RESOURCE_NAME.match(name):
        raise InvalidEndpoint(f"invalid resource name ({name}) in URL {raw}")
