"""
Interface to configuration as persisted in .yaml file.
"""
from __future__ import annotations

from logging import Logger
from typing import Any

from pydantic import Field, field_validator

from ..compose.engine import DockerEngine
from ..compose.liaison import Liaison
from ..compose.orchestrator import DEFAULT_COMPOSE_COMMAND, ComposeCLI
from ..core.extension import DefaultsSection
from ..core.specification import DEFAULT_SIDECAR_VERSION, SpecificationBuilder
from .mutagen import MutagenCLI
from .yaml_model import BaseYamlModel

__all__ = [
    "Config",
]


class Config(BaseYamlModel):
    """
    Encapsulates configuration for use in tools.
    """

    mutagen_path: str = "mutagen"
    """
    Path to `mutagen` executable.
    """

    compose_command: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COMPOSE_COMMAND)
    )
    """
    Command used to invoke the orchestrator.
    """

    docker_host: str | None = None
    """
    Engine address, overriding `DOCKER_HOST`.
    """

    sidecar_version: str = DEFAULT_SIDECAR_VERSION
    """
    Tag of sidecar image, which should match the daemon's version.
    """

    defaults: DefaultsSection = Field(default_factory=DefaultsSection)
    """
    Global session defaults, applied beneath each project's own defaults.
    """

    @field_validator("compose_command", mode="before")
    def validate_compose_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.split()
        return value

    @field_validator("defaults", mode="before")
    def validate_defaults(cls, value: Any) -> Any:
        return {} if value is None else value

    def create_liaison(self, *, logger: Logger) -> Liaison:
        """
        Get liaison using the collaborators configured by this config.
        """
        engine = DockerEngine(self.docker_host, logger=logger)
        builder = SpecificationBuilder(
            engine,
            sidecar_version=self.sidecar_version,
            global_defaults=self.defaults,
            logger=logger,
        )

        return Liaison(
            ComposeCLI(self.compose_command, logger=logger),
            engine,
            lambda: MutagenCLI(self.mutagen_path, logger=logger),
            builder=builder,
            logger=logger,
        )
