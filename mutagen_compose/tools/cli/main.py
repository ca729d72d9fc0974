"""
Entry point of `mutagen-compose` CLI.

Wraps the orchestrator's lifecycle commands so the sidecar service and the
sessions declared in the project's `x-mutagen` section are managed along
with the project's own services.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import dotenv
import yaml
from click.exceptions import BadParameter
from pydantic import ValidationError
from typer import Argument, Context, Option

from ...compose.liaison import Liaison
from ...core.project import Project
from ..config import Config
from . import sessions
from ._utils import (
    MainTyper,
    console,
    get_root_context,
    handle_errors,
    logger,
    lookup_param,
    print_sessions,
)

COMPOSE_FILES = [
    "compose.yaml",
    "compose.yml",
    "docker-compose.yaml",
    "docker-compose.yml",
]
"""
Files searched for in the current folder if no file is given, in order.
"""

CONFIG_FILE = "mutagen-compose.yaml"

app = MainTyper(
    "mutagen-compose",
    help="Compose with file synchronization and network forwarding sessions",
)


@app.callback()
def main(
    ctx: Context,
    file: Path
    | None = Option(
        None,
        "--file",
        "-f",
        help="Compose file, by default the first of: " + ", ".join(COMPOSE_FILES),
        envvar="COMPOSE_FILE",
        dir_okay=False,
    ),
    project_name: str
    | None = Option(
        None,
        "--project-name",
        "-p",
        help="Project name, by default the `name` in the Compose file or the name of its folder",
        envvar="COMPOSE_PROJECT_NAME",
    ),
    config_file: Path = Option(
        CONFIG_FILE,
        help=".yaml file containing tool configuration, used if it exists",
        envvar="MUTAGEN_COMPOSE_CONFIG_FILE",
        dir_okay=False,
    ),
    docker_host: str
    | None = Option(
        None,
        help="Engine address, e.g. unix:///var/run/docker.sock",
        envvar="DOCKER_HOST",
    ),
    verbose: bool = Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
):
    # Load environment variables from .env file if it exists
    dotenv.load_dotenv(Path(".env").resolve())

    if verbose:
        logger.setLevel(logging.DEBUG)

    config = RootContext.load_config(ctx=ctx, config_file=config_file)

    if docker_host:
        config.docker_host = docker_host

    ctx.obj = RootContext(
        ctx=ctx,
        config=config,
        compose_file=file,
        project_name=project_name,
    )


app.add_typer(sessions.app)


@app.command()
def up(
    ctx: Context,
    build: bool = Option(
        False,
        "--build",
        help="Build images before starting containers",
    ),
    remove_orphans: bool = Option(
        False,
        "--remove-orphans",
        help="Remove containers for services not defined in the Compose file",
    ),
):
    """
    Create and start the sidecar, reconcile sessions, then create and start
    services
    """
    root_context = get_root_context(ctx)

    args = []
    if build:
        args.append("--build")
    if remove_orphans:
        args.append("--remove-orphans")

    with handle_errors():
        root_context.create_liaison().up(root_context.load_project(), args=args)


@app.command()
def create(ctx: Context):
    """
    Create the sidecar and services
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        root_context.create_liaison().create(root_context.load_project())


@app.command()
def start(ctx: Context):
    """
    Start the sidecar, reconcile sessions, then start services
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        root_context.create_liaison().start(root_context.load_project())


@app.command()
def stop(
    ctx: Context,
    services: list[str]
    | None = Argument(
        None,
        help="Services to stop, by default all; sessions are paused when stopping the sidecar",
    ),
):
    """
    Stop services
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        root_context.create_liaison().stop(
            root_context.load_project(), services or []
        )


@app.command()
def down(
    ctx: Context,
    volumes: bool = Option(
        False,
        "--volumes",
        help="Remove named volumes declared in the Compose file",
    ),
    remove_orphans: bool = Option(
        False,
        "--remove-orphans",
        help="Remove containers for services not defined in the Compose file",
    ),
):
    """
    Terminate sessions, then stop and remove containers and networks
    """
    root_context = get_root_context(ctx)

    args = []
    if volumes:
        args.append("--volumes")
    if remove_orphans:
        args.append("--remove-orphans")

    with handle_errors():
        root_context.create_liaison().down(
            root_context.load_project(), args=args
        )


@app.command()
def pull(
    ctx: Context,
    services: list[str]
    | None = Argument(
        None,
        help="Services to pull, by default all including the sidecar",
    ),
):
    """
    Pull service images
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        root_context.create_liaison().pull(
            root_context.load_project(), services or []
        )


@app.command()
def ps(ctx: Context):
    """
    List sessions and containers
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        print_sessions(
            root_context.create_liaison().ps(root_context.load_project())
        )


@app.command()
def config(ctx: Context):
    """
    Validate sessions and print the project including the sidecar
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        result = root_context.create_liaison().build(
            root_context.load_project()
        )

    console.print(
        result.project.dump_compose(),
        end="",
        markup=False,
        highlight=False,
        soft_wrap=True,
    )

    logger.info(
        f"Validated {len(result.forwarding)} forwarding and {len(result.synchronization)} synchronization session(s)"
    )


def run():
    app()


@dataclass(kw_only=True)
class RootContext:
    ctx: Context
    config: Config
    compose_file: Path | None
    project_name: str | None

    @classmethod
    def load_config(cls, *, ctx: Context, config_file: Path) -> Config:
        if not config_file.is_file():
            # only an explicitly passed file is required to exist
            if config_file != Path(CONFIG_FILE):
                raise BadParameter(
                    f"file does not exist: {config_file}",
                    ctx=ctx,
                    param=lookup_param(ctx, "config_file"),
                )
            return Config()

        try:
            return Config.load_yaml(config_file)
        except (ValueError, ValidationError, yaml.YAMLError) as e:
            raise BadParameter(
                f"failed to load config file '{config_file}': {e}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

    def load_project(self) -> Project:
        """
        Load project from the Compose file.
        """
        compose_file = self.compose_file or _find_compose_file()

        if compose_file is None or not compose_file.is_file():
            raise BadParameter(
                f"Compose file not found: {compose_file or ', '.join(COMPOSE_FILES)}",
                ctx=self.ctx,
                param=lookup_param(self.ctx, "file"),
            )

        try:
            return Project.load(compose_file, name=self.project_name)
        except (ValueError, ValidationError, yaml.YAMLError) as e:
            raise BadParameter(
                f"failed to load Compose file '{compose_file}': {e}",
                ctx=self.ctx,
                param=lookup_param(self.ctx, "file"),
            )

    def create_liaison(self) -> Liaison:
        return self.config.create_liaison(logger=logger)


def _find_compose_file() -> Path | None:
    return next(
        (Path(name) for name in COMPOSE_FILES if Path(name).is_file()),
        None,
    )


if __name__ == "__main__":
    app()
