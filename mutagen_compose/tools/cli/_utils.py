"""
Utilities specific to CLI functionality.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from click import Parameter
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from typer import Context, Exit, Typer

from ...core.daemon import SessionState
from ...core.exceptions import MutagenComposeError
from ...core.types import SessionKind

if TYPE_CHECKING:
    from .main import RootContext


console = Console()

rich_handler = RichHandler(
    console=Console(stderr=True),
    rich_tracebacks=True,
    show_level=True,
    show_time=True,
    show_path=False,
)
rich_handler.setFormatter(logging.Formatter("%(message)s"))

logger = logging.getLogger("mutagen-compose")
logger.setLevel(logging.INFO)
logger.addHandler(rich_handler)
logger.propagate = False


class MainTyper(Typer):
    """
    Typer app with preconfigured settings.
    """

    def __init__(self, name: str, *, help: str):
        return super().__init__(
            name=name,
            help=help,
            rich_markup_mode="markdown",
            no_args_is_help=True,
            add_completion=False,
        )


def get_root_context(ctx: Context) -> RootContext:
    from .main import RootContext

    root_context = ctx.obj
    assert isinstance(root_context, RootContext)
    return root_context


def lookup_param(ctx: Context, name: str) -> Parameter:
    """
    Lookup param by name.
    """
    param = next((p for p in ctx.command.params if p.name == name), None)
    assert param, f"Could not find param with name: {name}"
    return param


@contextmanager
def handle_errors() -> Iterator[None]:
    """
    Log errors raised by the library and exit with an error code.
    """
    try:
        yield
    except MutagenComposeError as e:
        logger.error(str(e))
        raise Exit(code=1)


def print_sessions(sessions: dict[SessionKind, list[SessionState]]):
    """
    Print table of sessions for each kind which has any.
    """
    for kind, states in sessions.items():
        if not states:
            continue

        first_role, second_role = kind.roles

        table = Table(title=f"{kind.description.capitalize()} sessions")
        table.add_column("Name")
        table.add_column("Identifier")
        table.add_column(first_role.capitalize())
        table.add_column(second_role.capitalize())
        table.add_column("Status")

        for state in states:
            status = "Paused" if state.paused else (state.status or "")
            table.add_row(
                state.name, state.identifier, *state.urls, status
            )

        console.print(table)
