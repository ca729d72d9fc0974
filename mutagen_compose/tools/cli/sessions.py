"""
Operations on the sessions owned by a project's sidecar, without a full
reconciliation pass.
"""
from __future__ import annotations

from typer import Context

from ._utils import (
    MainTyper,
    get_root_context,
    handle_errors,
    logger,
    print_sessions,
)

app = MainTyper(
    "sessions",
    help="Manage sessions owned by the project's sidecar",
)


@app.command("list")
def list_(ctx: Context):
    """
    List sessions
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        sessions = root_context.create_liaison().list_sessions(
            root_context.load_project()
        )

    if not any(sessions.values()):
        logger.info("No sessions found")
        return

    print_sessions(sessions)


@app.command()
def pause(ctx: Context):
    """
    Pause sessions
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        root_context.create_liaison().pause_sessions(root_context.load_project())

    logger.info("Paused sessions")


@app.command()
def resume(ctx: Context):
    """
    Resume sessions
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        root_context.create_liaison().resume_sessions(
            root_context.load_project()
        )

    logger.info("Resumed sessions")


@app.command()
def terminate(ctx: Context):
    """
    Terminate sessions
    """
    root_context = get_root_context(ctx)

    with handle_errors():
        root_context.create_liaison().terminate_sessions(
            root_context.load_project()
        )

    logger.info("Terminated sessions")
