"""
Daemon client driving the `mutagen` command line.
"""
from __future__ import annotations

import json
import logging
import os
import re
import subprocess

from ..core.daemon import DaemonClient, Selection, SessionState
from ..core.exceptions import DaemonError
from ..core.specification import BaseSpecification
from ..core.types import SessionKind

__all__ = [
    "MutagenCLI",
]

LIST_TEMPLATE = "{{ json . }}"

CREATED_SESSION = re.compile(r"Created session\s+(\S+)")


class MutagenCLI(DaemonClient):
    """
    Accesses the daemon through the `mutagen` executable, starting the daemon
    upon connecting if it isn't already running.
    """

    _path: str
    _logger: logging.Logger

    def __init__(
        self, path: str = "mutagen", *, logger: logging.Logger | None = None
    ):
        self._path = path
        self._logger = logger or logging.getLogger()

    def connect(self):
        self._run("connect to daemon", ["daemon", "start"])

    def list(self, kind: SessionKind, selection: Selection) -> list[SessionState]:
        output = self._run(
            f"{kind} session listing",
            [kind.value, "list", "--template", LIST_TEMPLATE]
            + _selection_args(selection),
        )

        try:
            sessions = json.loads(output) if output.strip() else []
        except json.JSONDecodeError as e:
            raise DaemonError(
                f"{kind} session listing", f"invalid response: {e}"
            ) from e

        return [SessionState.from_listing(kind, data) for data in sessions or []]

    def create(self, specification: BaseSpecification) -> str:
        kind = specification.kind
        first_role, second_role = kind.roles
        configuration, first, second = specification.configurations

        # defaults tier of the tool configuration replaces ~/.mutagen.yml
        args = [kind.value, "create", "--no-global-configuration"]
        args += ["--name", specification.name]
        for key, value in specification.labels.items():
            args += ["--label", f"{key}={value}"]

        args += configuration.to_flags()
        args += first.to_flags(first_role)
        args += second.to_flags(second_role)
        args += list(specification.urls)

        output = self._run(
            f"create {kind} session",
            args,
            env=specification.environment,
            session=specification.name,
        )

        match = CREATED_SESSION.search(output)
        if match is None:
            raise DaemonError(
                f"create {kind} session",
                f"unable to find session identifier in output: {output.strip()}",
                session=specification.name,
            )

        identifier = match.group(1)
        self._logger.debug(f"Created {kind} session {identifier}")

        return identifier

    def terminate(self, kind: SessionKind, selection: Selection):
        self._run(
            f"{kind} session termination",
            [kind.value, "terminate"] + _selection_args(selection),
        )

    def pause(self, kind: SessionKind, selection: Selection):
        self._run(
            f"{kind} session pause",
            [kind.value, "pause"] + _selection_args(selection),
        )

    def resume(self, kind: SessionKind, selection: Selection):
        self._run(
            f"{kind} session resumption",
            [kind.value, "resume"] + _selection_args(selection),
        )

    def flush(self, selection: Selection, *, background: bool = False):
        args = [SessionKind.SYNCHRONIZATION.value, "flush"]
        if background:
            args.append("--skip-wait")

        self._run(
            "synchronization session flush", args + _selection_args(selection)
        )

    def _run(
        self,
        operation: str,
        args: list[str],
        *,
        env: dict[str, str] | None = None,
        session: str | None = None,
    ) -> str:
        command = [self._path, *args]
        self._logger.debug(f"Running: {' '.join(command)}")

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=True,
                env=os.environ | env if env else None,
            )
        except FileNotFoundError as e:
            raise DaemonError(
                operation, f"executable not found: {self._path}", session=session
            ) from e
        except subprocess.CalledProcessError as e:
            raise DaemonError(
                operation, _error_message(e), session=session
            ) from e

        return result.stdout


def _selection_args(selection: Selection) -> list[str]:
    if selection.label_selector:
        return ["--label-selector", selection.label_selector]
    return list(selection.identifiers)


def _error_message(error: subprocess.CalledProcessError) -> str:
    message = (error.stderr or "").strip()
    return message or f"exited with code {error.returncode}"
