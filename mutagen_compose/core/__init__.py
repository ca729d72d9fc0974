"""
Building session specifications from a Compose project and reconciling them
against the session daemon.
"""

from pyrollup import rollup

from . import (
    configuration,
    daemon,
    endpoint,
    exceptions,
    extension,
    identity,
    project,
    reconcile,
    specification,
    types,
)
from .configuration import *  # noqa
from .daemon import *  # noqa
from .endpoint import *  # noqa
from .exceptions import *  # noqa
from .extension import *  # noqa
from .identity import *  # noqa
from .project import *  # noqa
from .reconcile import *  # noqa
from .specification import *  # noqa
from .types import *  # noqa

__all__ = rollup(
    types,
    exceptions,
    endpoint,
    configuration,
    extension,
    project,
    specification,
    identity,
    daemon,
    reconcile,
)
