"""
mutagen-compose: file synchronization and network forwarding sessions for
Compose projects, managed through a sidecar service.
"""

from pyrollup import rollup

from . import compose, core
from .compose import *  # noqa
from .core import *  # noqa

__all__ = rollup(core, compose)
