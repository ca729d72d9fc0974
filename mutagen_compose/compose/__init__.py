"""
Integration with the container engine and orchestrator.
"""

from pyrollup import rollup

from . import engine, liaison, orchestrator
from .engine import *  # noqa
from .liaison import *  # noqa
from .orchestrator import *  # noqa

__all__ = rollup(engine, orchestrator, liaison)
