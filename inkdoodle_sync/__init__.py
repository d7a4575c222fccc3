"""
InkDoodle Sync: data layer and CLI toolkit for InkDoodle writing projects.
"""

from pyrollup import rollup

from . import core
from .core import *  # noqa

__all__ = rollup(core)

__canonical_children__ = [
    "core",
]
