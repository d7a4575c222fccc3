"""
This module implements the data model and the translation between local
project folders and the database.
"""

from pyrollup import rollup

from . import (
    changes,
    database,
    exceptions,
    file_model,
    format,
    load,
    login,
    query,
    types,
    validate,
)
from .changes import *  # noqa
from .database import *  # noqa
from .exceptions import *  # noqa
from .file_model import *  # noqa
from .format import *  # noqa
from .load import *  # noqa
from .login import *  # noqa
from .query import *  # noqa
from .types import *  # noqa
from .validate import *  # noqa

__all__ = rollup(
    types,
    exceptions,
    validate,
    database,
    query,
    format,
    changes,
    load,
    login,
    file_model,
)

__canonical_children__ = [
    "types",
    "exceptions",
    "validate",
    "database",
    "query",
    "format",
    "changes",
    "load",
    "login",
    "file_model",
]
