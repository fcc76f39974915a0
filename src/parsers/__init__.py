"""Parsers for the DESCRIPTION manifest and the renv.lock lockfile."""

from .description import DescriptionFile, parse_description, write_description
from .lockfile import LockfileDocument, parse_lockfile, write_lockfile

__all__ = [
    "DescriptionFile",
    "parse_description",
    "write_description",
    "LockfileDocument",
    "parse_lockfile",
    "write_lockfile",
]
