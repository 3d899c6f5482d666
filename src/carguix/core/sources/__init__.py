"""Crate source variants and the CrateRef dispatcher."""

from .base import EMPTY_PATHS, CrateSource, extend_paths
from .crate_ref import CrateRef
from .git import GitSource
from .lock import LockSource
from .path import PathSource
from .registry import RegistrySource
from .simple import SimpleSource

__all__ = [
    "CrateRef",
    "CrateSource",
    "EMPTY_PATHS",
    "GitSource",
    "LockSource",
    "PathSource",
    "RegistrySource",
    "SimpleSource",
    "extend_paths",
]
