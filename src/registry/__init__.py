"""Package metadata registry clients."""

from .cran import RegistryClient, RegistryRecord, build_lock_entry

__all__ = ["RegistryClient", "RegistryRecord", "build_lock_entry"]
