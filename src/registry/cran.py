"""CRAN metadata registry client (crandb).

``GET {base_url}/{package}`` returns the latest DESCRIPTION of a package as
JSON. Dependency fields come back as ``{name: constraint}`` mappings; plain
DCF strings are accepted too so mirrors serving raw fields also work.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from analysis.models import LockEntry, is_valid_package_name
from common.errors import RegistryLookupError
from common.http_client import get_json
from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from constants import Constants
from parsers.description import parse_declarations

logger = logging.getLogger(__name__)

_REQUIREMENT_FIELDS = ("Depends", "Imports", "LinkingTo")


@dataclass(frozen=True)
class RegistryRecord:
    """Metadata of one package version as served by the registry."""
    name: str
    version: str
    repository: str = Constants.REGISTRY_NAME
    fields: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


class RegistryClient:
    """Look up package metadata in the CRAN registry."""

    def __init__(
        self,
        base_url: str = Constants.REGISTRY_URL,
        timeout: float = Constants.REQUEST_TIMEOUT,
        retries: int = Constants.HTTP_RETRY_MAX,
        base_delay: float = Constants.HTTP_RETRY_BASE_DELAY_SEC,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries
        self.base_delay = base_delay

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    def lookup(self, name: str) -> RegistryRecord:
        """Fetch the latest record for ``name``.

        Raises:
            RegistryLookupError: On 404 and other non-2xx responses, network
                failures after retries, malformed JSON or a missing Version.
        """
        url = self.url_for(name)
        with Timer() as timer:
            status, _, data = get_json(
                url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                retries=self.retries,
                base_delay=self.base_delay,
            )
        if is_debug_enabled(logger):
            logger.debug(
                "Registry lookup",
                extra=extra_context(
                    event="registry_lookup",
                    component="cran",
                    target=safe_url(url),
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                ),
            )

        if status == 0:
            raise RegistryLookupError(name, "registry unreachable", status)
        if status == 404:
            raise RegistryLookupError(name, f"not found on {Constants.REGISTRY_NAME}", status)
        if status != 200:
            raise RegistryLookupError(name, f"registry returned HTTP {status}", status)
        if not isinstance(data, dict):
            raise RegistryLookupError(name, "malformed registry response", status)
        version = data.get("Version")
        if not isinstance(version, str) or not version.strip():
            raise RegistryLookupError(name, "registry response has no Version", status)
        return RegistryRecord(name=name, version=version.strip(), fields=data)


def _field_names(value: Any, field_name: str) -> List[str]:
    if isinstance(value, dict):
        return [n for n in value if is_valid_package_name(n, min_length=2)]
    if isinstance(value, str):
        return [d.name for d in parse_declarations(value, field_name)]
    return []


def requirements_of(record: RegistryRecord) -> List[str]:
    """Runtime requirements: Depends, Imports and LinkingTo minus R and base packages."""
    base = set(Constants.BASE_PACKAGES)
    names = set()
    for field_name in _REQUIREMENT_FIELDS:
        for dep in _field_names(record.fields.get(field_name), field_name):
            if dep != "R" and dep not in base:
                names.add(dep)
    return sorted(names, key=str.lower)


def description_hash(record: RegistryRecord) -> str:
    """MD5 over the registry's DESCRIPTION fields, in a fixed field order."""
    subset = {}
    for key in Constants.HASH_FIELDS:
        value = record.fields.get(key)
        if value is not None:
            subset[key] = value
    payload = json.dumps(subset, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def build_lock_entry(record: RegistryRecord) -> LockEntry:
    """Turn a registry record into an renv.lock package record."""
    requirements = requirements_of(record)
    raw: Dict[str, Any] = {}
    if requirements:
        raw["Requirements"] = requirements
    return LockEntry(
        name=record.name,
        version=record.version,
        source="Repository",
        repository=record.repository,
        hash=description_hash(record),
        raw=raw,
    )

