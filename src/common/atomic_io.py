"""Atomic file replacement helpers.

Readers never observe a half-written manifest or lockfile: content goes to a
temporary file in the target's directory which is then renamed over it.
"""

from __future__ import annotations

import os
import tempfile
from typing import Union


def atomic_write_bytes(path: str, data: bytes) -> None:
    """Write ``data`` to ``path`` via a same-directory temp file and rename.

    The original file mode is kept when the target already exists.

    Raises:
        OSError: If the temp file cannot be written or renamed.
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(
        dir=directory, prefix=f".{os.path.basename(path)}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        if os.path.exists(path):
            os.chmod(tmp_path, os.stat(path).st_mode & 0o7777)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)


def atomic_write_text(path: str, text: Union[str, bytes]) -> None:
    """Text variant of :func:`atomic_write_bytes` (UTF-8)."""
    data = text if isinstance(text, bytes) else text.encode("utf-8")
    atomic_write_bytes(path, data)
