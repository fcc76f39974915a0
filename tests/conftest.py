"""Shared fixtures: small on-disk R projects."""

import json
import logging
import os

import pytest

DEFAULT_DESCRIPTION = """Package: myanalysis
Title: Example Analysis
Version: 0.1.0
Imports:
    dplyr (>= 1.0.0),
    ggplot2
Suggests:
    testthat
"""


def lock_document(*names):
    """Minimal renv.lock contents locking ``names``."""
    return {
        "R": {"Version": "4.3.1", "Repositories": [{"Name": "CRAN", "URL": "https://cloud.r-project.org"}]},
        "Packages": {
            name: {"Package": name, "Version": "1.0.0", "Source": "Repository", "Repository": "CRAN"}
            for name in names
        },
    }


class RProject:
    """Helper for writing files into a temporary R project."""

    def __init__(self, root):
        self.root = root

    @property
    def path(self):
        return str(self.root)

    @property
    def description_path(self):
        return os.path.join(self.path, "DESCRIPTION")

    @property
    def lockfile_path(self):
        return os.path.join(self.path, "renv.lock")

    def write(self, rel_path, text):
        target = self.root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        return str(target)

    def write_description(self, text=DEFAULT_DESCRIPTION):
        return self.write("DESCRIPTION", text)

    def write_lock(self, *names):
        return self.write("renv.lock", json.dumps(lock_document(*names), indent=2) + "\n")

    def read(self, rel_path):
        return (self.root / rel_path).read_text(encoding="utf-8")

    def read_lock(self):
        return json.loads(self.read("renv.lock"))


@pytest.fixture(autouse=True)
def restore_root_logging():
    """``configure_logging`` replaces root handlers; put them back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def r_project(tmp_path):
    """An R project with DESCRIPTION and renv.lock but no code yet."""
    project = RProject(tmp_path)
    project.write_description()
    project.write_lock("dplyr", "ggplot2")
    return project
