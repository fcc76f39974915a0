"""Tests for BackupState and atomic writes."""

import os
import shutil
from datetime import datetime

import pytest

from autofix.backup import BackupState
from common.atomic_io import atomic_write_text
from common.errors import BackupRestoreFailure


class TestBackupState:
    def test_capture_writes_timestamped_copies(self, r_project):
        state = BackupState.capture(
            [r_project.description_path, r_project.lockfile_path], now=datetime(2024, 5, 1, 12, 30, 0)
        )
        expected = r_project.description_path + ".backup.20240501_123000"
        assert state.backup_paths[r_project.description_path] == expected
        assert os.path.isfile(expected)
        state.discard()
        assert not os.path.exists(expected)

    def test_failed_capture_removes_partial_copies(self, r_project, monkeypatch):
        real_copy = shutil.copy2

        def copy_lock_fails(src, dst):
            if src.endswith("renv.lock"):
                raise PermissionError("read-only dir")
            return real_copy(src, dst)

        monkeypatch.setattr("autofix.backup.shutil.copy2", copy_lock_fails)
        with pytest.raises(PermissionError):
            BackupState.capture([r_project.description_path, r_project.lockfile_path])
        assert not [n for n in os.listdir(r_project.path) if ".backup." in n]

    def test_restore_is_byte_exact(self, r_project):
        original = open(r_project.description_path, "rb").read()
        state = BackupState.capture([r_project.description_path])
        atomic_write_text(r_project.description_path, "Package: changed\n")
        state.restore()
        assert open(r_project.description_path, "rb").read() == original
        assert state.closed
        assert not [p for p in os.listdir(r_project.path) if ".backup." in p]

    def test_restore_removes_files_that_did_not_exist(self, tmp_path):
        target = str(tmp_path / "renv.lock")
        state = BackupState.capture([target])
        atomic_write_text(target, "{}")
        state.restore()
        assert not os.path.exists(target)

    def test_restore_failure_keeps_copies(self, r_project):
        def failing(path, data):
            raise OSError("read-only")

        state = BackupState.capture([r_project.description_path], writer=failing)
        with pytest.raises(BackupRestoreFailure):
            state.restore()
        assert os.path.isfile(state.backup_paths[r_project.description_path])


class TestAtomicWrite:
    def test_replaces_content_and_keeps_mode(self, tmp_path):
        target = tmp_path / "DESCRIPTION"
        target.write_text("old\n", encoding="utf-8")
        os.chmod(target, 0o640)
        atomic_write_text(str(target), "new\n")
        assert target.read_text(encoding="utf-8") == "new\n"
        assert (os.stat(target).st_mode & 0o777) == 0o640
        assert os.listdir(tmp_path) == ["DESCRIPTION"]
