"""Tests for the exit guard and the hook command."""

import os
import signal
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from cli_config import RenvCheckConfig
from cli_hook import child_exit_status, parse_hook_command, run_hook
from snapshot.guard import ExitGuard


class FakeChild:
    def __init__(self, returncode):
        self.returncode = returncode
        self.pid = 4242

    def wait(self):
        return self.returncode

    def poll(self):
        return self.returncode

    def send_signal(self, signum):
        pass


class TestExitGuard:
    def test_runs_once_on_normal_exit(self):
        callback = MagicMock()
        with ExitGuard(callback, install_signals=False) as guard:
            guard.run_once()
        callback.assert_called_once()

    def test_runs_on_exception(self):
        callback = MagicMock()
        with pytest.raises(RuntimeError):
            with ExitGuard(callback, install_signals=False):
                raise RuntimeError("boom")
        callback.assert_called_once()

    def test_callback_errors_are_contained(self):
        callback = MagicMock(side_effect=ValueError("bad"))
        with ExitGuard(callback, install_signals=False):
            pass
        callback.assert_called_once()

    def test_signal_runs_callback_and_exits(self):
        callback = MagicMock()
        previous = signal.getsignal(signal.SIGTERM)
        with pytest.raises(SystemExit) as exc:
            with ExitGuard(callback):
                os.kill(os.getpid(), signal.SIGTERM)
        assert exc.value.code == 128 + signal.SIGTERM
        callback.assert_called_once()
        assert signal.getsignal(signal.SIGTERM) == previous

    def test_signal_forwarded_to_running_child(self):
        callback = MagicMock()
        child = MagicMock()
        child.poll.return_value = None
        with ExitGuard(callback) as guard:
            guard.attach(child)
            guard._handle_signal(signal.SIGTERM, None)
            child.send_signal.assert_called_once_with(signal.SIGTERM)
            callback.assert_not_called()
        callback.assert_called_once()

    def test_signal_during_callback_is_deferred(self):
        finished = []

        def callback():
            guard._handle_signal(signal.SIGTERM, None)
            finished.append(True)

        guard = ExitGuard(callback, install_signals=False)
        with guard:
            pass
        assert finished == [True]
        assert guard.deferred_signal == signal.SIGTERM

    def test_signal_after_child_exit_keeps_child_status(self):
        callback = MagicMock()
        with pytest.raises(SystemExit) as exc:
            with ExitGuard(callback, install_signals=False) as guard:
                guard.attach(FakeChild(3))
                guard._handle_signal(signal.SIGTERM, None)
        assert exc.value.code == 3
        callback.assert_called_once()


class TestHookCommand:
    def test_parse_strips_separator(self):
        assert parse_hook_command(SimpleNamespace(HOOK_COMMAND=["--", "R", "--vanilla"])) == ["R", "--vanilla"]

    @pytest.mark.parametrize("code,expected", [(0, 0), (3, 3), (-15, 143), (-9, 137)])
    def test_child_exit_status(self, code, expected):
        assert child_exit_status(code) == expected

    def test_forwards_exit_code_and_fires_trigger(self, tmp_path):
        trigger = MagicMock()
        popen = MagicMock(return_value=FakeChild(3))
        code = run_hook(["R"], str(tmp_path), RenvCheckConfig(), popen=popen, trigger=trigger)
        assert code == 3
        popen.assert_called_once_with(["R"])
        trigger.fire.assert_called_once()

    def test_killed_child_maps_to_signal_status(self, tmp_path):
        trigger = MagicMock()
        code = run_hook(["R"], str(tmp_path), RenvCheckConfig(), popen=lambda cmd: FakeChild(-15), trigger=trigger)
        assert code == 143
        trigger.fire.assert_called_once()

    def test_real_child_process(self, tmp_path):
        trigger = MagicMock()
        code = run_hook([sys.executable, "-c", "raise SystemExit(5)"], str(tmp_path), RenvCheckConfig(), trigger=trigger)
        assert code == 5
        trigger.fire.assert_called_once()

    def test_command_not_found(self, tmp_path):
        trigger = MagicMock()
        code = run_hook(["definitely-not-a-real-binary-xyz"], str(tmp_path), RenvCheckConfig(), trigger=trigger)
        assert code == 127
        trigger.fire.assert_called_once()

    def test_empty_command(self, tmp_path):
        assert run_hook([], str(tmp_path), RenvCheckConfig(), trigger=MagicMock()) == 2
