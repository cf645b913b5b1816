import subprocess
import sys
from unittest import mock

import pytest

from neonova import power


def _ok(args, **kwargs):
    return subprocess.CompletedProcess(args, 0)


def _fail(args, **kwargs):
    return subprocess.CompletedProcess(args, 1)


def test_governor_adjust_sets_balanced_plan():
    with mock.patch("neonova.power.subprocess.run", side_effect=_ok) as run:
        assert power.governor_adjust() is True
    args = run.call_args[0][0]
    assert args == ["powercfg", "/setactive", "381b4222-f694-41f0-9685-ff5bb260df2e"]


def test_governor_adjust_reports_failure():
    with mock.patch("neonova.power.subprocess.run", side_effect=_fail):
        assert power.governor_adjust() is False


def test_governor_missing_program_is_failure():
    with mock.patch("neonova.power.subprocess.run", side_effect=FileNotFoundError):
        assert power.governor_init() is False
        assert power.governor_adjust() is False


def test_governor_init_queries_active_scheme():
    with mock.patch("neonova.power.subprocess.run", side_effect=_ok) as run:
        assert power.governor_init() is True
    assert run.call_args[0][0] == ["powercfg", "/getactivescheme"]


@pytest.mark.parametrize(
    "platform, command",
    [
        ("linux", ["systemctl", "suspend"]),
        ("darwin", ["pmset", "sleepnow"]),
        ("win32", ["rundll32.exe", "powrprof.dll,SetSuspendState", "0,1,0"]),
    ],
)
def test_suspend_enter_uses_platform_command(platform, command):
    with mock.patch.object(sys, "platform", platform), mock.patch(
        "neonova.power.subprocess.run", side_effect=_ok
    ) as run:
        assert power.suspend_init() is True
        assert power.suspend_enter() is True
    assert run.call_args[0][0] == command


def test_suspend_unsupported_platform():
    with mock.patch.object(sys, "platform", "plan9"), mock.patch(
        "neonova.power.subprocess.run"
    ) as run:
        assert power.suspend_init() is False
        assert power.suspend_enter() is False
    run.assert_not_called()


def test_suspend_enter_failure():
    with mock.patch.object(sys, "platform", "linux"), mock.patch(
        "neonova.power.subprocess.run", side_effect=_fail
    ):
        assert power.suspend_enter() is False


def test_suspend_resume_message():
    assert power.suspend_resume() == power.RESUME_MESSAGE


def test_usage_learning_round_trip(tmp_path):
    log = tmp_path / "usage.log"
    assert power.usage_learning_init(log) is True
    assert power.usage_learning_init(log) is True
    entries = power.usage_learning_learn(log)
    assert len(entries) == 2
    for entry in entries:
        assert entry.startswith("[Init] Usage learning started at ")
        assert entry[len(power.INIT_ENTRY_PREFIX):].isdigit()


def test_usage_learning_missing_log(tmp_path):
    assert power.usage_learning_learn(tmp_path / "absent.log") == []


def test_usage_learning_init_unwritable(tmp_path):
    assert power.usage_learning_init(tmp_path / "no" / "such" / "dir.log") is False


def test_power_manager_init_and_tick(tmp_path):
    log = tmp_path / "usage.log"
    with mock.patch("neonova.power.subprocess.run", side_effect=_ok):
        power.power_manager_init(log)
        entries = power.power_manager_tick(log)
    assert len(entries) == 1
    assert entries[0].startswith(power.INIT_ENTRY_PREFIX)


def test_power_manager_shutdown_suspends():
    with mock.patch.object(sys, "platform", "linux"), mock.patch(
        "neonova.power.subprocess.run", side_effect=_ok
    ) as run:
        assert power.power_manager_shutdown() is True
    assert run.call_args[0][0] == ["systemctl", "suspend"]