import subprocess

import pytest

import panelupgrader.services.preflight as preflight_module
from panelupgrader.errors import PreflightError, UpgraderError
from panelupgrader.services.preflight import PreflightService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def _service():
    return PreflightService(logger=DummyLogger(), console=DummyConsole())


@pytest.mark.parametrize(
    "raw_version, supported",
    [
        ("8.0.30", False),
        ("8.0.0", False),
        ("7.4.33", False),
        ("8.1.0", True),
        ("8.1.2-1ubuntu2.14", True),
        ("8.2.12", True),
        ("8.10.1", True),
        ("9.0.0", True),
        ("", False),
        ("not a version", False),
    ],
)
def test_runtime_version_gate_compares_numerically(raw_version, supported):
    assert _service().is_supported_runtime(raw_version) is supported


def test_check_runtime_version_rejects_old_runtime(tmp_path):
    def fake_run_cmd(cmd, check=True, capture_output=False, cwd=None, env=None):
        return subprocess.CompletedProcess(cmd, 0, stdout="8.0.30", stderr="")

    with pytest.raises(PreflightError, match="8.1 or higher"):
        _service().check_runtime_version(tmp_path, fake_run_cmd)


def test_check_runtime_version_returns_detected_version(tmp_path):
    calls = []

    def fake_run_cmd(cmd, check=True, capture_output=False, cwd=None, env=None):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="8.2.7\n", stderr="")

    assert _service().check_runtime_version(tmp_path, fake_run_cmd) == "8.2.7"
    assert calls == [["php", "-r", "echo PHP_VERSION;"]]


def test_require_privileges_rejects_regular_user(monkeypatch):
    monkeypatch.setattr(preflight_module.os, "geteuid", lambda: 1000, raising=False)

    with pytest.raises(PreflightError, match="root access"):
        _service().require_privileges("upgrade")


def test_require_privileges_accepts_root(monkeypatch):
    monkeypatch.setattr(preflight_module.os, "geteuid", lambda: 0, raising=False)

    _service().require_privileges("upgrade")


def test_require_target_rejects_missing_directory(tmp_path):
    with pytest.raises(PreflightError, match="Installation path not found"):
        _service().require_target(tmp_path / "missing")


def test_refresh_system_packages_runs_apt_noninteractively():
    calls = []

    def fake_run_cmd(cmd, check=True, capture_output=False, cwd=None, env=None):
        calls.append((cmd, env))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    _service().refresh_system_packages(fake_run_cmd)

    assert calls[0][0] == ["apt-get", "update"]
    assert "gnupg" in calls[1][0]
    assert "php-mbstring" in calls[2][0]
    assert all(env == {"DEBIAN_FRONTEND": "noninteractive"} for _, env in calls)


def test_refresh_system_packages_failure_is_fatal():
    def fake_run_cmd(cmd, check=True, capture_output=False, cwd=None, env=None):
        raise UpgraderError("Command failed (100): apt-get update")

    with pytest.raises(PreflightError, match="System package refresh failed"):
        _service().refresh_system_packages(fake_run_cmd)
