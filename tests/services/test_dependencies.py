import subprocess

import pytest

from panelupgrader.errors import DependencyInstallError, UpgraderError
from panelupgrader.services.dependencies import DependencyService
from panelupgrader.services.filesystem import FileSystemService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class RecordingRunner:
    def __init__(self, fail_on=None, returncode=0):
        self.fail_on = fail_on
        self.returncode = returncode
        self.calls = []

    def __call__(self, cmd, check=True, capture_output=False, cwd=None, env=None):
        self.calls.append({"cmd": cmd, "cwd": cwd, "env": env, "check": check})
        if self.fail_on and self.fail_on in cmd:
            if check:
                raise UpgraderError(f"Command failed (1): {' '.join(cmd)}")
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="no rollback")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


def _service():
    logger = DummyLogger()
    console = DummyConsole()
    return DependencyService(
        logger=logger,
        console=console,
        filesystem_service=FileSystemService(logger=logger, console=console),
    )


def test_reconcile_removes_vendor_and_installs_for_production(tmp_path):
    (tmp_path / "vendor" / "laravel").mkdir(parents=True)
    (tmp_path / "vendor" / "autoload.php").write_text("<?php", encoding="utf-8")
    runner = RecordingRunner()

    _service().reconcile(tmp_path, runner)

    assert not (tmp_path / "vendor").exists()
    assert runner.calls == [
        {
            "cmd": ["composer", "install", "--no-dev", "--optimize-autoloader", "--no-interaction"],
            "cwd": tmp_path,
            "env": {"COMPOSER_ALLOW_SUPERUSER": "1"},
            "check": True,
        }
    ]


def test_reconcile_is_safe_without_vendor_directory(tmp_path):
    runner = RecordingRunner()

    _service().reconcile(tmp_path, runner)
    _service().reconcile(tmp_path, runner)

    assert len(runner.calls) == 2


def test_reconcile_failure_raises_dependency_error(tmp_path):
    with pytest.raises(DependencyInstallError, match="composer install failed"):
        _service().reconcile(tmp_path, RecordingRunner(fail_on="install"))


def test_rollback_self_update_failure_is_only_a_warning(tmp_path):
    runner = RecordingRunner(fail_on="--rollback")

    assert _service().rollback_self_update(tmp_path, runner) is False
    assert runner.calls[0]["cmd"] == ["composer", "self-update", "--rollback"]
    assert runner.calls[0]["check"] is False


def test_self_update_failure_is_fatal(tmp_path):
    with pytest.raises(DependencyInstallError, match="self-update"):
        _service().self_update(tmp_path, RecordingRunner(fail_on="self-update"))
