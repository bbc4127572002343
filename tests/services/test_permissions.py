import os
import stat
import sys

import pytest

from panelupgrader.errors import PermissionNormalizationError
from panelupgrader.services.permissions import PermissionService

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX ownership only")


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def _mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


def test_normalize_chowns_and_chmods_writable_directories(tmp_path):
    (tmp_path / "storage" / "logs").mkdir(parents=True)
    log_file = tmp_path / "storage" / "logs" / "laravel.log"
    log_file.write_text("", encoding="utf-8")
    os.chmod(log_file, 0o600)
    (tmp_path / "app").mkdir()
    app_file = tmp_path / "app" / "Kernel.php"
    app_file.write_text("<?php", encoding="utf-8")
    os.chmod(app_file, 0o640)

    owned = []
    service = PermissionService(
        logger=DummyLogger(),
        console=DummyConsole(),
        chown=lambda path, user=None, group=None: owned.append((path, user, group)),
    )
    service.normalize(tmp_path, "www-data", "www-data")

    owned_paths = {path for path, _, _ in owned}
    assert tmp_path / "storage" in owned_paths
    assert log_file in owned_paths
    assert tmp_path / "bootstrap" / "cache" in owned_paths
    assert all(user == "www-data" and group == "www-data" for _, user, group in owned)
    assert app_file not in owned_paths

    assert (tmp_path / "bootstrap" / "cache").is_dir()
    assert _mode(log_file) == 0o755
    assert _mode(tmp_path / "bootstrap" / "cache") == 0o755
    assert _mode(app_file) == 0o640


def test_normalize_wraps_unknown_account(tmp_path):
    def failing_chown(path, user=None, group=None):
        raise LookupError(f"no such user: '{user}'")

    service = PermissionService(logger=DummyLogger(), console=DummyConsole(), chown=failing_chown)

    with pytest.raises(PermissionNormalizationError, match="nobody-here"):
        service.normalize(tmp_path, "nobody-here", "nobody-here")
