import subprocess

from panelupgrader.models import EnvironmentConfig
from panelupgrader.services.database import DatabaseService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


def test_execute_builds_mysql_command_without_password_in_argv():
    service = DatabaseService(logger=DummyLogger(), mysql_binary="/usr/bin/mysql")
    environment = EnvironmentConfig(
        host="10.0.0.5", port="3307", database="panel", username="admin", password="pw"
    )
    captured = {}

    def fake_run_cmd(cmd, check=True, capture_output=False, env=None):
        captured.update(cmd=cmd, check=check, env=env)
        return subprocess.CompletedProcess(cmd, 0, stdout="1\n", stderr="")

    service.execute("SELECT 1;", environment, fake_run_cmd, check=False)

    assert captured["cmd"] == [
        "/usr/bin/mysql",
        "--batch",
        "-h",
        "10.0.0.5",
        "-P",
        "3307",
        "-u",
        "admin",
        "panel",
        "-e",
        "SELECT 1;",
    ]
    assert captured["check"] is False
    assert captured["env"] == {"MYSQL_PWD": "pw"}


def test_empty_password_sets_no_client_environment():
    assert DatabaseService.client_env(EnvironmentConfig(host="db", password="")) == {}
