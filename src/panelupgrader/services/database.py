"""MySQL client invocation helpers for PanelUpgrader."""

import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Union

from panelupgrader.models import EnvironmentConfig


class DatabaseService:
    """Builds and runs ``mysql`` / ``mysqldump`` commands.

    The password is handed over through ``MYSQL_PWD`` so it never shows up
    in a process listing or in the debug log of executed commands.
    """

    def __init__(self, logger, mysql_binary: str = "mysql", mysqldump_binary: str = "mysqldump"):
        self.logger = logger
        self.mysql_binary = mysql_binary
        self.mysqldump_binary = mysqldump_binary

    @staticmethod
    def connection_args(environment: EnvironmentConfig) -> List[str]:
        args: List[str] = []
        if environment.host:
            args.extend(["-h", environment.host])
        if environment.port:
            args.extend(["-P", environment.port])
        if environment.username:
            args.extend(["-u", environment.username])
        return args

    @staticmethod
    def client_env(environment: EnvironmentConfig) -> Dict[str, str]:
        if environment.password:
            return {"MYSQL_PWD": environment.password}
        return {}

    def execute(
        self,
        statement: str,
        environment: EnvironmentConfig,
        run_cmd: Callable,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd = (
            [self.mysql_binary, "--batch"]
            + self.connection_args(environment)
            + [environment.database, "-e", statement]
        )
        return run_cmd(
            cmd,
            check=check,
            capture_output=True,
            env=self.client_env(environment),
        )

    def dump(
        self,
        database: str,
        result_file: Union[str, Path],
        environment: EnvironmentConfig,
        run_cmd: Callable,
    ) -> subprocess.CompletedProcess:
        self.logger.info("Dumping database '%s' to %s", database, result_file)
        cmd = (
            [self.mysqldump_binary, "--single-transaction", "--routines", "--triggers"]
            + self.connection_args(environment)
            + [f"--result-file={result_file}", database]
        )
        return run_cmd(
            cmd,
            check=True,
            capture_output=True,
            env=self.client_env(environment),
        )
