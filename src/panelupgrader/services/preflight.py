"""Preflight checks: privileges, target path, runtime version and system packages."""

import os
import re
from pathlib import Path
from typing import Callable, Optional, Union

from packaging import version

from panelupgrader.constants import (
    MINIMUM_RUNTIME_VERSION,
    RUNTIME_EXTENSION_PACKAGES,
    SYSTEM_PREREQUISITE_PACKAGES,
)
from panelupgrader.errors import PreflightError, UpgraderError
from panelupgrader.errors_catalog import actionable_error


class PreflightService:
    """Checks run once before a session performs any side effect."""

    # PHP_VERSION may carry distro suffixes such as "8.1.2-1ubuntu2.14".
    VERSION_PATTERN = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")
    APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

    def __init__(self, logger, console, php_binary: str = "php", minimum_version: str = MINIMUM_RUNTIME_VERSION):
        self.logger = logger
        self.console = console
        self.php_binary = php_binary
        self.minimum_version = version.Version(minimum_version)

    @staticmethod
    def is_privileged() -> bool:
        geteuid = getattr(os, "geteuid", None)
        if geteuid is None:
            return False
        return geteuid() == 0

    def require_privileges(self, action: str):
        if not self.is_privileged():
            raise PreflightError(actionable_error("not_privileged", action=action))

    def require_target(self, target: Union[str, Path]):
        path = Path(target)
        if not path.is_dir():
            raise PreflightError(actionable_error("target_not_found", path=str(path)))
        if not os.access(path, os.W_OK):
            raise PreflightError(f"Installation path is not writable: {path}")

    def parse_runtime_version(self, raw_version: str) -> Optional[version.Version]:
        match = self.VERSION_PATTERN.search(raw_version or "")
        if not match:
            return None
        return version.Version(match.group(0))

    def is_supported_runtime(self, raw_version: str) -> bool:
        parsed = self.parse_runtime_version(raw_version)
        if parsed is None:
            return False
        # Compare major.minor only; patch level never matters for the gate.
        return (parsed.major, parsed.minor) >= (self.minimum_version.major, self.minimum_version.minor)

    def check_runtime_version(self, target: Union[str, Path], run_cmd: Callable) -> str:
        self.console.print(f"[yellow]Checking PHP version is at least {self.minimum_version}...[/yellow]")
        result = run_cmd(
            [self.php_binary, "-r", "echo PHP_VERSION;"],
            check=True,
            capture_output=True,
            cwd=target,
        )
        raw_version = (result.stdout or "").strip()
        self.logger.info("Current PHP version: %s", raw_version or "<unknown>")

        if not self.is_supported_runtime(raw_version):
            raise PreflightError(
                actionable_error(
                    "runtime_too_old",
                    found=raw_version or "<unknown>",
                    required=str(self.minimum_version),
                )
            )

        self.console.print(f"[green]Using PHP v{raw_version}.[/green]")
        return raw_version

    def refresh_system_packages(self, run_cmd: Callable):
        self.console.print("[yellow]Refreshing apt repositories...[/yellow]")
        commands = [
            ["apt-get", "update"],
            ["apt-get", "install", "-y"] + list(SYSTEM_PREREQUISITE_PACKAGES),
            ["apt-get", "install", "-y"] + list(RUNTIME_EXTENSION_PACKAGES),
        ]
        for cmd in commands:
            try:
                run_cmd(cmd, check=True, capture_output=True, env=self.APT_ENV)
            except UpgraderError as exc:
                raise PreflightError(f"System package refresh failed: {exc}") from exc
        self.console.print("[green]System packages are up to date.[/green]")
