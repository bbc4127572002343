"""Composer dependency reconciliation for PanelUpgrader."""

from pathlib import Path
from typing import Callable, Union

from panelupgrader.constants import VENDOR_DIRECTORY
from panelupgrader.errors import DependencyInstallError, UpgraderError


class DependencyService:
    """Brings ``vendor/`` in line with the Composer manifest.

    The only strategy today is a clean reinstall: the resolved dependency
    directory is removed and rebuilt in production mode. Running it twice
    yields the same result.
    """

    COMPOSER_ENV = {"COMPOSER_ALLOW_SUPERUSER": "1"}
    INSTALL_ARGS = ["install", "--no-dev", "--optimize-autoloader", "--no-interaction"]

    def __init__(self, logger, console, filesystem_service, composer_binary: str = "composer"):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.composer_binary = composer_binary

    def _composer(self, args, target: Union[str, Path], run_cmd: Callable, check: bool = True):
        return run_cmd(
            [self.composer_binary] + list(args),
            check=check,
            capture_output=True,
            cwd=target,
            env=self.COMPOSER_ENV,
        )

    def self_update(self, target: Union[str, Path], run_cmd: Callable):
        self.console.print("[yellow]Updating composer...[/yellow]")
        try:
            self._composer(["self-update"], target, run_cmd)
        except UpgraderError as exc:
            raise DependencyInstallError(f"composer self-update failed: {exc}") from exc

    def rollback_self_update(self, target: Union[str, Path], run_cmd: Callable) -> bool:
        """Reverts composer to its previous release. Returns False when nothing was reverted."""
        self.console.print("[yellow]Rolling back composer version...[/yellow]")
        result = self._composer(["self-update", "--rollback"], target, run_cmd, check=False)
        if result.returncode != 0:
            self.logger.warning(
                "composer self-update --rollback failed (%s); keeping the installed composer.",
                result.returncode,
            )
            return False
        return True

    def reconcile(self, target: Union[str, Path], run_cmd: Callable):
        target = Path(target)
        vendor_dir = target / VENDOR_DIRECTORY

        self.console.print("[yellow]Reinstalling composer packages...[/yellow]")
        try:
            self.filesystem_service.remove_tree(vendor_dir)
        except OSError as exc:
            raise DependencyInstallError(f"Could not remove {vendor_dir}: {exc}") from exc

        try:
            self._composer(self.INSTALL_ARGS, target, run_cmd)
        except UpgraderError as exc:
            raise DependencyInstallError(f"composer install failed: {exc}") from exc

        self.logger.info("Dependencies reinstalled in %s", target)
        self.console.print("[green]Composer packages installed.[/green]")
