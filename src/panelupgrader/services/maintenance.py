"""Maintenance window and cache control through the application console."""

from pathlib import Path
from typing import Callable, Union

from panelupgrader.errors import MaintenanceError, UpgraderError


class MaintenanceService:
    """Wraps ``php artisan down|up|optimize:clear`` run inside the installation."""

    def __init__(self, logger, console, php_binary: str = "php"):
        self.logger = logger
        self.console = console
        self.php_binary = php_binary

    def _artisan(self, target: Union[str, Path], command: str, run_cmd: Callable):
        try:
            run_cmd([self.php_binary, "artisan", command], check=True, capture_output=True, cwd=target)
        except UpgraderError as exc:
            raise MaintenanceError(f"`php artisan {command}` failed in {target}: {exc}") from exc

    def enable(self, target: Union[str, Path], run_cmd: Callable):
        self.console.print("[yellow]Entering maintenance mode...[/yellow]")
        self._artisan(target, "down", run_cmd)
        self.logger.info("Maintenance mode enabled for %s", target)
        self.console.print("[green]System is down for upgrade.[/green]")

    def disable(self, target: Union[str, Path], run_cmd: Callable):
        self.console.print("[yellow]Disabling maintenance mode...[/yellow]")
        self._artisan(target, "up", run_cmd)
        self.logger.info("Maintenance mode disabled for %s", target)
        self.console.print("[green]System is available.[/green]")

    def clear_cache(self, target: Union[str, Path], run_cmd: Callable):
        self.console.print("[yellow]Clearing application cache...[/yellow]")
        self._artisan(target, "optimize:clear", run_cmd)
        self.logger.info("Application cache cleared for %s", target)
