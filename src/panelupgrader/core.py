import dataclasses
import logging
import subprocess
from typing import Any, Dict, List, Optional

import requests
from rich.console import Console

from .errors import UpgraderError
from .models import (
    Backup,
    EnvironmentConfig,
    MigrationReport,
    RollbackState,
    SessionConfig,
    SessionState,
    StageResult,
)
from .services.archive import ArchiveService
from .services.backup import BackupService
from .services.command_runner import CommandRunner
from .services.database import DatabaseService
from .services.dependencies import DependencyService
from .services.download import DownloadService
from .services.environment import EnvironmentReader
from .services.filesystem import FileSystemService
from .services.journal import JournalService
from .services.maintenance import MaintenanceService
from .services.migrator import MigrationService
from .services.permissions import PermissionService
from .services.preflight import PreflightService
from .services.release import ReleaseService

console = Console()
logger = logging.getLogger("panelupgrader")


class _Session:
    """Straight-line state machine with a single abort edge into ``FAILED``.

    Subclasses list their states in order in ``STATES`` (ending with the
    completed state) and map each working state to a handler method in
    ``HANDLERS``. ``advance`` runs exactly one stage.
    """

    KIND = ""
    STATES: tuple = ()
    FAILED: Any = None
    HANDLERS: Dict[Any, str] = {}

    def __init__(
        self,
        config: SessionConfig,
        command_runner: Optional[CommandRunner] = None,
        requests_module=requests,
    ):
        self.config = config
        self.state = self.STATES[0]
        self.history: List[Any] = []
        self.error: Optional[str] = None
        self._started = False

        self.command_runner = command_runner or CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.database_service = DatabaseService(
            logger=logger,
            mysql_binary=config.mysql_binary,
            mysqldump_binary=config.mysqldump_binary,
        )
        self.backup_service = BackupService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
            database_service=self.database_service,
        )
        self.dependency_service = DependencyService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
            composer_binary=config.composer_binary,
        )
        self.maintenance_service = MaintenanceService(
            logger=logger,
            console=console,
            php_binary=config.php_binary,
        )
        self.preflight_service = PreflightService(
            logger=logger,
            console=console,
            php_binary=config.php_binary,
        )
        self.journal_service = JournalService(
            journal_file=str(config.journal_path(self.KIND)),
            logger=logger,
        )
        self.requests = requests_module

    @property
    def completed_state(self):
        return self.STATES[-1]

    @property
    def is_terminal(self) -> bool:
        return self.state in (self.completed_state, self.FAILED)

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        cwd=None,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(
            cmd,
            check=check,
            capture_output=capture_output,
            cwd=cwd,
            env=env,
        )

    def _journal_metadata(self) -> Dict[str, Any]:
        return {"db_name": self.config.db_name}

    def _next_state(self):
        return self.STATES[self.STATES.index(self.state) + 1]

    def _enter(self, state):
        if state in self.history:
            raise UpgraderError(f"State {state.value} cannot be entered twice.")
        self.history.append(state)
        self.state = state

    def _open_journal(self):
        self._started = True
        self.journal_service.start(
            kind=self.KIND,
            target=str(self.config.target),
            metadata=self._journal_metadata(),
        )

    def _fail(self, state, exc: BaseException) -> StageResult:
        self.error = str(exc)
        if self._started:
            self.journal_service.stage_finished(state.value, "failed", error=self.error)
        self._enter(self.FAILED)
        return StageResult(state=state, succeeded=False, error=self.error)

    def advance(self) -> StageResult:
        """Runs the current stage and moves to the next state or to ``FAILED``."""
        if self.is_terminal:
            raise UpgraderError(f"The {self.KIND} session already ended in state {self.state.value}.")

        state = self.state
        if not self.history:
            self._enter(state)

        handler = getattr(self, self.HANDLERS[state])
        if self._started:
            self.journal_service.stage_started(state.value)
        logger.debug("Entering stage %s", state.value)

        try:
            handler()
        except UpgraderError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return self._fail(state, exc)
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error during %s", state.value)
            return self._fail(state, exc)

        # Nothing is written to disk until preflight has passed.
        if not self._started:
            self._open_journal()
            self.journal_service.stage_started(state.value)
        self.journal_service.stage_finished(state.value, "success")
        self._enter(self._next_state())
        return StageResult(state=state, succeeded=True)

    def _on_failure(self):
        """Hook for session-specific guidance after a failed run."""

    def run(self) -> int:
        logger.info("Starting %s of %s", self.KIND, self.config.target)
        status = "failed"

        try:
            while not self.is_terminal:
                self.advance()
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            self.error = "Operation cancelled by user."
            if self._started:
                self.journal_service.stage_finished(self.state.value, "aborted", error=self.error)
            if not self.is_terminal:
                self._enter(self.FAILED)
            status = "aborted"

        if self.state is self.completed_state:
            status = "success"
            console.print(f"[bold green]The {self.KIND} completed successfully.[/bold green]")
            logger.info("%s completed for %s", self.KIND.capitalize(), self.config.target)
        else:
            self._on_failure()

        if self._started:
            self.journal_service.finalize(status, error=self.error)
        return 0 if status == "success" else 1


class UpgradeSession(_Session):
    """Moves an installation to the new release, bracketed by backup and maintenance mode.

    A failure stops the pipeline where it happened: no automatic rollback runs,
    the backup is kept, and maintenance mode stays on if it was enabled.
    """

    KIND = "upgrade"
    STATES = (
        SessionState.PREFLIGHT,
        SessionState.BACKING_UP,
        SessionState.MAINTENANCE_ON,
        SessionState.FETCHING,
        SessionState.INSTALLING_DEPENDENCIES,
        SessionState.MIGRATING,
        SessionState.FIXING_PERMISSIONS,
        SessionState.MAINTENANCE_OFF,
        SessionState.COMPLETED,
    )
    FAILED = SessionState.FAILED
    HANDLERS = {
        SessionState.PREFLIGHT: "preflight",
        SessionState.BACKING_UP: "backup_installation",
        SessionState.MAINTENANCE_ON: "enable_maintenance",
        SessionState.FETCHING: "fetch_release",
        SessionState.INSTALLING_DEPENDENCIES: "install_dependencies",
        SessionState.MIGRATING: "migrate_database",
        SessionState.FIXING_PERMISSIONS: "fix_permissions",
        SessionState.MAINTENANCE_OFF: "disable_maintenance",
    }

    def __init__(
        self,
        config: SessionConfig,
        command_runner: Optional[CommandRunner] = None,
        requests_module=requests,
    ):
        normalized_sha = self._normalize_sha256(config.release_sha256, "--release-sha256")
        config = dataclasses.replace(config, release_sha256=normalized_sha)
        super().__init__(config, command_runner=command_runner, requests_module=requests_module)

        self.environment: Optional[EnvironmentConfig] = None
        self.runtime_version: Optional[str] = None
        self.backup: Optional[Backup] = None
        self.migration_report: Optional[MigrationReport] = None
        self.maintenance_enabled = False

        self.environment_reader = EnvironmentReader(logger=logger)
        self.release_service = ReleaseService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
            download_service=DownloadService(
                logger=logger,
                console=console,
                requests_module=requests_module,
                allow_insecure_http=config.allow_insecure_http,
                timeout=config.download_timeout,
            ),
            archive_service=ArchiveService(),
        )
        self.migration_service = MigrationService(
            logger=logger,
            console=console,
            database_service=self.database_service,
            php_binary=config.php_binary,
        )
        self.permission_service = PermissionService(logger=logger, console=console)

    @staticmethod
    def _normalize_sha256(value: Optional[str], option_name: str) -> Optional[str]:
        if value is None:
            return None

        clean_value = value.strip().lower()
        if len(clean_value) != 64 or any(c not in "0123456789abcdef" for c in clean_value):
            raise UpgraderError(
                f"{option_name} must be a valid SHA-256 hash (64 hexadecimal characters)."
            )
        return clean_value

    def _journal_metadata(self) -> Dict[str, Any]:
        return {
            "db_name": self.config.db_name,
            "release_url": self.config.release_url,
            "release_sha256": self.config.release_sha256,
        }

    def preflight(self):
        console.print("[green]Beginning upgrade process.[/green]")
        self.preflight_service.require_privileges("upgrade")
        self.preflight_service.require_target(self.config.target)
        self.runtime_version = self.preflight_service.check_runtime_version(
            self.config.target, self._run_cmd
        )
        self.environment = self.environment_reader.read(self.config.resolved_env_file)
        if self.config.install_system_packages:
            self.preflight_service.refresh_system_packages(self._run_cmd)
        else:
            logger.info("Skipping system package refresh.")

    def backup_installation(self):
        self.backup = self.backup_service.create(
            self.config.target,
            self.environment,
            self._run_cmd,
            db_name=self.config.db_name,
        )

    def enable_maintenance(self):
        self.maintenance_service.enable(self.config.target, self._run_cmd)
        self.maintenance_enabled = True

    def fetch_release(self):
        self.release_service.fetch(
            self.config.target,
            self.config.release_url,
            expected_sha256=self.config.release_sha256,
        )

    def install_dependencies(self):
        self.dependency_service.self_update(self.config.target, self._run_cmd)
        self.dependency_service.reconcile(self.config.target, self._run_cmd)

    def migrate_database(self):
        self.migration_report = self.migration_service.migrate(
            self.config.target, self.environment, self._run_cmd
        )
        self.journal_service.record_migration_steps(self.migration_report.as_dict())
        self.maintenance_service.clear_cache(self.config.target, self._run_cmd)

    def fix_permissions(self):
        self.permission_service.normalize(
            self.config.target,
            user=self.config.service_user,
            group=self.config.service_group,
        )

    def disable_maintenance(self):
        self.maintenance_service.disable(self.config.target, self._run_cmd)
        self.maintenance_enabled = False

    def _on_failure(self):
        if self.maintenance_enabled:
            console.print("[yellow]Maintenance mode is still enabled.[/yellow]")
        if self.backup is not None:
            console.print(
                f"[yellow]A backup is available at {self.backup.path}. "
                f"Run `panelupgrader rollback {self.config.target}` to restore it.[/yellow]"
            )


class RollbackSession(_Session):
    """Restores the last backup, then reinstalls dependencies and clears the cache."""

    KIND = "rollback"
    STATES = (
        RollbackState.PREFLIGHT,
        RollbackState.RESTORING,
        RollbackState.REINSTALLING_DEPENDENCIES,
        RollbackState.CLEARING_CACHE,
        RollbackState.COMPLETED,
    )
    FAILED = RollbackState.FAILED
    HANDLERS = {
        RollbackState.PREFLIGHT: "preflight",
        RollbackState.RESTORING: "restore_backup",
        RollbackState.REINSTALLING_DEPENDENCIES: "reinstall_dependencies",
        RollbackState.CLEARING_CACHE: "clear_cache",
    }

    def preflight(self):
        console.print("[green]Rolling back to the previous instance.[/green]")
        self.preflight_service.require_privileges("rollback")

    def restore_backup(self):
        self.backup_service.restore(self.config.target)

    def reinstall_dependencies(self):
        self.dependency_service.rollback_self_update(self.config.target, self._run_cmd)
        self.dependency_service.reconcile(self.config.target, self._run_cmd)

    def clear_cache(self):
        self.maintenance_service.clear_cache(self.config.target, self._run_cmd)
