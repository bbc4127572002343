"""Snapshot creation and restore for PanelUpgrader."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from panelupgrader.constants import BACKUP_SUFFIX, DEFAULT_DB_NAME, PARTIAL_SUFFIX
from panelupgrader.errors import BackupExists, BackupIOError, BackupNotFound, UpgraderError
from panelupgrader.errors_catalog import actionable_error
from panelupgrader.models import Backup, EnvironmentConfig


class BackupService:
    """Creates ``<target>-backup`` (tree copy + SQL dump) and moves it back on restore.

    The copy is assembled under ``<target>-backup.partial`` and only renamed
    to its final name once the dump succeeded, so a restore never sees a
    half-written snapshot.
    """

    def __init__(self, logger, console, filesystem_service, database_service):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.database_service = database_service

    @staticmethod
    def backup_path(target: Union[str, Path]) -> Path:
        return Path(f"{Path(target)}{BACKUP_SUFFIX}")

    def create(
        self,
        target: Union[str, Path],
        environment: EnvironmentConfig,
        run_cmd: Callable,
        db_name: Optional[str] = None,
    ) -> Backup:
        target = Path(target)
        backup_dir = self.backup_path(target)
        partial_dir = Path(f"{backup_dir}{PARTIAL_SUFFIX}")

        if backup_dir.exists():
            raise BackupExists(actionable_error("backup_exists", path=str(backup_dir)))

        database = db_name or environment.database or DEFAULT_DB_NAME

        self.console.print("[yellow]Creating local backup as restore point...[/yellow]")
        self.logger.info("Creating backup of %s at %s", target, backup_dir)

        if partial_dir.exists():
            self.logger.warning("Discarding leftover partial backup at %s", partial_dir)
            self.filesystem_service.cleanup_dir(partial_dir)

        dump_file = partial_dir / f"{database}.sql"
        try:
            self.filesystem_service.copy_tree(target, partial_dir)
            self.console.print("[green]Installation files copied.[/green]")

            self.console.print("[yellow]Creating database backup...[/yellow]")
            self.database_service.dump(database, dump_file, environment, run_cmd)
            if not dump_file.is_file():
                raise BackupIOError(f"Database dump was not written to {dump_file}")

            self.filesystem_service.rename(partial_dir, backup_dir)
        except BackupIOError:
            self.filesystem_service.cleanup_dir(partial_dir)
            raise
        except (OSError, UpgraderError) as exc:
            self.filesystem_service.cleanup_dir(partial_dir)
            raise BackupIOError(f"Backup of {target} failed: {exc}") from exc

        self.console.print(f"[green]Backup created at {backup_dir}.[/green]")
        return Backup(
            path=backup_dir,
            dump_file=backup_dir / dump_file.name,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    def restore(self, target: Union[str, Path]):
        target = Path(target)
        backup_dir = self.backup_path(target)

        self.console.print(f"[yellow]Checking for backup at {backup_dir}[/yellow]")
        if not backup_dir.is_dir():
            raise BackupNotFound(actionable_error("backup_not_found", path=str(backup_dir)))

        self.console.print("[yellow]Backup found, restoring...[/yellow]")
        try:
            self.filesystem_service.remove_tree(target)
            self.console.print(f"[green]Removed current installation at {target}[/green]")
            self.filesystem_service.rename(backup_dir, target)
        except OSError as exc:
            raise BackupIOError(f"Restore of {backup_dir} into {target} failed: {exc}") from exc

        self.console.print(f"[green]Restored backup to {target}[/green]")
        self.logger.info("Restored %s from %s", target, backup_dir)

        # Files only; the database is left as the failed upgrade made it.
        for dump_file in sorted(target.glob("*.sql")):
            self.console.print(
                f"[yellow]Database dump kept at {dump_file}. "
                "Import it manually if the schema must be reverted.[/yellow]"
            )
