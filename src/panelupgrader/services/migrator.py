"""Schema migration: legacy cleanup followed by the authoritative migrate-and-seed."""

import re
from pathlib import Path
from typing import Callable, Sequence, Tuple, Union

from panelupgrader.errors import (
    DatabaseUnreachable,
    IncompleteCredentials,
    MigrationFailed,
    UpgraderError,
)
from panelupgrader.errors_catalog import actionable_error
from panelupgrader.models import (
    EnvironmentConfig,
    MigrationReport,
    MigrationStep,
    StepKind,
    StepOutcome,
)

LEGACY_CLEANUP_STEPS = (
    MigrationStep("drop_tickets_table", "DROP TABLE tickets;"),
    MigrationStep("drop_ticket_messages_table", "DROP TABLE ticket_messages;"),
    MigrationStep("drop_theme_table", "DROP TABLE theme;"),
    MigrationStep("drop_nodes_deployable_column", "ALTER TABLE nodes DROP COLUMN deployable;"),
)

MIGRATE_AND_SEED = MigrationStep(
    "migrate_and_seed",
    "artisan migrate --seed --force",
    kind=StepKind.AUTHORITATIVE,
)

MIGRATION_STEPS = LEGACY_CLEANUP_STEPS + (MIGRATE_AND_SEED,)


class MigrationService:
    """Runs the ordered schema steps against the installation's database."""

    PROBE_STATEMENT = "SELECT 1;"

    # 1051 unknown table, 1146 table doesn't exist, 1091 can't drop column/key.
    ABSENT_OBJECT_ERRORS = {1051, 1091, 1146}
    MYSQL_ERROR_CODE = re.compile(r"ERROR\s+(\d+)")

    def __init__(
        self,
        logger,
        console,
        database_service,
        php_binary: str = "php",
        steps: Sequence[MigrationStep] = MIGRATION_STEPS,
    ):
        self.logger = logger
        self.console = console
        self.database_service = database_service
        self.php_binary = php_binary
        self.steps = tuple(steps)

    def steps_of_kind(self, kind: StepKind):
        return [step for step in self.steps if step.kind is kind]

    def classify_failure(self, stderr: str) -> StepOutcome:
        match = self.MYSQL_ERROR_CODE.search(stderr or "")
        if match and int(match.group(1)) in self.ABSENT_OBJECT_ERRORS:
            return StepOutcome.SKIPPED_ALREADY_ABSENT
        return StepOutcome.FAILED

    def probe(self, environment: EnvironmentConfig, run_cmd: Callable):
        missing = environment.missing_fields()
        if missing:
            raise IncompleteCredentials(
                actionable_error("incomplete_credentials", fields=", ".join(missing))
            )

        try:
            self.database_service.execute(self.PROBE_STATEMENT, environment, run_cmd, check=True)
        except UpgraderError as exc:
            raise DatabaseUnreachable(
                actionable_error(
                    "database_unreachable",
                    database=environment.database,
                    host=environment.host,
                    port=environment.port,
                )
            ) from exc

        self.console.print("[green]Database connected successfully.[/green]")

    def apply_best_effort(
        self, step: MigrationStep, environment: EnvironmentConfig, run_cmd: Callable
    ) -> Tuple[StepOutcome, str]:
        result = self.database_service.execute(step.statement, environment, run_cmd, check=False)
        if result.returncode == 0:
            return StepOutcome.APPLIED, ""
        stderr = (result.stderr or "").strip()
        return self.classify_failure(stderr), stderr

    def cleanup_legacy_schema(
        self, environment: EnvironmentConfig, run_cmd: Callable
    ) -> MigrationReport:
        report = MigrationReport()
        cleanup_steps = self.steps_of_kind(StepKind.BEST_EFFORT)
        total = len(cleanup_steps)

        for index, step in enumerate(cleanup_steps, start=1):
            self.console.print(f"[yellow]({index} of {total}) {step.name}[/yellow]")
            try:
                outcome, detail = self.apply_best_effort(step, environment, run_cmd)
            except UpgraderError as exc:
                outcome = StepOutcome.FAILED
                detail = str(exc)

            if outcome is StepOutcome.FAILED:
                self.logger.warning("Cleanup step %s failed; continuing. %s", step.name, detail)
            elif outcome is StepOutcome.SKIPPED_ALREADY_ABSENT:
                self.logger.info("Cleanup step %s skipped: object already absent", step.name)
            else:
                self.logger.info("Cleanup step %s applied", step.name)
            report.record(step, outcome, detail)

        return report

    def run_authoritative(self, step: MigrationStep, target: Union[str, Path], run_cmd: Callable):
        """Runs a console command step; any failure aborts the migration."""
        self.console.print(f"[yellow]Running {step.name}...[/yellow]")
        try:
            run_cmd(
                [self.php_binary] + step.statement.split(),
                check=True,
                capture_output=True,
                cwd=target,
            )
        except UpgraderError as exc:
            raise MigrationFailed(f"{actionable_error('migration_failed')}\n{exc}") from exc
        self.logger.info("Authoritative step %s applied", step.name)

    def migrate(
        self, target: Union[str, Path], environment: EnvironmentConfig, run_cmd: Callable
    ) -> MigrationReport:
        self.probe(environment, run_cmd)
        report = self.cleanup_legacy_schema(environment, run_cmd)
        for step in self.steps_of_kind(StepKind.AUTHORITATIVE):
            self.run_authoritative(step, target, run_cmd)
            report.record(step, StepOutcome.APPLIED)
        self.console.print("[green]Database migration completed.[/green]")
        return report
