"""Shared domain models for PanelUpgrader."""

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from panelupgrader.constants import (
    DEFAULT_DB_PORT,
    DEFAULT_ENV_FILENAME,
    DEFAULT_RELEASE_URL,
    DEFAULT_SERVICE_GROUP,
    DEFAULT_SERVICE_USER,
)


@dataclass(frozen=True)
class SessionConfig:
    """Inputs for one upgrade or rollback, captured once at startup."""

    install_path: str
    db_name: Optional[str] = None
    env_file: Optional[str] = None
    release_url: str = DEFAULT_RELEASE_URL
    release_sha256: Optional[str] = None
    service_user: str = DEFAULT_SERVICE_USER
    service_group: str = DEFAULT_SERVICE_GROUP
    php_binary: str = "php"
    composer_binary: str = "composer"
    mysql_binary: str = "mysql"
    mysqldump_binary: str = "mysqldump"
    download_timeout: float = 60.0
    allow_insecure_http: bool = False
    install_system_packages: bool = True
    journal_file: Optional[str] = None

    @property
    def target(self) -> Path:
        return Path(self.install_path)

    @property
    def resolved_env_file(self) -> Path:
        if self.env_file:
            return Path(self.env_file)
        return self.target / DEFAULT_ENV_FILENAME

    def journal_path(self, kind: str) -> Path:
        if self.journal_file:
            return Path(self.journal_file)
        return Path(f"{self.target}-{kind}-journal.json")


@dataclass(frozen=True)
class EnvironmentConfig:
    """Database credentials read from the installation's credential file."""

    host: str = ""
    port: str = DEFAULT_DB_PORT
    database: str = ""
    username: str = ""
    password: str = ""

    def missing_fields(self) -> List[str]:
        required = (("DB_HOST", self.host), ("DB_DATABASE", self.database), ("DB_USERNAME", self.username))
        return [key for key, value in required if not value]


@dataclass(frozen=True)
class Backup:
    path: Path
    dump_file: Path
    created_at: str


class StepKind(enum.Enum):
    BEST_EFFORT = "best_effort"
    AUTHORITATIVE = "authoritative"


class StepOutcome(enum.Enum):
    APPLIED = "applied"
    SKIPPED_ALREADY_ABSENT = "skipped_already_absent"
    FAILED = "failed"


@dataclass(frozen=True)
class MigrationStep:
    name: str
    statement: str
    kind: StepKind = StepKind.BEST_EFFORT


@dataclass
class MigrationReport:
    """Ordered outcomes of the best-effort cleanup statements."""

    entries: List[Tuple[str, StepOutcome, str]] = field(default_factory=list)

    def record(self, step: MigrationStep, outcome: StepOutcome, detail: str = ""):
        self.entries.append((step.name, outcome, detail))

    def outcome_of(self, step_name: str) -> Optional[StepOutcome]:
        for name, outcome, _ in self.entries:
            if name == step_name:
                return outcome
        return None

    def as_dict(self):
        return [
            {"name": name, "outcome": outcome.value, "detail": detail}
            for name, outcome, detail in self.entries
        ]


class SessionState(enum.Enum):
    PREFLIGHT = "preflight"
    BACKING_UP = "backing_up"
    MAINTENANCE_ON = "maintenance_on"
    FETCHING = "fetching"
    INSTALLING_DEPENDENCIES = "installing_dependencies"
    MIGRATING = "migrating"
    FIXING_PERMISSIONS = "fixing_permissions"
    MAINTENANCE_OFF = "maintenance_off"
    COMPLETED = "completed"
    FAILED = "failed"


class RollbackState(enum.Enum):
    PREFLIGHT = "preflight"
    RESTORING = "restoring"
    REINSTALLING_DEPENDENCIES = "reinstalling_dependencies"
    CLEARING_CACHE = "clearing_cache"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class StageResult:
    """Outcome of executing the stage named by ``state``."""

    state: enum.Enum
    succeeded: bool
    error: Optional[str] = None
