"""Domain errors for PanelUpgrader."""


class UpgraderError(RuntimeError):
    """Raised when an upgrade or rollback cannot continue safely."""


class PreflightError(UpgraderError):
    """Privileges, target path or runtime version are not acceptable."""


class ConfigNotFound(UpgraderError):
    """The installation credential file does not exist."""


class IncompleteCredentials(UpgraderError):
    """The credential file lacks a host, database or username."""


class BackupIOError(UpgraderError):
    """A snapshot could not be written completely."""


class BackupExists(UpgraderError):
    """A snapshot is already present for the target."""


class BackupNotFound(UpgraderError):
    """No snapshot exists to restore from."""


class MaintenanceError(UpgraderError):
    """The application console refused a maintenance or cache command."""


class FetchError(UpgraderError):
    """The release archive could not be downloaded."""


class ArchiveError(UpgraderError):
    """The release archive is corrupt, unsafe or incomplete."""


class DependencyInstallError(UpgraderError):
    """Composer could not reinstall the vendor directory."""


class DatabaseUnreachable(UpgraderError):
    """The connectivity probe against the data store failed."""


class MigrationFailed(UpgraderError):
    """The authoritative migration did not succeed."""


class PermissionNormalizationError(UpgraderError):
    """Ownership or mode of the writable directories could not be set."""
