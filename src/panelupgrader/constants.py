"""Shared constants for PanelUpgrader."""

WRITABLE_MODE = 0o755

BACKUP_SUFFIX = "-backup"
PARTIAL_SUFFIX = ".partial"
DEFAULT_DB_NAME = "jexactyl"
DEFAULT_ENV_FILENAME = ".env"
DEFAULT_DB_PORT = "3306"

DEFAULT_RELEASE_URL = (
    "https://github.com/Jexactyl/Jexactyl/releases/download/v4.0.0-beta6/panel.tar.gz"
)
RELEASE_ARCHIVE_NAME = "panel.tar.gz"

# Top-level directories replaced wholesale by a release archive.
MUTABLE_DIRECTORIES = (
    "app",
    "resources",
    "database",
    "public",
    "bootstrap",
    "config",
    "routes",
)

VENDOR_DIRECTORY = "vendor"
STORAGE_DIRECTORY = "storage"
BOOTSTRAP_CACHE_DIRECTORY = "bootstrap/cache"

MINIMUM_RUNTIME_VERSION = "8.1"

DEFAULT_SERVICE_USER = "www-data"
DEFAULT_SERVICE_GROUP = "www-data"

SYSTEM_PREREQUISITE_PACKAGES = (
    "software-properties-common",
    "curl",
    "apt-transport-https",
    "ca-certificates",
    "gnupg",
)
RUNTIME_EXTENSION_PACKAGES = tuple(
    f"php-{extension}"
    for extension in (
        "common",
        "cli",
        "gd",
        "mysql",
        "mbstring",
        "bcmath",
        "xml",
        "fpm",
        "curl",
        "zip",
    )
)
