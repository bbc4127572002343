import logging
from pathlib import Path

import click
from rich.logging import RichHandler

from .constants import DEFAULT_RELEASE_URL, DEFAULT_SERVICE_GROUP, DEFAULT_SERVICE_USER
from .core import RollbackSession, UpgradeSession
from .errors import UpgraderError
from .models import SessionConfig
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _configure_logging(verbose: bool, log_file):
    logger = logging.getLogger("panelupgrader")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _base_config_values(ctx, install_path, journal_file, service_user, service_group):
    values = ctx.obj["config"]
    return {
        "install_path": str(Path(install_path).resolve()),
        "service_user": _resolve_option(service_user, values, "service_user", DEFAULT_SERVICE_USER),
        "service_group": _resolve_option(
            service_group, values, "service_group", DEFAULT_SERVICE_GROUP
        ),
        "php_binary": _resolve_option(None, values, "php_binary", "php"),
        "composer_binary": _resolve_option(None, values, "composer_binary", "composer"),
        "mysql_binary": _resolve_option(None, values, "mysql_binary", "mysql"),
        "mysqldump_binary": _resolve_option(None, values, "mysqldump_binary", "mysqldump"),
        "journal_file": _resolve_option(journal_file, values, "journal_file"),
    }


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .panelupgrader.yml if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, config, verbose, log_file):
    """Upgrade a panel installation to a new major release, or roll it back."""
    try:
        config_loader = ConfigLoader()
        config_values = config_loader.load(config_loader.resolve_path(config, Path.cwd()))
    except UpgraderError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(verbose, log_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config_values


@main.command()
@click.argument("install_path", type=click.Path())
@click.argument("db_name", required=False)
@click.option("--env-file", type=click.Path(), help="Credential file (default: INSTALL_PATH/.env).")
@click.option("--release-url", required=False, help="URL of the release .tar.gz archive.")
@click.option(
    "--release-sha256",
    required=False,
    help="Expected SHA-256 checksum for the release archive.",
)
@click.option("--service-user", required=False, help="Account that owns the writable directories.")
@click.option("--service-group", required=False, help="Group that owns the writable directories.")
@click.option(
    "--allow-insecure-http",
    is_flag=True,
    default=None,
    help="Allow HTTP URLs (insecure). By default only HTTPS URLs are accepted.",
)
@click.option(
    "--download-timeout",
    required=False,
    type=float,
    default=None,
    help="HTTP download timeout in seconds.",
)
@click.option(
    "--skip-system-packages",
    is_flag=True,
    default=False,
    help="Do not refresh apt repositories or install PHP extensions.",
)
@click.option("--journal-file", type=click.Path(), help="Where to write the session journal JSON.")
@click.pass_context
def upgrade(
    ctx,
    install_path,
    db_name,
    env_file,
    release_url,
    release_sha256,
    service_user,
    service_group,
    allow_insecure_http,
    download_timeout,
    skip_system_packages,
    journal_file,
):
    """Upgrade the installation at INSTALL_PATH, optionally naming its database DB_NAME."""
    values = ctx.obj["config"]
    install_system_packages = bool(
        _resolve_option(None, values, "install_system_packages", default=True)
    )
    if skip_system_packages:
        install_system_packages = False

    session_config = SessionConfig(
        db_name=db_name,
        env_file=_resolve_option(env_file, values, "env_file"),
        release_url=_resolve_option(release_url, values, "release_url", DEFAULT_RELEASE_URL),
        release_sha256=_resolve_option(release_sha256, values, "release_sha256"),
        allow_insecure_http=bool(
            _resolve_option(allow_insecure_http, values, "allow_insecure_http", default=False)
        ),
        download_timeout=float(
            _resolve_option(download_timeout, values, "download_timeout", default=60.0)
        ),
        install_system_packages=install_system_packages,
        **_base_config_values(ctx, install_path, journal_file, service_user, service_group),
    )

    try:
        session = UpgradeSession(session_config)
    except UpgraderError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(session.run())


@main.command()
@click.argument("install_path", type=click.Path())
@click.option("--journal-file", type=click.Path(), help="Where to write the session journal JSON.")
@click.pass_context
def rollback(ctx, install_path, journal_file):
    """Restore INSTALL_PATH from the backup taken by the last upgrade."""
    session_config = SessionConfig(
        **_base_config_values(ctx, install_path, journal_file, None, None),
    )

    try:
        session = RollbackSession(session_config)
    except UpgraderError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(session.run())


if __name__ == "__main__":
    main()
