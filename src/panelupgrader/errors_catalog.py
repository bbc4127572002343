"""Actionable error catalog for PanelUpgrader."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "not_privileged": {
        "what": "{action} must be run with root access.",
        "next": "Re-run the command with `sudo` or as the root user.",
    },
    "target_not_found": {
        "what": "Installation path not found: {path}",
        "next": "Pass the directory that contains the live installation.",
    },
    "runtime_too_old": {
        "what": "PHP {found} is installed but {required} or higher is required.",
        "next": "Upgrade the PHP runtime before starting the upgrade.",
    },
    "config_not_found": {
        "what": "Credential file not found: {path}",
        "next": "Check the installation path or pass `--env-file`.",
    },
    "incomplete_credentials": {
        "what": "Credential file is missing values for: {fields}.",
        "next": "Fill in the DB_* entries of the credential file and retry.",
    },
    "backup_exists": {
        "what": "A backup already exists at {path}.",
        "next": "Run `rollback` to restore it, or move it aside if it is no longer needed.",
    },
    "backup_not_found": {
        "what": "No backup found at {path}.",
        "next": "A rollback is only possible after an upgrade created a backup.",
    },
    "insecure_http": {
        "what": "{label} uses insecure HTTP.",
        "next": "Switch to HTTPS or use `--allow-insecure-http` only for trusted endpoints.",
    },
    "database_unreachable": {
        "what": "Could not connect to database `{database}` on {host}:{port}.",
        "next": "Verify the DB_* credentials and that the database server is running.",
    },
    "migration_failed": {
        "what": "The schema migration failed.",
        "next": "The site is still in maintenance mode. Inspect the output, then run `rollback`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
