"""Credential file reader for PanelUpgrader."""

from pathlib import Path
from typing import Dict, Union

from panelupgrader.constants import DEFAULT_DB_PORT
from panelupgrader.errors import ConfigNotFound, UpgraderError
from panelupgrader.errors_catalog import actionable_error
from panelupgrader.models import EnvironmentConfig


class EnvironmentReader:
    """Parses the DB_* entries of a Laravel-style ``.env`` file."""

    KEY_MAP = {
        "DB_HOST": "host",
        "DB_PORT": "port",
        "DB_DATABASE": "database",
        "DB_USERNAME": "username",
        "DB_PASSWORD": "password",
    }

    def __init__(self, logger):
        self.logger = logger

    @staticmethod
    def _strip_quotes(value: str) -> str:
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            return value[1:-1]
        return value

    def parse(self, content: str) -> EnvironmentConfig:
        values: Dict[str, str] = {}

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export "):].strip()

            field_name = self.KEY_MAP.get(key)
            if field_name is None:
                continue
            # Only the password may itself contain "=".
            if key != "DB_PASSWORD":
                value = value.split("=", 1)[0]
            values[field_name] = self._strip_quotes(value.strip())

        if not values.get("port"):
            values["port"] = DEFAULT_DB_PORT

        return EnvironmentConfig(**values)

    def read(self, path: Union[str, Path]) -> EnvironmentConfig:
        env_path = Path(path)
        if not env_path.is_file():
            raise ConfigNotFound(actionable_error("config_not_found", path=str(env_path)))

        try:
            content = env_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise UpgraderError(f"Could not read credential file '{env_path}': {exc}") from exc

        config = self.parse(content)
        self.logger.debug(
            "Loaded credentials for database '%s' on %s:%s", config.database, config.host, config.port
        )
        return config
