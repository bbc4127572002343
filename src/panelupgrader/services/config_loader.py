"""Configuration loader for PanelUpgrader."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from panelupgrader.errors import UpgraderError


class ConfigLoader:
    """Loads the optional YAML file that supplies CLI defaults."""

    DEFAULT_FILENAME = ".panelupgrader.yml"

    KEY_TYPES: Dict[str, Tuple[type, ...]] = {
        "release_url": (str,),
        "release_sha256": (str,),
        "service_user": (str,),
        "service_group": (str,),
        "php_binary": (str,),
        "composer_binary": (str,),
        "mysql_binary": (str,),
        "mysqldump_binary": (str,),
        "download_timeout": (int, float),
        "allow_insecure_http": (bool,),
        "install_system_packages": (bool,),
        "verbose": (bool,),
        "log_file": (str,),
        "env_file": (str,),
        "journal_file": (str,),
    }

    def resolve_path(self, explicit_path: Optional[str], cwd: Path) -> Optional[str]:
        if explicit_path is not None:
            return explicit_path
        candidate = cwd / self.DEFAULT_FILENAME
        return str(candidate) if candidate.exists() else None

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise UpgraderError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise UpgraderError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise UpgraderError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - set(self.KEY_TYPES))
        if unknown:
            raise UpgraderError(f"Unknown configuration keys: {', '.join(unknown)}")

        for key, value in parsed.items():
            if value is None:
                continue
            expected = self.KEY_TYPES[key]
            # bool is an int subclass; keep `download_timeout: true` out.
            if isinstance(value, bool) and bool not in expected:
                raise UpgraderError(f"Configuration key '{key}' has an invalid value: {value!r}")
            if not isinstance(value, expected):
                raise UpgraderError(f"Configuration key '{key}' has an invalid value: {value!r}")

        return {key: value for key, value in parsed.items() if value is not None}
