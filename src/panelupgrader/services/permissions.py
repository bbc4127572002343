"""Ownership and mode normalization for the runtime's writable directories."""

import os
import shutil
import sys
from pathlib import Path
from typing import Callable, Iterator, Union

from panelupgrader.constants import BOOTSTRAP_CACHE_DIRECTORY, STORAGE_DIRECTORY, WRITABLE_MODE
from panelupgrader.errors import PermissionNormalizationError


class PermissionService:
    """Hands ``storage/`` and ``bootstrap/cache/`` to the web server account."""

    def __init__(self, logger, console, chown: Callable = shutil.chown):
        self.logger = logger
        self.console = console
        self.chown = chown

    @staticmethod
    def _walk(root: Path) -> Iterator[Path]:
        yield root
        for current_root, dirs, files in os.walk(root):
            for name in dirs + files:
                yield Path(current_root) / name

    def writable_roots(self, target: Union[str, Path]):
        target = Path(target)
        return [target / STORAGE_DIRECTORY, target / BOOTSTRAP_CACHE_DIRECTORY]

    def normalize(self, target: Union[str, Path], user: str, group: str, mode: int = WRITABLE_MODE):
        if sys.platform == "win32":
            return

        storage_dir, cache_dir = self.writable_roots(target)
        try:
            storage_dir.mkdir(parents=True, exist_ok=True)
            cache_dir.mkdir(parents=True, exist_ok=True)

            self.console.print("[yellow]Assigning web server ownership...[/yellow]")
            for root in (storage_dir, cache_dir):
                for path in self._walk(root):
                    if path.is_symlink():
                        continue
                    self.chown(path, user=user, group=group)

            self.console.print("[yellow]Assigning filesystem permissions...[/yellow]")
            chmod_roots = list(storage_dir.iterdir()) + [cache_dir]
            for root in chmod_roots:
                for path in self._walk(root):
                    if path.is_symlink():
                        continue
                    os.chmod(path, mode)
        except (OSError, LookupError) as exc:
            raise PermissionNormalizationError(
                f"Could not normalize permissions under {target} for {user}:{group}: {exc}"
            ) from exc

        self.logger.info("Permissions normalized for %s (%s:%s)", target, user, group)
        self.console.print("[green]Permissions applied.[/green]")
