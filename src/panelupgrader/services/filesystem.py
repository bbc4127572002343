"""Filesystem helpers for PanelUpgrader."""

import logging
import os
import shutil
from pathlib import Path
from typing import Union

from rich.console import Console

PathLike = Union[str, Path]


class FileSystemService:
    """Encapsulates directory removal, copy and rename side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def remove_tree(self, path: PathLike):
        """Removes a directory tree or file; missing paths are ignored. Errors propagate."""
        target = Path(path)
        if target.is_symlink() or target.is_file():
            target.unlink()
        elif target.is_dir():
            shutil.rmtree(target)
        else:
            return
        self.logger.debug("Removed: %s", target)

    def cleanup_dir(self, path: PathLike):
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
                self.logger.debug("Removed directory: %s", path)
            except OSError as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)

    def copy_tree(self, source: PathLike, destination: PathLike):
        shutil.copytree(source, destination, symlinks=True)
        self.logger.debug("Copied %s to %s", source, destination)

    def rename(self, source: PathLike, destination: PathLike):
        # Same parent directory, so this is an atomic rename rather than a copy.
        os.replace(source, destination)
        self.logger.debug("Renamed %s to %s", source, destination)
