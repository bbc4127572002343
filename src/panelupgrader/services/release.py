"""Release retrieval: replaces the mutable source directories of an installation."""

import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union

from panelupgrader.constants import MUTABLE_DIRECTORIES, RELEASE_ARCHIVE_NAME
from panelupgrader.errors import ArchiveError, FetchError


class ReleaseService:
    """Deletes the mutable directories, downloads the release and extracts it in place.

    Has no undo of its own; the session only calls it after a backup exists.
    """

    def __init__(
        self,
        logger,
        console,
        filesystem_service,
        download_service,
        archive_service,
        mutable_directories: Iterable[str] = MUTABLE_DIRECTORIES,
    ):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.download_service = download_service
        self.archive_service = archive_service
        self.mutable_directories = tuple(mutable_directories)

    def remove_mutable_directories(self, target: Union[str, Path]):
        target = Path(target)
        self.console.print("[yellow]Removing old application files...[/yellow]")
        for name in self.mutable_directories:
            path = target / name
            if not path.exists() and not path.is_symlink():
                self.logger.debug("Nothing to remove at %s", path)
                continue
            try:
                self.filesystem_service.remove_tree(path)
            except OSError as exc:
                raise FetchError(f"Could not remove {path}: {exc}") from exc

    def fetch(
        self,
        target: Union[str, Path],
        release_url: str,
        expected_sha256: Optional[str] = None,
    ):
        target = Path(target)
        self.remove_mutable_directories(target)

        with tempfile.TemporaryDirectory(prefix="panelupgrader-") as work_dir:
            archive_path = os.path.join(work_dir, RELEASE_ARCHIVE_NAME)
            self.download_service.download_file(
                release_url,
                archive_path,
                description="Downloading release archive...",
                expected_sha256=expected_sha256,
            )

            self.console.print("[yellow]Extracting release archive...[/yellow]")
            extracted = self.archive_service.safe_extract_tar(archive_path, str(target))

        self.logger.debug("Archive top-level entries: %s", ", ".join(extracted))
        missing = [name for name in self.mutable_directories if not (target / name).is_dir()]
        if missing:
            raise ArchiveError(
                "Release archive did not provide the expected directories: "
                f"{', '.join(missing)}."
            )

        self.console.print("[green]Release files installed.[/green]")
        self.logger.info("Release from %s extracted into %s", release_url, target)
