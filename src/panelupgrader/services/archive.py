"""Archive extraction helpers for PanelUpgrader."""

import os
import shutil
import tarfile
from pathlib import Path
from typing import List

from panelupgrader.errors import ArchiveError


class ArchiveService:
    """Encapsulates safe ``.tar.gz`` extraction logic."""

    def is_within_dir(self, base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    def _check_member(self, base: Path, member: tarfile.TarInfo):
        """Validates ``member`` against the destination tree as it currently stands.

        Links written by earlier members are followed, so this must run again
        right before each member is extracted.
        """
        relative = Path(member.name)
        parent = (base / relative).parent.resolve()
        target_path = parent / relative.name
        if not self.is_within_dir(base, target_path):
            raise ArchiveError(
                f"Unsafe archive entry detected: `{member.name}`. "
                "Extraction aborted to prevent path traversal."
            )

        if member.issym() or member.islnk():
            if member.issym():
                link_target = (parent / member.linkname).resolve()
            else:
                link_target = (base / member.linkname).resolve()
            if not self.is_within_dir(base, link_target):
                raise ArchiveError(
                    f"Unsafe archive entry detected: `{member.name}` links outside the destination."
                )
        elif not (member.isfile() or member.isdir()):
            raise ArchiveError(f"Unsupported archive entry type for `{member.name}`.")

    def safe_extract_tar(self, archive_path: str, destination_dir: str) -> List[str]:
        """Extracts over ``destination_dir`` and returns the top-level names written."""
        base = Path(destination_dir).resolve()
        top_level = set()

        try:
            with tarfile.open(archive_path, "r:*") as tar_ref:
                members = [m for m in tar_ref.getmembers() if Path(m.name).parts]
                for member in members:
                    self._check_member(base, member)

                for member in members:
                    self._check_member(base, member)
                    target_path = base / member.name
                    top_level.add(Path(member.name).parts[0])

                    if member.isdir():
                        target_path.mkdir(parents=True, exist_ok=True)
                        os.chmod(target_path, (member.mode & 0o777) | 0o700)
                        continue

                    target_path.parent.mkdir(parents=True, exist_ok=True)
                    if target_path.is_symlink() or target_path.is_file():
                        target_path.unlink()

                    if member.issym():
                        os.symlink(member.linkname, target_path)
                    elif member.islnk():
                        os.link(base / member.linkname, target_path)
                    else:
                        source = tar_ref.extractfile(member)
                        if source is None:
                            raise ArchiveError(f"Could not read archive entry `{member.name}`.")
                        with source, open(target_path, "wb") as dst:
                            shutil.copyfileobj(source, dst)
                        os.chmod(target_path, member.mode & 0o777)
        except (tarfile.TarError, EOFError) as exc:
            raise ArchiveError(f"Invalid or corrupt archive: {archive_path}. {exc}") from exc
        except OSError as exc:
            raise ArchiveError(f"Could not extract {archive_path}: {exc}") from exc

        return sorted(top_level)
