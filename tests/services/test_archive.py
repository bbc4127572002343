import io
import tarfile

import pytest

from panelupgrader.errors import ArchiveError
from panelupgrader.services.archive import ArchiveService


def _write_tar(path, files=(), dirs=(), symlinks=()):
    with tarfile.open(path, "w:gz") as tar:
        for name in dirs:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, content in files:
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
        for name, link_target in symlinks:
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = link_target
            tar.addfile(info)


def test_archive_service_blocks_path_traversal(tmp_path):
    archive = tmp_path / "malicious.tar.gz"
    _write_tar(archive, files=[("../escape.txt", "malicious")])
    destination = tmp_path / "extract"
    destination.mkdir()

    with pytest.raises(ArchiveError, match="path traversal"):
        ArchiveService().safe_extract_tar(str(archive), str(destination))

    assert not (tmp_path / "escape.txt").exists()


def test_archive_service_blocks_escaping_symlink(tmp_path):
    archive = tmp_path / "links.tar.gz"
    _write_tar(archive, symlinks=[("public/storage", "../../../etc")])
    destination = tmp_path / "extract"
    destination.mkdir()

    with pytest.raises(ArchiveError, match="links outside"):
        ArchiveService().safe_extract_tar(str(archive), str(destination))


def test_archive_service_extracts_over_existing_tree(tmp_path):
    archive = tmp_path / "panel.tar.gz"
    _write_tar(
        archive,
        dirs=["app", "storage/app/public"],
        files=[("app/Kernel.php", "<?php // v4"), (".env.example", "APP_ENV=production")],
        symlinks=[("public/storage", "../storage/app/public")],
    )
    destination = tmp_path / "install"
    destination.mkdir()
    (destination / ".env").write_text("DB_HOST=db", encoding="utf-8")

    top_level = ArchiveService().safe_extract_tar(str(archive), str(destination))

    assert top_level == [".env.example", "app", "public", "storage"]
    assert (destination / "app" / "Kernel.php").read_text(encoding="utf-8") == "<?php // v4"
    assert (destination / "public" / "storage").is_symlink()
    assert (destination / ".env").read_text(encoding="utf-8") == "DB_HOST=db"


def test_archive_service_rejects_corrupt_archive(tmp_path):
    archive = tmp_path / "broken.tar.gz"
    archive.write_bytes(b"definitely not gzip")
    destination = tmp_path / "extract"
    destination.mkdir()

    with pytest.raises(ArchiveError, match="Invalid or corrupt archive"):
        ArchiveService().safe_extract_tar(str(archive), str(destination))


def test_archive_service_blocks_symlink_chain_escape(tmp_path):
    archive = tmp_path / "chain.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        for name, link_target in (("s", "."), ("l", "s/..")):
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = link_target
            tar.addfile(info)
        data = b"outside"
        info = tarfile.TarInfo("l/escaped.txt")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))
    destination = tmp_path / "panel"
    destination.mkdir()

    with pytest.raises(ArchiveError, match="links outside"):
        ArchiveService().safe_extract_tar(str(archive), str(destination))

    assert not (tmp_path / "escaped.txt").exists()
