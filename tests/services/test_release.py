import io
import tarfile

import pytest
from rich.console import Console

from panelupgrader.constants import MUTABLE_DIRECTORIES
from panelupgrader.errors import ArchiveError, FetchError
from panelupgrader.services.archive import ArchiveService
from panelupgrader.services.download import DownloadService
from panelupgrader.services.filesystem import FileSystemService
from panelupgrader.services.release import ReleaseService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeResponse:
    def __init__(self, payload: bytes):
        self.payload = payload
        self.headers = {"Content-Length": str(len(payload))}

    def raise_for_status(self):
        return None

    def iter_content(self, chunk_size=8192):
        yield self.payload

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class FakeRequestsModule:
    class RequestException(Exception):
        pass

    def __init__(self, payload: bytes = b"", error: str = ""):
        self.payload = payload
        self.error = error

    def get(self, *_args, **_kwargs):
        if self.error:
            raise self.RequestException(self.error)
        return FakeResponse(self.payload)


def build_release(directories=MUTABLE_DIRECTORIES) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name in directories:
            data = f"<?php // new {name}".encode("utf-8")
            info = tarfile.TarInfo(f"{name}/release.php")
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def _service(requests_module):
    logger = DummyLogger()
    console = DummyConsole()
    return ReleaseService(
        logger=logger,
        console=console,
        filesystem_service=FileSystemService(logger=logger, console=console),
        download_service=DownloadService(
            logger=logger,
            console=Console(record=True),
            requests_module=requests_module,
        ),
        archive_service=ArchiveService(),
    )


@pytest.fixture
def installation(tmp_path):
    target = tmp_path / "app"
    for name in ("app", "config", "routes", "storage", "vendor"):
        (target / name).mkdir(parents=True)
        (target / name / "old.php").write_text("<?php // old", encoding="utf-8")
    (target / ".env").write_text("DB_HOST=db\n", encoding="utf-8")
    return target


def test_fetch_replaces_mutable_directories(installation):
    _service(FakeRequestsModule(payload=build_release())).fetch(
        installation, "https://example.com/panel.tar.gz"
    )

    for name in MUTABLE_DIRECTORIES:
        assert (installation / name / "release.php").is_file()
    assert not (installation / "app" / "old.php").exists()
    assert not (installation / "config" / "old.php").exists()
    assert (installation / "storage" / "old.php").is_file()
    assert (installation / "vendor" / "old.php").is_file()
    assert (installation / ".env").is_file()
    assert not (installation / "panel.tar.gz").exists()


def test_fetch_rejects_archive_missing_directories(installation):
    incomplete = build_release(directories=("app", "public"))

    with pytest.raises(ArchiveError, match="bootstrap"):
        _service(FakeRequestsModule(payload=incomplete)).fetch(
            installation, "https://example.com/panel.tar.gz"
        )


def test_fetch_reports_transport_failure(installation):
    with pytest.raises(FetchError, match="Download failed"):
        _service(FakeRequestsModule(error="503 Service Unavailable")).fetch(
            installation, "https://example.com/panel.tar.gz"
        )
