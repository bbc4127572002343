"""Download service with progress reporting and checksum validation."""

import hashlib
import os
from typing import Optional
from urllib.parse import urlparse

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from panelupgrader.errors import FetchError
from panelupgrader.errors_catalog import actionable_error


class DownloadService:
    """Streams a release artifact to disk."""

    def __init__(
        self,
        logger,
        console,
        requests_module,
        allow_insecure_http: bool = False,
        timeout: float = 60.0,
    ):
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.allow_insecure_http = allow_insecure_http
        self.timeout = timeout

    def enforce_https_policy(self, url: str, label: str):
        scheme = urlparse(url).scheme.lower()
        if scheme not in {"http", "https"}:
            raise FetchError(f"{label} must be an HTTP(S) URL: {url}")

        if scheme == "http" and not self.allow_insecure_http:
            raise FetchError(actionable_error("insecure_http", label=label))

        if scheme == "http":
            self.logger.warning("Insecure HTTP enabled for %s: %s", label, url)
            self.console.print(
                f"[yellow]Warning:[/yellow] Using insecure HTTP for {label}. "
                "Prefer HTTPS whenever possible."
            )

    def download_file(
        self,
        url: str,
        dest_path: str,
        description: str = "Downloading...",
        expected_sha256: Optional[str] = None,
    ):
        self.logger.info("Downloading %s to %s", url, dest_path)
        self.enforce_https_policy(url, description)

        hasher = hashlib.sha256() if expected_sha256 else None

        try:
            with self.requests.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("Content-Length", 0))

                os.makedirs(os.path.dirname(dest_path) or ".", exist_ok=True)

                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    TimeElapsedColumn(),
                    console=self.console,
                ) as progress:
                    task = progress.add_task(f"[cyan]{description}", total=total_size or None)
                    with open(dest_path, "wb") as file_obj:
                        for chunk in response.iter_content(chunk_size=8192):
                            if not chunk:
                                continue
                            file_obj.write(chunk)
                            if hasher:
                                hasher.update(chunk)
                            progress.update(task, advance=len(chunk))
        except self.requests.RequestException as exc:
            raise FetchError(f"Download failed for {description}: {exc}") from exc
        except OSError as exc:
            raise FetchError(f"Could not write {dest_path}: {exc}") from exc

        if hasher:
            downloaded_sha = hasher.hexdigest()
            if downloaded_sha != expected_sha256:
                try:
                    os.remove(dest_path)
                except OSError:
                    pass
                raise FetchError(
                    f"Checksum mismatch for {description}. Expected {expected_sha256}, "
                    f"but got {downloaded_sha}."
                )
