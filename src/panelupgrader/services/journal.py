"""Session journal: a JSON record of one upgrade or rollback."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class JournalService:
    """Collects state transitions and outcomes and writes them atomically.

    Write failures are logged and never interrupt the session.
    """

    def __init__(self, journal_file: str, logger):
        self.journal_file = journal_file
        self.logger = logger
        self.journal: Dict[str, Any] = {
            "kind": None,
            "target": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "metadata": {},
            "transitions": [],
            "migration_steps": [],
            "error": None,
        }

    def start(self, kind: str, target: str, metadata: Dict[str, Any]):
        self.journal["kind"] = kind
        self.journal["target"] = target
        self.journal["status"] = "running"
        self.journal["started_at"] = self._now()
        self.journal["metadata"] = metadata
        self.write()

    def stage_started(self, state: str):
        self.journal["transitions"].append(
            {
                "state": state,
                "status": "running",
                "started_at": self._now(),
                "finished_at": None,
                "duration_seconds": None,
                "error": None,
            }
        )
        self.write()

    def stage_finished(self, state: str, status: str, error: Optional[str] = None):
        for entry in reversed(self.journal["transitions"]):
            if entry["state"] == state and entry["status"] == "running":
                entry["status"] = status
                entry["finished_at"] = self._now()
                entry["error"] = error
                entry["duration_seconds"] = self._seconds_between(entry["started_at"], entry["finished_at"])
                break
        self.write()

    def record_migration_steps(self, steps: List[Dict[str, Any]]):
        self.journal["migration_steps"] = steps
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.journal["status"] = status
        self.journal["finished_at"] = self._now()
        if self.journal.get("started_at"):
            self.journal["duration_seconds"] = self._seconds_between(
                self.journal["started_at"], self.journal["finished_at"]
            )
        self.journal["error"] = error
        self.write()

    def write(self):
        directory = os.path.dirname(self.journal_file) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix=".journal-", suffix=".json", dir=directory)
        except OSError as exc:
            self.logger.warning("Could not write journal file '%s': %s", self.journal_file, exc)
            return

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.journal, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.journal_file)
        except OSError as exc:
            self.logger.warning("Could not write journal file '%s': %s", self.journal_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _seconds_between(started_at: str, finished_at: str) -> float:
        started = datetime.fromisoformat(started_at)
        finished = datetime.fromisoformat(finished_at)
        return (finished - started).total_seconds()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
