"""Durable storage for the application collection (JSON file with file locking)."""
from __future__ import annotations

import fcntl
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO

from job_copilot.log import get_logger
from job_copilot.models import Application

log = get_logger(__name__)


def _lock(f: IO, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f: IO) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


class PersistenceBackend(ABC):
    @abstractmethod
    def load_all(self) -> list[Application]:
        pass

    @abstractmethod
    def save_all(self, applications: list[Application]) -> None:
        pass


class MemoryBackend(PersistenceBackend):
    def __init__(self, applications: list[Application] | None = None) -> None:
        self._rows = [a.to_dict() for a in applications or []]
        self.saves = 0

    def load_all(self) -> list[Application]:
        return [Application.from_dict(r) for r in self._rows]

    def save_all(self, applications: list[Application]) -> None:
        self._rows = [a.to_dict() for a in applications]
        self.saves += 1


class JsonFileBackend(PersistenceBackend):
    """Whole-collection JSON file; writes go through a temp file and rename."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load_all(self) -> list[Application]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            _lock(f, exclusive=False)
            try:
                rows = json.load(f)
            finally:
                _unlock(f)
        if not isinstance(rows, list):
            raise ValueError(f"{self.path.name} must hold a JSON list")
        log.debug("Loaded %d application(s) from %s", len(rows), self.path.name)
        return [Application.from_dict(r) for r in rows]

    def save_all(self, applications: list[Application]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            _lock(f)
            json.dump([a.to_dict() for a in applications], f, indent=2)
            f.flush()
            os.fsync(f.fileno())
            _unlock(f)
        os.replace(tmp, self.path)
        log.debug("Saved %d application(s) → %s", len(applications), self.path.name)
