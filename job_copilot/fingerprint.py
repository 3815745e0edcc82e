"""Job identity: primary dedup by id, cross-source dedup by company + title."""
from __future__ import annotations

import hashlib
from typing import Protocol

from job_copilot.models import Job

KEY_SEPARATOR = "\x1f"


class _HasIds(Protocol):
    def contains(self, job_id: str) -> bool: ...


def already_tracked(store: _HasIds, job: Job) -> bool:
    """Membership by ``job.id`` against the store's id index."""
    return store.contains(job.id)


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def cross_source_key(company: str | None, title: str | None) -> str:
    return f"{_normalize(company)}{KEY_SEPARATOR}{_normalize(title)}"


def is_degenerate_key(key: str) -> bool:
    """A key with an empty company or title half never matches anything."""
    company, _, title = key.partition(KEY_SEPARATOR)
    return not company or not title


def stable_job_id(prefix: str, *parts: str | None) -> str:
    """Deterministic id for records that arrive without one."""
    digest = hashlib.sha256("|".join(_normalize(p) for p in parts).encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"
