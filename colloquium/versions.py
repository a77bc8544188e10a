"""Schedule versions: drafts and the single published plan."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .models import ScheduledEvent, ScheduleVersion, VersionStatus


def new_version_id() -> str:
    return f"ver-{uuid.uuid4().hex[:12]}"


def active_version(versions: Sequence[ScheduleVersion]) -> Optional[ScheduleVersion]:
    """The published version, else the most recently added one."""

    for v in versions:
        if v.status is VersionStatus.PUBLISHED:
            return v
    return versions[-1] if versions else None


def create_version(
    versions: Sequence[ScheduleVersion],
    notes: str = "",
    *,
    version_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[List[ScheduleVersion], ScheduleVersion]:
    version = ScheduleVersion(
        version_id=version_id or new_version_id(),
        created_at=now or datetime.now(),
        status=VersionStatus.DRAFT,
        notes=notes,
    )
    return list(versions) + [version], version


def publish_version(versions: Sequence[ScheduleVersion], version_id: str) -> Optional[List[ScheduleVersion]]:
    """Publish `version_id` and demote every other version to draft.

    Returns None if the id is unknown.
    """

    if not any(v.version_id == version_id for v in versions):
        return None
    return [
        replace(v, status=VersionStatus.PUBLISHED if v.version_id == version_id else VersionStatus.DRAFT)
        for v in versions
    ]


def events_for_version(events: Sequence[ScheduledEvent], version_id: str) -> List[ScheduledEvent]:
    return [e for e in events if e.version_id == version_id]
