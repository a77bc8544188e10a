from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Optional, Sequence

from colloquium.loaders import PlanningInput, config_to_dict, exam_to_dict, room_mapping_to_dict, staff_to_dict
from colloquium.models import ScheduledEvent


def _stable_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_planning_input_hash(planning: PlanningInput) -> str:
    """Stable hash of everything that influences `generate_schedule`.

    Same DB data => same hash; placements are deterministic for equal inputs,
    so a cached plan with the same hash can be shown without regenerating.
    """

    payload: Dict[str, Any] = {
        "config": config_to_dict(planning.config),
        "staff": [staff_to_dict(s) for s in planning.staff],
        "exams": [exam_to_dict(x) for x in planning.exams],
        "room_mappings": [room_mapping_to_dict(m) for m in planning.room_mappings],
    }
    return hashlib.sha256(_stable_json(payload).encode("utf-8")).hexdigest()


def cached_plan(session_state: Dict[str, Any], input_hash: str) -> Optional[Dict[str, Any]]:
    """Return the cached generation result if it was computed for `input_hash`."""

    entry = session_state.get("colloquium_plan")
    if not entry or entry.get("input_hash") != input_hash:
        return None
    return entry


def store_plan(
    session_state: Dict[str, Any],
    *,
    input_hash: str,
    version_id: str,
    events: Sequence[ScheduledEvent],
    conflicts: Sequence[Any],
) -> Dict[str, Any]:
    entry = {
        "input_hash": input_hash,
        "version_id": version_id,
        "events": list(events),
        "conflicts": list(conflicts),
    }
    session_state["colloquium_plan"] = entry
    return entry
