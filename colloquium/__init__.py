"""Colloquium scheduling engine (slots, protocolists, merges)."""

from .models import (
	AvailabilityOverride,
	ConflictKind,
	ConflictReport,
	Degree,
	EmploymentType,
	EventStatus,
	Exam,
	PlanningError,
	RoomMapping,
	ScheduleConfig,
	ScheduledEvent,
	ScheduleVersion,
	Severity,
	Slot,
	StaffMember,
	TimeFormatError,
	TimeWindow,
	UnavailableBlock,
	UnknownEntityError,
	VersionStatus,
	effective_duration,
)

from .availability import is_available, is_staff_available_for_slot
from .rooms import rooms_for
from .break_rule import first_break_violation, fits_day_breaks, respects_break_rule
from .protocolist import WorkloadLedger, rank_protocolist_candidates, select_best_protocolist
from .scheduler import compute_metrics, generate_schedule

from .merge import (
	MergeOutcome,
	MergeProposal,
	MergeSlotOption,
	MergeValidationResult,
	ReoptimizationResult,
	find_alternative_merge_slots,
	merge_exams,
	reoptimize_after_merge,
	validate_merge,
	validate_merge_slot,
)

from .plan import (
	active_version,
	cancel_event,
	change_protocolist,
	create_version,
	events_for_version,
	find_move_slots,
	move_event,
	publish_version,
)

from .loaders import PlanningInput, load_planning_input_from_json

__all__ = [
	"AvailabilityOverride",
	"ConflictKind",
	"ConflictReport",
	"Degree",
	"EmploymentType",
	"EventStatus",
	"Exam",
	"PlanningError",
	"RoomMapping",
	"ScheduleConfig",
	"ScheduledEvent",
	"ScheduleVersion",
	"Severity",
	"Slot",
	"StaffMember",
	"TimeFormatError",
	"TimeWindow",
	"UnavailableBlock",
	"UnknownEntityError",
	"VersionStatus",
	"effective_duration",
	"is_available",
	"is_staff_available_for_slot",
	"rooms_for",
	"first_break_violation",
	"fits_day_breaks",
	"respects_break_rule",
	"WorkloadLedger",
	"rank_protocolist_candidates",
	"select_best_protocolist",
	"compute_metrics",
	"generate_schedule",
	"MergeOutcome",
	"MergeProposal",
	"MergeSlotOption",
	"MergeValidationResult",
	"ReoptimizationResult",
	"find_alternative_merge_slots",
	"merge_exams",
	"reoptimize_after_merge",
	"validate_merge",
	"validate_merge_slot",
	"active_version",
	"cancel_event",
	"change_protocolist",
	"create_version",
	"events_for_version",
	"find_move_slots",
	"move_event",
	"publish_version",
	"PlanningInput",
	"load_planning_input_from_json",
]
