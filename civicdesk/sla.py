# SLA Calculator: resolution deadline and time remaining for an incident

import math
from datetime import datetime, timedelta
from typing import Optional, Tuple

from .models import IncidentSnapshot, PriorityRecord
from .rules import (
    DEFAULT_SLA_RULE, HIGH_SEVERITY_FLOOR_HOURS, MEDIUM_SEVERITY_FLOOR_HOURS, SLA_RULES,
)


def resolution_hours(category_id: Optional[str], severity: Optional[int]) -> Tuple[float, int]:
    """Return ``(hours_to_resolve, category_priority)`` for a category and severity."""
    rule = SLA_RULES.get((category_id or "").strip().lower(), DEFAULT_SLA_RULE)
    hours = rule.hours
    severity = severity or 0
    if severity >= 4:
        hours = max(hours / 2, HIGH_SEVERITY_FLOOR_HOURS)
    elif severity >= 3:
        hours = max(hours * 0.75, MEDIUM_SEVERITY_FLOOR_HOURS)
    return hours, rule.category_priority


def calculate_sla(record: PriorityRecord, incident: IncidentSnapshot, now: datetime) -> PriorityRecord:
    """Set deadline, category priority and the clock-dependent SLA fields on *record*."""
    hours, category_priority = resolution_hours(incident.category_id, incident.severity)
    deadline = incident.created_at + timedelta(hours=hours)

    record.category_priority = category_priority
    record.sla_deadline = deadline
    record.time_to_deadline = max(0, math.floor((deadline - now).total_seconds() / 60))
    record.sla_breached = now > deadline
    record.is_overdue = record.sla_breached
    record.days_since_reported = max(0, math.floor((now - incident.created_at).total_seconds() / 86400))
    return record
