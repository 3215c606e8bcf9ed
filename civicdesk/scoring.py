# Priority Scorer: additive score, urgency tiers and the periodic re-scoring sweep

import logging
from datetime import datetime
from typing import Optional

from .errors import NotFound
from .models import IncidentSnapshot, PriorityRecord, SweepResult, UrgencyLevel
from .rules import (
    AGE_BONUSES, CATEGORY_WEIGHT, DEADLINE_BONUSES, SEVERITY_WEIGHT, SIGNATURE_CAP,
    SIGNATURE_WEIGHT, SLA_BREACH_BONUS, UPVOTE_CAP, UPVOTE_WEIGHT, URGENCY_THRESHOLDS,
)
from .sla import calculate_sla

logger = logging.getLogger(__name__)


def urgency_for_score(score: float) -> UrgencyLevel:
    for threshold, level in URGENCY_THRESHOLDS:
        if score >= threshold:
            return UrgencyLevel(level)
    return UrgencyLevel.LOW


def age_bonus(days_since_reported: int) -> int:
    for days, bonus in AGE_BONUSES:
        if days_since_reported > days:
            return bonus
    return 0


def deadline_bonus(sla_breached: bool, time_to_deadline: int) -> int:
    if sla_breached:
        return SLA_BREACH_BONUS
    for minutes, bonus in DEADLINE_BONUSES:
        if time_to_deadline < minutes:
            return bonus
    return 0


def base_score(record: PriorityRecord, severity: Optional[int]) -> float:
    """Score from the record's fields alone, without accumulated bonuses."""
    score = record.category_priority * CATEGORY_WEIGHT
    score += (severity or 1) * SEVERITY_WEIGHT
    score += min(record.signature_weight * SIGNATURE_WEIGHT, SIGNATURE_CAP)
    score += min(record.upvote_weight * UPVOTE_WEIGHT, UPVOTE_CAP)
    score += age_bonus(record.days_since_reported)
    score += deadline_bonus(record.sla_breached, record.time_to_deadline)
    return score


def calculate_priority(record: PriorityRecord, severity: Optional[int]) -> float:
    """Set ``priority_score`` and ``urgency_level``; reads fields set by calculate_sla."""
    score = base_score(record, severity) + record.bonus_points
    record.priority_score = score
    record.urgency_level = urgency_for_score(score).value
    return score


def apply_bonus(record: PriorityRecord, points: float) -> float:
    """Add an escalation/coordination bonus that survives later recomputes."""
    record.bonus_points += points
    record.priority_score += points
    record.urgency_level = urgency_for_score(record.priority_score).value
    return record.priority_score


def recompute(record: PriorityRecord, incident: IncidentSnapshot, now: datetime) -> PriorityRecord:
    calculate_sla(record, incident, now)
    calculate_priority(record, incident.severity)
    return record


def update_all_priorities(store, now: datetime) -> SweepResult:
    """Re-score every priority record. One bad record never stops the batch."""
    updated = failed = 0
    for doc in store.iter_priority_docs():
        incident_id = doc.get("incident_id")
        try:
            record = PriorityRecord.from_doc(doc)
            incident = store.get_incident(record.incident_id)
            if incident is None:
                raise NotFound(f"Incident {record.incident_id} not found")
            recompute(record, incident.snapshot(), now)
            store.save_computed(record, now)
            updated += 1
        except Exception:
            failed += 1
            logger.exception("Priority sweep failed for incident %s", incident_id)
    logger.info("Priority sweep finished: %d updated, %d failed", updated, failed)
    return SweepResult(updated=updated, failed=failed)
