# Escalation Hierarchy Resolver: who an officer can hand an incident to, which
# escalation triggers apply, and the rank rules for escalation and coordination.

from typing import List, Optional

from .errors import ValidationFailed
from .models import (
    CoordinationType, EscalationType, IncidentSnapshot, Officer, PriorityRecord,
    TriggerSuggestion, TriggerType, UrgencyLevel,
)
from .rules import (
    COORDINATION_CATEGORIES, ESCALATION_HIERARCHY, HEAD_OFFICER_COST_THRESHOLD, LEVEL_NAMES,
    LevelRule,
)


def level_rule(level: int) -> LevelRule:
    rule = ESCALATION_HIERARCHY.get(level)
    if rule is None:
        raise ValidationFailed(f"Invalid escalation level: {level}")
    return rule


def level_name(level: Optional[int]) -> str:
    return LEVEL_NAMES.get(level, "Officer")


def needs_interdepartment_coordination(category_id: Optional[str]) -> bool:
    return bool(category_id) and category_id.strip().upper() in COORDINATION_CATEGORIES


def next_level_candidates(store, officer: Officer) -> List[Officer]:
    rule = level_rule(officer.escalation_level)
    if rule.next_level is None:
        return []
    return store.find_officers(department_ids=[officer.department_id], level=rule.next_level)


def cross_department_candidates(store, officer: Officer) -> List[Officer]:
    others = store.find_departments(exclude_id=officer.department_id)
    if not others:
        return []
    return store.find_officers(department_ids=[d.id for d in others],
                               min_level=officer.escalation_level)


def detect_triggers(incident: IncidentSnapshot, priority: Optional[PriorityRecord],
                    level: int) -> List[TriggerSuggestion]:
    """All escalation reasons that currently apply; they are not mutually exclusive."""
    rule = level_rule(level)
    triggers = []
    if priority is not None and priority.sla_breached:
        triggers.append(TriggerSuggestion(
            type=TriggerType.SLA_BREACH, description="SLA deadline has been breached",
            automatic=True, priority=UrgencyLevel.HIGH))
    if (incident.severity or 0) >= 4:
        triggers.append(TriggerSuggestion(
            type=TriggerType.SEVERITY_UPGRADE,
            description="High severity incident requiring senior attention",
            automatic=False, priority=UrgencyLevel.CRITICAL))
    if rule.max_budget is not None and (incident.estimated_cost or 0) > rule.max_budget:
        triggers.append(TriggerSuggestion(
            type=TriggerType.RESOURCE_CONSTRAINT,
            description=f"Estimated cost exceeds level authority (₹{rule.max_budget:,.0f})",
            automatic=True, priority=UrgencyLevel.HIGH))
    triggers.append(TriggerSuggestion(
        type=TriggerType.MANUAL, description="Manual escalation by officer",
        automatic=False, priority=UrgencyLevel.MEDIUM))
    if needs_interdepartment_coordination(incident.category_id):
        triggers.append(TriggerSuggestion(
            type=TriggerType.INTERDEPARTMENT,
            description="Requires coordination with other departments",
            automatic=False, priority=UrgencyLevel.MEDIUM))
    return triggers


def validate_escalation(requester: Officer, target: Officer, escalation_type) -> None:
    try:
        escalation_type = EscalationType(escalation_type)
    except ValueError:
        raise ValidationFailed(f"Invalid escalation type: {escalation_type}")
    if target.id == requester.id:
        raise ValidationFailed("Cannot escalate an incident to yourself")
    if escalation_type == EscalationType.HIERARCHY and target.escalation_level <= requester.escalation_level:
        raise ValidationFailed("Cannot escalate to same or lower level officer")


def required_coordination_level(incident: IncidentSnapshot, coordination_type) -> int:
    """Minimum escalation level of officers pulled in to coordinate."""
    level = 1
    if (incident.severity or 0) >= 4 or coordination_type == CoordinationType.EMERGENCY:
        level = max(level, 2)
    if (coordination_type == CoordinationType.POLICY
            or (incident.estimated_cost or 0) > HEAD_OFFICER_COST_THRESHOLD):
        level = max(level, 3)
    return level
