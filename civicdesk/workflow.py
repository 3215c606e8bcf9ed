# Escalation / Coordination Workflow
#
# Hand-offs between officers and departments are recorded as an append-only log
# of assignments. The primary handling chain has a single current pointer on the
# incident (``current_assignment_id``) that is only ever moved by compare-and-swap;
# coordinator assignments run alongside it and never touch the pointer.

import logging
import math
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .errors import Conflict, EngineError, NotFound, Unauthorized, ValidationFailed
from .hierarchy import (
    cross_department_candidates, detect_triggers, level_name, level_rule,
    next_level_candidates, required_coordination_level, validate_escalation,
)
from .models import (
    COORDINATOR_ROLE, Assignment, AssignmentStatus, AssignmentView, CoordinationMetrics,
    CoordinationRecord, CoordinationRequest, CoordinationStatus, CoordinatorAssignment,
    CoordinatorView, DashboardAssignment, DashboardStats, Department, DepartmentCreate,
    EscalationHistory, EscalationPath, EscalationPaths, EscalationRecord, EscalationRequest,
    EscalationTriggerRecord, EscalationType, GovernmentStructure, HierarchyInfo, HistoryStep,
    Incident, IncidentStatus, IncidentSummary, JurisdictionEntry, JurisdictionPage,
    JurisdictionScope, JurisdictionStats, LevelStats, Officer, OfficerDashboard, OfficerSummary,
    Pagination, PriorityRecord, PrioritySummary, QueueEntry, QueuePage, SweepResult, TriggerType,
    UrgencyLevel, now_utc,
)
from .rules import (
    ASSIGNMENT_TRANSITIONS, CLOSED_INCIDENT_STATUSES, COORDINATION_BONUS, ESCALATION_BONUS,
    ESCALATION_HIERARCHY, JURISDICTION_NAMES,
)
from .scoring import apply_bonus, recompute, update_all_priorities

logger = logging.getLogger(__name__)

ACTIVE_ASSIGNMENT_STATUSES = (
    AssignmentStatus.ASSIGNED.value, AssignmentStatus.ACCEPTED.value, AssignmentStatus.IN_PROGRESS.value,
)
PENDING_ASSIGNMENT_STATUSES = (AssignmentStatus.ASSIGNED.value, AssignmentStatus.ACCEPTED.value)
# Incident fields a hand-off overwrites and a failed hand-off must put back
HANDOFF_FIELDS = ("status", "escalated_at", "escalated_from", "escalated_to", "updated_at")
MAX_PAGE_SIZE = 100
RECENT_ASSIGNMENTS = 10


class IncidentLocks:
    """One lock per incident id so writes to the same incident are serialised."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def __call__(self, incident_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(incident_id, threading.Lock())


def summarize_officer(officer: Officer, departments: Dict[str, Department]) -> OfficerSummary:
    dept = departments.get(officer.department_id)
    return OfficerSummary(
        id=officer.id, name=officer.name, designation=officer.designation, phone=officer.phone,
        escalation_level=officer.escalation_level, level_name=level_name(officer.escalation_level),
        department_id=officer.department_id, department=dept.name if dept else None)


def summarize_incident(incident: Incident) -> IncidentSummary:
    return IncidentSummary(
        id=incident.id, title=incident.title, category_id=incident.category_id,
        severity=incident.severity, status=incident.status,
        estimated_cost=incident.estimated_cost, created_at=incident.created_at,
        escalated_at=incident.escalated_at)


def hierarchy_info(level: int) -> HierarchyInfo:
    rule = level_rule(level)
    return HierarchyInfo(level=rule.level, next_level=rule.next_level, jurisdiction=rule.jurisdiction,
                         max_budget=rule.max_budget, description=rule.description)


def paginate(items: list, page: int, limit: int):
    if page < 1:
        raise ValidationFailed("page must be >= 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationFailed(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    start = (page - 1) * limit
    total = len(items)
    return items[start:start + limit], Pagination(
        current_page=page, total_pages=math.ceil(total / limit), total_count=total,
        has_next=start + limit < total, has_prev=page > 1)


def by_priority(assignments: List[Assignment], priorities: Dict[str, PriorityRecord]):
    # Highest score first; incidents without a priority record go last
    assignments.sort(key=lambda a: (a.incident_id not in priorities,
                                    -priorities[a.incident_id].priority_score
                                    if a.incident_id in priorities else 0))


def queue_entry(a: Assignment, incident: Incident, p: Optional[PriorityRecord], assignee: Optional[Officer],
                departments: Dict[str, Department], cls=QueueEntry, **extra):
    return cls(
        assignment_id=a.id, assignment_status=a.status, assigned_at=a.started_at,
        current_officer=summarize_officer(assignee, departments) if assignee else None,
        priority=PrioritySummary(
            score=p.priority_score, urgency_level=p.urgency_level, sla_deadline=p.sla_deadline,
            sla_breached=p.sla_breached, escalation_triggers=p.escalation_triggers) if p else None,
        incident=summarize_incident(incident), **extra)


def parse_assignment_status(value) -> str:
    try:
        return AssignmentStatus(value).value
    except ValueError:
        raise ValidationFailed(f"Invalid assignment status: {value}")


class EscalationService:
    def __init__(self, store, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.clock = clock
        self._locks = IncidentLocks()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _officer_for_user(self, user_id: str) -> Officer:
        officer = self.store.get_officer_by_user(user_id)
        if officer is None:
            raise NotFound("Officer profile not found")
        return officer

    def _incident(self, incident_id: str) -> Incident:
        incident = self.store.get_incident(incident_id)
        if incident is None:
            raise NotFound("Incident not found")
        return incident

    def _require_current(self, incident: Incident, officer: Officer) -> Assignment:
        """The requester must hold the incident's current primary assignment."""
        current = None
        if incident.current_assignment_id:
            current = self.store.get_assignment(incident.current_assignment_id)
        if current is None or current.assignee_officer_id != officer.id:
            raise Unauthorized("You are not assigned to this incident")
        return current

    def _require_open(self, incident: Incident):
        if incident.status in CLOSED_INCIDENT_STATUSES:
            raise ValidationFailed(f"Incident is already {incident.status}")

    def _departments(self, ids: Iterable[str]) -> Dict[str, Department]:
        ids = set(ids)
        if not ids:
            return {}
        return {d.id: d for d in self.store.find_departments(ids=ids, active_only=False)}

    def _officers(self, ids: Iterable[str]) -> Dict[str, Officer]:
        ids = set(ids)
        if not ids:
            return {}
        return {o.id: o for o in self.store.find_officers(ids=ids, active_only=False)}

    def _rescore(self, incident: Incident, now: datetime, bonus: float = 0,
                 trigger: Optional[EscalationTriggerRecord] = None,
                 record: Optional[PriorityRecord] = None) -> PriorityRecord:
        """Recompute SLA then priority, add any bonus, persist (appending *trigger*)."""
        if record is None:
            record = self.store.get_priority(incident.id)
        if record is None:
            record = PriorityRecord(incident_id=incident.id, created_at=now)
        recompute(record, incident.snapshot(), now)
        if bonus:
            apply_bonus(record, bonus)
        return self.store.save_priority(record, now, trigger=trigger)

    def _withdraw(self, assignments: List[Assignment]):
        for assignment in assignments:
            try:
                self.store.delete_assignment(assignment.id)
            except EngineError:
                logger.error("Could not withdraw assignment %s of incident %s",
                             assignment.id, assignment.incident_id)

    def _undo_handoff(self, incident: Incident, staged: Assignment, previous: Optional[Assignment] = None):
        """Point *incident* back at its old assignment after a hand-off to *staged* failed part-way."""
        restored = {field: getattr(incident, field) for field in HANDOFF_FIELDS}
        try:
            self.store.swap_current_assignment(incident.id, staged.id, incident.current_assignment_id, restored)
            if previous is not None:
                self.store.update_assignment(previous.id, {
                    "is_current": previous.is_current, "resolved_at": previous.resolved_at,
                    "notes": previous.notes})
        except EngineError:
            logger.error("Could not restore incident %s after a failed hand-off to assignment %s",
                         incident.id, staged.id)
        self._withdraw([staged])
        logger.warning("Hand-off of incident %s to assignment %s rolled back", incident.id, staged.id)

    # ------------------------------------------------------------------
    # Intake and dispatch
    # ------------------------------------------------------------------
    def register_incident(self, incident_id: str) -> PriorityRecord:
        with self._locks(incident_id):
            incident = self._incident(incident_id)
            return self._rescore(incident, self.clock())

    def record_community_support(self, incident_id: str, signatures: float, upvotes: float) -> PriorityRecord:
        if signatures < 0 or upvotes < 0:
            raise ValidationFailed("Support counts cannot be negative")
        with self._locks(incident_id):
            incident = self._incident(incident_id)
            now = self.clock()
            record = self.store.get_priority(incident_id) or PriorityRecord(incident_id=incident_id, created_at=now)
            record.signature_weight = signatures
            record.upvote_weight = upvotes
            return self._rescore(incident, now, record=record)

    def dispatch_incident(self, incident_id: str, officer_id: str, assigned_by_user_id: str,
                          notes: Optional[str] = None) -> Assignment:
        with self._locks(incident_id):
            incident = self._incident(incident_id)
            self._require_open(incident)
            if incident.current_assignment_id is not None:
                raise Conflict("Incident already has a current assignment")
            officer = self.store.get_officer(officer_id)
            if officer is None:
                raise NotFound("Officer not found")
            if not officer.is_active:
                raise ValidationFailed("Officer is not active")

            now = self.clock()
            assignment = Assignment(
                incident_id=incident_id, assignee_officer_id=officer.id,
                assigned_by_user_id=assigned_by_user_id, role=officer.designation[:50],
                started_at=now, notes=notes)
            if not self.store.swap_current_assignment(incident_id, None, assignment.id, {
                    "status": IncidentStatus.ASSIGNED.value, "updated_at": now}):
                raise Conflict("Incident already has a current assignment")
            try:
                assignment.sequence = self.store.next_assignment_sequence(incident_id)
                self.store.insert_assignment(assignment)
            except EngineError:
                self._undo_handoff(incident, assignment)
                raise
            if self.store.get_priority(incident_id) is None:
                self._rescore(incident, now)
            logger.info("Dispatch: incident %s assigned to officer %s (level %d)",
                        incident_id, officer.id, officer.escalation_level)
            return assignment

    def update_assignment_status(self, assignment_id: str, user_id: str, status,
                                 notes: Optional[str] = None) -> Assignment:
        officer = self._officer_for_user(user_id)
        status = parse_assignment_status(status)
        assignment = self.store.get_assignment(assignment_id)
        if assignment is None:
            raise NotFound("Assignment not found")
        with self._locks(assignment.incident_id):
            assignment = self.store.get_assignment(assignment_id)
            if assignment.assignee_officer_id != officer.id:
                raise Unauthorized("You are not the assignee of this assignment")
            is_primary = assignment.role != COORDINATOR_ROLE
            if is_primary and not assignment.is_current:
                raise ValidationFailed("Assignment is no longer current")
            if status not in ASSIGNMENT_TRANSITIONS[assignment.status]:
                raise ValidationFailed(f"Cannot move assignment from {assignment.status} to {status}")

            now = self.clock()
            fields = {"status": status}
            if notes:
                fields["notes"] = f"{assignment.notes}\n{notes}" if assignment.notes else notes
            terminal = status in (AssignmentStatus.COMPLETED.value, AssignmentStatus.REJECTED.value)
            if terminal:
                fields["resolved_at"] = now

            if is_primary:
                incident_fields = {"updated_at": now}
                if status == AssignmentStatus.REJECTED.value:
                    # Releases the incident so it can be dispatched again
                    if not self.store.swap_current_assignment(assignment.incident_id, assignment.id, None, {
                            "status": IncidentStatus.NEW.value, "updated_at": now}):
                        raise Conflict("Incident assignment changed concurrently")
                    fields["is_current"] = False
                else:
                    if status == AssignmentStatus.COMPLETED.value:
                        incident_fields.update(status=IncidentStatus.RESOLVED.value, resolved_at=now)
                    elif status == AssignmentStatus.IN_PROGRESS.value:
                        incident_fields["status"] = IncidentStatus.IN_PROGRESS.value
                    else:
                        incident_fields["status"] = IncidentStatus.ASSIGNED.value
                    self.store.update_incident(assignment.incident_id, incident_fields)

            self.store.update_assignment(assignment_id, fields)
            logger.info("Assignment %s moved to %s by officer %s", assignment_id, status, officer.id)
            return self.store.get_assignment(assignment_id)

    # ------------------------------------------------------------------
    # Escalation
    # ------------------------------------------------------------------
    def get_escalation_paths(self, incident_id: str, user_id: str) -> EscalationPaths:
        officer = self._officer_for_user(user_id)
        incident = self._incident(incident_id)
        self._require_current(incident, officer)
        rule = level_rule(officer.escalation_level)

        upward = next_level_candidates(self.store, officer)
        sideways = cross_department_candidates(self.store, officer)
        departments = self._departments(
            [officer.department_id] + [o.department_id for o in upward + sideways])
        priority = self.store.get_priority(incident_id)

        paths = [
            EscalationPath(
                type=EscalationType.HIERARCHY, description=rule.description,
                target_level=rule.next_level, target_level_name=level_name(rule.next_level),
                available_officers=[summarize_officer(o, departments) for o in upward]),
            EscalationPath(
                type=EscalationType.INTERDEPARTMENT, description="Inter-department coordination",
                target_level=officer.escalation_level,
                target_level_name="Same Level - Different Department",
                available_officers=[summarize_officer(o, departments) for o in sideways]),
        ]
        return EscalationPaths(
            incident=summarize_incident(incident),
            current_officer=summarize_officer(officer, departments),
            escalation_paths=paths,
            triggers=detect_triggers(incident.snapshot(), priority, officer.escalation_level),
            hierarchy=hierarchy_info(officer.escalation_level))

    def escalate_incident(self, incident_id: str, user_id: str, request: EscalationRequest) -> EscalationRecord:
        officer = self._officer_for_user(user_id)
        with self._locks(incident_id):
            incident = self._incident(incident_id)
            current = self._require_current(incident, officer)
            self._require_open(incident)
            target = self.store.get_officer(request.target_officer_id)
            if target is None:
                raise NotFound("Target officer not found")
            if not target.is_active:
                raise ValidationFailed("Target officer is not active")
            validate_escalation(officer, target, request.escalation_type)

            now = self.clock()
            new_assignment = Assignment(
                incident_id=incident_id, assignee_officer_id=target.id,
                assigned_by_user_id=user_id, role=target.designation[:50], started_at=now)
            swapped = self.store.swap_current_assignment(incident_id, current.id, new_assignment.id, {
                "status": IncidentStatus.ESCALATED.value, "escalated_at": now,
                "escalated_from": officer.id, "escalated_to": target.id, "updated_at": now,
            })
            if not swapped:
                raise Conflict("Incident assignment changed concurrently; reload and retry")

            note = f"Escalated to {target.name or target.id} - {request.reason}"
            try:
                new_assignment.sequence = self.store.next_assignment_sequence(incident_id)
                self.store.insert_assignment(new_assignment)
                self.store.update_assignment(current.id, {
                    "is_current": False, "resolved_at": now,
                    "notes": f"{current.notes}\n{note}" if current.notes else note,
                })
            except EngineError:
                self._undo_handoff(incident, new_assignment, previous=current)
                raise

            trigger = EscalationTriggerRecord(
                trigger=TriggerType(request.escalation_type.value), triggered_at=now,
                triggered_by=user_id, reason=request.reason,
                attempted_solutions=request.attempted_solutions,
                urgency_justification=request.urgency_justification,
                assignment_ids=[new_assignment.id])
            record = self._rescore(incident, now, bonus=ESCALATION_BONUS, trigger=trigger)

        logger.info("Escalation: incident %s escalated from %s (level %d) to %s (level %d)",
                    incident_id, officer.id, officer.escalation_level, target.id, target.escalation_level)
        departments = self._departments([officer.department_id, target.department_id])
        return EscalationRecord(
            incident_id=incident_id,
            from_officer=summarize_officer(officer, departments),
            to_officer=summarize_officer(target, departments),
            escalation_type=request.escalation_type, reason=request.reason,
            attempted_solutions=request.attempted_solutions,
            urgency_justification=request.urgency_justification, escalated_at=now,
            new_assignment_id=new_assignment.id, priority_score=record.priority_score,
            urgency_level=record.urgency_level)

    def get_escalation_history(self, incident_id: str) -> EscalationHistory:
        incident = self._incident(incident_id)
        assignments = self.store.find_assignments(incident_id=incident_id)
        priority = self.store.get_priority(incident_id)
        triggers = priority.escalation_triggers if priority else []
        officers = self._officers(a.assignee_officer_id for a in assignments)
        departments = self._departments(o.department_id for o in officers.values())

        trail = []
        for step, a in enumerate(assignments, start=1):
            officer = officers.get(a.assignee_officer_id)
            matched = next((t for t in triggers if a.id in t.assignment_ids), None)
            trail.append(HistoryStep(
                step=step,
                assignment=AssignmentView(
                    id=a.id, status=a.status, role=a.role, started_at=a.started_at,
                    resolved_at=a.resolved_at, notes=a.notes, is_current=a.is_current),
                officer=summarize_officer(officer, departments) if officer else None,
                assigned_by=a.assigned_by_user_id, escalation_trigger=matched))

        current_level = 1
        current = officers.get(next((a.assignee_officer_id for a in assignments
                                     if a.id == incident.current_assignment_id), None))
        if current is not None:
            current_level = current.escalation_level
        return EscalationHistory(incident_id=incident_id, escalation_trail=trail,
                                 escalation_triggers=triggers, current_level=current_level)

    # ------------------------------------------------------------------
    # Work queues
    # ------------------------------------------------------------------
    def _queue_page(self, officer: Officer, assignments: List[Assignment], urgency: Optional[str],
                    page: int, limit: int) -> QueuePage:
        incident_ids = {a.incident_id for a in assignments}
        incidents = self.store.find_incidents(incident_ids)
        priorities = self.store.find_priorities(incident_ids)
        assignments = [a for a in assignments if a.incident_id in incidents]
        if urgency:
            try:
                urgency = UrgencyLevel(urgency.upper()).value
            except ValueError:
                raise ValidationFailed(f"Invalid urgency level: {urgency}")
            assignments = [a for a in assignments
                           if a.incident_id in priorities and priorities[a.incident_id].urgency_level == urgency]

        by_priority(assignments, priorities)
        page_items, pagination = paginate(assignments, page, limit)

        officers = self._officers([a.assignee_officer_id for a in page_items] + [officer.id])
        departments = self._departments(o.department_id for o in officers.values())
        entries = [queue_entry(a, incidents[a.incident_id], priorities.get(a.incident_id),
                               officers.get(a.assignee_officer_id), departments)
                   for a in page_items]
        return QueuePage(incidents=entries, pagination=pagination,
                         officer=summarize_officer(officer, departments))

    def get_pending_escalations(self, user_id: str, department_id: Optional[str] = None,
                                urgency: Optional[str] = None, page: int = 1, limit: int = 20) -> QueuePage:
        """Current, not yet accepted primary assignments held at or below the requester's level."""
        officer = self._officer_for_user(user_id)
        eligible = self.store.find_officers(
            department_ids=[department_id] if department_id else None,
            max_level=officer.escalation_level, active_only=False)
        assignments = self.store.find_assignments(
            assignee_ids=[o.id for o in eligible], is_current=True,
            status=AssignmentStatus.ASSIGNED.value, exclude_role=COORDINATOR_ROLE)
        return self._queue_page(officer, assignments, urgency, page, limit)

    def get_officer_queue(self, user_id: str, status: Optional[str] = None,
                          page: int = 1, limit: int = 20) -> QueuePage:
        officer = self._officer_for_user(user_id)
        if status is not None:
            status = parse_assignment_status(status)
        primary = self.store.find_assignments(assignee_ids=[officer.id], is_current=True)
        coordinating = [a for a in self.store.find_assignments(assignee_ids=[officer.id], role=COORDINATOR_ROLE)
                        if a.status in ACTIVE_ASSIGNMENT_STATUSES]
        assignments = [a for a in primary + coordinating if status is None or a.status == status]
        return self._queue_page(officer, assignments, None, page, limit)

    def get_jurisdiction_incidents(self, user_id: str, department_id: Optional[str] = None,
                                   include_cross_dept: bool = False, page: int = 1,
                                   limit: int = 20) -> JurisdictionPage:
        """
        Current primary assignments held in the officer's own department, in one
        chosen department, or (with *include_cross_dept*) in every department.
        Statistics cover the whole result, not just the returned page.
        """
        officer = self._officer_for_user(user_id)
        if department_id and department_id.upper() != "ALL":
            if self.store.get_department(department_id) is None:
                raise NotFound("Department not found")
            scope = [department_id]
        elif include_cross_dept:
            scope = None
        else:
            scope = [officer.department_id]

        holders = {o.id: o for o in self.store.find_officers(department_ids=scope, active_only=False)}
        assignments = self.store.find_assignments(
            assignee_ids=list(holders), is_current=True, exclude_role=COORDINATOR_ROLE)
        incident_ids = {a.incident_id for a in assignments}
        incidents = self.store.find_incidents(incident_ids)
        priorities = self.store.find_priorities(incident_ids)
        assignments = [a for a in assignments if a.incident_id in incidents]
        by_priority(assignments, priorities)

        same = sum(holders[a.assignee_officer_id].department_id == officer.department_id for a in assignments)
        breakdown = {level.value.lower(): 0 for level in UrgencyLevel}
        for a in assignments:
            p = priorities.get(a.incident_id)
            if p is not None:
                breakdown[p.urgency_level.lower()] += 1

        page_items, pagination = paginate(assignments, page, limit)
        departments = self._departments([officer.department_id] + [o.department_id for o in holders.values()])
        entries = []
        for a in page_items:
            holder = holders[a.assignee_officer_id]
            entries.append(queue_entry(
                a, incidents[a.incident_id], priorities.get(a.incident_id), holder, departments,
                cls=JurisdictionEntry, cross_department=holder.department_id != officer.department_id))

        home = departments.get(officer.department_id)
        return JurisdictionPage(
            incidents=entries,
            statistics=JurisdictionStats(
                total_incidents=len(assignments), same_department=same,
                cross_department=len(assignments) - same, urgency_breakdown=breakdown),
            jurisdiction=JurisdictionScope(
                current=JURISDICTION_NAMES.get(home.hierarchy_level if home else 1, "VILLAGE"),
                department_id=scope[0] if scope else None,
                including_cross_department=scope is None),
            pagination=pagination, officer=summarize_officer(officer, departments))

    def get_officer_dashboard(self, user_id: str) -> OfficerDashboard:
        officer = self._officer_for_user(user_id)
        mine = self.store.find_assignments(assignee_ids=[officer.id])
        current = [a for a in mine if a.is_current]
        stats = DashboardStats(
            total_assigned=len(current),
            new_incidents=sum(a.status == AssignmentStatus.ASSIGNED.value for a in current),
            in_progress=sum(a.status == AssignmentStatus.IN_PROGRESS.value for a in current),
            completed=sum(a.status == AssignmentStatus.COMPLETED.value for a in mine),
            pending=sum(a.status in PENDING_ASSIGNMENT_STATUSES for a in current))

        incidents = self.store.find_incidents({a.incident_id for a in current})
        current = [a for a in current if a.incident_id in incidents]
        active = [a for a in current if a.status in ACTIVE_ASSIGNMENT_STATUSES]
        recent = sorted(current, key=lambda a: a.started_at, reverse=True)[:RECENT_ASSIGNMENTS]

        def view(a):
            return DashboardAssignment(id=a.id, status=a.status, role=a.role, assigned_at=a.started_at,
                                       incident=summarize_incident(incidents[a.incident_id]))

        return OfficerDashboard(
            officer=summarize_officer(officer, self._departments([officer.department_id])),
            stats=stats, active_assignments=[view(a) for a in active],
            recent_incidents=[view(a) for a in recent])

    # ------------------------------------------------------------------
    # Coordination
    # ------------------------------------------------------------------
    def coordinate_with_departments(self, user_id: str, request: CoordinationRequest) -> CoordinationRecord:
        officer = self._officer_for_user(user_id)
        incident_id = request.incident_id
        with self._locks(incident_id):
            incident = self._incident(incident_id)
            self._require_current(incident, officer)
            self._require_open(incident)
            departments = self.store.find_departments(ids=request.target_departments)
            if not departments:
                raise NotFound("No valid target departments found")

            required = required_coordination_level(incident.snapshot(), request.coordination_type)
            picks, skipped = [], []
            for dept in departments:
                candidates = [o for o in self.store.find_officers(department_ids=[dept.id], min_level=required)
                              if o.id != officer.id]
                if not candidates:
                    logger.info("Coordination: no level %d+ officer in department %s, skipping", required, dept.code)
                    skipped.append(dept.id)
                    continue
                picks.append((dept, candidates[0]))

            now = self.clock()
            coordinating = list(incident.coordinating_departments)
            coordinating += [d.id for d in departments if d.id not in coordinating]

            # Coordinators go in before the incident is marked COORDINATING
            created = []
            try:
                for dept, coordinator in picks:
                    assignment = Assignment(
                        incident_id=incident_id, assignee_officer_id=coordinator.id,
                        assigned_by_user_id=user_id, role=COORDINATOR_ROLE, is_current=False,
                        started_at=now, coordination_type=request.coordination_type,
                        coordination_message=request.message,
                        sequence=self.store.next_assignment_sequence(incident_id))
                    self.store.insert_assignment(assignment)
                    created.append((dept, coordinator, assignment))
                self.store.update_incident(incident_id, {
                    "status": IncidentStatus.COORDINATING.value,
                    "coordinating_departments": coordinating,
                    "coordination_initiated_by": officer.id,
                    "coordination_initiated_at": now,
                    "updated_at": now,
                })
            except EngineError:
                self._withdraw([a for _, _, a in created])
                logger.warning("Coordination on incident %s rolled back", incident_id)
                raise

            trigger = EscalationTriggerRecord(
                trigger=TriggerType.INTERDEPARTMENT_COORDINATION, triggered_at=now, triggered_by=user_id,
                reason=f"Coordination initiated with {', '.join(d.name for d in departments)}",
                assignment_ids=[a.id for _, _, a in created])
            record = self._rescore(incident, now, bonus=COORDINATION_BONUS, trigger=trigger)

        logger.info("Coordination: incident %s coordination initiated by %s with %d departments",
                    incident_id, officer.id, len(departments))
        dept_map = self._departments([officer.department_id] + [d.id for d in departments])
        return CoordinationRecord(
            incident_id=incident_id, coordination_type=request.coordination_type,
            urgency_level=request.urgency_level,
            initiating_officer=summarize_officer(officer, dept_map),
            coordinated_departments=[{"id": d.id, "name": d.name, "code": d.code,
                                      "hierarchy_level": d.hierarchy_level} for d in departments],
            assignments=[CoordinatorAssignment(
                assignment_id=a.id, officer=summarize_officer(o, dept_map),
                department_id=d.id, department=d.name) for d, o, a in created],
            skipped_departments=skipped, required_level=required,
            coordination_initiated_at=now, priority_score=record.priority_score)

    def get_coordination_status(self, incident_id: str) -> CoordinationStatus:
        incident = self._incident(incident_id)
        assignments = self.store.find_assignments(incident_id=incident_id, role=COORDINATOR_ROLE)
        officers = self._officers(a.assignee_officer_id for a in assignments)
        departments = self._departments(o.department_id for o in officers.values())

        views = []
        for a in assignments:
            coordinator = officers.get(a.assignee_officer_id)
            views.append(CoordinatorView(
                assignment_id=a.id, status=a.status, assigned_at=a.started_at,
                resolved_at=a.resolved_at, coordination_type=a.coordination_type,
                message=a.coordination_message, assigned_by=a.assigned_by_user_id,
                coordinator=summarize_officer(coordinator, departments) if coordinator else None))
        metrics = CoordinationMetrics(
            total_coordinators=len(assignments),
            active_coordinators=sum(a.status in ACTIVE_ASSIGNMENT_STATUSES for a in assignments),
            completed_coordinators=sum(a.status == AssignmentStatus.COMPLETED.value for a in assignments),
            departments_involved=len({o.department_id for o in officers.values()}))
        return CoordinationStatus(
            incident_id=incident_id, incident_status=incident.status,
            coordination_initiated_at=incident.coordination_initiated_at,
            coordination_initiated_by=incident.coordination_initiated_by,
            coordination_status=views, metrics=metrics,
            coordinating_departments=incident.coordinating_departments)

    # ------------------------------------------------------------------
    # Government structure and departments
    # ------------------------------------------------------------------
    def get_government_structure(self, user_id: str) -> GovernmentStructure:
        officer = self._officer_for_user(user_id)
        departments = self.store.find_departments()
        officers = self.store.find_officers(department_ids=[d.id for d in departments])
        levels = {}
        for level, jurisdiction in JURISDICTION_NAMES.items():
            depts = [d for d in departments if d.hierarchy_level == level]
            ids = {d.id for d in depts}
            members = [o for o in officers if o.department_id in ids]
            levels[jurisdiction] = LevelStats(
                jurisdiction=jurisdiction, total_officers=len(members),
                departments=[{"id": d.id, "name": d.name, "code": d.code, "parent_id": d.parent_id}
                             for d in depts],
                field=sum(o.escalation_level == 1 for o in members),
                nodal=sum(o.escalation_level == 2 for o in members),
                head=sum(o.escalation_level == 3 for o in members))
        return GovernmentStructure(
            current_officer=summarize_officer(officer, self._departments([officer.department_id])),
            hierarchy=[hierarchy_info(level) for level in ESCALATION_HIERARCHY],
            levels=levels)

    def create_department(self, data: DepartmentCreate) -> Department:
        if self.store.get_department_by_code(data.code) is not None:
            raise Conflict("Department code already exists")
        if data.parent_id is not None and self.store.get_department(data.parent_id) is None:
            raise NotFound("Parent department not found")
        department = self.store.insert_department(Department(**data.model_dump()))
        logger.info("Department %s (%s) created", department.code, department.name)
        return department

    def list_departments(self) -> List[Department]:
        return self.store.find_departments(active_only=False)

    def get_department_by_code(self, code: str) -> Department:
        department = self.store.get_department_by_code(code)
        if department is None:
            raise NotFound("Department not found")
        return department

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------
    def update_all_priorities(self) -> SweepResult:
        return update_all_priorities(self.store, self.clock())
