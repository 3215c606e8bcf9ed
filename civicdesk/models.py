# Typed records and request/response models for the priority & escalation engine

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class UserRole(str, Enum):
    CITIZEN = "citizen"
    OFFICER = "officer"
    ADMIN = "admin"

class UrgencyLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    EMERGENCY = "EMERGENCY"

class IncidentStatus(str, Enum):
    NEW = "NEW"
    ASSIGNED = "ASSIGNED"
    ESCALATED = "ESCALATED"
    COORDINATING = "COORDINATING"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

class AssignmentStatus(str, Enum):
    ASSIGNED = "ASSIGNED"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"

class EscalationType(str, Enum):
    HIERARCHY = "HIERARCHY"
    INTERDEPARTMENT = "INTERDEPARTMENT"

class TriggerType(str, Enum):
    SLA_BREACH = "SLA_BREACH"
    MANUAL = "MANUAL"
    SEVERITY_UPGRADE = "SEVERITY_UPGRADE"
    RESOURCE_CONSTRAINT = "RESOURCE_CONSTRAINT"
    INTERDEPARTMENT = "INTERDEPARTMENT"
    HIERARCHY = "HIERARCHY"
    INTERDEPARTMENT_COORDINATION = "INTERDEPARTMENT_COORDINATION"

class CoordinationType(str, Enum):
    GENERAL = "GENERAL"
    RESOURCE_SHARING = "RESOURCE_SHARING"
    TECHNICAL = "TECHNICAL"
    EMERGENCY = "EMERGENCY"
    POLICY = "POLICY"

COORDINATOR_ROLE = "COORDINATOR"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def new_id() -> str:
    return str(uuid.uuid4())

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value):
    """MongoDB hands back naive UTC datetimes; make them aware again."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    if isinstance(value, list):
        return [as_utc(v) for v in value]
    if isinstance(value, dict):
        return {k: as_utc(v) for k, v in value.items()}
    return value

# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """Base for records persisted as MongoDB documents keyed by ``_id``."""
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_id)

    @classmethod
    def from_doc(cls, doc: Optional[dict]):
        if doc is None:
            return None
        data = as_utc(dict(doc))
        data["id"] = data.pop("_id")
        return cls(**data)

    def to_doc(self) -> dict:
        doc = self.model_dump()
        doc["_id"] = doc.pop("id")
        return doc


class IncidentSnapshot(BaseModel):
    """Read-only view of an incident consumed by the rule engine."""
    model_config = ConfigDict(frozen=True)

    id: str
    category_id: str
    severity: Optional[int] = Field(1, ge=1, le=5)
    created_at: datetime
    estimated_cost: Optional[float] = Field(None, ge=0)


class Incident(Document):
    title: str = ""
    description: str = ""
    category_id: str
    severity: Optional[int] = Field(1, ge=1, le=5)
    estimated_cost: Optional[float] = Field(None, ge=0)
    status: IncidentStatus = IncidentStatus.NEW
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: Optional[datetime] = None
    current_assignment_id: Optional[str] = None
    escalated_at: Optional[datetime] = None
    escalated_from: Optional[str] = None
    escalated_to: Optional[str] = None
    coordinating_departments: List[str] = Field(default_factory=list)
    coordination_initiated_by: Optional[str] = None
    coordination_initiated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    def snapshot(self) -> IncidentSnapshot:
        return IncidentSnapshot(
            id=self.id, category_id=self.category_id, severity=self.severity,
            created_at=self.created_at, estimated_cost=self.estimated_cost)


class EscalationTriggerRecord(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    trigger: TriggerType
    triggered_at: datetime
    triggered_by: Optional[str] = None
    reason: Optional[str] = None
    attempted_solutions: Optional[str] = None
    urgency_justification: Optional[str] = None
    # Assignments this trigger opened (the new primary, or the coordinators)
    assignment_ids: List[str] = Field(default_factory=list)


class PriorityRecord(Document):
    incident_id: str
    sla_deadline: Optional[datetime] = None
    time_to_deadline: int = Field(0, ge=0)
    sla_breached: bool = False
    category_priority: int = Field(3, ge=1, le=5)
    priority_score: float = Field(0, ge=0)
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    signature_weight: float = Field(0, ge=0)
    upvote_weight: float = Field(0, ge=0)
    days_since_reported: int = Field(0, ge=0)
    is_overdue: bool = False
    bonus_points: float = Field(0, ge=0)
    escalation_triggers: List[EscalationTriggerRecord] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: Optional[datetime] = None

    def computed_fields(self) -> Dict[str, Any]:
        """Fields owned by the SLA calculator and the scorer."""
        return self.model_dump(include={
            "sla_deadline", "time_to_deadline", "sla_breached", "category_priority",
            "priority_score", "urgency_level", "days_since_reported", "is_overdue",
        })


class Department(Document):
    name: str = Field(..., max_length=100)
    code: str = Field(..., max_length=20)
    description: Optional[str] = None
    hierarchy_level: int = Field(1, ge=1, le=3)
    parent_id: Optional[str] = None
    max_budget: Optional[float] = None
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def upper_code(cls, v):
        return v.strip().upper()


class Officer(Document):
    user_id: str
    department_id: str
    name: str = ""
    phone: Optional[str] = None
    designation: str = Field(..., max_length=100)
    escalation_level: int = Field(..., ge=1, le=3)
    jurisdiction_id: Optional[str] = None
    is_active: bool = True


class Assignment(Document):
    incident_id: str
    assignee_officer_id: str
    assigned_by_user_id: str
    role: str = Field(..., max_length=50)
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    is_current: bool = True
    started_at: datetime = Field(default_factory=now_utc)
    resolved_at: Optional[datetime] = None
    notes: Optional[str] = None
    sequence: int = 0
    coordination_type: Optional[CoordinationType] = None
    coordination_message: Optional[str] = None

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class EscalationRequest(BaseModel):
    target_officer_id: str = Field(..., min_length=1)
    escalation_type: EscalationType
    reason: str = Field(..., min_length=1, max_length=2000)
    attempted_solutions: Optional[str] = Field(None, max_length=2000)
    urgency_justification: Optional[str] = Field(None, max_length=2000)

class CoordinationRequest(BaseModel):
    incident_id: str = Field(..., min_length=1)
    target_departments: List[str] = Field(..., min_length=1)
    coordination_type: CoordinationType = CoordinationType.GENERAL
    message: Optional[str] = Field(None, max_length=2000)
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM

class DispatchRequest(BaseModel):
    officer_id: str = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=2000)

class AssignmentStatusUpdate(BaseModel):
    status: AssignmentStatus
    notes: Optional[str] = Field(None, max_length=2000)

class CommunitySupportUpdate(BaseModel):
    signatures: float = Field(..., ge=0)
    upvotes: float = Field(..., ge=0)

class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)
    description: Optional[str] = None
    hierarchy_level: int = Field(..., ge=1, le=3)
    parent_id: Optional[str] = None
    max_budget: Optional[float] = Field(None, ge=0)

# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class TriggerSuggestion(BaseModel):
    type: TriggerType
    description: str
    automatic: bool
    priority: UrgencyLevel

class OfficerSummary(BaseModel):
    id: str
    name: str
    designation: str
    phone: Optional[str] = None
    escalation_level: int
    level_name: str
    department_id: str
    department: Optional[str] = None

class IncidentSummary(BaseModel):
    id: str
    title: str
    category_id: str
    severity: Optional[int] = None
    status: IncidentStatus
    estimated_cost: Optional[float] = None
    created_at: datetime
    escalated_at: Optional[datetime] = None

class EscalationPath(BaseModel):
    type: EscalationType
    description: str
    target_level: Optional[int] = None
    target_level_name: str
    available_officers: List[OfficerSummary]

class HierarchyInfo(BaseModel):
    level: int
    next_level: Optional[int] = None
    jurisdiction: str
    max_budget: Optional[float] = None
    description: str

class EscalationPaths(BaseModel):
    incident: IncidentSummary
    current_officer: OfficerSummary
    escalation_paths: List[EscalationPath]
    triggers: List[TriggerSuggestion]
    hierarchy: HierarchyInfo

class EscalationRecord(BaseModel):
    incident_id: str
    from_officer: OfficerSummary
    to_officer: OfficerSummary
    escalation_type: EscalationType
    reason: str
    attempted_solutions: Optional[str] = None
    urgency_justification: Optional[str] = None
    escalated_at: datetime
    new_assignment_id: str
    priority_score: float
    urgency_level: UrgencyLevel

class AssignmentView(BaseModel):
    id: str
    status: AssignmentStatus
    role: str
    started_at: datetime
    resolved_at: Optional[datetime] = None
    notes: Optional[str] = None
    is_current: bool

class HistoryStep(BaseModel):
    step: int
    assignment: AssignmentView
    officer: Optional[OfficerSummary] = None
    assigned_by: Optional[str] = None
    escalation_trigger: Optional[EscalationTriggerRecord] = None

class EscalationHistory(BaseModel):
    incident_id: str
    escalation_trail: List[HistoryStep]
    escalation_triggers: List[EscalationTriggerRecord]
    current_level: int

class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool

class PrioritySummary(BaseModel):
    score: float
    urgency_level: UrgencyLevel
    sla_deadline: Optional[datetime] = None
    sla_breached: bool
    escalation_triggers: List[EscalationTriggerRecord] = Field(default_factory=list)

class QueueEntry(BaseModel):
    assignment_id: str
    assignment_status: AssignmentStatus
    assigned_at: datetime
    current_officer: Optional[OfficerSummary] = None
    priority: Optional[PrioritySummary] = None
    incident: IncidentSummary

class QueuePage(BaseModel):
    incidents: List[QueueEntry]
    pagination: Pagination
    officer: OfficerSummary

class CoordinatorAssignment(BaseModel):
    assignment_id: str
    officer: OfficerSummary
    department_id: str
    department: str

class CoordinationRecord(BaseModel):
    incident_id: str
    coordination_type: CoordinationType
    urgency_level: UrgencyLevel
    initiating_officer: OfficerSummary
    coordinated_departments: List[Dict[str, Any]]
    assignments: List[CoordinatorAssignment]
    skipped_departments: List[str]
    required_level: int
    coordination_initiated_at: datetime
    priority_score: float

class CoordinatorView(BaseModel):
    assignment_id: str
    status: AssignmentStatus
    assigned_at: datetime
    resolved_at: Optional[datetime] = None
    coordination_type: Optional[CoordinationType] = None
    message: Optional[str] = None
    coordinator: Optional[OfficerSummary] = None
    assigned_by: Optional[str] = None

class CoordinationMetrics(BaseModel):
    total_coordinators: int
    active_coordinators: int
    completed_coordinators: int
    departments_involved: int

class CoordinationStatus(BaseModel):
    incident_id: str
    incident_status: IncidentStatus
    coordination_initiated_at: Optional[datetime] = None
    coordination_initiated_by: Optional[str] = None
    coordination_status: List[CoordinatorView]
    metrics: CoordinationMetrics
    coordinating_departments: List[str]

class LevelStats(BaseModel):
    jurisdiction: str
    total_officers: int
    departments: List[Dict[str, Any]]
    field: int
    nodal: int
    head: int

class GovernmentStructure(BaseModel):
    current_officer: OfficerSummary
    hierarchy: List[HierarchyInfo]
    levels: Dict[str, LevelStats]

class SweepResult(BaseModel):
    updated: int
    failed: int

class JurisdictionEntry(QueueEntry):
    cross_department: bool

class JurisdictionStats(BaseModel):
    total_incidents: int
    same_department: int
    cross_department: int
    urgency_breakdown: Dict[str, int]

class JurisdictionScope(BaseModel):
    current: str
    department_id: Optional[str] = None
    including_cross_department: bool

class JurisdictionPage(BaseModel):
    incidents: List[JurisdictionEntry]
    statistics: JurisdictionStats
    jurisdiction: JurisdictionScope
    pagination: Pagination
    officer: OfficerSummary

class DashboardStats(BaseModel):
    total_assigned: int
    new_incidents: int
    in_progress: int
    completed: int
    pending: int

class DashboardAssignment(BaseModel):
    id: str
    status: AssignmentStatus
    role: str
    assigned_at: datetime
    incident: IncidentSummary

class OfficerDashboard(BaseModel):
    officer: OfficerSummary
    stats: DashboardStats
    active_assignments: List[DashboardAssignment]
    recent_incidents: List[DashboardAssignment]
