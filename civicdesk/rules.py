# Static rule tables for SLA windows, the officer escalation hierarchy and
# inter-department coordination. Everything here is read-only.

from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

# ---------------------------------------------------------------------------
# SLA windows by category
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SLARule:
    hours: float
    category_priority: int


DEFAULT_SLA_RULE = SLARule(hours=72, category_priority=2)

SLA_RULES = MappingProxyType({
    "emergency":   SLARule(hours=4, category_priority=5),
    "health":      SLARule(hours=4, category_priority=5),
    "water":       SLARule(hours=24, category_priority=4),
    "electricity": SLARule(hours=24, category_priority=4),
    "sanitation":  SLARule(hours=48, category_priority=3),
    "road":        SLARule(hours=48, category_priority=3),
    "education":   SLARule(hours=120, category_priority=2),
})

# Severity floors applied after the category lookup
HIGH_SEVERITY_FLOOR_HOURS = 2
MEDIUM_SEVERITY_FLOOR_HOURS = 4

# ---------------------------------------------------------------------------
# Priority score weights
# ---------------------------------------------------------------------------
CATEGORY_WEIGHT = 20
SEVERITY_WEIGHT = 15
SIGNATURE_WEIGHT = 2
SIGNATURE_CAP = 30
UPVOTE_WEIGHT = 1
UPVOTE_CAP = 20

# (days strictly greater than, bonus), highest first
AGE_BONUSES = ((7, 25), (3, 15), (1, 10))
SLA_BREACH_BONUS = 50
# (minutes strictly less than, bonus), tightest first
DEADLINE_BONUSES = ((60, 30), (480, 20), (1440, 10))

ESCALATION_BONUS = 30
COORDINATION_BONUS = 20

# (minimum score, urgency), highest first
URGENCY_THRESHOLDS = (
    (100, "EMERGENCY"),
    (80, "CRITICAL"),
    (60, "HIGH"),
    (40, "MEDIUM"),
)

# ---------------------------------------------------------------------------
# Officer escalation hierarchy
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class LevelRule:
    level: int
    next_level: Optional[int]
    jurisdiction: str
    max_budget: Optional[float]
    description: str


ESCALATION_HIERARCHY = MappingProxyType({
    1: LevelRule(1, 2, "VILLAGE", 25_000, "Field Officer to Nodal Officer"),
    2: LevelRule(2, 3, "BLOCK", 500_000, "Nodal Officer to Head Officer"),
    3: LevelRule(3, None, "DISTRICT", None, "Head Officer (top of chain)"),
})

LEVEL_NAMES = MappingProxyType({
    1: "Field Officer",
    2: "Nodal Officer",
    3: "Head Officer",
})

JURISDICTION_NAMES = MappingProxyType({
    1: "VILLAGE",
    2: "BLOCK",
    3: "DISTRICT",
})

# ---------------------------------------------------------------------------
# Coordination
# ---------------------------------------------------------------------------
COORDINATION_CATEGORIES = frozenset({
    "INFRASTRUCTURE", "EMERGENCY", "FLOOD", "DISASTER",
    "MAJOR_ROAD", "HOSPITAL", "SCHOOL_INFRASTRUCTURE",
})

# Cost above which coordination needs head officers
HEAD_OFFICER_COST_THRESHOLD = 500_000

# ---------------------------------------------------------------------------
# Assignment lifecycle
# ---------------------------------------------------------------------------
ASSIGNMENT_TRANSITIONS = MappingProxyType({
    "ASSIGNED":    frozenset({"ACCEPTED", "IN_PROGRESS", "COMPLETED", "REJECTED"}),
    "ACCEPTED":    frozenset({"IN_PROGRESS", "COMPLETED", "REJECTED"}),
    "IN_PROGRESS": frozenset({"COMPLETED", "REJECTED"}),
    "COMPLETED":   frozenset(),
    "REJECTED":    frozenset(),
})

CLOSED_INCIDENT_STATUSES = frozenset({"RESOLVED", "CLOSED"})
