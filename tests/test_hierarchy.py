"""Escalation hierarchy: candidate lookup, trigger detection and rank rules."""

import pytest

from civicdesk.errors import ValidationFailed
from civicdesk.hierarchy import (
    cross_department_candidates, detect_triggers, level_name, level_rule,
    needs_interdepartment_coordination, next_level_candidates, required_coordination_level,
    validate_escalation,
)
from civicdesk.models import IncidentSnapshot, Officer, PriorityRecord

from conftest import T0


def snapshot(category="water", severity=1, cost=None):
    return IncidentSnapshot(id="inc-1", category_id=category, severity=severity,
                            created_at=T0, estimated_cost=cost)


def officer(officer_id, level, dept="dept-a"):
    return Officer(id=officer_id, user_id=f"u-{officer_id}", department_id=dept,
                   designation="Officer", escalation_level=level)


# ═══════════════════════════════════════════════════════════════════════════════
# RULE TABLE
# ═══════════════════════════════════════════════════════════════════════════════

class TestLevelRules:
    def test_chain(self):
        assert [level_rule(l).next_level for l in (1, 2, 3)] == [2, 3, None]
        assert level_rule(1).max_budget == 25_000
        assert level_rule(3).max_budget is None

    def test_unknown_level(self):
        with pytest.raises(ValidationFailed):
            level_rule(4)

    def test_level_names(self):
        assert level_name(2) == "Nodal Officer"
        assert level_name(None) == "Officer"

    @pytest.mark.parametrize("category,expected", [
        ("infrastructure", True), ("FLOOD", True), ("major_road", True),
        ("water", False), (None, False), ("", False),
    ])
    def test_coordination_categories(self, category, expected):
        assert needs_interdepartment_coordination(category) is expected


# ═══════════════════════════════════════════════════════════════════════════════
# CANDIDATES
# ═══════════════════════════════════════════════════════════════════════════════

class TestCandidates:
    def test_next_level_same_department_only(self, store, world):
        w1 = store.get_officer("off-w1")
        assert [o.id for o in next_level_candidates(store, w1)] == ["off-w2"]

    def test_top_of_chain_has_no_next_level(self, store, world):
        assert next_level_candidates(store, store.get_officer("off-w3")) == []

    def test_inactive_officers_excluded(self, store, world):
        r1 = store.get_officer("off-r1")
        assert [o.id for o in next_level_candidates(store, r1)] == ["off-r2"]

    def test_cross_department_same_or_higher_level(self, store, world):
        w2 = store.get_officer("off-w2")
        ids = [o.id for o in cross_department_candidates(store, w2)]
        assert ids == ["off-h2", "off-r2", "off-r3"]
        assert all(not i.startswith("off-w") for i in ids)


# ═══════════════════════════════════════════════════════════════════════════════
# TRIGGER DETECTION
# ═══════════════════════════════════════════════════════════════════════════════

class TestDetectTriggers:
    def test_manual_always_present(self):
        triggers = detect_triggers(snapshot(), None, 1)
        assert [t.type for t in triggers] == ["MANUAL"]

    def test_all_triggers_in_order(self):
        priority = PriorityRecord(incident_id="inc-1", sla_breached=True, created_at=T0)
        triggers = detect_triggers(snapshot("infrastructure", 4, 30_000), priority, 1)
        assert [t.type for t in triggers] == [
            "SLA_BREACH", "SEVERITY_UPGRADE", "RESOURCE_CONSTRAINT", "MANUAL", "INTERDEPARTMENT",
        ]
        assert triggers[0].automatic is True
        assert triggers[1].priority == "CRITICAL"

    def test_budget_depends_on_level(self):
        assert "RESOURCE_CONSTRAINT" in [t.type for t in detect_triggers(snapshot(cost=30_000), None, 1)]
        assert "RESOURCE_CONSTRAINT" not in [t.type for t in detect_triggers(snapshot(cost=30_000), None, 2)]

    def test_top_level_has_unlimited_budget(self):
        triggers = detect_triggers(snapshot(cost=10_000_000), None, 3)
        assert "RESOURCE_CONSTRAINT" not in [t.type for t in triggers]


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════

class TestValidateEscalation:
    def test_hierarchy_upward_ok(self):
        validate_escalation(officer("a", 1), officer("b", 2), "HIERARCHY")

    @pytest.mark.parametrize("target_level", [1, 2])
    def test_hierarchy_same_or_lower_rejected(self, target_level):
        with pytest.raises(ValidationFailed):
            validate_escalation(officer("a", 2), officer("b", target_level), "HIERARCHY")

    def test_level_one_to_level_one_same_department_rejected(self):
        with pytest.raises(ValidationFailed):
            validate_escalation(officer("a", 1), officer("b", 1), "HIERARCHY")

    def test_interdepartment_allows_same_level(self):
        validate_escalation(officer("a", 2), officer("b", 2, "dept-b"), "INTERDEPARTMENT")

    def test_self_escalation_rejected(self):
        me = officer("a", 1)
        with pytest.raises(ValidationFailed):
            validate_escalation(me, me, "INTERDEPARTMENT")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationFailed):
            validate_escalation(officer("a", 1), officer("b", 2), "SIDEWAYS")


class TestRequiredCoordinationLevel:
    @pytest.mark.parametrize("severity,cost,ctype,expected", [
        (1, None, "GENERAL", 1),
        (4, None, "GENERAL", 2),
        (1, None, "EMERGENCY", 2),
        (1, 600_000, "GENERAL", 3),
        (1, 500_000, "TECHNICAL", 1),
        (1, None, "POLICY", 3),
        (5, None, "POLICY", 3),
    ])
    def test_levels(self, severity, cost, ctype, expected):
        assert required_coordination_level(snapshot(severity=severity, cost=cost), ctype) == expected
