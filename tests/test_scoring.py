"""Priority scorer: score composition, urgency tiers, bonuses and the batch sweep."""

from datetime import timedelta

import pytest

from civicdesk.models import EscalationRequest, IncidentSnapshot, PriorityRecord
from civicdesk.scoring import (
    age_bonus, apply_bonus, base_score, calculate_priority, deadline_bonus, recompute,
    update_all_priorities, urgency_for_score,
)

from conftest import T0


def record(**fields):
    base = dict(incident_id="inc-1", category_priority=3, time_to_deadline=2000, created_at=T0)
    base.update(fields)
    return PriorityRecord(**base)


# ═══════════════════════════════════════════════════════════════════════════════
# URGENCY TIERS
# ═══════════════════════════════════════════════════════════════════════════════

class TestUrgencyTiers:
    @pytest.mark.parametrize("score,level", [
        (0, "LOW"), (39, "LOW"), (39.9, "LOW"),
        (40, "MEDIUM"), (59, "MEDIUM"),
        (60, "HIGH"), (79, "HIGH"), (79.5, "HIGH"),
        (80, "CRITICAL"), (99, "CRITICAL"),
        (100, "EMERGENCY"), (450, "EMERGENCY"),
    ])
    def test_boundaries(self, score, level):
        assert urgency_for_score(score).value == level


# ═══════════════════════════════════════════════════════════════════════════════
# SCORE COMPONENTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestScoreComponents:
    @pytest.mark.parametrize("days,bonus", [(0, 0), (1, 0), (2, 10), (3, 10), (4, 15), (7, 15), (8, 25)])
    def test_age_bonus(self, days, bonus):
        assert age_bonus(days) == bonus

    @pytest.mark.parametrize("minutes,bonus", [(0, 30), (59, 30), (60, 20), (479, 20),
                                               (480, 10), (1439, 10), (1440, 0)])
    def test_deadline_bonus_before_breach(self, minutes, bonus):
        assert deadline_bonus(False, minutes) == bonus

    def test_breach_bonus_replaces_deadline_bonus(self):
        assert deadline_bonus(True, 0) == 50
        assert deadline_bonus(True, 5000) == 50

    def test_base_score_sums_weights(self):
        r = record(category_priority=4, signature_weight=5, upvote_weight=7, days_since_reported=2)
        # 4*20 + 2*15 + 5*2 + 7*1 + 10 (age) + 0 (deadline far away)
        assert base_score(r, 2) == 80 + 30 + 10 + 7 + 10

    def test_missing_severity_counts_as_one(self):
        assert base_score(record(), None) == base_score(record(), 1)

    def test_signature_weight_capped(self):
        assert base_score(record(signature_weight=15), 1) == base_score(record(signature_weight=500), 1)
        assert base_score(record(signature_weight=14), 1) < base_score(record(signature_weight=15), 1)

    def test_upvote_weight_capped(self):
        assert base_score(record(upvote_weight=20), 1) == base_score(record(upvote_weight=21), 1)

    def test_monotonic_in_severity(self):
        scores = [base_score(record(), s) for s in range(1, 6)]
        assert scores == sorted(scores)
        assert len(set(scores)) == 5

    def test_monotonic_in_signatures_and_age(self):
        by_signatures = [base_score(record(signature_weight=n), 1) for n in range(0, 40)]
        by_age = [base_score(record(days_since_reported=d), 1) for d in range(0, 15)]
        assert by_signatures == sorted(by_signatures)
        assert by_age == sorted(by_age)

    def test_breach_flip_adds_exactly_fifty(self):
        before = base_score(record(sla_breached=False), 3)
        after = base_score(record(sla_breached=True), 3)
        assert after - before == 50


# ═══════════════════════════════════════════════════════════════════════════════
# CALCULATE PRIORITY / BONUSES
# ═══════════════════════════════════════════════════════════════════════════════

class TestCalculatePriority:
    def test_sets_score_and_urgency(self):
        r = record(category_priority=2, time_to_deadline=3000)
        assert calculate_priority(r, 1) == 55
        assert r.priority_score == 55
        assert r.urgency_level == "MEDIUM"

    def test_accumulated_bonus_survives_recalculation(self):
        r = record(category_priority=2, time_to_deadline=3000)
        calculate_priority(r, 1)
        apply_bonus(r, 30)
        assert r.priority_score == 85
        assert r.urgency_level == "CRITICAL"
        calculate_priority(r, 1)
        assert r.priority_score == 85
        apply_bonus(r, 20)
        assert r.bonus_points == 50
        assert r.priority_score == 105
        assert r.urgency_level == "EMERGENCY"

    def test_recompute_runs_sla_before_priority(self):
        incident = IncidentSnapshot(id="inc-1", category_id="water", severity=2,
                                    created_at=T0)
        r = recompute(PriorityRecord(incident_id="inc-1", created_at=T0), incident, T0 + timedelta(hours=1))
        # 4*20 + 2*15 + 10 (1380 minutes left)
        assert r.category_priority == 4
        assert r.time_to_deadline == 23 * 60
        assert r.priority_score == 120
        assert r.urgency_level == "EMERGENCY"


# ═══════════════════════════════════════════════════════════════════════════════
# BATCH SWEEP
# ═══════════════════════════════════════════════════════════════════════════════

class TestSweep:
    def test_sweep_twice_is_idempotent(self, service, store, world, clock):
        for incident_id in ("inc-water", "inc-road", "inc-flood"):
            service.register_incident(incident_id)
        clock.advance(hours=30)
        first = update_all_priorities(store, clock())
        scores = {i: store.get_priority(i).priority_score for i in ("inc-water", "inc-road", "inc-flood")}
        second = update_all_priorities(store, clock())
        assert first.updated == second.updated == 3
        assert {i: store.get_priority(i).priority_score for i in scores} == scores

    def test_sweep_flips_breach_and_adds_fifty(self, service, store, world, clock):
        service.register_incident("inc-water")
        # 2h old water incident: 24h window, 22h left -> +10
        before = store.get_priority("inc-water").priority_score
        clock.advance(hours=23)
        update_all_priorities(store, clock())
        after = store.get_priority("inc-water")
        assert after.sla_breached is True
        assert after.is_overdue is True
        # deadline bonus 10 -> 50, age bonus 0 -> 0 (day 1)
        assert after.priority_score == before + 40

    def test_sweep_keeps_escalation_bonus_and_triggers(self, service, store, world, clock):
        service.dispatch_incident("inc-water", "off-w1", "u-admin")
        service.escalate_incident("inc-water", "u-w1", EscalationRequest(
            target_officer_id="off-w2", escalation_type="HIERARCHY", reason="Needs pump replacement"))
        escalated = store.get_priority("inc-water")
        update_all_priorities(store, clock())
        swept = store.get_priority("inc-water")
        assert swept.priority_score == escalated.priority_score
        assert swept.bonus_points == 30
        assert [t.trigger for t in swept.escalation_triggers] == ["HIERARCHY"]

    def test_one_bad_record_does_not_stop_batch(self, service, store, world, clock):
        service.register_incident("inc-water")
        service.register_incident("inc-road")
        store.db.incident_priorities.insert_one({"_id": "orphan", "incident_id": "inc-missing"})
        result = service.update_all_priorities()
        assert result.updated == 2
        assert result.failed == 1

    def test_empty_store(self, service):
        result = service.update_all_priorities()
        assert (result.updated, result.failed) == (0, 0)
