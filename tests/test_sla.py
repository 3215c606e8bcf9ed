"""SLA calculator: resolution windows, severity floors and breach bookkeeping."""

from datetime import timedelta

import pytest

from civicdesk.models import IncidentSnapshot, PriorityRecord
from civicdesk.sla import calculate_sla, resolution_hours

from conftest import T0


def snapshot(category="water", severity=1, created_at=T0, cost=None):
    return IncidentSnapshot(id="inc-1", category_id=category, severity=severity,
                            created_at=created_at, estimated_cost=cost)


def fresh():
    return PriorityRecord(incident_id="inc-1", created_at=T0)


# ═══════════════════════════════════════════════════════════════════════════════
# RESOLUTION WINDOWS
# ═══════════════════════════════════════════════════════════════════════════════

class TestResolutionHours:
    @pytest.mark.parametrize("category,hours,priority", [
        ("emergency", 4, 5), ("health", 4, 5),
        ("water", 24, 4), ("electricity", 24, 4),
        ("sanitation", 48, 3), ("road", 48, 3),
        ("education", 120, 2),
        ("street_lighting", 72, 2),
    ])
    def test_base_windows(self, category, hours, priority):
        assert resolution_hours(category, 1) == (hours, priority)

    def test_category_match_is_case_insensitive(self):
        assert resolution_hours("WaTeR", 1) == (24, 4)

    def test_missing_category_uses_default(self):
        assert resolution_hours(None, 1) == (72, 2)

    def test_high_severity_halves_window(self):
        assert resolution_hours("water", 4) == (12, 4)
        assert resolution_hours("road", 5) == (24, 3)

    def test_high_severity_floor(self):
        assert resolution_hours("health", 5) == (2, 5)

    def test_medium_severity_three_quarters(self):
        assert resolution_hours("road", 3) == (36, 3)

    def test_medium_severity_floor(self):
        # 4h * 0.75 = 3h, lifted to the 4h floor
        assert resolution_hours("health", 3) == (4, 5)

    def test_low_severity_unchanged(self):
        assert resolution_hours("education", 2) == (120, 2)


# ═══════════════════════════════════════════════════════════════════════════════
# CALCULATE SLA
# ═══════════════════════════════════════════════════════════════════════════════

class TestCalculateSLA:
    def test_health_severity_three_deadline(self):
        record = calculate_sla(fresh(), snapshot("health", 3), T0)
        assert record.category_priority == 5
        assert record.sla_deadline == T0 + timedelta(hours=4)
        assert record.time_to_deadline == 240
        assert record.sla_breached is False

    def test_deterministic_for_fixed_now(self):
        now = T0 + timedelta(hours=5, seconds=17)
        a = calculate_sla(fresh(), snapshot("road", 4), now)
        b = calculate_sla(fresh(), snapshot("road", 4), now)
        assert a.computed_fields() == b.computed_fields()

    def test_time_to_deadline_floors_minutes(self):
        now = T0 + timedelta(hours=23, seconds=30)
        record = calculate_sla(fresh(), snapshot("water"), now)
        assert record.time_to_deadline == 59

    def test_deadline_instant_is_not_breached(self):
        record = calculate_sla(fresh(), snapshot("water"), T0 + timedelta(hours=24))
        assert record.sla_breached is False
        assert record.time_to_deadline == 0

    def test_past_deadline_is_breached_and_clamped(self):
        record = calculate_sla(fresh(), snapshot("water"), T0 + timedelta(hours=30))
        assert record.sla_breached is True
        assert record.is_overdue is True
        assert record.time_to_deadline == 0

    @pytest.mark.parametrize("offset_hours", [0, 1, 23.99, 24, 24.01, 100])
    def test_breached_matches_deadline_comparison(self, offset_hours):
        now = T0 + timedelta(hours=offset_hours)
        record = calculate_sla(fresh(), snapshot("water"), now)
        assert record.sla_breached == (now > record.sla_deadline)
        assert record.is_overdue == record.sla_breached

    def test_days_since_reported_floors(self):
        record = calculate_sla(fresh(), snapshot("education"), T0 + timedelta(days=3, hours=23))
        assert record.days_since_reported == 3

    def test_future_created_at_clamps_to_zero_days(self):
        record = calculate_sla(fresh(), snapshot(created_at=T0 + timedelta(hours=1)), T0)
        assert record.days_since_reported == 0
