# Seed data: Incidents, spread across categories, severities and ages

from datetime import timedelta

from ..models import Incident, now_utc

# ---------------------------------------------------------------------------
# Raw incident definitions ("dispatch_to" is a seed username or None)
# ---------------------------------------------------------------------------
INCIDENTS = [
    {"title": "Tube well contaminated in Ward 4", "category_id": "water", "severity": 3,
     "age_hours": 30, "estimated_cost": 18_000, "dispatch_to": "fo_water",
     "signatures": 12, "upvotes": 25},
    {"title": "Pipeline burst near high school", "category_id": "water", "severity": 2,
     "age_hours": 6, "estimated_cost": 40_000, "dispatch_to": "fo_water",
     "signatures": 0, "upvotes": 4},
    {"title": "Culvert collapsed on village link road", "category_id": "road", "severity": 3,
     "age_hours": 100, "estimated_cost": 750_000, "dispatch_to": "fo_roads",
     "signatures": 30, "upvotes": 8},
    {"title": "Potholes on market road", "category_id": "road", "severity": 1,
     "age_hours": 200, "estimated_cost": 9_000, "dispatch_to": "fo_roads",
     "signatures": 2, "upvotes": 3},
    {"title": "Drain overflow beside anganwadi", "category_id": "sanitation", "severity": 2,
     "age_hours": 20, "estimated_cost": 6_000, "dispatch_to": "fo_sanitation",
     "signatures": 5, "upvotes": 11},
    {"title": "Dengue cases reported in hamlet", "category_id": "health", "severity": 3,
     "age_hours": 2, "estimated_cost": None, "dispatch_to": "no_health",
     "signatures": 0, "upvotes": 0},
    {"title": "Flood water entering homes after embankment breach", "category_id": "flood",
     "severity": 3, "age_hours": 1, "estimated_cost": 1_200_000, "dispatch_to": None,
     "signatures": 0, "upvotes": 0},
    {"title": "School boundary wall damaged", "category_id": "education", "severity": 1,
     "age_hours": 48, "estimated_cost": 60_000, "dispatch_to": None,
     "signatures": 1, "upvotes": 2},
]

# ---------------------------------------------------------------------------
# Import function
# ---------------------------------------------------------------------------
def import_incidents(store, service, officer_ids: dict, user_ids: dict) -> int:
    """Insert incidents, score them and dispatch those with a seed assignee."""
    print("\n  Importing incidents...")
    now = now_utc()
    for item in INCIDENTS:
        incident = store.insert_incident(Incident(
            title=item["title"], category_id=item["category_id"], severity=item["severity"],
            estimated_cost=item["estimated_cost"],
            created_at=now - timedelta(hours=item["age_hours"])))
        record = service.record_community_support(incident.id, item["signatures"], item["upvotes"])
        if item["dispatch_to"]:
            service.dispatch_incident(incident.id, officer_ids[item["dispatch_to"]], user_ids["admin"],
                                      notes="Auto-dispatched by seed import")
        print(f"    {item['category_id']:11s} sev {item['severity']}  "
              f"score {record.priority_score:6.1f}  {record.urgency_level}")
    print(f"  => {len(INCIDENTS)} incidents created")
    return len(INCIDENTS)
