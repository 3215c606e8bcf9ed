# Seed data: Departments (district > block > panchayat tree) and officer profiles

from ..models import Department, Officer

# ---------------------------------------------------------------------------
# Departments, parents listed before children
# ---------------------------------------------------------------------------
DEPARTMENTS = [
    {"code": "DIST-COLL", "name": "District Collectorate", "hierarchy_level": 3,
     "parent": None, "max_budget": None,
     "description": "District administration, top of the escalation chain"},
    {"code": "RWSS", "name": "Rural Water Supply & Sanitation", "hierarchy_level": 2,
     "parent": "DIST-COLL", "max_budget": 500_000},
    {"code": "RD-ROADS", "name": "Rural Roads Division", "hierarchy_level": 2,
     "parent": "DIST-COLL", "max_budget": 500_000},
    {"code": "HEALTH", "name": "Block Health Office", "hierarchy_level": 2,
     "parent": "DIST-COLL", "max_budget": 500_000},
    {"code": "GP-SAN", "name": "Gram Panchayat Sanitation Cell", "hierarchy_level": 1,
     "parent": "RWSS", "max_budget": 25_000},
]

# ---------------------------------------------------------------------------
# Officer profiles, keyed to seed usernames
# ---------------------------------------------------------------------------
OFFICERS = [
    {"username": "fo_water", "department": "RWSS", "designation": "Junior Engineer",
     "escalation_level": 1, "phone": "9988776601"},
    {"username": "no_water", "department": "RWSS", "designation": "Assistant Engineer",
     "escalation_level": 2, "phone": "9988776602"},
    {"username": "ho_water", "department": "RWSS", "designation": "Executive Engineer",
     "escalation_level": 3, "phone": "9988776603"},
    {"username": "fo_roads", "department": "RD-ROADS", "designation": "Junior Engineer",
     "escalation_level": 1, "phone": "9988776611"},
    {"username": "no_roads", "department": "RD-ROADS", "designation": "Assistant Engineer",
     "escalation_level": 2, "phone": "9988776612"},
    {"username": "ho_roads", "department": "RD-ROADS", "designation": "Executive Engineer",
     "escalation_level": 3, "phone": "9988776613"},
    {"username": "no_health", "department": "HEALTH", "designation": "Block Medical Officer",
     "escalation_level": 2, "phone": "9988776621"},
    {"username": "fo_sanitation", "department": "GP-SAN", "designation": "Sanitation Inspector",
     "escalation_level": 1, "phone": "9988776631"},
]

# ---------------------------------------------------------------------------
# Import function
# ---------------------------------------------------------------------------
def import_structure(store, user_ids: dict, full_names: dict) -> tuple:
    """Insert departments and officers. Returns ({code: dept_id}, {username: officer_id})."""
    print("\n  Importing departments...")
    dept_ids = {}
    for d in DEPARTMENTS:
        dept = store.insert_department(Department(
            name=d["name"], code=d["code"], description=d.get("description"),
            hierarchy_level=d["hierarchy_level"], max_budget=d["max_budget"],
            parent_id=dept_ids.get(d["parent"])))
        dept_ids[dept.code] = dept.id
        print(f"    {dept.code:12s}  level {dept.hierarchy_level}")

    print("\n  Importing officers...")
    officer_ids = {}
    for o in OFFICERS:
        officer = store.insert_officer(Officer(
            user_id=user_ids[o["username"]], department_id=dept_ids[o["department"]],
            name=full_names[o["username"]], phone=o["phone"],
            designation=o["designation"], escalation_level=o["escalation_level"]))
        officer_ids[o["username"]] = officer.id
        print(f"    {o['username']:20s}  L{o['escalation_level']} {o['department']}")
    print(f"  => {len(DEPARTMENTS)} departments, {len(OFFICERS)} officers created")
    return dept_ids, officer_ids
