# CivicDesk: seed data importer
# Populates MongoDB with departments, officers, users and scored incidents
#
# Usage:  python -m civicdesk.seed.importer

from pymongo import MongoClient

from .. import config
from ..store import MongoStore
from ..workflow import EscalationService
from .incidents import INCIDENTS, import_incidents
from .structure import DEPARTMENTS, OFFICERS, import_structure
from .users import USERS, import_users

COLLECTIONS = ["incidents", "incident_priorities", "assignments", "officers",
               "departments", "users", "counters"]


def seed(db) -> dict:
    """Reset and populate *db*. Returns the created ids, grouped by kind."""
    for name in COLLECTIONS:
        db[name].drop()
    store = MongoStore(db)
    store.ensure_indexes()
    service = EscalationService(store)

    user_ids = import_users(db)
    full_names = {u["username"]: u["full_name"] for u in USERS}
    dept_ids, officer_ids = import_structure(store, user_ids, full_names)
    import_incidents(store, service, officer_ids, user_ids)
    return {"users": user_ids, "departments": dept_ids, "officers": officer_ids}


def main():
    print("=" * 64)
    print("  CivicDesk Data Importer")
    print("=" * 64)

    print("\n[1/2] Connecting to MongoDB...")
    mongo_client = MongoClient(config.MONGODB_URL)
    db = mongo_client[config.MONGODB_DB]
    print(f"  Connected: {config.MONGODB_URL} / {config.MONGODB_DB}")

    print("\n[2/2] Seeding")
    seed(db)

    print("\n" + "=" * 64)
    print("  IMPORT COMPLETE")
    print("=" * 64)
    print(f"  Users:        {len(USERS)}")
    print(f"  Departments:  {len(DEPARTMENTS)}")
    print(f"  Officers:     {len(OFFICERS)}")
    print(f"  Incidents:    {len(INCIDENTS)}")
    print()
    print("  Test credentials:")
    print("    Officers:  fo_water / no_water / ho_water  (password officer123)")
    print("    Admin:     admin / admin123")
    mongo_client.close()


if __name__ == "__main__":
    main()
