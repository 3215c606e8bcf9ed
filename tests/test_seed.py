"""Seed importer against an in-process database."""

import mongomock

from civicdesk.seed.importer import seed
from civicdesk.seed.incidents import INCIDENTS
from civicdesk.seed.structure import DEPARTMENTS, OFFICERS
from civicdesk.seed.users import USERS
from civicdesk.store import MongoStore


class TestSeed:
    def test_seed_populates_everything(self):
        db = mongomock.MongoClient().civicdesk_seed
        ids = seed(db)
        store = MongoStore(db)

        assert db.users.count_documents({}) == len(USERS)
        assert db.departments.count_documents({}) == len(DEPARTMENTS)
        assert db.officers.count_documents({}) == len(OFFICERS)
        assert db.incident_priorities.count_documents({}) == len(INCIDENTS)

        dispatched = [i for i in INCIDENTS if i["dispatch_to"]]
        assert db.assignments.count_documents({"is_current": True}) == len(dispatched)

        rwss = store.get_department_by_code("rwss")
        assert rwss.parent_id == ids["departments"]["DIST-COLL"]
        officer = store.get_officer_by_user(ids["users"]["no_water"])
        assert officer.escalation_level == 2
        assert officer.department_id == rwss.id

    def test_seed_is_repeatable(self):
        db = mongomock.MongoClient().civicdesk_seed
        seed(db)
        seed(db)
        assert db.incidents.count_documents({}) == len(INCIDENTS)
