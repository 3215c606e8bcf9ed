# MongoDB persistence for incidents, priority records, officers, departments
# and the assignment log.

import functools
import logging
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from .errors import Conflict, InfrastructureError
from .models import (
    Assignment, Department, EscalationTriggerRecord, Incident, Officer, PriorityRecord,
)

logger = logging.getLogger(__name__)

OFFICER_ORDER = [("escalation_level", ASCENDING), ("name", ASCENDING), ("_id", ASCENDING)]


def _translate_errors(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except DuplicateKeyError as e:
            raise Conflict(f"Duplicate key: {e.details.get('keyValue') if e.details else e}") from e
        except PyMongoError as e:
            logger.error("MongoDB error in %s: %s", fn.__name__, e)
            raise InfrastructureError("Database operation failed") from e
    return wrapper


class MongoStore:
    def __init__(self, db):
        self.db = db

    @_translate_errors
    def ensure_indexes(self):
        self.db.incident_priorities.create_index("incident_id", unique=True)
        self.db.incident_priorities.create_index([("priority_score", DESCENDING)])
        self.db.incident_priorities.create_index("sla_deadline")
        self.db.incident_priorities.create_index("urgency_level")
        self.db.incident_priorities.create_index("is_overdue")
        self.db.assignments.create_index("incident_id")
        self.db.assignments.create_index("assignee_officer_id")
        self.db.assignments.create_index("is_current")
        self.db.assignments.create_index("status")
        self.db.assignments.create_index([("incident_id", ASCENDING), ("sequence", ASCENDING)])
        self.db.officers.create_index("user_id")
        self.db.officers.create_index("department_id")
        self.db.officers.create_index("escalation_level")
        self.db.officers.create_index("is_active")
        self.db.departments.create_index("code", unique=True)
        self.db.incidents.create_index("status")
        logger.info("Database indexes ensured")

    # ------------------------------------------------------------------
    # Incidents
    # ------------------------------------------------------------------
    @_translate_errors
    def get_incident(self, incident_id: str) -> Optional[Incident]:
        return Incident.from_doc(self.db.incidents.find_one({"_id": incident_id}))

    @_translate_errors
    def find_incidents(self, incident_ids: Iterable[str]) -> Dict[str, Incident]:
        docs = self.db.incidents.find({"_id": {"$in": list(incident_ids)}})
        return {d["_id"]: Incident.from_doc(d) for d in docs}

    @_translate_errors
    def insert_incident(self, incident: Incident) -> Incident:
        self.db.incidents.insert_one(incident.to_doc())
        return incident

    @_translate_errors
    def update_incident(self, incident_id: str, fields: dict) -> bool:
        result = self.db.incidents.update_one({"_id": incident_id}, {"$set": fields})
        return result.matched_count == 1

    @_translate_errors
    def swap_current_assignment(self, incident_id: str, expected_id: Optional[str],
                                new_id: str, fields: dict) -> bool:
        """Move the incident's current-assignment pointer only if it still equals *expected_id*."""
        result = self.db.incidents.update_one(
            {"_id": incident_id, "current_assignment_id": expected_id},
            {"$set": {**fields, "current_assignment_id": new_id}})
        return result.modified_count == 1

    # ------------------------------------------------------------------
    # Priority records
    # ------------------------------------------------------------------
    @_translate_errors
    def get_priority(self, incident_id: str) -> Optional[PriorityRecord]:
        return PriorityRecord.from_doc(self.db.incident_priorities.find_one({"incident_id": incident_id}))

    @_translate_errors
    def find_priorities(self, incident_ids: Iterable[str]) -> Dict[str, PriorityRecord]:
        docs = self.db.incident_priorities.find({"incident_id": {"$in": list(incident_ids)}})
        return {d["incident_id"]: PriorityRecord.from_doc(d) for d in docs}

    @_translate_errors
    def iter_priority_docs(self) -> Iterator[dict]:
        return iter(list(self.db.incident_priorities.find()))

    @_translate_errors
    def save_computed(self, record: PriorityRecord, now: datetime):
        """Write back only the fields the sweep recomputes."""
        self.db.incident_priorities.update_one(
            {"incident_id": record.incident_id},
            {"$set": {**record.computed_fields(), "updated_at": now}})

    @_translate_errors
    def save_priority(self, record: PriorityRecord, now: datetime,
                      trigger: Optional[EscalationTriggerRecord] = None) -> PriorityRecord:
        """Upsert a priority record; a trigger is appended, never rewritten."""
        update = {
            "$set": {
                **record.computed_fields(),
                "signature_weight": record.signature_weight,
                "upvote_weight": record.upvote_weight,
                "bonus_points": record.bonus_points,
                "updated_at": now,
            },
            "$setOnInsert": {"_id": record.id, "incident_id": record.incident_id,
                             "created_at": record.created_at},
        }
        if trigger is not None:
            update["$push"] = {"escalation_triggers": trigger.model_dump()}
        doc = self.db.incident_priorities.find_one_and_update(
            {"incident_id": record.incident_id}, update,
            upsert=True, return_document=ReturnDocument.AFTER)
        return PriorityRecord.from_doc(doc)

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------
    @_translate_errors
    def insert_department(self, department: Department) -> Department:
        self.db.departments.insert_one(department.to_doc())
        return department

    @_translate_errors
    def get_department(self, department_id: str) -> Optional[Department]:
        return Department.from_doc(self.db.departments.find_one({"_id": department_id}))

    @_translate_errors
    def get_department_by_code(self, code: str) -> Optional[Department]:
        return Department.from_doc(self.db.departments.find_one({"code": code.strip().upper()}))

    @_translate_errors
    def find_departments(self, ids: Optional[Iterable[str]] = None, active_only: bool = True,
                         exclude_id: Optional[str] = None) -> List[Department]:
        query: dict = {}
        if ids is not None:
            query["_id"] = {"$in": list(ids)}
        if exclude_id is not None:
            query.setdefault("_id", {})["$ne"] = exclude_id
        if active_only:
            query["is_active"] = True
        docs = self.db.departments.find(query).sort("name", ASCENDING)
        return [Department.from_doc(d) for d in docs]

    # ------------------------------------------------------------------
    # Officers
    # ------------------------------------------------------------------
    @_translate_errors
    def insert_officer(self, officer: Officer) -> Officer:
        self.db.officers.insert_one(officer.to_doc())
        return officer

    @_translate_errors
    def get_officer(self, officer_id: str) -> Optional[Officer]:
        return Officer.from_doc(self.db.officers.find_one({"_id": officer_id}))

    @_translate_errors
    def get_officer_by_user(self, user_id: str) -> Optional[Officer]:
        return Officer.from_doc(self.db.officers.find_one({"user_id": user_id}))

    @_translate_errors
    def find_officers(self, ids: Optional[Iterable[str]] = None,
                      department_ids: Optional[Iterable[str]] = None,
                      level: Optional[int] = None, min_level: Optional[int] = None,
                      max_level: Optional[int] = None, active_only: bool = True) -> List[Officer]:
        query: dict = {}
        if ids is not None:
            query["_id"] = {"$in": list(ids)}
        if department_ids is not None:
            query["department_id"] = {"$in": list(department_ids)}
        if level is not None:
            query["escalation_level"] = level
        else:
            bounds = {}
            if min_level is not None:
                bounds["$gte"] = min_level
            if max_level is not None:
                bounds["$lte"] = max_level
            if bounds:
                query["escalation_level"] = bounds
        if active_only:
            query["is_active"] = True
        return [Officer.from_doc(d) for d in self.db.officers.find(query).sort(OFFICER_ORDER)]

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------
    @_translate_errors
    def next_assignment_sequence(self, incident_id: str) -> int:
        counter = self.db.counters.find_one_and_update(
            {"_id": f"assignment:{incident_id}"}, {"$inc": {"seq": 1}},
            upsert=True, return_document=ReturnDocument.AFTER)
        return counter["seq"]

    @_translate_errors
    def insert_assignment(self, assignment: Assignment) -> Assignment:
        self.db.assignments.insert_one(assignment.to_doc())
        return assignment

    @_translate_errors
    def delete_assignment(self, assignment_id: str) -> bool:
        """Only used to withdraw an assignment whose hand-off never completed."""
        result = self.db.assignments.delete_one({"_id": assignment_id})
        return result.deleted_count == 1

    @_translate_errors
    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        return Assignment.from_doc(self.db.assignments.find_one({"_id": assignment_id}))

    @_translate_errors
    def update_assignment(self, assignment_id: str, fields: dict) -> bool:
        result = self.db.assignments.update_one({"_id": assignment_id}, {"$set": fields})
        return result.matched_count == 1

    @_translate_errors
    def find_assignments(self, incident_id: Optional[str] = None,
                         assignee_ids: Optional[Iterable[str]] = None,
                         is_current: Optional[bool] = None, status: Optional[str] = None,
                         role: Optional[str] = None, exclude_role: Optional[str] = None) -> List[Assignment]:
        query: dict = {}
        if incident_id is not None:
            query["incident_id"] = incident_id
        if assignee_ids is not None:
            query["assignee_officer_id"] = {"$in": list(assignee_ids)}
        if is_current is not None:
            query["is_current"] = is_current
        if status is not None:
            query["status"] = status
        if role is not None:
            query["role"] = role
        elif exclude_role is not None:
            query["role"] = {"$ne": exclude_role}
        docs = self.db.assignments.find(query).sort([("started_at", ASCENDING), ("sequence", ASCENDING)])
        return [Assignment.from_doc(d) for d in docs]
