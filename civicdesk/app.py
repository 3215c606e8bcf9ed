# CivicDesk Priority & Escalation API
# FastAPI + MongoDB

import asyncio
import functools
import logging
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from pymongo import MongoClient
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from . import config
from .errors import EngineError
from .models import (
    Assignment, AssignmentStatus, AssignmentStatusUpdate, CommunitySupportUpdate,
    CoordinationRecord, CoordinationRequest, CoordinationStatus, Department, DepartmentCreate,
    DispatchRequest, EscalationHistory, EscalationPaths, EscalationRecord, EscalationRequest,
    GovernmentStructure, JurisdictionPage, OfficerDashboard, PriorityRecord, QueuePage,
    SweepResult, UrgencyLevel, UserRole,
)
from .store import MongoStore
from .workflow import EscalationService

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

if not config.JWT_SECRET or len(config.JWT_SECRET) < 32:
    raise RuntimeError(
        "FATAL: JWT_SECRET must be set in the environment and be at least 32 characters. "
        "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
    )

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

# ---------------------------------------------------------------------------
# Auth models
# ---------------------------------------------------------------------------
class UserLogin(BaseModel):
    username: str
    password: str

class UserResponse(BaseModel):
    id: str
    username: str
    full_name: str
    role: UserRole

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

# ---------------------------------------------------------------------------
# App & Globals
# ---------------------------------------------------------------------------
db_client = None
store = None
service = None
executor = ThreadPoolExecutor(max_workers=config.EXECUTOR_WORKERS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup_db()
    yield
    if db_client:
        db_client.close()


async def startup_db():
    global db_client, store, service
    db_client = MongoClient(config.MONGODB_URL)
    store = MongoStore(db_client[config.MONGODB_DB])
    service = EscalationService(store)
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(executor, store.ensure_indexes)
    await loop.run_in_executor(executor, lambda: store.db.users.create_index([("username", 1)], unique=True))
    logger.info("Database initialized (%s)", config.MONGODB_DB)


app = FastAPI(title="CivicDesk Priority & Escalation Engine", lifespan=lifespan)
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

STATUS_FOR_KIND = {
    "not_found": 404,
    "unauthorized": 403,
    "validation_failed": 400,
    "conflict": 409,
    "infrastructure": 503,
}


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    return JSONResponse(status_code=STATUS_FOR_KIND.get(exc.kind, 500), content=exc.to_dict())

# ---------------------------------------------------------------------------
# Security Headers Middleware
# ---------------------------------------------------------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response

app.add_middleware(SecurityHeadersMiddleware)

# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
async def get_store():
    return store

async def get_service():
    return service

async def run_blocking(fn, *args, **kwargs):
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(executor, functools.partial(fn, *args, **kwargs))

# ---------------------------------------------------------------------------
# Auth Helpers
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password cannot exceed 72 bytes")
    return pwd_context.hash(password)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(hours=config.JWT_EXPIRE_HOURS)
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)

async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), store=Depends(get_store)):
    if token is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise HTTPException(status_code=401, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = await run_blocking(store.db.users.find_one, {"username": username})
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user

def require_role(*roles):
    async def role_checker(user=Depends(get_current_user)):
        if user["role"] not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user
    return role_checker

OFFICER = UserRole.OFFICER.value
ADMIN = UserRole.ADMIN.value

def user_to_response(user: dict) -> UserResponse:
    return UserResponse(id=str(user["_id"]), username=user["username"],
                        full_name=user.get("full_name", ""), role=user["role"])

# ---------------------------------------------------------------------------
# AUTH
# ---------------------------------------------------------------------------
@app.post("/auth/login", response_model=TokenResponse)
@limiter.limit("5/minute")
async def login(request: Request, form: UserLogin, store=Depends(get_store)):
    user = await run_blocking(store.db.users.find_one, {"username": form.username})
    if not user or not verify_password(form.password, user["hashed_password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token({"sub": user["username"], "role": user["role"]})
    return TokenResponse(access_token=token, user=user_to_response(user))

# ---------------------------------------------------------------------------
# DEPARTMENTS
# ---------------------------------------------------------------------------
@app.get("/departments", response_model=List[Department])
async def list_departments(service=Depends(get_service)):
    return await run_blocking(service.list_departments)

@app.get("/departments/{code}", response_model=Department)
async def get_department(code: str, service=Depends(get_service)):
    return await run_blocking(service.get_department_by_code, code)

@app.post("/departments", response_model=Department, status_code=201)
async def create_department(data: DepartmentCreate, user=Depends(require_role(ADMIN)),
                            service=Depends(get_service)):
    return await run_blocking(service.create_department, data)

# ---------------------------------------------------------------------------
# INCIDENT PRIORITY & DISPATCH
# ---------------------------------------------------------------------------
@app.post("/incidents/{incident_id}/priority", response_model=PriorityRecord)
async def register_incident(incident_id: str, user=Depends(require_role(OFFICER, ADMIN)),
                            service=Depends(get_service)):
    return await run_blocking(service.register_incident, incident_id)

@app.post("/incidents/{incident_id}/dispatch", response_model=Assignment, status_code=201)
async def dispatch_incident(incident_id: str, data: DispatchRequest,
                            user=Depends(require_role(OFFICER, ADMIN)), service=Depends(get_service)):
    return await run_blocking(service.dispatch_incident, incident_id, data.officer_id,
                              str(user["_id"]), data.notes)

@app.post("/incidents/{incident_id}/support", response_model=PriorityRecord)
async def record_support(incident_id: str, data: CommunitySupportUpdate,
                         user=Depends(require_role(OFFICER, ADMIN)), service=Depends(get_service)):
    return await run_blocking(service.record_community_support, incident_id,
                              data.signatures, data.upvotes)

# ---------------------------------------------------------------------------
# OFFICER QUEUE
# ---------------------------------------------------------------------------
@app.get("/officer/queue", response_model=QueuePage)
async def officer_queue(status: Optional[AssignmentStatus] = None,
                        page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                        user=Depends(require_role(OFFICER)), service=Depends(get_service)):
    return await run_blocking(service.get_officer_queue, str(user["_id"]),
                              status.value if status else None, page, limit)

@app.get("/officer/dashboard", response_model=OfficerDashboard)
async def officer_dashboard(user=Depends(require_role(OFFICER)), service=Depends(get_service)):
    return await run_blocking(service.get_officer_dashboard, str(user["_id"]))

@app.put("/officer/assignments/{assignment_id}/status", response_model=Assignment)
async def update_assignment_status(assignment_id: str, data: AssignmentStatusUpdate,
                                   user=Depends(require_role(OFFICER)), service=Depends(get_service)):
    return await run_blocking(service.update_assignment_status, assignment_id, str(user["_id"]),
                              data.status, data.notes)

# ---------------------------------------------------------------------------
# ESCALATION
# ---------------------------------------------------------------------------
@app.get("/officer/escalation/pending-assignments", response_model=QueuePage)
async def pending_assignments(department_id: Optional[str] = None,
                              urgency: Optional[UrgencyLevel] = None,
                              page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                              user=Depends(require_role(OFFICER)), service=Depends(get_service)):
    return await run_blocking(service.get_pending_escalations, str(user["_id"]), department_id,
                              urgency.value if urgency else None, page, limit)

@app.get("/officer/escalation/{incident_id}/paths", response_model=EscalationPaths)
async def escalation_paths(incident_id: str, user=Depends(require_role(OFFICER)),
                           service=Depends(get_service)):
    return await run_blocking(service.get_escalation_paths, incident_id, str(user["_id"]))

@app.post("/officer/escalation/{incident_id}/escalate", response_model=EscalationRecord)
@limiter.limit("10/minute")
async def escalate(request: Request, incident_id: str, data: EscalationRequest,
                   user=Depends(require_role(OFFICER)), service=Depends(get_service)):
    return await run_blocking(service.escalate_incident, incident_id, str(user["_id"]), data)

@app.get("/officer/escalation/{incident_id}/history", response_model=EscalationHistory)
async def escalation_history(incident_id: str, user=Depends(require_role(OFFICER)),
                             service=Depends(get_service)):
    return await run_blocking(service.get_escalation_history, incident_id)

# ---------------------------------------------------------------------------
# GOVERNMENT STRUCTURE & COORDINATION
# ---------------------------------------------------------------------------
@app.get("/officer/government/structure", response_model=GovernmentStructure)
async def government_structure(user=Depends(require_role(OFFICER)), service=Depends(get_service)):
    return await run_blocking(service.get_government_structure, str(user["_id"]))

@app.get("/officer/government/jurisdiction-incidents", response_model=JurisdictionPage)
async def jurisdiction_incidents(department_id: Optional[str] = None, include_cross_dept: bool = False,
                                 page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                                 user=Depends(require_role(OFFICER)), service=Depends(get_service)):
    return await run_blocking(service.get_jurisdiction_incidents, str(user["_id"]), department_id,
                              include_cross_dept, page, limit)

@app.post("/officer/government/coordinate", response_model=CoordinationRecord)
@limiter.limit("10/minute")
async def coordinate(request: Request, data: CoordinationRequest,
                     user=Depends(require_role(OFFICER)), service=Depends(get_service)):
    return await run_blocking(service.coordinate_with_departments, str(user["_id"]), data)

@app.get("/officer/government/coordination/{incident_id}", response_model=CoordinationStatus)
async def coordination_status(incident_id: str, user=Depends(require_role(OFFICER)),
                              service=Depends(get_service)):
    return await run_blocking(service.get_coordination_status, incident_id)

# ---------------------------------------------------------------------------
# ADMIN
# ---------------------------------------------------------------------------
@app.post("/admin/priorities/sweep", response_model=SweepResult)
async def sweep_priorities(user=Depends(require_role(ADMIN)), service=Depends(get_service)):
    return await run_blocking(service.update_all_priorities)

# ---------------------------------------------------------------------------
# HEALTH
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return {"status": "healthy", "system": "CivicDesk", "timestamp": datetime.now(timezone.utc)}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
