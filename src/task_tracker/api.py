"""
FastAPI Backend for the Task Tracker

Provides REST endpoints over users, tasks, file attachments and activity
logs. Every authenticated route expects an "Authorization: Bearer <token>"
header issued by /api/auth/login; missing or unknown tokens get 401 and
insufficient roles get 403, which the API client turns into a logout or a
warning respectively.
"""

import logging
import mimetypes
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Depends, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from .auth import TokenRegistry, hash_password, verify_password
from .config import Settings, load_settings, ensure_directories
from .database import TrackerDatabase, ValidationError
from .models import (
    LoginRequest, LoginResponse, UserUpsertRequest, TaskCreateRequest, TaskFields,
    TaskStatusUpdate, TaskStatusResponse, HealthResponse, ErrorResponse
)
from .recurrence import spawn_next_occurrence

settings = load_settings()

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Global database instance for dependency injection
db_instance: Optional[TrackerDatabase] = None
token_registry = TokenRegistry()


def get_database() -> TrackerDatabase:
    """
    FastAPI dependency to provide database instance.

    Raises:
        HTTPException: If database is not available
    """
    if db_instance is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db_instance


def get_settings() -> Settings:
    return settings


def get_token_registry() -> TokenRegistry:
    return token_registry


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """Strip the password hash from a user row."""
    return {key: value for key, value in user.items() if key != "password"}


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_token(authorization: Optional[str] = Header(None)) -> str:
    token = _extract_bearer(authorization)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def get_current_user(
    token: str = Depends(get_current_token),
    db: TrackerDatabase = Depends(get_database),
    registry: TokenRegistry = Depends(get_token_registry),
) -> Dict[str, Any]:
    """Resolve the bearer token to a stored user or reject with 401."""
    uid = registry.resolve(token)
    user = db.get_user_by_uid(uid) if uid else None
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Administrator role required")
    return user


def _log_activity(db: TrackerDatabase, user: Dict[str, Any], action: str,
                  task: Optional[Dict[str, Any]] = None) -> None:
    db.insert_activity_log({
        "user_id": user["uid"],
        "user_email": user["email"],
        "action": action,
        "task_id": task.get("id") if task else None,
        "task_title": task.get("title") if task else None,
    })


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager for startup/shutdown operations.

    Opens the database once at startup and closes it at shutdown. A failed
    initialization aborts startup.
    """
    global db_instance

    try:
        ensure_directories(settings)
        db_instance = TrackerDatabase(settings.db_path)
        logger.info(f"Database initialized: {settings.db_path}")
        logger.info("Task Tracker API starting up...")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    yield

    if db_instance:
        db_instance.close()
        db_instance = None
        logger.info("Database connection closed")


app = FastAPI(
    title="Task Tracker API",
    description="REST API for team task tracking with file attachments and activity logs",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content=ErrorResponse(error=str(exc), code=400).model_dump())


@app.exception_handler(sqlite3.IntegrityError)
async def integrity_error_handler(request: Request, exc: sqlite3.IntegrityError):
    logger.warning(f"Constraint violation on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content=ErrorResponse(error=str(exc), code=409).model_dump())


@app.get("/healthz", response_model=HealthResponse)
async def health_check():
    """Report database connectivity for monitoring and load balancers."""
    database_connected = True
    try:
        get_database().get_table_columns("tasks")
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_connected = False

    return HealthResponse(
        status="healthy" if database_connected else "degraded",
        database_connected=database_connected,
        timestamp=datetime.now(timezone.utc).isoformat()
    )


# ---- Auth ----

@app.post("/api/auth/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    db: TrackerDatabase = Depends(get_database),
    registry: TokenRegistry = Depends(get_token_registry),
):
    """Exchange email and password for a bearer token."""
    user = db.get_user_by_email(credentials.email)
    if user is None or not verify_password(credentials.password, user.get("password")):
        logger.info(f"Failed login for {credentials.email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = registry.issue(user["uid"])
    _log_activity(db, user, "login")
    return LoginResponse(token=token, user=public_user(user))


@app.post("/api/auth/logout")
async def logout(
    token: str = Depends(get_current_token),
    registry: TokenRegistry = Depends(get_token_registry),
):
    return {"revoked": registry.revoke(token)}


# ---- Users ----

@app.get("/api/users")
async def list_users(
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    return [public_user(user) for user in db.get_all_users()]


@app.get("/api/users/{uid}")
async def get_user(
    uid: str,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    user = db.get_user_by_uid(uid)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User {uid} not found")
    return public_user(user)


@app.put("/api/users/{uid}")
async def upsert_user(
    uid: str,
    payload: UserUpsertRequest,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """
    Create or update a user record.

    Users may edit their own profile; creating other users or changing roles
    requires the admin role.
    """
    is_admin = current_user.get("role") == "admin"
    if not is_admin and (uid != current_user["uid"] or payload.role is not None):
        raise HTTPException(status_code=403, detail="Not allowed to modify this user")

    stored = db.upsert_user({
        "uid": uid,
        "full_name": payload.full_name,
        "email": payload.email,
        "password": hash_password(payload.password) if payload.password else None,
        "role": payload.role,
    })
    _log_activity(db, current_user, f"upsert_user:{uid}")
    return stored


@app.delete("/api/users/{uid}")
async def delete_user(
    uid: str,
    db: TrackerDatabase = Depends(get_database),
    registry: TokenRegistry = Depends(get_token_registry),
    current_user: Dict[str, Any] = Depends(require_admin),
):
    result = db.delete_user(uid)
    if result["deleted_rows"] == 0:
        raise HTTPException(status_code=404, detail=f"User {uid} not found")
    registry.revoke_user(uid)
    _log_activity(db, current_user, f"delete_user:{uid}")
    return result


# ---- Tasks ----

@app.get("/api/tasks")
async def list_tasks(
    responsible_id: Optional[str] = None,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    if responsible_id:
        return db.get_tasks_by_user(responsible_id)
    return db.get_all_tasks()


@app.post("/api/tasks", status_code=201)
async def create_task(
    payload: TaskCreateRequest,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """Create a task; a reused id is rejected with 409."""
    task_data = payload.model_dump()
    task_data["id"] = payload.id or uuid.uuid4().hex
    task = db.create_task(task_data)
    _log_activity(db, current_user, "create_task", task)
    return task


@app.get("/api/tasks/{task_id}")
async def get_task(
    task_id: str,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    task = db.get_task_by_id(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return task


@app.put("/api/tasks/{task_id}")
async def update_task(
    task_id: str,
    payload: TaskFields,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    result = db.update_task(task_id, payload.model_dump())
    if result["updated_rows"] == 0:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    task = db.get_task_by_id(task_id)
    _log_activity(db, current_user, "update_task", task)
    return task


@app.patch("/api/tasks/{task_id}/status", response_model=TaskStatusResponse)
async def update_task_status(
    task_id: str,
    update: TaskStatusUpdate,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """
    Update a task's status.

    Completing a recurring task creates its next occurrence, unless one
    already exists for the next due date.
    """
    task = db.get_task_by_id(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")

    result = db.update_task_status(task_id, update.status)
    _log_activity(db, current_user, f"status:{update.status}", task)

    next_occurrence = None
    if update.status == "completed" and task.get("status") != "completed":
        next_occurrence = spawn_next_occurrence(db, task)

    return TaskStatusResponse(**result, next_occurrence=next_occurrence)


@app.delete("/api/tasks/{task_id}")
async def delete_task(
    task_id: str,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """Delete a task. Attached files stay on disk and in the files table."""
    task = db.get_task_by_id(task_id)
    result = db.delete_task(task_id)
    if result["deleted_rows"] == 0:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    _log_activity(db, current_user, "delete_task", task)
    return result


# ---- Files ----

@app.post("/api/tasks/{task_id}/files", status_code=201)
async def upload_file(
    task_id: str,
    request: Request,
    x_filename: Optional[str] = Header(None),
    db: TrackerDatabase = Depends(get_database),
    app_settings: Settings = Depends(get_settings),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """
    Store the raw request body as an attachment of a task.

    The original filename travels in the X-Filename header and the MIME type
    in Content-Type (guessed from the filename when absent).
    """
    if not x_filename:
        raise HTTPException(status_code=400, detail="X-Filename header is required")
    if db.get_task_by_id(task_id) is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")

    original_name = Path(x_filename).name
    content = await request.body()
    mime_type = (request.headers.get("content-type")
                 or mimetypes.guess_type(original_name)[0]
                 or "application/octet-stream")
    stored_name = f"{uuid.uuid4().hex}{Path(original_name).suffix}"
    file_path = Path(app_settings.uploads_dir) / stored_name
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_bytes(content)

    try:
        record = db.insert_file({
            "filename": stored_name,
            "original_name": original_name,
            "file_path": str(file_path),
            "mime_type": mime_type,
            "size": len(content),
            "task_id": task_id,
            "uploaded_by": current_user["uid"],
        })
        db.log_file_activity(record["id"], "upload", current_user["uid"])
    except Exception:
        file_path.unlink(missing_ok=True)
        raise
    logger.info(f"Stored {original_name} ({len(content)} bytes) for task {task_id}")
    return record


@app.get("/api/tasks/{task_id}/files")
async def list_task_files(
    task_id: str,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    return db.get_files_by_task_id(task_id)


@app.get("/api/files/{file_id}/download")
async def download_file(
    file_id: int,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    record = db.get_file_by_id(file_id)
    if record is None or not Path(record["file_path"]).exists():
        raise HTTPException(status_code=404, detail=f"File {file_id} not found")

    db.increment_download_count(file_id)
    db.log_file_activity(file_id, "download", current_user["uid"])
    return FileResponse(record["file_path"], media_type=record["mime_type"], filename=record["original_name"])


@app.get("/api/files/{file_id}/logs")
async def list_file_logs(
    file_id: int,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    return db.get_file_logs(file_id)


@app.delete("/api/files/{file_id}")
async def delete_file(
    file_id: int,
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    record = db.get_file_by_id(file_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"File {file_id} not found")

    Path(record["file_path"]).unlink(missing_ok=True)
    result = db.delete_file(file_id)
    db.log_file_activity(file_id, "delete", current_user["uid"])
    return result


# ---- Activity log ----

@app.get("/api/activity-logs")
async def list_activity_logs(
    user_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: TrackerDatabase = Depends(get_database),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    """Recent activity, newest first. Non-admin users only see their own entries."""
    if current_user.get("role") != "admin":
        user_id = current_user["uid"]
    return db.get_activity_logs(user_id=user_id, limit=limit)
