"""
Pydantic models for Task Tracker API request/response validation.

Title length and due date format are validated by the database layer so the
same rules apply to every caller; these models cover shape and vocabulary.
"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator

from .recurrence import FREQUENCIES

TASK_STATUSES = ("pending", "in_progress", "completed", "cancelled")
USER_ROLES = ("user", "admin")


class LoginRequest(BaseModel):
    """Credentials posted to /api/auth/login."""

    email: str = Field(min_length=3, description="Account email")
    password: str = Field(min_length=1, description="Plain-text password")


class LoginResponse(BaseModel):
    token: str
    user: Dict[str, Any]


class UserUpsertRequest(BaseModel):
    """Full user record for create-or-update. Password and role may be omitted to keep stored values."""

    full_name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)
    password: Optional[str] = Field(None, min_length=1, description="Plain-text password, hashed before storage")
    role: Optional[str] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        if v is not None and v not in USER_ROLES:
            raise ValueError(f"Role must be one of: {list(USER_ROLES)}")
        return v


class TaskFields(BaseModel):
    """Mutable task fields shared by create and full update."""

    title: str = Field(min_length=1)
    responsible: str = Field(min_length=1)
    responsible_id: str = Field(min_length=1)
    due_date: Optional[str] = None
    notes: Optional[str] = None
    recurring: bool = False
    frequency: str = "monthly"

    @field_validator("frequency")
    @classmethod
    def validate_frequency(cls, v):
        if v not in FREQUENCIES:
            raise ValueError(f"Frequency must be one of: {list(FREQUENCIES)}")
        return v


class TaskCreateRequest(TaskFields):
    """Task creation payload; the server generates an id when none is given."""

    id: Optional[str] = None


class TaskStatusUpdate(BaseModel):
    """Request model for task status updates with validation."""

    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in TASK_STATUSES:
            raise ValueError(f"Status must be one of: {list(TASK_STATUSES)}")
        return v


class TaskStatusResponse(BaseModel):
    task_id: str
    status: str
    updated_rows: int
    next_occurrence: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    database_connected: bool
    timestamp: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    success: bool = False
    error: str
    code: Optional[int] = None
    details: Optional[Dict[str, Any]] = None

