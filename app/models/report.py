"""
Pydantic models for citizen reports.
These models handle validation for report submission, status updates and responses.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class IssueCategory(str, Enum):
    """Fixed set of civic issue categories."""
    POTHOLE = "pothole"
    GARBAGE = "garbage"
    STREETLIGHT = "streetlight"
    WATER = "water"
    TRAFFIC = "traffic"
    DRAINAGE = "drainage"
    CONSTRUCTION = "construction"
    OTHER = "other"


class Severity(str, Enum):
    """
    User-declared severity.
    An input to priority scoring, distinct from the computed priority.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PriorityLevel(str, Enum):
    """System-computed priority, drives SLA deadlines."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReportStatus(str, Enum):
    """
    Report lifecycle:
    submitted → acknowledged → in-progress → resolved/closed/rejected
    """
    SUBMITTED = "submitted"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REJECTED = "rejected"


# Reports in these states are excluded from duplicate detection and SLA checks.
TERMINAL_STATUSES = frozenset({ReportStatus.RESOLVED.value, ReportStatus.CLOSED.value})


def is_open_status(status: Optional[str]) -> bool:
    return status not in TERMINAL_STATUSES


class Location(BaseModel):
    """GPS location of the reported issue."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=200)
    ward: Optional[str] = Field(None, max_length=50)
    pincode: Optional[str] = Field(None, pattern=r"^\d{6}$")


class ReportCreate(BaseModel):
    """
    Model for creating a new report (incoming POST request).
    These are the fields citizens provide when submitting a report.
    """
    title: Optional[str] = Field(None, min_length=5, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000, description="What the citizen observed")
    category: Optional[IssueCategory] = Field(None, description="Issue category")
    # Older clients send the category as issue_type
    issue_type: Optional[IssueCategory] = Field(None, description="Alias for category")
    location: Location
    photo_url: Optional[str] = Field(None, description="URL of an already-uploaded photo")
    reported_by: str = Field(..., pattern=EMAIL_PATTERN, description="Reporter email")
    reporter_name: Optional[str] = Field(None, min_length=2, max_length=50)
    reporter_phone: Optional[str] = None
    severity: Severity = Field(default=Severity.MEDIUM)
    is_anonymous: bool = False
    fcm_token: Optional[str] = Field(None, description="Device token for push notifications")

    @model_validator(mode="after")
    def require_category(self):
        if self.category is None and self.issue_type is None:
            raise ValueError("Either category or issue_type is required")
        if self.category is None:
            self.category = self.issue_type
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Deep pothole near bus stop",
                "description": "Large pothole on MG Road near the school bus stop.",
                "category": "pothole",
                "location": {"latitude": 12.9716, "longitude": 77.5946, "ward": "Ward 12"},
                "reported_by": "citizen@example.com",
                "reporter_name": "Asha",
                "severity": "high",
            }
        }
        extra = "ignore"


class StatusUpdateRequest(BaseModel):
    """Request to move a report through its lifecycle."""
    status: ReportStatus
    note: Optional[str] = Field(None, max_length=500)
    updated_by: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    assigned_to: Optional[str] = Field(None, max_length=100)
    resolution: Optional[str] = Field(None, max_length=1000)


class ReportCloseRequest(BaseModel):
    """Request to close a report with optional citizen feedback."""
    resolution: Optional[str] = Field(None, max_length=1000)
    rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)
    closed_by: Optional[str] = None


class BulkStatusUpdateRequest(BaseModel):
    report_ids: List[str] = Field(..., min_length=1, max_length=100)
    status: ReportStatus
    note: Optional[str] = Field(None, max_length=500)
    updated_by: Optional[str] = Field(None, pattern=EMAIL_PATTERN)


class TimelineEntry(BaseModel):
    status: str
    timestamp: str
    note: Optional[str] = ""
    updated_by: Optional[str] = None


class ReportResponse(BaseModel):
    """
    Model for report responses (what API returns).
    Includes system-generated fields like ID, priority and timestamps.
    """
    id: str = Field(..., description="Firestore document ID")
    ticket_number: str
    title: Optional[str] = None
    description: str
    category: str
    location: Dict
    reported_by: Optional[str] = None
    reporter_name: Optional[str] = None
    severity: str = Severity.MEDIUM.value
    is_anonymous: bool = False
    photo: Optional[Dict] = None
    status: str = ReportStatus.SUBMITTED.value
    priority: str = PriorityLevel.MEDIUM.value
    assigned_department: Optional[str] = None
    assigned_to: Optional[str] = None
    resolution: Optional[str] = None
    timeline: List[TimelineEntry] = Field(default_factory=list)
    analytics: Dict = Field(default_factory=dict)
    created_at: datetime
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None

    class Config:
        extra = "ignore"
