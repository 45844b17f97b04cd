"""
Status Workflow Engine - report lifecycle state machine.

DESIGN PRINCIPLES:
- submitted → acknowledged → in-progress → resolved/closed/rejected
- Steps may be skipped forward, never backward (except reopening a resolved report)
- closed and rejected are terminal
- All transitions logged in the report timeline
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging

from app.models.report import ReportStatus

logger = logging.getLogger(__name__)


class StatusWorkflowEngine:
    """
    State machine for report status transitions.
    """

    # Allowed transitions map: {from_status: [to_status, ...]}
    ALLOWED_TRANSITIONS: Dict[ReportStatus, List[ReportStatus]] = {
        ReportStatus.SUBMITTED: [
            ReportStatus.ACKNOWLEDGED,
            ReportStatus.IN_PROGRESS,
            ReportStatus.RESOLVED,
            ReportStatus.REJECTED,
            ReportStatus.CLOSED,
        ],
        ReportStatus.ACKNOWLEDGED: [
            ReportStatus.IN_PROGRESS,
            ReportStatus.RESOLVED,
            ReportStatus.REJECTED,
            ReportStatus.CLOSED,
        ],
        ReportStatus.IN_PROGRESS: [
            ReportStatus.RESOLVED,
            ReportStatus.REJECTED,
            ReportStatus.CLOSED,
        ],
        ReportStatus.RESOLVED: [
            ReportStatus.CLOSED,
            ReportStatus.IN_PROGRESS,  # Reopen
        ],
        ReportStatus.CLOSED: [],    # Terminal
        ReportStatus.REJECTED: [],  # Terminal
    }

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if a status transition is valid.

        Args:
            from_status: Current status
            to_status: Desired new status

        Returns:
            True if transition is allowed, False otherwise
        """
        try:
            from_enum = ReportStatus(from_status)
            to_enum = ReportStatus(to_status)
        except ValueError:
            return False

        # Same status is always valid (no-op)
        if from_enum == to_enum:
            return True

        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        try:
            current_enum = ReportStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in cls.ALLOWED_TRANSITIONS.get(current_enum, [])]

    @classmethod
    def create_timeline_entry(
        cls,
        status: str,
        updated_by: Optional[str],
        note: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Dict:
        """
        Create a timeline entry for the audit trail.
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        return {
            "status": status,
            "timestamp": timestamp.isoformat(),
            "note": note or "",
            "updated_by": updated_by or "system",
        }

    @classmethod
    def validate_and_transition(
        cls,
        current_status: str,
        new_status: str,
        updated_by: Optional[str],
        note: Optional[str] = None,
    ) -> Dict:
        """
        Validate transition and create the timeline entry.

        Raises:
            ValueError: If transition is invalid
        """
        if not cls.is_valid_transition(current_status, new_status):
            allowed = cls.get_allowed_transitions(current_status)
            raise ValueError(
                f"Invalid status transition: {current_status} → {new_status}. "
                f"Allowed transitions from {current_status}: {allowed}"
            )

        entry = cls.create_timeline_entry(
            status=new_status,
            updated_by=updated_by,
            note=note or f"Status changed from {current_status} to {new_status}",
        )

        return {
            "valid": True,
            "from_status": current_status,
            "to_status": new_status,
            "timeline_entry": entry,
        }
