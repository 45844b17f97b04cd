"""
Report service - Business logic for citizen report handling.
Handles Firestore CRUD operations for reports.

DESIGN NOTE:
- Priority is classified once, at submission, before the duplicate check
- Duplicate submissions short-circuit: nothing is persisted, the existing report is returned
- Notifications are best-effort and run on the executor, off the event loop
"""

from app.config.firebase import get_db
from app.models.report import (
    ReportCreate,
    StatusUpdateRequest,
    ReportCloseRequest,
    BulkStatusUpdateRequest,
    ReportStatus,
    is_open_status,
)
from app.services.priority_scoring import (
    get_priority_classifier,
    get_department_for_category,
    build_analytics_block,
)
from app.services.duplicate_detection import get_duplicate_detector
from app.services.notification_service import get_notification_service
from app.services.status_workflow import StatusWorkflowEngine
from app.utils.firestore_helpers import where_filter, doc_to_dict, to_datetime
from datetime import datetime, timezone
from functools import partial
from typing import Dict, List, Optional
import asyncio
import logging
import uuid

logger = logging.getLogger(__name__)

REPORTS_COLLECTION = "reports"

# Fields that can be filtered with a Firestore equality query
EQUALITY_FILTER_FIELDS = ["status", "category", "priority", "assigned_department", "reported_by"]


def generate_ticket_number(report_id: str) -> str:
    """Human-friendly ticket number derived from the report ID."""
    return f"CE{report_id.replace('-', '')[:8].upper()}"


async def _run_notification(func, *args, **kwargs):
    """Run a blocking notification call (Resend HTTP, FCM) on the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


def _default_title(category: str, description: str) -> str:
    return f"{category} report - {description[:50]}..."


async def create_report(report_data: ReportCreate) -> Dict:
    """
    Create a new citizen report and store it in Firestore.

    Flow:
    1. Classify priority from text, category and severity
    2. Check open reports of the same category for a near-duplicate
    3. If duplicate: return the existing report, persist nothing
    4. Otherwise persist the report and send notifications (best-effort)

    Args:
        report_data: Validated report data from POST request

    Returns:
        Dict with is_duplicate and either existing_report/similarity_score or report
    """
    db = get_db()
    now = datetime.now(timezone.utc)
    payload = report_data.model_dump(mode="json")
    category = payload["category"]

    # STEP 1: Priority classification
    classification = get_priority_classifier().classify(payload)
    priority = classification["priority"]

    # STEP 2: Duplicate check against open reports of the same category.
    # The candidate has no ID yet, so it cannot appear in the peer list.
    open_reports = await get_open_reports(category=category)
    duplicate_check = get_duplicate_detector().find_duplicate(payload, open_reports, now=now)

    if duplicate_check["is_duplicate"]:
        existing = duplicate_check["existing_report"]
        logger.info(f"Submission matches existing report {existing.get('id')}, not persisting")
        return duplicate_check

    # STEP 3: Build and persist the report
    report_id = str(uuid.uuid4())
    ticket_number = generate_ticket_number(report_id)
    workflow = StatusWorkflowEngine()

    report_dict = {
        "id": report_id,
        "ticket_number": ticket_number,
        "title": payload.get("title") or _default_title(category, payload["description"]),
        "description": payload["description"],
        "category": category,
        "location": payload["location"],
        "reported_by": payload["reported_by"],
        "reporter_name": payload.get("reporter_name"),
        "reporter_phone": payload.get("reporter_phone"),
        "severity": payload.get("severity") or "medium",
        "is_anonymous": payload.get("is_anonymous", False),
        "fcm_token": payload.get("fcm_token"),
        "photo": {"url": payload["photo_url"]} if payload.get("photo_url") else None,
        "status": ReportStatus.SUBMITTED.value,
        "priority": priority,
        "assigned_department": get_department_for_category(category),
        "assigned_to": None,
        "resolution": None,
        "timeline": [workflow.create_timeline_entry(
            status=ReportStatus.SUBMITTED.value,
            updated_by=payload["reported_by"],
            note="Report submitted by citizen",
            timestamp=now,
        )],
        "analytics": build_analytics_block(payload, priority),
        "created_at": now,
        "updated_at": now,
    }

    try:
        db.collection(REPORTS_COLLECTION).document(report_id).set(report_dict)
        logger.info(f"Report saved to Firestore: {report_id} ({ticket_number}, priority={priority})")
    except Exception as e:
        logger.error(f"Failed to save report to Firestore: {e}", exc_info=True)
        raise

    # STEP 4: Notifications (OPTIONAL, NON-BLOCKING)
    notifications = {}
    try:
        notifications = await _run_notification(
            get_notification_service().notify_report_submitted, report_dict
        )
    except Exception as e:
        logger.warning(f"⚠️ Notifications failed for report {report_id}: {e}")

    return {
        "is_duplicate": False,
        "report": report_dict,
        "email_sent": bool(notifications.get("email", {}).get("success")),
        "push_sent": bool(notifications.get("push", {}).get("success")),
    }


async def get_open_reports(category: Optional[str] = None) -> List[Dict]:
    """
    Retrieve reports whose status is not resolved/closed.

    Firestore has no efficient "not in" for this, so status is filtered in Python.
    Order follows the store's creation order, oldest first.
    """
    db = get_db()

    query = db.collection(REPORTS_COLLECTION)
    if category:
        query = where_filter(query, "category", "==", category)

    reports = [doc_to_dict(doc) for doc in query.stream()]
    reports = [r for r in reports if is_open_status(r.get("status"))]
    reports.sort(key=lambda r: to_datetime(r.get("created_at")) or datetime.min.replace(tzinfo=timezone.utc))
    return reports


async def get_all_reports() -> List[Dict]:
    """
    Retrieve all reports from Firestore.
    """
    db = get_db()
    return [doc_to_dict(doc) for doc in db.collection(REPORTS_COLLECTION).stream()]


async def get_reports(
    filters: Optional[Dict] = None,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Dict:
    """
    Fetch reports with filtering and pagination.

    Args:
        filters: status, category, priority, assigned_department, reported_by
                 (Firestore equality), ward, start_date, end_date (Python-side)
        page: 1-based page number
        limit: Page size
        sort_by: Field to sort on
        sort_order: "asc" or "desc"

    Returns:
        Dict with reports and pagination metadata
    """
    db = get_db()
    filters = filters or {}

    query = db.collection(REPORTS_COLLECTION)
    for field in EQUALITY_FILTER_FIELDS:
        value = filters.get(field)
        if value:
            query = where_filter(query, field, "==", value)

    reports = [doc_to_dict(doc) for doc in query.stream()]

    ward = filters.get("ward")
    if ward:
        reports = [r for r in reports if (r.get("location") or {}).get("ward") == ward]

    start_date = to_datetime(filters.get("start_date"))
    end_date = to_datetime(filters.get("end_date"))
    if start_date or end_date:
        def in_range(report: Dict) -> bool:
            created_at = to_datetime(report.get("created_at"))
            if created_at is None:
                return False
            if start_date and created_at < start_date:
                return False
            if end_date and created_at > end_date:
                return False
            return True

        reports = [r for r in reports if in_range(r)]

    def sort_key(report: Dict):
        value = report.get(sort_by)
        if sort_by.endswith("_at"):
            return to_datetime(value) or datetime.min.replace(tzinfo=timezone.utc)
        return "" if value is None else str(value)

    reports.sort(key=sort_key, reverse=(sort_order == "desc"))

    total = len(reports)
    start_index = (page - 1) * limit
    end_index = start_index + limit
    page_reports = reports[start_index:end_index]

    logger.info(f"Retrieved {len(page_reports)} of {total} reports with filters: {filters}")

    return {
        "reports": page_reports,
        "pagination": {
            "current_page": page,
            "total_pages": (total + limit - 1) // limit,
            "total_reports": total,
            "has_next": end_index < total,
            "has_prev": start_index > 0,
        },
    }


async def get_report_by_id(report_id: str) -> Optional[Dict]:
    """
    Retrieve a single report by ID.

    Returns:
        dict: Report data or None if not found
    """
    db = get_db()
    doc = db.collection(REPORTS_COLLECTION).document(report_id).get()

    if not doc.exists:
        return None

    return doc_to_dict(doc)


async def update_report_status(report_id: str, request: StatusUpdateRequest) -> Dict:
    """
    Move a report to a new status with workflow validation.

    Raises:
        ValueError: If the report does not exist or the transition is invalid
    """
    db = get_db()
    doc_ref = db.collection(REPORTS_COLLECTION).document(report_id)
    doc = doc_ref.get()

    if not doc.exists:
        raise ValueError(f"Report {report_id} not found")

    current_data = doc.to_dict()
    current_status = current_data.get("status", ReportStatus.SUBMITTED.value)
    new_status = request.status.value

    transition = StatusWorkflowEngine.validate_and_transition(
        current_status=current_status,
        new_status=new_status,
        updated_by=request.updated_by,
        note=request.note,
    )

    timeline = current_data.get("timeline", [])
    if not isinstance(timeline, list):
        timeline = []
    timeline.append(transition["timeline_entry"])

    update_data = {
        "status": new_status,
        "assigned_to": request.assigned_to or current_data.get("assigned_to"),
        "resolution": request.resolution or current_data.get("resolution"),
        "timeline": timeline,
        "updated_at": datetime.now(timezone.utc),
    }
    doc_ref.update(update_data)

    updated_report = doc_to_dict(doc_ref.get())
    logger.info(f"✅ Report {report_id} status updated: {current_status} → {new_status}")

    try:
        await _run_notification(
            get_notification_service().notify_status_changed, updated_report, note=request.note
        )
    except Exception as e:
        logger.warning(f"⚠️ Status notifications failed for report {report_id}: {e}")

    return updated_report


async def close_report(report_id: str, request: ReportCloseRequest) -> Dict:
    """
    Close a report, recording resolution and optional citizen feedback.

    Raises:
        ValueError: If the report does not exist or is already in a terminal state
    """
    db = get_db()
    doc_ref = db.collection(REPORTS_COLLECTION).document(report_id)
    doc = doc_ref.get()

    if not doc.exists:
        raise ValueError(f"Report {report_id} not found")

    current_data = doc.to_dict()
    current_status = current_data.get("status", ReportStatus.SUBMITTED.value)
    resolution = request.resolution or "Report closed"
    closed_by = request.closed_by or "system"

    transition = StatusWorkflowEngine.validate_and_transition(
        current_status=current_status,
        new_status=ReportStatus.CLOSED.value,
        updated_by=closed_by,
        note=f"Report closed. Resolution: {resolution}",
    )

    timeline = current_data.get("timeline", [])
    if not isinstance(timeline, list):
        timeline = []
    timeline.append(transition["timeline_entry"])

    now = datetime.now(timezone.utc)
    doc_ref.update({
        "status": ReportStatus.CLOSED.value,
        "resolution": resolution,
        "closed_at": now,
        "closed_by": closed_by,
        "rating": request.rating,
        "feedback": request.feedback,
        "timeline": timeline,
        "updated_at": now,
    })

    updated_report = doc_to_dict(doc_ref.get())
    logger.info(f"✅ Report {report_id} closed by {closed_by}")

    try:
        await _run_notification(
            get_notification_service().notify_status_changed, updated_report, note=resolution
        )
    except Exception as e:
        logger.warning(f"⚠️ Closure notifications failed for report {report_id}: {e}")

    return updated_report


async def bulk_update_status(request: BulkStatusUpdateRequest) -> Dict:
    """
    Apply the same status change to many reports. One failure does not stop the rest.
    """
    results = []
    for report_id in request.report_ids:
        try:
            await update_report_status(
                report_id,
                StatusUpdateRequest(status=request.status, note=request.note, updated_by=request.updated_by),
            )
            results.append({"id": report_id, "success": True})
        except ValueError as e:
            results.append({"id": report_id, "success": False, "error": str(e)})
        except Exception as e:
            logger.error(f"Bulk update failed for report {report_id}: {e}", exc_info=True)
            results.append({"id": report_id, "success": False, "error": str(e)})

    updated = sum(1 for r in results if r["success"])
    return {
        "updated": updated,
        "failed": len(results) - updated,
        "results": results,
    }
