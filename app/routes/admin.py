"""
Admin endpoints - dashboard analytics, SLA oversight and bulk workflow actions.

SCOPE OF ADMIN:
✅ Read aggregate analytics, hotspots, department and ward performance
✅ Inspect SLA compliance and trigger a breach sweep on demand
✅ Move many reports through the workflow at once
✅ Broadcast announcements to reporters and the admin

❌ NOT edit report content
❌ NOT delete reports
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import asyncio
import logging

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from app.models.report import BulkStatusUpdateRequest
from app.routes.reports import raise_for_service_error
from app.services.analytics_service import (
    get_analytics,
    get_hotspots,
    get_department_stats,
    get_ward_stats,
)
from app.services.report_service import (
    get_all_reports,
    get_report_by_id,
    bulk_update_status,
)
from app.core.settings import settings
from app.services.notification_service import get_notification_service
from app.services.sla_service import compute_sla_stats, get_sla_monitor
from app.services.status_workflow import StatusWorkflowEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


class BroadcastTarget(str, Enum):
    """Who receives an admin broadcast."""
    ALL = "all"
    USERS = "users"    # Citizens who have filed reports
    ADMIN = "admin"


class BroadcastRequest(BaseModel):
    """Request to send an announcement as in-app notifications."""
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=1000)
    target_type: BroadcastTarget = BroadcastTarget.ALL
    priority: str = Field("normal", pattern="^(low|normal|high|urgent)$")


def resolve_broadcast_recipients(reports: List[dict], target_type: BroadcastTarget) -> List[str]:
    """Distinct reporter emails and/or the admin address, in first-seen order."""
    recipients = []
    if target_type in (BroadcastTarget.ALL, BroadcastTarget.USERS):
        for report in reports:
            email = report.get("reported_by")
            if email and email != settings.ADMIN_EMAIL and email not in recipients:
                recipients.append(email)
    if target_type in (BroadcastTarget.ALL, BroadcastTarget.ADMIN):
        recipients.append(settings.ADMIN_EMAIL)
    return recipients


@router.get("/analytics")
async def analytics_dashboard(
    period: Optional[str] = Query(None, pattern="^(7d|30d)$"),
    department: Optional[str] = None,
    ward: Optional[str] = None,
):
    """
    Dashboard analytics: summary counts, breakdowns, resolution performance
    and 7-day trend.
    """
    reports = await get_all_reports()
    data = get_analytics(reports, period=period, department=department, ward=ward)
    return {"success": True, "data": data}


@router.get("/hotspots")
async def hotspots(min_count: int = Query(2, ge=1)):
    reports = await get_all_reports()
    return {"success": True, "data": get_hotspots(reports, min_count=min_count)}


@router.get("/departments/stats")
async def department_stats():
    reports = await get_all_reports()
    return {"success": True, "data": get_department_stats(reports)}


@router.get("/wards/performance")
async def ward_performance():
    """
    Per-ward totals, category and priority mix, resolution rate and efficiency.
    """
    reports = await get_all_reports()
    wards = get_ward_stats(reports)
    return {"success": True, "data": {"wards": wards, "total_wards": len(wards)}}


@router.get("/sla/status")
async def sla_status():
    """
    SLA compliance across all reports, plus whether the breach monitor is running.
    """
    reports = await get_all_reports()
    stats = compute_sla_stats(reports, now=datetime.now(timezone.utc))
    monitor = get_sla_monitor()

    return {
        "success": True,
        "data": {
            **stats,
            "is_monitoring_active": monitor.is_running,
            "last_check": monitor.last_run,
        },
    }


@router.post("/sla/check")
async def trigger_sla_check():
    """
    Run one SLA breach sweep now. Skipped if a sweep is already in progress.
    """
    result = await get_sla_monitor().run_sweep()
    if result.get("skipped"):
        return {"success": True, "message": "SLA check already in progress", "data": result}
    return {"success": True, "message": "SLA check completed", "data": result}


@router.get("/reports/{report_id}/sla")
async def report_sla(report_id: str):
    result = await get_sla_monitor().check_report_sla(report_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Report {report_id} not found",
        )
    return {"success": True, "data": result}


@router.get("/reports/{report_id}/allowed-transitions")
async def get_allowed_transitions(report_id: str):
    """
    Get allowed status transitions for a report.

    Returns:
        Current status and allowed next statuses
    """
    report = await get_report_by_id(report_id)
    if not report:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Report {report_id} not found",
        )

    current_status = report.get("status", "submitted")
    return {
        "success": True,
        "current_status": current_status,
        "allowed_transitions": StatusWorkflowEngine.get_allowed_transitions(current_status),
    }


@router.put("/reports/bulk-update")
async def bulk_update(request: BulkStatusUpdateRequest):
    """
    Apply one status change to many reports. Per-report failures are reported,
    not raised.
    """
    try:
        result = await bulk_update_status(request)
    except ValueError as e:
        raise_for_service_error(e)

    logger.info(f"Bulk update to {request.status.value}: {result['updated']} updated, {result['failed']} failed")
    return {
        "success": True,
        "message": f"Updated {result['updated']} of {len(request.report_ids)} reports",
        "data": result,
    }


@router.post("/notifications/broadcast")
async def broadcast_notification(request: BroadcastRequest):
    """
    Send an announcement to reporters, the admin, or both.
    Per-recipient failures are counted, not raised.
    """
    reports = await get_all_reports()
    recipients = resolve_broadcast_recipients(reports, request.target_type)

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        None,
        get_notification_service().broadcast,
        recipients,
        request.title,
        request.message,
        request.priority,
    )

    stats = result["stats"]
    return {
        "success": True,
        "message": f"Broadcast sent to {stats['successful']} out of {stats['targeted']} users",
        "data": result,
    }
