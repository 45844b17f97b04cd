"""
Report endpoints - API routes for citizen report submission and retrieval.
"""

from typing import Optional
import logging

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.models.report import (
    ReportCreate,
    StatusUpdateRequest,
    ReportCloseRequest,
    ReportResponse,
    ReportStatus,
    IssueCategory,
    PriorityLevel,
)
from app.services.report_service import (
    create_report,
    get_reports,
    get_report_by_id,
    update_report_status,
    close_report,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])


def raise_for_service_error(e: ValueError) -> None:
    """Map a service ValueError to 404 (not found) or 400 (invalid request)."""
    message = str(e)
    if "not found" in message.lower():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


@router.post("/submit", status_code=status.HTTP_201_CREATED)
async def submit_report(report: ReportCreate):
    """
    Submit a new citizen report.

    This endpoint:
    1. Validates the report data
    2. Classifies its priority
    3. Checks for an open near-duplicate (same category, within 100 m, last 24 h)
    4. Stores it in Firestore and notifies the reporter

    A duplicate submission is not stored: the existing report is returned
    with 200 and is_duplicate=true.
    """
    logger.info(f"📝 POST /api/reports/submit - category={report.category}, reporter={report.reported_by}")

    result = await create_report(report)

    if result["is_duplicate"]:
        existing = result["existing_report"]
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=jsonable_encoder({
                "success": True,
                "is_duplicate": True,
                "message": "Similar issue already reported nearby",
                "existing_report": {
                    "id": existing.get("id"),
                    "ticket_number": existing.get("ticket_number"),
                    "status": existing.get("status"),
                    "priority": existing.get("priority"),
                    "created_at": existing.get("created_at"),
                },
                "similarity_score": result["similarity_score"],
            }),
        )

    report_dict = result["report"]
    logger.info(f"✅ Report created successfully: {report_dict['id']}")

    return {
        "success": True,
        "is_duplicate": False,
        "message": "Report submitted successfully",
        "data": {
            "id": report_dict["id"],
            "ticket_number": report_dict["ticket_number"],
            "status": report_dict["status"],
            "priority": report_dict["priority"],
            "assigned_department": report_dict["assigned_department"],
            "estimated_resolution": report_dict["analytics"]["estimated_resolution_time"],
            "email_sent": result["email_sent"],
            "push_sent": result["push_sent"],
        },
    }


@router.get("/list")
async def list_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    category: Optional[IssueCategory] = None,
    priority: Optional[PriorityLevel] = None,
    department: Optional[str] = None,
    ward: Optional[str] = None,
    reported_by: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
):
    """
    List reports with filters and pagination.
    """
    filters = {
        "status": status_filter.value if status_filter else None,
        "category": category.value if category else None,
        "priority": priority.value if priority else None,
        "assigned_department": department,
        "reported_by": reported_by,
        "ward": ward,
        "start_date": start_date,
        "end_date": end_date,
    }

    result = await get_reports(
        filters=filters,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"success": True, "data": result}


@router.get("/{report_id}")
async def get_report(report_id: str):
    report = await get_report_by_id(report_id)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Report {report_id} not found",
        )
    return {"success": True, "data": ReportResponse(**report)}


@router.put("/update/{report_id}")
async def update_report(report_id: str, request: StatusUpdateRequest):
    """
    Change report status (workflow-validated) and optionally assign or resolve it.
    """
    try:
        report = await update_report_status(report_id, request)
    except ValueError as e:
        raise_for_service_error(e)

    return {
        "success": True,
        "message": f"Report status updated to {report['status']}",
        "data": report,
    }


@router.put("/close/{report_id}")
async def close_report_endpoint(report_id: str, request: ReportCloseRequest):
    try:
        report = await close_report(report_id, request)
    except ValueError as e:
        raise_for_service_error(e)

    return {
        "success": True,
        "message": "Report closed successfully",
        "data": report,
    }
