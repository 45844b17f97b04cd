"""
Analytics Service - dashboard aggregates computed over report lists.

All functions are pure: callers fetch reports first and pass them in.
Durations are reported in hours.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
import logging

from app.models.report import ReportStatus
from app.utils.firestore_helpers import to_datetime, hours_between
from app.utils.geo import extract_coordinates

logger = logging.getLogger(__name__)

PERIOD_DAYS = {"7d": 7, "30d": 30}
TREND_DAYS = 7
HOTSPOT_PRECISION = 3  # ~110 m grid


def _count_by(reports: List[Dict], field: str) -> Dict[str, int]:
    counts: Dict[str, int] = defaultdict(int)
    for report in reports:
        counts[report.get(field) or "unknown"] += 1
    return dict(counts)


def get_status_breakdown(reports: List[Dict]) -> Dict[str, int]:
    return _count_by(reports, "status")


def get_category_breakdown(reports: List[Dict]) -> Dict[str, int]:
    return _count_by(reports, "category")


def get_priority_breakdown(reports: List[Dict]) -> Dict[str, int]:
    return _count_by(reports, "priority")


def get_resolution_metrics(reports: List[Dict]) -> Dict:
    """
    Resolution time statistics over resolved reports (created_at → updated_at).
    """
    durations = []
    for report in reports:
        if report.get("status") != ReportStatus.RESOLVED.value:
            continue
        created_at = to_datetime(report.get("created_at"))
        updated_at = to_datetime(report.get("updated_at"))
        if created_at is None or updated_at is None:
            continue
        durations.append(hours_between(created_at, updated_at))

    if not durations:
        return {"avg_resolution_time": 0, "fastest_resolution": 0, "slowest_resolution": 0}

    return {
        "avg_resolution_time": round(sum(durations) / len(durations)),
        "fastest_resolution": round(min(durations)),
        "slowest_resolution": round(max(durations)),
    }


def get_trend_data(reports: List[Dict], now: Optional[datetime] = None) -> List[Dict]:
    """Daily report counts for the last 7 days, oldest first."""
    now = to_datetime(now) or datetime.now(timezone.utc)
    today = now.date()
    days = [(today - timedelta(days=offset)).isoformat() for offset in range(TREND_DAYS - 1, -1, -1)]
    counts = {day: 0 for day in days}

    for report in reports:
        created_at = to_datetime(report.get("created_at"))
        if created_at is None:
            continue
        day = created_at.date().isoformat()
        if day in counts:
            counts[day] += 1

    return [{"date": day, "count": counts[day]} for day in days]


def filter_reports(
    reports: List[Dict],
    period: Optional[str] = None,
    department: Optional[str] = None,
    ward: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Dict]:
    filtered = reports

    if period:
        now = to_datetime(now) or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=PERIOD_DAYS.get(period, 30))
        filtered = [
            r for r in filtered
            if (to_datetime(r.get("created_at")) or datetime.min.replace(tzinfo=timezone.utc)) >= cutoff
        ]

    if department:
        filtered = [r for r in filtered if r.get("assigned_department") == department]

    if ward:
        filtered = [r for r in filtered if (r.get("location") or {}).get("ward") == ward]

    return filtered


def get_analytics(
    reports: List[Dict],
    period: Optional[str] = None,
    department: Optional[str] = None,
    ward: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Comprehensive dashboard analytics.

    Args:
        reports: All candidate reports
        period: "7d" or "30d" (anything else means 30 days)
        department: Restrict to one assigned department
        ward: Restrict to one ward
        now: Reference time for period and trend windows

    Returns:
        Dict with summary, breakdown, performance and trends
    """
    filtered = filter_reports(reports, period=period, department=department, ward=ward, now=now)
    status_breakdown = get_status_breakdown(filtered)
    total = len(filtered)
    resolved = status_breakdown.get(ReportStatus.RESOLVED.value, 0)

    return {
        "summary": {
            "total_reports": total,
            "resolved": resolved,
            "submitted": status_breakdown.get(ReportStatus.SUBMITTED.value, 0),
            "in_progress": status_breakdown.get(ReportStatus.IN_PROGRESS.value, 0),
            "resolution_rate": round(resolved / total * 100) if total > 0 else 0,
        },
        "breakdown": {
            "by_status": status_breakdown,
            "by_category": get_category_breakdown(filtered),
            "by_priority": get_priority_breakdown(filtered),
        },
        "performance": get_resolution_metrics(filtered),
        "trends": get_trend_data(filtered, now=now),
    }


def get_hotspots(reports: List[Dict], min_count: int = 2) -> List[Dict]:
    """
    Cluster reports on a rounded-coordinate grid.

    Returns:
        Clusters with at least min_count reports, busiest first
    """
    clusters: Dict[str, Dict] = {}

    for report in reports:
        coords = extract_coordinates(report.get("location"))
        if coords is None:
            continue

        lat = round(coords[0], HOTSPOT_PRECISION)
        lon = round(coords[1], HOTSPOT_PRECISION)
        key = f"{lat},{lon}"

        cluster = clusters.setdefault(key, {
            "latitude": lat,
            "longitude": lon,
            "count": 0,
            "reports": [],
            "categories": defaultdict(int),
        })
        cluster["count"] += 1
        cluster["reports"].append(report.get("id"))
        cluster["categories"][report.get("category") or "unknown"] += 1

    hotspots = []
    for cluster in clusters.values():
        if cluster["count"] < min_count:
            continue
        cluster["categories"] = dict(cluster["categories"])
        hotspots.append(cluster)

    hotspots.sort(key=lambda c: c["count"], reverse=True)
    return hotspots


def calculate_department_efficiency(dept: Dict) -> int:
    total = dept["total"]
    if total == 0:
        return 0

    resolution_score = dept["resolved"] / total * 70
    progress_score = dept["in_progress"] / total * 20
    pending_penalty = dept["pending"] / total * 10

    return max(0, round(resolution_score + progress_score - pending_penalty))


def get_department_stats(reports: List[Dict]) -> List[Dict]:
    """
    Per-department workload and performance, largest department first.

    "pending" counts reports not yet picked up (submitted or acknowledged).
    """
    departments: Dict[str, Dict] = {}

    for report in reports:
        name = report.get("assigned_department") or "Unassigned"
        dept = departments.setdefault(name, {
            "name": name,
            "total": 0,
            "resolved": 0,
            "pending": 0,
            "in_progress": 0,
        })

        dept["total"] += 1
        status = report.get("status")
        if status == ReportStatus.RESOLVED.value:
            dept["resolved"] += 1
        elif status in (ReportStatus.SUBMITTED.value, ReportStatus.ACKNOWLEDGED.value):
            dept["pending"] += 1
        elif status == ReportStatus.IN_PROGRESS.value:
            dept["in_progress"] += 1

    for dept in departments.values():
        dept["resolution_rate"] = round(dept["resolved"] / dept["total"] * 100) if dept["total"] > 0 else 0
        dept["efficiency"] = calculate_department_efficiency(dept)

    return sorted(departments.values(), key=lambda d: d["total"], reverse=True)


def get_ward_stats(reports: List[Dict]) -> List[Dict]:
    """
    Per-ward workload and performance, busiest ward first.

    Here "pending" counts every report that is not resolved. Efficiency uses
    the department weights, with submitted/acknowledged reports as the penalty.
    """
    wards: Dict[str, Dict] = {}

    for report in reports:
        name = (report.get("location") or {}).get("ward") or "Unknown"
        ward = wards.setdefault(name, {
            "name": name,
            "total": 0,
            "resolved": 0,
            "pending": 0,
            "in_progress": 0,
            "not_started": 0,
            "categories": defaultdict(int),
            "priorities": defaultdict(int),
        })

        ward["total"] += 1
        status = report.get("status")
        if status == ReportStatus.RESOLVED.value:
            ward["resolved"] += 1
        else:
            ward["pending"] += 1
            if status == ReportStatus.IN_PROGRESS.value:
                ward["in_progress"] += 1
            elif status in (ReportStatus.SUBMITTED.value, ReportStatus.ACKNOWLEDGED.value):
                ward["not_started"] += 1

        ward["categories"][report.get("category") or "unknown"] += 1
        ward["priorities"][report.get("priority") or "unknown"] += 1

    for ward in wards.values():
        ward["categories"] = dict(ward["categories"])
        ward["priorities"] = dict(ward["priorities"])
        ward["resolution_rate"] = round(ward["resolved"] / ward["total"] * 100)
        ward["efficiency"] = calculate_department_efficiency({
            "total": ward["total"],
            "resolved": ward["resolved"],
            "in_progress": ward["in_progress"],
            "pending": ward.pop("not_started"),
        })

    return sorted(wards.values(), key=lambda w: w["total"], reverse=True)
