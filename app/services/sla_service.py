"""
SLA Service - deadline table, breach predicate and the periodic breach sweep.

DESIGN PRINCIPLES:
- Deadlines are a fixed table keyed by computed priority
- Resolved/closed reports can never breach
- The sweep never overlaps with itself (skip-if-running)
- One failed alert does not abort the rest of the sweep

KNOWN LIMITATION:
- The default alert de-duplication store is process-local. A restart, or a
  second replica, can re-send alerts for reports that were already alerted.
  Swap in a persistent AlertDedupStore for multi-instance deployments.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Set

from app.core.settings import settings
from app.models.report import PriorityLevel, TERMINAL_STATUSES
from app.utils.firestore_helpers import to_datetime, hours_between

logger = logging.getLogger(__name__)


# Deadline table in hours
SLA_DEADLINE_HOURS = {
    PriorityLevel.CRITICAL.value: 4,
    PriorityLevel.HIGH.value: 24,
    PriorityLevel.MEDIUM.value: 72,
    PriorityLevel.LOW.value: 168,
}


def get_sla_deadline_hours(priority: Optional[str]) -> int:
    """Unknown or missing priority falls back to the medium deadline."""
    priority = getattr(priority, "value", priority)
    return SLA_DEADLINE_HOURS.get(priority, SLA_DEADLINE_HOURS[PriorityLevel.MEDIUM.value])


def get_hours_elapsed(report: Dict, now: datetime) -> Optional[float]:
    created_at = to_datetime(report.get("created_at"))
    if created_at is None:
        return None
    return hours_between(created_at, to_datetime(now))


def is_breached(report: Dict, now: datetime) -> bool:
    """
    Check whether an open report has exceeded its priority deadline.

    Args:
        report: Dict with priority, status and created_at
        now: Reference time

    Returns:
        True if the report is open and older than its deadline
    """
    if report.get("status") in TERMINAL_STATUSES:
        return False

    hours_elapsed = get_hours_elapsed(report, now)
    if hours_elapsed is None:
        return False

    return hours_elapsed > get_sla_deadline_hours(report.get("priority"))


def _resolved_within_deadline(report: Dict) -> bool:
    created_at = to_datetime(report.get("created_at"))
    finished_at = to_datetime(report.get("closed_at")) or to_datetime(report.get("updated_at"))
    if created_at is None or finished_at is None:
        return False
    return hours_between(created_at, finished_at) <= get_sla_deadline_hours(report.get("priority"))


def compute_sla_stats(reports: List[Dict], now: datetime) -> Dict:
    """
    Aggregate SLA compliance counts.

    - breach: open reports past their deadline
    - pending: open reports still within their deadline
    - compliant: resolved/closed reports finished within their deadline
    - compliance_rate: share of open reports not in breach (100 when none are open)
    """
    stats = {
        "compliant": 0,
        "breach": 0,
        "pending": 0,
        "total_active": 0,
    }

    for report in reports:
        if report.get("status") in TERMINAL_STATUSES:
            if _resolved_within_deadline(report):
                stats["compliant"] += 1
            continue

        stats["total_active"] += 1
        if is_breached(report, now):
            stats["breach"] += 1
        else:
            stats["pending"] += 1

    total_active = stats["total_active"]
    if total_active > 0:
        stats["compliance_rate"] = round((total_active - stats["breach"]) / total_active * 100)
    else:
        stats["compliance_rate"] = 100

    return stats


class AlertDedupStore(ABC):
    """
    Remembers which reports have already triggered an SLA alert.
    """

    @abstractmethod
    def has_alerted(self, report_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def mark_alerted(self, report_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError


class InMemoryAlertDedupStore(AlertDedupStore):
    """Process-lifetime set of alerted report IDs. Lost on restart."""

    def __init__(self):
        self._alerted: Set[str] = set()

    def has_alerted(self, report_id: str) -> bool:
        return report_id in self._alerted

    def mark_alerted(self, report_id: str) -> None:
        self._alerted.add(report_id)

    def clear(self) -> None:
        self._alerted.clear()

    def __len__(self) -> int:
        return len(self._alerted)


async def _default_fetch_open_reports() -> List[Dict]:
    from app.services.report_service import get_open_reports
    return await get_open_reports()


def _default_send_alert(report: Dict) -> Dict:
    from app.services.notification_service import get_notification_service
    return get_notification_service().notify_sla_breach(report)


class SLAMonitor:
    """
    Periodic SLA breach sweep.

    Fetches open reports, applies the breach predicate and sends an alert for
    each newly breaching report. Reports are marked in the de-duplication
    store only after their alert succeeds, so failed alerts are retried on
    the next cycle.
    """

    def __init__(
        self,
        interval_minutes: Optional[int] = None,
        alert_store: Optional[AlertDedupStore] = None,
        fetch_open_reports: Optional[Callable[[], Awaitable[List[Dict]]]] = None,
        send_alert: Optional[Callable[[Dict], Dict]] = None,
    ):
        self.interval_minutes = interval_minutes or settings.SLA_CHECK_INTERVAL_MINUTES
        self.alert_store = alert_store or InMemoryAlertDedupStore()
        self._fetch_open_reports = fetch_open_reports or _default_fetch_open_reports
        self._send_alert = send_alert or _default_send_alert
        self._sweep_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self.last_run: Optional[Dict] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.is_running:
            logger.warning("SLA monitor already running")
            return

        self._task = asyncio.get_running_loop().create_task(self._run_forever())
        logger.info(f"🕐 SLA monitor started - checking every {self.interval_minutes} minutes")

    async def stop(self) -> None:
        """Cancel the loop between cycles."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("🛑 SLA monitor stopped")

    async def _run_forever(self) -> None:
        while True:
            try:
                await self.run_sweep()
            except Exception as e:
                logger.error(f"❌ SLA monitor error: {e}", exc_info=True)
            await asyncio.sleep(self.interval_minutes * 60)

    async def run_sweep(self, now: Optional[datetime] = None) -> Dict:
        """
        Run one sweep. Skipped if another sweep is still in progress.

        Returns:
            Dict with checked, breached, alerts_sent and failed counts
        """
        if self._sweep_lock.locked():
            logger.warning("SLA sweep already in progress, skipping this trigger")
            return {"skipped": True}

        async with self._sweep_lock:
            now = now or datetime.now(timezone.utc)
            logger.info("🔍 Checking for SLA breaches...")

            reports = await self._fetch_open_reports()
            result = {
                "skipped": False,
                "checked": 0,
                "breached": 0,
                "alerts_sent": 0,
                "failed": 0,
                "checked_at": now.isoformat(),
            }

            loop = asyncio.get_running_loop()
            for report in reports:
                if report.get("status") in TERMINAL_STATUSES:
                    continue

                result["checked"] += 1
                if not is_breached(report, now):
                    continue

                result["breached"] += 1
                report_id = report.get("id")
                if self.alert_store.has_alerted(report_id):
                    continue

                try:
                    await loop.run_in_executor(None, self._send_alert, report)
                except Exception as e:
                    result["failed"] += 1
                    logger.error(f"❌ Failed to send SLA alert for {report.get('ticket_number', report_id)}: {e}")
                    continue

                self.alert_store.mark_alerted(report_id)
                result["alerts_sent"] += 1
                logger.info(f"🚨 SLA alert sent for {report.get('ticket_number', report_id)}")

            if result["alerts_sent"] > 0:
                logger.info(f"📊 SLA check completed: {result['alerts_sent']} alerts sent")
            else:
                logger.info("✅ SLA check completed: no new breaches")

            self.last_run = result
            return result

    async def check_report_sla(self, report_id: str, now: Optional[datetime] = None) -> Optional[Dict]:
        """
        On-demand SLA check for a single report.

        Returns:
            Dict with breach details, or None if the report does not exist
        """
        from app.services.report_service import get_report_by_id

        report = await get_report_by_id(report_id)
        if report is None:
            return None

        now = now or datetime.now(timezone.utc)
        hours_elapsed = get_hours_elapsed(report, now)
        return {
            "report_id": report_id,
            "priority": report.get("priority"),
            "status": report.get("status"),
            "deadline_hours": get_sla_deadline_hours(report.get("priority")),
            "hours_elapsed": round(hours_elapsed, 2) if hours_elapsed is not None else None,
            "is_breached": is_breached(report, now),
            "alert_sent": self.alert_store.has_alerted(report_id),
        }


# Global monitor instance (singleton pattern)
_sla_monitor = None


def get_sla_monitor() -> SLAMonitor:
    """
    Get or create SLAMonitor singleton instance.

    Returns:
        SLAMonitor: The global SLA monitor instance
    """
    global _sla_monitor
    if _sla_monitor is None:
        _sla_monitor = SLAMonitor()
    return _sla_monitor
