"""
Notification Service - email, push and in-app notifications for report events.

DESIGN PRINCIPLES:
- Notifications are SIDE EFFECTS: a failed send never fails a report submission
- Email goes through the Resend API; without an API key sends are SIMULATED and logged
- Push goes through Firebase Cloud Messaging when a device token is available
- In-app notifications are logged to the Firestore "notifications" collection

The one exception to "never raise" is notify_sla_breach(): the SLA sweep needs
to know when the alert email failed so the report is retried next cycle.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional
import html
import logging
import uuid

import requests
from firebase_admin import messaging

from app.config.firebase import get_db
from app.core.settings import settings
from app.services.sla_service import get_sla_deadline_hours

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when a notification that must be delivered could not be sent."""


PRIORITY_COLORS = {
    "critical": "#dc2626",
    "high": "#f59e0b",
    "medium": "#3b82f6",
    "low": "#10b981",
}


class NotificationService:
    """
    Sends report notifications over email (Resend), push (FCM) and the in-app log.
    """

    RESEND_API_URL = "https://api.resend.com/emails"

    def __init__(self):
        self.db = get_db()

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def send_email(self, to: str, subject: str, html_body: str) -> Dict:
        """
        Send a transactional email through Resend.

        Returns:
            Dict with success flag, and email_id or error
        """
        if not settings.RESEND_API_KEY:
            logger.info(f"📧 [SIMULATED] Email to {to}: {subject}")
            return {"success": True, "simulated": True, "recipient": to}

        try:
            resp = requests.post(
                self.RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {settings.RESEND_API_KEY}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": settings.EMAIL_FROM,
                    "to": [to],
                    "subject": subject,
                    "html": html_body,
                },
                timeout=settings.EMAIL_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error(f"❌ Email request to {to} failed: {e}")
            return {"success": False, "error": str(e)}

        if resp.status_code >= 400:
            logger.error(f"❌ Resend rejected email to {to}: {resp.status_code} {resp.text}")
            return {"success": False, "error": f"Resend returned {resp.status_code}"}

        email_id = (resp.json() or {}).get("id")
        logger.info(f"📨 Email sent to {to} (id: {email_id})")
        return {"success": True, "email_id": email_id, "recipient": to}

    def send_push(self, token: Optional[str], title: str, body: str, data: Optional[Dict] = None) -> Dict:
        """Send a push notification through Firebase Cloud Messaging."""
        if not token:
            return {"success": False, "skipped": True, "reason": "No device token"}

        if not settings.PUSH_NOTIFICATIONS_ENABLED:
            return {"success": False, "skipped": True, "reason": "Push notifications disabled"}

        try:
            message = messaging.Message(
                notification=messaging.Notification(title=title, body=body),
                data={k: str(v) for k, v in (data or {}).items() if v is not None},
                token=token,
            )
            message_id = messaging.send(message)
            logger.info(f"🔔 Push notification sent: {title}")
            return {"success": True, "message_id": message_id}
        except Exception as e:
            logger.error(f"❌ Push notification failed: {e}")
            return {"success": False, "error": str(e)}

    def send_in_app_notification(self, user_id: Optional[str], notification_type: str, data: Dict) -> Dict:
        """
        Render an in-app notification and log it to Firestore.
        """
        if not user_id:
            return {"success": False, "skipped": True, "reason": "No recipient"}

        notification = self.render_notification(notification_type, data)

        try:
            doc_ref = self.db.collection("notifications").document()
            doc_ref.set({
                "user_id": user_id,
                "type": notification_type,
                "notification": notification,
                "data": data,
                "sent": True,
                "sent_at": datetime.now(timezone.utc).isoformat(),
            })
            logger.info(f"🔔 In-app notification for {user_id}: {notification['title']}")
            return {"success": True, "notification_id": doc_ref.id}
        except Exception as e:
            logger.error(f"❌ Failed to log in-app notification for {user_id}: {e}")
            return {"success": False, "error": str(e)}

    @staticmethod
    def render_notification(notification_type: str, data: Dict) -> Dict:
        """Build the title/body pair for an in-app notification type."""
        ticket = data.get("ticket_number", "")

        if notification_type == "report_submitted":
            return {
                "title": "✅ Report Submitted Successfully",
                "body": f"Your report #{ticket} has been received and assigned to {data.get('department', 'the city')}",
            }
        if notification_type == "status_update":
            return {
                "title": f"📋 Report Update - {ticket}",
                "body": f"Status changed to: {data.get('new_status')}. {data.get('note') or 'No additional notes.'}",
            }
        if notification_type == "report_closed":
            return {
                "title": f"✔️ Report Closed - {ticket}",
                "body": f"Resolution: {data.get('resolution') or 'Report closed'}",
            }
        if notification_type == "sla_breach":
            return {
                "title": "⚠️ SLA Alert",
                "body": f"Your report #{ticket} has exceeded expected resolution time",
            }
        if notification_type == "critical_report_assigned":
            return {
                "title": "🚨 Critical Report Assigned",
                "body": f"Urgent: {data.get('category')} issue reported at {data.get('location') or 'an unspecified location'}",
            }
        if notification_type == "admin_broadcast":
            return {
                "title": data.get("title") or "CivicEye Announcement",
                "body": data.get("message") or "",
            }
        return {"title": "CivicEye Update", "body": "New notification"}

    # ------------------------------------------------------------------
    # Report events
    # ------------------------------------------------------------------

    def send_report_confirmation(self, report: Dict) -> Dict:
        ticket = report.get("ticket_number")
        subject = f"✅ Report Submitted Successfully - Ticket #{ticket}"
        body = (
            f"<h2>Thank you for your report</h2>"
            f"<p>Ticket: <strong>#{ticket}</strong></p>"
            f"<p>Category: {html.escape(str(report.get('category')))}</p>"
            f"<p>Priority: {self._priority_badge(report.get('priority'))}</p>"
            f"<p>Assigned to: {html.escape(str(report.get('assigned_department')))}</p>"
            f"<p>Estimated resolution: {report.get('analytics', {}).get('estimated_resolution_time')}</p>"
        )
        return self.send_email(report.get("reported_by"), subject, body)

    def send_status_update(self, report: Dict) -> Dict:
        ticket = report.get("ticket_number")
        status = str(report.get("status", "")).upper()
        subject = f"📋 CivicEye Update: Report #{ticket} - {status}"
        body = (
            f"<h2>Your report status changed</h2>"
            f"<p>Ticket: <strong>#{ticket}</strong></p>"
            f"<p>New status: <strong>{html.escape(status)}</strong></p>"
        )
        if report.get("resolution"):
            body += f"<p>Resolution: {html.escape(report['resolution'])}</p>"
        return self.send_email(report.get("reported_by"), subject, body)

    def send_sla_alert(self, report: Dict) -> Dict:
        ticket = report.get("ticket_number")
        deadline = get_sla_deadline_hours(report.get("priority"))
        subject = f"🚨 URGENT: SLA Breach Alert - Report #{ticket}"
        body = (
            f"<h2>SLA deadline exceeded</h2>"
            f"<p>Ticket: <strong>#{ticket}</strong></p>"
            f"<p>Priority: {self._priority_badge(report.get('priority'))} (deadline {deadline} hours)</p>"
            f"<p>Department: {html.escape(str(report.get('assigned_department')))}</p>"
            f"<p>Created at: {report.get('created_at')}</p>"
        )
        return self.send_email(settings.ADMIN_EMAIL, subject, body)

    def notify_report_submitted(self, report: Dict) -> Dict:
        """
        Fan out all submission notifications. Every channel is best-effort.
        """
        results = {}
        ticket = report.get("ticket_number")

        results["email"] = self.send_report_confirmation(report)
        results["push"] = self.send_push(
            report.get("fcm_token"),
            "✅ Report Submitted Successfully",
            f"Your report #{ticket} has been received and assigned to {report.get('assigned_department')}",
            {"type": "report_confirmation", "ticket_number": ticket, "report_id": report.get("id")},
        )
        results["in_app"] = self.send_in_app_notification(
            report.get("reported_by"),
            "report_submitted",
            {"ticket_number": ticket, "department": report.get("assigned_department"), "priority": report.get("priority")},
        )

        if report.get("priority") == "critical":
            location = report.get("location") or {}
            results["admin"] = self.send_in_app_notification(
                settings.ADMIN_EMAIL,
                "critical_report_assigned",
                {
                    "ticket_number": ticket,
                    "category": report.get("category"),
                    "location": location.get("address"),
                },
            )

        return results

    def notify_status_changed(self, report: Dict, note: Optional[str] = None) -> Dict:
        ticket = report.get("ticket_number")
        status = report.get("status")
        notification_type = "report_closed" if status == "closed" else "status_update"

        return {
            "email": self.send_status_update(report),
            "push": self.send_push(
                report.get("fcm_token"),
                f"📋 Report Update: {ticket}",
                f"Status changed to: {str(status).upper()}",
                {"type": "status_update", "ticket_number": ticket, "new_status": status},
            ),
            "in_app": self.send_in_app_notification(
                report.get("reported_by"),
                notification_type,
                {"ticket_number": ticket, "new_status": status, "note": note, "resolution": report.get("resolution")},
            ),
        }

    def notify_sla_breach(self, report: Dict) -> Dict:
        """
        Alert the admin about an SLA breach, then notify the reporter.

        Raises:
            NotificationError: If the admin alert email could not be sent
        """
        email_result = self.send_sla_alert(report)
        if not email_result.get("success"):
            raise NotificationError(email_result.get("error", "SLA alert email failed"))

        ticket = report.get("ticket_number")
        self.send_push(
            report.get("fcm_token"),
            "🚨 SLA Breach Alert",
            f"Report {ticket} has exceeded SLA deadline",
            {"type": "sla_breach", "ticket_number": ticket, "priority": report.get("priority")},
        )
        self.send_in_app_notification(report.get("reported_by"), "sla_breach", {"ticket_number": ticket})

        return email_result

    def broadcast(self, recipients: List[str], title: str, message: str, priority: str = "normal") -> Dict:
        """
        Send one admin announcement to many users as in-app notifications.

        Returns:
            Dict with broadcast_id, per-recipient results and targeted/successful/failed counts
        """
        broadcast_id = f"broadcast_{uuid.uuid4().hex[:12]}"
        results = []

        for user_id in recipients:
            result = self.send_in_app_notification(
                user_id,
                "admin_broadcast",
                {"title": title, "message": message, "priority": priority, "broadcast_id": broadcast_id},
            )
            results.append({"user_id": user_id, "success": bool(result.get("success"))})

        successful = sum(1 for r in results if r["success"])
        logger.info(f"📢 Broadcast {broadcast_id} delivered to {successful} of {len(results)} users")

        return {
            "broadcast_id": broadcast_id,
            "results": results,
            "stats": {
                "targeted": len(results),
                "successful": successful,
                "failed": len(results) - successful,
            },
        }

    @staticmethod
    def _priority_badge(priority: Optional[str]) -> str:
        color = PRIORITY_COLORS.get(priority, "#6b7280")
        return f'<span style="color: {color}; font-weight: bold;">{str(priority).upper()}</span>'


# Global service instance (singleton pattern)
_notification_service = None


def get_notification_service() -> NotificationService:
    """
    Get or create NotificationService singleton instance.

    Returns:
        NotificationService: The global notification service instance
    """
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
