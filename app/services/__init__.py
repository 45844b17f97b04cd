"""
Services layer - Business logic goes here.
Keep services focused on specific domains (reports, SLA, notifications, etc.)

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Scoring, duplicate detection and SLA predicates are pure functions over dicts
- Firestore access stays in report_service
- Notifications are side effects and never fail a request
"""
