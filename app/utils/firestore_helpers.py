"""
Firestore query and document helpers.

NOTE: For firebase_admin SDK, we use positional arguments for where().
The deprecation warning is just a warning - the functionality is still supported.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "category", "==", "pothole")
        query = where_filter(query, "status", "==", "submitted")
    """
    return query.where(field_path, op_string, value)


def doc_to_dict(doc) -> Dict[str, Any]:
    """Convert a Firestore snapshot to a plain dict carrying its document ID."""
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Normalize a stored timestamp to an aware UTC datetime.

    Accepts datetime (including Firestore's DatetimeWithNanoseconds),
    ISO-8601 strings (with or without trailing 'Z') and epoch milliseconds.
    Naive datetimes are assumed to be UTC. Returns None when unparseable,
    including non-finite or out-of-range epoch values.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable timestamp string: {value!r}")
            return None
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            logger.debug(f"Out-of-range epoch timestamp: {value!r}")
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600
