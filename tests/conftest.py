"""
Shared fixtures: an in-memory stand-in for the Firestore client and
helpers for building report dicts.
"""

import copy
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.config import firebase
from app.core.settings import settings
from app.services import (
    duplicate_detection,
    notification_service,
    priority_scoring,
    sla_service,
)


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, store, doc_id):
        self._store = store
        self.id = doc_id

    def set(self, data):
        self._store[self.id] = copy.deepcopy(data)

    def update(self, data):
        if self.id not in self._store:
            raise KeyError(f"No document to update: {self.id}")
        self._store[self.id].update(copy.deepcopy(data))

    def get(self):
        return FakeSnapshot(self.id, self._store.get(self.id))


class FakeQuery:
    def __init__(self, store, filters=None, order=None, limit_count=None):
        self._store = store
        self._filters = filters or []
        self._order = order
        self._limit = limit_count

    def where(self, field, op, value):
        return FakeQuery(self._store, self._filters + [(field, op, value)], self._order, self._limit)

    def order_by(self, field, direction="ASCENDING"):
        return FakeQuery(self._store, self._filters, (field, direction), self._limit)

    def limit(self, count):
        return FakeQuery(self._store, self._filters, self._order, count)

    def _matches(self, data):
        for field, op, value in self._filters:
            if op == "==" and data.get(field) != value:
                return False
            if op == "in" and data.get(field) not in value:
                return False
        return True

    def stream(self):
        snapshots = [
            FakeSnapshot(doc_id, data)
            for doc_id, data in self._store.items()
            if self._matches(data)
        ]
        if self._order:
            field, direction = self._order
            snapshots.sort(key=lambda s: s._data.get(field), reverse=(direction == "DESCENDING"))
        if self._limit is not None:
            snapshots = snapshots[:self._limit]
        return iter(snapshots)


class FakeCollection(FakeQuery):
    def __init__(self, name, store):
        super().__init__(store)
        self.id = name

    def document(self, doc_id=None):
        return FakeDocumentRef(self._store, doc_id or uuid.uuid4().hex)


class FakeFirestore:
    def __init__(self):
        self._collections = {}

    def collection(self, name):
        store = self._collections.setdefault(name, {})
        return FakeCollection(name, store)

    def collections(self):
        return [FakeCollection(name, store) for name, store in self._collections.items()]

    def docs(self, name):
        return self._collections.get(name, {})


@pytest.fixture
def fake_db(monkeypatch):
    """Route every get_db() call to a fresh in-memory store."""
    db = FakeFirestore()
    monkeypatch.setattr(firebase, "db", db)
    monkeypatch.setattr(settings, "RESEND_API_KEY", None)
    monkeypatch.setattr(notification_service, "_notification_service", None)
    monkeypatch.setattr(sla_service, "_sla_monitor", None)
    monkeypatch.setattr(priority_scoring, "_priority_classifier", None)
    monkeypatch.setattr(priority_scoring, "_analytics_scorer", None)
    monkeypatch.setattr(duplicate_detection, "_duplicate_detector", None)
    return db


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_report(
    report_id="r1",
    category="pothole",
    status="submitted",
    priority="medium",
    latitude=12.9716,
    longitude=77.5946,
    created_at=None,
    **extra,
):
    report = {
        "id": report_id,
        "ticket_number": f"CE{report_id.upper()}",
        "description": "Large pothole near the bus stop on MG Road",
        "category": category,
        "status": status,
        "priority": priority,
        "location": {"latitude": latitude, "longitude": longitude},
        "created_at": created_at,
    }
    report.update(extra)
    return report


def hours_ago(now, hours):
    return now - timedelta(hours=hours)
