from datetime import datetime, timezone

import pytest

from app.services.status_workflow import StatusWorkflowEngine


@pytest.mark.parametrize("from_status,to_status", [
    ("submitted", "acknowledged"),
    ("submitted", "resolved"),
    ("acknowledged", "in-progress"),
    ("in-progress", "resolved"),
    ("in-progress", "rejected"),
    ("resolved", "closed"),
    ("resolved", "in-progress"),
    ("closed", "closed"),
])
def test_valid_transitions(from_status, to_status):
    assert StatusWorkflowEngine.is_valid_transition(from_status, to_status)


@pytest.mark.parametrize("from_status,to_status", [
    ("in-progress", "submitted"),
    ("acknowledged", "submitted"),
    ("closed", "in-progress"),
    ("rejected", "submitted"),
    ("submitted", "archived"),
    ("unknown", "closed"),
])
def test_invalid_transitions(from_status, to_status):
    assert not StatusWorkflowEngine.is_valid_transition(from_status, to_status)


def test_allowed_transitions():
    assert StatusWorkflowEngine.get_allowed_transitions("resolved") == ["closed", "in-progress"]
    assert StatusWorkflowEngine.get_allowed_transitions("closed") == []
    assert StatusWorkflowEngine.get_allowed_transitions("nonsense") == []


def test_timeline_entry():
    ts = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    entry = StatusWorkflowEngine.create_timeline_entry("acknowledged", None, timestamp=ts)
    assert entry == {
        "status": "acknowledged",
        "timestamp": "2026-03-10T12:00:00+00:00",
        "note": "",
        "updated_by": "system",
    }


def test_validate_and_transition_builds_entry():
    result = StatusWorkflowEngine.validate_and_transition("submitted", "in-progress", "officer@city.gov")
    assert result["valid"] is True
    assert result["timeline_entry"]["status"] == "in-progress"
    assert result["timeline_entry"]["updated_by"] == "officer@city.gov"
    assert result["timeline_entry"]["note"] == "Status changed from submitted to in-progress"


def test_validate_and_transition_rejects_invalid_move():
    with pytest.raises(ValueError, match="Invalid status transition"):
        StatusWorkflowEngine.validate_and_transition("closed", "in-progress", None)
