from app.services.duplicate_detection import DuplicateDetector, _text_similarity
from app.utils.geo import extract_coordinates, haversine_distance
from tests.conftest import hours_ago, make_report


def candidate(latitude=12.9716, longitude=77.5946, category="pothole", description=None):
    return {
        "category": category,
        "description": description or "Large pothole near the bus stop on MG Road",
        "location": {"latitude": latitude, "longitude": longitude},
    }


def test_same_spot_within_window_is_duplicate(now):
    existing = make_report(created_at=hours_ago(now, 1))
    result = DuplicateDetector().find_duplicate(candidate(), [existing], now=now)

    assert result["is_duplicate"] is True
    assert result["existing_report"]["id"] == "r1"
    assert result["similarity_score"] == 100


def test_report_about_80_meters_away_is_duplicate(now):
    existing = make_report(created_at=hours_ago(now, 2))
    result = DuplicateDetector().find_duplicate(candidate(latitude=12.9723), [existing], now=now)

    assert result["is_duplicate"] is True
    assert 40 <= result["similarity_score"] <= 100


def test_report_500_meters_away_is_not_duplicate(now):
    existing = make_report(created_at=hours_ago(now, 1))
    result = DuplicateDetector().find_duplicate(candidate(latitude=12.9761), [existing], now=now)
    assert result == {"is_duplicate": False}


def test_report_older_than_24_hours_is_not_duplicate(now):
    existing = make_report(created_at=hours_ago(now, 30))
    result = DuplicateDetector().find_duplicate(candidate(), [existing], now=now)
    assert result["is_duplicate"] is False


def test_report_exactly_24_hours_old_is_duplicate(now):
    existing = make_report(created_at=hours_ago(now, 24))
    result = DuplicateDetector().find_duplicate(candidate(), [existing], now=now)
    assert result["is_duplicate"] is True


def test_resolved_and_closed_reports_are_ignored(now):
    peers = [
        make_report("r1", status="resolved", created_at=hours_ago(now, 1)),
        make_report("r2", status="closed", created_at=hours_ago(now, 1)),
    ]
    result = DuplicateDetector().find_duplicate(candidate(), peers, now=now)
    assert result["is_duplicate"] is False


def test_other_category_is_ignored(now):
    existing = make_report(category="garbage", created_at=hours_ago(now, 1))
    result = DuplicateDetector().find_duplicate(candidate(), [existing], now=now)
    assert result["is_duplicate"] is False


def test_first_match_in_input_order_wins(now):
    peers = [
        make_report("older", created_at=hours_ago(now, 5), latitude=12.9720),
        make_report("closer", created_at=hours_ago(now, 1)),
    ]
    result = DuplicateDetector().find_duplicate(candidate(), peers, now=now)
    assert result["existing_report"]["id"] == "older"


def test_peers_with_unusable_data_are_skipped(now):
    peers = [
        make_report("no-location", location=None, created_at=hours_ago(now, 1)),
        make_report("bad-lat", latitude="north", created_at=hours_ago(now, 1)),
        make_report("no-created-at", created_at=None),
        make_report("good", created_at=hours_ago(now, 1)),
    ]
    result = DuplicateDetector().find_duplicate(candidate(), peers, now=now)
    assert result["existing_report"]["id"] == "good"


def test_iso_string_timestamps_are_accepted(now):
    existing = make_report(created_at=hours_ago(now, 3).isoformat().replace("+00:00", "Z"))
    result = DuplicateDetector().find_duplicate(candidate(), [existing], now=now)
    assert result["is_duplicate"] is True


def test_candidate_without_location_is_never_duplicate(now):
    existing = make_report(created_at=hours_ago(now, 1))
    report = candidate()
    report["location"] = None
    assert DuplicateDetector().find_duplicate(report, [existing], now=now) == {"is_duplicate": False}


def test_empty_peer_list(now):
    assert DuplicateDetector().find_duplicate(candidate(), [], now=now) == {"is_duplicate": False}


def test_detection_is_deterministic(now):
    peers = [make_report("r1", created_at=hours_ago(now, 1)), make_report("r2", created_at=hours_ago(now, 2))]
    detector = DuplicateDetector()
    assert detector.find_duplicate(candidate(), peers, now=now) == detector.find_duplicate(candidate(), peers, now=now)


def test_similarity_score_components():
    detector = DuplicateDetector()
    report1 = candidate(description="pothole on main road")
    report2 = candidate(latitude=12.9723, description="pothole on side road")

    # category 40 + under 100 m 20 + floor(3/5 * 30) 18
    assert detector.calculate_similarity_score(report1, report2) == 78


def test_text_similarity():
    assert _text_similarity("Pothole on road", "pothole ON road") == 1.0
    assert _text_similarity("a b", "c d") == 0.0
    assert _text_similarity("", "anything") == 0.0
    assert _text_similarity(None, "anything") == 0.0


def test_haversine_distance():
    assert haversine_distance(12.9716, 77.5946, 12.9716, 77.5946) == 0
    # One degree of latitude is roughly 111.2 km
    assert 111000 < haversine_distance(0, 0, 1, 0) < 111400


def test_extract_coordinates_rejects_bad_values():
    assert extract_coordinates({"latitude": 12.5, "longitude": 77.1}) == (12.5, 77.1)
    assert extract_coordinates({"latitude": "12.5", "longitude": "77.1"}) == (12.5, 77.1)
    assert extract_coordinates(None) is None
    assert extract_coordinates({"latitude": 95, "longitude": 0}) is None
    assert extract_coordinates({"latitude": True, "longitude": 0}) is None
    assert extract_coordinates({"latitude": float("nan"), "longitude": 0}) is None


def test_peer_with_corrupt_epoch_timestamp_is_skipped(now):
    peers = [
        make_report("huge-epoch", created_at=10**20),
        make_report("nan-epoch", created_at=float("nan")),
        make_report("inf-epoch", created_at=float("inf")),
        make_report("good", created_at=hours_ago(now, 1)),
    ]
    result = DuplicateDetector().find_duplicate(candidate(), peers, now=now)
    assert result["existing_report"]["id"] == "good"


def test_epoch_millisecond_timestamps_are_accepted(now):
    existing = make_report(created_at=hours_ago(now, 2).timestamp() * 1000)
    result = DuplicateDetector().find_duplicate(candidate(), [existing], now=now)
    assert result["is_duplicate"] is True


def test_distance_threshold_boundary(now):
    # 0.00089 deg of latitude is ~99 m, 0.00091 deg is ~101 m
    just_inside = make_report("inside", latitude=12.9716 + 0.00089, created_at=hours_ago(now, 1))
    just_outside = make_report("outside", latitude=12.9716 + 0.00091, created_at=hours_ago(now, 1))
    detector = DuplicateDetector()

    assert detector.find_duplicate(candidate(), [just_outside], now=now) == {"is_duplicate": False}
    result = detector.find_duplicate(candidate(), [just_outside, just_inside], now=now)
    assert result["existing_report"]["id"] == "inside"
