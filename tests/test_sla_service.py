import asyncio

from app.services.sla_service import (
    InMemoryAlertDedupStore,
    SLAMonitor,
    compute_sla_stats,
    get_sla_deadline_hours,
    is_breached,
)
from tests.conftest import hours_ago, make_report


def test_deadline_table():
    assert get_sla_deadline_hours("critical") == 4
    assert get_sla_deadline_hours("high") == 24
    assert get_sla_deadline_hours("medium") == 72
    assert get_sla_deadline_hours("low") == 168
    assert get_sla_deadline_hours(None) == 72
    assert get_sla_deadline_hours("bogus") == 72


def test_open_critical_report_past_deadline_is_breached(now):
    report = make_report(priority="critical", created_at=hours_ago(now, 5))
    assert is_breached(report, now) is True


def test_report_within_deadline_is_not_breached(now):
    assert is_breached(make_report(priority="critical", created_at=hours_ago(now, 3)), now) is False
    assert is_breached(make_report(priority="critical", created_at=hours_ago(now, 4)), now) is False


def test_resolved_and_closed_reports_never_breach(now):
    for status in ("resolved", "closed"):
        report = make_report(priority="critical", status=status, created_at=hours_ago(now, 500))
        assert is_breached(report, now) is False


def test_rejected_report_is_still_checked(now):
    report = make_report(priority="high", status="rejected", created_at=hours_ago(now, 30))
    assert is_breached(report, now) is True


def test_missing_created_at_is_not_breached(now):
    assert is_breached(make_report(priority="critical", created_at=None), now) is False


def test_unknown_priority_uses_medium_deadline(now):
    assert is_breached(make_report(priority=None, created_at=hours_ago(now, 70)), now) is False
    assert is_breached(make_report(priority=None, created_at=hours_ago(now, 73)), now) is True


def test_compute_sla_stats(now):
    reports = [
        make_report("breach", priority="critical", created_at=hours_ago(now, 5)),
        make_report("pending", priority="high", created_at=hours_ago(now, 1)),
        make_report(
            "on-time", priority="critical", status="resolved",
            created_at=hours_ago(now, 10), updated_at=hours_ago(now, 8),
        ),
        make_report(
            "late", priority="critical", status="closed",
            created_at=hours_ago(now, 20), closed_at=hours_ago(now, 10),
        ),
    ]

    assert compute_sla_stats(reports, now) == {
        "compliant": 1,
        "breach": 1,
        "pending": 1,
        "total_active": 2,
        "compliance_rate": 50,
    }


def test_compute_sla_stats_with_no_active_reports(now):
    stats = compute_sla_stats([], now)
    assert stats["total_active"] == 0
    assert stats["compliance_rate"] == 100


def test_dedup_store():
    store = InMemoryAlertDedupStore()
    assert not store.has_alerted("r1")
    store.mark_alerted("r1")
    assert store.has_alerted("r1")
    assert len(store) == 1
    store.clear()
    assert len(store) == 0


def make_monitor(reports, send_alert):
    async def fetch():
        return reports

    return SLAMonitor(interval_minutes=60, fetch_open_reports=fetch, send_alert=send_alert)


def test_sweep_alerts_each_breach_once(now):
    reports = [
        make_report("breach", priority="critical", created_at=hours_ago(now, 5)),
        make_report("fresh", priority="critical", created_at=hours_ago(now, 1)),
    ]
    sent = []
    monitor = make_monitor(reports, sent.append)

    first = asyncio.run(monitor.run_sweep(now=now))
    second = asyncio.run(monitor.run_sweep(now=now))

    assert first["checked"] == 2
    assert first["breached"] == 1
    assert first["alerts_sent"] == 1
    assert second["breached"] == 1
    assert second["alerts_sent"] == 0
    assert [r["id"] for r in sent] == ["breach"]
    assert monitor.last_run == second


def test_failed_alert_is_retried_next_sweep(now):
    reports = [make_report("breach", priority="critical", created_at=hours_ago(now, 5))]
    attempts = []

    def flaky_send(report):
        attempts.append(report["id"])
        if len(attempts) == 1:
            raise RuntimeError("mail server down")

    monitor = make_monitor(reports, flaky_send)

    first = asyncio.run(monitor.run_sweep(now=now))
    assert first["failed"] == 1
    assert first["alerts_sent"] == 0
    assert not monitor.alert_store.has_alerted("breach")

    second = asyncio.run(monitor.run_sweep(now=now))
    assert second["alerts_sent"] == 1
    assert monitor.alert_store.has_alerted("breach")
    assert attempts == ["breach", "breach"]


def test_one_failure_does_not_abort_the_sweep(now):
    reports = [
        make_report("a", priority="critical", created_at=hours_ago(now, 5)),
        make_report("b", priority="critical", created_at=hours_ago(now, 6)),
    ]

    def send(report):
        if report["id"] == "a":
            raise RuntimeError("boom")

    result = asyncio.run(make_monitor(reports, send).run_sweep(now=now))
    assert result["failed"] == 1
    assert result["alerts_sent"] == 1


def test_overlapping_sweep_is_skipped(now):
    async def slow_fetch():
        await asyncio.sleep(0.05)
        return []

    monitor = SLAMonitor(interval_minutes=60, fetch_open_reports=slow_fetch, send_alert=lambda r: None)

    async def run_both():
        return await asyncio.gather(monitor.run_sweep(now=now), monitor.run_sweep(now=now))

    first, second = asyncio.run(run_both())
    assert first["skipped"] is False
    assert second == {"skipped": True}


def test_start_and_stop(now):
    async def fetch():
        return []

    monitor = SLAMonitor(interval_minutes=60, fetch_open_reports=fetch, send_alert=lambda r: None)

    async def lifecycle():
        monitor.start()
        await asyncio.sleep(0)
        running = monitor.is_running
        await monitor.stop()
        return running

    assert asyncio.run(lifecycle()) is True
    assert monitor.is_running is False
    assert monitor.last_run is not None


def test_corrupt_created_at_is_not_breached(now):
    assert is_breached(make_report(priority="critical", created_at=float("nan")), now) is False
    assert is_breached(make_report(priority="critical", created_at=10**20), now) is False
    assert is_breached(make_report(priority="critical", created_at="yesterday"), now) is False


def test_corrupt_report_does_not_abort_sweep(now):
    reports = [
        make_report("corrupt", priority="critical", created_at=10**20),
        make_report("late", priority="critical", created_at=hours_ago(now, 6)),
    ]
    sent = []

    result = asyncio.run(make_monitor(reports, sent.append).run_sweep(now=now))

    assert result["checked"] == 2
    assert result["breached"] == 1
    assert result["alerts_sent"] == 1
    assert [r["id"] for r in sent] == ["late"]


def test_sla_stats_tolerate_corrupt_timestamps(now):
    reports = [
        make_report("corrupt", priority="critical", created_at=float("nan")),
        make_report("late", priority="critical", created_at=hours_ago(now, 6)),
    ]
    stats = compute_sla_stats(reports, now)
    assert stats["breach"] == 1
    assert stats["pending"] == 1
