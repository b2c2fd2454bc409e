from datetime import date
from alignertrack.models import Aligner, Schedule
from alignertrack.statistics import summarize_schedule


def _schedule(*actuals):
    projected = [date(2025, 1, 11), date(2025, 1, 21), date(2025, 1, 31), date(2025, 2, 10)]
    aligners = tuple(
        Aligner(i + 1, p, actuals[i] if i < len(actuals) else None)
        for i, p in enumerate(projected)
    )
    return Schedule(aligners, date(2025, 2, 10))


def test_summarize_fresh_schedule():
    stats = summarize_schedule(_schedule(), date(2025, 1, 1))
    assert stats['total'] == 4
    assert stats['changed'] == 0
    assert stats['remaining'] == 4
    assert stats['current_id'] == 1
    assert stats['days_until_appointment'] == 40
    assert stats['days_per_remaining'] == 10.0
    assert not stats['behind_schedule']
    assert not stats['overrun']


def test_summarize_behind_schedule():
    stats = summarize_schedule(_schedule(date(2025, 1, 10)), date(2025, 1, 25))
    assert stats['changed'] == 1
    assert stats['current_id'] == 2
    assert stats['behind_schedule']


def test_summarize_completed_and_overrun():
    s = _schedule(date(2025, 1, 10), date(2025, 1, 20), date(2025, 2, 1), date(2025, 2, 15))
    stats = summarize_schedule(s, date(2025, 2, 20))
    assert stats['remaining'] == 0
    assert stats['current_id'] is None
    assert stats['days_per_remaining'] is None
    assert stats['days_until_appointment'] == -10
    assert not stats['behind_schedule']
    assert stats['overrun']


def test_summarize_empty_schedule():
    stats = summarize_schedule(Schedule(), date(2025, 1, 1))
    assert stats['total'] == 0
    assert stats['days_until_appointment'] is None
    assert stats['current_id'] is None
