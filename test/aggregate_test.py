import random
from datetime import datetime, time, date
from itertools import count

import pytest

import main
from main import aggregate, filter_by_date_range, format_minutes
from models.schema import ApprovalStatus, ClockEvent, EventKind, LunchPolicy

D1 = date(2025, 7, 21)
D2 = date(2025, 7, 22)
_ids = count(1)


def ev(kind, hour, minute=0, day=D1, status="aprovado", second=0):
    return ClockEvent(
        id=f"p{next(_ids):04d}",
        user_id="emp-1",
        tipo_batida=kind,
        timestamp_solicitado=datetime.combine(day, time(hour, minute, second)),
        status=status,
    )


def by_day(report):
    return {s.date: s.total_minutes for s in report.daily_summaries}


def test_no_events():
    report = aggregate([])
    assert report.daily_summaries == []
    assert report.total_minutes == 0
    assert report.total_hours == "0h 0m"


def test_closed_segment_credit():
    report = aggregate([ev("entrada", 9), ev("saida", 17)])
    assert by_day(report) == {D1: 480}
    assert report.daily_summaries[0].total_hours == "8h 0m"


def test_explicit_lunch_is_excluded():
    report = aggregate([ev("entrada", 9), ev("saida_almoco", 12), ev("volta_almoco", 13), ev("saida", 18)])
    assert report.total_minutes == 480
    assert report.total_hours == "8h 0m"


def test_dangling_entrada_is_dropped():
    report = aggregate([ev("entrada", 9)])
    assert report.total_minutes == 0
    assert report.daily_summaries == []


def test_dangling_saida_is_ignored():
    report = aggregate([ev("saida", 17)])
    assert report.total_minutes == 0
    assert report.daily_summaries == []


def test_saida_before_entrada_never_goes_negative():
    report = aggregate([ev("entrada", 17), ev("saida", 9)])
    assert report.total_minutes == 0
    assert all(s.total_minutes >= 0 for s in report.daily_summaries)


def test_zero_length_segment_still_yields_a_day():
    first = ev("entrada", 9)
    second = ev("saida", 9)
    report = aggregate([second, first])
    assert by_day(report) == {D1: 0}


def test_repeated_entrada_restarts_segment():
    report = aggregate([ev("entrada", 8), ev("entrada", 9), ev("saida", 12)])
    assert report.total_minutes == 180


def test_lunch_without_return_credits_morning_only():
    report = aggregate([ev("entrada", 9), ev("saida_almoco", 12), ev("saida", 17)])
    assert by_day(report) == {D1: 180}


def test_lunch_without_return_or_saida_credits_morning_only():
    report = aggregate([ev("entrada", 9), ev("saida_almoco", 12)])
    assert by_day(report) == {D1: 180}


def test_only_first_lunch_pair_is_recognised():
    events = [
        ev("entrada", 8), ev("saida_almoco", 10), ev("volta_almoco", 10, 30),
        ev("saida_almoco", 12), ev("volta_almoco", 13), ev("saida", 17),
    ]
    assert aggregate(events).total_minutes == 120 + 390


def test_volta_without_saida_almoco_is_ignored():
    report = aggregate([ev("entrada", 9), ev("volta_almoco", 13), ev("saida", 17)])
    assert report.total_minutes == 480


def test_partial_minutes_are_truncated():
    report = aggregate([ev("entrada", 9, 0, second=30), ev("saida", 9, 59, second=50)])
    assert report.total_minutes == 59


def test_days_are_independent():
    events = [ev("entrada", 9), ev("saida", 17), ev("entrada", 9, day=D2), ev("saida", 10, day=D2)]
    assert by_day(aggregate(events)) == {D1: 480, D2: 60}


def test_open_span_is_abandoned_at_day_boundary():
    events = [ev("entrada", 9), ev("saida", 17, day=D2)]
    assert aggregate(events).total_minutes == 0

    events = [ev("entrada", 9), ev("entrada", 9, day=D2), ev("saida", 17, day=D2)]
    assert by_day(aggregate(events)) == {D2: 480}


def test_overnight_segment_attributed_to_entrada_day():
    events = [ev("entrada", 22), ev("saida", 2, day=D2)]
    assert aggregate(events).total_minutes == 0

    report = aggregate(events, allow_overnight=True)
    assert by_day(report) == {D1: 240}


def test_end_to_end_two_days():
    events = [
        ev("entrada", 8), ev("saida_almoco", 12), ev("volta_almoco", 13), ev("saida", 17),
        ev("entrada", 9, day=D2), ev("saida", 12, day=D2),
    ]
    report = aggregate(events)

    assert [(s.date, s.total_minutes, s.total_hours) for s in report.daily_summaries] == [
        (D1, 480, "8h 0m"),
        (D2, 180, "3h 0m"),
    ]
    assert report.total_minutes == 660
    assert report.total_hours == "11h 0m"


def test_same_input_same_output():
    events = [ev("entrada", 8), ev("saida_almoco", 12), ev("volta_almoco", 13), ev("saida", 17)]
    assert aggregate(events) == aggregate(events)


def test_input_order_does_not_matter():
    events = [
        ev("entrada", 8), ev("saida_almoco", 12), ev("volta_almoco", 13), ev("saida", 17),
        ev("entrada", 9, day=D2), ev("saida_almoco", 11, day=D2), ev("saida", 12, day=D2),
        ev("entrada", 12), ev("saida", 12),
    ]
    expected = aggregate(events)
    rng = random.Random(7)
    for _ in range(10):
        shuffled = list(events)
        rng.shuffle(shuffled)
        assert aggregate(shuffled) == expected


def test_status_filter_is_explicit():
    events = [
        ev("entrada", 9, status="aprovado"),
        ev("saida", 17, status="pendente"),
        ev("entrada", 9, day=D2, status="aprovado"),
        ev("saida", 13, day=D2, status="aprovado"),
    ]
    assert aggregate(events).total_minutes == 480 + 240
    assert aggregate(events, statuses=[ApprovalStatus.APROVADO]).total_minutes == 240
    assert aggregate(events, statuses=["pendente"]).total_minutes == 0


def test_empty_status_filter_keeps_every_status():
    events = [ev("entrada", 9, status="aprovado"), ev("saida", 17, status="pendente")]
    assert aggregate(events, statuses=[]) == aggregate(events)
    assert aggregate(events, statuses=[]).total_minutes == 480


def test_mixed_aware_and_naive_timestamps():
    rows = [
        {"id": "a", "user_id": "emp-1", "tipo_batida": "entrada",
         "timestamp_solicitado": "2025-07-21T09:00:00+00:00", "status": "aprovado"},
        {"id": "b", "user_id": "emp-1", "tipo_batida": "saida",
         "timestamp_solicitado": "2025-07-21T17:00:00", "status": "aprovado"},
    ]
    report = aggregate(rows)
    assert by_day(report) == {D1: 480}
    assert len(filter_by_date_range(rows, D1)) == 2


def test_flat_deduction_policy():
    events = [
        ev("entrada", 9), ev("saida_almoco", 12), ev("volta_almoco", 13), ev("saida", 18),
        ev("entrada", 9, day=D2), ev("saida", 14, day=D2),
    ]
    report = aggregate(events, lunch_policy=LunchPolicy.FLAT_DEDUCTION)
    assert by_day(report) == {D1: 540 - 60, D2: 300}


def test_flat_deduction_threshold_is_inclusive(monkeypatch):
    events = [ev("entrada", 8), ev("saida", 14)]
    assert aggregate(events, lunch_policy=LunchPolicy.FLAT_DEDUCTION).total_minutes == 300

    monkeypatch.setattr(main, "FLAT_LUNCH_THRESHOLD_MINUTES", 400)
    assert aggregate(events, lunch_policy=LunchPolicy.FLAT_DEDUCTION).total_minutes == 360


def test_accepts_raw_rows_and_accented_saida():
    rows = [
        {"id": "a", "user_id": "emp-1", "tipo_batida": "entrada",
         "timestamp_solicitado": "2025-07-21T09:00:00", "status": "pendente"},
        {"id": "b", "user_id": "emp-1", "tipo_batida": "saída",
         "timestamp_solicitado": "2025-07-21T10:30:00", "status": "pendente"},
    ]
    assert ClockEvent.model_validate(rows[1]).tipo_batida == EventKind.SAIDA
    assert aggregate(rows).total_minutes == 90


@pytest.mark.parametrize("minutes, label", [
    (0, "0h 0m"),
    (59, "0h 59m"),
    (61, "1h 1m"),
    (660, "11h 0m"),
    (-5, "0h 0m"),
])
def test_format_minutes(minutes, label):
    assert format_minutes(minutes) == label


def test_filter_by_date_range():
    d3 = date(2025, 7, 23)
    events = [ev("entrada", 0, day=D1), ev("saida", 23, 59, day=D2, second=59), ev("entrada", 8, day=d3)]

    assert len(filter_by_date_range(events)) == 3
    assert [e.id for e in filter_by_date_range(events, D2)] == [events[1].id]
    assert [e.id for e in filter_by_date_range(events, D1, D2)] == [events[0].id, events[1].id]
