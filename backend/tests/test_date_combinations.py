from datetime import date, timedelta

import pytest

from farewatch.services.date_combinations import (
    MAX_ONEWAY_COMBINATIONS,
    MAX_ROUNDTRIP_COMBINATIONS,
    candidate_departures,
    generate_date_combinations,
)

TODAY = date(2026, 3, 1)
APR_1 = date(2026, 4, 1)
APR_10 = date(2026, 4, 10)


def test_oneway_one_combination_per_window_day():
    combos = generate_date_combinations(APR_1, APR_1 + timedelta(days=4), 0, "oneway", today=TODAY)

    assert [c.depart for c in combos] == [APR_1 + timedelta(days=i) for i in range(5)]
    assert all(c.return_date is None for c in combos)


def test_oneway_capped():
    combos = generate_date_combinations(APR_1, APR_1 + timedelta(days=40), 5, "oneway", today=TODAY)

    assert len(combos) == MAX_ONEWAY_COMBINATIONS
    # flex days before start come first
    assert combos[0].depart == APR_1 - timedelta(days=5)


def test_roundtrip_seven_day_stays_inside_window():
    combos = generate_date_combinations(APR_1, APR_10, 0, "roundtrip", today=TODAY)

    assert [(c.depart.day, c.return_date.day) for c in combos] == [(1, 8), (2, 9), (3, 10)]


def test_roundtrip_flexible_stays_and_order():
    combos = generate_date_combinations(APR_1, APR_10, 2, "roundtrip", today=TODAY)

    assert len(combos) == MAX_ROUNDTRIP_COMBINATIONS
    mar_30 = date(2026, 3, 30)
    assert [(c.depart, c.return_date) for c in combos[:3]] == [
        (mar_30, date(2026, 4, 6)),
        (mar_30, date(2026, 4, 4)),
        (mar_30, date(2026, 4, 8)),
    ]
    latest_return = APR_10 + timedelta(days=2)
    assert all(c.return_date <= latest_return for c in combos)


@pytest.mark.parametrize("flex_days", [0, 1, 3, 7, 30])
@pytest.mark.parametrize("window", [0, 1, 6, 13, 60])
def test_caps_and_trip_type_purity(flex_days, window):
    end = APR_1 + timedelta(days=window)

    oneway = generate_date_combinations(APR_1, end, flex_days, "oneway", today=TODAY)
    roundtrip = generate_date_combinations(APR_1, end, flex_days, "roundtrip", today=TODAY)

    assert len(oneway) <= MAX_ONEWAY_COMBINATIONS
    assert len(roundtrip) <= MAX_ROUNDTRIP_COMBINATIONS
    assert all(not c.is_roundtrip for c in oneway)
    assert all(c.is_roundtrip for c in roundtrip)


def test_single_day_window_without_flex():
    assert len(generate_date_combinations(APR_1, APR_1, 0, "oneway", today=TODAY)) == 1
    assert generate_date_combinations(APR_1, APR_1, 0, "roundtrip", today=TODAY) == []


def test_flex_days_in_the_past_are_skipped():
    start = TODAY + timedelta(days=1)

    departures = candidate_departures(start, start, 3, TODAY)

    assert departures == [
        TODAY,
        start,
        start + timedelta(days=1),
        start + timedelta(days=2),
        start + timedelta(days=3),
    ]


def test_departures_are_chronological():
    departures = candidate_departures(APR_1, APR_10, 4, TODAY)

    assert departures == sorted(departures)
    assert departures[0] == APR_1 - timedelta(days=4)
    assert departures[-1] == APR_10 + timedelta(days=4)
