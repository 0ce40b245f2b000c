"""Date combination generator — expands a watch window into concrete searches."""

from datetime import date, timedelta

from farewatch.domain import DateCombination

MAX_ONEWAY_COMBINATIONS = 15
MAX_ROUNDTRIP_COMBINATIONS = 10

STAY_DAYS = 7
FLEX_STAY_OFFSETS = (5, 9)  # 7-day stay ±2 when the watch is flexible


def candidate_departures(start: date, end: date, flex_days: int, today: date) -> list[date]:
    """
    Every day of the window, plus up to ``flex_days`` on either side.

    Days before ``start`` are skipped when they are already in the past.
    Returned earliest first.
    """
    before = [
        start - timedelta(days=i)
        for i in range(flex_days, 0, -1)
        if start - timedelta(days=i) >= today
    ]
    window = [start + timedelta(days=i) for i in range((end - start).days + 1)]
    after = [end + timedelta(days=i) for i in range(1, flex_days + 1)]
    return before + window + after


def generate_date_combinations(
    start: date,
    end: date,
    flex_days: int,
    trip_type: str,
    today: date | None = None,
) -> list[DateCombination]:
    """
    Build the ordered list of (depart[, return]) pairs to search for a watch.

    One-way watches get one combination per candidate departure, capped at 15.
    Round-trip watches get a 7-day stay per departure (plus 5- and 9-day stays
    when flexible) as long as the return stays within ``end + flex_days``,
    capped at 10. Earlier combinations win price ties downstream.
    """
    if today is None:
        today = date.today()
    flex_days = max(0, flex_days)
    departures = candidate_departures(start, end, flex_days, today)

    if trip_type == "oneway":
        return [DateCombination(depart=d) for d in departures[:MAX_ONEWAY_COMBINATIONS]]

    latest_return = end + timedelta(days=flex_days)
    stays = (STAY_DAYS, *FLEX_STAY_OFFSETS) if flex_days > 0 else (STAY_DAYS,)

    combinations: list[DateCombination] = []
    for depart in departures:
        for stay in stays:
            return_date = depart + timedelta(days=stay)
            if return_date > latest_return:
                continue
            combinations.append(DateCombination(depart=depart, return_date=return_date))
            if len(combinations) >= MAX_ROUNDTRIP_COMBINATIONS:
                return combinations
    return combinations
