"""
vacation_engines.calendar -- Date arithmetic over vacation requests.

Responsibility:
    Day counts, month windows and expansion of requests into per-day
    calendar entries for the team calendar view.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Date ranges are inclusive on both ends.
    - Output ordering is deterministic: by day, then employee name,
      then request id.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from vacation_kernel.domain.vacation import LeaveDay, VacationRequest, VacationStatus


def calendar_days(start_date: date, end_date: date) -> int:
    """Number of calendar days in the inclusive range ``[start, end]``."""
    if end_date < start_date:
        raise ValueError(f"end_date {end_date} precedes start_date {start_date}")
    return (end_date - start_date).days + 1


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month."""
    first = date(year, month, 1)
    if month == 12:
        next_first = date(year + 1, 1, 1)
    else:
        next_first = date(year, month + 1, 1)
    return first, next_first - timedelta(days=1)


def overlaps(request: VacationRequest, window_start: date, window_end: date) -> bool:
    """True when the request shares at least one day with the window."""
    return request.start_date <= window_end and request.end_date >= window_start


def leave_days(
    requests: Iterable[VacationRequest],
    year: int | None = None,
    month: int | None = None,
    statuses: tuple[VacationStatus, ...] = (),
) -> list[LeaveDay]:
    """Expand requests into one ``LeaveDay`` per covered date.

    Args:
        requests: Requests to expand.
        year, month: When both are given, only days in that month are
            returned.
        statuses: Optional status restriction (e.g. only ``approved``
            for the published team calendar).

    Returns:
        LeaveDay entries ordered by day, employee name, request id.
    """
    window: tuple[date, date] | None = None
    if year is not None and month is not None:
        window = month_bounds(year, month)

    days: list[LeaveDay] = []
    for request in requests:
        if statuses and request.status not in statuses:
            continue
        start, end = request.start_date, request.end_date
        if window is not None:
            if not overlaps(request, *window):
                continue
            start = max(start, window[0])
            end = min(end, window[1])

        current = start
        while current <= end:
            days.append(
                LeaveDay(
                    day=current,
                    request_id=request.id,
                    employee_id=request.employee_id,
                    employee_name=request.employee_name,
                    status=request.status,
                )
            )
            current += timedelta(days=1)

    days.sort(key=lambda d: (d.day, d.employee_name.lower(), str(d.request_id)))
    return days
