"""
Interval algebra on half-open time intervals.

Everything else in the engine is built from these few operations: overlap
testing, subtraction, sorting and gap extraction.
"""

from dataclasses import replace
from typing import Iterable, List, Sequence, TypeVar

from .models import TimeInterval

I = TypeVar("I", bound=TimeInterval)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Check whether two intervals share any time."""
    return a.overlaps(b)


def subtract(a: I, b: TimeInterval) -> List[I]:
    """
    Remove ``b`` from ``a``, yielding zero, one or two intervals.

    Cases:
    - ``b`` does not touch ``a``: ``[a]``
    - ``b`` clips the left edge: right remainder only
    - ``b`` clips the right edge: left remainder only
    - ``b`` lies strictly inside: left and right remainders
    - ``b`` covers ``a``: nothing

    Example:
    a: 09:00 - 17:00, b: 12:00 - 13:00
    Result: [09:00-12:00, 13:00-17:00]
    """
    if b.is_empty() or not a.overlaps(b):
        return [a]

    remainder: List[I] = []

    if b.start > a.start:
        remainder.append(replace(a, end=b.start))

    if b.end < a.end:
        remainder.append(replace(a, start=b.end))

    return remainder


def subtract_all(periods: Iterable[I], cuts: Iterable[TimeInterval]) -> List[I]:
    """
    Subtract every cut from every period, in order.

    Each cut may split a period in two, so the result can grow. Remainders of
    zero length are dropped.
    """
    result = list(periods)

    for cut in cuts:
        next_result: List[I] = []
        for period in result:
            next_result.extend(subtract(period, cut))
        result = next_result

    return [period for period in result if not period.is_empty()]


def sort_by_start(intervals: Iterable[I]) -> List[I]:
    """Sort intervals by start instant. Ties keep their input order."""
    return sorted(intervals, key=lambda interval: interval.start)


def gaps_between_sorted(busy: Sequence[TimeInterval]) -> List[TimeInterval]:
    """
    Find the free intervals between consecutive busy intervals.

    ``busy`` must be sorted by start. A gap exists where the furthest end
    seen so far is strictly before the next start; touching intervals leave
    no gap.

    Example:
    Busy: [00:00-09:00, 10:00-10:30, 17:00-24:00]
    Result: [09:00-10:00, 10:30-17:00]
    """
    gaps: List[TimeInterval] = []

    if not busy:
        return gaps

    reach = busy[0].end

    for interval in busy[1:]:
        if reach < interval.start:
            gaps.append(TimeInterval(start=reach, end=interval.start))
        reach = max(reach, interval.end)

    return gaps
