"""
Schedule preview generator.
Turns a day window plus calendar busy time into focus blocks.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class FreeGap:
    start: datetime
    end: datetime

    @property
    def minutes(self) -> int:
        return minutes_between(self.start, self.end)


@dataclass(frozen=True)
class ScheduleBlock:
    start_time: datetime
    end_time: datetime
    block_index: int
    total_blocks: int

    def to_wire(self) -> dict:
        """Preview payload shape sent to the user and stored as pending."""
        return {
            "startTimeIso": to_iso(self.start_time),
            "endTimeIso": to_iso(self.end_time),
            "blockIndex": self.block_index,
            "totalBlocks": self.total_blocks,
        }


# ============== TIME HELPERS ==============

_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


def minutes_between(a: datetime, b: datetime) -> int:
    """Whole minutes from a to b, floored."""
    return int((b - a).total_seconds() // 60)


def to_iso(dt: datetime) -> str:
    """UTC ISO-8601 instant with a trailing Z."""
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 instant. Naive values are taken as UTC."""
    value = value.strip().replace("Z", "+00:00")
    # fromisoformat on 3.10 only takes 3 or 6 fractional digits; Postgres trims trailing zeros
    value = _FRACTION.sub(lambda m: m.group(1) + "." + (m.group(2) + "000000")[:6], value, count=1)
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ============== WINDOW BUILDER ==============

def build_window(date_ymd: str | date, hour_start: int, hour_end: int,
                 utc_offset_minutes: int = -540) -> TimeWindow:
    """Anchor a calendar date and two hours-of-day to absolute instants.

    utc_offset_minutes is what you add to local time to get UTC, so -540
    means UTC+9. The offset is fixed; there is no DST handling.

    hour_end <= hour_start is not rejected here. The resulting window is
    inverted and compute_free_gaps returns no free time for it.
    """
    if isinstance(date_ymd, str):
        date_ymd = date.fromisoformat(date_ymd)

    midnight_utc = datetime(date_ymd.year, date_ymd.month, date_ymd.day, tzinfo=timezone.utc)
    midnight_local = midnight_utc + timedelta(minutes=utc_offset_minutes)

    return TimeWindow(
        start=midnight_local + timedelta(hours=hour_start),
        end=midnight_local + timedelta(hours=hour_end),
    )


# ============== FREE/BUSY MERGER ==============

def _clamp(dt: datetime, window: TimeWindow) -> datetime:
    if dt < window.start:
        return window.start
    if dt > window.end:
        return window.end
    return dt


def merge_busy(busy: list[BusyInterval]) -> list[BusyInterval]:
    """Sort and merge overlapping or touching intervals. Empty ones are dropped."""
    ordered = sorted((b for b in busy if b.end > b.start), key=lambda b: b.start)

    merged: list[BusyInterval] = []
    for b in ordered:
        if merged and b.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = BusyInterval(last.start, max(last.end, b.end))
        else:
            merged.append(b)
    return merged


def compute_free_gaps(window: TimeWindow, busy: list[BusyInterval]) -> list[FreeGap]:
    """Maximal free stretches of the window, in chronological order."""
    if window.end <= window.start:
        return []

    clamped = [
        BusyInterval(_clamp(b.start, window), _clamp(b.end, window))
        for b in busy
        if b.end > window.start and b.start < window.end
    ]

    gaps = []
    cursor = window.start
    for b in merge_busy(clamped):
        if b.start > cursor:
            gaps.append(FreeGap(cursor, b.start))
        cursor = max(cursor, b.end)

    if cursor < window.end:
        gaps.append(FreeGap(cursor, window.end))

    return [g for g in gaps if g.end > g.start]


# ============== BLOCK PLANNER ==============

def plan_blocks(gaps: list[FreeGap], duration_minutes: int,
                min_block_minutes: int) -> list[ScheduleBlock]:
    """Place duration_minutes of focus time into the free gaps.

    The earliest gap that holds the whole duration wins outright. Otherwise
    the duration is split across gaps of at least min_block_minutes, each
    piece rounded down to a multiple of min_block_minutes but never below it.
    That rounding can overshoot the requested total on the last piece.

    duration_minutes must be positive; callers validate it.
    Returns [] when nothing fits.
    """
    for gap in gaps:
        if gap.minutes >= duration_minutes:
            end = gap.start + timedelta(minutes=duration_minutes)
            return [ScheduleBlock(gap.start, end, 1, 1)]

    spans = []
    remaining = duration_minutes
    for gap in gaps:
        if remaining <= 0:
            break
        gap_minutes = gap.minutes
        if gap_minutes < min_block_minutes:
            continue

        take = min(remaining, gap_minutes)
        rounded = max(min_block_minutes, (take // min_block_minutes) * min_block_minutes)

        spans.append((gap.start, gap.start + timedelta(minutes=rounded)))
        remaining -= rounded

    total = len(spans)
    return [
        ScheduleBlock(start, end, idx, total)
        for idx, (start, end) in enumerate(spans, start=1)
    ]


def build_schedule_preview(window: TimeWindow, busy: list[BusyInterval],
                           duration_minutes: int, min_block_minutes: int) -> list[ScheduleBlock]:
    """Free gaps of the window, then blocks planned into them."""
    gaps = compute_free_gaps(window, busy)
    return plan_blocks(gaps, duration_minutes, min_block_minutes)
