from datetime import date, datetime, timedelta, timezone

from focus.scheduler import (
    BusyInterval, FreeGap, ScheduleBlock, TimeWindow,
    build_schedule_preview, build_window, compute_free_gaps, merge_busy,
    minutes_between, plan_blocks, to_iso, parse_iso,
)

KST = timezone(timedelta(hours=9))


def at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=KST)


def busy(h1, m1, h2, m2) -> BusyInterval:
    return BusyInterval(at(h1, m1), at(h2, m2))


def gap(h1, m1, h2, m2) -> FreeGap:
    return FreeGap(at(h1, m1), at(h2, m2))


WINDOW = TimeWindow(at(9), at(12))


# ============== WINDOW BUILDER ==============

def test_build_window_anchors_to_utc_plus_nine():
    window = build_window("2024-03-01", 9, 19, -540)
    assert window.start == datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc)
    assert window.end == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert window.start == at(9)
    assert window.end == at(19)


def test_build_window_does_not_shift_the_date():
    window = build_window("2024-03-01", 0, 24, -540)
    assert window.start.astimezone(KST).date() == date(2024, 3, 1)
    # in UTC the window starts on the previous day, but it is still local midnight
    assert window.start == datetime(2024, 2, 29, 15, 0, tzinfo=timezone.utc)
    assert window.end == at(0, day=2)


def test_build_window_default_offset_and_date_object():
    assert build_window(date(2024, 3, 1), 9, 19) == build_window("2024-03-01", 9, 19, -540)


def test_build_window_other_offset():
    window = build_window("2024-03-01", 9, 17, 0)
    assert window.start == datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_build_window_inverted_is_not_rejected():
    window = build_window("2024-03-01", 19, 9, -540)
    assert window.end < window.start
    assert compute_free_gaps(window, []) == []


# ============== FREE/BUSY MERGER ==============

def test_no_busy_gives_whole_window():
    assert compute_free_gaps(WINDOW, []) == [FreeGap(at(9), at(12))]


def test_fully_busy_window_has_no_gaps():
    assert compute_free_gaps(WINDOW, [busy(9, 0, 12, 0)]) == []
    assert compute_free_gaps(WINDOW, [busy(8, 0, 13, 0)]) == []


def test_overlapping_busy_merges():
    gaps = compute_free_gaps(WINDOW, [busy(9, 0, 10, 0), busy(9, 30, 11, 0)])
    assert gaps == [gap(11, 0, 12, 0)]


def test_touching_busy_merges():
    assert merge_busy([busy(9, 0, 10, 0), busy(10, 0, 11, 0)]) == [busy(9, 0, 11, 0)]
    gaps = compute_free_gaps(WINDOW, [busy(10, 0, 11, 0), busy(9, 0, 10, 0)])
    assert gaps == [gap(11, 0, 12, 0)]


def test_gaps_before_between_and_after():
    gaps = compute_free_gaps(WINDOW, [busy(10, 0, 10, 30), busy(11, 0, 11, 15)])
    assert gaps == [gap(9, 0, 10, 0), gap(10, 30, 11, 0), gap(11, 15, 12, 0)]


def test_busy_outside_window_is_ignored():
    gaps = compute_free_gaps(WINDOW, [busy(7, 0, 8, 0), busy(12, 0, 13, 0), busy(13, 0, 14, 0)])
    assert gaps == [gap(9, 0, 12, 0)]


def test_busy_partially_outside_is_clamped():
    gaps = compute_free_gaps(WINDOW, [busy(8, 0, 9, 30), busy(11, 30, 14, 0)])
    assert gaps == [gap(9, 30, 11, 30)]


def test_zero_length_and_inverted_busy_are_ignored():
    gaps = compute_free_gaps(WINDOW, [busy(10, 0, 10, 0), BusyInterval(at(11), at(10))])
    assert gaps == [gap(9, 0, 12, 0)]


def test_unsorted_busy_and_contained_intervals():
    gaps = compute_free_gaps(WINDOW, [busy(11, 0, 11, 30), busy(9, 30, 10, 30), busy(9, 45, 10, 0)])
    assert gaps == [gap(9, 0, 9, 30), gap(10, 30, 11, 0), gap(11, 30, 12, 0)]


def test_gaps_and_busy_reconstruct_the_window():
    intervals = [busy(9, 10, 9, 40), busy(10, 0, 10, 5), busy(11, 20, 11, 50)]
    gaps = compute_free_gaps(WINDOW, intervals)

    pieces = sorted([(g.start, g.end) for g in gaps] + [(b.start, b.end) for b in intervals])
    assert pieces[0][0] == WINDOW.start
    assert pieces[-1][1] == WINDOW.end
    for (_, end), (start, _) in zip(pieces, pieces[1:]):
        assert end == start
    assert all(g.end > g.start for g in gaps)


# ============== BLOCK PLANNER ==============

def test_earliest_sufficient_gap_wins():
    gaps = [gap(9, 0, 10, 0), gap(14, 0, 18, 0)]
    blocks = plan_blocks(gaps, 60, 30)
    assert blocks == [ScheduleBlock(at(9), at(10), 1, 1)]


def test_single_gap_uses_exact_duration():
    blocks = plan_blocks([gap(9, 0, 9, 40), gap(13, 0, 17, 0)], 90, 30)
    assert blocks == [ScheduleBlock(at(13), at(14, 30), 1, 1)]


def test_multi_gap_split():
    gaps = [gap(9, 0, 9, 40), gap(13, 0, 13, 40)]
    blocks = plan_blocks(gaps, 60, 30)
    assert blocks == [
        ScheduleBlock(at(9), at(9, 30), 1, 2),
        ScheduleBlock(at(13), at(13, 30), 2, 2),
    ]


def test_split_skips_short_gaps_and_stops_when_done():
    gaps = [gap(9, 0, 9, 20), gap(10, 0, 11, 0), gap(12, 0, 12, 50), gap(15, 0, 16, 0)]
    blocks = plan_blocks(gaps, 90, 30)
    assert [(b.start_time, b.end_time) for b in blocks] == [
        (at(10), at(11)),
        (at(12), at(12, 30)),
    ]
    assert {b.total_blocks for b in blocks} == {2}


def test_split_last_block_rounds_up_to_minimum():
    gaps = [gap(9, 0, 9, 45), gap(10, 0, 10, 45)]
    blocks = plan_blocks(gaps, 50, 30)
    assert [minutes_between(b.start_time, b.end_time) for b in blocks] == [30, 30]


def test_no_gap_fits_minimum():
    assert plan_blocks([gap(9, 0, 9, 20), gap(10, 0, 10, 29)], 60, 30) == []
    assert plan_blocks([], 60, 30) == []


def test_gap_length_is_floored_to_whole_minutes():
    short = FreeGap(at(9), at(10) - timedelta(seconds=1))
    blocks = plan_blocks([short], 60, 30)
    assert blocks == [ScheduleBlock(at(9), at(9, 30), 1, 1)]


def test_blocks_are_ordered_and_indexed():
    gaps = [gap(9, 0, 9, 35), gap(10, 0, 10, 40), gap(11, 0, 11, 30), gap(12, 0, 12, 30)]
    blocks = plan_blocks(gaps, 120, 30)
    assert [b.block_index for b in blocks] == [1, 2, 3, 4]
    assert all(b.total_blocks == 4 for b in blocks)
    for a, b in zip(blocks, blocks[1:]):
        assert a.end_time <= b.start_time
    assert all(minutes_between(b.start_time, b.end_time) >= 30 for b in blocks)


def test_planning_is_repeatable():
    gaps = [gap(9, 0, 9, 40), gap(13, 0, 13, 40)]
    first = [b.to_wire() for b in plan_blocks(gaps, 60, 30)]
    second = [b.to_wire() for b in plan_blocks(gaps, 60, 30)]
    assert first == second


# ============== PREVIEW ==============

def test_build_schedule_preview_end_to_end():
    window = build_window("2024-03-01", 9, 19, -540)
    blocks = build_schedule_preview(window, [busy(9, 0, 12, 0), busy(12, 30, 18, 45)], 60, 30)
    assert blocks == [ScheduleBlock(at(12), at(12, 30), 1, 1)]


def test_to_wire_uses_utc_instants():
    block = ScheduleBlock(at(9), at(10), 1, 1)
    assert block.to_wire() == {
        "startTimeIso": "2024-03-01T00:00:00Z",
        "endTimeIso": "2024-03-01T01:00:00Z",
        "blockIndex": 1,
        "totalBlocks": 1,
    }


def test_parse_iso_accepts_z_and_offsets():
    assert parse_iso("2024-03-01T00:00:00Z") == at(9)
    assert parse_iso("2024-03-01T09:00:00+09:00") == at(9)
    assert parse_iso("2024-03-01T00:00:00.000Z") == at(9)
    assert to_iso(parse_iso("2024-03-01T00:00:00Z")) == "2024-03-01T00:00:00Z"


def test_parse_iso_accepts_trimmed_fractions():
    assert parse_iso("2024-03-01T00:00:00.12345+00:00") == at(9).replace(microsecond=123450)
    assert parse_iso("2024-03-01T00:00:00.5+00:00") == at(9).replace(microsecond=500000)
    assert parse_iso("2024-03-01 00:00:00.1234567Z") == at(9).replace(microsecond=123456)
