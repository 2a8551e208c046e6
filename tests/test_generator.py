"""Tests for candidate slot generation."""

from datetime import datetime, time

import pytest

from groombook.services.booking.calendar import OperatingWindow
from groombook.services.booking.generator import generate_candidate_slots, is_on_grid
from tests.conftest import NEXT_MONDAY

WINDOW = OperatingWindow(time(9), time(17))


def _labels(slots):
    return [slot.strftime("%H:%M") for slot in slots]


class TestGenerateCandidateSlots:
    def test_hour_long_service_in_eight_hour_day(self):
        slots = generate_candidate_slots(WINDOW, 60, 30)
        assert slots[0] == time(9, 0)
        assert slots[-1] == time(16, 0)
        assert len(slots) == 15

    def test_ascending_and_aligned(self):
        slots = generate_candidate_slots(WINDOW, 45, 30)
        assert slots == sorted(slots)
        assert all(is_on_grid(WINDOW, slot, 30) for slot in slots)

    def test_boundary_close_minus_duration_is_valid(self):
        window = OperatingWindow(time(9), time(17))
        slots = generate_candidate_slots(window, 60, 1)
        assert slots[-1] == time(16, 0)
        assert time(16, 1) not in slots

    def test_duration_longer_than_window_is_empty(self):
        assert generate_candidate_slots(OperatingWindow(time(9), time(10)), 90, 30) == []

    def test_duration_equal_to_window_gives_single_slot(self):
        assert generate_candidate_slots(OperatingWindow(time(9), time(10)), 60, 30) == [time(9)]

    def test_grid_counts_from_opening_time(self):
        window = OperatingWindow(time(9, 15), time(11, 15))
        assert _labels(generate_candidate_slots(window, 60, 30)) == ["09:15", "09:45", "10:15"]

    def test_turnover_buffer_must_fit_before_close(self):
        slots = generate_candidate_slots(WINDOW, 60, 30, buffer_minutes=15)
        assert slots[-1] == time(15, 30)

    def test_fifteen_minute_grid(self):
        slots = generate_candidate_slots(OperatingWindow(time(9), time(10)), 30, 15)
        assert _labels(slots) == ["09:00", "09:15", "09:30"]

    def test_deterministic(self):
        assert generate_candidate_slots(WINDOW, 60, 30) == generate_candidate_slots(WINDOW, 60, 30)

    @pytest.mark.parametrize("interval, duration", [(0, 60), (-30, 60), (30, 0)])
    def test_invalid_arguments(self, interval, duration):
        with pytest.raises(ValueError):
            generate_candidate_slots(WINDOW, duration, interval)


class TestBookingBuffer:
    def test_today_excludes_slots_inside_buffer(self):
        now = datetime.combine(NEXT_MONDAY, time(10, 10))
        slots = generate_candidate_slots(
            WINDOW, 60, 30, target_date=NEXT_MONDAY, now=now, booking_buffer_minutes=30,
        )
        # 10:40 cutoff: 10:30 is too close, 11:00 is fine
        assert slots[0] == time(11, 0)

    def test_slot_exactly_at_cutoff_is_kept(self):
        now = datetime.combine(NEXT_MONDAY, time(10, 30))
        slots = generate_candidate_slots(
            WINDOW, 60, 30, target_date=NEXT_MONDAY, now=now, booking_buffer_minutes=30,
        )
        assert slots[0] == time(11, 0)

    def test_future_day_is_unaffected(self):
        now = datetime(2026, 3, 2, 16, 0)
        slots = generate_candidate_slots(
            WINDOW, 60, 30, target_date=NEXT_MONDAY, now=now, booking_buffer_minutes=30,
        )
        assert len(slots) == 15

    def test_after_closing_today_is_empty(self):
        now = datetime.combine(NEXT_MONDAY, time(16, 45))
        slots = generate_candidate_slots(
            WINDOW, 60, 30, target_date=NEXT_MONDAY, now=now, booking_buffer_minutes=30,
        )
        assert slots == []


class TestIsOnGrid:
    def test_aligned(self):
        assert is_on_grid(WINDOW, time(10, 30), 30)

    def test_misaligned(self):
        assert not is_on_grid(WINDOW, time(10, 10), 30)

    def test_before_open(self):
        assert not is_on_grid(WINDOW, time(8, 30), 30)

    def test_seconds_are_not_aligned(self):
        assert not is_on_grid(WINDOW, time(10, 30, 5), 30)
