"""
预订聚合构造校验与状态机测试
"""
import pytest

from clinic_core.engine import InvalidTransitionError
from clinic.errors import ValidationError
from clinic.models.ontology import BookingType, TimeSlot
from clinic.domain.booking import (
    build_room_selection, validate_booking, selection_from_payload,
    booking_claims, BOOKING_STATE_MACHINE,
)


class TestBuildRoomSelection:

    def test_bare_dates_get_slot_defaults(self):
        selection = build_room_selection(1, "morning", ["2030-06-03", "2030-06-04"])
        assert selection.time_slot == TimeSlot.MORNING
        assert selection.dates[0].start_time == "08:00"
        assert selection.dates[0].end_time == "13:00"

    def test_explicit_times_normalized(self):
        selection = build_room_selection(
            1, "full", [{"date": "06/03/2030", "startTime": "9:00", "endTime": "17:30"}]
        )
        assert selection.dates[0].date == "2030-06-03"
        assert selection.dates[0].start_time == "09:00"
        assert selection.dates[0].end_time == "17:30"

    def test_out_of_order_rejected(self):
        with pytest.raises(ValidationError, match="时间先后"):
            build_room_selection(1, "full", ["2030-06-05", "2030-06-03"])

    def test_empty_dates_rejected(self):
        with pytest.raises(ValidationError):
            build_room_selection(1, "full", [])

    def test_duplicate_dates_rejected(self):
        with pytest.raises(ValidationError):
            build_room_selection(1, "full", ["2030-06-03", "2030-06-03"])

    @pytest.mark.parametrize("bad_time", ["25:00", "12:60", "noon", "8"])
    def test_bad_time_rejected(self, bad_time):
        with pytest.raises(ValidationError):
            build_room_selection(1, "full", [{"date": "2030-06-03", "start_time": bad_time}])

    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError):
            build_room_selection(
                1, "full", [{"date": "2030-06-03", "start_time": "14:00", "end_time": "10:00"}]
            )

    def test_unknown_time_slot(self):
        with pytest.raises(ValidationError):
            build_room_selection(1, "night", ["2030-06-03"])

    def test_invalid_room_id(self):
        with pytest.raises(ValidationError):
            build_room_selection(0, "full", ["2030-06-03"])

    def test_full_day_claims_both_halves(self):
        selection = build_room_selection(2, "full", ["2030-06-03"])
        assert selection.claims() == [(2, "2030-06-03", "morning"), (2, "2030-06-03", "evening")]


class TestValidateBooking:

    def test_empty_room_list(self):
        with pytest.raises(ValidationError):
            validate_booking([], "daily")

    def test_unknown_booking_type(self):
        selection = build_room_selection(1, "full", ["2030-06-03"])
        with pytest.raises(ValidationError):
            validate_booking([selection], "weekly")

    def test_same_claim_twice(self):
        a = build_room_selection(1, "full", ["2030-06-03"])
        b = build_room_selection(1, "morning", ["2030-06-03"])
        with pytest.raises(ValidationError):
            validate_booking([a, b], "daily")

    def test_disjoint_halves_allowed(self):
        a = build_room_selection(1, "morning", ["2030-06-03"])
        b = build_room_selection(1, "evening", ["2030-06-03"])
        assert validate_booking([a, b], "monthly") == BookingType.MONTHLY
        assert len(booking_claims([a, b])) == 2

    def test_selection_from_payload_camel_case(self):
        selection = selection_from_payload(
            {"roomId": 3, "timeSlot": "evening", "dates": ["2030-06-03T00:00:00.000Z"]}
        )
        assert selection.room_id == 3
        assert selection.date_strings == ["2030-06-03"]


class TestBookingStateMachine:

    def test_pending_transitions(self):
        assert BOOKING_STATE_MACHINE.next_state("pending", "succeed") == "confirmed"
        assert BOOKING_STATE_MACHINE.next_state("pending", "fail") == "failed"

    @pytest.mark.parametrize("state", ["confirmed", "failed", "cancelled"])
    def test_terminal_states(self, state):
        assert BOOKING_STATE_MACHINE.is_terminal(state)
        with pytest.raises(InvalidTransitionError):
            BOOKING_STATE_MACHINE.next_state(state, "succeed")
