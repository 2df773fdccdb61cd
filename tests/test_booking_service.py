"""
Tests for BookingService
"""
import pytest
from datetime import datetime, timedelta, timezone

from patrol_scheduler.error_handlers.exceptions import (
    CascadeBlocked, InvalidRange, ResourceNotFoundException,
    SlotAlreadyBooked, ValidationException
)


SATURDAY = datetime(2030, 1, 5, 18, 0)


class TestCreateBooking:

    @pytest.mark.integration
    def test_books_first_free_position(self, booking_service, schedule_factory, user_factory):
        schedule = schedule_factory(positions_available=2)
        alice, bob = user_factory(name='Alice'), user_factory(name='Bob')

        first = booking_service.create_booking(schedule.id, alice.id, SATURDAY)
        second = booking_service.create_booking(schedule.id, bob.id, SATURDAY, buddy_name='Dan')

        assert (first.position_index, second.position_index) == (0, 1)
        assert first.shift_end == SATURDAY + timedelta(minutes=120)
        assert first.is_recurring_reservation is False
        assert second.buddy_name == 'Dan'

    @pytest.mark.integration
    def test_accepts_aware_start(self, booking_service, schedule_factory, user_factory):
        schedule = schedule_factory()
        user = user_factory()
        sast = timezone(timedelta(hours=2))

        booking = booking_service.create_booking(
            schedule.id, user.id, datetime(2030, 1, 5, 20, 0, tzinfo=sast)
        )

        assert booking.shift_start == SATURDAY

    @pytest.mark.integration
    def test_full_occurrence_rejected(self, booking_service, schedule_factory, user_factory):
        schedule = schedule_factory()
        booking_service.create_booking(schedule.id, user_factory().id, SATURDAY)

        with pytest.raises(SlotAlreadyBooked):
            booking_service.create_booking(schedule.id, user_factory().id, SATURDAY)

    @pytest.mark.integration
    def test_taken_position_rejected(self, booking_service, schedule_factory, user_factory):
        schedule = schedule_factory(positions_available=3)
        booking_service.create_booking(schedule.id, user_factory().id, SATURDAY, position_index=1)

        with pytest.raises(SlotAlreadyBooked) as exc_info:
            booking_service.create_booking(schedule.id, user_factory().id, SATURDAY, position_index=1)
        assert exc_info.value.details['position_index'] == 1

    @pytest.mark.integration
    def test_same_user_twice_rejected(self, booking_service, schedule_factory, user_factory):
        schedule = schedule_factory(positions_available=2)
        user = user_factory()
        booking_service.create_booking(schedule.id, user.id, SATURDAY)

        with pytest.raises(SlotAlreadyBooked):
            booking_service.create_booking(schedule.id, user.id, SATURDAY)

    @pytest.mark.integration
    def test_position_out_of_range(self, booking_service, schedule_factory, user_factory):
        schedule = schedule_factory(positions_available=2)
        with pytest.raises(ValidationException):
            booking_service.create_booking(schedule.id, user_factory().id, SATURDAY, position_index=2)

    @pytest.mark.integration
    def test_start_must_be_an_occurrence(self, booking_service, schedule_factory, user_factory):
        schedule = schedule_factory()
        with pytest.raises(ValidationException):
            booking_service.create_booking(schedule.id, user_factory().id, datetime(2030, 1, 7, 18, 0))

    @pytest.mark.integration
    def test_unknown_references(self, booking_service, schedule_factory, user_factory):
        schedule = schedule_factory()
        user = user_factory()
        with pytest.raises(ResourceNotFoundException):
            booking_service.create_booking(999, user.id, SATURDAY)
        with pytest.raises(ResourceNotFoundException):
            booking_service.create_booking(schedule.id, 999, SATURDAY)


class TestTryCreateBooking:

    @pytest.mark.integration
    def test_conflict_returns_none_and_keeps_session_usable(self, db, models, booking_service,
                                                            booking_factory, schedule_factory,
                                                            user_factory):
        schedule = schedule_factory()
        booking_factory(schedule=schedule, shift_start=SATURDAY)
        other = user_factory()

        result = booking_service.try_create_booking(
            schedule_id=schedule.id,
            user_id=other.id,
            shift_start=SATURDAY,
            shift_end=SATURDAY + timedelta(hours=2),
        )

        assert result is None
        # The outer transaction survives the failed SAVEPOINT
        assert models['Booking'].query.count() == 1
        db.session.commit()


class TestListAndCancel:

    @pytest.mark.integration
    def test_list_filters(self, booking_service, booking_factory, schedule_factory, user_factory):
        schedule = schedule_factory()
        alice, bob = user_factory(), user_factory()
        booking_factory(user=alice, schedule=schedule, shift_start=datetime(2030, 1, 5, 18))
        booking_factory(user=bob, schedule=schedule, shift_start=datetime(2030, 1, 6, 18))
        booking_factory(user=alice, schedule=schedule, shift_start=datetime(2030, 1, 12, 18),
                        is_recurring_reservation=True)

        january_week = booking_service.list_bookings(datetime(2030, 1, 1), datetime(2030, 1, 8))
        assert [b.shift_start.day for b in january_week] == [5, 6]

        assert len(booking_service.list_bookings(user_id=alice.id)) == 2
        assert len(booking_service.list_bookings(is_recurring=True)) == 1
        assert len(booking_service.list_bookings(schedule_id=schedule.id)) == 3

    @pytest.mark.integration
    def test_list_range_end_exclusive(self, booking_service, booking_factory):
        booking_factory(shift_start=SATURDAY)
        assert booking_service.list_bookings(SATURDAY - timedelta(days=1), SATURDAY) == []
        assert len(booking_service.list_bookings(SATURDAY, SATURDAY + timedelta(minutes=1))) == 1

    @pytest.mark.unit
    def test_list_inverted_range(self, booking_service):
        with pytest.raises(InvalidRange):
            booking_service.list_bookings(datetime(2030, 2, 1), datetime(2030, 1, 1))

    @pytest.mark.integration
    def test_cancel(self, models, booking_service, booking_factory):
        booking = booking_factory()
        booking_id = booking.id

        data = booking_service.cancel(booking_id)

        assert data['id'] == booking_id
        assert models['Booking'].query.count() == 0
        with pytest.raises(ResourceNotFoundException):
            booking_service.cancel(booking_id)


class TestReleaseForDeletion:

    @pytest.mark.integration
    def test_live_future_bookings_block(self, booking_service, booking_factory, schedule_factory):
        schedule = schedule_factory()
        booking_factory(schedule=schedule, shift_start=SATURDAY)

        with pytest.raises(CascadeBlocked) as exc_info:
            booking_service.release_for_deletion(schedule_id=schedule.id, now=datetime(2025, 1, 1))

        assert exc_info.value.details['blocking_count'] == 1
        assert exc_info.value.details['blocking_bookings'][0]['shift_start'] == SATURDAY.isoformat()

    @pytest.mark.integration
    def test_started_booking_is_not_live(self, booking_service, booking_factory, schedule_factory):
        schedule = schedule_factory()
        booking_factory(schedule=schedule, shift_start=SATURDAY)

        cancelled = booking_service.release_for_deletion(
            schedule_id=schedule.id, now=SATURDAY + timedelta(minutes=1)
        )

        assert cancelled == 0
