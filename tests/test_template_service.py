"""
Tests for TemplateService
"""
import pytest

from patrol_scheduler.error_handlers.exceptions import (
    DuplicateTemplate, ResourceNotFoundException, ValidationException
)


class TestCreateTemplate:

    @pytest.mark.integration
    def test_create(self, template_service, schedule_factory, user_factory):
        schedule = schedule_factory()
        user = user_factory()

        template = template_service.create(
            user_id=user.id, schedule_id=schedule.id, day_of_week=6,
            time_slot='18:00-20:00', buddy_name='  Carol  '
        )

        assert template.id is not None
        assert template.is_active is True
        assert template.buddy_name == 'Carol'
        assert template.day_name == 'Saturday'
        assert template.to_dict()['schedule_name'] == schedule.name

    @pytest.mark.integration
    def test_duplicate_rejected(self, template_service, schedule_factory, user_factory):
        schedule = schedule_factory()
        user = user_factory()
        first = template_service.create(user.id, schedule.id, 6, '18:00-20:00')

        with pytest.raises(DuplicateTemplate) as exc_info:
            template_service.create(user.id, schedule.id, 6, '18:00-20:00')
        assert exc_info.value.details['existing_id'] == first.id

    @pytest.mark.integration
    def test_other_users_may_share_a_slot(self, template_service, schedule_factory, user_factory):
        schedule = schedule_factory()
        template_service.create(user_factory().id, schedule.id, 6, '18:00-20:00')
        template_service.create(user_factory().id, schedule.id, 6, '18:00-20:00')

        assert len(template_service.find_by_pattern(schedule.id, 6, '18:00-20:00')) == 2

    @pytest.mark.integration
    @pytest.mark.parametrize('day_of_week, time_slot', [
        (1, '18:00-20:00'),
        (6, '19:00-21:00'),
        (6, '18:00-19:00'),
    ])
    def test_unproducible_slot_rejected(self, template_service, schedule_factory, user_factory,
                                        day_of_week, time_slot):
        schedule = schedule_factory()
        with pytest.raises(ValidationException):
            template_service.create(user_factory().id, schedule.id, day_of_week, time_slot)

    @pytest.mark.integration
    @pytest.mark.parametrize('day_of_week, time_slot', [
        (7, '18:00-20:00'),
        (-1, '18:00-20:00'),
        ('6', '18:00-20:00'),
        (6, '6pm-8pm'),
        (6, 1800),
    ])
    def test_malformed_fields_rejected(self, template_service, schedule_factory, user_factory,
                                       day_of_week, time_slot):
        schedule = schedule_factory()
        with pytest.raises(ValidationException):
            template_service.create(user_factory().id, schedule.id, day_of_week, time_slot)

    @pytest.mark.integration
    def test_unknown_references(self, template_service, schedule_factory, user_factory):
        schedule = schedule_factory()
        user = user_factory()
        with pytest.raises(ResourceNotFoundException):
            template_service.create(999, schedule.id, 6, '18:00-20:00')
        with pytest.raises(ResourceNotFoundException):
            template_service.create(user.id, 999, 6, '18:00-20:00')


class TestUpdateTemplate:

    @pytest.mark.integration
    def test_deactivate_and_change_day(self, template_service, template_factory):
        template = template_factory(day_of_week=6)

        updated = template_service.update(template.id, is_active=False, day_of_week=0)

        assert updated.is_active is False
        assert updated.day_of_week == 0

    @pytest.mark.integration
    def test_update_into_duplicate_rejected(self, template_service, template_factory,
                                            schedule_factory, user_factory):
        schedule = schedule_factory()
        user = user_factory()
        template_factory(user=user, schedule=schedule, day_of_week=6)
        sunday = template_factory(user=user, schedule=schedule, day_of_week=0)

        with pytest.raises(DuplicateTemplate):
            template_service.update(sunday.id, day_of_week=6)

    @pytest.mark.integration
    def test_unknown_field_rejected(self, template_service, template_factory):
        template = template_factory()
        with pytest.raises(ValidationException):
            template_service.update(template.id, priority=1)


class TestListTemplates:

    @pytest.mark.integration
    def test_filters(self, template_service, template_factory, schedule_factory, user_factory):
        schedule = schedule_factory()
        alice = user_factory()
        template_factory(user=alice, schedule=schedule, day_of_week=6, buddy_name='Carol')
        template_factory(user=alice, schedule=schedule, day_of_week=0, is_active=False)
        template_factory(schedule=schedule, day_of_week=6)

        assert len(template_service.list()) == 3
        assert len(template_service.list(user_id=alice.id)) == 2
        assert len(template_service.list(day_of_week=6)) == 2
        assert len(template_service.list(has_buddy=True)) == 1
        assert len(template_service.list(has_buddy=False)) == 2
        assert len(template_service.list(include_inactive=False)) == 2

    @pytest.mark.integration
    def test_ordered_by_id(self, template_service, template_factory, schedule_factory):
        schedule = schedule_factory()
        ids = [template_factory(schedule=schedule).id for _ in range(3)]
        assert [t.id for t in template_service.list(schedule_id=schedule.id)] == ids


class TestDeleteTemplate:

    @pytest.mark.integration
    def test_delete_keeps_bookings(self, db, models, template_service, template_factory, booking_factory):
        template = template_factory()
        booking = booking_factory(
            user=template.user, schedule=template.schedule,
            is_recurring_reservation=True, recurring_assignment_id=template.id
        )
        booking_id, template_id = booking.id, template.id

        template_service.delete(template_id)

        kept = db.session.get(models['Booking'], booking_id)
        assert kept is not None
        assert kept.recurring_assignment_id is None
        with pytest.raises(ResourceNotFoundException):
            template_service.get(template_id)
