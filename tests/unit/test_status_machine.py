import pytest

from app.models.appointment import AppointmentStatus
from app.models.notification import NotificationAction
from app.services.status_machine import NO_EFFECTS, plan_transition_effects

PENDING = AppointmentStatus.PENDING
CONFIRMED = AppointmentStatus.CONFIRMED
COMPLETED = AppointmentStatus.COMPLETED
CANCELLED = AppointmentStatus.CANCELLED


class TestPlanTransitionEffects:
    def test_first_confirmation(self):
        effects = plan_transition_effects(PENDING, CONFIRMED, was_confirmed=False)

        assert effects.calendar_action == NotificationAction.CALENDAR_UPSERT
        assert effects.send_confirmation is True
        assert effects.schedule_reminder is True
        assert effects.cancel_reminders is False

    @pytest.mark.parametrize("target", [COMPLETED, CANCELLED])
    def test_terminal_from_confirmed_deletes_event(self, target):
        effects = plan_transition_effects(CONFIRMED, target, was_confirmed=True)

        assert effects.calendar_action == NotificationAction.CALENDAR_DELETE
        assert effects.cancel_reminders is True
        assert effects.send_confirmation is False

    def test_cancel_from_pending_has_no_calendar_intent(self):
        effects = plan_transition_effects(PENDING, CANCELLED, was_confirmed=False)

        assert effects.calendar_action is None
        assert effects.send_confirmation is False
        assert effects.schedule_reminder is False

    def test_same_status_is_a_no_op(self):
        assert plan_transition_effects(CONFIRMED, CONFIRMED, was_confirmed=True) is NO_EFFECTS
        assert NO_EFFECTS.is_empty

    def test_back_to_pending_after_confirmation_updates_title(self):
        effects = plan_transition_effects(CONFIRMED, PENDING, was_confirmed=True)

        assert effects.calendar_action == NotificationAction.CALENDAR_UPDATE_STATUS
        assert effects.send_confirmation is False

    def test_reconfirming_open_appointment_updates_title(self):
        effects = plan_transition_effects(PENDING, CONFIRMED, was_confirmed=True)

        assert effects.calendar_action == NotificationAction.CALENDAR_UPDATE_STATUS
        assert effects.send_confirmation is False
        assert effects.schedule_reminder is False

    def test_reopening_cancelled_appointment_recreates_event(self):
        effects = plan_transition_effects(CANCELLED, CONFIRMED, was_confirmed=True)

        assert effects.calendar_action == NotificationAction.CALENDAR_UPSERT
        assert effects.send_confirmation is False
        assert effects.schedule_reminder is True

    def test_leaving_terminal_state_without_confirmation(self):
        effects = plan_transition_effects(CANCELLED, PENDING, was_confirmed=True)
        assert effects.is_empty

    def test_terminal_to_terminal_does_not_delete_twice(self):
        effects = plan_transition_effects(CANCELLED, COMPLETED, was_confirmed=True)

        assert effects.calendar_action is None
        assert effects.cancel_reminders is True
