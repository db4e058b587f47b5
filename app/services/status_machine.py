"""Side effects owed by each appointment status change.

The ledger applies the status change; this module only decides which
notification intents the change produces.
"""

from dataclasses import dataclass
from typing import Optional

from app.models.appointment import TERMINAL_STATUSES, AppointmentStatus
from app.models.notification import NotificationAction


@dataclass(frozen=True)
class TransitionEffects:
    calendar_action: Optional[NotificationAction] = None
    send_confirmation: bool = False
    schedule_reminder: bool = False
    cancel_reminders: bool = False

    @property
    def is_empty(self) -> bool:
        return self == NO_EFFECTS


NO_EFFECTS = TransitionEffects()


def plan_transition_effects(
    previous: AppointmentStatus,
    new: AppointmentStatus,
    was_confirmed: bool,
) -> TransitionEffects:
    """Map ``previous -> new`` to the intents it should emit.

    ``was_confirmed`` tells whether the appointment has been confirmed before,
    which is when an external calendar event exists for it.
    """
    if previous == new:
        return NO_EFFECTS

    if new == AppointmentStatus.CONFIRMED:
        if not was_confirmed or previous in TERMINAL_STATUSES:
            # First confirmation, or reopening after the event was removed.
            return TransitionEffects(
                calendar_action=NotificationAction.CALENDAR_UPSERT,
                send_confirmation=not was_confirmed,
                schedule_reminder=True,
            )
        return TransitionEffects(
            calendar_action=NotificationAction.CALENDAR_UPDATE_STATUS
        )

    if new in TERMINAL_STATUSES:
        event_exists = was_confirmed and previous not in TERMINAL_STATUSES
        return TransitionEffects(
            calendar_action=(
                NotificationAction.CALENDAR_DELETE if event_exists else None
            ),
            cancel_reminders=True,
        )

    if was_confirmed and previous not in TERMINAL_STATUSES:
        return TransitionEffects(
            calendar_action=NotificationAction.CALENDAR_UPDATE_STATUS
        )
    return NO_EFFECTS
