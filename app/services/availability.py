from typing import Iterable, Optional

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import SchedulingConfig, settings
from app.models.appointment import Appointment, AppointmentStatus
from app.models.availability_override import AvailabilityOverride, DefaultSlots
from app.models.blocked_date import BlockedDate
from app.utils.time_utils import (
    minutes_to_time_str,
    parse_date,
    parse_duration_to_minutes,
    parse_time_to_minutes,
)

logger = structlog.get_logger(__name__)

Interval = tuple[int, int]


def compute_open_slots(
    occupied: Iterable[Interval],
    duration_minutes: int,
    open_minutes: int,
    close_minutes: int,
    interval_minutes: int,
) -> list[str]:
    """Candidate starts between opening and closing that fit and do not overlap.

    Candidates step by ``interval_minutes`` from ``open_minutes``. A candidate
    survives when ``[start, start + duration)`` ends by closing time and misses
    every occupied ``[occ_start, occ_end)``.
    """
    occupied = list(occupied)
    slots = []
    for start in range(open_minutes, close_minutes, interval_minutes):
        end = start + duration_minutes
        if end > close_minutes:
            continue
        if any(start < occ_end and end > occ_start for occ_start, occ_end in occupied):
            continue
        slots.append(minutes_to_time_str(start))
    return slots


class AvailabilityService:
    """Computes bookable start times and serves the configured slot lists."""

    def __init__(self, db: AsyncSession, config: Optional[SchedulingConfig] = None):
        self.db = db
        self.config = config or SchedulingConfig.from_settings(settings)

    async def get_available_slots(
        self, date: str, requested_duration: Optional[str] = None
    ) -> list[str]:
        """Duration-aware slots for self-serve booking."""
        parse_date(date)
        duration = parse_duration_to_minutes(
            requested_duration, self.config.default_duration_minutes
        )

        if await self.is_date_blocked(date):
            logger.info("Date is blocked, no slots offered", date=date)
            return []

        occupied = await self.get_occupied_intervals(date)
        slots = compute_open_slots(
            occupied,
            duration,
            self.config.open_minutes,
            self.config.close_minutes,
            self.config.slot_interval_minutes,
        )

        logger.debug(
            "Computed available slots",
            date=date,
            duration_minutes=duration,
            occupied=len(occupied),
            available=len(slots),
        )
        return slots

    async def get_occupied_intervals(self, date: str) -> list[Interval]:
        """Intervals blocked by non-cancelled appointments, from their booking snapshot."""
        appointments = await self.get_active_appointments(date)
        return [(apt.start_minutes, apt.end_minutes) for apt in appointments]

    async def get_active_appointments(self, date: str) -> list[Appointment]:
        result = await self.db.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.date == date,
                    Appointment.status != AppointmentStatus.CANCELLED.value,
                )
            )
            .order_by(Appointment.start_minutes.asc())
        )
        return list(result.scalars().all())

    async def is_date_blocked(self, date: str) -> bool:
        result = await self.db.execute(
            select(BlockedDate.id).where(BlockedDate.date == date)
        )
        return result.first() is not None

    # Flat configured slot lists (admin / legacy booking path)

    async def get_availability(self, date: str) -> list[str]:
        """Per-date override if one exists, otherwise the default slots."""
        parse_date(date)
        override = await self._get_override(date)
        if override:
            return list(override.slots)
        return await self.get_default_slots()

    async def get_default_slots(self) -> list[str]:
        defaults = await self._get_default_row()
        if defaults:
            return list(defaults.slots)
        return list(self.config.default_slots)

    async def update_availability(self, date: str, slots: list[str]) -> list[str]:
        parse_date(date)
        slots = self._normalize_slots(slots)

        override = await self._get_override(date)
        if override:
            override.slots = slots
        else:
            self.db.add(AvailabilityOverride(date=date, slots=slots))

        await self.db.commit()
        logger.info("Availability override saved", date=date, slots=slots)
        return slots

    async def update_default_slots(self, slots: list[str]) -> list[str]:
        slots = self._normalize_slots(slots)

        defaults = await self._get_default_row()
        if defaults:
            defaults.slots = slots
        else:
            self.db.add(DefaultSlots(slots=slots))

        await self.db.commit()
        logger.info("Default slots saved", slots=slots)
        return slots

    @staticmethod
    def _normalize_slots(slots: list[str]) -> list[str]:
        """Deduplicate and order slots by time of day."""
        by_minutes = {parse_time_to_minutes(slot): slot for slot in slots}
        return [minutes_to_time_str(m) for m in sorted(by_minutes)]

    async def _get_override(self, date: str) -> Optional[AvailabilityOverride]:
        result = await self.db.execute(
            select(AvailabilityOverride).where(AvailabilityOverride.date == date)
        )
        return result.scalar_one_or_none()

    async def _get_default_row(self) -> Optional[DefaultSlots]:
        result = await self.db.execute(
            select(DefaultSlots).order_by(DefaultSlots.id.asc()).limit(1)
        )
        return result.scalar_one_or_none()
