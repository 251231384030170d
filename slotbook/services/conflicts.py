"""Double-booking detection for a resource's calendar."""

from datetime import datetime

from slotbook.models.appointment import Appointment
from slotbook.services.appointment_store import AppointmentStore


def windows_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """Half-open interval overlap: ``[a_start, a_end)`` vs ``[b_start, b_end)``.

    Back-to-back windows (``a_end == b_start``) do not overlap.
    """
    return a_start < b_end and b_start < a_end


class ConflictChecker:
    """Checks a proposed window against active appointments on a resource.

    Runs on the store's session, so the check and the write that follows it
    share one transaction.
    """

    def __init__(self, store: AppointmentStore):
        self.store = store

    async def find_conflict(
        self,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: str | None = None,
    ) -> Appointment | None:
        """Return the earliest active appointment overlapping the window, if any."""
        overlapping = await self.store.find_overlapping(
            resource_id,
            start_time,
            end_time,
            exclude_id=exclude_appointment_id,
        )
        return overlapping[0] if overlapping else None

    async def has_conflict(
        self,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: str | None = None,
    ) -> bool:
        conflict = await self.find_conflict(
            resource_id, start_time, end_time, exclude_appointment_id
        )
        return conflict is not None
