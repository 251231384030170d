"""Scheduler-triggered batch endpoints.

The external scheduler decides the cadence; both routes accept GET and POST
and are guarded by the ``x-cron-secret`` header.
"""

from fastapi import APIRouter, Depends

from slotbook.api.deps import DbSession, Dispatcher, verify_cron_secret
from slotbook.services.maintenance import MaintenanceService
from slotbook.services.reminders import ReminderService

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.api_route(
    "/reminders",
    methods=["GET", "POST"],
    summary="Send due reminders",
    description="Queue reminders for appointments starting within the reminder window",
)
async def send_reminders(session: DbSession, dispatcher: Dispatcher) -> dict:
    result = await ReminderService(session, dispatcher).send_due_reminders()
    return {"success": True, **result}


@router.api_route(
    "/cleanup",
    methods=["GET", "POST"],
    summary="Appointment cleanup",
    description="Complete finished appointments and soft delete old cancellations",
)
async def cleanup(session: DbSession, dispatcher: Dispatcher) -> dict:
    result = await MaintenanceService(session, dispatcher).run_cleanup()
    return {"success": True, **result}
