"""Scheduled tasks for Slotbook.

Command-line counterparts of the ``/api/v1/cron`` routes, for deployments
that run jobs from a system scheduler instead of an HTTP trigger:
- Appointment reminders (run hourly)
- Appointment cleanup (run daily)
"""

from slotbook.tasks.cleanup import run_cleanup_task
from slotbook.tasks.reminders import run_reminder_task

__all__ = [
    "run_reminder_task",
    "run_cleanup_task",
]
