"""Notification copy for appointment events.

Each entry provides the in-app notification title/description and the
plain-text email. Placeholders use ``{{variable}}`` syntax and are filled
by :func:`render_template`.
"""

from slotbook.models.notification import NotificationType

MESSAGE_TEMPLATES: dict[str, dict] = {
    "created": {
        "notification_type": NotificationType.APPOINTMENT_CREATED,
        "title": "Appointment Created",
        "description": 'Your appointment "{{title}}" has been scheduled for {{start}}.',
        "subject": "Appointment confirmed: {{title}}",
        "body": """Your appointment has been booked.

What: {{title}}
When: {{start}} - {{end}}
Where: {{location}}

If you can't make it, please cancel or reschedule as early as possible.""",
    },
    "confirmed": {
        "notification_type": NotificationType.APPOINTMENT_CONFIRMED,
        "title": "Appointment Confirmed",
        "description": 'Your appointment "{{title}}" on {{start}} is confirmed.',
        "subject": "Appointment confirmed: {{title}}",
        "body": """Your appointment is confirmed.

What: {{title}}
When: {{start}} - {{end}}
Where: {{location}}""",
    },
    "rescheduled": {
        "notification_type": NotificationType.APPOINTMENT_RESCHEDULED,
        "title": "Appointment Rescheduled",
        "description": 'Your appointment "{{title}}" has been rescheduled to {{start}}.',
        "subject": "Appointment rescheduled: {{title}}",
        "body": """Your appointment has moved.

What: {{title}}
Previously: {{previous_start}}
Now: {{start}} - {{end}}
Where: {{location}}""",
    },
    "cancelled": {
        "notification_type": NotificationType.APPOINTMENT_CANCELLED,
        "title": "Appointment Cancelled",
        "description": 'Your appointment "{{title}}" on {{start}} has been cancelled.',
        "subject": "Appointment cancelled: {{title}}",
        "body": """Your appointment has been cancelled.

What: {{title}}
When: {{start}} - {{end}}
Reason: {{reason}}""",
    },
    "completed": {
        "notification_type": NotificationType.APPOINTMENT_COMPLETED,
        "title": "Appointment Completed",
        "description": 'Your appointment "{{title}}" has been marked as completed.',
        "subject": "Thanks for attending: {{title}}",
        "body": """Your appointment "{{title}}" on {{start}} has been marked as completed.""",
    },
    "reminder": {
        "notification_type": NotificationType.APPOINTMENT_REMINDER,
        "title": "Appointment Reminder",
        "description": 'Reminder: your appointment "{{title}}" is coming up on {{start}}.',
        "subject": "Reminder: {{title}} on {{start}}",
        "body": """This is a reminder about your upcoming appointment.

What: {{title}}
When: {{start}} - {{end}}
Where: {{location}}
Join: {{meeting_url}}""",
    },
}


def render_template(template: str, context: dict) -> str:
    """Substitute ``{{key}}`` placeholders with values from ``context``."""
    rendered = template
    for key, value in context.items():
        placeholder = f"{{{{{key}}}}}"
        rendered = rendered.replace(placeholder, str(value))
    return rendered
