"""Static content used by the notification worker."""

from slotbook.fixtures.message_templates import MESSAGE_TEMPLATES, render_template

__all__ = ["MESSAGE_TEMPLATES", "render_template"]
