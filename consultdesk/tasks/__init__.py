"""Scheduled tasks for ConsultDesk.

This package contains jobs that run periodically to handle:
- Next-day consultation reminders
- Provider license expiry notices
- Re-delivery of pending consultation events (outbox relay)
"""

from consultdesk.tasks.license_expiry import run_license_expiry_task
from consultdesk.tasks.outbox_relay import run_outbox_relay_task
from consultdesk.tasks.reminders import run_reminder_task

__all__ = [
    "run_reminder_task",
    "run_license_expiry_task",
    "run_outbox_relay_task",
]
