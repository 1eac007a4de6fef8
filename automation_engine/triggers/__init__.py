"""Trigger events - models, due-date detection and inbound webhooks."""

from automation_engine.triggers.models import TriggerEvent, TriggerKind
from automation_engine.triggers.detector import detect_due_events
from automation_engine.triggers.webhooks import parse_task_webhook

__all__ = [
    "TriggerEvent",
    "TriggerKind",
    "detect_due_events",
    "parse_task_webhook",
]
