"""
Inbound task-store webhooks.

The host task service posts lifecycle events as:

    {
        "event": "task_updated",
        "task": {...task snapshot...},
        "metadata": {"field": "priority", "old": "low", "new": "high"}
    }

"action" is accepted as an alias of "event".
"""

import logging
from typing import Dict, Any

from pydantic import ValidationError as PydanticValidationError

from automation_engine.exceptions import ValidationError
from automation_engine.tasks.store import parse_task
from automation_engine.triggers.models import TriggerEvent, TriggerKind

logger = logging.getLogger(__name__)


def parse_task_webhook(payload: Dict[str, Any]) -> TriggerEvent:
    """
    Map a webhook payload to a TriggerEvent.

    Raises:
        ValidationError: unknown event, or missing/invalid task
    """
    event_type = payload.get("event") or payload.get("action")
    try:
        trigger = TriggerKind(event_type)
    except ValueError:
        raise ValidationError(f"Unsupported webhook event: {event_type}")

    task_data = payload.get("task")
    if not isinstance(task_data, dict):
        raise ValidationError("Webhook payload has no task")

    try:
        task = parse_task(task_data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid task in webhook payload: {e}")

    metadata = payload.get("metadata") or {}
    logger.info(f"Webhook: {trigger.value} for task {task.id}")
    return TriggerEvent(
        trigger=trigger,
        task=task,
        metadata=dict(metadata),
        source="webhook",
    )
