"""
Task automation MCP Server

Exposes rule dispatch, recurrence previews and workload insights via Model
Context Protocol (MCP).
"""

import logging
from datetime import date
from typing import Optional

from fastmcp import FastMCP

from automation_engine.config import get_settings
from automation_engine.db.database import get_database
from automation_engine.rules.models import AutomationRule, action_display_name
from automation_engine.service import AutomationService, get_task_store

logger = logging.getLogger(__name__)

# Create MCP server
mcp = FastMCP(
    name="task-automation-engine",
    instructions="""
    You are a task automation assistant.

    You help teams keep their task board moving by:
    - Dispatching task lifecycle triggers to the team's automation rules
    - Previewing when recurring tasks will next be created
    - Reporting workload per team member and predicting completion dates
    - Proposing smart suggestions (assignee, priority, due date) for a task

    Suggestions are only applied when the user explicitly accepts one.
    """
)


def _service(db) -> AutomationService:
    return AutomationService(db, get_task_store())


def _rule_summary(rule: AutomationRule) -> dict:
    data = rule.model_dump(mode="json")
    data["trigger_label"] = rule.trigger.display_name
    for action in data["actions"]:
        action["label"] = action_display_name(action["type"])
    return data


# =============================================================================
# Rules
# =============================================================================

@mcp.tool
async def list_automation_rules(team_id: Optional[str] = None) -> list[dict]:
    """
    List automation rules in evaluation order.

    Args:
        team_id: Only rules owned by this team

    Returns a list of rules with trigger, conditions, actions and trigger
    counters. Triggers and actions carry a human-readable label.
    """
    with get_database().session_scope() as db:
        rules = _service(db).list_rules(team_id=team_id)
    return [_rule_summary(r) for r in rules]


@mcp.tool
async def dispatch_trigger(trigger: str, task_id: str, metadata: Optional[dict] = None) -> list[dict]:
    """
    Fire a task lifecycle trigger and run every matching rule.

    Args:
        trigger: One of task_created, task_updated, task_completed, task_assigned,
            due_date_approaching, task_overdue, comment_added, milestone_completed,
            dependency_completed, tag_added, priority_changed
        task_id: Task to load from the task store
        metadata: Trigger details (e.g. which field changed), kept for audit

    Returns:
        One execution report per rule that fired, with per-action results.
    """
    with get_database().session_scope() as db:
        reports = await _service(db).dispatch_trigger(trigger, task_id, metadata or {})
    return [r.model_dump(mode="json") for r in reports]


# =============================================================================
# Recurring tasks
# =============================================================================

@mcp.tool
async def preview_recurring_occurrences(
    config_id: str,
    from_date: Optional[str] = None,
    count: int = 5,
) -> list[str]:
    """
    Preview upcoming occurrence dates of a recurring task (read-only).

    Args:
        config_id: Recurring config ID
        from_date: ISO date to start from (default: today)
        count: How many dates to return (1-100)
    """
    start = date.fromisoformat(from_date) if from_date else None
    with get_database().session_scope() as db:
        dates = _service(db).preview_occurrences(config_id, start, count)
    return [d.isoformat() for d in dates]


@mcp.tool
async def list_recurring_configs(team_id: Optional[str] = None) -> list[dict]:
    """List recurring task configurations with their next occurrence dates."""
    with get_database().session_scope() as db:
        configs = _service(db).list_recurring_configs(team_id=team_id)
    return [c.model_dump(mode="json") for c in configs]


# =============================================================================
# Insights
# =============================================================================

@mcp.tool
async def analyze_team_workload(team_id: str) -> list[dict]:
    """
    Analyze workload for each member of a team.

    Returns per member: active tasks, estimated hours, utilization percentage,
    overloaded flag, due-soon and overdue counts, and spare capacity.
    """
    with get_database().session_scope() as db:
        analyses = await _service(db).analyze_workload(team_id)
    return [a.model_dump(mode="json") for a in analyses]


@mcp.tool
async def predict_task_completion(task_id: str) -> dict:
    """
    Predict when a task will complete, from similar completed tasks.

    Returns predicted date, completion probability, risk level and risk factors.
    """
    with get_database().session_scope() as db:
        prediction = await _service(db).predict_completion(task_id)
    return prediction.model_dump(mode="json")


@mcp.tool
async def suggest_for_task(task_id: str) -> list[dict]:
    """
    Generate smart suggestions for a task (assignee, priority, due date).

    Suggestions are stored but not applied; use accept_suggestion to apply one.
    """
    with get_database().session_scope() as db:
        suggestions = await _service(db).generate_suggestions(task_id)
    return [s.model_dump(mode="json") for s in suggestions]


@mcp.tool
async def accept_suggestion(suggestion_id: str) -> dict:
    """
    Apply a previously generated suggestion to its task.

    Args:
        suggestion_id: ID returned by suggest_for_task
    """
    with get_database().session_scope() as db:
        report = await _service(db).accept_suggestion(suggestion_id)
    return report.model_dump(mode="json")


# =============================================================================
# Run Server
# =============================================================================

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run task automation MCP server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport type: stdio (local) or http (network)"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (for HTTP transport, default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8001,
        help="Port to bind to (for HTTP transport, default: 8001)"
    )

    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    get_database().init_db()

    if args.transport == "http":
        logger.info(f"Starting task automation MCP server on http://{args.host}:{args.port}/mcp/")
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        # STDIO transport (for local MCP clients)
        mcp.run()
