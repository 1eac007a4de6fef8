import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional, Dict, Any, List

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from automation_engine import __version__
from automation_engine.config import get_settings
from automation_engine.db.database import get_database, get_db, init_db
from automation_engine.exceptions import NotFoundError, TaskStoreError, ValidationError
from automation_engine.insights.models import (
    AssignmentPolicy,
    AssignmentPolicyDraft,
    SmartSuggestion,
    TaskPrediction,
    WorkloadAnalysis,
)
from automation_engine.recurrence.models import RecurringConfigDraft, RecurringTaskConfig
from automation_engine.rules.models import (
    AutomationLog,
    AutomationRule,
    ExecutionReport,
    RuleDraft,
    RulePatch,
)
from automation_engine.service import AutomationService, get_task_store
from automation_engine.tasks.models import TaskSnapshot
from automation_engine.tasks.store import TaskStore
from automation_engine.triggers.models import TriggerKind
from automation_engine.triggers.scheduler import AutomationScheduler

logger = logging.getLogger(__name__)

def get_service(
    db: Session = Depends(get_db),
    store: TaskStore = Depends(get_task_store),
) -> AutomationService:
    return AutomationService(db, store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_db()

    scheduler = None
    db = None
    if settings.scheduler_enabled:
        db = get_database().get_session()
        service = AutomationService(db, get_task_store(), settings)
        scheduler = AutomationScheduler(
            service,
            tick_seconds=settings.scheduler_tick_seconds,
            due_soon_hours=settings.due_soon_hours,
        )
        scheduler.start()

    yield

    if scheduler:
        await scheduler.stop()
    if db:
        db.close()


app = FastAPI(
    title="task-automation-engine",
    description="Rule-based task automation, recurring tasks and workload insights",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(TaskStoreError)
async def task_store_handler(request: Request, exc: TaskStoreError):
    logger.error(f"Task store failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


# =============================================================================
# Request bodies
# =============================================================================

class DispatchRequest(BaseModel):
    trigger: TriggerKind
    task_id: Optional[str] = None
    task: Optional[TaskSnapshot] = None  # Snapshot at event time; loaded by id when omitted
    metadata: Dict[str, Any] = {}


class PreviewRequest(BaseModel):
    config: RecurringConfigDraft
    from_date: Optional[date] = None
    count: int = 5


class RecurringEnabledRequest(BaseModel):
    enabled: bool


class RunDueRequest(BaseModel):
    today: Optional[date] = None


# =============================================================================
# Service
# =============================================================================

@app.get("/")
async def root():
    """API root - shows available endpoints."""
    return {
        "service": "task-automation-engine",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "health": "/health",
            "rules": "/rules",
            "rule_logs": "/rules/{rule_id}/logs",
            "dispatch": "/triggers/dispatch",
            "webhook": "/webhooks/tasks",
            "recurring": "/recurring",
            "preview": "/recurring/{config_id}/preview",
            "materialize": "/recurring/{config_id}/materialize",
            "workload": "/teams/{team_id}/workload",
            "prediction": "/tasks/{task_id}/prediction",
            "suggestions": "/tasks/{task_id}/suggestions",
            "assignment_policy": "/teams/{team_id}/assignment-policy",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "task-automation-engine"}


# =============================================================================
# Rules
# =============================================================================

@app.post("/rules", status_code=201, response_model=AutomationRule)
def create_rule(draft: RuleDraft, service: AutomationService = Depends(get_service)):
    return service.create_rule(draft)


@app.get("/rules", response_model=List[AutomationRule])
def list_rules(
    team_id: Optional[str] = None,
    trigger: Optional[TriggerKind] = None,
    service: AutomationService = Depends(get_service),
):
    """List rules in evaluation order. Use ?team_id= and ?trigger= to filter."""
    return service.list_rules(team_id=team_id, trigger=trigger)


@app.get("/rules/{rule_id}", response_model=AutomationRule)
def get_rule(rule_id: str, service: AutomationService = Depends(get_service)):
    return service.get_rule(rule_id)


@app.patch("/rules/{rule_id}", response_model=AutomationRule)
def update_rule(rule_id: str, patch: RulePatch, service: AutomationService = Depends(get_service)):
    """Update a rule. Conditions and actions are replaced wholesale when given."""
    return service.update_rule(rule_id, patch)


@app.delete("/rules/{rule_id}", status_code=204)
def delete_rule(rule_id: str, service: AutomationService = Depends(get_service)):
    service.delete_rule(rule_id)


@app.get("/rules/{rule_id}/logs", response_model=List[AutomationLog])
def list_rule_logs(rule_id: str, limit: int = 50, service: AutomationService = Depends(get_service)):
    service.get_rule(rule_id)
    return service.list_rule_logs(rule_id=rule_id, limit=limit)


@app.post("/rules/{rule_id}/apply-existing", response_model=List[ExecutionReport])
async def apply_rule_to_existing(rule_id: str, service: AutomationService = Depends(get_service)):
    """Run a rule against the team's open tasks."""
    return await service.apply_rule_to_existing_tasks(rule_id)


@app.get("/logs", response_model=List[AutomationLog])
def list_logs(task_id: Optional[str] = None, limit: int = 50, service: AutomationService = Depends(get_service)):
    return service.list_rule_logs(task_id=task_id, limit=limit)


# =============================================================================
# Triggers
# =============================================================================

@app.post("/triggers/dispatch", response_model=List[ExecutionReport])
async def dispatch_trigger(body: DispatchRequest, service: AutomationService = Depends(get_service)):
    """Dispatch a trigger for a task snapshot (or a task id)."""
    task = body.task or body.task_id
    if task is None:
        raise ValidationError("Either task or task_id is required")
    return await service.dispatch_trigger(body.trigger, task, body.metadata)


@app.post("/webhooks/tasks", response_model=List[ExecutionReport])
async def task_webhook(payload: Dict[str, Any], service: AutomationService = Depends(get_service)):
    """Inbound lifecycle events from the task service."""
    return await service.handle_webhook(payload)


# =============================================================================
# Recurring tasks
# =============================================================================

@app.post("/recurring", status_code=201, response_model=RecurringTaskConfig)
async def create_recurring_config(draft: RecurringConfigDraft, service: AutomationService = Depends(get_service)):
    return await service.create_recurring_config(draft)


@app.get("/recurring", response_model=List[RecurringTaskConfig])
def list_recurring_configs(
    team_id: Optional[str] = None,
    enabled_only: bool = False,
    service: AutomationService = Depends(get_service),
):
    return service.list_recurring_configs(team_id=team_id, enabled_only=enabled_only)


@app.post("/recurring/preview", response_model=List[date])
def preview_draft(body: PreviewRequest, service: AutomationService = Depends(get_service)):
    """Preview a config that has not been saved yet."""
    config = RecurringTaskConfig(id="preview", **body.config.model_dump())
    return service.preview_occurrences(config, body.from_date or config.start_date, body.count)


@app.post("/recurring/run-due", response_model=List[TaskSnapshot])
async def run_due_recurrences(body: RunDueRequest, service: AutomationService = Depends(get_service)):
    return await service.run_due_recurrences(body.today)


@app.get("/recurring/{config_id}", response_model=RecurringTaskConfig)
def get_recurring_config(config_id: str, service: AutomationService = Depends(get_service)):
    return service.get_recurring_config(config_id)


@app.put("/recurring/{config_id}/enabled", response_model=RecurringTaskConfig)
def set_recurring_enabled(
    config_id: str,
    body: RecurringEnabledRequest,
    service: AutomationService = Depends(get_service),
):
    return service.set_recurring_enabled(config_id, body.enabled)


@app.get("/recurring/{config_id}/preview", response_model=List[date])
def preview_occurrences(
    config_id: str,
    from_date: Optional[date] = None,
    count: int = 5,
    service: AutomationService = Depends(get_service),
):
    """Upcoming occurrence dates. Use ?from_date=YYYY-MM-DD&count=N"""
    return service.preview_occurrences(config_id, from_date, count)


@app.post("/recurring/{config_id}/materialize", response_model=Optional[TaskSnapshot])
async def materialize_next_occurrence(config_id: str, service: AutomationService = Depends(get_service)):
    """Create the next task instance; null when exhausted or already claimed."""
    return await service.materialize_next_occurrence(config_id)


# =============================================================================
# Insights
# =============================================================================

@app.get("/teams/{team_id}/workload", response_model=List[WorkloadAnalysis])
async def analyze_workload(team_id: str, service: AutomationService = Depends(get_service)):
    return await service.analyze_workload(team_id)


@app.get("/tasks/{task_id}/prediction", response_model=TaskPrediction)
async def predict_completion(task_id: str, service: AutomationService = Depends(get_service)):
    return await service.predict_completion(task_id)


@app.post("/tasks/{task_id}/suggestions", response_model=List[SmartSuggestion])
async def generate_suggestions(task_id: str, service: AutomationService = Depends(get_service)):
    return await service.generate_suggestions(task_id)


@app.get("/tasks/{task_id}/suggestions", response_model=List[SmartSuggestion])
def list_open_suggestions(task_id: str, service: AutomationService = Depends(get_service)):
    """Suggestions not yet accepted or dismissed."""
    return service.list_open_suggestions(task_id)


@app.post("/suggestions/{suggestion_id}/accept", response_model=ExecutionReport)
async def accept_suggestion(suggestion_id: str, service: AutomationService = Depends(get_service)):
    return await service.accept_suggestion(suggestion_id)


@app.post("/suggestions/{suggestion_id}/dismiss", response_model=SmartSuggestion)
def dismiss_suggestion(suggestion_id: str, service: AutomationService = Depends(get_service)):
    return service.dismiss_suggestion(suggestion_id)


# =============================================================================
# Assignment policies
# =============================================================================

@app.put("/teams/{team_id}/assignment-policy", response_model=AssignmentPolicy)
def set_assignment_policy(
    team_id: str,
    draft: AssignmentPolicyDraft,
    service: AutomationService = Depends(get_service),
):
    return service.set_assignment_policy(draft.model_copy(update={"team_id": team_id}))


@app.get("/teams/{team_id}/assignment-policy", response_model=AssignmentPolicy)
def get_assignment_policy(team_id: str, service: AutomationService = Depends(get_service)):
    return service.get_assignment_policy(team_id)


@app.delete("/teams/{team_id}/assignment-policy", status_code=204)
def delete_assignment_policy(team_id: str, service: AutomationService = Depends(get_service)):
    service.delete_assignment_policy(team_id)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
