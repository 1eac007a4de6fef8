"""Database package for rules, recurring configs, logs, suggestions and assignment policies."""

from automation_engine.db.database import Database, get_database, get_db, init_db
from automation_engine.db.models import (
    Base,
    RuleRecord,
    RecurringConfigRecord,
    AutomationLogRecord,
    SuggestionRecord,
    AssignmentPolicyRecord,
)
from automation_engine.db.repositories import (
    AssignmentPolicyRepository,
    RecurringConfigRepository,
    RuleRepository,
    SuggestionRepository,
)

__all__ = [
    "Database",
    "get_database",
    "get_db",
    "init_db",
    "Base",
    "RuleRecord",
    "RecurringConfigRecord",
    "AutomationLogRecord",
    "SuggestionRecord",
    "AssignmentPolicyRecord",
    "AssignmentPolicyRepository",
    "RecurringConfigRepository",
    "RuleRepository",
    "SuggestionRepository",
]
