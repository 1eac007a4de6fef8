"""
Database models for rules, recurring configs, automation logs, suggestions
and assignment policies.

Conditions, actions and other nested payloads are stored as JSON in their
wire shape.
"""

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Date, Boolean, JSON
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class RuleRecord(Base):
    """An automation rule and its trigger counters."""
    __tablename__ = "automation_rules"

    id = Column(String(64), primary_key=True)
    position = Column(Integer, nullable=False, index=True)  # Stored (evaluation) order
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    trigger = Column(String(50), nullable=False, index=True)
    conditions = Column(JSON, nullable=False, default=list)
    actions = Column(JSON, nullable=False, default=list)
    team_id = Column(String(255), nullable=True, index=True)
    apply_to_new_tasks = Column(Boolean, nullable=False, default=True)
    apply_to_existing_tasks = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(255), nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    trigger_count = Column(Integer, nullable=False, default=0)
    last_triggered_at = Column(DateTime(timezone=True), nullable=True)


class RecurringConfigRecord(Base):
    """A recurring-task configuration and its occurrence counters."""
    __tablename__ = "recurring_configs"

    id = Column(String(64), primary_key=True)
    task_template_id = Column(String(255), nullable=False, index=True)
    enabled = Column(Boolean, nullable=False, default=True)
    team_id = Column(String(255), nullable=True, index=True)
    pattern = Column(String(20), nullable=False)
    interval = Column(Integer, nullable=False, default=1)
    days_of_week = Column(JSON, nullable=False, default=list)
    day_of_month = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_condition = Column(JSON, nullable=False)  # {type, occurrences?, end_date?}
    create_in_advance_days = Column(Integer, nullable=False, default=0)
    auto_assign = Column(Boolean, nullable=False, default=False)
    auto_assignees = Column(JSON, nullable=False, default=list)
    created_by = Column(String(255), nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)
    total_occurrences = Column(Integer, nullable=False, default=0)
    last_occurrence_date = Column(Date, nullable=True)
    next_occurrence_date = Column(Date, nullable=True, index=True)


class AutomationLogRecord(Base):
    """Audit row for one fired rule."""
    __tablename__ = "automation_logs"

    id = Column(Integer, primary_key=True)
    rule_id = Column(String(64), nullable=False, index=True)
    rule_name = Column(String(255), nullable=False)
    task_id = Column(String(255), nullable=False, index=True)
    trigger = Column(String(50), nullable=False)
    triggered_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(20), nullable=False)  # 'success', 'failed', 'partial'
    actions_executed = Column(Integer, nullable=False, default=0)
    actions_failed = Column(Integer, nullable=False, default=0)
    conditions = Column(JSON, nullable=False, default=list)
    actions = Column(JSON, nullable=False, default=list)
    error_message = Column(Text, nullable=True)
    meta_data = Column(JSON, nullable=True)  # Trigger metadata


class SuggestionRecord(Base):
    """A generated suggestion awaiting accept or dismiss."""
    __tablename__ = "smart_suggestions"

    id = Column(String(64), primary_key=True)
    type = Column(String(50), nullable=False)
    task_id = Column(String(255), nullable=True, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False)
    confidence = Column(Integer, nullable=False)
    reasoning = Column(Text, nullable=False)
    suggested_action = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)
    applied = Column(Boolean, nullable=False, default=False)
    applied_at = Column(DateTime(timezone=True), nullable=True)
    dismissed = Column(Boolean, nullable=False, default=False)
    dismissed_at = Column(DateTime(timezone=True), nullable=True)


class AssignmentPolicyRecord(Base):
    """A team's auto-assignment policy."""
    __tablename__ = "assignment_policies"

    id = Column(String(64), primary_key=True)
    team_id = Column(String(255), nullable=True, unique=True, index=True)
    enabled = Column(Boolean, nullable=False, default=True)
    strategy = Column(String(50), nullable=False)
    fallback_strategy = Column(String(50), nullable=True)
    apply_to_tags = Column(JSON, nullable=False, default=list)
    apply_to_priorities = Column(JSON, nullable=False, default=list)
    exclude_members = Column(JSON, nullable=False, default=list)
    skill_keywords = Column(JSON, nullable=False, default=dict)  # user id -> keywords
    max_tasks_per_member = Column(Integer, nullable=True)
    max_hours_per_member = Column(Integer, nullable=True)
    created_by = Column(String(255), nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    assignment_count = Column(Integer, nullable=False, default=0)
