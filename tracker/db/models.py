"""
Database Models (SQLAlchemy ORM)
=============================================================================
TABLE DESIGN OVERVIEW:
  - users: people known to the tracker; email is the natural key and the
    role lives here (one role per user, `protected` pins the root admin)
  - departments: unique department names
  - employee_departments: the CURRENT department of a user (one row per
    user, overwritten on change, no history)
  - tasks: work items; `name_key` is the trimmed lowercase name and carries
    the uniqueness constraint so "Invoice" and " invoice" collide
  - legacy_identities: migration lookup from keys derived from
    pre-migration ids to durable user ids
  - goals: per-department KPI targets

Column types are the dialect-neutral ones (Uuid, DateTime, Date) so the
same models run on PostgreSQL in production and SQLite in the test suite.
=============================================================================
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from tracker.db.engine import Base


TASK_STATUSES = ("pending", "in progress", "completed")

# Column widths. Validators check input against these before any write.
NAME_LENGTH = 255
EMAIL_LENGTH = 255
DEPARTMENT_LENGTH = 100
KPI_LENGTH = 50
LEGACY_KEY_LENGTH = 64
LEGACY_ID_LENGTH = 255


def utcnow():
    """Helper to get current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# Users: identity and role
# =============================================================================
class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(NAME_LENGTH), nullable=False)
    email = Column(String(EMAIL_LENGTH), unique=True, nullable=False, index=True)  # always lowercase
    role = Column(String(50), nullable=False, default="employee")  # admin, manager, employee
    protected = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Department(Base):
    __tablename__ = "departments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(DEPARTMENT_LENGTH), unique=True, nullable=False)


class EmployeeDepartment(Base):
    __tablename__ = "employee_departments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True, nullable=False)
    department_id = Column(Uuid, ForeignKey("departments.id"), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# =============================================================================
# Tasks
# =============================================================================
# `employee` and `department` are display values as submitted; a task does
# not reference users by key and survives anything that happens to them.
# =============================================================================
class Task(Base):
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(NAME_LENGTH), nullable=False)
    name_key = Column(String(NAME_LENGTH), unique=True, nullable=False, index=True)
    employee = Column(String(NAME_LENGTH))
    department = Column(String(DEPARTMENT_LENGTH))
    date = Column(Date)
    status = Column(String(20), nullable=False, default="pending")
    comments = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# =============================================================================
# Legacy identities: migration shim storage
# =============================================================================
# Rows are written by scripts/import_legacy_employees.py and read only by
# LegacyIdentityShim. Drop the table together with the shim.
# =============================================================================
class LegacyIdentity(Base):
    __tablename__ = "legacy_identities"

    legacy_key = Column(String(LEGACY_KEY_LENGTH), primary_key=True)
    legacy_id = Column(String(LEGACY_ID_LENGTH), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# =============================================================================
# Goals: department KPIs
# =============================================================================
class Goal(Base):
    __tablename__ = "goals"
    __table_args__ = (UniqueConstraint("department", "kpi", name="uq_goals_department_kpi"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    department = Column(String(DEPARTMENT_LENGTH), nullable=False)
    kpi = Column(String(KPI_LENGTH), nullable=False)
    target_value = Column(Float, nullable=False, default=0.0)
    current_value = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def execution_pct(self) -> float:
        if not self.target_value:
            return 0.0
        return round(self.current_value / self.target_value * 100, 2)
