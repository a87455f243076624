"""
Department KPI goals.

A goal is identified by (department, kpi). Saving a batch upserts every
goal in it under the `goals` namespace lock; goals not in the batch are
left as they are.
"""

import math
from dataclasses import dataclass
from typing import Iterable

from tracker.db.locks import GOALS
from tracker.db.models import DEPARTMENT_LENGTH, KPI_LENGTH, Goal
from tracker.db.repositories import TrackerRepository
from tracker.errors import DuplicateError, ValidationError
from tracker.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GoalInput:
    department: str
    kpi: str
    target: float
    current: float = 0.0


def validate_goals(goals: Iterable[GoalInput]) -> list[GoalInput]:
    cleaned: list[GoalInput] = []
    invalid = []
    for row, goal in enumerate(goals):
        department = (goal.department or "").strip()
        kpi = (goal.kpi or "").strip()
        errors = []
        if not department:
            errors.append("missing department")
        if not kpi:
            errors.append("missing kpi")
        if len(department) > DEPARTMENT_LENGTH:
            errors.append(f"department longer than {DEPARTMENT_LENGTH} characters")
        if len(kpi) > KPI_LENGTH:
            errors.append(f"kpi longer than {KPI_LENGTH} characters")
        if not all(math.isfinite(value) and value >= 0 for value in (goal.target, goal.current)):
            errors.append("values must be finite and not negative")
        if errors:
            invalid.append({"row": row, "errors": errors})
        else:
            cleaned.append(GoalInput(department, kpi, goal.target, goal.current))

    if invalid:
        raise ValidationError("Invalid goals", invalid=invalid)

    seen: set[tuple[str, str]] = set()
    duplicates = []
    for goal in cleaned:
        key = (goal.department, goal.kpi)
        if key in seen:
            duplicates.append(f"{goal.department}/{goal.kpi}")
        seen.add(key)
    if duplicates:
        raise DuplicateError("Duplicate goals in submission", duplicates=duplicates)

    return cleaned


async def save_goals(repo: TrackerRepository, goals: Iterable[GoalInput]) -> list[Goal]:
    cleaned = validate_goals(goals)

    async with repo.atomic(GOALS):
        for goal in cleaned:
            await repo.upsert_goal(goal.department, goal.kpi, goal.target, goal.current)

    logger.info("goals_saved", count=len(cleaned))
    return await repo.list_goals()
