"""
Single-task operations.

Create, update and delete share the `task-names` namespace with the bulk
import, so a single create can never race a bulk import into a name
collision.
"""

from datetime import date
from typing import Any
from uuid import UUID

from tracker.db.locks import TASK_NAMES
from tracker.db.models import DEPARTMENT_LENGTH, NAME_LENGTH, TASK_STATUSES, Task
from tracker.db.repositories import TrackerRepository
from tracker.errors import DuplicateError, NotFoundError, ValidationError
from tracker.observability.logging import get_logger
from tracker.services.reconciliation import task_name_key

logger = get_logger(__name__)

EDITABLE_FIELDS = ("name", "employee", "department", "date", "status", "comments")

FIELD_LENGTHS = {"name": NAME_LENGTH, "employee": NAME_LENGTH, "department": DEPARTMENT_LENGTH}


def _check_status(status: str | None) -> None:
    if status is not None and status not in TASK_STATUSES:
        raise ValidationError(f"Unknown task status '{status}'", invalid=[status])


def _clean_name(name: Any) -> str:
    cleaned = name.strip() if isinstance(name, str) else ""
    if not cleaned:
        raise ValidationError("Task name is required", invalid=[name])
    return cleaned


def _check_lengths(fields: dict[str, Any]) -> None:
    too_long = [
        key
        for key, limit in FIELD_LENGTHS.items()
        if isinstance(fields.get(key), str) and len(fields[key]) > limit
    ]
    if too_long:
        raise ValidationError(
            "Fields too long: " + ", ".join(f"{key} (max {FIELD_LENGTHS[key]})" for key in too_long),
            invalid=too_long,
        )


async def create_task(
    repo: TrackerRepository,
    name: str,
    employee: str | None = None,
    department: str | None = None,
    due_date: date | None = None,
    status: str | None = None,
    comments: str | None = None,
) -> Task:
    """Create one task. Raises DuplicateError if the name is taken (ignoring case)."""
    name = _clean_name(name)
    _check_status(status)
    _check_lengths({"name": name, "employee": employee, "department": department})

    async with repo.atomic(TASK_NAMES):
        key = task_name_key(name)
        if await repo.get_task_by_name_key(key) is not None:
            raise DuplicateError(f"Task '{name}' already exists", duplicates=[key])

        task = Task(
            name=name,
            name_key=key,
            employee=employee,
            department=department,
            date=due_date,
            status=status or "pending",
            comments=comments,
        )
        await repo.add_tasks([task])

    logger.info("task_created", task_id=str(task.id))
    return task


async def update_task(repo: TrackerRepository, task_id: UUID, **fields: Any) -> Task:
    """
    Apply a partial update. Only EDITABLE_FIELDS are accepted; renaming
    re-checks uniqueness against every other task.
    """
    unknown = [key for key in fields if key not in EDITABLE_FIELDS]
    if unknown:
        raise ValidationError("Unknown task fields", invalid=unknown)
    if "status" in fields and fields["status"] not in TASK_STATUSES:
        raise ValidationError(f"Unknown task status '{fields['status']}'", invalid=[fields["status"]])
    if "name" in fields:
        fields["name"] = _clean_name(fields["name"])
    _check_lengths(fields)

    async with repo.atomic(TASK_NAMES):
        task = await repo.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", task_id=str(task_id))

        if "name" in fields:
            key = task_name_key(fields["name"])
            clash = await repo.get_task_by_name_key(key)
            if clash is not None and clash.id != task.id:
                raise DuplicateError(f"Task '{fields['name']}' already exists", duplicates=[key])
            fields["name_key"] = key

        await repo.update_task(task, **fields)

    logger.info("task_updated", task_id=str(task.id), fields=sorted(fields))
    return task


async def delete_task(repo: TrackerRepository, task_id: UUID) -> None:
    async with repo.atomic(TASK_NAMES):
        task = await repo.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", task_id=str(task_id))
        await repo.delete_task(task)

    logger.info("task_deleted", task_id=str(task_id))
