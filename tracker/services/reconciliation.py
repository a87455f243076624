"""
Bulk Reconciliation Engine
=============================================================================
Two bulk operations merge client-submitted batches into the canonical
stores.

DUPLICATE POLICY (the same for both operations):
  - duplicates INSIDE the batch reject the whole batch; the caller has to
    resubmit a corrected set, nothing is silently dropped;
  - records that ALREADY EXIST in the store are skipped and counted in
    `duplicates`; everything else is written.

ORDER OF WORK:
  1. validate (pure, no I/O)           -> ValidationError, nothing written
  2. intra-batch duplicates (pure)     -> DuplicateError, nothing written
  3. inside repo.atomic(namespace):
       read existing keys, decide, write, commit once

Step 3 runs under the namespace lock, so two concurrent submissions of the
same names can never both see "does not exist yet".

TASK NAME FORMAT:
  One token of letters, digits, `_` and `-` after trimming:
      "Invoice", "Q3-report", "fix_login"   valid
      "two words", "50%", ""                 invalid
=============================================================================
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping
from uuid import UUID

from tracker.db.locks import EMPLOYEE_EMAILS, TASK_NAMES
from tracker.db.models import DEPARTMENT_LENGTH, EMAIL_LENGTH, NAME_LENGTH, Task
from tracker.db.repositories import TrackerRepository
from tracker.errors import DuplicateError, ValidationError
from tracker.observability.logging import get_logger
from tracker.observability.metrics import record_bulk_outcome

logger = get_logger(__name__)

TASK_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def task_name_key(name: str) -> str:
    """Normalization under which task names must be unique."""
    return name.strip().lower()


def _duplicates(keys: Iterable[str]) -> list[str]:
    """Keys that occur more than once, in order of first appearance."""
    counts = Counter(keys)
    return [key for key, count in counts.items() if count > 1]


# =============================================================================
# Task bulk-import
# =============================================================================
@dataclass
class TaskImportResult:
    added_count: int
    duplicates: int
    duplicate_names: list[str] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)


def validate_task_names(names: Iterable[Any]) -> list[str]:
    """Trim every name and check the token format. Returns the trimmed names."""
    cleaned: list[str] = []
    invalid: list[Any] = []
    for raw in names:
        name = raw.strip() if isinstance(raw, str) else ""
        if TASK_NAME_PATTERN.fullmatch(name) and len(name) <= NAME_LENGTH:
            cleaned.append(name)
        else:
            invalid.append(raw)

    if invalid:
        raise ValidationError(
            "Task names must be a single word of letters, digits, '_' or '-', "
            f"at most {NAME_LENGTH} characters",
            invalid=invalid,
        )
    if not cleaned:
        raise ValidationError("No task names submitted", invalid=[])
    return cleaned


async def import_task_names(repo: TrackerRepository, names: Iterable[Any]) -> TaskImportResult:
    """
    Insert a batch of task names as new `pending` tasks.

    RAISES:
      ValidationError: a name is empty or not a single token.
      DuplicateError: two names in the batch collide ignoring case.
    """
    try:
        cleaned = validate_task_names(names)
    except ValidationError:
        record_bulk_outcome("tasks", "rejected_validation")
        raise

    in_batch = _duplicates(task_name_key(name) for name in cleaned)
    if in_batch:
        record_bulk_outcome("tasks", "rejected_duplicate")
        raise DuplicateError("Duplicate task names in submission", duplicates=in_batch)

    async with repo.atomic(TASK_NAMES):
        existing = await repo.get_existing_name_keys(task_name_key(name) for name in cleaned)

        skipped = [name for name in cleaned if task_name_key(name) in existing]
        new_tasks = [
            Task(name=name, name_key=task_name_key(name), status="pending")
            for name in cleaned
            if task_name_key(name) not in existing
        ]
        await repo.add_tasks(new_tasks)

    result = TaskImportResult(
        added_count=len(new_tasks),
        duplicates=len(skipped),
        duplicate_names=skipped,
        tasks=new_tasks,
    )
    record_bulk_outcome("tasks", "committed", created=result.added_count, skipped=result.duplicates)
    logger.info("bulk_tasks_imported", added=result.added_count, duplicates=result.duplicates)
    return result


# =============================================================================
# Employee-department-email bulk upsert
# =============================================================================
@dataclass(frozen=True)
class EmployeeEntry:
    employee: str
    department: str
    email: str


@dataclass
class EmployeeRecord:
    id: UUID
    name: str
    email: str
    department: str
    role: str


@dataclass
class EmployeeUpsertResult:
    created: list[EmployeeRecord] = field(default_factory=list)
    updated: list[EmployeeRecord] = field(default_factory=list)
    duplicates: int = 0


def parse_employee_lines(text: str) -> list[EmployeeEntry]:
    """
    Parse `name;department;email` lines, one employee per line.

    Blank lines are ignored. Lines that do not have exactly three fields
    are reported together as a ValidationError.
    """
    entries: list[EmployeeEntry] = []
    invalid: list[dict[str, Any]] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        parts = line.split(";")
        if len(parts) != 3:
            invalid.append({"line": line_number, "errors": ["expected name;department;email"]})
            continue
        entries.append(EmployeeEntry(*(part.strip() for part in parts)))

    if invalid:
        record_bulk_outcome("employees", "rejected_validation")
        raise ValidationError("Malformed employee lines", invalid=invalid)
    return entries


def _coerce_entry(raw: EmployeeEntry | Mapping[str, Any]) -> EmployeeEntry:
    if isinstance(raw, EmployeeEntry):
        values = (raw.employee, raw.department, raw.email)
    else:
        values = (raw.get("employee"), raw.get("department"), raw.get("email"))
    employee, department, email = (v.strip() if isinstance(v, str) else "" for v in values)
    return EmployeeEntry(employee=employee, department=department, email=email.lower())


_EMPLOYEE_FIELD_LENGTHS = (
    ("employee", NAME_LENGTH),
    ("department", DEPARTMENT_LENGTH),
    ("email", EMAIL_LENGTH),
)


def validate_employee_entries(
    entries: Iterable[EmployeeEntry | Mapping[str, Any]],
) -> list[EmployeeEntry]:
    """Trim and lowercase; every field must be present and the email plausible."""
    cleaned: list[EmployeeEntry] = []
    invalid: list[dict[str, Any]] = []
    for row, raw in enumerate(entries):
        entry = _coerce_entry(raw)
        errors = [f"missing {name}" for name in ("employee", "department", "email") if not getattr(entry, name)]
        if entry.email and "@" not in entry.email:
            errors.append("invalid email")
        for name, limit in _EMPLOYEE_FIELD_LENGTHS:
            if len(getattr(entry, name)) > limit:
                errors.append(f"{name} longer than {limit} characters")
        if errors:
            invalid.append({"row": row, "errors": errors})
        else:
            cleaned.append(entry)

    if invalid:
        raise ValidationError("Invalid employee entries", invalid=invalid)
    if not cleaned:
        raise ValidationError("No employee entries submitted", invalid=[])
    return cleaned


async def upsert_employee_departments(
    repo: TrackerRepository,
    entries: Iterable[EmployeeEntry | Mapping[str, Any]],
) -> EmployeeUpsertResult:
    """
    Merge employee/department/email triples into users and department links.

    Email (lowercased) is the join key. An existing user only gets its
    department link updated; name and role are left alone. A new email
    creates a user with role `employee`. Re-submitting a triple that is
    already in place changes nothing and counts as a duplicate.

    RAISES:
      ValidationError: a triple has an empty field or an unusable email.
      DuplicateError: the same email appears twice in the batch.
    """
    try:
        cleaned = validate_employee_entries(entries)
    except ValidationError:
        record_bulk_outcome("employees", "rejected_validation")
        raise

    in_batch = _duplicates(entry.email for entry in cleaned)
    if in_batch:
        record_bulk_outcome("employees", "rejected_duplicate")
        raise DuplicateError("Duplicate emails in submission", duplicates=in_batch)

    result = EmployeeUpsertResult()
    async with repo.atomic(EMPLOYEE_EMAILS):
        users = await repo.get_users_by_emails(entry.email for entry in cleaned)
        departments = await repo.get_or_create_departments(entry.department for entry in cleaned)
        links = await repo.get_links_for_users(user.id for user in users.values())

        for entry in cleaned:
            department = departments[entry.department]
            user = users.get(entry.email)

            if user is None:
                user = await repo.create_user(name=entry.employee, email=entry.email)
                await repo.set_user_department(user.id, department.id)
                result.created.append(_record(user, entry.department))
                continue

            link = links.get(user.id)
            if link is not None and link.department_id == department.id:
                result.duplicates += 1
                continue

            await repo.set_user_department(user.id, department.id, existing=link)
            result.updated.append(_record(user, entry.department))

    record_bulk_outcome(
        "employees",
        "committed",
        created=len(result.created),
        updated=len(result.updated),
        skipped=result.duplicates,
    )
    logger.info(
        "bulk_employees_upserted",
        created=len(result.created),
        updated=len(result.updated),
        duplicates=result.duplicates,
    )
    return result


def _record(user, department: str) -> EmployeeRecord:
    return EmployeeRecord(
        id=user.id,
        name=user.name,
        email=user.email,
        department=department,
        role=user.role,
    )
