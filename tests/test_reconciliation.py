"""Bulk reconciliation: task-name import and employee/department upsert."""

import asyncio

import pytest
from prometheus_client import REGISTRY

from tracker.db.repositories import TrackerRepository
from tracker.errors import DuplicateError, ValidationError
from tracker.services.reconciliation import (
    EmployeeEntry,
    import_task_names,
    parse_employee_lines,
    upsert_employee_departments,
)


# =============================================================================
# Task bulk-import
# =============================================================================
class TestImportTaskNames:
    async def test_into_empty_store(self, repo):
        result = await import_task_names(repo, ["Task1", "Task2"])

        assert result.added_count == 2
        assert result.duplicates == 0
        tasks = await repo.list_tasks()
        assert sorted(task.name for task in tasks) == ["Task1", "Task2"]
        assert {task.status for task in tasks} == {"pending"}

    async def test_names_are_trimmed(self, repo):
        result = await import_task_names(repo, ["  Invoice  "])
        assert result.tasks[0].name == "Invoice"
        assert result.tasks[0].name_key == "invoice"

    async def test_case_insensitive_duplicate_in_batch_rejects_all(self, repo):
        with pytest.raises(DuplicateError) as exc_info:
            await import_task_names(repo, ["Invoice", "invoice", "Report"])

        assert exc_info.value.duplicates == ["invoice"]
        assert await repo.list_tasks() == []

    @pytest.mark.parametrize("bad_name", ["two words", "50%", "", "   ", "naïve"])
    async def test_invalid_name_rejects_all(self, repo, bad_name):
        with pytest.raises(ValidationError) as exc_info:
            await import_task_names(repo, ["Valid", bad_name])

        assert exc_info.value.invalid == [bad_name]
        assert await repo.list_tasks() == []

    async def test_empty_batch(self, repo):
        with pytest.raises(ValidationError):
            await import_task_names(repo, [])

    async def test_name_longer_than_column_rejects_all(self, repo):
        too_long = "A" * 256
        with pytest.raises(ValidationError) as exc_info:
            await import_task_names(repo, ["Valid", too_long])

        assert exc_info.value.invalid == [too_long]
        assert await repo.list_tasks() == []

    async def test_name_at_column_width_is_accepted(self, repo):
        result = await import_task_names(repo, ["A" * 255])
        assert result.added_count == 1

    async def test_existing_names_are_skipped_and_reported(self, repo):
        await import_task_names(repo, ["Invoice"])

        result = await import_task_names(repo, ["INVOICE", "Report"])

        assert result.added_count == 1
        assert result.duplicates == 1
        assert result.duplicate_names == ["INVOICE"]
        assert sorted(task.name for task in await repo.list_tasks()) == ["Invoice", "Report"]

    async def test_concurrent_imports_never_double_insert(self, session_maker):
        async def run(names):
            async with session_maker() as session:
                return await import_task_names(TrackerRepository(session), names)

        first, second = await asyncio.gather(run(["Alpha", "Beta"]), run(["beta", "Gamma"]))

        assert first.added_count + second.added_count == 3
        assert first.duplicates + second.duplicates == 1


# =============================================================================
# Employee-department-email upsert
# =============================================================================
ADA = {"employee": "Ada", "department": "R&D", "email": "Ada@Example.com"}


class TestUpsertEmployeeDepartments:
    async def test_creates_user_and_link(self, repo):
        result = await upsert_employee_departments(repo, [ADA])

        assert len(result.created) == 1
        record = result.created[0]
        assert record.email == "ada@example.com"
        assert record.department == "R&D"
        assert record.role == "employee"
        assert await repo.get_department_name(record.id) == "R&D"

    async def test_same_triple_twice_is_idempotent(self, repo):
        await upsert_employee_departments(repo, [ADA])
        result = await upsert_employee_departments(repo, [ADA])

        assert result.created == []
        assert result.updated == []
        assert result.duplicates == 1
        users = await repo.list_users()
        assert [user.email for user, _ in users] == ["ada@example.com"]

    async def test_existing_user_is_merged_not_replaced(self, repo, make_user):
        user = await make_user("ada@example.com", name="Ada Lovelace", role="manager")
        user_id = user.id

        result = await upsert_employee_departments(
            repo, [{"employee": "A. L.", "department": "Ops", "email": "ada@example.com"}]
        )
        assert [record.id for record in result.updated] == [user_id]

        result = await upsert_employee_departments(
            repo, [{"employee": "A. L.", "department": "R&D", "email": "ADA@example.com"}]
        )
        assert [record.department for record in result.updated] == ["R&D"]

        stored = await repo.get_user_by_id(user_id)
        assert stored.name == "Ada Lovelace"
        assert stored.role == "manager"
        assert await repo.get_department_name(user_id) == "R&D"

    async def test_departments_are_shared(self, repo):
        result = await upsert_employee_departments(
            repo,
            [
                ADA,
                EmployeeEntry(employee="Grace", department="R&D", email="grace@example.com"),
            ],
        )
        assert len(result.created) == 2
        departments = await repo.get_departments_by_names(["R&D"])
        assert list(departments) == ["R&D"]

    async def test_incomplete_triple_rejects_batch(self, repo):
        with pytest.raises(ValidationError) as exc_info:
            await upsert_employee_departments(
                repo,
                [ADA, {"employee": "Grace", "department": "  ", "email": "grace@example.com"}],
            )

        assert exc_info.value.invalid == [{"row": 1, "errors": ["missing department"]}]
        assert await repo.list_users() == []

    async def test_fields_longer_than_columns_reject_batch(self, repo):
        with pytest.raises(ValidationError) as exc_info:
            await upsert_employee_departments(
                repo,
                [ADA, {"employee": "Grace", "department": "D" * 101, "email": "grace@example.com"}],
            )

        assert exc_info.value.invalid == [
            {"row": 1, "errors": ["department longer than 100 characters"]}
        ]
        assert await repo.list_users() == []

    async def test_duplicate_email_in_batch(self, repo):
        with pytest.raises(DuplicateError) as exc_info:
            await upsert_employee_departments(
                repo, [ADA, {"employee": "Ada L", "department": "Ops", "email": "ada@example.com"}]
            )

        assert exc_info.value.duplicates == ["ada@example.com"]
        assert await repo.list_users() == []

    async def test_concurrent_same_triple_creates_one_user(self, session_maker):
        async def run():
            async with session_maker() as session:
                return await upsert_employee_departments(TrackerRepository(session), [ADA])

        results = await asyncio.gather(run(), run())

        assert sorted(len(result.created) for result in results) == [0, 1]
        assert sorted(result.duplicates for result in results) == [0, 1]


class TestParseEmployeeLines:
    def test_parses_and_skips_blank_lines(self):
        entries = parse_employee_lines("Ada; R&D ;ada@example.com\n\n  \nGrace;Ops;grace@example.com\n")
        assert entries == [
            EmployeeEntry("Ada", "R&D", "ada@example.com"),
            EmployeeEntry("Grace", "Ops", "grace@example.com"),
        ]

    def test_wrong_field_count(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_employee_lines("Ada;R&D;ada@example.com\nGrace;grace@example.com")

        assert [offender["line"] for offender in exc_info.value.invalid] == [2]

    def test_malformed_lines_are_counted_as_rejected(self):
        labels = {"operation": "employees", "outcome": "rejected_validation"}
        before = REGISTRY.get_sample_value("bulk_reconciliation_total", labels) or 0.0

        with pytest.raises(ValidationError):
            parse_employee_lines("just one field")

        assert REGISTRY.get_sample_value("bulk_reconciliation_total", labels) == before + 1
