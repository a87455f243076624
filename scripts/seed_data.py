"""
Seed Data Script: Populate the database with sample data
=============================================================================
Creates, through the same services the API uses:
  - 4 users in 3 departments (one each of admin, manager, employee, plus
    a second employee) so every row of the permission matrix can be tried
  - a handful of pending tasks
  - two department goals

Safe to re-run: the bulk operations skip whatever already exists.

Sign-in is OAuth only, so there are no passwords. To call the API as one of
these users, issue a session token for their email:

    from tracker.auth.session import issue_session_token
    issue_session_token({"email": "nadia.admin@example.com"})

Run: python -m scripts.seed_data
=============================================================================
"""

import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tracker.db.engine import async_session_maker, engine
from tracker.db.locks import EMPLOYEE_EMAILS
from tracker.db.repositories import TrackerRepository
from tracker.observability.logging import setup_logging
from tracker.services.goals import GoalInput, save_goals
from tracker.services.reconciliation import (
    EmployeeEntry,
    import_task_names,
    upsert_employee_departments,
)

EMPLOYEES = [
    EmployeeEntry("Nadia Haddad", "Operations", "nadia.admin@example.com"),
    EmployeeEntry("Karim Mansour", "Sales", "karim.manager@example.com"),
    EmployeeEntry("Lea Martin", "Sales", "lea.martin@example.com"),
    EmployeeEntry("Omar Said", "Engineering", "omar.said@example.com"),
]

ROLES = {
    "nadia.admin@example.com": "admin",
    "karim.manager@example.com": "manager",
}

TASK_NAMES = ["Invoice-review", "Q3-report", "Onboarding", "fix_login", "Inventory"]

GOALS = [
    GoalInput("Sales", "calls", target=120, current=45),
    GoalInput("Engineering", "releases", target=4, current=1),
]


async def seed_employees(repo: TrackerRepository):
    result = await upsert_employee_departments(repo, EMPLOYEES)
    print(
        f"  Created {len(result.created)}, updated {len(result.updated)}, "
        f"unchanged {result.duplicates}"
    )


async def seed_roles(repo: TrackerRepository):
    """
    Seeds write roles directly. The Role Store is for runtime changes and
    refuses protected users, which is not what a fresh database needs.
    """
    async with repo.atomic(EMPLOYEE_EMAILS):
        users = await repo.get_users_by_emails(ROLES)
        for email, role in ROLES.items():
            if email in users:
                await repo.update_user_role(users[email], role)
    print(f"  Assigned {len(ROLES)} roles (others stay employee)")


async def seed_tasks(repo: TrackerRepository):
    result = await import_task_names(repo, TASK_NAMES)
    print(f"  Added {result.added_count} tasks, {result.duplicates} already present")


async def seed_goals(repo: TrackerRepository):
    goals = await save_goals(repo, GOALS)
    print(f"  {len(goals)} goals stored")


async def main():
    """Run all seed functions."""
    setup_logging()
    print("Seeding database...")
    print("=" * 50)

    async with async_session_maker() as session:
        repo = TrackerRepository(session)

        print("\n1. Seeding employees...")
        await seed_employees(repo)

        print("\n2. Seeding roles...")
        await seed_roles(repo)

        print("\n3. Seeding tasks...")
        await seed_tasks(repo)

        print("\n4. Seeding goals...")
        await seed_goals(repo)

    print("\n" + "=" * 50)
    print("Seeding complete!")
    print("\nSample users:")
    for entry in EMPLOYEES:
        print(f"  {entry.email:<28} ({ROLES.get(entry.email, 'employee')})")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
