"""
Legacy Employee Import: one-time move off the JSON files
=============================================================================
Before the database, employees lived in `employees.json`:

    [{"id": "emp-000123", "name": "Ada", "email": "Ada@Example.com",
      "department": "R&D"}, ...]

and roles in an optional `user-roles.json`:

    [{"employeeId": "emp-000123", "role": "manager"}, ...]

This script:
  1. upserts every employee through the bulk reconciliation engine
     (users by email, department links, nothing duplicated on re-runs)
  2. registers each old `id` in legacy_identities, so a session that still
     carries only the old id resolves to the new user
     (see LegacyIdentityShim in tracker/auth/identity.py)
     An id whose key already belongs to a different user is skipped and
     listed at the end; keys are never moved between users.
  3. applies the old roles, leaving protected users alone

Re-running is safe.

Run: python -m scripts.import_legacy_employees storage/employees.json \\
         --roles storage/user-roles.json
=============================================================================
"""

import argparse
import asyncio
import json
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tracker.auth.identity import LegacyIdentityShim, normalize_email
from tracker.auth.rbac import parse_role
from tracker.db.engine import async_session_maker, engine
from tracker.db.locks import EMPLOYEE_EMAILS
from tracker.db.repositories import TrackerRepository
from tracker.errors import DuplicateError, ValidationError
from tracker.observability.logging import get_logger, setup_logging
from tracker.services.reconciliation import upsert_employee_departments

logger = get_logger(__name__)


def load_json_list(path: str | None) -> list[dict]:
    if not path:
        return []
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise SystemExit(f"{path}: expected a JSON list")
    return data


async def import_employees(repo: TrackerRepository, employees: list[dict], roles: list[dict]) -> dict:
    """Returns counts for the summary line."""
    result = await upsert_employee_departments(
        repo,
        [
            {"employee": emp.get("name"), "department": emp.get("department"), "email": emp.get("email")}
            for emp in employees
        ],
    )

    role_by_legacy_id = {str(entry.get("employeeId")): entry.get("role") for entry in roles}
    shim = LegacyIdentityShim(repo)
    registered = 0
    roles_applied = 0
    conflicts: list[str] = []

    async with repo.atomic(EMPLOYEE_EMAILS):
        users = await repo.get_users_by_emails(normalize_email(emp.get("email")) for emp in employees)
        for emp in employees:
            user = users.get(normalize_email(emp.get("email")))
            legacy_id = str(emp.get("id") or "")
            if user is None or not legacy_id:
                continue

            try:
                if await shim.register(legacy_id, user.id) is not None:
                    registered += 1
            except (DuplicateError, ValidationError) as exc:
                logger.warning("legacy_id_skipped", legacy_id=legacy_id, reason=exc.message)
                conflicts.append(legacy_id)

            role = parse_role(role_by_legacy_id.get(legacy_id))
            if role is not None and not user.protected and user.role != role.value:
                await repo.update_user_role(user, role.value)
                roles_applied += 1

    logger.info(
        "legacy_import_finished",
        created=len(result.created),
        updated=len(result.updated),
        legacy_keys=registered,
        roles=roles_applied,
        conflicts=len(conflicts),
    )
    return {
        "created": len(result.created),
        "updated": len(result.updated),
        "unchanged": result.duplicates,
        "legacy_keys": registered,
        "roles": roles_applied,
        "conflicts": conflicts,
    }


async def main(args: argparse.Namespace):
    setup_logging()
    employees = load_json_list(args.employees)
    roles = load_json_list(args.roles)

    print(f"Importing {len(employees)} employees...")
    async with async_session_maker() as session:
        counts = await import_employees(TrackerRepository(session), employees, roles)

    print(
        "Done: {created} created, {updated} updated, {unchanged} unchanged, "
        "{legacy_keys} legacy ids registered, {roles} roles applied".format(**counts)
    )
    if counts["conflicts"]:
        print(f"Skipped legacy ids (key already taken or too long): {', '.join(counts['conflicts'])}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import employees from the legacy JSON files")
    parser.add_argument("employees", help="path to employees.json")
    parser.add_argument("--roles", help="path to user-roles.json")
    asyncio.run(main(parser.parse_args()))
