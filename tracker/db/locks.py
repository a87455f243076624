"""
Namespace Locks: one writer per key space
=============================================================================
Bulk operations are read-modify-write sequences: read what exists, decide
what is a duplicate, write the rest. Two such sequences on the same key
space must never interleave, or both may decide "new" for the same name.

Key spaces:
    task-names       tasks.name_key
    employee-emails  users.email / employee_departments
    goals            goals(department, kpi)

Within one process an asyncio.Lock per namespace serializes writers.
Across processes TrackerRepository.atomic() additionally takes a
PostgreSQL transaction-scoped advisory lock on the same namespace name.
=============================================================================
"""

import asyncio
import weakref

TASK_NAMES = "task-names"
EMPLOYEE_EMAILS = "employee-emails"
GOALS = "goals"


class NamespaceLocks:
    """
    Lazily created asyncio locks keyed by namespace name.

    Locks are kept per event loop: an asyncio.Lock that has been waited on
    is bound to the loop it was waited on, and test runners start a fresh
    loop per test.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

    def get(self, namespace: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        loop_locks = self._locks.setdefault(loop, {})
        if namespace not in loop_locks:
            loop_locks[namespace] = asyncio.Lock()
        return loop_locks[namespace]


namespace_locks = NamespaceLocks()
