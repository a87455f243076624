"""
API Router Aggregator
=============================================================================
  - health.py         → /health, /ready, /metrics
  - auth.py           → /auth/status, /auth/logout
  - tasks.py          → /api/tasks/*
  - employees.py      → /api/employees, /api/employee-departments
  - roles.py          → /api/roles
  - goals.py          → /api/goals
  - notifications.py  → /api/notifications/send

Everything under /api sits behind require_permission; health and auth do
not.
=============================================================================
"""

from fastapi import APIRouter

from tracker.api.auth import router as auth_router
from tracker.api.employees import router as employees_router
from tracker.api.goals import router as goals_router
from tracker.api.health import router as health_router
from tracker.api.notifications import router as notifications_router
from tracker.api.roles import router as roles_router
from tracker.api.tasks import router as tasks_router

# Main API router: aggregates all sub-routers
api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(auth_router)

api_router.include_router(tasks_router, prefix="/api")
api_router.include_router(employees_router, prefix="/api")
api_router.include_router(roles_router, prefix="/api")
api_router.include_router(goals_router, prefix="/api")
api_router.include_router(notifications_router, prefix="/api")
