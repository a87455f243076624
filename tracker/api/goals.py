"""
Department goal endpoints.

    GET /api/goals   goals/read
    PUT /api/goals   goals/write   {"goals": [{"department": "Sales", "kpi": "calls",
                                               "target": 100, "current": 40}]}
"""

import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from tracker.auth.dependencies import AccessContext, get_repository, require_permission
from tracker.auth.rbac import Action, Resource
from tracker.db.models import Goal
from tracker.db.repositories import TrackerRepository
from tracker.services.goals import GoalInput, save_goals

router = APIRouter(prefix="/goals", tags=["Goals"])


class GoalResponse(BaseModel):
    id: UUID
    department: str
    kpi: str
    target: float
    current: float
    execution_pct: float = Field(serialization_alias="executionPct")
    updated_at: datetime.datetime | None = Field(None, serialization_alias="updatedAt")


class GoalIn(BaseModel):
    department: str
    kpi: str
    target: float = Field(ge=0, allow_inf_nan=False)
    current: float = Field(0.0, ge=0, allow_inf_nan=False)


class GoalsUpdateRequest(BaseModel):
    goals: list[GoalIn]


def _goal(goal: Goal) -> GoalResponse:
    return GoalResponse(
        id=goal.id,
        department=goal.department,
        kpi=goal.kpi,
        target=goal.target_value,
        current=goal.current_value,
        execution_pct=goal.execution_pct,
        updated_at=goal.updated_at,
    )


@router.get("", response_model=list[GoalResponse])
async def list_goals(
    ctx: AccessContext = Depends(require_permission(Resource.GOALS, Action.READ)),
    repo: TrackerRepository = Depends(get_repository),
):
    return [_goal(goal) for goal in await repo.list_goals()]


@router.put("", response_model=list[GoalResponse])
async def update_goals(
    body: GoalsUpdateRequest,
    ctx: AccessContext = Depends(require_permission(Resource.GOALS, Action.WRITE)),
    repo: TrackerRepository = Depends(get_repository),
):
    goals = await save_goals(
        repo,
        [GoalInput(goal.department, goal.kpi, goal.target, goal.current) for goal in body.goals],
    )
    return [_goal(goal) for goal in goals]
