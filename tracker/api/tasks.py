"""
Task API Endpoints
=============================================================================
  GET    /api/tasks          tasks/read         list
  POST   /api/tasks          tasks/write        create one (201)
  PUT    /api/tasks/{id}     tasks/write        partial update
  DELETE /api/tasks/{id}     tasks/delete       remove (204)
  POST   /api/tasks/bulk     tasks/bulk_create  import a list of names (201)

Bulk import body and response:

    POST /api/tasks/bulk   {"names": ["Invoice", "Q3-report"]}
    201                    {"addedCount": 1, "duplicates": 1,
                            "duplicateNames": ["Invoice"], "tasks": [...]}

A batch that repeats a name (ignoring case) or contains a name that is not
a single token is rejected whole with 400; see
tracker/services/reconciliation.py for the rules.
=============================================================================
"""

import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from tracker.auth.dependencies import AccessContext, get_repository, require_permission
from tracker.auth.rbac import Action, Resource
from tracker.db.repositories import TrackerRepository
from tracker.services import tasks as task_service
from tracker.services.reconciliation import import_task_names

router = APIRouter(prefix="/tasks", tags=["Tasks"])


# =============================================================================
# Pydantic Schemas
# =============================================================================
class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    employee: str | None = None
    department: str | None = None
    date: datetime.date | None = None
    status: str
    comments: str | None = None
    created_at: datetime.datetime | None = Field(None, serialization_alias="createdAt")
    updated_at: datetime.datetime | None = Field(None, serialization_alias="updatedAt")


class TaskCreateRequest(BaseModel):
    """The web form posts `taskName`; `name` is accepted too."""

    name: str = Field(validation_alias=AliasChoices("taskName", "name"))
    employee: str | None = None
    department: str | None = None
    date: datetime.date | None = None
    status: str | None = None
    comments: str | None = None


class TaskUpdateRequest(BaseModel):
    name: str | None = Field(None, validation_alias=AliasChoices("taskName", "name"))
    employee: str | None = None
    department: str | None = None
    date: datetime.date | None = None
    status: str | None = None
    comments: str | None = None


class BulkTaskRequest(BaseModel):
    names: list[str] = Field(validation_alias=AliasChoices("names", "taskNames", "tasks"))


class BulkTaskResponse(BaseModel):
    added_count: int = Field(serialization_alias="addedCount")
    duplicates: int
    duplicate_names: list[str] = Field(serialization_alias="duplicateNames")
    tasks: list[TaskResponse]


# =============================================================================
# Endpoints
# =============================================================================
@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    ctx: AccessContext = Depends(require_permission(Resource.TASKS, Action.READ)),
    repo: TrackerRepository = Depends(get_repository),
):
    return [TaskResponse.model_validate(task) for task in await repo.list_tasks()]


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreateRequest,
    ctx: AccessContext = Depends(require_permission(Resource.TASKS, Action.WRITE)),
    repo: TrackerRepository = Depends(get_repository),
):
    task = await task_service.create_task(
        repo,
        name=body.name,
        employee=body.employee,
        department=body.department,
        due_date=body.date,
        status=body.status,
        comments=body.comments,
    )
    return TaskResponse.model_validate(task)


@router.post("/bulk", response_model=BulkTaskResponse, status_code=status.HTTP_201_CREATED)
async def bulk_create_tasks(
    body: BulkTaskRequest,
    ctx: AccessContext = Depends(require_permission(Resource.TASKS, Action.BULK_CREATE)),
    repo: TrackerRepository = Depends(get_repository),
):
    result = await import_task_names(repo, body.names)
    return BulkTaskResponse(
        added_count=result.added_count,
        duplicates=result.duplicates,
        duplicate_names=result.duplicate_names,
        tasks=[TaskResponse.model_validate(task) for task in result.tasks],
    )


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: UUID,
    body: TaskUpdateRequest,
    ctx: AccessContext = Depends(require_permission(Resource.TASKS, Action.WRITE)),
    repo: TrackerRepository = Depends(get_repository),
):
    """Only the fields present in the body are changed."""
    task = await task_service.update_task(repo, task_id, **body.model_dump(exclude_unset=True))
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: UUID,
    ctx: AccessContext = Depends(require_permission(Resource.TASKS, Action.DELETE)),
    repo: TrackerRepository = Depends(get_repository),
):
    await task_service.delete_task(repo, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
