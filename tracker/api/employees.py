"""
Employee API Endpoints
=============================================================================
  GET      /api/employees               employees/read   users + department
  GET      /api/employee-departments    employees/read   current assignments
  POST/PUT /api/employee-departments    employees/write  bulk upsert

The bulk upsert takes either structured entries or the raw text the admin
pasted into the form, one `name;department;email` per line:

    {"entries": [{"employee": "Ada", "department": "R&D",
                  "email": "ada@example.com"}]}
    {"lines": "Ada;R&D;ada@example.com\\nGrace;Ops;grace@example.com"}

Answers 201 when at least one user was created, 200 otherwise, with
{"created": [...], "updated": [...], "duplicates": n}.
=============================================================================
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import AliasChoices, BaseModel, Field

from tracker.auth.dependencies import AccessContext, get_repository, require_permission
from tracker.auth.rbac import Action, Resource
from tracker.db.repositories import TrackerRepository
from tracker.errors import ValidationError
from tracker.services.reconciliation import (
    EmployeeRecord,
    parse_employee_lines,
    upsert_employee_departments,
)

router = APIRouter(tags=["Employees"])


# =============================================================================
# Pydantic Schemas
# =============================================================================
class EmployeeResponse(BaseModel):
    id: UUID
    name: str
    email: str
    department: str | None = None
    role: str


class EmployeeDepartmentResponse(BaseModel):
    employee: str
    department: str
    email: str


class EmployeeEntryIn(BaseModel):
    # Optional on purpose: an empty field is reported per row by the
    # reconciliation engine instead of failing schema validation.
    employee: str | None = Field(None, validation_alias=AliasChoices("employee", "name"))
    department: str | None = None
    email: str | None = None


class EmployeeDepartmentsRequest(BaseModel):
    entries: list[EmployeeEntryIn] | None = None
    lines: str | None = None


class EmployeeUpsertResponse(BaseModel):
    created: list[EmployeeResponse]
    updated: list[EmployeeResponse]
    duplicates: int


def _employee(record: EmployeeRecord) -> EmployeeResponse:
    return EmployeeResponse(
        id=record.id,
        name=record.name,
        email=record.email,
        department=record.department,
        role=record.role,
    )


# =============================================================================
# Endpoints
# =============================================================================
@router.get("/employees", response_model=list[EmployeeResponse])
async def list_employees(
    ctx: AccessContext = Depends(require_permission(Resource.EMPLOYEES, Action.READ)),
    repo: TrackerRepository = Depends(get_repository),
):
    return [
        EmployeeResponse(
            id=user.id,
            name=user.name,
            email=user.email,
            department=department,
            role=user.role,
        )
        for user, department in await repo.list_users()
    ]


@router.get("/employee-departments", response_model=list[EmployeeDepartmentResponse])
async def list_employee_departments(
    ctx: AccessContext = Depends(require_permission(Resource.EMPLOYEES, Action.READ)),
    repo: TrackerRepository = Depends(get_repository),
):
    return [
        EmployeeDepartmentResponse(employee=user.name, department=department, email=user.email)
        for user, department in await repo.list_users()
        if department is not None
    ]


@router.api_route(
    "/employee-departments",
    methods=["POST", "PUT"],
    response_model=EmployeeUpsertResponse,
)
async def upsert_employees(
    body: EmployeeDepartmentsRequest,
    response: Response,
    ctx: AccessContext = Depends(require_permission(Resource.EMPLOYEES, Action.WRITE)),
    repo: TrackerRepository = Depends(get_repository),
):
    if body.entries is not None:
        entries = [entry.model_dump() for entry in body.entries]
    elif body.lines is not None:
        entries = parse_employee_lines(body.lines)
    else:
        raise ValidationError("Provide either `entries` or `lines`", invalid=[])

    result = await upsert_employee_departments(repo, entries)

    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return EmployeeUpsertResponse(
        created=[_employee(record) for record in result.created],
        updated=[_employee(record) for record in result.updated],
        duplicates=result.duplicates,
    )
