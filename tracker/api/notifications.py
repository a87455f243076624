"""
Notification endpoint.

    POST /api/notifications/send   notifications/write
    {"notifications": [{"taskId": "...", "taskName": "Invoice",
                        "employeeName": "Ada", "email": "ada@example.com",
                        "message": "Please update the status"}]}
    -> {"notificationCount": 1, "recipients": ["ada@example.com"]}
"""

from fastapi import APIRouter, Depends, Request
from pydantic import AliasChoices, BaseModel, Field

from tracker.auth.dependencies import AccessContext, require_permission
from tracker.auth.rbac import Action, Resource
from tracker.services.notifications import (
    EmailSender,
    NotificationRequest,
    NotificationService,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class NotificationIn(BaseModel):
    task_id: str | None = Field(None, validation_alias=AliasChoices("taskId", "task_id"))
    task_name: str | None = Field(None, validation_alias=AliasChoices("taskName", "task_name"))
    employee_name: str | None = Field(
        None, validation_alias=AliasChoices("employeeName", "employee_name")
    )
    email: str = ""
    message: str = ""


class SendNotificationsRequest(BaseModel):
    notifications: list[NotificationIn]


class SendNotificationsResponse(BaseModel):
    notification_count: int = Field(serialization_alias="notificationCount")
    recipients: list[str]


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


@router.post("/send", response_model=SendNotificationsResponse)
async def send_notifications(
    body: SendNotificationsRequest,
    ctx: AccessContext = Depends(require_permission(Resource.NOTIFICATIONS, Action.WRITE)),
    sender: EmailSender = Depends(get_email_sender),
):
    requests = [
        NotificationRequest(
            email=item.email,
            message=item.message,
            task_id=item.task_id,
            task_name=item.task_name,
            employee_name=item.employee_name,
        )
        for item in body.notifications
    ]
    result = await NotificationService(sender).send(requests)
    return SendNotificationsResponse(
        notification_count=result.notification_count,
        recipients=result.recipients,
    )
