"""
Authentication Status Endpoints
=============================================================================
The OAuth handshake happens outside this service. Once it succeeds the
collaborator calls tracker.auth.session.issue_session_token(profile) and
hands the token to the browser, either as the session cookie or for use
as `Authorization: Bearer <token>`.

What is left for this router:

  GET  /auth/status   who am I? never 401s, the UI polls it on load
      {"authenticated": true,
       "user": {"id": "...", "email": "ada@example.com"},
       "role": "manager",
       "permissions": {"tasks": "read", "roles": "none", ...}}

  POST /auth/logout   clears the session cookie
=============================================================================
"""

from fastapi import APIRouter, Depends, Response, status

from tracker.auth.dependencies import AccessContext, get_optional_context
from tracker.auth.rbac import get_role_permissions
from tracker.config import settings

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/status")
async def auth_status(ctx: AccessContext | None = Depends(get_optional_context)):
    """
    Report the caller's session state.

    The permission map comes from the same matrix the server enforces, so
    the client can hide controls it would be refused anyway. Hiding is a
    convenience only; every request is still checked.
    """
    if ctx is None:
        return {"authenticated": False, "user": None, "role": None, "permissions": {}}

    return {
        "authenticated": True,
        "user": {"id": str(ctx.user_id), "email": ctx.email},
        "role": ctx.role.value,
        "permissions": get_role_permissions(ctx.role),
    }


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout():
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.session_cookie_name)
    return response
