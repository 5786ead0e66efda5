from typing import Annotated

from fastapi import APIRouter, Query

from otpgate.core.modules.notification.models import AuthNotification
from otpgate.core.pagination import PaginationResult
from otpgate.web.deps import AppDep, AuthDep
from otpgate.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["notifications"])


@router.get(
    "/notifications",
    summary="List auth notifications",
    description="Get the welcome and new-login notifications of the current user, newest first.",
    operation_id="listNotifications",
    responses={
        200: {"description": "Paginated notifications"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def list_notifications(
    app: AppDep,
    auth: AuthDep,
    limit: Annotated[int, Query(ge=1, le=100, description="Maximum items to return")] = 50,
    offset: Annotated[int, Query(ge=0, description="Number of items to skip")] = 0,
) -> PaginationResult[AuthNotification]:
    return await app.get_notifications(auth, limit, offset)
