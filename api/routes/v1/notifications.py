"""Notification inbox endpoints."""

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import get_current_user, get_pagination_params
from api.schemas.common import PaginationParams
from api.services import notifications as notification_service
from database.models.users import User

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get(
    "",
    summary="List Notifications",
    description="Newest first, with the number of unread notifications.",
)
async def list_notifications(
    unread_only: bool = Query(False),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
):
    return await notification_service.list_notifications(
        current_user.id, pagination.page, pagination.page_size, unread_only
    )


@router.post("/read-all", summary="Mark All Read")
async def mark_all_read(current_user: User = Depends(get_current_user)):
    return await notification_service.mark_all_notifications_read(current_user.id)


@router.post("/{notification_id}/read", summary="Mark Read")
async def mark_read(
    notification_id: int = Path(..., description="Notification ID"),
    current_user: User = Depends(get_current_user),
):
    return await notification_service.mark_notification_read(current_user.id, notification_id)


@router.delete("/{notification_id}", summary="Delete Notification")
async def delete_notification(
    notification_id: int = Path(..., description="Notification ID"),
    current_user: User = Depends(get_current_user),
):
    return await notification_service.delete_notification(current_user.id, notification_id)
