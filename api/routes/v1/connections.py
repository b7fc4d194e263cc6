"""
Connection endpoints: requests between users and the accepted network.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Path, Query, status

from api.dependencies import get_current_user, get_pagination_params
from api.schemas.common import PaginationParams
from api.services import connections as connection_service
from database.models.users import User

router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("", summary="List Connections")
async def list_connections(
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
):
    return await connection_service.list_connections(
        current_user.id, pagination.page, pagination.page_size
    )


@router.get(
    "/suggestions",
    summary="Connection Suggestions",
    description="People your connections know, most mutual connections first.",
)
async def suggestions(
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
):
    return await connection_service.get_connection_suggestions(current_user.id, limit)


@router.get("/requests", summary="List Connection Requests")
async def list_requests(
    direction: Literal["incoming", "outgoing"] = Query("incoming"),
    current_user: User = Depends(get_current_user),
):
    return await connection_service.list_connection_requests(current_user.id, direction)


@router.post(
    "/requests/{user_id}",
    status_code=status.HTTP_201_CREATED,
    summary="Send Connection Request",
)
async def send_request(
    user_id: int = Path(..., description="User to connect with"),
    current_user: User = Depends(get_current_user),
):
    return await connection_service.send_connection_request(current_user.id, user_id)


@router.post("/requests/{connection_id}/accept", summary="Accept Connection Request")
async def accept_request(
    connection_id: int = Path(..., description="Connection request ID"),
    current_user: User = Depends(get_current_user),
):
    return await connection_service.accept_connection_request(current_user.id, connection_id)


@router.post("/requests/{connection_id}/reject", summary="Reject Connection Request")
async def reject_request(
    connection_id: int = Path(..., description="Connection request ID"),
    current_user: User = Depends(get_current_user),
):
    return await connection_service.reject_connection_request(current_user.id, connection_id)


@router.delete(
    "/users/{user_id}",
    summary="Remove Connection",
    description="Remove a connection or withdraw a pending request with a user.",
)
async def remove_connection(
    user_id: int = Path(..., description="The other user"),
    current_user: User = Depends(get_current_user),
):
    return await connection_service.remove_connection(current_user.id, user_id)
