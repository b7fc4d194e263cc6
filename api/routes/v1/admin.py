"""
Super admin endpoints.

Every route requires the super admin role; the service functions check the
specific permission each operation needs.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import get_pagination_params, require_roles
from api.schemas.common import PaginationParams
from api.schemas.companies import AdminAssignment
from api.services import admin as admin_service
from database.models.jobs import JobStatus
from database.models.users import User, UserRole

router = APIRouter(prefix="/admin", tags=["admin"])

super_admin_only = require_roles(UserRole.SUPER_ADMIN)


@router.get("/users", summary="List Users")
async def list_users(
    role: Optional[UserRole] = Query(None),
    include_deleted: bool = Query(False),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(super_admin_only),
):
    return await admin_service.list_users(
        current_user.id, role, include_deleted, pagination.page, pagination.page_size
    )


@router.delete(
    "/users/{user_id}",
    summary="Delete User",
    description="Soft-delete a user with their profiles, posts and posted jobs.",
)
async def delete_user(
    user_id: int = Path(..., description="User ID"),
    current_user: User = Depends(super_admin_only),
):
    return await admin_service.delete_user(current_user.id, user_id)


@router.get("/jobs", summary="List Jobs")
async def list_jobs(
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    include_deleted: bool = Query(False),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(super_admin_only),
):
    return await admin_service.list_jobs(
        current_user.id, job_status, include_deleted, pagination.page, pagination.page_size
    )


@router.delete("/jobs/{job_id}", summary="Delete Job")
async def delete_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(super_admin_only),
):
    return await admin_service.delete_job(current_user.id, job_id)


@router.get("/companies", summary="List Companies")
async def list_companies(
    include_deleted: bool = Query(False),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(super_admin_only),
):
    return await admin_service.list_companies(
        current_user.id, include_deleted, pagination.page, pagination.page_size
    )


@router.delete("/companies/{company_id}", summary="Delete Company")
async def delete_company(
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(super_admin_only),
):
    return await admin_service.delete_company(current_user.id, company_id)


@router.put("/companies/{company_id}/admin", summary="Assign Company Admin")
async def assign_company_admin(
    body: AdminAssignment,
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(super_admin_only),
):
    return await admin_service.assign_company_admin(
        current_user.id, company_id, body.admin_user_id
    )


@router.delete("/companies/{company_id}/admin", summary="Remove Company Admin")
async def remove_company_admin(
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(super_admin_only),
):
    return await admin_service.remove_company_admin(current_user.id, company_id)


@router.get("/reports", summary="System Reports")
async def system_reports(current_user: User = Depends(super_admin_only)):
    return await admin_service.get_system_reports(current_user.id)
