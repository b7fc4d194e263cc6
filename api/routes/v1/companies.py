"""
Company directory endpoints, company admin operations and follows.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from api.dependencies import get_current_user, get_pagination_params, require_roles
from api.schemas.common import PaginationParams
from api.schemas.companies import CompanyCreate, CompanyUpdate, EmployerRef
from api.services import admin as admin_service
from api.services import companies as company_service
from api.services import connections as connection_service
from api.services import jobs as job_service
from database.models.jobs import JobStatus
from database.models.users import User, UserRole

router = APIRouter(prefix="/companies", tags=["companies"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create Company",
    description="A company admin without a company becomes its admin. Super admins need Manage All Companies.",
)
async def create_company(
    body: CompanyCreate,
    current_user: User = Depends(require_roles(UserRole.COMPANY_ADMIN, UserRole.SUPER_ADMIN)),
):
    return await company_service.create_company(
        current_user.id, body.model_dump(exclude_unset=True)
    )


@router.get("/{company_id}", summary="Get Company")
async def get_company(
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(get_current_user),
):
    return await company_service.get_company(company_id)


@router.patch("/{company_id}", summary="Update Company")
async def update_company(
    body: CompanyUpdate,
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(get_current_user),
):
    return await company_service.update_company(
        current_user.id, company_id, body.model_dump(exclude_unset=True)
    )


@router.delete("/{company_id}", summary="Delete Company")
async def delete_company(
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(get_current_user),
):
    return await company_service.delete_company(current_user.id, company_id)


@router.get("/{company_id}/jobs", summary="List Company Jobs")
async def list_company_jobs(
    company_id: int = Path(..., description="Company ID"),
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
):
    return await job_service.list_company_jobs(
        company_id, job_status, pagination.page, pagination.page_size
    )


@router.get("/{company_id}/reports", summary="Company Reports")
async def company_reports(
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(get_current_user),
):
    return await admin_service.get_company_reports(current_user.id, company_id)


# ==================== Roster ===================== #
@router.get("/{company_id}/users", summary="List Company Users")
async def list_company_users(
    company_id: int = Path(..., description="Company ID"),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
):
    return await company_service.list_company_users(
        current_user.id, company_id, pagination.page, pagination.page_size
    )


@router.post("/{company_id}/employers", summary="Add Employer")
async def add_employer(
    body: EmployerRef,
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(get_current_user),
):
    return await company_service.add_company_employer(
        current_user.id, company_id, body.employer_user_id
    )


@router.delete(
    "/{company_id}/employers/{employer_user_id}",
    summary="Fire Employer",
    description="Mark the employer Fired and remove them from the roster.",
)
async def fire_employer(
    company_id: int = Path(..., description="Company ID"),
    employer_user_id: int = Path(..., description="User id of the employer"),
    current_user: User = Depends(get_current_user),
):
    return await company_service.fire_employer(current_user.id, company_id, employer_user_id)


# ==================== Follows ===================== #
@router.post("/{company_id}/follow", summary="Follow Company")
async def follow_company(
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(get_current_user),
):
    return await connection_service.follow_company(current_user.id, company_id)


@router.delete("/{company_id}/follow", summary="Unfollow Company")
async def unfollow_company(
    company_id: int = Path(..., description="Company ID"),
    current_user: User = Depends(get_current_user),
):
    return await connection_service.unfollow_company(current_user.id, company_id)
