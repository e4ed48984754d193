from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import get_current_user, get_project_service, require_permission
from app.services.authorization import Permission
from app.services.project import ProjectService
from app.db.schema import ProjectStatus, ProjectType, User, UserRole
from app.models.common import ApiResponse
from app.models.project import (
    AddMember, ProjectCreate, ProjectList, ProjectRead, ProjectStats, ProjectUpdate
)

router = APIRouter()


@router.post(
    "/create",
    response_model=ApiResponse[ProjectRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create Project",
    description=(
        "Creates a project owned by the caller. The metadata snapshot and the "
        "ledger registration are best effort."
    )
)
def create_project(
    payload: ProjectCreate,
    current_user: User = Depends(require_permission(Permission.CREATE_PROJECT)),
    service: ProjectService = Depends(get_project_service)
):
    project = service.create_project(current_user, payload)
    return ApiResponse(message="Project created successfully", data=service.to_read(project))


@router.get(
    "",
    response_model=ApiResponse[ProjectList],
    summary="List Projects",
    description="Projects visible to the caller's role, newest first."
)
def list_projects(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    project_status: Optional[ProjectStatus] = Query(default=None, alias="status"),
    project_type: Optional[ProjectType] = Query(default=None, alias="projectType"),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    projects, pagination = service.list_projects(
        current_user, page=page, limit=limit, status=project_status, project_type=project_type
    )
    return ApiResponse(
        message="Projects retrieved successfully",
        data=ProjectList(
            projects=[service.to_read(p) for p in projects],
            pagination=pagination,
        ),
    )


@router.get(
    "/{project_id}",
    response_model=ApiResponse[ProjectRead],
    summary="Get Project"
)
def get_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    return ApiResponse(
        message="Project details retrieved successfully",
        data=service.get_project(current_user, project_id),
    )


@router.put(
    "/{project_id}",
    response_model=ApiResponse[ProjectRead],
    summary="Update Project",
    description="Owner only. location, timeline and budget are merged into the stored values."
)
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    project = service.update_project(current_user, project_id, payload)
    return ApiResponse(message="Project updated successfully", data=service.to_read(project))


def _add_member(role: UserRole):
    def endpoint(
        project_id: str,
        payload: AddMember,
        current_user: User = Depends(require_permission(Permission.MANAGE_USERS)),
        service: ProjectService = Depends(get_project_service)
    ):
        project = service.add_member(current_user, project_id, role, payload.wallet_address)
        return ApiResponse(
            message=f"{role.value.capitalize()} added successfully",
            data=service.to_read(project),
        )
    return endpoint


for _role in (UserRole.CONTRACTOR, UserRole.INSTALLER, UserRole.SUPPLIER):
    router.add_api_route(
        f"/{{project_id}}/add-{_role.value}",
        _add_member(_role),
        methods=["POST"],
        response_model=ApiResponse[ProjectRead],
        summary=f"Authorize {_role.value.capitalize()}",
        description=f"Owner only. Adds a registered {_role.value} to the project roster.",
    )


@router.get(
    "/{project_id}/stats",
    response_model=ApiResponse[ProjectStats],
    summary="Project Statistics"
)
def project_stats(
    project_id: str,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    return ApiResponse(
        message="Project statistics retrieved successfully",
        data=service.get_stats(current_user, project_id),
    )
