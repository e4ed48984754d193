from fastapi import APIRouter, Depends

from app.core.dependencies import get_dashboard_service, require_roles
from app.services.dashboard import DashboardService
from app.db.schema import User, UserRole
from app.models.common import ApiResponse
from app.models.dashboard import (
    ContractorDashboard, InstallerDashboard, OwnerDashboard,
    RegulatorDashboard, SupplierDashboard
)

router = APIRouter()


@router.get(
    "/owner/{project_id}",
    response_model=ApiResponse[OwnerDashboard],
    summary="Owner Dashboard",
    description="Statistics for one project. Only its owner may read them."
)
def owner_dashboard(
    project_id: str,
    current_user: User = Depends(require_roles(UserRole.OWNER)),
    service: DashboardService = Depends(get_dashboard_service)
):
    return ApiResponse(
        message="Owner dashboard data retrieved successfully",
        data=service.owner(current_user, project_id),
    )


@router.get(
    "/contractor",
    response_model=ApiResponse[ContractorDashboard],
    summary="Contractor Dashboard"
)
def contractor_dashboard(
    current_user: User = Depends(require_roles(UserRole.CONTRACTOR)),
    service: DashboardService = Depends(get_dashboard_service)
):
    return ApiResponse(
        message="Contractor dashboard data retrieved successfully",
        data=service.contractor(current_user),
    )


@router.get(
    "/installer",
    response_model=ApiResponse[InstallerDashboard],
    summary="Installer Dashboard"
)
def installer_dashboard(
    current_user: User = Depends(require_roles(UserRole.INSTALLER)),
    service: DashboardService = Depends(get_dashboard_service)
):
    return ApiResponse(
        message="Installer dashboard data retrieved successfully",
        data=service.installer(current_user),
    )


@router.get(
    "/supplier",
    response_model=ApiResponse[SupplierDashboard],
    summary="Supplier Dashboard"
)
def supplier_dashboard(
    current_user: User = Depends(require_roles(UserRole.SUPPLIER)),
    service: DashboardService = Depends(get_dashboard_service)
):
    return ApiResponse(
        message="Supplier dashboard data retrieved successfully",
        data=service.supplier(current_user),
    )


@router.get(
    "/regulator",
    response_model=ApiResponse[RegulatorDashboard],
    summary="Regulator Dashboard"
)
def regulator_dashboard(
    current_user: User = Depends(require_roles(UserRole.REGULATOR)),
    service: DashboardService = Depends(get_dashboard_service)
):
    return ApiResponse(
        message="Regulator dashboard data retrieved successfully",
        data=service.regulator(),
    )
