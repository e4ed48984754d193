from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import get_current_user, get_dpp_service, require_permission
from app.services.authorization import Permission
from app.services.dpp import DPPService
from app.db.schema import DPPStatus, MaterialCategory, User

from app.models.common import ApiResponse
from app.models.dpp import (
    BlockchainProof, DPPCreate, DPPCreated, DPPDetail, DPPList, DPPRead,
    DPPVerification, EnrichRequest, InstallRequest
)

router = APIRouter()


@router.post(
    "/create",
    response_model=ApiResponse[DPPCreated],
    status_code=status.HTTP_201_CREATED,
    summary="Create Passport",
    description="Procurement phase. The caller must be an authorized contractor on the project.",
    tags=["Digital Passport"]
)
def create_passport(
    payload: DPPCreate,
    current_user: User = Depends(require_permission(Permission.CREATE_DPP)),
    service: DPPService = Depends(get_dpp_service)
):
    return ApiResponse(message="DPP created successfully", data=service.create(current_user, payload))


@router.get(
    "/search",
    response_model=ApiResponse[DPPList],
    summary="Search Passports",
    description="Text search over product name, category, passport id and supplier name.",
    tags=["Digital Passport"]
)
def search_passports(
    query: Optional[str] = Query(default=None),
    category: Optional[MaterialCategory] = Query(default=None),
    dpp_status: Optional[DPPStatus] = Query(default=None, alias="status"),
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: DPPService = Depends(get_dpp_service)
):
    dpps, pagination = service.search(
        current_user,
        query=query,
        category=category,
        status=dpp_status,
        project_id=project_id,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        message="Search results retrieved successfully",
        data=DPPList(dpps=dpps, pagination=pagination),
    )


@router.get(
    "/project/{project_id}",
    response_model=ApiResponse[DPPList],
    summary="List Project Passports",
    tags=["Digital Passport"]
)
def list_project_passports(
    project_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    dpp_status: Optional[DPPStatus] = Query(default=None, alias="status"),
    category: Optional[MaterialCategory] = Query(default=None),
    current_user: User = Depends(get_current_user),
    service: DPPService = Depends(get_dpp_service)
):
    dpps, pagination = service.list_by_project(
        current_user, project_id, page=page, limit=limit, status=dpp_status, category=category
    )
    return ApiResponse(
        message="DPPs retrieved successfully",
        data=DPPList(dpps=dpps, pagination=pagination),
    )


@router.get(
    "/{dpp_id}",
    response_model=ApiResponse[DPPDetail],
    summary="Get Passport",
    tags=["Digital Passport"]
)
def get_passport(
    dpp_id: str,
    current_user: User = Depends(get_current_user),
    service: DPPService = Depends(get_dpp_service)
):
    return ApiResponse(
        message="DPP details retrieved successfully",
        data=service.get_details(dpp_id),
    )


@router.put(
    "/{dpp_id}/install",
    response_model=ApiResponse[DPPRead],
    summary="Record Installation",
    description="Installer phase. Replaces earlier installation data.",
    tags=["Digital Passport"]
)
def install_passport(
    dpp_id: str,
    payload: InstallRequest,
    current_user: User = Depends(require_permission(Permission.UPDATE_INSTALLATION)),
    service: DPPService = Depends(get_dpp_service)
):
    dpp = service.install(current_user, dpp_id, payload.installation_data)
    return ApiResponse(message="Installation data updated successfully", data=dpp)


@router.put(
    "/{dpp_id}/enrich",
    response_model=ApiResponse[DPPRead],
    summary="Enrich Passport",
    description="Supplier phase. Replaces earlier enrichment data and marks the passport compliant.",
    tags=["Digital Passport"]
)
def enrich_passport(
    dpp_id: str,
    payload: EnrichRequest,
    current_user: User = Depends(require_permission(Permission.ENRICH_DPP)),
    service: DPPService = Depends(get_dpp_service)
):
    dpp = service.enrich(current_user, dpp_id, payload.enrichment_data)
    return ApiResponse(message="DPP enriched successfully", data=dpp)


@router.get(
    "/{dpp_id}/verify",
    response_model=ApiResponse[DPPVerification],
    summary="Verify Passport",
    description="Public access point for QR codes. Every call is recorded in the verification history.",
    tags=["Public"]
)
def verify_passport(
    dpp_id: str,
    service: DPPService = Depends(get_dpp_service)
):
    return ApiResponse(message="DPP verified successfully", data=service.verify(dpp_id))


@router.get(
    "/{dpp_id}/blockchain-proof",
    response_model=ApiResponse[BlockchainProof],
    summary="Ledger Proof",
    description="Stored ledger transaction hashes and storage references for the passport.",
    tags=["Public"]
)
def blockchain_proof(
    dpp_id: str,
    service: DPPService = Depends(get_dpp_service)
):
    return ApiResponse(
        message="Blockchain proof retrieved successfully",
        data=service.get_blockchain_proof(dpp_id),
    )
