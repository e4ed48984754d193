from typing import List, Optional
from datetime import datetime
from sqlmodel import Field

from app.db.schema import DPPStatus, MaterialCategory, MaterialUnit, ProjectStatus
from app.models.common import ApiModel, Pagination
from app.models.project import Location


# --- Phase payloads -------------------------------------------------------
# *Fields are what a caller may send; *Data adds what the server stamps.

class ProcurementFields(ApiModel):
    supplier_name: Optional[str] = None
    supplier_address: Optional[str] = None
    batch_number: Optional[str] = None
    delivery_date: Optional[datetime] = None
    delivery_location: Optional[str] = None
    delivery_photo_cid: Optional[str] = None
    notes: Optional[str] = None


class ProcurementData(ProcurementFields):
    contractor_wallet_address: Optional[str] = None
    procurement_timestamp: Optional[datetime] = None
    metadata_ref: Optional[str] = None
    ledger_tx_ref: Optional[str] = None


class InstallationFields(ApiModel):
    installation_location: Optional[str] = None
    installation_date: Optional[datetime] = None
    installer_name: Optional[str] = None
    equipment_used: Optional[str] = None
    commissioning_doc_cids: List[str] = []
    safety_certificate_cids: List[str] = []
    installation_photo_cids: List[str] = []
    notes: Optional[str] = None


class InstallationData(InstallationFields):
    installer_wallet_address: Optional[str] = None
    installation_timestamp: Optional[datetime] = None
    metadata_ref: Optional[str] = None
    ledger_tx_ref: Optional[str] = None


class EnrichmentFields(ApiModel):
    epd_document_cid: Optional[str] = None
    fire_rating_cert_cid: Optional[str] = None
    technical_specs_cid: Optional[str] = None
    warranty_doc_cid: Optional[str] = None
    maintenance_manual_cid: Optional[str] = None
    notes: Optional[str] = None


class EnrichmentData(EnrichmentFields):
    supplier_wallet_address: Optional[str] = None
    enrichment_timestamp: Optional[datetime] = None
    metadata_ref: Optional[str] = None
    ledger_tx_ref: Optional[str] = None


class ProductMetadata(ApiModel):
    manufacturer: Optional[str] = None
    model_number: Optional[str] = None
    serial_number: Optional[str] = None
    batch_number: Optional[str] = None
    production_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    certifications: List[str] = []


class VerificationRecord(ApiModel):
    verified_by: Optional[str] = None
    verified_at: datetime
    notes: Optional[str] = None


# --- Requests -------------------------------------------------------------

class DPPCreate(ApiModel):
    project_id: str = Field(min_length=1)
    product_name: str = Field(min_length=2, max_length=200)
    category: MaterialCategory
    quantity: float = Field(ge=0)
    unit: MaterialUnit
    procurement_data: ProcurementFields = ProcurementFields()
    product_metadata: Optional[ProductMetadata] = Field(default=None, alias="metadata")
    tags: List[str] = []


class InstallRequest(ApiModel):
    installation_data: InstallationFields


class EnrichRequest(ApiModel):
    enrichment_data: EnrichmentFields


# --- Responses ------------------------------------------------------------

class DPPRead(ApiModel):
    dpp_id: str
    project_id: str
    product_name: str
    category: MaterialCategory
    quantity: float
    unit: MaterialUnit
    qr_code_url: Optional[str] = None
    status: DPPStatus
    procurement_data: Optional[ProcurementData] = None
    installation_data: Optional[InstallationData] = None
    enrichment_data: Optional[EnrichmentData] = None
    document_completeness: int
    compliance_status: bool
    product_metadata: Optional[ProductMetadata] = Field(default=None, alias="metadata")
    verification_history: List[VerificationRecord] = []
    tags: List[str] = []
    created_at: datetime
    updated_at: datetime


class ProjectBrief(ApiModel):
    project_id: str
    project_name: str
    location: Optional[Location] = None
    status: ProjectStatus


class DPPDetail(DPPRead):
    project: Optional[ProjectBrief] = None


class DPPCreated(ApiModel):
    dpp: DPPRead
    verification_url: str


class DPPSummary(ApiModel):
    dpp_id: str
    project_id: str
    product_name: str
    category: MaterialCategory
    status: DPPStatus
    created_at: datetime


class DPPList(ApiModel):
    dpps: List[DPPRead]
    pagination: Pagination


class DPPVerification(ApiModel):
    """
    Public projection shown after a QR scan. Carries no party
    identities and no storage or ledger references.
    """
    dpp_id: str
    product_name: str
    category: MaterialCategory
    quantity: float
    unit: MaterialUnit
    status: DPPStatus
    document_completeness: int
    compliance_status: bool
    project: Optional[ProjectBrief] = None
    created_at: datetime
    verified: bool = True


class ProofTransactions(ApiModel):
    procurement: Optional[str] = None
    installation: Optional[str] = None
    enrichment: Optional[str] = None


class ProofStorageRefs(ApiModel):
    procurement_metadata: Optional[str] = None
    installation_metadata: Optional[str] = None
    enrichment_metadata: Optional[str] = None
    delivery_photo: Optional[str] = None
    installation_photos: List[str] = []
    commissioning_docs: List[str] = []
    safety_certificates: List[str] = []
    epd_document: Optional[str] = None
    fire_rating_cert: Optional[str] = None
    technical_specs: Optional[str] = None
    warranty_doc: Optional[str] = None
    maintenance_manual: Optional[str] = None


class BlockchainProof(ApiModel):
    dpp_id: str
    transactions: ProofTransactions
    storage_refs: ProofStorageRefs
