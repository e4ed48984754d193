from typing import Optional, List, Dict, Any
from datetime import datetime
import uuid
from sqlmodel import SQLModel, Field, JSON
from enum import Enum


class UserRole(str, Enum):
    OWNER = "owner"
    CONTRACTOR = "contractor"
    INSTALLER = "installer"
    SUPPLIER = "supplier"
    REGULATOR = "regulator"


class ProjectType(str, Enum):
    RESIDENTIAL = "Residential"
    COMMERCIAL = "Commercial"
    INDUSTRIAL = "Industrial"
    INFRASTRUCTURE = "Infrastructure"
    MIXED_USE = "Mixed-Use"
    OTHER = "Other"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"


class MaterialCategory(str, Enum):
    CEMENT = "Cement"
    STEEL = "Steel"
    BRICKS = "Bricks"
    SAND = "Sand"
    AGGREGATE = "Aggregate"
    GLASS = "Glass"
    TILES = "Tiles"
    PAINT = "Paint"
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"
    HVAC = "HVAC"
    DOORS = "Doors"
    WINDOWS = "Windows"
    ROOFING = "Roofing"
    INSULATION = "Insulation"
    FLOORING = "Flooring"
    HARDWARE = "Hardware"
    OTHER = "Other"


class MaterialUnit(str, Enum):
    KG = "kg"
    TON = "ton"
    PIECE = "piece"
    BOX = "box"
    BAG = "bag"
    SQFT = "sqft"
    SQM = "sqm"
    METER = "meter"
    LITER = "liter"
    OTHER = "other"


class DPPStatus(str, Enum):
    """
    Lifecycle of a passport. Only CREATED -> INSTALLED -> ENRICHED is
    reachable through the phase operations; VERIFIED and INACTIVE are
    reserved values with no transition into them.
    """
    CREATED = "created"
    INSTALLED = "installed"
    ENRICHED = "enriched"
    VERIFIED = "verified"
    INACTIVE = "inactive"


class TimestampMixin(SQLModel):
    """
    Standard audit timestamps shared by every table.
    """
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        index=True,
        description="UTC timestamp when the record was first persisted."
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"onupdate": datetime.utcnow},
        description="UTC timestamp of the last modification."
    )


class User(TimestampMixin, SQLModel, table=True):
    """
    A wallet identity registered with exactly one role.
    The role never changes after registration.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="Internal primary key."
    )
    wallet_address: str = Field(
        unique=True,
        index=True,
        description="Lowercase wallet address. Example: '0xab5801a7d398351b8be11c439e05c5b3259aec9b'"
    )
    role: UserRole = Field(
        index=True,
        description="The single role this identity acts in. Example: 'installer'"
    )
    name: str = Field(description="Display name. Example: 'Asha Rao'")
    company: Optional[str] = Field(default=None, index=True)
    email: Optional[str] = Field(default=None, index=True)
    phone_number: Optional[str] = Field(default=None)
    profile_image: Optional[str] = Field(
        default=None,
        description="Storage reference or URL of the avatar."
    )
    assigned_projects: List[str] = Field(
        default_factory=list,
        sa_type=JSON,
        description="Project ids this identity owns or is authorized on. Kept free of duplicates."
    )
    is_active: bool = Field(
        default=True,
        description="False blocks new sessions for this identity."
    )
    last_login_at: Optional[datetime] = Field(default=None)


class Project(TimestampMixin, SQLModel, table=True):
    """
    A construction project and its authorization roster.
    The roster is the only source of write permission for the
    passports that reference this project.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True
    )
    project_id: str = Field(
        unique=True,
        index=True,
        description="Generated public id. Example: 'PRJ-1717171717171-K3ZQ'"
    )
    project_name: str
    description: Optional[str] = Field(default=None)
    project_type: ProjectType
    location: Dict[str, Any] = Field(
        default_factory=dict,
        sa_type=JSON,
        description="address/city/state/country/pincode/coordinates."
    )
    total_floors: Optional[int] = Field(default=None)
    zones: List[str] = Field(default_factory=list, sa_type=JSON)
    owner_wallet_address: str = Field(
        index=True,
        description="Lowercase owner identity. Immutable after creation."
    )
    authorized_contractors: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_type=JSON,
        description="Entries of {'wallet_address', 'added_at'}."
    )
    authorized_installers: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_type=JSON
    )
    authorized_suppliers: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_type=JSON
    )
    status: ProjectStatus = Field(default=ProjectStatus.ACTIVE, index=True)
    timeline: Dict[str, Any] = Field(
        default_factory=dict,
        sa_type=JSON,
        description="start_date / expected_completion / actual_completion."
    )
    budget: Dict[str, Any] = Field(
        default_factory=lambda: {"currency": "INR"},
        sa_type=JSON,
        description="estimated / actual / currency."
    )
    external_metadata_ref: Optional[str] = Field(
        default=None,
        description="Content identifier of the project metadata snapshot."
    )
    ledger_tx_ref: Optional[str] = Field(
        default=None,
        description="Transaction hash of the ledger 'createProject' call."
    )
    qr_code_url: Optional[str] = Field(default=None)


class DigitalProductPassport(TimestampMixin, SQLModel, table=True):
    """
    One batch of construction material tracked through procurement,
    installation and enrichment. Phase payloads are JSON documents; the
    acting identity of each phase is mirrored into an indexed column for
    dashboard queries.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True
    )
    dpp_id: str = Field(
        unique=True,
        index=True,
        description="Generated public id. Example: 'DPP-PRJ-1717171717171-K3ZQ-1717171799999-A1B2'"
    )
    project_id: str = Field(
        foreign_key="project.project_id",
        index=True
    )
    product_name: str
    category: MaterialCategory = Field(index=True)
    quantity: float = Field(ge=0)
    unit: MaterialUnit
    qr_code_url: Optional[str] = Field(default=None)

    procurement_data: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    installation_data: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    enrichment_data: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)

    contractor_wallet_address: Optional[str] = Field(default=None, index=True)
    installer_wallet_address: Optional[str] = Field(default=None, index=True)
    supplier_wallet_address: Optional[str] = Field(default=None, index=True)

    status: DPPStatus = Field(default=DPPStatus.CREATED, index=True)
    document_completeness: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Unweighted share of populated optional phase fields, 0-100."
    )
    compliance_status: bool = Field(
        default=False,
        description="Set only by the enrichment transition."
    )

    product_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        sa_type=JSON,
        description="manufacturer / model_number / serial_number / batch_number / dates / certifications."
    )
    verification_history: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_type=JSON,
        description="Append-only log of public verification scans."
    )
    tags: List[str] = Field(default_factory=list, sa_type=JSON)
    search_text: str = Field(default="", index=True)
