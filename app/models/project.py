from typing import Dict, List, Optional
from datetime import datetime
from sqlmodel import Field

from app.db.schema import ProjectStatus, ProjectType
from app.models.common import ApiModel, Pagination
from app.models.auth import WalletField


class Coordinates(ApiModel):
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class Location(ApiModel):
    address: Optional[str] = Field(default=None, max_length=500)
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    pincode: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class Timeline(ApiModel):
    start_date: Optional[datetime] = None
    expected_completion: Optional[datetime] = None
    actual_completion: Optional[datetime] = None


class Budget(ApiModel):
    estimated: Optional[float] = Field(default=None, ge=0)
    actual: Optional[float] = Field(default=None, ge=0)
    currency: str = "INR"


class AuthorizedParty(ApiModel):
    wallet_address: str
    added_at: datetime


class ProjectCreate(ApiModel):
    project_name: str = Field(min_length=3, max_length=200)
    project_type: ProjectType
    location: Optional[Location] = None
    total_floors: Optional[int] = Field(default=None, ge=0)
    zones: List[str] = []
    timeline: Optional[Timeline] = None
    budget: Optional[Budget] = None
    description: Optional[str] = None


class ProjectUpdate(ApiModel):
    """
    Partial update. location, timeline and budget are merged into the
    stored values; the remaining fields replace them.
    """
    project_name: Optional[str] = Field(default=None, min_length=3, max_length=200)
    location: Optional[Location] = None
    total_floors: Optional[int] = Field(default=None, ge=0)
    zones: Optional[List[str]] = None
    timeline: Optional[Timeline] = None
    status: Optional[ProjectStatus] = None
    budget: Optional[Budget] = None
    description: Optional[str] = None


class ProjectRead(ApiModel):
    project_id: str
    project_name: str
    description: Optional[str] = None
    project_type: ProjectType
    location: Location
    total_floors: Optional[int] = None
    zones: List[str] = []
    owner_wallet_address: str
    authorized_contractors: List[AuthorizedParty] = []
    authorized_installers: List[AuthorizedParty] = []
    authorized_suppliers: List[AuthorizedParty] = []
    status: ProjectStatus
    timeline: Timeline
    budget: Budget
    external_metadata_ref: Optional[str] = None
    ledger_tx_ref: Optional[str] = None
    qr_code_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    dpp_count: Optional[int] = None


class ProjectList(ApiModel):
    projects: List[ProjectRead]
    pagination: Pagination


class AddMember(WalletField):
    pass


class DPPStatusCounts(ApiModel):
    total: int = 0
    created: int = 0
    installed: int = 0
    enriched: int = 0
    completion_rate: int = 0


class CategoryCount(ApiModel):
    category: str
    count: int


class TeamSize(ApiModel):
    contractors: int
    installers: int
    suppliers: int


class ProjectInfo(ApiModel):
    project_id: str
    project_name: str
    status: ProjectStatus
    location: Optional[Dict] = None


class ProjectStats(ApiModel):
    project_info: ProjectInfo
    dpp_stats: DPPStatusCounts
    category_breakdown: List[CategoryCount]
    average_completeness: float
    team_size: TeamSize
