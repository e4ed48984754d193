from typing import Dict, List, Optional
from datetime import datetime

from app.db.schema import ProjectStatus
from app.models.common import ApiModel
from app.models.dpp import DPPSummary
from app.models.project import Location, TeamSize


class StatusBreakdown(ApiModel):
    created: int = 0
    installed: int = 0
    enriched: int = 0


class ProjectCard(ApiModel):
    project_id: str
    project_name: str
    status: ProjectStatus
    location: Optional[Location] = None
    created_at: Optional[datetime] = None


# --- Owner ----------------------------------------------------------------

class OwnerStatistics(ApiModel):
    total_dpps: int
    status_breakdown: StatusBreakdown
    category_breakdown: Dict[str, int]
    average_completeness: int
    compliance_rate: int


class OwnerDashboard(ApiModel):
    project: ProjectCard
    statistics: OwnerStatistics
    team: TeamSize
    recent_dpps: List[DPPSummary]


# --- Phase actors ---------------------------------------------------------

class ContractorStatistics(ApiModel):
    total_dpps_created: int
    assigned_projects: int
    dpps_by_project: Dict[str, int]


class ContractorDashboard(ApiModel):
    statistics: ContractorStatistics
    assigned_projects: List[ProjectCard]
    recent_dpps: List[DPPSummary]


class InstallerStatistics(ApiModel):
    total_installations: int
    assigned_projects: int
    pending_installations: int
    installations_by_project: Dict[str, int]


class InstallerDashboard(ApiModel):
    statistics: InstallerStatistics
    assigned_projects: List[ProjectCard]
    pending_installations: List[DPPSummary]
    recent_installations: List[DPPSummary]


class SupplierStatistics(ApiModel):
    total_enrichments: int
    assigned_projects: int
    pending_enrichments: int
    enrichments_by_project: Dict[str, int]


class SupplierDashboard(ApiModel):
    statistics: SupplierStatistics
    assigned_projects: List[ProjectCard]
    pending_enrichments: List[DPPSummary]
    recent_enrichments: List[DPPSummary]


# --- Regulator ------------------------------------------------------------

class RegulatorStatistics(ApiModel):
    total_projects: int
    total_dpps: int
    compliance_rate: int
    dpps_by_status: StatusBreakdown


class RegulatorDashboard(ApiModel):
    statistics: RegulatorStatistics
    recent_projects: List[ProjectCard]
