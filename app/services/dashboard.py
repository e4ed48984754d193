from collections import Counter
from typing import Iterable, List

from sqlmodel import Session, col, func, select

from app.core.exceptions import ForbiddenError
from app.db.schema import DigitalProductPassport, DPPStatus, Project, User
from app.models.dashboard import (
    ContractorDashboard, ContractorStatistics, InstallerDashboard,
    InstallerStatistics, OwnerDashboard, OwnerStatistics, ProjectCard,
    RegulatorDashboard, RegulatorStatistics, StatusBreakdown,
    SupplierDashboard, SupplierStatistics
)
from app.models.dpp import DPPSummary
from app.models.project import TeamSize
from app.services.authorization import is_owner
from app.services.project import ProjectService
from app.services.scoring import round_half_up


RECENT_LIMIT = 10

Passports = List[DigitalProductPassport]


def _summary(dpp: DigitalProductPassport) -> DPPSummary:
    return DPPSummary(
        dpp_id=dpp.dpp_id,
        project_id=dpp.project_id,
        product_name=dpp.product_name,
        category=dpp.category,
        status=dpp.status,
        created_at=dpp.created_at,
    )


def _card(project: Project) -> ProjectCard:
    return ProjectCard(
        project_id=project.project_id,
        project_name=project.project_name,
        status=project.status,
        location=project.location or None,
        created_at=project.created_at,
    )


def _status_breakdown(dpps: Passports) -> StatusBreakdown:
    counts = Counter(d.status for d in dpps)
    return StatusBreakdown(
        created=counts[DPPStatus.CREATED],
        installed=counts[DPPStatus.INSTALLED],
        enriched=counts[DPPStatus.ENRICHED],
    )


def _percent(part: int, total: int) -> int:
    return round_half_up(100 * part / total) if total else 0


def _by_project(dpps: Iterable[DigitalProductPassport]) -> dict:
    return dict(Counter(d.project_id for d in dpps))


def _phase_time(dpp: DigitalProductPassport, column: str, key: str) -> str:
    return (getattr(dpp, column) or {}).get(key) or ""


class DashboardService:
    """
    Read-only aggregations per role. Scoping follows the project rosters:
    owners see their own projects, phase actors see the passports they acted
    on and the projects whose roster lists them, regulators see everything.
    """

    def __init__(self, session: Session):
        self.session = session
        self.projects = ProjectService(session)

    def _dpps(self, *criteria) -> Passports:
        statement = select(DigitalProductPassport)
        for c in criteria:
            statement = statement.where(c)
        return list(self.session.exec(
            statement.order_by(col(DigitalProductPassport.created_at).desc())
        ).all())

    def _assigned(self, user: User) -> List[Project]:
        ids = self.projects.project_ids_on_roster(user.wallet_address, user.role)
        if not ids:
            return []
        return list(self.session.exec(
            select(Project)
            .where(col(Project.project_id).in_(ids))
            .order_by(col(Project.created_at).desc())
        ).all())

    def owner(self, user: User, project_id: str) -> OwnerDashboard:
        project = self.projects.require_project(project_id)
        if not is_owner(project, user.wallet_address):
            raise ForbiddenError("Not authorized to access this dashboard")

        dpps = self._dpps(DigitalProductPassport.project_id == project_id)
        total = len(dpps)
        average = sum(d.document_completeness for d in dpps) / total if total else 0
        compliant = sum(1 for d in dpps if d.compliance_status)

        return OwnerDashboard(
            project=_card(project),
            statistics=OwnerStatistics(
                total_dpps=total,
                status_breakdown=_status_breakdown(dpps),
                category_breakdown=dict(Counter(d.category.value for d in dpps)),
                average_completeness=round_half_up(average),
                compliance_rate=_percent(compliant, total),
            ),
            team=TeamSize(
                contractors=len(project.authorized_contractors or []),
                installers=len(project.authorized_installers or []),
                suppliers=len(project.authorized_suppliers or []),
            ),
            recent_dpps=[_summary(d) for d in dpps[:RECENT_LIMIT]],
        )

    def contractor(self, user: User) -> ContractorDashboard:
        mine = self._dpps(DigitalProductPassport.contractor_wallet_address == user.wallet_address)
        assigned = self._assigned(user)

        return ContractorDashboard(
            statistics=ContractorStatistics(
                total_dpps_created=len(mine),
                assigned_projects=len(assigned),
                dpps_by_project=_by_project(mine),
            ),
            assigned_projects=[_card(p) for p in assigned],
            recent_dpps=[_summary(d) for d in mine[:RECENT_LIMIT]],
        )

    def installer(self, user: User) -> InstallerDashboard:
        mine = self._dpps(DigitalProductPassport.installer_wallet_address == user.wallet_address)
        mine.sort(
            key=lambda d: _phase_time(d, "installation_data", "installation_timestamp"),
            reverse=True,
        )
        assigned = self._assigned(user)
        pending = self._dpps(
            col(DigitalProductPassport.project_id).in_([p.project_id for p in assigned]),
            DigitalProductPassport.status == DPPStatus.CREATED,
        ) if assigned else []

        return InstallerDashboard(
            statistics=InstallerStatistics(
                total_installations=len(mine),
                assigned_projects=len(assigned),
                pending_installations=len(pending),
                installations_by_project=_by_project(mine),
            ),
            assigned_projects=[_card(p) for p in assigned],
            pending_installations=[_summary(d) for d in pending],
            recent_installations=[_summary(d) for d in mine[:RECENT_LIMIT]],
        )

    def supplier(self, user: User) -> SupplierDashboard:
        mine = self._dpps(DigitalProductPassport.supplier_wallet_address == user.wallet_address)
        mine.sort(
            key=lambda d: _phase_time(d, "enrichment_data", "enrichment_timestamp"),
            reverse=True,
        )
        assigned = self._assigned(user)
        pending = self._dpps(
            col(DigitalProductPassport.project_id).in_([p.project_id for p in assigned]),
            col(DigitalProductPassport.status).in_([DPPStatus.CREATED, DPPStatus.INSTALLED]),
        ) if assigned else []

        return SupplierDashboard(
            statistics=SupplierStatistics(
                total_enrichments=len(mine),
                assigned_projects=len(assigned),
                pending_enrichments=len(pending),
                enrichments_by_project=_by_project(mine),
            ),
            assigned_projects=[_card(p) for p in assigned],
            pending_enrichments=[_summary(d) for d in pending],
            recent_enrichments=[_summary(d) for d in mine[:RECENT_LIMIT]],
        )

    def regulator(self) -> RegulatorDashboard:
        total_projects = self.session.exec(select(func.count()).select_from(Project)).one()
        dpps = self._dpps()
        compliant = sum(1 for d in dpps if d.compliance_status)
        recent = self.session.exec(
            select(Project).order_by(col(Project.created_at).desc()).limit(RECENT_LIMIT)
        ).all()

        return RegulatorDashboard(
            statistics=RegulatorStatistics(
                total_projects=total_projects,
                total_dpps=len(dpps),
                compliance_rate=_percent(compliant, len(dpps)),
                dpps_by_status=_status_breakdown(dpps),
            ),
            recent_projects=[_card(p) for p in recent],
        )
