from typing import List, Optional, Tuple
from datetime import datetime

from loguru import logger
from sqlmodel import Session, col, func, select

from app.core.exceptions import (
    ConflictError, ForbiddenError, InvalidInputError, NotFoundError
)
from app.db.schema import (
    DigitalProductPassport, DPPStatus, Project, ProjectStatus, ProjectType, User, UserRole
)
from app.models.common import Pagination
from app.models.project import (
    CategoryCount, DPPStatusCounts, ProjectCreate, ProjectInfo, ProjectRead,
    ProjectStats, ProjectUpdate, TeamSize
)
from app.services.authorization import (
    ROSTER_FIELDS, can_view_project, is_owner, roster, roster_identities
)
from app.services.external import best_effort
from app.services.scoring import round_half_up
from app.services.identifiers import generate_project_id
from app.services.ledger import LedgerClient
from app.services.storage import IPFSStorageClient
from app.services.user import UserService
from app.utils.pagination import paginate
from app.utils.qr import generate_and_save_qr, verification_url


def _dump(model) -> dict:
    return model.model_dump(mode="json", exclude_none=True) if model else {}


class ProjectService:
    def __init__(
        self,
        session: Session,
        storage: Optional[IPFSStorageClient] = None,
        ledger: Optional[LedgerClient] = None,
    ):
        self.session = session
        self.storage = storage
        self.ledger = ledger

    # --- Lookups ----------------------------------------------------------

    def get_by_project_id(self, project_id: str) -> Optional[Project]:
        return self.session.exec(
            select(Project).where(Project.project_id == project_id)
        ).first()

    def require_project(self, project_id: str) -> Project:
        project = self.get_by_project_id(project_id)
        if not project:
            raise NotFoundError("Project not found")
        return project

    def require_viewable(self, user: User, project_id: str) -> Project:
        """Owner, regulator, or an identity on the roster for its own role."""
        project = self.require_project(project_id)
        if not can_view_project(project, user):
            raise ForbiddenError("You are not authorized to access this project")
        return project

    def require_owned(self, user: User, project_id: str) -> Project:
        project = self.require_project(project_id)
        if not is_owner(project, user.wallet_address):
            raise ForbiddenError("Only the project owner can perform this action")
        return project

    def project_ids_on_roster(self, identity: str, role: UserRole) -> List[str]:
        """Ids of projects whose `role` roster contains `identity`."""
        projects = self.session.exec(select(Project)).all()
        return [p.project_id for p in projects if identity in roster_identities(p, role)]

    def accessible_project_ids(self, identity: str) -> List[str]:
        """Projects the identity owns or appears on under any role."""
        projects = self.session.exec(select(Project)).all()
        return [
            p.project_id for p in projects
            if is_owner(p, identity)
            or any(identity in roster_identities(p, role) for role in ROSTER_FIELDS)
        ]

    def count_dpps(self, project_id: str) -> int:
        return self.session.exec(
            select(func.count()).select_from(DigitalProductPassport)
            .where(DigitalProductPassport.project_id == project_id)
        ).one()

    def to_read(self, project: Project, with_count: bool = False) -> ProjectRead:
        read = ProjectRead.model_validate(project)
        if with_count:
            read.dpp_count = self.count_dpps(project.project_id)
        return read

    # --- Commands ---------------------------------------------------------

    def create_project(self, owner: User, data: ProjectCreate) -> Project:
        """
        Creates a project owned by `owner`.

        The metadata snapshot upload and the ledger registration are best
        effort; when either fails the corresponding reference stays empty.
        """
        project_id = generate_project_id()
        project = Project(
            project_id=project_id,
            project_name=data.project_name,
            description=data.description,
            project_type=data.project_type,
            location=_dump(data.location),
            total_floors=data.total_floors,
            zones=list(data.zones),
            owner_wallet_address=owner.wallet_address,
            timeline=_dump(data.timeline),
            budget=_dump(data.budget) or {"currency": "INR"},
        )

        snapshot = {
            "projectId": project_id,
            "projectName": project.project_name,
            "projectType": project.project_type.value,
            "location": project.location,
            "totalFloors": project.total_floors,
            "zones": project.zones,
            "owner": owner.wallet_address,
            "timeline": project.timeline,
            "budget": project.budget,
            "description": project.description,
            "createdAt": datetime.utcnow().isoformat(),
        }
        if self.storage is not None:
            project.external_metadata_ref = best_effort(
                f"Project metadata upload for {project_id}",
                lambda: self.storage.upload_with_retry(
                    lambda: self.storage.upload_json(snapshot, name=f"project-{project_id}")
                ),
            )

        project.qr_code_url = generate_and_save_qr(verification_url(project_id), project_id)

        if self.ledger is not None:
            receipt = best_effort(
                f"Ledger createProject for {project_id}",
                lambda: self.ledger.create_project(project_id, project.external_metadata_ref),
            )
            project.ledger_tx_ref = receipt.transaction_hash if receipt else None

        try:
            self.session.add(project)
            self.session.commit()
            self.session.refresh(project)
        except Exception as e:
            self.session.rollback()
            logger.error(f"Project creation failed: {str(e)}")
            raise e

        UserService(self.session).assign_project(owner, project_id)
        logger.info(f"Project created: {project_id} by {owner.wallet_address}")
        return project

    def update_project(self, user: User, project_id: str, data: ProjectUpdate) -> Project:
        """
        Owner-only partial update. location, timeline and budget are merged
        key by key; other supplied fields replace the stored value.
        """
        project = self.require_owned(user, project_id)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            raise InvalidInputError("No project fields supplied")

        for key in ("location", "timeline", "budget"):
            supplied = getattr(data, key)
            if key in update_data and supplied is not None:
                merged = {
                    **(getattr(project, key) or {}),
                    **supplied.model_dump(mode="json", exclude_unset=True),
                }
                setattr(project, key, merged)
                update_data.pop(key)

        for key, value in update_data.items():
            setattr(project, key, value)

        self.session.add(project)
        self.session.commit()
        self.session.refresh(project)
        logger.info(f"Project updated: {project_id}")
        return project

    def add_member(self, user: User, project_id: str, role: UserRole, identity: str) -> Project:
        """
        Adds `identity` to the `role` roster. The identity must belong to a
        registered user with exactly that role; duplicates are refused.
        """
        field = ROSTER_FIELDS.get(role)
        if field is None:
            raise InvalidInputError(f"Role '{role.value}' has no project roster")

        project = self.require_owned(user, project_id)
        identity = identity.strip().lower()

        member = self.session.exec(
            select(User).where(User.wallet_address == identity, User.role == role)
        ).first()
        if not member:
            raise NotFoundError(
                f"{role.value.capitalize()} not found or user is not a {role.value}"
            )

        if identity in roster_identities(project, role):
            raise ConflictError(
                f"{role.value.capitalize()} already authorized for this project"
            )

        entry = {"wallet_address": identity, "added_at": datetime.utcnow().isoformat()}
        setattr(project, field, [*roster(project, role), entry])
        self.session.add(project)
        self.session.commit()
        self.session.refresh(project)

        UserService(self.session).assign_project(member, project_id)
        logger.info(f"Added {role.value} {identity} to project {project_id}")
        return project

    # --- Queries ----------------------------------------------------------

    def list_projects(
        self,
        user: User,
        page: int = 1,
        limit: int = 10,
        status: Optional[ProjectStatus] = None,
        project_type: Optional[ProjectType] = None,
    ) -> Tuple[List[Project], Pagination]:
        statement = select(Project)

        if user.role == UserRole.OWNER:
            statement = statement.where(Project.owner_wallet_address == user.wallet_address)
        elif user.role in ROSTER_FIELDS:
            ids = self.project_ids_on_roster(user.wallet_address, user.role)
            statement = statement.where(col(Project.project_id).in_(ids))

        if status:
            statement = statement.where(Project.status == status)
        if project_type:
            statement = statement.where(Project.project_type == project_type)

        statement = statement.order_by(col(Project.created_at).desc())
        return paginate(self.session, statement, page, limit)

    def get_project(self, user: User, project_id: str) -> ProjectRead:
        project = self.require_viewable(user, project_id)
        return self.to_read(project, with_count=True)

    def get_stats(self, user: User, project_id: str) -> ProjectStats:
        project = self.require_viewable(user, project_id)
        in_project = DigitalProductPassport.project_id == project.project_id

        by_status = dict(self.session.exec(
            select(DigitalProductPassport.status, func.count())
            .where(in_project)
            .group_by(DigitalProductPassport.status)
        ).all())
        total = sum(by_status.values())
        enriched = by_status.get(DPPStatus.ENRICHED, 0)

        categories = self.session.exec(
            select(DigitalProductPassport.category, func.count().label("count"))
            .where(in_project)
            .group_by(DigitalProductPassport.category)
            .order_by(func.count().desc())
        ).all()

        average = self.session.exec(
            select(func.avg(DigitalProductPassport.document_completeness)).where(in_project)
        ).one()

        return ProjectStats(
            project_info=ProjectInfo(
                project_id=project.project_id,
                project_name=project.project_name,
                status=project.status,
            ),
            dpp_stats=DPPStatusCounts(
                total=total,
                created=by_status.get(DPPStatus.CREATED, 0),
                installed=by_status.get(DPPStatus.INSTALLED, 0),
                enriched=enriched,
                completion_rate=round_half_up(100 * enriched / total) if total else 0,
            ),
            category_breakdown=[
                CategoryCount(category=getattr(c, "value", c), count=n) for c, n in categories
            ],
            average_completeness=float(average or 0),
            team_size=TeamSize(
                contractors=len(project.authorized_contractors or []),
                installers=len(project.authorized_installers or []),
                suppliers=len(project.authorized_suppliers or []),
            ),
        )
