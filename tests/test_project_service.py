import re

import pytest

from app.core.exceptions import (
    ConflictError, ForbiddenError, InvalidInputError, NotFoundError
)
from app.db.schema import (
    DigitalProductPassport, MaterialCategory, MaterialUnit, ProjectStatus, ProjectType, UserRole
)
from app.models.dpp import DPPCreate, EnrichmentFields, ProcurementFields
from app.models.project import Budget, Location, ProjectCreate, ProjectUpdate
from app.services.authorization import is_authorized
from app.services.project import ProjectService
from app.services.user import UserService

from tests.conftest import ADDRESSES, FakeLedger, FakeStorage


def _create(service, owner, name="Riverside Depot", project_type=ProjectType.INDUSTRIAL):
    return service.create_project(owner, ProjectCreate(project_name=name, project_type=project_type))


class TestCreateProject:

    def test_identifier_and_references(self, users, project_service, storage, ledger):
        project = _create(project_service, users["owner"])

        assert re.match(r"^PRJ-\d{13}-[0-9A-Z]{4}$", project.project_id)
        assert project.owner_wallet_address == ADDRESSES["owner"]
        assert project.status == ProjectStatus.ACTIVE
        assert project.budget == {"currency": "INR"}
        assert project.external_metadata_ref == "bafyjson1"
        assert project.ledger_tx_ref.startswith("0x")
        assert project.qr_code_url.endswith(f"/static/qrcodes/{project.project_id}.png")

        name, document = storage.documents[0]
        assert name == f"project-{project.project_id}"
        assert document["projectName"] == "Riverside Depot"
        assert ledger.calls == [("createProject", (project.project_id, "bafyjson1"))]

    def test_owner_gets_project_assigned(self, users, project_service):
        project = _create(project_service, users["owner"])
        assert project.project_id in users["owner"].assigned_projects

    @pytest.mark.parametrize("broken", ["storage", "ledger", "both"])
    def test_external_failures_do_not_block_creation(self, session, users, broken):
        storage = FakeStorage(fail=broken in ("storage", "both"))
        ledger = FakeLedger(fail=broken in ("ledger", "both"))
        service = ProjectService(session, storage=storage, ledger=ledger)

        project = _create(service, users["owner"])

        assert service.get_by_project_id(project.project_id) is not None
        if broken in ("storage", "both"):
            assert project.external_metadata_ref is None
        if broken in ("ledger", "both"):
            assert project.ledger_tx_ref is None
        # The ledger is still called without a metadata reference.
        assert ledger.calls[0][0] == "createProject"

    def test_without_clients(self, session, users):
        project = _create(ProjectService(session), users["owner"])
        assert project.external_metadata_ref is None
        assert project.ledger_tx_ref is None


class TestAddMember:

    def test_added_identity_becomes_authorized(self, users, project_service):
        project = _create(project_service, users["owner"])
        identity = ADDRESSES["stranger_contractor"]
        assert not is_authorized(project, identity, UserRole.CONTRACTOR)

        project = project_service.add_member(
            users["owner"], project.project_id, UserRole.CONTRACTOR, identity.upper().replace("0X", "0x")
        )

        assert is_authorized(project, identity, UserRole.CONTRACTOR)
        entry = project.authorized_contractors[0]
        assert entry["wallet_address"] == identity
        assert entry["added_at"]
        assert project.project_id in users["stranger_contractor"].assigned_projects

    def test_duplicate_is_refused(self, users, project_service, project):
        with pytest.raises(ConflictError):
            project_service.add_member(
                users["owner"], project.project_id, UserRole.INSTALLER, ADDRESSES["installer"]
            )
        assert len(project_service.require_project(project.project_id).authorized_installers) == 1

    def test_only_owner_may_add(self, users, project_service, project):
        with pytest.raises(ForbiddenError):
            project_service.add_member(
                users["other_owner"], project.project_id, UserRole.SUPPLIER, ADDRESSES["stranger_supplier"]
            )

    def test_identity_must_hold_the_role(self, users, project_service, project):
        with pytest.raises(NotFoundError, match="Supplier not found"):
            project_service.add_member(
                users["owner"], project.project_id, UserRole.SUPPLIER, ADDRESSES["stranger_installer"]
            )

    def test_unregistered_identity(self, users, project_service, project):
        with pytest.raises(NotFoundError):
            project_service.add_member(
                users["owner"], project.project_id, UserRole.CONTRACTOR, "0x" + "42" * 20
            )

    def test_role_without_roster(self, users, project_service, project):
        with pytest.raises(InvalidInputError):
            project_service.add_member(
                users["owner"], project.project_id, UserRole.REGULATOR, ADDRESSES["regulator"]
            )

    def test_missing_project(self, users, project_service):
        with pytest.raises(NotFoundError):
            project_service.add_member(
                users["owner"], "PRJ-0-NONE", UserRole.CONTRACTOR, ADDRESSES["contractor"]
            )

    def test_assigned_projects_stay_unique(self, session, users, project_service, project):
        member = UserService(session).require_user(ADDRESSES["contractor"])
        assert member.assigned_projects.count(project.project_id) == 1


class TestQueries:

    def test_owner_sees_only_own_projects(self, users, project_service, project):
        _create(project_service, users["other_owner"], name="Elsewhere")

        mine, pagination = project_service.list_projects(users["owner"])
        assert [p.project_id for p in mine] == [project.project_id]
        assert pagination.total_items == 1

    def test_roster_member_sees_assigned_projects(self, users, project_service, project):
        _create(project_service, users["owner"], name="Unstaffed Annex")

        listed, _ = project_service.list_projects(users["installer"])
        assert [p.project_id for p in listed] == [project.project_id]

        listed, _ = project_service.list_projects(users["stranger_installer"])
        assert listed == []

    def test_regulator_sees_everything(self, users, project_service, project):
        _create(project_service, users["other_owner"], name="Elsewhere")
        listed, _ = project_service.list_projects(users["regulator"])
        assert len(listed) == 2

    def test_filters_and_pagination(self, users, project_service):
        for n in range(3):
            _create(project_service, users["owner"], name=f"Block {n}", project_type=ProjectType.COMMERCIAL)
        _create(project_service, users["owner"], name="Warehouse", project_type=ProjectType.INDUSTRIAL)

        page, pagination = project_service.list_projects(
            users["owner"], page=1, limit=2, project_type=ProjectType.COMMERCIAL
        )
        assert len(page) == 2
        assert pagination.total_items == 3
        assert pagination.total_pages == 2
        assert pagination.has_next_page
        assert not pagination.has_prev_page

    def test_get_project_counts_passports(self, users, project_service, dpp_service, project):
        dpp_service.create(users["contractor"], DPPCreate(
            project_id=project.project_id, product_name="Cement", category="Cement", quantity=10, unit="bag"
        ))
        read = project_service.get_project(users["installer"], project.project_id)
        assert read.dpp_count == 1

    def test_get_project_refuses_outsiders(self, users, project_service, project):
        for key in ("other_owner", "stranger_contractor", "stranger_supplier"):
            with pytest.raises(ForbiddenError):
                project_service.get_project(users[key], project.project_id)

    def test_get_missing_project(self, users, project_service):
        with pytest.raises(NotFoundError):
            project_service.get_project(users["regulator"], "PRJ-0-NONE")


class TestUpdateProject:

    def test_nested_values_are_merged(self, users, project_service):
        project = project_service.create_project(users["owner"], ProjectCreate(
            project_name="Harbour Quay",
            project_type=ProjectType.MIXED_USE,
            location=Location(city="Kochi", country="India"),
            budget=Budget(estimated=1000),
        ))

        updated = project_service.update_project(users["owner"], project.project_id, ProjectUpdate(
            status=ProjectStatus.ON_HOLD,
            location=Location(pincode="682001"),
            budget=Budget(actual=400),
        ))

        assert updated.status == ProjectStatus.ON_HOLD
        assert updated.location == {"city": "Kochi", "country": "India", "pincode": "682001"}
        assert updated.budget["estimated"] == 1000
        assert updated.budget["actual"] == 400

    def test_non_owner_cannot_update(self, users, project_service, project):
        with pytest.raises(ForbiddenError):
            project_service.update_project(
                users["contractor"], project.project_id, ProjectUpdate(description="x")
            )

    def test_empty_update_is_rejected(self, users, project_service, project):
        with pytest.raises(InvalidInputError):
            project_service.update_project(users["owner"], project.project_id, ProjectUpdate())


class TestStats:

    def test_empty_project(self, users, project_service, project):
        stats = project_service.get_stats(users["owner"], project.project_id)
        assert stats.dpp_stats.total == 0
        assert stats.dpp_stats.completion_rate == 0
        assert stats.average_completeness == 0
        assert stats.team_size.contractors == 1

    def test_counts_by_status(self, users, project_service, dpp_service, project):
        created = []
        for name in ("Cement", "Steel", "Glass"):
            created.append(dpp_service.create(users["contractor"], DPPCreate(
                project_id=project.project_id,
                product_name=f"{name} batch",
                category=name,
                quantity=1,
                unit="piece",
                procurement_data=ProcurementFields(supplier_name="Reddy"),
            )).dpp)
        dpp_service.enrich(users["supplier"], created[0].dpp_id, EnrichmentFields())

        stats = project_service.get_stats(users["regulator"], project.project_id)

        assert stats.dpp_stats.total == 3
        assert stats.dpp_stats.created == 2
        assert stats.dpp_stats.enriched == 1
        assert stats.dpp_stats.completion_rate == 33
        assert {c.category for c in stats.category_breakdown} == {"Cement", "Steel", "Glass"}
        # One of fifteen checks populated on every passport.
        assert stats.average_completeness == pytest.approx(7.0)

    def test_passports_of_other_projects_are_ignored(self, session, users, project_service, project):
        other = _create(project_service, users["owner"], name="Second Site")
        session.add(DigitalProductPassport(
            dpp_id="DPP-X", project_id=other.project_id, product_name="Stray",
            category=MaterialCategory.OTHER, quantity=1, unit=MaterialUnit.OTHER,
        ))
        session.commit()

        stats = project_service.get_stats(users["owner"], project.project_id)
        assert stats.dpp_stats.total == 0
