from typing import Any, Callable, Dict, List, Optional, Tuple
from datetime import datetime

from loguru import logger
from sqlmodel import Session, col, select

from app.core.exceptions import ForbiddenError, NotFoundError
from app.db.schema import (
    DigitalProductPassport, DPPStatus, MaterialCategory, Project, User, UserRole
)
from app.models.common import Pagination
from app.models.dpp import (
    BlockchainProof, DPPCreate, DPPCreated, DPPDetail, DPPRead, DPPVerification,
    EnrichmentData, EnrichmentFields, InstallationData, InstallationFields,
    ProcurementData, ProjectBrief, ProofStorageRefs, ProofTransactions
)
from app.services.authorization import is_authorized
from app.services.external import best_effort
from app.services.identifiers import generate_dpp_id
from app.services.ledger import LedgerClient, LedgerReceipt
from app.services.project import ProjectService
from app.services.scoring import calculate_completeness
from app.services.storage import IPFSStorageClient
from app.utils.pagination import paginate
from app.utils.qr import generate_and_save_qr, verification_url


VERIFY_NOTE = "scanned"


def _phase(model, data: Optional[Dict[str, Any]]):
    return model.model_validate(data) if data else None


def _store(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", exclude_none=True)


def to_dpp_read(dpp: DigitalProductPassport, read_model=DPPRead, **extra):
    # Built from a dict: the ORM object exposes SQLAlchemy's own `metadata`.
    data = dpp.model_dump()
    data["metadata"] = data.pop("product_metadata", None) or None
    return read_model.model_validate({**data, **extra})


def project_brief(project: Optional[Project]) -> Optional[ProjectBrief]:
    if project is None:
        return None
    return ProjectBrief(
        project_id=project.project_id,
        project_name=project.project_name,
        location=project.location or None,
        status=project.status,
    )


class DPPService:
    """
    Lifecycle of a Digital Product Passport.

    created --install--> installed --enrich--> enriched

    Each phase write is gated by the parent project's roster for the role
    that owns the phase. Storage snapshots and ledger calls are best effort
    and never block the local write.
    """

    def __init__(
        self,
        session: Session,
        storage: Optional[IPFSStorageClient] = None,
        ledger: Optional[LedgerClient] = None,
    ):
        self.session = session
        self.storage = storage
        self.ledger = ledger
        self.projects = ProjectService(session)

    # --- Helpers ----------------------------------------------------------

    def get_by_dpp_id(self, dpp_id: str, for_update: bool = False) -> DigitalProductPassport:
        statement = select(DigitalProductPassport).where(DigitalProductPassport.dpp_id == dpp_id)
        if for_update:
            statement = statement.with_for_update()
        dpp = self.session.exec(statement).first()
        if not dpp:
            raise NotFoundError("DPP not found")
        return dpp

    def _authorize_phase(self, user: User, dpp: DigitalProductPassport, role: UserRole) -> Project:
        project = self.projects.get_by_project_id(dpp.project_id)
        if not project:
            raise NotFoundError("Associated project not found")
        if not is_authorized(project, user.wallet_address, role):
            raise ForbiddenError(
                f"You are not authorized to act as {role.value} for this project"
            )
        return project

    def _publish(
        self,
        label: str,
        snapshot: Dict[str, Any],
        ledger_call: Callable[[Optional[str]], LedgerReceipt],
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Uploads the phase snapshot and mirrors it to the ledger.
        Returns (metadata_ref, ledger_tx_ref); either may be None.
        """
        metadata_ref = None
        if self.storage is not None:
            metadata_ref = best_effort(
                f"{label} metadata upload",
                lambda: self.storage.upload_with_retry(
                    lambda: self.storage.upload_json(snapshot, name=label)
                ),
            )

        tx_ref = None
        if self.ledger is not None:
            receipt = best_effort(f"Ledger {label}", lambda: ledger_call(metadata_ref))
            tx_ref = receipt.transaction_hash if receipt else None
        return metadata_ref, tx_ref

    @staticmethod
    def refresh_derived(dpp: DigitalProductPassport) -> None:
        """Recomputes completeness and the search text from the stored phase data."""
        procurement = _phase(ProcurementData, dpp.procurement_data)
        dpp.document_completeness = calculate_completeness(
            procurement,
            _phase(InstallationData, dpp.installation_data),
            _phase(EnrichmentData, dpp.enrichment_data),
        )
        parts = [
            dpp.product_name,
            getattr(dpp.category, "value", dpp.category),
            dpp.dpp_id,
            procurement.supplier_name if procurement else None,
        ]
        dpp.search_text = " ".join(p for p in parts if p)

    # --- Phase transitions ------------------------------------------------

    def create(self, user: User, data: DPPCreate) -> DPPCreated:
        """
        Procurement phase. The caller must be on the contractor roster of the
        target project (or own it).
        """
        project = self.projects.get_by_project_id(data.project_id)
        if not project:
            raise NotFoundError("Project not found")
        if not is_authorized(project, user.wallet_address, UserRole.CONTRACTOR):
            raise ForbiddenError("You are not authorized for this project")

        dpp_id = generate_dpp_id(project.project_id)
        procurement = ProcurementData(
            **data.procurement_data.model_dump(),
            contractor_wallet_address=user.wallet_address,
            procurement_timestamp=datetime.utcnow(),
        )
        product_metadata = _store(data.product_metadata) if data.product_metadata else {}

        snapshot = {
            "dppId": dpp_id,
            "projectId": project.project_id,
            "productName": data.product_name,
            "category": data.category.value,
            "quantity": data.quantity,
            "unit": data.unit.value,
            "procurement": procurement.model_dump(mode="json", by_alias=True, exclude_none=True),
            "metadata": product_metadata,
        }
        procurement.metadata_ref, procurement.ledger_tx_ref = self._publish(
            f"procurement-{dpp_id}",
            snapshot,
            lambda ref: self.ledger.mint_dpp(dpp_id, project.project_id, ref),
        )

        url = verification_url(dpp_id)
        dpp = DigitalProductPassport(
            dpp_id=dpp_id,
            project_id=project.project_id,
            product_name=data.product_name,
            category=data.category,
            quantity=data.quantity,
            unit=data.unit,
            qr_code_url=generate_and_save_qr(url, dpp_id),
            procurement_data=_store(procurement),
            contractor_wallet_address=user.wallet_address,
            status=DPPStatus.CREATED,
            product_metadata=product_metadata,
            tags=list(data.tags),
        )
        self.refresh_derived(dpp)

        try:
            self.session.add(dpp)
            self.session.commit()
            self.session.refresh(dpp)
        except Exception as e:
            self.session.rollback()
            logger.error(f"DPP creation failed: {str(e)}")
            raise e

        logger.info(f"DPP created: {dpp_id} in {project.project_id} by {user.wallet_address}")
        return DPPCreated(dpp=to_dpp_read(dpp), verification_url=url)

    def install(self, user: User, dpp_id: str, fields: InstallationFields) -> DPPRead:
        """
        Installation phase. Replaces any earlier installation data and sets
        the status to installed whatever the current status is.
        """
        dpp = self.get_by_dpp_id(dpp_id)
        self._authorize_phase(user, dpp, UserRole.INSTALLER)

        installation = InstallationData(
            **fields.model_dump(),
            installer_wallet_address=user.wallet_address,
            installation_timestamp=datetime.utcnow(),
        )
        snapshot = {
            "dppId": dpp_id,
            "installation": installation.model_dump(mode="json", by_alias=True, exclude_none=True),
        }
        installation.metadata_ref, installation.ledger_tx_ref = self._publish(
            f"installation-{dpp_id}",
            snapshot,
            lambda ref: self.ledger.update_installation(dpp_id, ref),
        )

        self.session.refresh(dpp, with_for_update=True)
        dpp.installation_data = _store(installation)
        dpp.installer_wallet_address = user.wallet_address
        dpp.status = DPPStatus.INSTALLED
        self.refresh_derived(dpp)

        self.session.add(dpp)
        self.session.commit()
        self.session.refresh(dpp)
        logger.info(
            f"Installation recorded: {dpp_id} by {user.wallet_address} "
            f"(completeness {dpp.document_completeness})"
        )
        return to_dpp_read(dpp)

    def enrich(self, user: User, dpp_id: str, fields: EnrichmentFields) -> DPPRead:
        """
        Enrichment phase. Replaces any earlier enrichment data, sets the
        status to enriched and marks the passport compliant. Compliance does
        not depend on the completeness score.
        """
        dpp = self.get_by_dpp_id(dpp_id)
        self._authorize_phase(user, dpp, UserRole.SUPPLIER)

        enrichment = EnrichmentData(
            **fields.model_dump(),
            supplier_wallet_address=user.wallet_address,
            enrichment_timestamp=datetime.utcnow(),
        )
        snapshot = {
            "dppId": dpp_id,
            "enrichment": enrichment.model_dump(mode="json", by_alias=True, exclude_none=True),
        }
        enrichment.metadata_ref, enrichment.ledger_tx_ref = self._publish(
            f"enrichment-{dpp_id}",
            snapshot,
            lambda ref: self.ledger.enrich_dpp(dpp_id, ref),
        )

        self.session.refresh(dpp, with_for_update=True)
        dpp.enrichment_data = _store(enrichment)
        dpp.supplier_wallet_address = user.wallet_address
        dpp.status = DPPStatus.ENRICHED
        dpp.compliance_status = True
        self.refresh_derived(dpp)

        self.session.add(dpp)
        self.session.commit()
        self.session.refresh(dpp)
        logger.info(
            f"Enrichment recorded: {dpp_id} by {user.wallet_address} "
            f"(completeness {dpp.document_completeness})"
        )
        return to_dpp_read(dpp)

    # --- Public reads -----------------------------------------------------

    def verify(self, dpp_id: str) -> DPPVerification:
        """
        Public QR scan. Every call appends one record to the verification
        history; the returned view carries no identities or references.
        """
        dpp = self.get_by_dpp_id(dpp_id, for_update=True)
        record = {
            "verified_by": None,
            "verified_at": datetime.utcnow().isoformat(),
            "notes": VERIFY_NOTE,
        }
        dpp.verification_history = [*(dpp.verification_history or []), record]
        self.session.add(dpp)
        self.session.commit()
        self.session.refresh(dpp)

        project = self.projects.get_by_project_id(dpp.project_id)
        logger.info(f"DPP verified: {dpp_id} ({len(dpp.verification_history)} scans)")
        return DPPVerification(
            dpp_id=dpp.dpp_id,
            product_name=dpp.product_name,
            category=dpp.category,
            quantity=dpp.quantity,
            unit=dpp.unit,
            status=dpp.status,
            document_completeness=dpp.document_completeness,
            compliance_status=dpp.compliance_status,
            project=project_brief(project),
            created_at=dpp.created_at,
        )

    def get_blockchain_proof(self, dpp_id: str) -> BlockchainProof:
        """Assembled from stored references only; makes no network calls."""
        dpp = self.get_by_dpp_id(dpp_id)
        proc = _phase(ProcurementData, dpp.procurement_data) or ProcurementData()
        inst = _phase(InstallationData, dpp.installation_data) or InstallationData()
        enr = _phase(EnrichmentData, dpp.enrichment_data) or EnrichmentData()

        return BlockchainProof(
            dpp_id=dpp.dpp_id,
            transactions=ProofTransactions(
                procurement=proc.ledger_tx_ref,
                installation=inst.ledger_tx_ref,
                enrichment=enr.ledger_tx_ref,
            ),
            storage_refs=ProofStorageRefs(
                procurement_metadata=proc.metadata_ref,
                installation_metadata=inst.metadata_ref,
                enrichment_metadata=enr.metadata_ref,
                delivery_photo=proc.delivery_photo_cid,
                installation_photos=inst.installation_photo_cids,
                commissioning_docs=inst.commissioning_doc_cids,
                safety_certificates=inst.safety_certificate_cids,
                epd_document=enr.epd_document_cid,
                fire_rating_cert=enr.fire_rating_cert_cid,
                technical_specs=enr.technical_specs_cid,
                warranty_doc=enr.warranty_doc_cid,
                maintenance_manual=enr.maintenance_manual_cid,
            ),
        )

    # --- Authenticated reads ----------------------------------------------

    def get_details(self, dpp_id: str) -> DPPDetail:
        dpp = self.get_by_dpp_id(dpp_id)
        project = self.projects.get_by_project_id(dpp.project_id)
        return to_dpp_read(dpp, DPPDetail, project=project_brief(project))

    def list_by_project(
        self,
        user: User,
        project_id: str,
        page: int = 1,
        limit: int = 20,
        status: Optional[DPPStatus] = None,
        category: Optional[MaterialCategory] = None,
    ) -> Tuple[List[DPPRead], Pagination]:
        self.projects.require_viewable(user, project_id)

        statement = select(DigitalProductPassport).where(
            DigitalProductPassport.project_id == project_id
        )
        if status:
            statement = statement.where(DigitalProductPassport.status == status)
        if category:
            statement = statement.where(DigitalProductPassport.category == category)

        statement = statement.order_by(col(DigitalProductPassport.created_at).desc())
        items, pagination = paginate(self.session, statement, page, limit)
        return [to_dpp_read(d) for d in items], pagination

    def search(
        self,
        user: User,
        query: Optional[str] = None,
        category: Optional[MaterialCategory] = None,
        status: Optional[DPPStatus] = None,
        project_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[DPPRead], Pagination]:
        """
        Text and filter search. Callers other than owners and regulators only
        see passports of projects they own or are on a roster of.
        """
        statement = select(DigitalProductPassport)

        if user.role not in (UserRole.OWNER, UserRole.REGULATOR):
            allowed = self.projects.accessible_project_ids(user.wallet_address)
            statement = statement.where(col(DigitalProductPassport.project_id).in_(allowed))

        if query and query.strip():
            statement = statement.where(
                col(DigitalProductPassport.search_text).ilike(f"%{query.strip()}%")
            )
        if category:
            statement = statement.where(DigitalProductPassport.category == category)
        if status:
            statement = statement.where(DigitalProductPassport.status == status)
        if project_id:
            statement = statement.where(DigitalProductPassport.project_id == project_id)

        statement = statement.order_by(col(DigitalProductPassport.created_at).desc())
        items, pagination = paginate(self.session, statement, page, limit)
        return [to_dpp_read(d) for d in items], pagination
