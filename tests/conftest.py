import os
import tempfile

# Settings are read at import time; pin them before the app is imported.
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STATIC_DIR"] = tempfile.mkdtemp(prefix="dpp-static-")
os.environ["LOG_FILE"] = ""
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["PUBLIC_URL"] = "http://api.test"
for _name in ("PINATA_JWT", "PINATA_API_KEY", "PINATA_SECRET_KEY",
              "ETHEREUM_RPC_URL", "PRIVATE_KEY", "CONTRACT_ADDRESS"):
    os.environ[_name] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, create_engine  # noqa: E402

from app.core.exceptions import ExternalServiceError  # noqa: E402
from app.db.core import get_session, init_db  # noqa: E402
from app.db.schema import ProjectType, UserRole  # noqa: E402
from app.models.project import ProjectCreate  # noqa: E402
from app.models.user import UserCreate  # noqa: E402
from app.services.dpp import DPPService  # noqa: E402
from app.services.ledger import LedgerReceipt  # noqa: E402
from app.services.project import ProjectService  # noqa: E402
from app.services.user import UserService  # noqa: E402


ADDRESSES = {
    "owner": "0x" + "a1" * 20,
    "contractor": "0x" + "b2" * 20,
    "installer": "0x" + "c3" * 20,
    "supplier": "0x" + "d4" * 20,
    "regulator": "0x" + "e5" * 20,
    "other_owner": "0x" + "f6" * 20,
    "stranger_contractor": "0x" + "17" * 20,
    "stranger_installer": "0x" + "28" * 20,
    "stranger_supplier": "0x" + "39" * 20,
}

ROLES = {
    "owner": UserRole.OWNER,
    "contractor": UserRole.CONTRACTOR,
    "installer": UserRole.INSTALLER,
    "supplier": UserRole.SUPPLIER,
    "regulator": UserRole.REGULATOR,
    "other_owner": UserRole.OWNER,
    "stranger_contractor": UserRole.CONTRACTOR,
    "stranger_installer": UserRole.INSTALLER,
    "stranger_supplier": UserRole.SUPPLIER,
}


class FakeStorage:
    """Records every upload; `fail=True` makes every call raise."""

    configured = True

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.documents = []
        self.files = []

    def upload_json(self, document, name=None):
        if self.fail:
            raise ExternalServiceError("IPFS unavailable")
        self.documents.append((name, document))
        return f"bafyjson{len(self.documents)}"

    def upload_file(self, content, filename, content_type="application/octet-stream"):
        if self.fail:
            raise ExternalServiceError("IPFS unavailable")
        self.files.append((filename, content, content_type))
        return f"bafyfile{len(self.files)}"

    def upload_with_retry(self, upload, retries=None):
        return upload()

    def upload_many(self, files):
        return [self.upload_file(*f) for f in files]

    def retrieve(self, cid):
        if self.fail:
            raise ExternalServiceError("IPFS unavailable")
        return {"cid": cid}

    def gateway_url(self, cid):
        return f"https://gateway.test/ipfs/{cid}" if cid else None


class FakeLedger:
    """Records every contract call; `fail=True` makes every call raise."""

    configured = True

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))
        if self.fail:
            raise ExternalServiceError("RPC unavailable")
        return LedgerReceipt(
            transaction_hash="0x" + f"{len(self.calls):064x}",
            block_number=len(self.calls),
            gas_used=21000,
            status="success",
        )

    def create_project(self, project_id, metadata_ref):
        return self._record("createProject", project_id, metadata_ref)

    def mint_dpp(self, dpp_id, project_id, metadata_ref):
        return self._record("mintDPP", dpp_id, project_id, metadata_ref)

    def update_installation(self, dpp_id, metadata_ref):
        return self._record("updateInstallation", dpp_id, metadata_ref)

    def enrich_dpp(self, dpp_id, metadata_ref):
        return self._record("enrichDPP", dpp_id, metadata_ref)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def users(session):
    """One registered user per key in ADDRESSES."""
    service = UserService(session)
    registered = {}
    for key, address in ADDRESSES.items():
        service.register(UserCreate(
            wallet_address=address,
            role=ROLES[key],
            name=key.replace("_", " ").title(),
            company=f"{key} ltd",
        ))
        registered[key] = service.get_user_by_identity(address)
    return registered


@pytest.fixture
def project_service(session, storage, ledger):
    return ProjectService(session, storage=storage, ledger=ledger)


@pytest.fixture
def dpp_service(session, storage, ledger):
    return DPPService(session, storage=storage, ledger=ledger)


@pytest.fixture
def project(users, project_service):
    """A project owned by `owner` with contractor, installer and supplier on its rosters."""
    owner = users["owner"]
    created = project_service.create_project(owner, ProjectCreate(
        project_name="Harbour View Tower",
        project_type=ProjectType.RESIDENTIAL,
        total_floors=12,
        zones=["Podium", "Tower"],
    ))
    project_service.add_member(owner, created.project_id, UserRole.CONTRACTOR, ADDRESSES["contractor"])
    project_service.add_member(owner, created.project_id, UserRole.INSTALLER, ADDRESSES["installer"])
    project_service.add_member(owner, created.project_id, UserRole.SUPPLIER, ADDRESSES["supplier"])
    return project_service.require_project(created.project_id)


@pytest.fixture
def client(engine, storage, ledger):
    from app.core.dependencies import get_ledger_client, get_storage_client
    from app.main import app

    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_storage_client] = lambda: storage
    app.dependency_overrides[get_ledger_client] = lambda: ledger

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_header(session):
    """Builds a bearer header for a registered user."""
    service = UserService(session)

    def build(user):
        return {"Authorization": f"Bearer {service.generate_access_token(user)}"}

    return build
