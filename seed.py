import argparse
from datetime import datetime

from loguru import logger
from sqlmodel import Session, SQLModel

from app.core.config import settings
from app.db.core import engine, init_db
from app.db.schema import MaterialCategory, MaterialUnit, ProjectType, UserRole
from app.models.dpp import DPPCreate, EnrichmentFields, InstallationFields, ProcurementFields
from app.models.project import Budget, Location, ProjectCreate, Timeline
from app.models.user import UserCreate
from app.services.dpp import DPPService
from app.services.ledger import LedgerClient
from app.services.project import ProjectService
from app.services.storage import IPFSStorageClient
from app.services.user import UserService


# Public development accounts. Never fund these on a real network.
SAMPLE_USERS = [
    {
        "wallet_address": "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
        "role": UserRole.OWNER,
        "name": "Rajesh Kumar",
        "company": "Kumar Properties Ltd",
        "email": "rajesh@kumarproperties.in",
    },
    {
        "wallet_address": "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
        "role": UserRole.CONTRACTOR,
        "name": "Arjun Singh",
        "company": "Singh Construction Co",
        "email": "arjun@singhconstruction.in",
    },
    {
        "wallet_address": "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
        "role": UserRole.INSTALLER,
        "name": "Amit Sharma",
        "company": "Sharma Installations",
        "email": "amit@sharmainstallations.in",
    },
    {
        "wallet_address": "0x90F79bf6EB2c4f870365E785982E1f101E93b906",
        "role": UserRole.SUPPLIER,
        "name": "Priya Reddy",
        "company": "Reddy Building Materials",
        "email": "priya@reddymaterials.in",
    },
    {
        "wallet_address": "0x15d34AAf54267DB7D7c367839AAf71A00a2C6A65",
        "role": UserRole.REGULATOR,
        "name": "Anita Desai",
        "company": "Public Works Department",
        "email": "anita@pwd.gov.in",
    },
]

SAMPLE_PROJECT = ProjectCreate(
    project_name="Mumbai Metro Station - Phase 3",
    project_type=ProjectType.INFRASTRUCTURE,
    location=Location(
        address="Andheri East, Mumbai",
        city="Mumbai",
        state="Maharashtra",
        country="India",
        pincode="400069",
    ),
    total_floors=3,
    zones=["Concourse", "Platform", "Plant Room"],
    timeline=Timeline(
        start_date=datetime(2024, 1, 15),
        expected_completion=datetime(2025, 6, 30),
    ),
    budget=Budget(estimated=250000000, currency="INR"),
    description="Construction of a new metro station with modern amenities",
)


def reset_database():
    logger.warning("--- Dropping all tables ---")
    SQLModel.metadata.drop_all(engine)
    init_db()


def seed_users(session: Session) -> dict:
    """Registers one user per role. Returns role -> User."""
    logger.info("--- Seeding Users ---")
    service = UserService(session)
    users = {}

    for data in SAMPLE_USERS:
        user_in = UserCreate(**data)
        user = service.get_user_by_identity(user_in.wallet_address)
        if not user:
            service.register(user_in)
            user = service.get_user_by_identity(user_in.wallet_address)
            logger.info(f"Created {user.role.value}: {user.wallet_address}")
        else:
            logger.info(f"Existing {user.role.value}: {user.wallet_address}")
        users[user.role] = user

    return users


def seed_project(users: dict, projects: ProjectService):
    logger.info("--- Seeding Project ---")
    owner = users[UserRole.OWNER]
    project = projects.create_project(owner, SAMPLE_PROJECT)

    for role in (UserRole.CONTRACTOR, UserRole.INSTALLER, UserRole.SUPPLIER):
        projects.add_member(owner, project.project_id, role, users[role].wallet_address)

    return project


def seed_passports(users: dict, project_id: str, dpps: DPPService):
    """One passport in each reachable lifecycle state."""
    logger.info("--- Seeding Passports ---")
    contractor = users[UserRole.CONTRACTOR]

    def create(name, category, quantity, unit):
        return dpps.create(contractor, DPPCreate(
            project_id=project_id,
            product_name=name,
            category=category,
            quantity=quantity,
            unit=unit,
            procurement_data=ProcurementFields(
                supplier_name=users[UserRole.SUPPLIER].company,
                batch_number=f"BATCH-{name[:3].upper()}-001",
                delivery_date=datetime.utcnow(),
                delivery_location="Site gate 2",
            ),
        )).dpp

    create("OPC 53 Grade Cement", MaterialCategory.CEMENT, 500, MaterialUnit.BAG)

    installed = create("TMT Steel Rebar Fe500", MaterialCategory.STEEL, 12, MaterialUnit.TON)
    dpps.install(users[UserRole.INSTALLER], installed.dpp_id, InstallationFields(
        installation_location="Platform level, Zone B",
        installation_date=datetime.utcnow(),
        installer_name=users[UserRole.INSTALLER].name,
    ))

    enriched = create("Fire Rated Glass Panel", MaterialCategory.GLASS, 40, MaterialUnit.PIECE)
    dpps.install(users[UserRole.INSTALLER], enriched.dpp_id, InstallationFields(
        installation_location="Concourse facade",
        installation_date=datetime.utcnow(),
        installer_name=users[UserRole.INSTALLER].name,
    ))
    dpps.enrich(users[UserRole.SUPPLIER], enriched.dpp_id, EnrichmentFields(
        notes="Documents pending upload",
    ))


def main():
    parser = argparse.ArgumentParser(description="Seed the development database.")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables first.")
    args = parser.parse_args()

    if args.reset:
        reset_database()
    else:
        init_db()

    # Unconfigured clients degrade to warnings; configured ones are used as-is.
    storage = IPFSStorageClient(settings)
    ledger = LedgerClient(settings)

    with Session(engine) as session:
        try:
            users = seed_users(session)
            project = seed_project(users, ProjectService(session, storage, ledger))
            seed_passports(users, project.project_id, DPPService(session, storage, ledger))
            logger.info("Database seeding completed successfully.")

        except Exception as e:
            session.rollback()
            logger.error(f"Seeding failed: {e}")
            raise e


if __name__ == "__main__":
    main()
