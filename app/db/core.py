from app.core.config import settings
from sqlmodel import SQLModel, Session, create_engine


connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.database_url, connect_args=connect_args)


def init_db(bind=None):
    # Registers every table on SQLModel.metadata
    import app.db.schema  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session
