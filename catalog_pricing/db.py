# catalog_pricing/db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from catalog_pricing.core.settings import get_settings

DATABASE_URL = get_settings().DATABASE_URL

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create all catalog tables (dev/test helper; production runs alembic)."""
    import catalog_pricing.models  # noqa: F401  (registers mappers)

    Base.metadata.create_all(bind=bind or engine)
