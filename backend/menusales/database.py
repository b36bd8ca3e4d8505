import uuid

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import settings

_DB_URL = settings.get_db_url()

if _DB_URL.startswith("sqlite"):
    # Local / test databases; the background pipeline uses its own session
    engine = create_engine(_DB_URL, connect_args={"check_same_thread": False})
else:
    engine = create_engine(
        _DB_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        connect_args={"sslmode": "require"} if settings.db_ssl else {},
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def new_id() -> str:
    """Opaque string primary key, matching the stable string ids used for metrics."""
    return uuid.uuid4().hex
