"""SQLite database setup and connection."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)

DB_FILENAME = "media_hub.db"

# Global engine and session factory
engine = None
SessionLocal = None


def _sqlite_url(data_dir: str) -> str:
    """Crée data_dir si besoin, vérifie qu'il est inscriptible, renvoie l'URL SQLite."""
    data_path = Path(data_dir)
    data_path.mkdir(parents=True, exist_ok=True)
    probe = data_path / ".write_test"
    try:
        probe.touch()
        probe.unlink()
    except OSError as e:
        raise PermissionError(f"Cannot write to {data_dir}: {e}") from e
    return f"sqlite:///{data_path / DB_FILENAME}"


def init_db(data_dir: str = "/data", db_url: Optional[str] = None) -> None:
    """Initialize the engine; `db_url` overrides the file under data_dir (tests use "sqlite://")."""
    global engine, SessionLocal

    db_url = db_url or _sqlite_url(data_dir)
    logger.info(f"Initializing database at: {db_url}")

    # One shared connection: required for in-memory SQLite, harmless for a file
    engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    from app.db.models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized successfully")


def get_db_sync() -> Session:
    """Session hors dépendance FastAPI (à fermer par l'appelant)."""
    if SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return SessionLocal()
