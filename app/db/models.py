"""SQLAlchemy models for database."""
from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class StorageEntry(Base):
    """Entrée clé/valeur, équivalent du localStorage du navigateur."""
    __tablename__ = "storage"

    key = Column(String, primary_key=True, index=True)
    value = Column(Text, nullable=False)  # Blob JSON sérialisé
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
