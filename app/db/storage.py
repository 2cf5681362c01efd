"""Key/value storage backed by the SQLite database."""
from datetime import datetime
from typing import Optional

from app.db.database import get_db_sync
from app.db.models import StorageEntry


class LocalStorage:
    """Stockage clé/valeur persistant (un blob texte par clé)."""

    def get_item(self, key: str) -> Optional[str]:
        db = get_db_sync()
        try:
            entry = db.query(StorageEntry).filter(StorageEntry.key == key).first()
            return entry.value if entry else None
        finally:
            db.close()

    def set_item(self, key: str, value: str) -> None:
        """Remplace entièrement la valeur stockée sous `key`."""
        db = get_db_sync()
        try:
            entry = db.query(StorageEntry).filter(StorageEntry.key == key).first()
            if entry is None:
                db.add(StorageEntry(key=key, value=value))
            else:
                entry.value = value
                entry.updated_at = datetime.utcnow()
            db.commit()
        finally:
            db.close()
