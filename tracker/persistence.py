"""
Persistence stores for the workshop session
A store holds one serialized blob per storage key
"""
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from .exceptions import StorageReadFailure
from .models import WorkshopSession

logger = logging.getLogger(__name__)

class PersistenceStore:
    """Key-value store for a single serialized session blob"""

    def load(self) -> Optional[str]:
        raise NotImplementedError

    def save(self, blob: str):
        raise NotImplementedError


class MemoryStore(PersistenceStore):
    """Ephemeral store kept in process memory"""

    def __init__(self, initial: Optional[str] = None):
        self.blob = initial
        self.save_count = 0

    def load(self) -> Optional[str]:
        return self.blob

    def save(self, blob: str):
        self.blob = blob
        self.save_count += 1


class JsonFileStore(PersistenceStore):
    """Stores the blob as a JSON file named after the storage key"""

    def __init__(self, base_path: str = "./progress-data", key: str = "workshop-progress"):
        self.base_path = Path(base_path)
        self.key = key

    @property
    def path(self) -> Path:
        return self.base_path / f"{self.key}.json"

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadFailure(f"Could not read {self.path}: {e}") from e

    def save(self, blob: str):
        self.base_path.mkdir(parents=True, exist_ok=True)

        # Write then rename so a crash mid-write leaves the previous save intact
        tmp_path = self.path.with_suffix(".json.tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            f.write(blob)
        tmp_path.replace(self.path)


def encode_session(session: WorkshopSession) -> str:
    return json.dumps(session.to_dict(), indent=2)


def decode_session(blob: str, now: int) -> WorkshopSession:
    """Decode a persisted blob, merging it over the default scenarios"""
    try:
        data: Dict[str, Any] = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise StorageReadFailure(f"Malformed session data: {e}") from e

    if not isinstance(data, dict):
        raise StorageReadFailure(f"Session data must be an object, got {type(data).__name__}")

    try:
        return WorkshopSession.from_dict(data, now)
    except (TypeError, ValueError, OverflowError) as e:
        raise StorageReadFailure(f"Unusable session data: {e}") from e
