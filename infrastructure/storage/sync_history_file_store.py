"""JSON file implementation of SyncHistoryStore."""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Union

from pydantic import TypeAdapter, ValidationError

from application.models import SyncHistoryEntry

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(List[SyncHistoryEntry])


class JsonFileSyncHistoryStore:
    """Stores the ledger as a single JSON array, newest first.

    Writes go to a temporary file in the same directory and are moved into
    place, so a crash mid-write leaves the previous file intact.
    """

    FILENAME = "sync_history.json"

    def __init__(self, path: Union[str, Path]) -> None:
        path = Path(path)
        self._path = path / self.FILENAME if path.is_dir() else path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[SyncHistoryEntry]:
        if not self._path.exists():
            return []
        try:
            return _ENTRIES.validate_json(self._path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable sync history at %s: %s", self._path, e)
            return []

    def save(self, entries: List[SyncHistoryEntry]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = _ENTRIES.dump_json(entries, by_alias=True, indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".sync_history.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
