"""JSON file address cache.

Implements the core AddressCachePort on a single JSON array file. The file
format matches the one written by earlier versions of the tool:

    [{"resourceId": "...", "gsocAddress": "...",
      "inputs": {"gsocId": "...", "storageDepth": 16, "targetOverlay": "..."}}]
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Optional

from core.models import CacheRecord, MiningInputs

LOGGER = logging.getLogger(__name__)


def _atomic_write_text(path: str, text: str) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=os.path.basename(path) + ".", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)


class JsonAddressCache:
    """Append-only list of mined channels persisted as JSON.

    Single-writer only: append does a full read-modify-write with no locking.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def _read_entries(self) -> list[Any]:
        if not os.path.exists(self._path):
            self._reset()
            return []

        with open(self._path, "rb") as handle:
            data = handle.read()
        try:
            entries = json.loads(data.decode("utf-8"))
        except ValueError:
            # UnicodeDecodeError is a ValueError too.
            LOGGER.error("Invalid JSON in %s. Resetting file...", self._path)
            self._reset()
            return []
        if not isinstance(entries, list):
            LOGGER.error("Expected a JSON array in %s. Resetting file...", self._path)
            self._reset()
            return []
        return entries

    def _reset(self) -> None:
        _atomic_write_text(self._path, "[]")

    def load(self) -> list[CacheRecord]:
        """Return all well-formed records in insertion order."""

        records: list[CacheRecord] = []
        for index, entry in enumerate(self._read_entries()):
            try:
                records.append(CacheRecord.from_json(entry))
            except (KeyError, TypeError, ValueError):
                LOGGER.warning("Skipping malformed cache entry #%s in %s", index, self._path)
        return records

    def append(self, record: CacheRecord) -> None:
        """Persist one more record, keeping unparseable entries untouched."""

        entries = self._read_entries()
        entries.append(record.to_json())
        _atomic_write_text(self._path, json.dumps(entries, indent=2))

    def find(self, inputs: MiningInputs) -> Optional[CacheRecord]:
        """Exact-match lookup; the first matching record wins."""

        for record in self.load():
            if record.inputs == inputs:
                return record
        return None
