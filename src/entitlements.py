"""
Partner entitlement records and the store that loads them.

The policy lives in a JSON document, in load order:

    {
        "entitlements": [
            {
                "entitlementId": "ent-001",
                "subject": {"type": "partner", "id": "ACME"},
                "action": "read",
                "object": {"api": "orders"},
                "constraints": {}
            }
        ]
    }

The decision engine never reads this file itself. It is handed an
EntitlementSnapshot: an immutable, fully parsed copy of the document. Any
failure to read or parse the document raises EntitlementStoreError so the
caller can fail closed; a partially parsed snapshot is never produced.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Iterable, Iterator

from pydantic import Field, ValidationError

from src.models import WireModel

logger = logging.getLogger("token-extension.entitlements")


class EntitlementStoreError(Exception):
    """
    Raised when the entitlement document can't be read or parsed.

    Attributes:
        message: Human-readable description (logged server-side only)
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class Subject(WireModel):
    type: str
    id: str


class EntitlementRecord(WireModel):
    """
    Grants `action` to `subject`.

    `object` and `constraints` are carried for forward compatibility; the
    current matching rule only looks at the subject. Null for either reads
    as an empty mapping.
    """

    entitlement_id: str = Field(default="", alias="entitlementId")
    subject: Subject
    action: str
    object: dict[str, Any] = Field(default_factory=dict)
    constraints: dict[str, Any] = Field(default_factory=dict)


class EntitlementSnapshot:
    """Read-only, ordered view over a set of entitlement records."""

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[EntitlementRecord] = ()):
        self._records = tuple(records)

    @property
    def records(self) -> tuple[EntitlementRecord, ...]:
        return self._records

    def lookup(self, subject_type: str, subject_id: str) -> list[EntitlementRecord]:
        """Records granted to exactly this subject, in load order."""
        return [
            record
            for record in self._records
            if record.subject.type == subject_type and record.subject.id == subject_id
        ]

    def __iter__(self) -> Iterator[EntitlementRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"EntitlementSnapshot({len(self._records)} records)"


def parse_snapshot(document: Any) -> EntitlementSnapshot:
    """
    Build a snapshot from an already decoded entitlement document.

    Raises:
        EntitlementStoreError: If the document doesn't have the expected shape
    """
    if not isinstance(document, dict):
        raise EntitlementStoreError("Entitlement document must be a JSON object")

    entries = document.get("entitlements")
    if entries is None:
        entries = []
    elif not isinstance(entries, list):
        raise EntitlementStoreError("'entitlements' must be a list")

    try:
        records = [EntitlementRecord.model_validate(entry) for entry in entries]
    except ValidationError as e:
        raise EntitlementStoreError(f"Malformed entitlement record: {e}") from e

    return EntitlementSnapshot(records)


def load_snapshot(path: Path) -> EntitlementSnapshot:
    """
    Read and parse the entitlement document at `path`.

    Raises:
        EntitlementStoreError: If the file can't be read or parsed
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise EntitlementStoreError(f"Failed to read {path}: {e}") from e

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as e:
        raise EntitlementStoreError(f"Failed to parse {path}: {e}") from e

    return parse_snapshot(document)


class FileEntitlementStore:
    """
    Serves snapshots of an entitlement file, reloading it when it changes.

    The file is stat'ed on every call and re-parsed when its modification time
    or size differs from the last successful load. A new snapshot replaces the
    old one as a whole, so evaluations already holding a snapshot keep a
    consistent view.

    A failed reload raises and leaves no snapshot cached: a broken or missing
    file is never papered over with the previous contents.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._signature: tuple[int, int] | None = None
        self._snapshot: EntitlementSnapshot | None = None

    def snapshot(self) -> EntitlementSnapshot:
        try:
            stat = os.stat(self.path)
        except OSError as e:
            self._invalidate()
            raise EntitlementStoreError(f"Failed to read {self.path}: {e}") from e

        signature = (stat.st_mtime_ns, stat.st_size)

        with self._lock:
            if self._snapshot is not None and self._signature == signature:
                return self._snapshot

            try:
                snapshot = load_snapshot(self.path)
            except EntitlementStoreError:
                self._signature = None
                self._snapshot = None
                raise

            self._signature = signature
            self._snapshot = snapshot

        logger.info(
            "Entitlements loaded",
            extra={
                "decision_data": {
                    "path": str(self.path),
                    "entitlements": len(snapshot),
                }
            },
        )
        return snapshot

    def _invalidate(self) -> None:
        with self._lock:
            self._signature = None
            self._snapshot = None
