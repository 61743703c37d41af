"""Durable licence store with a single serialising lock.

Licences and the sales statistics live in one JSON snapshot file so that a
single ``os.replace`` makes the whole new state durable at once. Every
mutation runs inside :meth:`LicenceStore.transaction`, which holds the
store lock across read, compute, persist and publish. Readers take the last
published snapshot without locking.
"""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

from licence.errors import StorageFailure
from licence.models import Licence, StatsAggregate

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """A complete, consistent view of licences and statistics."""

    licences: Mapping[str, Licence] = field(default_factory=dict)
    stats: StatsAggregate = field(default_factory=StatsAggregate)

    def find_by_payment_reference(self, reference: str):
        for licence in self.licences.values():
            if licence.payment_reference == reference:
                return licence
        return None

    def count_active(self) -> int:
        return sum(1 for licence in self.licences.values() if licence.is_active)


class JsonSnapshotFile:
    """Load and atomically replace the snapshot file.

    Also reads the legacy layout, where ``licences.json`` held a bare
    key → record mapping and the totals lived in a sibling ``stats.json``.
    """

    def __init__(self, path: str | Path, default_product: str = "ReplyBolt"):
        self._path = Path(path)
        self._default_product = default_product

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> Snapshot:
        if not self._path.exists():
            return Snapshot({}, StatsAggregate())
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            raise StorageFailure(f"Cannot read licence store {self._path}: {e}") from e

        if "licences" in data and "stats" in data:
            records = data["licences"]
            stats = StatsAggregate.from_dict(data["stats"])
        else:
            records = data
            stats = self._load_legacy_stats()
            logger.info("Loaded legacy licence layout from %s", self._path)

        try:
            licences = {
                key: Licence.from_dict(key, record, self._default_product)
                for key, record in records.items()
            }
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StorageFailure(f"Malformed licence record in {self._path}: {e}") from e
        return Snapshot(licences, stats)

    def replace(self, snapshot: Snapshot) -> None:
        """Write the full snapshot to a temp file, fsync it, then rename."""
        payload = {
            "licences": {key: lic.to_dict() for key, lic in snapshot.licences.items()},
            "stats": snapshot.stats.to_dict(),
        }
        try:
            text = json.dumps(payload, indent=2)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(text)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_path, self._path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageFailure(f"Failed to write licence store {self._path}: {e}") from e

    def _load_legacy_stats(self) -> StatsAggregate:
        stats_path = self._path.with_name("stats.json")
        if not stats_path.exists():
            return StatsAggregate()
        try:
            return StatsAggregate.from_dict(json.loads(stats_path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, OSError, ValueError) as e:
            raise StorageFailure(f"Cannot read legacy stats {stats_path}: {e}") from e


class LicenceStore:
    """Owns the authoritative licence set and statistics for the process."""

    def __init__(self, backend: JsonSnapshotFile):
        self._backend = backend
        self._lock = threading.RLock()
        self._closed = False
        self._current = self._publish(backend.load())
        if not backend.exists():
            backend.replace(self._current)

    @classmethod
    def open(cls, path: str | Path, default_product: str = "ReplyBolt") -> "LicenceStore":
        """Open (creating if needed) the store backed by the JSON file at ``path``."""
        store = cls(JsonSnapshotFile(path, default_product))
        logger.info(
            "Licence store opened at %s (%d licence(s))",
            path, len(store.snapshot().licences),
        )
        return store

    @property
    def path(self) -> Path:
        return self._backend.path

    def snapshot(self) -> Snapshot:
        """Return the last fully persisted state. Do not mutate it."""
        return self._current

    @contextmanager
    def transaction(self) -> Iterator[Snapshot]:
        """Serialise a read-modify-write over licences and statistics.

        Yields a private working copy. If the block completes, the copy is
        persisted and then published; if it raises, or persisting fails,
        the previous state stays in place.
        """
        with self._lock:
            if self._closed:
                raise StorageFailure("Licence store is closed")
            current = self._current
            working = Snapshot(dict(current.licences), current.stats.copy())
            yield working
            if working.licences == current.licences and working.stats == current.stats:
                return
            self._backend.replace(working)
            self._current = self._publish(working)

    def close(self) -> None:
        with self._lock:
            self._closed = True
        logger.info("Licence store closed")

    @staticmethod
    def _publish(snapshot: Snapshot) -> Snapshot:
        return Snapshot(MappingProxyType(dict(snapshot.licences)), snapshot.stats.copy())
