"""Repositories of tournaments and sidegames, mirrored to a snapshot store.

The in-memory repository is authoritative. Snapshots are written after each
mutation; a failed write is logged and the in-memory state is kept.
"""
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Callable, Dict

from golflive.models import Snapshot


class SqlSnapshotStore:
    """One row per record in the ``snapshot`` table; each save is one transaction."""

    def __init__(self, db):
        self.db = db

    def save(self, kind: str, key: str, payload: dict) -> None:
        session = self.db.session
        try:
            row = session.get(Snapshot, (kind, key))
            if row is None:
                row = Snapshot(kind=kind, key=key)
                session.add(row)
            row.payload = json.dumps(payload)
            row.updated_at = datetime.now(timezone.utc)
            session.commit()
        except Exception:
            session.rollback()
            raise

    def delete(self, kind: str, key: str) -> None:
        session = self.db.session
        try:
            Snapshot.query.filter_by(kind=kind, key=key).delete()
            session.commit()
        except Exception:
            session.rollback()
            raise

    def load_all(self, kind: str) -> Dict[str, dict]:
        return {row.key: json.loads(row.payload) for row in Snapshot.query.filter_by(kind=kind).all()}


class FileSnapshotStore:
    """One JSON file per record: <directory>/<kind>/<key>.json.

    Files are written to a temp file in the same directory and renamed into
    place, so a crash leaves either the old or the new document.
    """

    def __init__(self, directory: str):
        self.directory = directory

    def _folder(self, kind: str) -> str:
        return os.path.join(self.directory, kind)

    def _path(self, kind: str, key: str) -> str:
        if not key or key.startswith('.') or '/' in key or '\\' in key:
            raise ValueError(f'Invalid snapshot key {key!r}')
        return os.path.join(self._folder(kind), f'{key}.json')

    def save(self, kind: str, key: str, payload: dict) -> None:
        path = self._path(kind, key)
        folder = self._folder(kind)
        os.makedirs(folder, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f'.{key}.', suffix='.tmp', dir=folder)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def delete(self, kind: str, key: str) -> None:
        try:
            os.unlink(self._path(kind, key))
        except FileNotFoundError:
            pass

    def load_all(self, kind: str) -> Dict[str, dict]:
        folder = self._folder(kind)
        if not os.path.isdir(folder):
            return {}
        records = {}
        for fname in sorted(os.listdir(folder)):
            if fname.startswith('.') or not fname.endswith('.json'):
                continue
            with open(os.path.join(folder, fname), encoding='utf-8') as f:
                records[fname[:-len('.json')]] = json.load(f)
        return records


class Repository:
    """get/put/delete by id for one record kind."""

    def __init__(self, kind: str, from_dict: Callable[[dict], object], store=None, logger=None):
        self.kind = kind
        self._from_dict = from_dict
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self._items: dict = {}

    def get(self, record_id: str):
        if record_id is None:
            return None
        return self._items.get(record_id)

    def values(self) -> list:
        return list(self._items.values())

    def put(self, record):
        self._items[record.id] = record
        self.save(record)
        return record

    def delete(self, record_id: str):
        record = self._items.pop(record_id, None)
        if record is not None and self.store is not None:
            try:
                self.store.delete(self.kind, record_id)
            except Exception:
                self.logger.exception(f"[snapshot-failed] kind={self.kind} key={record_id} op=delete")
        return record

    def save(self, record) -> bool:
        """Persist the record's current state; False (and a log line) if that failed."""
        if self.store is None:
            return True
        try:
            self.store.save(self.kind, record.id, record.to_dict())
        except Exception:
            self.logger.exception(f"[snapshot-failed] kind={self.kind} key={record.id} op=save")
            return False
        return True

    def load(self) -> int:
        if self.store is None:
            return 0
        try:
            raw = self.store.load_all(self.kind)
        except Exception:
            self.logger.exception(f"[snapshot-load-failed] kind={self.kind}")
            return 0
        for key, payload in raw.items():
            try:
                record = self._from_dict(payload)
            except (KeyError, TypeError, ValueError):
                self.logger.exception(f"[snapshot-skipped] kind={self.kind} key={key}")
                continue
            self._items[record.id] = record
        self.logger.info(f"[snapshot-loaded] kind={self.kind} count={len(self._items)}")
        return len(self._items)
