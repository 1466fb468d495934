"""Payload registry: persisted, thread-safe catalog of test vectors.

Entries are keyed by (module, category). Every mutation rewrites the whole
JSON file while the write lock is still held; storage failures are logged
and the registry keeps working from memory.
"""

import json
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, List, Optional

from logicscan.core.defaults import MODULES, builtin_payloads
from logicscan.core.models import PayloadEntry

DEFAULT_STORE = Path.home() / ".logicscan" / "payloads.json"


class _RWLock:
    """Many readers or one writer. Not reentrant."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class PayloadRegistry:

    def __init__(self, path=None, logger=None):
        self.path = Path(path) if path else DEFAULT_STORE
        self.logger = logger
        self._lock = _RWLock()
        self._entries: List[PayloadEntry] = []
        self._load()

    # ── reads ───────────────────────────────────────────────────

    def enabled(self, module: str, category: str) -> List[PayloadEntry]:
        with self._lock.read():
            return [e for e in self._entries
                    if e.enabled and e.module == module and e.category == category]

    def all(self, module: str) -> List[PayloadEntry]:
        with self._lock.read():
            return [e for e in self._entries if e.module == module]

    def all_entries(self) -> List[PayloadEntry]:
        with self._lock.read():
            return list(self._entries)

    def get(self, entry_id: str) -> Optional[PayloadEntry]:
        with self._lock.read():
            return self._find(entry_id)

    def categories(self, module: str) -> List[str]:
        with self._lock.read():
            seen = []
            for e in self._entries:
                if e.module == module and e.category not in seen:
                    seen.append(e.category)
            return seen

    def total_count(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def user_added_count(self) -> int:
        with self._lock.read():
            return sum(1 for e in self._entries if not e.is_default)

    def enabled_count(self) -> int:
        with self._lock.read():
            return sum(1 for e in self._entries if e.enabled)

    # ── mutations ───────────────────────────────────────────────

    def add(self, entry: PayloadEntry) -> PayloadEntry:
        self._validate(entry)
        with self._lock.write():
            self._entries.append(entry)
            self._persist()
        return entry

    def remove(self, entry_id: str) -> bool:
        """Delete a user entry. Built-in entries are left in place."""
        with self._lock.write():
            entry = self._find(entry_id)
            if entry is None or entry.is_default:
                return False
            self._entries.remove(entry)
            self._persist()
            return True

    def update(self, entry: PayloadEntry) -> bool:
        self._validate(entry)
        with self._lock.write():
            for i, e in enumerate(self._entries):
                if e.id == entry.id:
                    entry.added_by = e.added_by
                    self._entries[i] = entry
                    self._persist()
                    return True
            return False

    def toggle_enabled(self, entry_id: str) -> Optional[bool]:
        with self._lock.write():
            entry = self._find(entry_id)
            if entry is None:
                return None
            entry.enabled = not entry.enabled
            self._persist()
            return entry.enabled

    def duplicate(self, entry_id: str) -> Optional[PayloadEntry]:
        with self._lock.write():
            entry = self._find(entry_id)
            if entry is None:
                return None
            clone = entry.copy()
            self._entries.append(clone)
            self._persist()
            return clone

    def bulk_import(self, module: str, category: str, text: str) -> int:
        """Add one user payload per non-blank line of *text*."""
        category = (category or "").strip() or "general"
        entries = [PayloadEntry(module=module, category=category, value=line.strip())
                   for line in text.splitlines() if line.strip()]
        for e in entries:
            self._validate(e)
        if not entries:
            return 0
        with self._lock.write():
            self._entries.extend(entries)
            self._persist()
        return len(entries)

    def reset_to_defaults(self, module: str):
        """Drop every entry of *module* (any provenance) and re-seed its built-ins."""
        if module not in MODULES:
            raise ValueError(f"unknown module: {module}")
        with self._lock.write():
            self._entries = [e for e in self._entries if e.module != module]
            self._entries.extend(builtin_payloads(module))
            self._persist()
        if self.logger:
            self.logger.info(f"Payloads for '{module}' reset to defaults")

    # ── import / export ─────────────────────────────────────────

    def import_from(self, path) -> int:
        """Merge entries from a JSON file, skipping (value, module, category) duplicates.

        A file that cannot be read or parsed, or that holds any invalid
        record, is rejected as a whole.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, list):
                raise ValueError("expected a list of payload records")
            incoming = [PayloadEntry.from_dict(r) for r in raw]
            for e in incoming:
                self._validate(e)
        except (OSError, ValueError) as e:
            if self.logger:
                self.logger.error(f"Import rejected ({path}): {e}")
            return 0

        added = 0
        with self._lock.write():
            seen = {e.content_key() for e in self._entries}
            ids = {e.id for e in self._entries}
            for entry in incoming:
                if entry.content_key() in seen:
                    continue
                if entry.id in ids:
                    entry = _rekey(entry)
                self._entries.append(entry)
                seen.add(entry.content_key())
                ids.add(entry.id)
                added += 1
            if added:
                self._persist()
        if self.logger:
            self.logger.info(f"Imported {added} payload(s) from {path}")
        return added

    def export_to(self, path, module: Optional[str] = None) -> int:
        with self._lock.read():
            rows = [e.to_dict() for e in self._entries if module is None or e.module == module]
        try:
            _write_json(Path(path), rows)
        except OSError as e:
            if self.logger:
                self.logger.error(f"Export failed ({path}): {e}")
            return 0
        return len(rows)

    # ── internals ───────────────────────────────────────────────

    def _find(self, entry_id: str) -> Optional[PayloadEntry]:
        for e in self._entries:
            if e.id == entry_id:
                return e
        return None

    @staticmethod
    def _validate(entry: PayloadEntry):
        if entry.module not in MODULES:
            raise ValueError(f"unknown module: {entry.module!r}")
        if not entry.value or not entry.value.strip():
            raise ValueError("payload value must not be empty")
        if not entry.category or not entry.category.strip():
            raise ValueError("payload category must not be empty")

    def _load(self):
        if not self.path.exists():
            self._entries = builtin_payloads()
            self._persist()
            if self.logger:
                self.logger.info(f"Seeded {len(self._entries)} default payloads into {self.path}")
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, list):
                raise ValueError("payload store is not a list")
            self._entries = [PayloadEntry.from_dict(r) for r in raw]
        except (OSError, ValueError) as e:
            # keep the broken file on disk; the next mutation replaces it
            if self.logger:
                self.logger.error(f"Cannot load {self.path} ({e}), using built-in payloads")
            self._entries = builtin_payloads()

    def _persist(self):
        try:
            _write_json(self.path, [e.to_dict() for e in self._entries])
        except OSError as e:
            if self.logger:
                self.logger.error(f"Cannot save payloads to {self.path}: {e}")


def _rekey(entry: PayloadEntry) -> PayloadEntry:
    clone = entry.copy()
    clone.added_by = entry.added_by
    return clone


def _write_json(path: Path, rows: Iterable[dict]):
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(list(rows), f, indent=2, ensure_ascii=False)
    os.replace(tmp, path)
