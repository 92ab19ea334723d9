"""
Durable local store for the sync queue and offline placeholders.

Architecture Decision: Why JSON files?
- Human-readable: pending changes can be inspected with scripts/view_offline_data.py
- Whole-file rewrites match how the queue is mutated (read-modify-write)
- Survives restarts without needing the cache database to be initialized

Writes go to a temporary file first and are moved into place, so a crash
never leaves a half-written queue behind.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from timegrid.domain.operations import Placeholder, load_operations, dump_operations

logger = logging.getLogger(__name__)


class OfflineStore:
    """
    File-backed store: one JSON array per file under the offline directory.

    Not safe for concurrent writers; the application owns a single instance and
    mutates it from one event loop.
    """

    QUEUE_FILE = "sync_queue.json"
    PLACEHOLDER_FILES: Dict[str, str] = {
        "project": "projects.json",
        "entry": "entries.json",
        "client": "clients.json",
        "tag": "tags.json",
    }

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    # ========== raw file access ==========

    def _read(self, filename: str) -> list:
        path = self.directory / filename
        if not path.exists():
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read %s: %s", path, e)
            return []
        if not isinstance(data, list):
            logger.error("Ignoring %s: expected a JSON array", path)
            return []
        return data

    def _write(self, filename: str, data: list) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / filename
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{filename}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Wrote %s (%d items)", filename, len(data))

    # ========== sync queue ==========

    def load_queue(self) -> list:
        """Read the persisted queue; invalid records are skipped"""
        operations = []
        for raw in self._read(self.QUEUE_FILE):
            try:
                operations.extend(load_operations([raw]))
            except ValueError as e:
                logger.error("Discarding unreadable queued operation %r: %s", raw, e)
        return operations

    def save_queue(self, operations: list) -> None:
        self._write(self.QUEUE_FILE, dump_operations(operations))

    def clear_queue(self) -> None:
        self._write(self.QUEUE_FILE, [])

    # ========== placeholders ==========

    def _placeholder_file(self, entity: str) -> str:
        try:
            return self.PLACEHOLDER_FILES[entity]
        except KeyError:
            raise ValueError(f"Unknown entity kind: {entity}") from None

    def get_placeholders(self, entity: str) -> List[Placeholder]:
        return [Placeholder.model_validate(raw) for raw in self._read(self._placeholder_file(entity))]

    def add_placeholder(self, entity: str, data: dict, queue_id: str) -> Placeholder:
        """
        Store an optimistic copy of an entity created while offline.

        Args:
            entity: Entity kind ('project', 'entry', 'client', 'tag')
            data: Wire representation of the entity
            queue_id: Id of the queued operation that will create it remotely

        Returns:
            The stored placeholder
        """
        placeholder = Placeholder(entity=entity, data=data, queue_id=queue_id)
        items = self.get_placeholders(entity)
        items.append(placeholder)
        self._write_placeholders(entity, items)
        return placeholder

    def remove_placeholder(self, entity: str, queue_id: str) -> int:
        """Remove placeholders linked to a queue operation. Returns count removed."""
        items = self.get_placeholders(entity)
        kept = [p for p in items if p.queue_id != queue_id]
        if len(kept) != len(items):
            self._write_placeholders(entity, kept)
        return len(items) - len(kept)

    def find_placeholder(self, entity: str, placeholder_id: str) -> Optional[Placeholder]:
        for placeholder in self.get_placeholders(entity):
            if placeholder.id == placeholder_id:
                return placeholder
        return None

    def update_placeholder(self, entity: str, placeholder_id: str, changes: dict) -> Optional[Placeholder]:
        """Merge wire-format changes into a placeholder's data"""
        items = self.get_placeholders(entity)
        for placeholder in items:
            if placeholder.id == placeholder_id:
                placeholder.data.update(changes)
                self._write_placeholders(entity, items)
                return placeholder
        return None

    def _write_placeholders(self, entity: str, items: List[Placeholder]) -> None:
        self._write(self._placeholder_file(entity), [p.model_dump(mode="json") for p in items])

    def clear_all(self) -> None:
        """Remove every placeholder (queue untouched)"""
        for filename in self.PLACEHOLDER_FILES.values():
            self._write(filename, [])
