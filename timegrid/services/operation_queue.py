"""
Offline Operation Queue - durable, retrying replay of mutations.

Architecture Decision: Observer Pattern (Qt Signals)
The queue emits signals when its state changes (status, data refreshed, drain
finished) and knows nothing about who displays them. Connectivity arrives the
same way: an `online_changed` transition to True triggers a drain.

Architecture Decision: Snapshot drain, in-place mutation
A drain replays a snapshot of the queue in FIFO order and removes or updates
each operation in the live queue as it goes. Operations enqueued while a drain
is running are never overwritten; they stay queued for the next pass. The
queue is persisted after every mutation, so an interrupted drain loses nothing.

Best effort with bounded retries: an operation is attempted at most max_retries
times and then dropped. A remote call that succeeded but whose acknowledgment
was lost is retried and may create a duplicate record.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from PySide6.QtCore import QObject, Signal

from timegrid.domain.models import utc_now
from timegrid.domain.operations import (
    AddOperation, DeleteOperation, UpdateOperation, build_operation,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_OPERATION_DELAY = 0.1  # seconds between replayed operations


class SyncStatus(BaseModel):
    """Snapshot handed to status_changed listeners"""
    status: Literal["online", "offline"]
    syncing: bool = False
    queue_size: int = 0
    last_sync: Optional[datetime] = None
    synced_count: int = 0
    failed_count: int = 0


class DrainResult(BaseModel):
    synced: int = 0
    failed: int = 0
    dropped: List[str] = Field(default_factory=list)
    skipped: bool = False


class OperationQueue(QObject):
    """
    FIFO queue of mutations that could not be sent while offline.

    Args:
        store: OfflineStore holding sync_queue.json and placeholders
        remote: RemoteStore the operations are replayed against
        connectivity: ConnectivityMonitor (anything with is_online() and online_changed)
        max_retries: Failed attempts after which an operation is dropped
        operation_delay: Seconds to wait between two replayed operations
    """

    status_changed = Signal(object)  # SyncStatus
    data_changed = Signal()
    drain_finished = Signal(int, int)  # synced, failed (still queued)

    def __init__(self, store, remote, connectivity,
                 max_retries: int = DEFAULT_MAX_RETRIES,
                 operation_delay: float = DEFAULT_OPERATION_DELAY):
        super().__init__()
        self.store = store
        self.remote = remote
        self.connectivity = connectivity
        self.max_retries = max_retries
        self.operation_delay = operation_delay

        self._queue: List[Any] = []
        self._draining = False
        self._rerun_requested = False
        self._drain_task: Optional[asyncio.Task] = None

        self._last_sync: Optional[datetime] = None
        self._synced_count = 0
        self._failed_count = 0

        self.connectivity.online_changed.connect(self._on_online_changed)

    # ========== state ==========

    @property
    def size(self) -> int:
        return len(self._queue)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def is_online(self) -> bool:
        return self.connectivity.is_online()

    def pending(self) -> list:
        """Copy of the queued operations in replay order"""
        return [op.model_copy(deep=True) for op in self._queue]

    def status(self) -> SyncStatus:
        return SyncStatus(
            status="online" if self.is_online() else "offline",
            syncing=self._draining,
            queue_size=len(self._queue),
            last_sync=self._last_sync,
            synced_count=self._synced_count,
            failed_count=self._failed_count,
        )

    def _emit_status(self):
        self.status_changed.emit(self.status())

    # ========== persistence ==========

    def load(self) -> int:
        """Read the persisted queue. Returns the number of pending operations."""
        self._queue = self.store.load_queue()
        logger.info("Loaded %d queued operations", len(self._queue))
        self._emit_status()
        return len(self._queue)

    def _persist(self):
        try:
            self.store.save_queue(self._queue)
        except OSError as e:
            logger.error("Failed to persist sync queue: %s", e)

    def _cleanup_placeholder(self, operation):
        if not isinstance(operation, AddOperation):
            return
        try:
            self.store.remove_placeholder(operation.entity, operation.id)
        except (OSError, ValueError) as e:
            logger.error("Failed to remove offline %s for %s: %s", operation.entity, operation.id, e)

    def _remove(self, operation):
        self._queue[:] = [op for op in self._queue if op.id != operation.id]

    # ========== enqueue ==========

    def enqueue(self, entity: str, op_type: str, data: Dict[str, Any]) -> str:
        """
        Queue a mutation for later replay.

        Args:
            entity: 'project', 'entry', 'tag' or 'client'
            op_type: 'add'/'create', 'update' or 'delete'
            data: Record payload for adds, {'id', 'updates'} for updates, {'id'} for deletes

        Returns:
            The operation id

        Raises:
            ValueError: Malformed operation (unknown type, missing id)
        """
        return self.enqueue_operation(build_operation(entity, op_type, data))

    def enqueue_operation(self, operation) -> str:
        """Queue an already-built operation variant"""
        self._queue.append(operation)
        logger.info(
            "Queued %s %s (%s), %d pending",
            operation.type, operation.entity, operation.id, len(self._queue),
        )
        self._persist()
        self._emit_status()

        if self.is_online():
            self.schedule_drain()
        return operation.id

    def discard(self, operation_id: str) -> bool:
        """Remove a queued operation that has not been replayed yet"""
        before = len(self._queue)
        self._queue[:] = [op for op in self._queue if op.id != operation_id]
        if len(self._queue) == before:
            return False
        logger.info("Discarded queued operation %s", operation_id)
        self._persist()
        self._emit_status()
        return True

    def amend_add(self, operation_id: str, changes: Dict[str, Any]) -> bool:
        """Merge changes into the payload of a queued add (edits of offline-created records)"""
        for operation in self._queue:
            if operation.id == operation_id and isinstance(operation, AddOperation):
                operation.payload.update(changes)
                self._persist()
                return True
        return False

    def schedule_drain(self):
        """Start drain() on the running event loop without awaiting it"""
        if self._draining:
            self._rerun_requested = True
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; drain deferred")
            return
        self._drain_task = loop.create_task(self.drain())

    # ========== drain ==========

    async def drain(self) -> DrainResult:
        """
        Replay queued operations against the remote store.

        Single-flight: a call made while a drain is running returns immediately.
        No-op when offline or when the queue is empty.
        """
        if self._draining or not self.is_online() or not self._queue:
            return DrainResult(skipped=True)

        self._draining = True
        self._rerun_requested = False
        snapshot = list(self._queue)
        result = DrainResult()
        logger.info("Starting sync of %d queued operations", len(snapshot))
        self._emit_status()

        try:
            for index, operation in enumerate(snapshot):
                if not any(op is operation for op in self._queue):
                    logger.debug(
                        "Skipping %s %s (%s), discarded during sync",
                        operation.type, operation.entity, operation.id,
                    )
                    continue
                if not self.is_online():
                    logger.info("Went offline during sync; %d operations left", len(self._queue))
                    break
                if index and self.operation_delay > 0:
                    await asyncio.sleep(self.operation_delay)

                try:
                    await self._execute(operation)
                except Exception:
                    operation.retries += 1
                    logger.error(
                        "Failed to sync %s %s (%s), attempt %d/%d",
                        operation.type, operation.entity, operation.id,
                        operation.retries, self.max_retries, exc_info=True,
                    )
                    if operation.retries >= self.max_retries:
                        logger.warning(
                            "Max retries reached, dropping %s %s (%s)",
                            operation.type, operation.entity, operation.id,
                        )
                        self._remove(operation)
                        self._cleanup_placeholder(operation)
                        result.dropped.append(operation.id)
                    else:
                        result.failed += 1
                else:
                    self._remove(operation)
                    self._cleanup_placeholder(operation)
                    result.synced += 1
                    logger.debug("Synced %s %s (%s)", operation.type, operation.entity, operation.id)
                self._persist()
        finally:
            self._draining = False
            self._last_sync = utc_now()
            self._synced_count = result.synced
            self._failed_count = result.failed

        logger.info(
            "Sync complete: %d synced, %d failed, %d dropped, %d pending",
            result.synced, result.failed, len(result.dropped), len(self._queue),
        )
        self._emit_status()
        self.drain_finished.emit(result.synced, result.failed)
        if result.synced:
            self.data_changed.emit()

        if self._rerun_requested and self.is_online() and self._queue:
            self.schedule_drain()
        return result

    async def _execute(self, operation):
        if isinstance(operation, AddOperation):
            await self.remote.add(operation.entity, operation.payload)
        elif isinstance(operation, UpdateOperation):
            await self.remote.update(operation.entity, operation.record_id, operation.changes)
        elif isinstance(operation, DeleteOperation):
            await self.remote.delete(operation.entity, operation.record_id)
        else:
            raise TypeError(f"Unsupported queued operation: {operation!r}")

    # ========== connectivity ==========

    def _on_online_changed(self, online: bool):
        self._emit_status()
        if online and self._queue:
            self.schedule_drain()

    async def stop(self):
        """Cancel a running drain (state already persisted per operation)"""
        if self._drain_task and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self._drain_task = None
