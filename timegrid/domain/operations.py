"""
Queued mutation records for the offline operation queue.

Architecture Decision: Tagged union instead of string switching
Each operation kind is its own model carrying exactly the payload it needs
(a full record for adds, an id plus changes for updates, an id for deletes).
Pydantic discriminates on `type` when the queue is read back from disk, and the
replay code dispatches on the class.
"""

import random
import string
import time
from datetime import datetime
from typing import Any, Dict, Literal, Optional, Union, Annotated

from pydantic import BaseModel, Field, TypeAdapter

EntityKind = Literal["project", "entry", "tag", "client"]
OperationType = Literal["add", "create", "update", "delete"]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_operation_id() -> str:
    """Locally-unique id: '<epoch ms>-<9 base36 chars>'"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}-{suffix}"


def epoch_ms() -> int:
    return int(time.time() * 1000)


class _Operation(BaseModel):
    id: str = Field(default_factory=new_operation_id)
    entity: EntityKind
    timestamp: int = Field(default_factory=epoch_ms, description="Enqueue time, epoch milliseconds")
    retries: int = Field(default=0, ge=0)


class AddOperation(_Operation):
    """Create a record. 'create' is accepted as a synonym of 'add'."""
    type: Literal["add", "create"] = "add"
    payload: Dict[str, Any] = Field(default_factory=dict)


class UpdateOperation(_Operation):
    type: Literal["update"] = "update"
    record_id: str
    changes: Dict[str, Any] = Field(default_factory=dict)


class DeleteOperation(_Operation):
    type: Literal["delete"] = "delete"
    record_id: str


QueuedOperation = Annotated[
    Union[AddOperation, UpdateOperation, DeleteOperation],
    Field(discriminator="type"),
]

_queue_adapter = TypeAdapter(list[QueuedOperation])


def build_operation(entity: EntityKind, op_type: OperationType, data: Dict[str, Any]):
    """
    Build the operation variant for an (entity, type) pair.

    Args:
        entity: Target entity kind
        op_type: 'add'/'create', 'update' or 'delete'
        data: For adds the record payload; for updates {'id', 'updates'};
              for deletes {'id'}

    Returns:
        AddOperation, UpdateOperation or DeleteOperation

    Raises:
        ValueError: Unknown type or missing id
    """
    if op_type in ("add", "create"):
        return AddOperation(entity=entity, type=op_type, payload=dict(data))

    record_id = data.get("id")
    if not record_id:
        raise ValueError(f"'{op_type}' operation on {entity} requires an id")

    if op_type == "update":
        return UpdateOperation(entity=entity, record_id=str(record_id), changes=dict(data.get("updates") or {}))
    if op_type == "delete":
        return DeleteOperation(entity=entity, record_id=str(record_id))

    raise ValueError(f"Unknown operation type: {op_type}")


def load_operations(raw: list) -> list:
    """Validate a persisted queue (list of dicts) into operation variants"""
    return _queue_adapter.validate_python(raw)


def dump_operations(operations: list) -> list:
    return _queue_adapter.dump_python(operations, mode="json")


class Placeholder(BaseModel):
    """
    Optimistic local copy of an entity created while offline.

    Linked to the queued operation that will create it on the server and
    removed once that operation succeeds or is dropped.
    """
    id: str = Field(default_factory=lambda: f"offline-{new_operation_id()}")
    queue_id: str
    entity: EntityKind
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
    is_offline: bool = True

    def as_record(self) -> Dict[str, Any]:
        """Merged view used by list screens: entity fields plus offline markers"""
        record = dict(self.data)
        record.update(id=self.id, isOffline=True, queueId=self.queue_id)
        record.setdefault("createdAt", self.created_at.isoformat())
        return record
