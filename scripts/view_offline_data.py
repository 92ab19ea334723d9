"""
Script to inspect the offline store: queued operations and placeholders.

Usage:
    python scripts/view_offline_data.py [OFFLINE_DIR]
"""

import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from timegrid.domain.operations import AddOperation, UpdateOperation
from timegrid.infra.config import get_settings
from timegrid.infra.offline_store import OfflineStore


def describe(operation) -> str:
    queued_at = datetime.fromtimestamp(operation.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(operation, AddOperation):
        target = operation.payload.get("description") or operation.payload.get("name") or ""
    elif isinstance(operation, UpdateOperation):
        target = f"{operation.record_id} {sorted(operation.changes)}"
    else:
        target = operation.record_id
    return f"{queued_at}  {operation.type:<6} {operation.entity:<7} retries={operation.retries}  {target}"


def main():
    directory = Path(sys.argv[1]) if len(sys.argv) > 1 else get_settings().offline_dir
    store = OfflineStore(directory)
    print(f"Offline data in {directory}\n")

    operations = store.load_queue()
    print(f"Queued operations ({len(operations)}):")
    for operation in operations:
        print(f"  {describe(operation)}")

    for entity in store.PLACEHOLDER_FILES:
        placeholders = store.get_placeholders(entity)
        if not placeholders:
            continue
        print(f"\nOffline {entity} records ({len(placeholders)}):")
        for placeholder in placeholders:
            label = placeholder.data.get("description") or placeholder.data.get("name") or ""
            print(f"  {placeholder.id}  queue={placeholder.queue_id}  {label}")


if __name__ == "__main__":
    main()
