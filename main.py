#!/usr/bin/env python

"""
TimeGrid - Main Entry Point

Headless runner for the offline sync queue and the calendar composer.

Usage:
    python main.py sync            Replay queued offline changes once
    python main.py status          Show connectivity and queue size
    python main.py week [DATE]     Print the laid-out week containing DATE (YYYY-MM-DD)
"""

import sys
import asyncio
import logging
from datetime import date
from pathlib import Path

from PySide6.QtCore import QCoreApplication

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from timegrid.application import Application
from timegrid.infra.config import get_settings
from timegrid.utils import format_clock


async def run(command: str, args: list) -> int:
    app = Application()
    await app.start()
    try:
        if command == "sync":
            result = await app.sync_once()
            print(f"Synced {result.synced}, failed {result.failed}, dropped {len(result.dropped)}, "
                  f"pending {app.queue.size}")
        elif command == "status":
            status = app.queue.status()
            print(f"{status.status}, {status.queue_size} pending")
        elif command == "week":
            anchor = date.fromisoformat(args[0]) if args else date.today()
            time_format = app.settings.preferences.time_format
            days = await app.compose_view(anchor)
            for day, items in days.items():
                print(day.isoformat())
                for item in items:
                    label = f"{format_clock(item.label_start, time_format, app.composer.tz)}-" \
                            f"{format_clock(item.label_end, time_format, app.composer.tz)}"
                    print(f"  [{item.col + 1}/{item.cols}] {label} {item.title}")
        else:
            print(__doc__)
            return 1
    finally:
        await app.shutdown()
    return 0


def main():
    """Main entry point"""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Qt signals and timers need an application object
    qt_app = QCoreApplication.instance() or QCoreApplication(sys.argv)  # noqa: F841

    command = sys.argv[1] if len(sys.argv) > 1 else "status"
    return asyncio.run(run(command, sys.argv[2:]))


if __name__ == "__main__":
    sys.exit(main())
