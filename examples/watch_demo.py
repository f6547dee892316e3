#!/usr/bin/env python3
"""
Watchman watcher demo.

Subscribes to a directory through a running watchman daemon and prints
every file event until interrupted.

Usage:
    python examples/watch_demo.py [directory]
"""

import logging
import signal
import sys
import threading
from pathlib import Path

from watchman_watcher import EventType, WatcherOptions, WatchmanWatcher


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("demo")


def main():
    root = Path(sys.argv[1] if len(sys.argv) > 1 else ".").resolve()
    stop = threading.Event()

    signal.signal(signal.SIGINT, lambda signum, frame: stop.set())
    signal.signal(signal.SIGTERM, lambda signum, frame: stop.set())

    options = WatcherOptions(ignored=["node_modules/", "*.swp"])
    watcher = WatchmanWatcher(root, options, auto_start=False)

    watcher.on(EventType.READY, lambda: logger.info(f"Watching {root}"))
    watcher.on(EventType.ERROR, lambda error: logger.error(f"Watcher error: {error}"))
    watcher.on(EventType.FRESH_INSTANCE, lambda: logger.info("Watchman rebuilt its view"))
    watcher.on(
        EventType.ALL,
        lambda event: print(f"{event.event_type.value:>6}  {event.relative_path}"),
    )

    with watcher:
        watcher.start()
        logger.info("Press Ctrl+C to stop")
        stop.wait()

    logger.info("Watcher stopped")


if __name__ == "__main__":
    main()
