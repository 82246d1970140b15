"""File watcher service using watchfiles.

Monitors a Claude project log directory and feeds appended session log bytes
to the incremental processor, one file at a time.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import awatch, Change

from cogcommit import config
from cogcommit.db.processor import IncrementalProcessor

logger = logging.getLogger("cogcommit.watcher")


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


class FileWatcher:
    """Background file watcher that drives incremental commit extraction.

    Uses `watchfiles` (Rust-accelerated) for efficient watching. Change events
    are processed sequentially so only one commit is ever open.
    """

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False
        self._sessions_dir: Optional[Path] = None
        self._last_error: Optional[str] = None

    async def start(self, processor: IncrementalProcessor, sessions_dir: Path) -> None:
        """Catch up on existing session files, then watch in a background task."""
        if self._running:
            logger.warning("File watcher already running")
            return

        self._running = True
        self._sessions_dir = Path(sessions_dir)
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(processor, self._sessions_dir))
        logger.info(f"File watcher started for {self._sessions_dir}")

    async def stop(self) -> None:
        """Stop the file watcher."""
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def sessions_dir(self) -> Optional[Path]:
        return self._sessions_dir

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    async def _watch_loop(self, processor: IncrementalProcessor, sessions_dir: Path) -> None:
        """Main watching loop."""
        if not sessions_dir.exists():
            logger.warning(f"Sessions directory {sessions_dir} does not exist, watcher has nothing to monitor")
            self._running = False
            return

        try:
            existing = sorted(sessions_dir.glob("*.jsonl"), key=_mtime)
            logger.info(f"Catching up on {len(existing)} existing session files")
            await self._process_paths(processor, existing)

            async for changes in awatch(
                sessions_dir,
                stop_event=self._stop_event,
                debounce=config.WATCH_DEBOUNCE_MS,
                recursive=False,
            ):
                if not self._running:
                    break
                changed = self._classify_changes(changes)
                if changed:
                    logger.debug(f"Detected {len(changed)} session file changes")
                    await self._process_paths(processor, changed)
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        except Exception as e:
            self._last_error = str(e)
            logger.error(f"File watcher error: {e}")
        finally:
            self._running = False

    async def _process_paths(self, processor: IncrementalProcessor, paths: list[Path]) -> None:
        for path in paths:
            try:
                await processor.process_file(path)
            except FileNotFoundError:
                logger.debug(f"Session file vanished before processing: {path}")
            except Exception as e:
                # Offset stays put, so the next change event retries this file.
                self._last_error = f"{path}: {e}"
                logger.error(f"Error processing {path}: {e}")

    def _classify_changes(self, changes: set[tuple[Change, str]]) -> list[Path]:
        """Added/modified session logs, oldest modification first."""
        paths = {
            Path(path_str)
            for change_type, path_str in changes
            if change_type in (Change.modified, Change.added) and path_str.endswith(".jsonl")
        }
        return sorted(paths, key=_mtime)


# Singleton instance
file_watcher = FileWatcher()
