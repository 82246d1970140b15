import asyncio
import os
import tempfile
import unittest
from pathlib import Path

from watchfiles import Change

from cogcommit.db.file_watcher import FileWatcher


class _RecordingProcessor:
    def __init__(self, fail_on: str | None = None) -> None:
        self.paths: list[Path] = []
        self.fail_on = fail_on

    async def process_file(self, path):
        self.paths.append(path)
        if self.fail_on and path.name == self.fail_on:
            raise RuntimeError("database is locked")
        return 1


class FileWatcherTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name)

    def test_classify_changes_keeps_session_logs_oldest_first(self) -> None:
        old = self.root / "old.jsonl"
        new = self.root / "new.jsonl"
        for path, mtime in ((old, 1_000), (new, 2_000)):
            path.write_text("{}\n")
            os.utime(path, (mtime, mtime))

        changed = FileWatcher()._classify_changes(
            {
                (Change.modified, str(new)),
                (Change.added, str(old)),
                (Change.deleted, str(self.root / "gone.jsonl")),
                (Change.modified, str(self.root / "notes.txt")),
            }
        )

        self.assertEqual(changed, [old, new])

    async def test_missing_directory_stops_watcher(self) -> None:
        watcher = FileWatcher()

        await watcher.start(_RecordingProcessor(), self.root / "missing")
        await asyncio.wait_for(watcher._task, timeout=5)

        self.assertFalse(watcher.is_running)
        await watcher.stop()

    async def test_processing_error_is_recorded_and_next_file_runs(self) -> None:
        processor = _RecordingProcessor(fail_on="a.jsonl")
        a, b = self.root / "a.jsonl", self.root / "b.jsonl"

        with self.assertLogs("cogcommit.watcher", level="ERROR"):
            await FileWatcher()._process_paths(processor, [a, b])

        self.assertEqual(processor.paths, [a, b])

    async def test_process_paths_sets_last_error(self) -> None:
        watcher = FileWatcher()
        path = self.root / "a.jsonl"

        with self.assertLogs("cogcommit.watcher", level="ERROR"):
            await watcher._process_paths(_RecordingProcessor(fail_on="a.jsonl"), [path])

        self.assertIn("database is locked", watcher.last_error)


if __name__ == "__main__":
    unittest.main()
