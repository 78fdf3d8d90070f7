"""Shared fakes for pipeline tests."""
import asyncio
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from nzbmega.exceptions import RemoteCreateError, ShareError
from nzbmega.models import RemoteFolder


class RecordingStorage:
    """
    In-memory storage session that records the order of operations.

    calls holds ("create_folder", name), ("upload_start", file),
    ("upload_done", file) and ("share", folder) tuples in the order they
    happened.
    """

    def __init__(
        self,
        fail_files=(),
        existing_folders=(),
        upload_delay: float = 0.0,
        share_error: Optional[Exception] = None
    ):
        self.fail_files = set(fail_files)
        self.existing_folders = set(existing_folders)
        self.upload_delay = upload_delay
        self.share_error = share_error
        self.calls: List[tuple] = []
        self.folders: Dict[str, List[str]] = {}
        self.active = 0
        self.max_active = 0
        self.share_count = 0

    async def create_folder(self, name: str) -> RemoteFolder:
        if name in self.existing_folders:
            raise RemoteCreateError(f"remote folder already exists: /{name}")
        self.calls.append(("create_folder", name))
        handle = f"h-{name}"
        self.folders[handle] = []
        return RemoteFolder(name=name, handle=handle)

    async def upload(self, folder: RemoteFolder, path: Path, progress_callback=None):
        self.calls.append(("upload_start", path.name))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.upload_delay)
            size = path.stat().st_size
            if progress_callback:
                progress_callback(size // 2, size)
            if path.name in self.fail_files:
                raise IOError(f"connection reset while sending {path.name}")
            if progress_callback:
                progress_callback(size, size)
            self.folders[folder.handle].append(path.name)
        finally:
            self.active -= 1
            self.calls.append(("upload_done", path.name))

    async def share(self, folder: RemoteFolder) -> str:
        self.calls.append(("share", folder.name))
        self.share_count += 1
        if self.share_error:
            raise self.share_error
        return f"https://mega.nz/folder/{folder.handle}#key"

    def index_of(self, call: tuple) -> int:
        return self.calls.index(call)


class GatedStorage(RecordingStorage):
    """Storage whose uploads block until the gate opens."""

    def __init__(self, gate: asyncio.Event):
        super().__init__()
        self.gate = gate
        self.completed = []

    async def upload(self, folder, path, progress_callback=None):
        self.calls.append(("upload_start", path.name))
        self.active += 1
        try:
            await self.gate.wait()
            self.completed.append(path.name)
        finally:
            self.active -= 1


class FakeDownloadService:
    """Download service that finishes after a number of queue polls."""

    def __init__(self, entries=None, queued_polls: int = 0, submit_error=None, job_ids=None):
        self.entries = entries or []
        self.queued_polls = queued_polls
        self.submit_error = submit_error
        self.job_ids = job_ids or ["SABnzbd_nzo_1"]
        self.submitted: List[str] = []
        self.queue_calls = 0

    async def version(self) -> str:
        return "4.2.1"

    async def submit(self, job_reference: str) -> List[str]:
        if self.submit_error:
            raise self.submit_error
        self.submitted.append(job_reference)
        return list(self.job_ids)

    async def queue_ids(self) -> List[str]:
        self.queue_calls += 1
        if self.queued_polls > 0:
            self.queued_polls -= 1
            return list(self.job_ids)
        return []

    async def history(self, job_ids: List[str]):
        return [e for e in self.entries if e.get("nzo_id") in job_ids]


def history_entry(name: str, storage: Path, nzo_id: str = "SABnzbd_nzo_1", status: str = "Completed"):
    return {
        "nzo_id": nzo_id,
        "name": name,
        "storage": str(storage),
        "status": status,
        "fail_message": "",
    }


@pytest.fixture
def movie_dir(tmp_path):
    """/downloads/Movie with two files."""
    folder = tmp_path / "downloads" / "Movie"
    folder.mkdir(parents=True)
    (folder / "part1.mkv").write_bytes(b"x" * 2048)
    (folder / "part2.srt").write_text("1\n00:00:01,000 --> 00:00:02,000\nHello\n")
    return folder


@pytest.fixture
def storage():
    return RecordingStorage()
