"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrators only talk to these small interfaces; the SABnzbd and MEGA
adapters in nzbmega.services implement them.
"""
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from .models import RemoteFolder


@runtime_checkable
class IDownloadService(Protocol):
    """Interface for the download-job service."""

    async def version(self) -> str:
        """Return the service version."""
        ...

    async def submit(self, job_reference: str) -> List[str]:
        """Submit a job reference, return the job ids it produced."""
        ...

    async def queue_ids(self) -> List[str]:
        """Ids of jobs still queued or downloading."""
        ...

    async def history(self, job_ids: List[str]) -> List[Dict[str, Any]]:
        """History entries for the given job ids."""
        ...


@runtime_checkable
class IStorageSession(Protocol):
    """Interface for an authenticated cloud storage session."""

    async def create_folder(self, name: str) -> RemoteFolder:
        """Create a new folder, failing if the name is taken."""
        ...

    async def upload(
        self,
        folder: RemoteFolder,
        path: Path,
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> Any:
        """Upload a local file into folder."""
        ...

    async def share(self, folder: RemoteFolder) -> str:
        """Publish a public link to folder."""
        ...
