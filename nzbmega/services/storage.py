"""
Storage Service - Single Responsibility: talk to the MEGA account.

Wraps the MEGA client behind the IStorageSession interface used by the
upload orchestrator and link publisher.
"""
from pathlib import Path
from typing import Callable, Dict, Optional

import asyncio
from megapy import MegaClient
import logging

from ..exceptions import AuthenticationError, RemoteCreateError, ShareError, TransferError
from ..models import Credentials, RemoteFolder

logger = logging.getLogger(__name__)


class MegaStorageService:
    """
    Authenticated MEGA session.

    Usage:
        async with MegaStorageService.for_credentials(credentials) as storage:
            folder = await storage.create_folder("Movie")
            await storage.upload(folder, Path("/downloads/Movie/part1.mkv"))
            url = await storage.share(folder)
    """

    def __init__(self, client: MegaClient, remote_root: str = ""):
        """
        Initialize storage service.

        Args:
            client: MEGA client (logged in by start())
            remote_root: Parent path for created folders ("" is the account root)
        """
        self._client = client
        self._remote_root = remote_root.strip("/")
        self._root_handle: Optional[str] = None
        self._root_lock = asyncio.Lock()
        self._links: Dict[str, str] = {}  # folder handle -> public link

    @classmethod
    def for_credentials(cls, credentials: Credentials, remote_root: str = "") -> "MegaStorageService":
        return cls(MegaClient(credentials.email, credentials.password), remote_root)

    async def start(self) -> "MegaStorageService":
        try:
            await self._client.start()
        except Exception as e:
            raise AuthenticationError(f"MEGA login failed: {e}") from e
        logger.info("Logged in to MEGA")
        return self

    async def close(self) -> None:
        await self._client.close()

    async def __aenter__(self) -> "MegaStorageService":
        return await self.start()

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def create_folder(self, name: str) -> RemoteFolder:
        """
        Create a folder under the remote root.

        Raises:
            RemoteCreateError: name already taken, or MEGA refused (quota, auth)
        """
        parent = await self._get_or_create_root()
        full_path = f"/{self._remote_root}/{name}" if self._remote_root else f"/{name}"

        existing = await self._client.get(full_path)
        if existing:
            raise RemoteCreateError(f"remote folder already exists: {full_path}")

        try:
            node = await self._client.create_folder(name, parent)
        except Exception as e:
            raise RemoteCreateError(f"cannot create remote folder {full_path}: {e}") from e

        if not node:
            raise RemoteCreateError(f"cannot create remote folder {full_path}")

        logger.info(f"Created folder: {full_path} (handle: {node.handle})")
        return RemoteFolder(name=name, handle=node.handle)

    async def _get_or_create_root(self) -> str:
        """Resolve the handle of the remote root, creating missing parents."""
        async with self._root_lock:
            if self._root_handle is None:
                self._root_handle = await self._walk_remote_root()
        return self._root_handle

    async def _walk_remote_root(self) -> str:
        root = await self._client.get_root()
        current_handle = root.handle
        current_path = ""

        for part in [p for p in self._remote_root.split("/") if p]:
            current_path = f"{current_path}/{part}"
            node = await self._client.get(current_path)
            if node:
                current_handle = node.handle
                continue
            try:
                node = await self._client.create_folder(part, current_handle)
            except Exception as e:
                raise RemoteCreateError(f"cannot create remote root {current_path}: {e}") from e
            current_handle = node.handle

        return current_handle

    async def upload(
        self,
        folder: RemoteFolder,
        path: Path,
        progress_callback: Optional[Callable[[int, int], None]] = None
    ):
        """Upload path into folder, reporting (uploaded_bytes, total_bytes)."""
        def on_progress(progress):
            if progress_callback:
                progress_callback(
                    int(getattr(progress, "uploaded_bytes", 0) or 0),
                    int(getattr(progress, "total_bytes", 0) or 0),
                )

        node = await self._client.upload(
            path,
            dest_folder=folder.handle,
            name=path.name,
            progress_callback=on_progress
        )
        if not node:
            raise TransferError(path.name, RuntimeError("MEGA returned no node"))
        return node

    async def share(self, folder: RemoteFolder) -> str:
        """Export folder and return its public link. Re-sharing returns the same link."""
        if folder.handle in self._links:
            return self._links[folder.handle]

        try:
            url = await self._client.export(folder.handle)
        except Exception as e:
            raise ShareError(f"cannot share {folder.name}: {e}") from e

        if not url:
            raise ShareError(f"MEGA returned no link for {folder.name}")

        self._links[folder.handle] = str(url)
        return self._links[folder.handle]
