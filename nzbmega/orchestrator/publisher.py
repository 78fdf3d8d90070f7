"""Public link publishing for completed remote folders."""
from typing import Dict
import logging

from ..exceptions import ShareError
from ..models import RemoteFolder
from ..protocols import IStorageSession

logger = logging.getLogger(__name__)


class LinkPublisher:
    """Publishes share links. Publishing the same folder twice returns the first link."""

    def __init__(self, storage: IStorageSession):
        self._storage = storage
        self._links: Dict[str, str] = {}

    async def publish(self, folder: RemoteFolder) -> str:
        if folder.handle in self._links:
            logger.debug(f"Folder '{folder.name}' already shared")
            return self._links[folder.handle]

        try:
            url = await self._storage.share(folder)
        except ShareError:
            raise
        except Exception as e:
            raise ShareError(f"cannot share '{folder.name}': {e}") from e

        if not url:
            raise ShareError(f"no link returned for '{folder.name}'")

        self._links[folder.handle] = url
        logger.info(f"Shared '{folder.name}': {url}")
        return url
