from pathlib import Path
from typing import Awaitable, Callable, List, Optional
import asyncio
import logging

from ..exceptions import SlotTransferError, TransferError
from ..models import RemoteFolder, Slot, SlotFiles, SlotState, UploadTask
from ..protocols import IStorageSession
from ..utils.events import EventEmitter
from .materializer import FolderMaterializer

logger = logging.getLogger(__name__)


class SlotUploader:
    """
    Creates the remote folder of a slot and uploads its files concurrently.

    The semaphore is shared by every slot of a run, so it bounds the number
    of simultaneous transfers (open files and connections) for the whole run.
    """

    def __init__(
        self,
        storage: IStorageSession,
        semaphore: asyncio.Semaphore,
        materializer: Optional[FolderMaterializer] = None,
        events: Optional[EventEmitter] = None
    ):
        self._storage = storage
        self._semaphore = semaphore
        self._materializer = materializer or FolderMaterializer()
        self._events = events or EventEmitter()

    async def upload_slot(
        self,
        slot: Slot,
        on_stage: Optional[Callable[[SlotState], Awaitable[None]]] = None
    ) -> RemoteFolder:
        """
        Materialize, create the folder and upload every file of slot.

        Args:
            slot: Slot to upload
            on_stage: Awaited with FOLDER_CREATED once the folder exists and
                with UPLOADING before the first transfer

        Returns:
            Folder ready for publishing

        Raises:
            NotFoundError: slot storage vanished
            RemoteCreateError: folder could not be created
            SlotTransferError: one or more uploads failed (after all settled)
        """
        files = self._materializer.materialize(slot)
        folder = await self.create_folder(slot)
        if on_stage:
            await on_stage(SlotState.FOLDER_CREATED)
            await on_stage(SlotState.UPLOADING)
        await self.upload_files(slot, folder, files)
        return folder

    async def create_folder(self, slot: Slot) -> RemoteFolder:
        folder = await self._storage.create_folder(slot.name)
        await self._events.emit("folder_created", slot.name, folder)
        return folder

    async def upload_files(self, slot: Slot, folder: RemoteFolder, files: SlotFiles) -> None:
        """
        Upload files into folder and wait for every upload to settle.

        On cancellation, uploads still waiting for a slot in the semaphore
        are cancelled while uploads already in flight run to completion,
        then the cancellation propagates.
        """
        tasks = [
            UploadTask(
                source=files.path_of(name),
                folder=folder,
                total_bytes=self._file_size(files.path_of(name))
            )
            for name in files.names
        ]
        if not tasks:
            logger.info(f"Slot '{slot.name}' has no files to upload")
            return

        logger.info(f"Uploading {len(tasks)} file(s) of '{slot.name}'")
        running = [
            asyncio.create_task(self._upload_one(task, idx, len(tasks)))
            for idx, task in enumerate(tasks, 1)
        ]

        try:
            await asyncio.wait(running)
        except asyncio.CancelledError:
            await self._stop(tasks, running)
            raise

        errors: List[TransferError] = [t.result() for t in running if t.result() is not None]
        uploaded = len(tasks) - len(errors)
        logger.info(f"Slot '{slot.name}': {uploaded} uploaded, {len(errors)} failed")

        if errors:
            raise SlotTransferError(slot.name, errors)

    async def _upload_one(self, task: UploadTask, index: int, total: int) -> Optional[TransferError]:
        """Upload a single file. Failures are returned, never raised."""
        async with self._semaphore:
            task.started = True
            logger.info(f"[{index}/{total}] Uploading: {task.file_name}")
            await self._events.emit("file_start", task)

            try:
                await self._storage.upload(
                    task.folder,
                    task.source,
                    progress_callback=self._progress_tracker(task)
                )
            except Exception as e:
                error = e if isinstance(e, TransferError) else TransferError(task.file_name, e)
                task.error = str(error)
                logger.warning(f"[{index}/{total}] Failed: {error}")
                await self._events.emit("file_fail", task)
                return error

            task.bytes_transferred = max(task.bytes_transferred, task.total_bytes)
            logger.info(f"[{index}/{total}] Uploaded: {task.file_name}")
            await self._events.emit("file_complete", task)
            return None

    def _progress_tracker(self, task: UploadTask) -> Callable[[int, int], None]:
        def track(uploaded: int, total: int):
            task.bytes_transferred = uploaded
            if total > 0:
                task.total_bytes = total
            self._events.emit_nowait("file_progress", task)

        return track

    @staticmethod
    async def _stop(tasks: List[UploadTask], running: List[asyncio.Task]) -> None:
        in_flight = 0
        for task, job in zip(tasks, running):
            if job.done():
                continue
            if task.started:
                in_flight += 1
            else:
                job.cancel()

        logger.warning(f"Upload cancelled, letting {in_flight} in-flight upload(s) finish")
        await asyncio.wait(running)

    @staticmethod
    def _file_size(path: Path) -> int:
        try:
            return path.stat().st_size
        except OSError:
            return 0
