"""Core orchestrator - coordinates the whole transfer pipeline."""
from typing import Callable, List, Optional
import asyncio
import logging

from ..exceptions import NzbMegaError, SlotTransferError
from ..models import PipelineConfig, Slot, SlotResult, SlotState, UploadTask, RemoteFolder
from ..protocols import IDownloadService, IStorageSession
from ..utils.events import EventEmitter

from .download_job import DownloadJobOrchestrator
from .publisher import LinkPublisher
from .slot_upload import SlotUploader
from .state import SlotStateMachine

logger = logging.getLogger(__name__)


class TransferOrchestrator:
    """
    Moves the output of a download job into cloud storage.

    job reference -> download job -> slots -> (per slot, concurrently)
    materialize -> create folder -> upload files -> publish link.

    Follows:
    - Dependency Injection (download service and storage session injected)
    - Single Responsibility (delegates each stage to its own component)

    Usage:
        async with SABnzbdClient(service_config) as sab, \\
                MegaStorageService.for_credentials(credentials) as mega:
            orchestrator = TransferOrchestrator(sab, mega, PipelineConfig())
            orchestrator.on_slot_state(lambda name, state: print(name, state.value))
            results = await orchestrator.run("https://indexer/abc.nzb")
    """

    def __init__(
        self,
        download_service: IDownloadService,
        storage: IStorageSession,
        config: Optional[PipelineConfig] = None,
    ):
        self._config = config or PipelineConfig()
        self._events = EventEmitter()
        # one bound for the whole run, across all slots
        self._semaphore = asyncio.Semaphore(self._config.max_parallel_uploads)

        self._downloads = DownloadJobOrchestrator(download_service, self._config, self._events)
        self._uploader = SlotUploader(storage, self._semaphore, events=self._events)
        self._publisher = LinkPublisher(storage)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self._events.drain()

    # Event subscription methods
    def on_job_submitted(self, callback: Callable[[str, List[str]], None]):
        """Called once the job is accepted. Receives (job_reference, job_ids)."""
        self._events.on("job_submitted", callback)

    def on_job_finished(self, callback: Callable[[str, List[Slot]], None]):
        """Called when the download job is done. Receives (job_reference, slots)."""
        self._events.on("job_finished", callback)

    def on_slot_state(self, callback: Callable[[str, SlotState], None]):
        """Called on every slot state transition. Receives (slot_name, state)."""
        self._events.on("slot_state", callback)

    def on_folder_created(self, callback: Callable[[str, RemoteFolder], None]):
        """Called after a remote folder is created. Receives (slot_name, folder)."""
        self._events.on("folder_created", callback)

    def on_file_start(self, callback: Callable[[UploadTask], None]):
        """Called when a file starts uploading. Receives UploadTask."""
        self._events.on("file_start", callback)

    def on_file_progress(self, callback: Callable[[UploadTask], None]):
        """Called on upload progress. Receives UploadTask."""
        self._events.on("file_progress", callback)

    def on_file_complete(self, callback: Callable[[UploadTask], None]):
        """Called when a file upload succeeds. Receives UploadTask."""
        self._events.on("file_complete", callback)

    def on_file_fail(self, callback: Callable[[UploadTask], None]):
        """Called when a file upload fails. Receives UploadTask."""
        self._events.on("file_fail", callback)

    def on_slot_finish(self, callback: Callable[[SlotResult], None]):
        """Called when a slot reaches a terminal state. Receives SlotResult."""
        self._events.on("slot_finish", callback)

    async def check_connection(self) -> str:
        return await self._downloads.check_connection()

    async def run(self, job_reference: str) -> List[SlotResult]:
        """
        Run the whole pipeline for one job reference.

        Download stage errors (SubmissionError, ServiceConnectionError,
        JobFailedError) propagate. Slot stage errors are reported per slot
        in the returned results.
        """
        slots = await self._downloads.submit_and_await(job_reference)
        if not slots:
            logger.info(f"Job {job_reference} produced no slots")
            return []
        return await self.process_slots(slots)

    async def process_slots(self, slots: List[Slot]) -> List[SlotResult]:
        """Process slots concurrently, results in slot order."""
        results = await asyncio.gather(*(self.process_slot(slot) for slot in slots))
        await self._events.drain()

        published = sum(1 for r in results if r.success)
        logger.info(f"Run finished: {published}/{len(results)} slot(s) published")
        return list(results)

    async def process_slot(self, slot: Slot) -> SlotResult:
        """Move one slot through its states. Never raises for slot-level failures."""
        machine = SlotStateMachine(slot.name, self._events)
        await machine.advance(SlotState.DOWNLOADED)

        try:
            folder = await self._uploader.upload_slot(slot, on_stage=machine.advance)
            await machine.advance(SlotState.UPLOADED)

            url = await self._publisher.publish(folder)
            await machine.advance(SlotState.PUBLISHED)
        except SlotTransferError as e:
            stage = await machine.fail()
            logger.error(f"Slot '{slot.name}' failed after {stage.value}: {e}")
            result = SlotResult.fail(slot.name, stage, str(e), tuple(e.failed_files))
        except NzbMegaError as e:
            stage = await machine.fail()
            logger.error(f"Slot '{slot.name}' failed after {stage.value}: {e}")
            result = SlotResult.fail(slot.name, stage, str(e))
        except Exception as e:
            stage = await machine.fail()
            logger.exception(f"Unexpected error processing slot '{slot.name}'")
            result = SlotResult.fail(slot.name, stage, str(e) or type(e).__name__)
        else:
            result = SlotResult.ok(slot.name, url)

        await self._events.emit("slot_finish", result)
        return result
