"""Download job orchestration - submit a job and wait for SABnzbd to finish it."""
from pathlib import Path
from typing import Any, Dict, List, Optional
import asyncio
import logging

from ..exceptions import JobFailedError
from ..models import PipelineConfig, Slot
from ..protocols import IDownloadService
from ..utils.events import EventEmitter

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = {STATUS_COMPLETED, STATUS_FAILED}
# consecutive polls a job may be missing from both queue and history
MISSING_POLL_LIMIT = 3


class DownloadJobOrchestrator:
    """
    Submits a job reference and suspends until the download service is done.

    SABnzbd moves a job from the queue to the history when downloading
    ends, then keeps post-processing it there (verify, repair, unpack). A
    job is only finished once it has left the queue and its history entry
    reports Completed or Failed.
    """

    def __init__(
        self,
        service: IDownloadService,
        config: Optional[PipelineConfig] = None,
        events: Optional[EventEmitter] = None
    ):
        self._service = service
        self._config = config or PipelineConfig()
        self._events = events or EventEmitter()

    async def check_connection(self) -> str:
        """Return the download service version (raises ServiceConnectionError)."""
        version = await self._service.version()
        logger.info(f"Connected to SABnzbd version {version}")
        return version

    async def submit_and_await(self, job_reference: str) -> List[Slot]:
        """
        Submit job_reference and wait for completion.

        Returns:
            Completed slots (possibly empty)

        Raises:
            SubmissionError: reference rejected
            ServiceConnectionError: service unreachable while waiting
            JobFailedError: job failed permanently or timed out
        """
        job_ids = await self._service.submit(job_reference)
        await self._events.emit("job_submitted", job_reference, job_ids)

        entries = await self._wait_for(job_ids)
        slots = self._to_slots(entries)

        logger.info(f"Job {job_reference} finished with {len(slots)} slot(s)")
        await self._events.emit("job_finished", job_reference, slots)
        return slots

    async def _wait_for(self, job_ids: List[str]) -> List[Dict[str, Any]]:
        loop = asyncio.get_running_loop()
        deadline = None
        if self._config.job_timeout is not None:
            deadline = loop.time() + self._config.job_timeout

        wanted = set(job_ids)
        unseen_polls = 0
        while True:
            queued = wanted.intersection(await self._service.queue_ids())
            if not queued:
                entries = await self._service.history(job_ids)
                finished = self._finished_entries(job_ids, entries)
                if finished is not None:
                    return finished

                known = {e.get("nzo_id") for e in entries}
                missing = [job_id for job_id in job_ids if job_id not in known]
                if missing:
                    # SABnzbd briefly shows a job in neither list while moving it to history
                    unseen_polls += 1
                    if unseen_polls >= MISSING_POLL_LIMIT:
                        raise JobFailedError(
                            f"job {missing[0]} disappeared from SABnzbd",
                            job_id=missing[0]
                        )
                else:
                    unseen_polls = 0
                    logger.debug("Job left the queue, waiting for post-processing")
            else:
                unseen_polls = 0
                logger.debug(f"{len(queued)} job(s) still downloading")

            if deadline is not None and loop.time() >= deadline:
                raise JobFailedError(
                    f"timed out after {self._config.job_timeout}s waiting for {', '.join(job_ids)}",
                    job_id=job_ids[0] if job_ids else None
                )
            await asyncio.sleep(self._config.poll_interval)

    @staticmethod
    def _finished_entries(
        job_ids: List[str],
        entries: List[Dict[str, Any]]
    ) -> Optional[List[Dict[str, Any]]]:
        """Entries in submission order if every job is terminal, else None."""
        by_id = {e.get("nzo_id"): e for e in entries}
        ordered = []
        for job_id in job_ids:
            entry = by_id.get(job_id)
            if entry is None:
                return None
            status = str(entry.get("status", "")).lower()
            if status not in TERMINAL_STATUSES:
                return None
            ordered.append(entry)

        for entry in ordered:
            if str(entry.get("status", "")).lower() == STATUS_FAILED:
                reason = entry.get("fail_message") or "unknown reason"
                raise JobFailedError(
                    f"SABnzbd job {entry.get('name') or entry.get('nzo_id')} failed: {reason}",
                    job_id=entry.get("nzo_id")
                )
        return ordered

    @staticmethod
    def _to_slots(entries: List[Dict[str, Any]]) -> List[Slot]:
        slots = []
        for entry in entries:
            storage = entry.get("storage")
            if not storage:
                logger.warning(f"History entry {entry.get('nzo_id')} has no storage path, skipping")
                continue
            slots.append(Slot(
                name=entry.get("name") or Path(storage).name,
                storage_path=Path(storage),
                job_id=entry.get("nzo_id")
            ))
        return slots
