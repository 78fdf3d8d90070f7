"""Tests for download job orchestration."""
import pytest
from pathlib import Path
from unittest.mock import AsyncMock

from conftest import FakeDownloadService, history_entry
from nzbmega.exceptions import JobFailedError, ServiceConnectionError, SubmissionError
from nzbmega.models import PipelineConfig, Slot
from nzbmega.orchestrator.download_job import DownloadJobOrchestrator

FAST = PipelineConfig(poll_interval=0.001)


class TestDownloadJobOrchestrator:
    @pytest.mark.asyncio
    async def test_waits_until_job_leaves_queue(self, tmp_path):
        service = FakeDownloadService(
            entries=[history_entry("Movie", tmp_path / "Movie")],
            queued_polls=3
        )
        orchestrator = DownloadJobOrchestrator(service, FAST)

        slots = await orchestrator.submit_and_await("abc.nzb")

        assert service.submitted == ["abc.nzb"]
        assert service.queue_calls == 4
        assert slots == [Slot("Movie", tmp_path / "Movie", "SABnzbd_nzo_1")]

    @pytest.mark.asyncio
    async def test_waits_for_post_processing(self, tmp_path):
        entry = history_entry("Movie", tmp_path / "Movie", status="Extracting")
        service = FakeDownloadService(entries=[entry])
        polls = {"n": 0}

        async def history(job_ids):
            polls["n"] += 1
            if polls["n"] >= 3:
                entry["status"] = "Completed"
            return [entry]

        service.history = history
        slots = await DownloadJobOrchestrator(service, FAST).submit_and_await("abc.nzb")

        assert polls["n"] == 3
        assert [s.name for s in slots] == ["Movie"]

    @pytest.mark.asyncio
    async def test_empty_history_entries_without_storage_are_skipped(self):
        service = FakeDownloadService(entries=[{
            "nzo_id": "SABnzbd_nzo_1",
            "name": "Nothing",
            "storage": None,
            "status": "Completed",
        }])

        slots = await DownloadJobOrchestrator(service, FAST).submit_and_await("abc.nzb")

        assert slots == []

    @pytest.mark.asyncio
    async def test_multiple_jobs_in_submission_order(self, tmp_path):
        service = FakeDownloadService(
            entries=[
                history_entry("Second", tmp_path / "b", nzo_id="nzo_b"),
                history_entry("First", tmp_path / "a", nzo_id="nzo_a"),
            ],
            job_ids=["nzo_a", "nzo_b"]
        )

        slots = await DownloadJobOrchestrator(service, FAST).submit_and_await("pack.nzb")

        assert [s.name for s in slots] == ["First", "Second"]

    @pytest.mark.asyncio
    async def test_failed_job_raises(self, tmp_path):
        entry = history_entry("Movie", tmp_path / "Movie", status="Failed")
        entry["fail_message"] = "Repair failed, not enough repair blocks"
        service = FakeDownloadService(entries=[entry])

        with pytest.raises(JobFailedError, match="not enough repair blocks") as exc_info:
            await DownloadJobOrchestrator(service, FAST).submit_and_await("abc.nzb")
        assert exc_info.value.job_id == "SABnzbd_nzo_1"

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        service = FakeDownloadService(queued_polls=10_000)
        config = PipelineConfig(poll_interval=0.001, job_timeout=0.01)

        with pytest.raises(JobFailedError, match="timed out"):
            await DownloadJobOrchestrator(service, config).submit_and_await("abc.nzb")

    @pytest.mark.asyncio
    async def test_submission_error_propagates(self):
        service = FakeDownloadService(submit_error=SubmissionError("duplicate"))

        with pytest.raises(SubmissionError):
            await DownloadJobOrchestrator(service, FAST).submit_and_await("abc.nzb")

    @pytest.mark.asyncio
    async def test_connection_lost_while_waiting(self):
        service = FakeDownloadService(queued_polls=1)
        service.queue_ids = AsyncMock(side_effect=ServiceConnectionError("refused"))

        with pytest.raises(ServiceConnectionError):
            await DownloadJobOrchestrator(service, FAST).submit_and_await("abc.nzb")

    @pytest.mark.asyncio
    async def test_emits_job_events(self, tmp_path):
        from nzbmega.utils.events import EventEmitter

        events = EventEmitter()
        seen = []
        events.on("job_submitted", lambda ref, ids: seen.append(("submitted", ref, ids)))
        events.on("job_finished", lambda ref, slots: seen.append(("finished", ref, len(slots))))
        service = FakeDownloadService(entries=[history_entry("Movie", tmp_path / "Movie")])

        await DownloadJobOrchestrator(service, FAST, events).submit_and_await("abc.nzb")

        assert seen == [
            ("submitted", "abc.nzb", ["SABnzbd_nzo_1"]),
            ("finished", "abc.nzb", 1),
        ]

    @pytest.mark.asyncio
    async def test_check_connection_returns_version(self):
        orchestrator = DownloadJobOrchestrator(FakeDownloadService(), FAST)
        assert await orchestrator.check_connection() == "4.2.1"

    def test_slot_name_falls_back_to_storage_basename(self):
        slots = DownloadJobOrchestrator._to_slots([{"nzo_id": "x", "storage": "/downloads/Film"}])
        assert slots == [Slot("Film", Path("/downloads/Film"), "x")]

    @pytest.mark.asyncio
    async def test_job_missing_from_queue_and_history_fails(self):
        service = FakeDownloadService(entries=[])

        with pytest.raises(JobFailedError, match="disappeared") as exc_info:
            await DownloadJobOrchestrator(service, FAST).submit_and_await("abc.nzb")

        assert exc_info.value.job_id == "SABnzbd_nzo_1"
        assert service.queue_calls == 3

    @pytest.mark.asyncio
    async def test_job_briefly_missing_is_tolerated(self, tmp_path):
        entry = history_entry("Movie", tmp_path / "Movie")
        service = FakeDownloadService(entries=[entry])
        polls = {"n": 0}

        async def history(job_ids):
            polls["n"] += 1
            return [entry] if polls["n"] >= 2 else []

        service.history = history
        slots = await DownloadJobOrchestrator(service, FAST).submit_and_await("abc.nzb")

        assert [s.name for s in slots] == ["Movie"]
