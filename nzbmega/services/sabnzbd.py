"""HTTP adapter for the SABnzbd JSON API."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import logging

from ..exceptions import ServiceConnectionError, SubmissionError
from ..models import ServiceConfig

logger = logging.getLogger(__name__)


class SABnzbdClient:
    """
    Async client for the subset of the SABnzbd API the pipeline needs.

    Implements IDownloadService protocol.

    Usage:
        async with SABnzbdClient(ServiceConfig(api_key="...")) as sab:
            ids = await sab.submit("https://indexer/abc.nzb")
    """

    def __init__(
        self,
        config: ServiceConfig,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._config = config
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _call(self, mode: str, **params: Any) -> Dict[str, Any]:
        if not self._client:
            raise RuntimeError("SABnzbdClient not initialized. Use 'async with' context.")

        query = {"mode": mode, "output": "json", "apikey": self._config.api_key}
        query.update({k: v for k, v in params.items() if v is not None})

        try:
            response = await self._client.get("/api", params=query)
        except httpx.RequestError as exc:
            raise ServiceConnectionError(
                f"cannot reach SABnzbd at {self._config.base_url}: {exc}"
            ) from exc

        if response.status_code >= 400:
            raise ServiceConnectionError(
                f"SABnzbd error {response.status_code} on mode={mode}: {response.text}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ServiceConnectionError(
                f"SABnzbd returned a non-JSON answer on mode={mode}"
            ) from exc

        if not isinstance(payload, dict):
            raise ServiceConnectionError(f"unexpected SABnzbd answer on mode={mode}: {payload!r}")
        return payload

    async def version(self) -> str:
        payload = await self._call("version")
        return str(payload.get("version", ""))

    async def submit(self, job_reference: str) -> List[str]:
        """
        Add a job reference to the queue.

        URLs go through mode=addurl; paths to existing local files through
        mode=addlocalfile.

        Returns:
            nzo ids created by SABnzbd
        """
        reference = job_reference.strip()
        if not reference:
            raise SubmissionError("empty job reference")

        mode = "addurl"
        if "://" not in reference and Path(reference).expanduser().is_file():
            mode = "addlocalfile"
            reference = str(Path(reference).expanduser().resolve())

        payload = await self._call(mode, name=reference)

        if payload.get("error"):
            raise SubmissionError(f"SABnzbd rejected {job_reference}: {payload['error']}")
        if payload.get("status") is False:
            raise SubmissionError(f"SABnzbd rejected {job_reference}")

        ids = [str(i) for i in payload.get("nzo_ids") or [] if i]
        if not ids:
            raise SubmissionError(f"SABnzbd created no job for {job_reference}")

        logger.info(f"Submitted {job_reference} as {', '.join(ids)}")
        return ids

    async def queue_ids(self) -> List[str]:
        payload = await self._call("queue")
        self._raise_for_api_error(payload, "queue")
        slots = (payload.get("queue") or {}).get("slots") or []
        return [str(s.get("nzo_id")) for s in slots if s.get("nzo_id")]

    async def history(self, job_ids: List[str]) -> List[Dict[str, Any]]:
        nzo_ids = ",".join(job_ids) if job_ids else None
        payload = await self._call("history", nzo_ids=nzo_ids)
        self._raise_for_api_error(payload, "history")
        slots = (payload.get("history") or {}).get("slots") or []
        if job_ids:
            wanted = set(job_ids)
            slots = [s for s in slots if s.get("nzo_id") in wanted]
        return slots

    @staticmethod
    def _raise_for_api_error(payload: Dict[str, Any], mode: str) -> None:
        if payload.get("error"):
            raise ServiceConnectionError(f"SABnzbd error on mode={mode}: {payload['error']}")
