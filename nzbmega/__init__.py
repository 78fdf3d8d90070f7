"""
nzbmega - move finished SABnzbd downloads to MEGA and share them.

Usage:
    from nzbmega import TransferOrchestrator, PipelineConfig, ServiceConfig, Credentials
    from nzbmega.services import SABnzbdClient
    from nzbmega.services.storage import MegaStorageService

    async with SABnzbdClient(ServiceConfig(api_key=key)) as sab, \\
            MegaStorageService.for_credentials(Credentials(email, password)) as mega:
        orchestrator = TransferOrchestrator(sab, mega, PipelineConfig(max_parallel_uploads=4))
        results = await orchestrator.run("https://indexer/abc.nzb")
        for result in results:
            print(result.describe())
"""
from .orchestrator import TransferOrchestrator
from .models import (
    Credentials,
    PipelineConfig,
    RemoteFolder,
    ServiceConfig,
    Slot,
    SlotFiles,
    SlotResult,
    SlotState,
    UploadTask,
)
from .exceptions import (
    NzbMegaError,
    SubmissionError,
    ServiceConnectionError,
    JobFailedError,
    NotFoundError,
    RemoteCreateError,
    TransferError,
    SlotTransferError,
    ShareError,
    AuthenticationError,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "TransferOrchestrator",
    # Models
    "Credentials",
    "PipelineConfig",
    "RemoteFolder",
    "ServiceConfig",
    "Slot",
    "SlotFiles",
    "SlotResult",
    "SlotState",
    "UploadTask",
    # Errors
    "NzbMegaError",
    "SubmissionError",
    "ServiceConnectionError",
    "JobFailedError",
    "NotFoundError",
    "RemoteCreateError",
    "TransferError",
    "SlotTransferError",
    "ShareError",
    "AuthenticationError",
]
