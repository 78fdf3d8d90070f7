"""Orchestrator package - coordinates the transfer pipeline."""
from .core import TransferOrchestrator
from .download_job import DownloadJobOrchestrator
from .materializer import FolderMaterializer
from .publisher import LinkPublisher
from .slot_upload import SlotUploader
from .state import SlotStateMachine

__all__ = [
    "TransferOrchestrator",
    "DownloadJobOrchestrator",
    "FolderMaterializer",
    "LinkPublisher",
    "SlotUploader",
    "SlotStateMachine",
]
