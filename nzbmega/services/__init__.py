"""Services for nzbmega.

MegaStorageService lives in nzbmega.services.storage and is imported from
there directly, since it pulls in the MEGA client.
"""
from .sabnzbd import SABnzbdClient
from .config_store import ConfigStore

__all__ = [
    "SABnzbdClient",
    "ConfigStore",
]
