"""
Config Store - persisted accounts and SABnzbd parameters.

Only the CLI reads and writes this file; the pipeline receives resolved
values.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging
import os

from ..models import Credentials, ServiceConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"


def default_config_dir() -> Path:
    env_dir = os.getenv("NZBMEGA_CONFIG_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / ".config" / "nzb-mega"


class ConfigStore:
    """
    JSON-backed store for previously used accounts and service parameters.

    Layout:
        {
            "accounts": [{"email": "...", "password": "..."}],
            "sabnzbd": {"host": "127.0.0.1", "port": 8080, "api_key": "..."}
        }
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self._path = Path(config_dir or default_config_dir()) / CONFIG_FILENAME
        self._data: Dict[str, Any] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            self._data = {}
            return
        try:
            self._data = json.loads(self._path.read_text(encoding="utf-8")) or {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable config file {self._path}: {e}")
            self._data = {}

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        try:
            os.chmod(self._path, 0o600)
        except OSError:
            logger.debug(f"Could not restrict permissions on {self._path}")

    # Accounts
    def accounts(self) -> List[Credentials]:
        result = []
        for entry in self._data.get("accounts", []):
            try:
                result.append(Credentials(entry["email"], entry["password"]))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed account entry in config")
        return result

    def find_account(self, email: str) -> Optional[Credentials]:
        for account in self.accounts():
            if account.email.lower() == email.lower():
                return account
        return None

    def add_account(self, credentials: Credentials) -> None:
        """Remember an account, replacing an entry with the same email."""
        accounts = [
            a for a in self._data.get("accounts", [])
            if str(a.get("email", "")).lower() != credentials.email.lower()
        ]
        accounts.append({"email": credentials.email, "password": credentials.password})
        self._data["accounts"] = accounts

    # SABnzbd
    def service_config(self) -> ServiceConfig:
        raw = self._data.get("sabnzbd", {})
        defaults = ServiceConfig()
        return ServiceConfig(
            host=raw.get("host") or defaults.host,
            port=int(raw.get("port") or defaults.port),
            api_key=raw.get("api_key") or defaults.api_key,
            use_https=bool(raw.get("use_https", defaults.use_https)),
        )

    def set_service_config(self, config: ServiceConfig) -> None:
        self._data["sabnzbd"] = {
            "host": config.host,
            "port": config.port,
            "api_key": config.api_key,
            "use_https": config.use_https,
        }
