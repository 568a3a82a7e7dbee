"""
Credential Store

Opaque persistence for transport session credentials. The gateway loads
credentials once at startup and saves them on every update signal.
"""

from abc import ABC, abstractmethod
import asyncio
import json
import os
from typing import Any, Optional

from loguru import logger


class CredentialStore(ABC):
    """Load/save contract for session credentials."""

    @abstractmethod
    async def load(self) -> Optional[Any]:
        """Return stored credentials, or None when nothing is stored yet."""

    @abstractmethod
    async def save(self, credentials: Any) -> None:
        """Persist credentials durably before returning."""


class FileCredentialStore(CredentialStore):
    """
    JSON file credential store under ``auth_dir``.

    Writes go to a temp file that is then renamed over the target, so a
    crash mid-write never leaves a truncated document behind.
    """

    FILE_NAME = "creds.json"

    def __init__(self, auth_dir: str = "./auth_info"):
        self.auth_dir = auth_dir
        self.path = os.path.join(auth_dir, self.FILE_NAME)
        self._lock = asyncio.Lock()

    async def load(self) -> Optional[Any]:
        return await asyncio.to_thread(self._read)

    async def save(self, credentials: Any) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write, credentials)
        logger.debug(f"Credentials saved to {self.path}")

    def _read(self) -> Optional[Any]:
        if not os.path.exists(self.path):
            logger.info(f"No stored credentials at {self.path}; pairing required")
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load credentials from {self.path}: {e}")
            return None

    def _write(self, credentials: Any) -> None:
        os.makedirs(self.auth_dir, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(credentials, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
