"""Storage for the opaque session credential issued at login."""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Optional, Protocol

import structlog


logger = structlog.get_logger(__name__)


class CredentialStore(Protocol):
    """Persist, read and forget one opaque bearer token."""

    def save(self, token: str) -> None: ...

    def load(self) -> Optional[str]: ...

    def clear(self) -> None: ...


class MemoryCredentialStore:
    """Credential store that lives only as long as the process."""

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token or None

    def save(self, token: str) -> None:
        self._token = token or None

    def load(self) -> Optional[str]:
        return self._token

    def clear(self) -> None:
        self._token = None


class FileCredentialStore:
    """Credential store backed by a single owner-readable file.

    The token survives restarts of the client until :meth:`clear` removes the
    file. Contents are never inspected.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token, encoding="utf-8")
        try:
            if os.name == "nt":
                os.chmod(self.path, stat.S_IREAD | stat.S_IWRITE)
            else:
                os.chmod(self.path, stat.S_IRUSR | stat.S_IWUSR)
        except OSError:
            logger.warning("credential_permissions_not_restricted", path=str(self.path))

    def load(self) -> Optional[str]:
        try:
            token = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return token or None

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


__all__ = ["CredentialStore", "MemoryCredentialStore", "FileCredentialStore"]
