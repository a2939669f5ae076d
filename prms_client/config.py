"""Client configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from platformdirs import user_data_dir

APP_NAME = "PRMS"

DEFAULT_API_BASE = "http://localhost:5001/api"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_DOCTOR_ID = 1
_TOKEN_FILENAME = "session_token"


@dataclass(frozen=True)
class ClientSettings:
    """Resolved configuration injected into the request gateway."""

    api_base: str = DEFAULT_API_BASE
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    token_path: Optional[Path] = None
    default_doctor_id: int = DEFAULT_DOCTOR_ID
    log_level: str = "INFO"

    def url_for(self, endpoint: str) -> str:
        """Return the absolute URL for ``endpoint`` below :attr:`api_base`."""

        return f"{self.api_base.rstrip('/')}/{endpoint.lstrip('/')}"

    def resolved_token_path(self) -> Path:
        if self.token_path is not None:
            return self.token_path
        return _default_token_path()


def _default_token_path() -> Path:
    data_dir = Path(user_data_dir(APP_NAME, APP_NAME))
    return data_dir / _TOKEN_FILENAME


def _get_int_env(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer; got {raw!r}") from exc


def _get_float_env(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number; got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_client_settings() -> ClientSettings:
    """Return the active client settings derived from the environment."""

    api_base = os.getenv("PRMS_API_BASE") or DEFAULT_API_BASE
    timeout = _get_float_env("PRMS_HTTP_TIMEOUT")
    doctor_id = _get_int_env("PRMS_DEFAULT_DOCTOR_ID")
    token_override = os.getenv("PRMS_TOKEN_PATH")

    return ClientSettings(
        api_base=api_base,
        timeout=timeout if timeout is not None else DEFAULT_TIMEOUT_SECONDS,
        token_path=Path(token_override).expanduser() if token_override else None,
        default_doctor_id=doctor_id if doctor_id is not None else DEFAULT_DOCTOR_ID,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


__all__ = ["APP_NAME", "ClientSettings", "get_client_settings"]
