"""Google Cloud credential handling for the REST providers.

WHY: Users pass service-account credentials either as a key file path or
as a base64-encoded JSON blob (handy in CI secrets). Providers need a
file path for google-auth and a fresh OAuth access token per request.

HOW: CredentialStore turns either form into a file path, writing decoded
blobs to owner-only temp files it tracks and deletes in cleanup().
AccessTokenSource wraps google-auth service-account credentials and
refreshes the token in a worker thread when it has expired.

RULES:
- Values that look like paths must point to an existing file
- Anything else is decoded as base64 JSON; failure raises ConfigurationError
- Temp credential files are created with mode 0600
- cleanup() is idempotent and never raises
- Token refresh: unreadable key -> ConfigurationError, retryable or
  transport failure -> TransientError, anything else (invalid_grant) -> FatalError
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import List, Optional

import google.auth.transport.requests
from google.auth.exceptions import GoogleAuthError, TransportError
from google.oauth2 import service_account

from speech_to_text.errors import ConfigurationError, FatalError, TransientError

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

_REQUIRED_KEY_FIELDS = ("project_id", "private_key", "client_email")
_WINDOWS_ABS_PATH = re.compile(r"^[a-zA-Z]:\\")


def looks_like_path(value: str) -> bool:
    return (
        ".json" in value
        or value.startswith(("/", "./", "../", "~"))
        or bool(_WINDOWS_ABS_PATH.match(value))
    )


def validate_service_account_key(path: str | Path) -> dict:
    """Check that ``path`` holds a usable service-account key and return it.

    Raises:
        ConfigurationError: if the file is unreadable or missing required fields.
    """
    path = Path(path).expanduser()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Invalid Google Cloud credentials: {exc}") from exc

    if not isinstance(data, dict) or data.get("type") != "service_account":
        raise ConfigurationError(
            "Invalid Google Cloud credentials: expected a service_account key file"
        )
    missing = [key for key in _REQUIRED_KEY_FIELDS if not data.get(key)]
    if missing:
        raise ConfigurationError(
            "Invalid Google Cloud credentials: missing {}".format(", ".join(missing))
        )
    return data


class CredentialStore:
    """Resolves credential inputs to files and cleans up what it created."""

    def __init__(self) -> None:
        self._temp_files: List[Path] = []

    def prepare(self, value: Optional[str]) -> Optional[str]:
        """Return a file path for ``value`` (a path or base64 JSON)."""
        if not value:
            return None

        if looks_like_path(value):
            path = Path(value).expanduser()
            if not path.is_file():
                raise ConfigurationError(f"Credential file not found: {value}")
            return str(path)

        try:
            decoded = base64.b64decode(value, validate=True).decode("utf-8")
            json.loads(decoded)
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            raise ConfigurationError(
                "Invalid credentials: must be either a valid file path or "
                f"base64-encoded JSON ({exc})"
            ) from exc

        fd, name = tempfile.mkstemp(prefix="gcp-creds-", suffix=".json")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(decoded)
        os.chmod(name, 0o600)
        self._temp_files.append(Path(name))
        logger.debug("wrote decoded credentials to %s", name)
        return name

    @property
    def temp_files(self) -> List[Path]:
        return list(self._temp_files)

    def cleanup(self) -> None:
        for path in self._temp_files:
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Failed to remove temp credential file: %s", path)
        self._temp_files = []


class AccessTokenSource:
    """Lazily loaded, auto-refreshing OAuth token for one key file."""

    def __init__(self, key_path: str, scopes: Optional[List[str]] = None) -> None:
        self._key_path = key_path
        self._scopes = scopes or [CLOUD_PLATFORM_SCOPE]
        self._credentials: Optional[service_account.Credentials] = None
        self._lock: Optional[asyncio.Lock] = None

    def _refresh_sync(self) -> str:
        if self._credentials is None:
            self._credentials = service_account.Credentials.from_service_account_file(
                self._key_path, scopes=self._scopes
            )
        self._credentials.refresh(google.auth.transport.requests.Request())
        return self._credentials.token

    async def token(self) -> str:
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._credentials is not None and self._credentials.valid:
                return self._credentials.token
            try:
                return await asyncio.to_thread(self._refresh_sync)
            except (ValueError, OSError) as exc:
                raise ConfigurationError(f"Invalid Google Cloud credentials: {exc}") from exc
            except GoogleAuthError as exc:
                # google-auth flags refresh failures it considers worth retrying
                if isinstance(exc, TransportError) or getattr(exc, "retryable", False):
                    raise TransientError("google-auth", f"token refresh failed: {exc}") from exc
                raise FatalError("google-auth", f"token refresh rejected: {exc}") from exc
