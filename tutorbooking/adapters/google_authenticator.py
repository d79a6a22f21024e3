"""
Google OAuth2 access tokens for the Calendar API (refresh-token grant).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import keyring
import pendulum
import requests
from keyring.errors import KeyringError

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


KEYRING_SERVICE_NAME = "tutorbooking"


class GoogleAuthenticator:
    """
    Exchanges a long-lived refresh token for short-lived access tokens.

    One instance is meant to live for the whole process: the access token is
    cached (keyring first, plaintext file as fallback) and refreshed once it
    is about to expire.
    """

    TOKEN_URL = "https://oauth2.googleapis.com/token"
    SCOPES = ["https://www.googleapis.com/auth/calendar"]
    # Refresh slightly before Google actually rejects the token
    EXPIRY_MARGIN_SECONDS = 60

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        cache_file: Path | None = None,
        session: requests.Session | None = None
    ):
        """
        Initialize the authenticator.

        Args:
            client_id: OAuth client ID
            client_secret: OAuth client secret
            refresh_token: Refresh token granted for the calendar scope
            cache_file: Optional path to token cache file
            session: Optional requests session (shared connection pool)
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.session = session or requests.Session()

        self.cache_file = cache_file or Path.home() / ".tutorbooking_token_cache.json"
        self._key_identifier = f"google:{self.client_id}"
        self._keyring_supported = True
        self._cache_backend = "keyring"
        self._insecure_storage_warning: Optional[str] = None
        self.cache: Dict[str, Any] = self._load_cache()

    @property
    def cache_backend(self) -> str:
        """Return the active cache backend (keyring or file)."""
        return self._cache_backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Provide a warning message when the cache falls back to plaintext storage."""
        return self._insecure_storage_warning

    def _load_cache(self) -> Dict[str, Any]:
        """Load the cached token from keyring or disk if it exists."""
        serialized = self._load_cache_from_keyring()
        if serialized is None:
            serialized = self._load_cache_from_file()

        if serialized:
            try:
                data = json.loads(serialized)
            except ValueError as exc:
                logger.warning("Could not deserialize token cache: %s", exc)
            else:
                if isinstance(data, dict):
                    return data

        return {}

    def _load_cache_from_keyring(self) -> Optional[str]:
        if not self._keyring_supported:
            return None

        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"reading credentials failed: {exc}")
            return None

    def _load_cache_from_file(self) -> Optional[str]:
        if self.cache_file.exists():
            try:
                with open(self.cache_file, "r", encoding="utf-8") as file_handle:
                    return file_handle.read()
            except OSError as exc:
                logger.warning("Could not load token cache file %s: %s", self.cache_file, exc)
        return None

    def _save_cache(self) -> None:
        """Save the token cache to the configured backend."""
        serialized = json.dumps(self.cache)

        if self._keyring_supported and self._save_cache_to_keyring(serialized):
            return

        self._save_cache_to_file(serialized)

    def _save_cache_to_keyring(self, serialized: str) -> bool:
        try:
            keyring.set_password(
                KEYRING_SERVICE_NAME,
                self._key_identifier,
                serialized,
            )
            self._cache_backend = "keyring"
            return True
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"writing credentials failed: {exc}")
            return False

    def _save_cache_to_file(self, serialized: str) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as file_handle:
                file_handle.write(serialized)
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token cache to %s: %s", self.cache_file, exc)

    def _handle_keyring_failure(self, reason: str) -> None:
        if self._keyring_supported:
            logger.warning(
                "Secure credential storage unavailable (%s). Falling back to plaintext cache.",
                reason,
            )
        self._keyring_supported = False
        self._cache_backend = "file"
        if not self._insecure_storage_warning:
            self._insecure_storage_warning = (
                f"Secure credential storage unavailable ({reason}). "
                f"Falling back to plaintext cache at {self.cache_file}."
            )

    def _cached_token_is_valid(self) -> bool:
        token = self.cache.get("access_token")
        expires_at = self.cache.get("expires_at")
        if not token or not expires_at:
            return False

        try:
            expiry = pendulum.parse(expires_at)
        except ValueError:
            return False

        return pendulum.now("UTC").add(seconds=self.EXPIRY_MARGIN_SECONDS) < expiry

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, using cache or requesting a new one.

        Args:
            force_refresh: Refresh even if the cached token is still valid

        Returns:
            Access token string

        Raises:
            AuthenticationError: If the token endpoint rejects the refresh
        """
        if not force_refresh and self._cached_token_is_valid():
            return self.cache["access_token"]

        return self._refresh_access_token()

    def _refresh_access_token(self) -> str:
        if not self.refresh_token:
            raise AuthenticationError(
                "No Google refresh token configured. Set calendar.refresh_token in config.yaml."
            )

        logger.info("Refreshing Google Calendar access token")

        try:
            response = self.session.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=30
            )
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"Token refresh failed: {exc}") from exc

        if "access_token" not in result:
            error = result.get("error_description", "Unknown error")
            raise AuthenticationError(f"Authentication failed: {error}")

        expires_in = int(result.get("expires_in", 3600))
        self.cache = {
            "access_token": result["access_token"],
            "expires_at": pendulum.now("UTC").add(seconds=expires_in).to_iso8601_string(),
        }
        self._save_cache()

        return result["access_token"]

    def clear_cache(self) -> None:
        """Clear the token cache (force a refresh next time)."""
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove credentials from keyring: %s", exc)
        self.cache = {}
