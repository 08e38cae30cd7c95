"""
Microsoft Graph authentication via MSAL device code flow.

Tokens are cached in the system keyring; when no keyring backend works the
cache falls back to a user-only readable file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import keyring
import msal
from keyring.errors import KeyringError
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console(stderr=True)

KEYRING_SERVICE_NAME = "slotpicker"


class TokenCacheStore:
    """Persists a serialized MSAL token cache in the keyring or a file."""

    def __init__(self, key: str, cache_file: Path):
        self.key = key
        self.cache_file = cache_file
        self.backend = "keyring"

    def load(self) -> Optional[str]:
        if self.backend == "keyring":
            try:
                serialized = keyring.get_password(KEYRING_SERVICE_NAME, self.key)
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._fall_back(f"reading credentials failed: {exc}")
            else:
                if serialized is not None:
                    return serialized

        if not self.cache_file.exists():
            return None
        try:
            return self.cache_file.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read token cache file %s: %s", self.cache_file, exc)
            return None

    def save(self, serialized: str) -> None:
        if self.backend == "keyring":
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, self.key, serialized)
                return
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._fall_back(f"writing credentials failed: {exc}")

        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(serialized, encoding="utf-8")
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token cache to %s: %s", self.cache_file, exc)

    def clear(self) -> None:
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self.key)
        except KeyringError as exc:
            logger.debug("Nothing removed from keyring: %s", exc)

    def _fall_back(self, reason: str) -> None:
        logger.warning(
            "Secure credential storage unavailable (%s). Using plaintext cache at %s.",
            reason,
            self.cache_file,
        )
        self.backend = "file"


class GraphAuthenticator:
    """
    Acquires read-only calendar tokens for Microsoft Graph.

    A cached account is tried silently first; otherwise the user is asked to
    complete the device code flow in a browser.
    """

    # Read-only: slotpicker never writes to calendars
    SCOPES = ["Calendars.Read", "Calendars.Read.Shared"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        authority_url: str | None = None,
        cache_file: Path | None = None,
    ):
        if not client_id or not tenant_id:
            raise AuthenticationError("client_id and tenant_id must be configured for Microsoft Graph")

        self.client_id = client_id
        self.tenant_id = tenant_id
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"

        self.store = TokenCacheStore(
            key=f"{client_id}:{tenant_id}",
            cache_file=cache_file or Path.home() / ".slotpicker_token_cache.json",
        )
        self.cache = msal.SerializableTokenCache()
        serialized = self.store.load()
        if serialized:
            try:
                self.cache.deserialize(serialized)
            except ValueError as exc:
                logger.warning("Could not deserialize token cache: %s", exc)

        self.app = msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.cache,
        )

    @property
    def cache_backend(self) -> str:
        """Return the active cache backend (keyring or file)."""
        return self.store.backend

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, using the cache unless ``force_refresh``.

        Raises:
            AuthenticationError: If authentication fails
        """
        if not force_refresh:
            accounts = self.app.get_accounts()
            if accounts:
                result = self.app.acquire_token_silent(scopes=self.SCOPES, account=accounts[0])
                if result and "access_token" in result:
                    self._persist()
                    return result["access_token"]

        return self._device_code_flow()

    def _device_code_flow(self) -> str:
        try:
            flow = self.app.initiate_device_flow(scopes=self.SCOPES)
        except Exception as exc:  # pragma: no cover - MSAL internal failure
            raise AuthenticationError(f"Failed to initiate device flow: {exc}") from exc

        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to initiate device flow: {flow.get('error_description', 'Unknown error')}"
            )

        console.print("\n[bold cyan]Microsoft sign-in required[/bold cyan]")
        console.print(f"Open [bold cyan]{flow['verification_uri']}[/bold cyan] "
                      f"and enter the code [bold yellow]{flow['user_code']}[/bold yellow]")
        console.print("[dim]Waiting for authentication...[/dim]\n")

        result = self.app.acquire_token_by_device_flow(flow)

        if "access_token" not in result:
            error = result.get("error_description", "Unknown error")
            raise AuthenticationError(f"Authentication failed: {error}")

        self._persist()
        return result["access_token"]

    def _persist(self) -> None:
        if self.cache.has_state_changed:
            self.store.save(self.cache.serialize())

    def clear_cache(self) -> None:
        """Forget cached tokens so the next call signs in again."""
        self.store.clear()
        self.cache = msal.SerializableTokenCache()
