"""Encrypted OAuth token storage and access-token refresh for Google."""

import asyncio
import json
import logging
from typing import Any, Optional

import httpx
from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, ValidationError

from ..store.database import EventStore
from ..utils.timeutils import now_ms
from .exceptions import NoCredential, RefreshFailed

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
PROVIDER = "google"
REFRESH_MARGIN_MS = 60_000


class TokenSet(BaseModel):
    """OAuth token set as persisted (encrypted) in the store."""

    access_token: str
    refresh_token: Optional[str] = None
    expiry_ms: Optional[int] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None

    def expires_within(self, margin_ms: int) -> bool:
        if self.expiry_ms is None:
            return False
        return self.expiry_ms - now_ms() <= margin_ms


class CredentialVault:
    """Keeps the Google token set encrypted at rest and refreshes it on demand."""

    def __init__(
        self,
        store: EventStore,
        settings: Any,
        client: Optional[httpx.AsyncClient] = None,
        token_url: str = GOOGLE_TOKEN_URL,
    ):
        self.store = store
        self.settings = settings
        self.client = client
        self.token_url = token_url
        self._refresh_lock = asyncio.Lock()

    def _fernet(self) -> Fernet:
        key = self.settings.token_encryption_key
        if not key:
            raise NoCredential("Token encryption key is not configured")
        try:
            return Fernet(key.encode("utf-8") if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            raise NoCredential(f"Invalid token encryption key: {e}") from e

    def encrypt(self, token_set: TokenSet) -> str:
        payload = token_set.model_dump_json(exclude_none=True)
        return self._fernet().encrypt(payload.encode("utf-8")).decode("ascii")

    def decrypt(self, payload_encrypted: str) -> TokenSet:
        try:
            raw = self._fernet().decrypt(payload_encrypted.encode("ascii"))
            return TokenSet.model_validate_json(raw)
        except InvalidToken as e:
            raise NoCredential("Stored token could not be decrypted with the configured key") from e
        except ValidationError as e:
            raise NoCredential(f"Stored token payload is invalid: {e}") from e

    async def load_token_set(self) -> TokenSet:
        """Return the stored token set.

        Raises:
            NoCredential: Nothing stored, or the payload is unreadable
        """
        record = await self.store.get_token_record(PROVIDER)
        if record is None:
            raise NoCredential("No Google token stored; run authorization first")
        return self.decrypt(record.payload_encrypted)

    async def save_token_set(self, token_set: TokenSet) -> None:
        await self.store.save_token_record(PROVIDER, self.encrypt(token_set))
        logger.debug("Saved Google token set")

    async def get_valid_access_token(self) -> str:
        """Access token valid for at least another minute, refreshing if needed."""
        token_set = await self.load_token_set()
        if not token_set.expires_within(REFRESH_MARGIN_MS):
            return token_set.access_token

        async with self._refresh_lock:
            token_set = await self.load_token_set()
            if not token_set.expires_within(REFRESH_MARGIN_MS):
                return token_set.access_token
            token_set = await self.refresh_access_token(token_set)
        return token_set.access_token

    async def refresh_access_token(self, token_set: TokenSet) -> TokenSet:
        """Exchange the refresh token and persist the new token set.

        The refresh token is kept when the endpoint does not issue a new one.

        Raises:
            NoCredential: No refresh token or client credentials
            RefreshFailed: Token endpoint rejected the request or was unreachable
        """
        if not token_set.refresh_token:
            raise NoCredential("Google token has no refresh token; re-authorize")
        if not self.settings.google_client_id or not self.settings.google_client_secret:
            raise NoCredential("Google client id/secret are not configured")

        data = {
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "refresh_token": token_set.refresh_token,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing Google access token")
        try:
            if self.client is not None:
                response = await self.client.post(
                    self.token_url, data=data, headers={"Accept": "application/json"}
                )
            else:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self.settings.request_timeout)
                ) as client:
                    response = await client.post(
                        self.token_url, data=data, headers={"Accept": "application/json"}
                    )
        except httpx.HTTPError as e:
            raise RefreshFailed(f"Token refresh request failed: {e}") from e

        if not response.is_success:
            raise RefreshFailed(
                f"Token refresh failed with HTTP {response.status_code}",
                response.status_code,
            )

        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            raise RefreshFailed("Token endpoint returned invalid JSON", response.status_code) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise RefreshFailed("Token response has no access_token", response.status_code)

        expires_in = payload.get("expires_in")
        refreshed = TokenSet(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or token_set.refresh_token,
            expiry_ms=now_ms() + int(expires_in) * 1000 if expires_in else None,
            token_type=payload.get("token_type") or token_set.token_type,
            scope=payload.get("scope") or token_set.scope,
        )
        await self.save_token_set(refreshed)
        return refreshed
