# -*- coding: utf-8 -*-

"""
Async lookup of candidate image hashes against the Imgur API:
  GET https://api.imgur.com/3/image/<hash>
  Authorization: Client-ID <client id>

Each lookup returns an explicit LookupResult:
- FOUND           : HTTP 200 with a JSON body that is not flagged success=false
- NOT_FOUND       : any other definitive answer (404, malformed/empty body, ...)
- TRANSPORT_ERROR : timeout / connection error / 429 / 5xx after all retries

Retry with exponential backoff + jitter for transient failures.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import enum
import json
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

DEFAULT_BASE_URL = "https://api.imgur.com/3/image"
RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


def now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


# ---------------------------
# Result model
# ---------------------------

class LookupStatus(str, enum.Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class LookupResult:
    candidate: str
    status: LookupStatus
    checked_at: str = ""
    http_status: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    attempts: int = 1

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


def interpret_response(http_status: int, text: str) -> Optional[Dict[str, Any]]:
    """Parsed payload for a positive answer, None otherwise."""
    if http_status != 200 or not text:
        return None
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    # Imgur envelope: {"data": {...}, "success": bool, "status": int}
    if payload.get("success") is False:
        return None
    return payload


# ---------------------------
# Imgur client
# ---------------------------

class ImgurClient:
    def __init__(
        self,
        client_id: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 20.0,
        max_attempts: int = 3,
        backoff_base_s: float = 0.8,
        backoff_jitter_s: float = 0.2,
        user_agent: str = "seed-scan/1.0",
        session: Optional[aiohttp.ClientSession] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not client_id:
            raise ValueError("client_id is empty")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.client_id = client_id
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_s)
        self.max_attempts = max_attempts
        self.backoff_base_s = backoff_base_s
        self.backoff_jitter_s = backoff_jitter_s
        self.headers = {
            "Authorization": f"Client-ID {client_id}",
            "Accept": "application/json",
            "User-Agent": user_agent,
        }
        self._session = session
        self._owns_session = False
        self.log = logger or logging.getLogger(__name__)

    async def __aenter__(self) -> "ImgurClient":
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def __call__(self, candidate: str) -> LookupResult:
        return await self.lookup(candidate)

    def url_for(self, candidate: str) -> str:
        return f"{self.base_url.rstrip('/')}/{candidate}"

    async def lookup(self, candidate: str) -> LookupResult:
        if self._session is None:
            raise RuntimeError("ImgurClient used outside 'async with'")

        url = self.url_for(candidate)
        checked_at = now_iso()
        last_err: Optional[str] = None
        last_status: Optional[int] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with self._session.get(url, headers=self.headers, timeout=self.timeout) as resp:
                    last_status = resp.status
                    text = await resp.text()

                if last_status in RETRYABLE_STATUSES:
                    last_err = f"HTTP {last_status}"
                else:
                    payload = interpret_response(last_status, text)
                    return LookupResult(
                        candidate=candidate,
                        status=LookupStatus.FOUND if payload is not None else LookupStatus.NOT_FOUND,
                        checked_at=checked_at,
                        http_status=last_status,
                        payload=payload,
                        attempts=attempt,
                    )

            except asyncio.TimeoutError:
                last_err = "timeout"
            except aiohttp.ClientError as e:
                last_err = f"aiohttp error: {type(e).__name__}: {e}"
            except Exception as e:
                last_err = f"unexpected error: {type(e).__name__}: {e}"

            if attempt < self.max_attempts:
                await self._sleep_backoff(attempt, candidate, last_err)

        return LookupResult(
            candidate=candidate,
            status=LookupStatus.TRANSPORT_ERROR,
            checked_at=checked_at,
            http_status=last_status,
            error=last_err,
            attempts=self.max_attempts,
        )

    async def _sleep_backoff(self, attempt: int, candidate: str, reason: Optional[str]) -> None:
        sleep_s = self.backoff_base_s * (2 ** (attempt - 1)) + random.uniform(0, self.backoff_jitter_s)
        self.log.warning("Retrying %s after backoff: attempt=%s sleep=%.2fs reason=%s",
                         candidate, attempt, sleep_s, reason)
        await asyncio.sleep(sleep_s)
