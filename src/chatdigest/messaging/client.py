"""aiohttp client for the RingCentral Team Messaging REST API."""

from __future__ import annotations

import base64
import logging
from typing import Any, Protocol

import aiohttp

from chatdigest.errors import UpstreamHTTPError
from chatdigest.messaging.models import Page

_LOG = logging.getLogger(__name__)

_REQUEST_TIMEOUT = 30  # seconds
_TOKEN_PATH = "/restapi/oauth/token"
_JWT_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class MessagingClient(Protocol):
    """What the fetch pipeline needs from the upstream API."""

    async def get_page(self, path: str, record_count: int, page_token: str | None = None) -> Page:
        ...

    async def get_person(self, person_id: str) -> dict[str, Any]:
        ...


class RingCentralClient:
    """Thin wrapper over an ``aiohttp.ClientSession`` with bearer auth.

    Non-2xx responses raise :class:`UpstreamHTTPError`; transport problems
    propagate as ``aiohttp.ClientError`` / ``asyncio.TimeoutError``.
    """

    def __init__(
        self,
        server: str,
        client_id: str,
        client_secret: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float = _REQUEST_TIMEOUT,
    ) -> None:
        self.server = server.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._access_token: str | None = None

    async def __aenter__(self) -> "RingCentralClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    @property
    def logged_in(self) -> bool:
        return self._access_token is not None

    async def login(self, jwt: str) -> None:
        """Exchange a JWT credential for an access token."""
        basic = base64.b64encode(f"{self._client_id}:{self._client_secret}".encode()).decode()
        headers = {
            "Authorization": f"Basic {basic}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        session = self._get_session()
        async with session.post(
            self.server + _TOKEN_PATH,
            data={"grant_type": _JWT_GRANT, "assertion": jwt},
            headers=headers,
        ) as resp:
            if resp.status >= 400:
                body = await resp.text()
                raise UpstreamHTTPError(resp.status, "POST", _TOKEN_PATH, body[:200])
            payload = await resp.json()
        self._access_token = payload["access_token"]
        _LOG.info("RingCentral login successful")

    async def request_json(self, method: str, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = {"Accept": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        session = self._get_session()
        _LOG.debug("API request %s %s params=%s", method, path, params)
        async with session.request(method, self.server + path, params=params, headers=headers) as resp:
            if resp.status >= 400:
                body = await resp.text()
                _LOG.debug("API response %s %s -> %s", method, path, resp.status)
                raise UpstreamHTTPError(resp.status, method, path, body[:200])
            return await resp.json()

    async def get_page(self, path: str, record_count: int, page_token: str | None = None) -> Page:
        params: dict[str, Any] = {"recordCount": record_count}
        if page_token:
            params["pageToken"] = page_token
        payload = await self.request_json("GET", path, params)
        return Page.from_json(payload)

    async def get_person(self, person_id: str) -> dict[str, Any]:
        return await self.request_json("GET", f"/restapi/v1.0/glip/persons/{person_id}")

    async def get_current_extension(self) -> dict[str, Any]:
        return await self.request_json("GET", "/restapi/v1.0/account/~/extension/~")
