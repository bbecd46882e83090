"""Cancellable HTTP transport used by the transfer client."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from .exceptions import NetworkError, TransferTimeoutError
from .models import Buffer

logger = logging.getLogger(__name__)


@dataclass
class FilePart:
    """Binary part of a multipart body."""

    name: str
    data: Buffer = field(repr=False)
    filename: str
    content_type: str = "application/octet-stream"


@dataclass
class TransportRequest:
    """One outbound HTTP request.

    ``fields`` and ``files`` produce a multipart body; ``json_body`` a JSON
    one. A request carries either, not both.
    """

    url: str
    method: str = "POST"
    fields: List[Tuple[str, str]] = field(default_factory=list)
    files: List[FilePart] = field(default_factory=list)
    json_body: Optional[Dict[str, Any]] = None


@dataclass
class TransportResponse:
    """Fully read HTTP response."""

    status: int
    reason: str = ""
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


class CancellableTransport(ABC):
    """Send one request and abort it when its deadline passes.

    Implementations must:
      - Raise ``TransferTimeoutError`` once ``deadline_s`` elapses without a
        complete response, cancelling the in-flight request.
      - Raise ``NetworkError`` for connection and name resolution failures.
      - Return any received response, whatever its status code.
    """

    @abstractmethod
    async def send(self, request: TransportRequest, deadline_s: float) -> TransportResponse:
        ...

    async def close(self) -> None:
        """Release pooled connections."""

    async def __aenter__(self) -> "CancellableTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class AiohttpTransport(CancellableTransport):
    """``CancellableTransport`` backed by a shared ``aiohttp.ClientSession``."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        connection_limit: int = 50,
        user_agent: str = "chunkpipe",
    ) -> None:
        """Initialize the transport.

        Args:
            session: Existing session to reuse. The transport does not close
                sessions it did not create.
            connection_limit: Connection pool size for a session created here
            user_agent: User-Agent header for a session created here
        """
        self._session = session
        self._owns_session = session is None
        self.connection_limit = connection_limit
        self.user_agent = user_agent

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=self.connection_limit, ttl_dns_cache=300)
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": self.user_agent},
            )
            self._owns_session = True
        return self._session

    @staticmethod
    def _build_form(request: TransportRequest) -> aiohttp.FormData:
        form = aiohttp.FormData()
        for name, value in request.fields:
            form.add_field(name, value)
        for part in request.files:
            form.add_field(
                part.name, part.data, filename=part.filename, content_type=part.content_type
            )
        return form

    async def _perform(
        self, session: aiohttp.ClientSession, request: TransportRequest
    ) -> TransportResponse:
        kwargs: Dict[str, Any] = {}
        if request.json_body is not None:
            kwargs["json"] = request.json_body
        elif request.fields or request.files:
            kwargs["data"] = self._build_form(request)

        async with session.request(request.method, request.url, **kwargs) as resp:
            body = await resp.read()
            return TransportResponse(status=resp.status, reason=resp.reason or "", body=body)

    async def send(self, request: TransportRequest, deadline_s: float) -> TransportResponse:
        session = self._get_session()
        try:
            return await asyncio.wait_for(self._perform(session, request), timeout=deadline_s)
        except asyncio.TimeoutError as exc:
            logger.warning(f"{request.method} {request.url}: aborted after {deadline_s:.1f}s")
            raise TransferTimeoutError(int(deadline_s * 1000), request.url) from exc
        except aiohttp.ClientError as exc:
            raise NetworkError(f"{type(exc).__name__}: {exc}", request.url) from exc

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
