"""
HTTP transport used by the OpenSubtitles client.

The client only depends on :class:`HttpTransport`; tests substitute their own
implementation. :class:`RequestsTransport` is the default one.
"""
import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import requests

from .errors import OpenSubtitlesError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class TransportFailure(OpenSubtitlesError):
    """The request produced no HTTP status at all (network error, timeout, cancellation)."""

    def __init__(self, message, cancelled=False):
        super().__init__(message)
        self.cancelled = cancelled


class CancellationToken:
    """
    Cooperative cancellation signal shared between a caller and one operation.

    Usage:
        token = CancellationToken()
        task = asyncio.create_task(client.search_subtitles(options, cancel=token))
        token.cancel()
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        await self._event.wait()


@dataclass(frozen=True)
class RawResponse:
    """Status, headers and undecoded body of one HTTP exchange"""
    status_code: int
    body: bytes = b''
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')


class HttpTransport(ABC):
    """Performs exactly one HTTP request per ``send`` call."""

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[bytes] = None,
        cancel: Optional[CancellationToken] = None
    ) -> RawResponse:
        """
        Send one request.

        Args:
            method: HTTP method ('GET', 'POST', 'DELETE', ...)
            url: Absolute URL including the query string
            headers: Request headers
            body: Encoded request body
            cancel: Token that aborts the request when triggered

        Returns:
            RawResponse for any HTTP status, including 4xx/5xx

        Raises:
            TransportFailure: If no response was received or the token was triggered
        """
        pass


class RequestsTransport(HttpTransport):
    """
    Transport backed by ``requests`` running in a worker thread.

    Every request gets its own session, so aborting one by closing its
    session never touches another request. The body is streamed and the
    worker stops reading at the next chunk once the request is aborted.
    """

    def __init__(self, timeout=15, session_factory=requests.Session):
        self.timeout = timeout
        self.session_factory = session_factory

    def _send_sync(self, session, method, url, headers, body, aborted):
        try:
            if aborted.is_set():
                raise TransportFailure("Request cancelled", cancelled=True)
            response = session.request(method, url, headers=headers, data=body,
                                       timeout=self.timeout, stream=True)
            try:
                chunks = []
                for chunk in response.iter_content(CHUNK_SIZE):
                    if aborted.is_set():
                        raise TransportFailure("Request cancelled", cancelled=True)
                    chunks.append(chunk)
                return RawResponse(status_code=response.status_code,
                                   body=b''.join(chunks),
                                   headers=dict(response.headers))
            finally:
                response.close()
        except requests.exceptions.RequestException as e:
            if aborted.is_set():
                raise TransportFailure("Request cancelled", cancelled=True) from e
            raise TransportFailure(f"Request failed: {e}") from e
        finally:
            session.close()

    @staticmethod
    def _abort(session, aborted, request):
        aborted.set()
        request.cancel()
        session.close()

    async def send(self, method, url, headers=None, body=None, cancel=None):
        if cancel is not None and cancel.cancelled:
            raise TransportFailure("Request cancelled", cancelled=True)

        session = self.session_factory()
        aborted = threading.Event()
        request = asyncio.ensure_future(
            asyncio.to_thread(self._send_sync, session, method, url, headers, body, aborted))
        pending = {request}
        waiter = None
        if cancel is not None:
            waiter = asyncio.ensure_future(cancel.wait())
            pending.add(waiter)

        try:
            await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self._abort(session, aborted, request)
            raise
        finally:
            if waiter is not None:
                waiter.cancel()

        if request.done():
            return request.result()

        self._abort(session, aborted, request)
        logger.debug(f"{method} {url} cancelled while in flight")
        raise TransportFailure("Request cancelled", cancelled=True)
