"""
OpenSubtitles.com REST API client.

API Documentation: https://opensubtitles.stoplight.io/docs/opensubtitles-api
"""
import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .envelope import Outcome, RequestContext, classify
from .errors import InvalidCredentialError, MissingApiKeyError, OpenSubtitlesError
from .models import (AggregatedSearchResult, Credential, Language, SearchPage, SubtitleDownloadInfo,
                     UserInfo)
from .pagination import PaginationState, SearchPaginator
from .query import add_query_string, normalize_options
from .transport import CancellationToken, HttpTransport, RequestsTransport, TransportFailure

logger = logging.getLogger(__name__)

# Global base URL for non-authenticated or initial calls like login
GLOBAL_OS_BASE_URL = "https://api.opensubtitles.com/api/v1"
USER_AGENT = "OpenSubtitlesRest v1.0.0"  # As required by OpenSubtitles API

SECRET_BODY_FIELDS = {'password'}


def _redact_body(body):
    if not isinstance(body, dict):
        return body
    return {key: ('***' if key in SECRET_BODY_FIELDS else value) for key, value in body.items()}


def _require_credential(credential: Optional[Credential], operation: str):
    if credential is None or not credential.token:
        logger.error(f"OpenSubtitles {operation}: a logged-in credential is required.")
        raise InvalidCredentialError(f"A non-empty token is required for {operation}.")


class OpenSubtitlesClient:
    """
    Async client for the OpenSubtitles REST API.

    Every operation returns an ``Outcome`` (or an ``AggregatedSearchResult``
    for searches); remote failures never raise. Only caller mistakes raise:
    a missing API key or an empty credential.

    Usage:
        client = OpenSubtitlesClient.from_config()
        login = await client.login('user', 'secret')
        if login.ok:
            result = await client.search_subtitles({'imdb_id': 'tt0111161', 'languages': 'en'})
            await client.logout(login.data)
    """

    def __init__(self, api_key: Optional[str], transport: Optional[HttpTransport] = None,
                 base_url: str = GLOBAL_OS_BASE_URL, user_agent: str = USER_AGENT, timeout: float = 15):
        self.api_key = api_key
        self.transport = transport or RequestsTransport(timeout=timeout)
        self.base_url = base_url.rstrip('/')
        self.user_agent = user_agent

    @classmethod
    def from_config(cls, config=None, transport: Optional[HttpTransport] = None) -> 'OpenSubtitlesClient':
        if config is None:
            from .config import get_config
            config = get_config()
        return cls(api_key=config.OPENSUBTITLES_API_KEY,
                   transport=transport,
                   base_url=config.OPENSUBTITLES_BASE_URL,
                   user_agent=config.OPENSUBTITLES_USER_AGENT,
                   timeout=config.OPENSUBTITLES_TIMEOUT)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        close = getattr(self.transport, 'close', None)
        if close:
            close()

    def _get_api_key(self) -> str:
        if not self.api_key:
            logger.error("OpenSubtitles API key is not configured.")
            raise MissingApiKeyError("OpenSubtitles API key is missing in configuration.")
        return self.api_key

    def _api_url(self, path: str, credential: Optional[Credential] = None) -> str:
        """Resolve an endpoint path, using the user's own API host when login returned one"""
        if credential is not None and credential.base_url:
            host = credential.base_url.rstrip('/')
            if not host.startswith(('http://', 'https://')):
                host = f"https://{host}/api/v1"
            return f"{host}{path}"
        return f"{self.base_url}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        parse: Optional[Callable[[Any], Any]] = None,
        empty: Optional[Callable[[], Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        credential: Optional[Credential] = None,
        description: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
        url: Optional[str] = None,
        with_api_key: bool = True,
        as_json: bool = True
    ) -> Outcome:
        headers = {'User-Agent': self.user_agent}
        if with_api_key:
            headers['Api-Key'] = self._get_api_key()
            headers['Accept'] = 'application/json'
        if credential is not None:
            # OpenSubtitles expects the raw token here, without a 'Bearer ' prefix
            headers['Authorization'] = credential.token

        encoded_body = None
        if body is not None:
            headers['Content-Type'] = 'application/json'
            encoded_body = json.dumps(body).encode('utf-8')

        target = url or self._api_url(path, credential)
        context = RequestContext(endpoint=path, method=method, body=_redact_body(body),
                                 headers=dict(headers), description=description)

        if cancel is not None and cancel.cancelled:
            return Outcome.transport_error(TransportFailure("Request cancelled", cancelled=True), context)

        try:
            raw = await self.transport.send(method, target, headers=headers, body=encoded_body, cancel=cancel)
        except TransportFailure as e:
            return Outcome.transport_error(e, context)

        return classify(raw, context, parse, empty=empty, as_json=as_json)

    # Session operations

    async def login(self, username: str, password: str,
                    cancel: Optional[CancellationToken] = None) -> Outcome[Credential]:
        """
        Logs in to OpenSubtitles.

        Args:
            username: OpenSubtitles username
            password: OpenSubtitles password
            cancel: Optional cancellation token

        Returns:
            Outcome whose data is the session Credential (token and per-user base_url)

        Raises:
            MissingApiKeyError: If no API key is configured
        """
        logger.info(f"Attempting OpenSubtitles login for user: {username}")
        outcome = await self._request('POST', '/login', parse=Credential.from_json,
                                      body={'username': username, 'password': password}, cancel=cancel)
        if outcome.ok and outcome.data is not None:
            logger.info(f"OpenSubtitles login successful for user: {username}. Base URL: {outcome.data.base_url}")
        return outcome

    async def logout(self, credential: Credential,
                     cancel: Optional[CancellationToken] = None) -> Outcome[None]:
        """
        Logs out and destroys the token server side. The credential is invalidated on success.

        Raises:
            InvalidCredentialError: If the credential has no token. No request is made.
        """
        _require_credential(credential, 'logout')
        logger.info("Attempting OpenSubtitles logout.")
        outcome = await self._request('DELETE', '/logout', parse=lambda payload: None,
                                      credential=credential, cancel=cancel)
        if outcome.ok:
            credential.invalidate()
            logger.info("OpenSubtitles logout successful.")
        return outcome

    async def get_user_info(self, credential: Credential,
                            cancel: Optional[CancellationToken] = None) -> Outcome[UserInfo]:
        """Quota and level of the logged-in user"""
        _require_credential(credential, 'user info')
        return await self._request('GET', '/infos/user', parse=UserInfo.from_json,
                                   credential=credential, cancel=cancel)

    # Search

    async def search_subtitles(self, options: Mapping[str, Any],
                               cancel: Optional[CancellationToken] = None) -> AggregatedSearchResult:
        """
        Searches for subtitles, following every result page.

        Pages are fetched one after another and never retried. The walk stops on
        the first non-OK outcome, when the search has no results, when the server
        repeats the page it was asked for, or after the last page.

        Args:
            options: Search parameters, e.g. {'imdb_id': 'tt0111161', 'languages': 'en,fr',
                'season_number': 1, 'episode_number': 2, 'type': 'episode'}
            cancel: Optional cancellation token, checked before every page

        Returns:
            AggregatedSearchResult with all records in page order; inspect
            ``final_outcome`` to tell a complete walk from a partial one
        """
        paginator = SearchPaginator(normalize_options(options))
        logger.info(f"Searching OpenSubtitles with params: {paginator.options}")

        while paginator.state is PaginationState.FETCHING:
            page_options = paginator.options
            outcome = await self._request('GET', add_query_string('/subtitles', page_options),
                                          parse=SearchPage.from_json, empty=SearchPage.empty,
                                          description=f"page: {paginator.current_page}", cancel=cancel)
            paginator.advance(outcome)
            if outcome.ok:
                logger.debug(f"OpenSubtitles search page {outcome.data.page}/{outcome.data.total_pages}: "
                             f"{len(outcome.data.records)} results")

        result = paginator.result()
        logger.info(f"OpenSubtitles search finished ({result.stop_reason}) with {len(result.records)} results "
                    f"over {result.pages_fetched} page(s)")
        return result

    # Auxiliary lookups

    async def get_language_list(self, cancel: Optional[CancellationToken] = None) -> Outcome[List[Language]]:
        return await self._request('GET', '/infos/languages', parse=Language.list_from_json,
                                   empty=list, cancel=cancel)

    async def get_subtitle_link(self, file_id: int, credential: Credential,
                                cancel: Optional[CancellationToken] = None) -> Outcome[SubtitleDownloadInfo]:
        """
        Requests a download link for a specific subtitle file_id. Counts against the user's quota.

        Raises:
            InvalidCredentialError: If the credential has no token
        """
        if not file_id:
            raise OpenSubtitlesError("file_id is required for download request.")
        _require_credential(credential, 'download request')
        logger.info(f"Requesting OpenSubtitles download link for file_id: {file_id}")
        return await self._request('POST', '/download', parse=SubtitleDownloadInfo.from_json,
                                   body={'file_id': file_id}, credential=credential,
                                   description=f"file id: {file_id}", cancel=cancel)

    async def download_subtitle(self, url: str, cancel: Optional[CancellationToken] = None) -> Outcome[bytes]:
        """Fetch the subtitle file behind a link returned by ``get_subtitle_link``"""
        return await self._request('GET', url, url=url, with_api_key=False, as_json=False,
                                   empty=bytes, cancel=cancel)
