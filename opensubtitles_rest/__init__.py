"""Async client for the OpenSubtitles.com REST API"""
from .client import OpenSubtitlesClient
from .envelope import Outcome, OutcomeKind, RequestContext, classify
from .errors import InvalidCredentialError, MissingApiKeyError, OpenSubtitlesError
from .models import AggregatedSearchResult, Credential, Language, SearchPage, SubtitleDownloadInfo, UserInfo
from .pagination import PaginationState, SearchPaginator, StopReason
from .query import add_query_string, build_query_string, normalize_options
from .transport import CancellationToken, HttpTransport, RawResponse, RequestsTransport, TransportFailure

__version__ = '1.0.0'
