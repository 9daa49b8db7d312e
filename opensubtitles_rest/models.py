"""
Wire models for the OpenSubtitles REST API.

Only the fields this client needs are typed; search hits stay raw dicts.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .envelope import Outcome


@dataclass
class Credential:
    """Session returned by a successful login"""
    token: str
    base_url: Optional[str] = None  # Per-user API host, e.g. 'vip-api.opensubtitles.com'
    user: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return bool(self.token)

    def invalidate(self):
        self.token = ''

    def __repr__(self):
        return f"<Credential base_url={self.base_url!r} valid={self.is_valid}>"

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> 'Credential':
        token = payload['token']
        if not token or not isinstance(token, str):
            raise ValueError("Login response contains no token")
        return cls(token=token, base_url=payload.get('base_url') or None, user=payload.get('user') or {})


@dataclass
class UserInfo:
    user_id: Optional[int] = None
    level: Optional[str] = None
    allowed_downloads: Optional[int] = None
    allowed_translations: Optional[int] = None
    remaining_downloads: Optional[int] = None
    downloads_count: Optional[int] = None
    vip: bool = False
    ext_installed: bool = False

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> 'UserInfo':
        data = payload['data']
        if not isinstance(data, dict):
            raise TypeError(f"Expected user info object, got {type(data).__name__}")
        return cls(
            user_id=data.get('user_id'),
            level=data.get('level'),
            allowed_downloads=data.get('allowed_downloads'),
            allowed_translations=data.get('allowed_translations'),
            remaining_downloads=data.get('remaining_downloads'),
            downloads_count=data.get('downloads_count'),
            vip=bool(data.get('vip', False)),
            ext_installed=bool(data.get('ext_installed', False)),
        )


@dataclass
class SubtitleDownloadInfo:
    link: str
    file_name: Optional[str] = None
    requests: Optional[int] = None
    remaining: Optional[int] = None
    message: Optional[str] = None
    reset_time: Optional[str] = None
    reset_time_utc: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> 'SubtitleDownloadInfo':
        return cls(
            link=payload['link'],
            file_name=payload.get('file_name'),
            requests=payload.get('requests'),
            remaining=payload.get('remaining'),
            message=payload.get('message'),
            reset_time=payload.get('reset_time'),
            reset_time_utc=payload.get('reset_time_utc'),
        )


@dataclass
class Language:
    language_code: str
    language_name: str

    @staticmethod
    def list_from_json(payload: Dict[str, Any]) -> List['Language']:
        return [Language(language_code=item['language_code'], language_name=item['language_name'])
                for item in payload['data']]


@dataclass
class SearchPage:
    """One page of ``GET /subtitles``"""
    records: List[Dict[str, Any]]
    page: int
    total_pages: int
    total_count: int = 0
    per_page: int = 0

    @classmethod
    def empty(cls) -> 'SearchPage':
        return cls(records=[], page=0, total_pages=0)

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> 'SearchPage':
        records = payload['data']
        if not isinstance(records, list):
            raise TypeError(f"Expected a list of results, got {type(records).__name__}")
        return cls(
            records=records,
            page=int(payload['page']),
            total_pages=int(payload['total_pages']),
            total_count=int(payload.get('total_count') or 0),
            per_page=int(payload.get('per_page') or 0),
        )


@dataclass
class AggregatedSearchResult:
    """Every record gathered by a search, and the outcome that ended it"""
    records: List[Dict[str, Any]]
    final_outcome: Outcome[None]
    pages_fetched: int = 0
    stop_reason: Optional[str] = None

    @property
    def complete(self) -> bool:
        """True when pagination ended normally rather than on a failure"""
        return self.final_outcome.ok
