"""
Response envelope: turns one HTTP exchange into an ``Outcome``.

Every API call ends here. ``classify`` is the only place that interprets
status codes and bodies; callers inspect ``Outcome.kind`` instead of catching
exceptions.
"""
import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from .transport import RawResponse, TransportFailure

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Status reported for 2xx responses whose body cannot be decoded
PARSE_FAILURE_STATUS = 502

REDACTED_HEADERS = {'authorization', 'api-key'}
MAX_DETAILS_LENGTH = 500


class OutcomeKind(str, Enum):
    OK = 'ok'
    VALIDATION_ERROR = 'validation_error'
    UNAUTHORIZED = 'unauthorized'
    RATE_LIMITED = 'rate_limited'
    NOT_FOUND = 'not_found'
    SERVER_ERROR = 'server_error'
    TRANSPORT_ERROR = 'transport_error'


@dataclass(frozen=True)
class RequestContext:
    """
    What was asked for, kept for diagnostics.

    ``attempt`` stays 1: the client never retries, so every context describes
    the first and only attempt. It is kept so log lines read the same
    as those of retrying clients.
    """
    endpoint: str
    method: str
    body: Optional[Any] = None
    headers: Dict[str, str] = field(default_factory=dict)
    attempt: int = 1
    description: Optional[str] = None

    def describe(self) -> str:
        headers = {name: ('***' if name.lower() in REDACTED_HEADERS else value)
                   for name, value in self.headers.items()}
        text = f"{self.method} {self.endpoint} (attempt {self.attempt})"
        if self.description:
            text += f" [{self.description}]"
        if headers:
            text += f" headers={headers}"
        return text


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one API operation; ``kind`` selects which fields are meaningful."""
    kind: OutcomeKind
    context: RequestContext
    data: Optional[T] = None
    is_empty: bool = False
    status: Optional[int] = None
    details: Optional[str] = None
    cause: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.OK

    @property
    def cancelled(self) -> bool:
        return (self.kind is OutcomeKind.TRANSPORT_ERROR
                and isinstance(self.cause, TransportFailure)
                and self.cause.cancelled)

    def without_data(self) -> 'Outcome[None]':
        return replace(self, data=None)

    @classmethod
    def success(cls, data, context, status=200):
        return cls(OutcomeKind.OK, context, data=data, status=status)

    @classmethod
    def empty(cls, data, context, status=200):
        return cls(OutcomeKind.OK, context, data=data, is_empty=True, status=status)

    @classmethod
    def transport_error(cls, cause: BaseException, context: RequestContext) -> 'Outcome':
        outcome = cls(OutcomeKind.TRANSPORT_ERROR, context, details=str(cause), cause=cause)
        _log_failure(outcome)
        return outcome

    def __str__(self):
        if self.ok:
            return f"{self.kind.value}{' (empty)' if self.is_empty else ''}"
        text = self.kind.value
        if self.status is not None:
            text += f" {self.status}"
        if self.details:
            text += f": {self.details}"
        return text


def _log_failure(outcome: Outcome):
    logger.warning(f"OpenSubtitles API {outcome.kind.value} for {outcome.context.describe()}: "
                   f"status={outcome.status} details={outcome.details}")


def kind_for_status(status_code: int) -> OutcomeKind:
    if 200 <= status_code < 300:
        return OutcomeKind.OK
    if status_code in (400, 422):
        return OutcomeKind.VALIDATION_ERROR
    if status_code in (401, 403):
        return OutcomeKind.UNAUTHORIZED
    if status_code == 404:
        return OutcomeKind.NOT_FOUND
    if status_code == 429:
        return OutcomeKind.RATE_LIMITED
    return OutcomeKind.SERVER_ERROR


def extract_error_message(raw: RawResponse) -> str:
    """
    Pull a human readable message out of an error response.

    OpenSubtitles answers with JSON ``{"message": ...}`` or ``{"errors": [...]}``;
    its Varnish front end answers some 403s with an HTML page instead.
    """
    text = raw.text.strip()
    try:
        error_data = json.loads(text)
    except ValueError:
        error_data = None

    if isinstance(error_data, dict):
        if error_data.get('message'):
            return str(error_data['message'])
        errors = error_data.get('errors')
        if isinstance(errors, list) and errors:
            return '; '.join(str(e) for e in errors)
        if errors:
            return str(errors)

    start_marker = "<h1>Error "
    end_marker = "</h1>"
    start_index = text.find(start_marker)
    if start_index != -1:
        start_index += len(start_marker)
        end_index = text.find(end_marker, start_index)
        if end_index != -1:
            return text[start_index:end_index].strip()

    return text[:MAX_DETAILS_LENGTH]


def is_empty_payload(payload) -> bool:
    if payload is None or payload == {} or payload == []:
        return True
    if isinstance(payload, dict) and 'data' in payload:
        return payload['data'] in (None, [], {})
    return False


def classify(
    raw: RawResponse,
    context: RequestContext,
    parse: Optional[Callable[[Any], T]] = None,
    *,
    empty: Optional[Callable[[], T]] = None,
    as_json: bool = True
) -> Outcome[T]:
    """
    Classify an HTTP response into exactly one Outcome.

    Args:
        raw: Response returned by the transport
        context: The request that produced it
        parse: Turns the decoded payload into the typed result. Raising
            ValueError, KeyError, TypeError or AttributeError marks the body
            as unparseable.
        empty: Factory for the result used when the body is a recognized
            "no data" shape
        as_json: Decode the body as JSON before calling ``parse``; when False
            ``parse`` receives the raw bytes

    Returns:
        Outcome carrying ``context`` whatever the kind
    """
    kind = kind_for_status(raw.status_code)
    if kind is not OutcomeKind.OK:
        outcome = Outcome(kind, context, status=raw.status_code, details=extract_error_message(raw))
        _log_failure(outcome)
        return outcome

    try:
        if as_json:
            payload = json.loads(raw.body) if raw.body.strip() else None
        else:
            payload = raw.body

        if (as_json and is_empty_payload(payload)) or (not as_json and not payload):
            return Outcome.empty(empty() if empty else None, context, status=raw.status_code)

        data = parse(payload) if parse else payload
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        outcome = Outcome(OutcomeKind.SERVER_ERROR, context, status=PARSE_FAILURE_STATUS,
                          details=f"Failed to decode API response (HTTP {raw.status_code}): {e}", cause=e)
        _log_failure(outcome)
        return outcome

    return Outcome.success(data, context, status=raw.status_code)
