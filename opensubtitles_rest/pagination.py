"""Page walker for the OpenSubtitles search endpoint"""
import logging
from enum import Enum
from typing import Dict, Optional

from .envelope import Outcome
from .models import AggregatedSearchResult, SearchPage

logger = logging.getLogger(__name__)


class PaginationState(str, Enum):
    FETCHING = 'fetching'
    STOPPED = 'stopped'
    COMPLETED = 'completed'


class StopReason(str, Enum):
    FAILED = 'failed'
    CANCELLED = 'cancelled'
    NO_RESULTS = 'no_results'
    # Upstream answered with the page number it was already asked for. Kept as a
    # successful stop; a server that legitimately repeats page numbers would be cut short here.
    STALLED = 'stalled'


class SearchPaginator:
    """
    State machine driving one paginated search.

    The caller requests ``options`` while ``state`` is FETCHING and feeds each
    outcome to ``advance``. Pages are strictly sequential: the next page number
    comes from the page the server says it returned.

    Usage:
        paginator = SearchPaginator(normalize_options(options))
        while paginator.state is PaginationState.FETCHING:
            paginator.advance(await fetch(paginator.options))
        result = paginator.result()
    """

    def __init__(self, options: Dict[str, str]):
        self._base_options = dict(options)
        self.state = PaginationState.FETCHING
        self.stop_reason: Optional[StopReason] = None
        self.current_page = 1
        self.max_page: Optional[int] = None
        self.records = []
        self.pages_fetched = 0
        self.last_outcome: Optional[Outcome[SearchPage]] = None

    @property
    def options(self) -> Dict[str, str]:
        """Options for the next request, with ``page`` set past the first page"""
        options = dict(self._base_options)
        if self.current_page > 1:
            options['page'] = str(self.current_page)
        return options

    def _stop(self, reason: StopReason) -> PaginationState:
        self.state = PaginationState.STOPPED
        self.stop_reason = reason
        logger.debug(f"Search pagination stopped at page {self.current_page}: {reason.value}")
        return self.state

    def advance(self, outcome: Outcome[SearchPage]) -> PaginationState:
        if self.state is not PaginationState.FETCHING:
            raise RuntimeError(f"Cannot advance a paginator in state {self.state.value}")

        self.last_outcome = outcome
        if not outcome.ok:
            return self._stop(StopReason.CANCELLED if outcome.cancelled else StopReason.FAILED)

        page = outcome.data
        if page is None or page.total_pages == 0:
            return self._stop(StopReason.NO_RESULTS)

        self.pages_fetched += 1
        if self.max_page is None:
            self.max_page = page.total_pages

        next_page = page.page + 1
        self.records.extend(page.records)
        if next_page == self.current_page:
            return self._stop(StopReason.STALLED)

        self.current_page = next_page
        if self.current_page > self.max_page:
            self.state = PaginationState.COMPLETED
        return self.state

    def result(self) -> AggregatedSearchResult:
        if self.state is PaginationState.FETCHING or self.last_outcome is None:
            raise RuntimeError("Search pagination has not finished")
        reason = self.stop_reason.value if self.stop_reason else PaginationState.COMPLETED.value
        return AggregatedSearchResult(records=list(self.records),
                                      final_outcome=self.last_outcome.without_data(),
                                      pages_fetched=self.pages_fetched,
                                      stop_reason=reason)
