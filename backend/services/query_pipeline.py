"""Record query pipeline: debounced, stale-safe disease search."""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Set, Tuple

from models.disease import DiseaseRecord, QueryCriteria, SortKey
from services.debounce import Debouncer
from services.retry import RetryExhaustedError, RetryPolicy, retry_async

logger = logging.getLogger(__name__)

FETCH_ERROR_MESSAGE = "Failed to fetch diseases. Please try again later."


class RecordSource(Protocol):
    """The record-store operation the pipeline consumes."""

    async def query(
        self,
        name_substring: Optional[str],
        sort_key: SortKey,
        ascending: bool,
    ) -> List[DiseaseRecord]:
        ...


class QueryStatus(str, Enum):
    """Lifecycle of the current query."""
    LOADING = "loading"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class QuerySnapshot:
    """Immutable view of the pipeline handed to listeners."""
    criteria: QueryCriteria
    status: QueryStatus
    results: Tuple[DiseaseRecord, ...]
    error: Optional[str]

    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.LOADING


SnapshotListener = Callable[[QuerySnapshot], None]


class RecordQueryPipeline:
    """
    Keeps the displayed disease list in sync with the user's search criteria.

    Criteria changes are debounced; once the input has been quiet for the
    debounce delay a single query is issued. Every issued query carries the
    generation number current at issue time, and its result is applied only if
    no criteria change happened since. On failure the previous results stay in
    place and the status switches to FAILED with a user-facing error.
    """

    def __init__(
        self,
        store: RecordSource,
        debounce_delay: float = 0.3,
        retry_policy: Optional[RetryPolicy] = None,
        criteria: Optional[QueryCriteria] = None,
    ):
        """
        Args:
            store: Record store client
            debounce_delay: Quiet period in seconds before a query is issued
            retry_policy: Retries for failed queries (defaults to a single attempt)
            criteria: Initial criteria (empty term, name ascending)
        """
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=1)
        self._criteria = criteria or QueryCriteria()
        self._status = QueryStatus.LOADING
        self._results: Tuple[DiseaseRecord, ...] = ()
        self._error: Optional[str] = None
        self._generation = 0
        self._inflight: Set[asyncio.Task] = set()
        self._listeners: List[SnapshotListener] = []
        self._started = False
        self._closed = False
        self._debouncer = Debouncer(
            debounce_delay,
            self._issue_query,
            on_cancel=lambda: logger.debug("Pending search superseded by newer criteria"),
        )

    @property
    def criteria(self) -> QueryCriteria:
        return self._criteria

    @property
    def status(self) -> QueryStatus:
        return self._status

    @property
    def results(self) -> Tuple[DiseaseRecord, ...]:
        return self._results

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._status is QueryStatus.LOADING

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def started(self) -> bool:
        return self._started

    def snapshot(self) -> QuerySnapshot:
        return QuerySnapshot(
            criteria=self._criteria,
            status=self._status,
            results=self._results,
            error=self._error,
        )

    def add_listener(self, listener: SnapshotListener) -> None:
        """Register a callback invoked with a snapshot after every state change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self) -> None:
        """Schedule the initial empty-term query. Later calls are no-ops."""
        if self._started or self._closed:
            return
        self._started = True
        self._status = QueryStatus.LOADING
        self._debouncer.trigger()
        self._notify()

    def set_criteria(
        self,
        search_term: Optional[str] = None,
        sort_key: Optional[SortKey] = None,
        ascending: Optional[bool] = None,
    ) -> None:
        """
        Update the criteria and restart the debounce timer.

        Any query already in flight becomes stale, even if the new criteria
        happen to equal the old ones.
        """
        if self._closed:
            return
        self._criteria = self._criteria.with_changes(
            search_term=search_term, sort_key=sort_key, ascending=ascending,
        )
        self._started = True
        self._generation += 1
        self._debouncer.trigger()
        self._notify()

    def retry(self) -> None:
        """Re-issue the query for the current criteria immediately."""
        if self._closed:
            return
        self._debouncer.cancel()
        self._generation += 1
        self._issue_query()

    def dismiss_error(self) -> None:
        """Hide the error banner without touching results or status."""
        if self._error is None:
            return
        self._error = None
        self._notify()

    def close(self) -> None:
        """Stop scheduling queries and ignore anything still in flight."""
        self._closed = True
        self._debouncer.cancel()
        self._generation += 1
        self._listeners.clear()

    async def settle(self) -> None:
        """Wait until no timer is pending and no query is in flight."""
        while self._debouncer.pending or self._inflight:
            await self._debouncer.wait()
            if self._inflight:
                await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _issue_query(self) -> None:
        if self._closed:
            return
        criteria = self._criteria
        token = self._generation
        self._status = QueryStatus.LOADING
        self._error = None
        self._notify()

        logger.debug(f"Issuing search #{token}: {criteria}")
        task = asyncio.ensure_future(self._run_query(criteria, token))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_query(self, criteria: QueryCriteria, token: int) -> None:
        try:
            records = await retry_async(
                lambda: self.store.query(
                    criteria.search_term or None,
                    criteria.sort_key,
                    criteria.ascending,
                ),
                self.retry_policy,
                description="Disease search",
            )
        except RetryExhaustedError as e:
            if token != self._generation:
                logger.debug(f"Discarding stale failure of search #{token}")
                return
            logger.error(f"Error fetching diseases: {e.last_error}")
            self._status = QueryStatus.FAILED
            self._error = FETCH_ERROR_MESSAGE
        else:
            if token != self._generation:
                logger.debug(
                    f"Discarding stale result of search #{token} "
                    f"(current is #{self._generation})"
                )
                return
            self._results = tuple(records)
            self._status = QueryStatus.SUCCESS
            self._error = None
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
