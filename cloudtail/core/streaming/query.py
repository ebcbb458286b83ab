from datetime import datetime
import logging
import threading
from typing import Callable, List, Optional, Sequence

from cloudtail.exceptions import (
    OperationCancelled,
    QueryError,
    QueryFailedError,
    QueryTimeoutError,
)
from cloudtail.types import SupportsQueries

from .events import QueryJob, QueryResult, QueryStatus, QueryStatusReport


logger = logging.getLogger(__name__)

#: ``hook(state, report, num_attempts, **kwargs)``
QueryHook = Callable[..., None]


class AbstractQueryHook:
    """
    Subclass this to do something on each iteration of a :py:class:`QueryPoller`.

    ``state`` is one of ``waiting``, ``success``, ``failure``, ``timeout``.  For
    ``timeout``, ``report`` is the last report we got.
    """

    def waiting(self, state: str, report: QueryStatusReport, num_attempts: int, **kwargs) -> None:
        pass

    def success(self, state: str, report: QueryStatusReport, num_attempts: int, **kwargs) -> None:
        pass

    def failure(self, state: str, report: QueryStatusReport, num_attempts: int, **kwargs) -> None:
        pass

    def timeout(self, state: str, report: QueryStatusReport, num_attempts: int, **kwargs) -> None:
        pass

    def __call__(self, state: str, report: QueryStatusReport, num_attempts: int, **kwargs) -> None:
        getattr(self, state)(state, report, num_attempts, **kwargs)


class QueryPoller:
    """
    Run a CloudWatch Logs Insights query and poll it until it finishes.

    The query moves ``Running -> Complete | Failed | Cancelled`` and never back.
    We poll every ``poll_interval`` seconds, at most ``max_attempts`` times (by
    default 120 polls 5 seconds apart, so 10 minutes).  If the query is still
    running after that we ask AWS to stop it and raise
    :py:exc:`QueryTimeoutError`.

    We don't retry failed AWS calls ourselves; those surface as
    :py:exc:`QueryError`.  Retrying the whole query is up to the caller.
    """

    def __init__(
        self,
        source: SupportsQueries,
        poll_interval: float = 5.0,
        max_attempts: int = 120,
        hooks: List[QueryHook] = None
    ) -> None:
        self.source = source
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.hooks: List[QueryHook] = list(hooks) if hooks else []

    def run(
        self,
        sources: Sequence[str],
        query: str,
        start_time: datetime,
        end_time: datetime,
        limit: Optional[int] = None,
        cancel: threading.Event = None
    ) -> QueryResult:
        """
        Start ``query`` against the log groups in ``sources`` for the window
        ``start_time`` to ``end_time`` and wait for its results.

        Raises:
            QueryFailedError: AWS says the query failed or was cancelled
            QueryTimeoutError: the query was still running after ``max_attempts`` polls
            QueryError: we couldn't talk to AWS
            OperationCancelled: ``cancel`` was set while we were waiting
        """
        context = {
            'query': query,
            'sources': sources,
            'start_time': start_time,
            'end_time': end_time,
        }
        cancel = cancel if cancel is not None else threading.Event()
        try:
            query_id = self.source.submit_query(sources, query, start_time, end_time, limit=limit)
        except Exception as e:  # pylint: disable=broad-except
            raise QueryError(f'Failed to start query: {e}', **context) from e
        job = QueryJob(query_id=query_id)
        logger.info('started query %s', query_id)
        try:
            return self.poll(job, cancel, **context)
        except (QueryError, OperationCancelled):
            raise
        except BaseException:
            # Interrupted by something else (e.g. a signal); don't leave the query running in AWS
            self.cancel(job)
            raise

    def _fire(self, state: str, report: QueryStatusReport, num_attempts: int, job: QueryJob) -> None:
        for hook in self.hooks:
            hook(state, report, num_attempts, job=job, max_attempts=self.max_attempts)

    def poll(self, job: QueryJob, cancel: threading.Event, **context) -> QueryResult:
        report = QueryStatusReport(status=QueryStatus.RUNNING)
        num_attempts = 0
        while num_attempts < self.max_attempts:
            if cancel.wait(self.poll_interval):
                self.cancel(job)
                raise OperationCancelled(f'Query {job.query_id} was cancelled')
            num_attempts += 1
            try:
                report = self.source.get_query_status(job.query_id)
            except Exception as e:  # pylint: disable=broad-except
                raise QueryError(f'Failed to get status of query {job.query_id}: {e}', query_id=job.query_id, **context) from e
            job.transition(report.status)
            if job.status is QueryStatus.COMPLETE:
                self._fire('success', report, num_attempts, job)
                logger.info('query %s complete: %d rows', job.query_id, len(report.rows))
                return QueryResult(
                    query_id=job.query_id,
                    status=job.status,
                    rows=report.rows,
                    statistics=report.statistics
                )
            if job.status in (QueryStatus.FAILED, QueryStatus.CANCELLED):
                self._fire('failure', report, num_attempts, job)
                raise QueryFailedError(
                    f'Query {job.query_id} finished with status: {job.status.value}',
                    query_id=job.query_id,
                    **context
                )
            self._fire('waiting', report, num_attempts, job)
        self._fire('timeout', report, num_attempts, job)
        self.cancel(job)
        raise QueryTimeoutError(
            f'Query {job.query_id} timed out after {num_attempts} polls',
            query_id=job.query_id,
            **context
        )

    def cancel(self, job: QueryJob) -> None:
        """
        Ask AWS to stop the query.  This is best effort: if it fails we log it and
        move on, so that the reason we were cancelling is what the caller sees.
        """
        try:
            self.source.cancel_query(job.query_id)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning('could not stop query %s: %s', job.query_id, e)
