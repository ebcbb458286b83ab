from datetime import datetime
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

from botocore.exceptions import ClientError

from cloudtail.core.aws import get_client
from cloudtail.core.models import CloudWatchLogGroup, CloudWatchLogStream
from cloudtail.core.streaming.events import (
    ChunkKind,
    EventBatch,
    QueryStatistics,
    QueryStatus,
    QueryStatusReport,
    SessionChunk,
    StreamInfo,
)
from cloudtail.exceptions import LiveSessionError


logger = logging.getLogger(__name__)


class CloudWatchLogsEventSource:
    """
    Everything our streaming code needs from CloudWatch Logs, done with boto3.

    This is the only place that knows what the AWS requests and responses look
    like; the follower, the live tail multiplexer and the query poller only see
    the small types in :py:mod:`cloudtail.core.streaming.events`.

    Build this on the main thread.  boto3 sessions are not thread safe but
    clients are, so we make our client once here and the follower's worker
    threads all share it.
    """

    service: str = 'logs'

    def __init__(self, client=None) -> None:
        self.client = client if client else get_client(self.service)

    # ----------------------------------------
    # Following streams
    # ----------------------------------------

    def list_streams(self, group: str, page_size: int = 50) -> List[StreamInfo]:
        streams = CloudWatchLogStream.objects.list(group, maxitems=page_size)
        return [StreamInfo(name=stream.name, last_activity=stream.last_event_timestamp) for stream in streams]

    def poll_events(
        self,
        group: str,
        stream_name: str,
        since: int,
        filter_pattern: str = None,
        next_token: str = None,
        limit: int = 100
    ) -> EventBatch:
        kwargs: Dict[str, Any] = {
            'logGroupName': group,
            'logStreamNames': [stream_name],
            'startTime': since,
            'limit': limit,
        }
        if filter_pattern:
            kwargs['filterPattern'] = filter_pattern
        if next_token:
            kwargs['nextToken'] = next_token
        response = self.client.filter_log_events(**kwargs)
        return EventBatch(events=response.get('events', []), next_token=response.get('nextToken'))

    # ----------------------------------------
    # Live tail
    # ----------------------------------------

    def resolve_identifier(self, identifier: str) -> str:
        """
        ``start_live_tail`` wants log group ARNs.  Let people give us names too.
        """
        if identifier.startswith('arn:'):
            return identifier
        return CloudWatchLogGroup.objects.get(identifier).arn

    def open_live_session(
        self,
        identifiers: Sequence[str],
        filter_pattern: str = None,
        stream_names: Sequence[str] = None,
        stream_prefixes: Sequence[str] = None
    ) -> Iterator[SessionChunk]:
        """
        Start a live tail session and yield its chunks.  When AWS closes the
        stream normally we finish with a ``sessionStop`` chunk.

        Raises:
            LiveSessionError: we couldn't start the session, or AWS sent us an
                exception event
        """
        try:
            kwargs: Dict[str, Any] = {
                'logGroupIdentifiers': [self.resolve_identifier(i) for i in identifiers],
            }
            if stream_names:
                kwargs['logStreamNames'] = list(stream_names)
            if stream_prefixes:
                kwargs['logStreamNamePrefixes'] = list(stream_prefixes)
            if filter_pattern:
                kwargs['logEventFilterPattern'] = filter_pattern
            response = self.client.start_live_tail(**kwargs)
        except (ClientError, CloudWatchLogGroup.DoesNotExist) as e:
            raise LiveSessionError(f'Failed to start live tail session: {e}', identifiers) from e
        stream = response.get('responseStream')
        if stream is None:
            raise LiveSessionError('No response stream received from live tail session', identifiers)
        try:
            for event in stream:
                if 'sessionStart' in event:
                    yield SessionChunk(ChunkKind.START, event['sessionStart'])
                elif 'sessionUpdate' in event:
                    yield SessionChunk(ChunkKind.UPDATE, event['sessionUpdate'])
                elif 'SessionTimeoutException' in event:
                    raise LiveSessionError(
                        'Live tail session timed out: {}'.format(event['SessionTimeoutException'].get('message', '')),
                        identifiers
                    )
                elif 'SessionStreamingException' in event:
                    raise LiveSessionError(
                        'Live tail session failed: {}'.format(event['SessionStreamingException'].get('message', '')),
                        identifiers
                    )
                else:
                    logger.debug('ignoring unknown live tail event: %s', list(event.keys()))
            yield SessionChunk(ChunkKind.STOP)
        finally:
            stream.close()

    # ----------------------------------------
    # Logs Insights queries
    # ----------------------------------------

    def submit_query(
        self,
        sources: Sequence[str],
        query: str,
        start_time: datetime,
        end_time: datetime,
        limit: Optional[int] = None
    ) -> str:
        kwargs: Dict[str, Any] = {
            'logGroupNames': list(sources),
            'queryString': query,
            # start_query wants seconds since the epoch, not milliseconds
            'startTime': int(start_time.timestamp()),
            'endTime': int(end_time.timestamp()),
        }
        if limit:
            kwargs['limit'] = limit
        response = self.client.start_query(**kwargs)
        return response['queryId']

    def get_query_status(self, query_id: str) -> QueryStatusReport:
        response = self.client.get_query_results(queryId=query_id)
        rows = []
        for row in response.get('results', []):
            rows.append({field['field']: field.get('value', '') for field in row if 'field' in field})
        statistics = None
        if response.get('statistics'):
            statistics = QueryStatistics.from_aws(response['statistics'])
        return QueryStatusReport(
            status=QueryStatus.from_aws(response['status']),
            rows=rows,
            statistics=statistics
        )

    def cancel_query(self, query_id: str) -> None:
        self.client.stop_query(queryId=query_id)
