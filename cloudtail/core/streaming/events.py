from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Set

from cloudtail.exceptions import StreamFatalError


def ms_to_datetime(timestamp: int) -> datetime:
    """
    Convert milliseconds since Jan 1, 1970 00:00:00 UTC to a local ``datetime``.
    """
    return datetime.fromtimestamp(timestamp / 1000.0)


def datetime_to_ms(when: datetime) -> int:
    return int(when.timestamp() * 1000)


# ----------------------------------------
# Log events
# ----------------------------------------

@dataclass(frozen=True)
class LogEvent:
    """
    A single log message as we got it from CloudWatch Logs.

    ``timestamp`` is milliseconds since the epoch, which is what AWS uses.
    """

    timestamp: int
    message: str
    stream_name: Optional[str] = None
    event_id: Optional[str] = None
    group: Optional[str] = None

    @property
    def when(self) -> datetime:
        return ms_to_datetime(self.timestamp)

    @classmethod
    def from_aws(cls, data: Dict[str, Any], stream_name: str = None) -> Optional["LogEvent"]:
        """
        Build a ``LogEvent`` from an event dict returned by ``filter_log_events`` or
        a live tail ``sessionResults`` entry.  Return ``None`` if the entry is missing
        its timestamp or its message; we skip those rather than fail.
        """
        if not data.get('timestamp') or not data.get('message'):
            return None
        return cls(
            timestamp=int(data['timestamp']),
            message=data['message'],
            stream_name=data.get('logStreamName', stream_name),
            event_id=data.get('eventId'),
            group=data.get('logGroupIdentifier', data.get('logGroupName')),
        )


@dataclass
class EventBatch:
    """
    One page of events from a poll of a log stream.  ``events`` holds the raw AWS
    event dicts.
    """

    events: List[Dict[str, Any]] = field(default_factory=list)
    next_token: Optional[str] = None


@dataclass
class StreamInfo:
    name: str
    last_activity: Optional[int] = None


# ----------------------------------------
# Per stream follower state
# ----------------------------------------

@dataclass
class StreamCursor:
    """
    Where a follower is in a single log stream.

    ``last_timestamp`` is the newest event timestamp we have delivered and only
    ever moves forward.  ``since`` is the start of the next poll window, which
    can fall behind ``last_timestamp`` when we look back after an idle poll.
    """

    last_timestamp: int
    since: int = 0
    next_token: Optional[str] = None
    max_seen_ids: int = 1000
    _seen_ids: Set[str] = field(default_factory=set, init=False, repr=False)
    _seen_order: Deque[str] = field(default_factory=deque, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.since:
            self.since = self.last_timestamp

    def advance(self, timestamp: int) -> None:
        if timestamp > self.last_timestamp:
            self.last_timestamp = timestamp

    def settle(self) -> None:
        """
        We finished paging through a poll window; start the next one at the newest
        event we have seen.
        """
        self.next_token = None
        self.since = max(self.since, self.last_timestamp)

    def look_back(self, now: int, window: int) -> None:
        self.next_token = None
        self.since = now - window

    def seen(self, event_id: Optional[str]) -> bool:
        """
        Remember ``event_id``, and return ``True`` if we had already delivered it.
        """
        if not event_id:
            return False
        if event_id in self._seen_ids:
            return True
        self._seen_ids.add(event_id)
        self._seen_order.append(event_id)
        while len(self._seen_order) > self.max_seen_ids:
            self._seen_ids.discard(self._seen_order.popleft())
        return False


@dataclass
class ReconnectState:

    max_attempts: int
    base_delay: float
    attempts: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts > self.max_attempts


@dataclass
class StreamResult:
    """
    How one stream's follow loop ended.  ``error`` is ``None`` unless the stream
    ran out of reconnect attempts.
    """

    stream_name: str
    error: Optional[StreamFatalError] = None
    events_delivered: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


# ----------------------------------------
# Live tail
# ----------------------------------------

class ChunkKind(Enum):
    START = 'sessionStart'
    UPDATE = 'sessionUpdate'
    STOP = 'sessionStop'


@dataclass
class SessionChunk:

    kind: ChunkKind
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def log_events(self) -> List[Dict[str, Any]]:
        return list(self.data.get('sessionResults') or [])


@dataclass
class LiveSession:

    session_id: str
    identifiers: Set[str] = field(default_factory=set)
    filter_pattern: Optional[str] = None

    @classmethod
    def from_chunk(cls, chunk: SessionChunk) -> "LiveSession":
        return cls(
            session_id=chunk.data.get('sessionId', ''),
            identifiers=set(chunk.data.get('logGroupIdentifiers') or []),
            filter_pattern=chunk.data.get('logEventFilterPattern') or None,
        )


# ----------------------------------------
# Logs Insights queries
# ----------------------------------------

class QueryStatus(Enum):
    RUNNING = 'Running'
    COMPLETE = 'Complete'
    FAILED = 'Failed'
    CANCELLED = 'Cancelled'

    @property
    def terminal(self) -> bool:
        return self is not QueryStatus.RUNNING

    @classmethod
    def from_aws(cls, status: str) -> "QueryStatus":
        """
        AWS has more statuses than we care about.  ``Scheduled`` is just a query
        that has not started running yet; ``Timeout`` and ``Unknown`` are failures.
        """
        if status in ('Scheduled', 'Running'):
            return cls.RUNNING
        if status == 'Complete':
            return cls.COMPLETE
        if status == 'Cancelled':
            return cls.CANCELLED
        return cls.FAILED


@dataclass
class QueryJob:

    query_id: str
    status: QueryStatus = QueryStatus.RUNNING
    started_at: datetime = field(default_factory=datetime.now)

    def transition(self, status: QueryStatus) -> None:
        """
        Move to ``status``.  Jobs only move forward: once we've reached a terminal
        status we never go back to running, and terminal statuses never change.
        """
        if self.status.terminal and status is not self.status:
            raise ValueError(
                f'QueryJob(query_id="{self.query_id}") cannot move from {self.status.value} to {status.value}'
            )
        self.status = status


@dataclass
class QueryStatistics:
    records_matched: Optional[float] = None
    records_scanned: Optional[float] = None
    bytes_scanned: Optional[float] = None

    @classmethod
    def from_aws(cls, data: Dict[str, Any]) -> "QueryStatistics":
        return cls(
            records_matched=data.get('recordsMatched'),
            records_scanned=data.get('recordsScanned'),
            bytes_scanned=data.get('bytesScanned'),
        )


@dataclass
class QueryStatusReport:
    """
    What ``get_query_results`` told us about a query on one poll.
    """

    status: QueryStatus
    rows: List[Dict[str, str]] = field(default_factory=list)
    statistics: Optional[QueryStatistics] = None


@dataclass
class QueryResult:

    query_id: str
    status: QueryStatus
    rows: List[Dict[str, str]] = field(default_factory=list)
    statistics: Optional[QueryStatistics] = None
