from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime
from enum import Enum
import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Set

from cloudtail.core import backoff
from cloudtail.core.patterns import compile_pattern
from cloudtail.exceptions import DiscoveryError, NoMatchError, PollError, StreamFatalError
from cloudtail.types import SupportsLogStreams

from .events import (
    EventBatch,
    LogEvent,
    ReconnectState,
    StreamCursor,
    StreamInfo,
    StreamResult,
    datetime_to_ms,
)
from .observer import FollowObserver


logger = logging.getLogger(__name__)

#: How far back we start when we're not given a start time, in seconds.
DEFAULT_START_OFFSET: int = 300


class FollowState(Enum):
    CONNECTING = 'connecting'
    POLLING = 'polling'
    IDLE = 'idle'
    BACKOFF = 'backoff'
    TERMINAL = 'terminal'


TRANSITIONS: Dict[FollowState, Set[FollowState]] = {
    FollowState.CONNECTING: {FollowState.POLLING, FollowState.TERMINAL},
    FollowState.POLLING: {FollowState.POLLING, FollowState.IDLE, FollowState.BACKOFF, FollowState.TERMINAL},
    FollowState.IDLE: {FollowState.POLLING, FollowState.TERMINAL},
    FollowState.BACKOFF: {FollowState.POLLING, FollowState.TERMINAL},
    FollowState.TERMINAL: set(),
}


class StreamWorker:
    """
    Follow a single log stream until we're cancelled or we run out of reconnect
    attempts.

    Each worker owns its :py:class:`StreamCursor` and :py:class:`ReconnectState`;
    nothing else reads or writes them.  The worker is a small state machine::

        CONNECTING -> POLLING -> POLLING   (more pages, or new events)
                              -> IDLE      (nothing new; sleep, then look back)
                              -> BACKOFF   (poll failed; sleep, then retry)
                              -> TERMINAL  (out of reconnect attempts)

    Setting ``cancel`` moves the worker to ``TERMINAL`` from any state.
    """

    def __init__(
        self,
        source: SupportsLogStreams,
        group: str,
        stream_name: str,
        observer: FollowObserver,
        cancel: threading.Event,
        filter_pattern: str = None,
        start_time: int = None,
        max_reconnects: int = 5,
        reconnect_delay: float = 1.0,
        poll_interval: float = 2.0,
        lookback: float = 10.0,
        page_size: int = 100,
        clock: Callable[[], float] = time.time
    ) -> None:
        self.source = source
        self.group = group
        self.stream_name = stream_name
        self.observer = observer
        self.cancel = cancel
        self.filter_pattern = filter_pattern
        self.poll_interval = poll_interval
        self.lookback = lookback
        self.page_size = page_size
        self.clock = clock
        if start_time is None:
            start_time = self.now - DEFAULT_START_OFFSET * 1000
        self.cursor = StreamCursor(last_timestamp=start_time)
        self.reconnect = ReconnectState(max_attempts=max_reconnects, base_delay=reconnect_delay)
        self.state = FollowState.CONNECTING
        self.result = StreamResult(stream_name)
        self._backoff_delay: float = 0.0

    def __str__(self) -> str:
        return 'StreamWorker(group="{}", stream="{}")'.format(self.group, self.stream_name)

    @property
    def now(self) -> int:
        return int(self.clock() * 1000)

    def transition(self, state: FollowState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f'{self}: illegal transition {self.state.value} -> {state.value}')
        logger.debug('%s: %s -> %s', self, self.state.value, state.value)
        self.state = state

    def run(self) -> StreamResult:
        self.observer.on_stream_connect(self.stream_name)
        self.transition(FollowState.POLLING)
        while self.state is not FollowState.TERMINAL:
            if self.cancel.is_set():
                self.transition(FollowState.TERMINAL)
            elif self.state is FollowState.POLLING:
                self.poll()
            elif self.state is FollowState.IDLE:
                self.idle()
            elif self.state is FollowState.BACKOFF:
                self.wait_to_reconnect()
        return self.result

    def fetch(self) -> EventBatch:
        try:
            return self.source.poll_events(
                self.group,
                self.stream_name,
                self.cursor.since,
                filter_pattern=self.filter_pattern,
                next_token=self.cursor.next_token,
                limit=self.page_size
            )
        except Exception as e:  # pylint: disable=broad-except
            raise PollError(self.stream_name, str(e)) from e

    def poll(self) -> None:
        try:
            batch = self.fetch()
        except PollError as e:
            self.failed(e)
            return
        last_timestamp = self.cursor.last_timestamp
        self.deliver(batch)
        if batch.next_token:
            self.cursor.next_token = batch.next_token
            self.transition(FollowState.POLLING)
        elif self.cursor.last_timestamp <= last_timestamp:
            # startTime is inclusive, so a window starting at our newest event
            # always returns it again; without progress we're idle
            self.transition(FollowState.IDLE)
        else:
            self.cursor.settle()
            self.transition(FollowState.POLLING)

    def deliver(self, batch: EventBatch) -> int:
        """
        Hand each well formed, not previously seen event in ``batch`` to our
        observer and move our cursor forward.

        Events with an ``eventId`` are deduplicated by id.  Events without one
        can only be told apart by time, so once we have delivered anything we
        drop those that are no newer than what we had before this batch.

        Returns:
            The number of events we delivered.
        """
        floor = self.cursor.last_timestamp if self.result.events_delivered else None
        delivered = 0
        for data in batch.events:
            event = LogEvent.from_aws(data, stream_name=self.stream_name)
            if event is None:
                continue
            if event.event_id:
                if self.cursor.seen(event.event_id):
                    continue
            elif floor is not None and event.timestamp <= floor:
                continue
            self.observer.on_event(event, self.stream_name)
            self.cursor.advance(event.timestamp)
            delivered += 1
        self.result.events_delivered += delivered
        return delivered

    def idle(self) -> None:
        if self.cancel.wait(self.poll_interval):
            self.transition(FollowState.TERMINAL)
            return
        # Events can show up late, so re-read the last few seconds; the cursor
        # drops anything we already delivered.
        self.cursor.look_back(self.now, int(self.lookback * 1000))
        self.transition(FollowState.POLLING)

    def failed(self, error: PollError) -> None:
        self.reconnect.attempts += 1
        self.cursor.next_token = None
        logger.warning('%s: %s (failure %d)', self, error.reason, self.reconnect.attempts)
        self.observer.on_stream_disconnect(self.stream_name, error.reason)
        if not self.reconnect.exhausted:
            self.observer.on_reconnect(self.stream_name, self.reconnect.attempts)
            self._backoff_delay = backoff.delay(self.reconnect.attempts, self.reconnect.base_delay)
            self.transition(FollowState.BACKOFF)
        else:
            fatal = StreamFatalError(self.stream_name, self.reconnect.attempts, error)
            self.result.error = fatal
            self.observer.on_error(fatal, self.stream_name)
            self.transition(FollowState.TERMINAL)

    def wait_to_reconnect(self) -> None:
        if self.cancel.wait(self._backoff_delay):
            self.transition(FollowState.TERMINAL)
        else:
            self.transition(FollowState.POLLING)


class StreamFollower:
    """
    Follow every log stream in a log group whose name matches a pattern, each
    stream in its own thread.

    Usage::

        follower = StreamFollower(CloudWatchLogsEventSource(), observer=MyObserver())
        results = follower.follow('/aws/lambda/my-function', pattern='2024/01/15/*')

    :py:meth:`follow` only raises if it can't figure out which streams to follow.
    Once the per-stream workers are running, a stream that fails for good is
    reported to the observer and in the returned results, and the other streams
    carry on.
    """

    def __init__(
        self,
        source: SupportsLogStreams,
        observer: FollowObserver = None,
        max_reconnects: int = 5,
        reconnect_delay: float = 1.0,
        poll_interval: float = 2.0,
        lookback: float = 10.0,
        stream_page_size: int = 50,
        event_page_size: int = 100,
        clock: Callable[[], float] = time.time
    ) -> None:
        self.source = source
        self.observer = observer if observer else FollowObserver()
        self.max_reconnects = max_reconnects
        self.reconnect_delay = reconnect_delay
        self.poll_interval = poll_interval
        self.lookback = lookback
        self.stream_page_size = stream_page_size
        self.event_page_size = event_page_size
        self.clock = clock

    def discover(self, group: str) -> List[StreamInfo]:
        """
        List the most recently active streams in ``group``, newest first.

        Raises:
            DiscoveryError: we could not list the streams
        """
        try:
            return self.source.list_streams(group, page_size=self.stream_page_size)
        except Exception as e:  # pylint: disable=broad-except
            raise DiscoveryError(group, str(e)) from e

    def select(self, group: str, pattern: str = None, is_regex: bool = False) -> List[str]:
        """
        Return the names of the streams in ``group`` that we should follow.

        Raises:
            PatternCompileError: ``pattern`` is a malformed regular expression
            DiscoveryError: we could not list the streams
            NoMatchError: no stream in ``group`` matches ``pattern``
        """
        matches = compile_pattern(pattern, is_regex=is_regex)
        names = [stream.name for stream in self.discover(group) if stream.name and matches(stream.name)]
        if not names:
            raise NoMatchError(group, pattern)
        return names

    def worker(
        self,
        group: str,
        stream_name: str,
        cancel: threading.Event,
        filter_pattern: str = None,
        start_time: Optional[int] = None
    ) -> StreamWorker:
        return StreamWorker(
            self.source,
            group,
            stream_name,
            self.observer,
            cancel,
            filter_pattern=filter_pattern,
            start_time=start_time,
            max_reconnects=self.max_reconnects,
            reconnect_delay=self.reconnect_delay,
            poll_interval=self.poll_interval,
            lookback=self.lookback,
            page_size=self.event_page_size,
            clock=self.clock
        )

    def follow(
        self,
        group: str,
        pattern: str = None,
        is_regex: bool = False,
        filter_pattern: str = None,
        start_time: datetime = None,
        cancel: threading.Event = None
    ) -> List[StreamResult]:
        """
        Follow the matching streams in ``group`` until every one of them has either
        been cancelled or run out of reconnect attempts.

        Args:
            group: the name of the log group

        Keyword Args:
            pattern: only follow streams whose names match this glob (or regex)
            is_regex: if ``True``, ``pattern`` is a regular expression
            filter_pattern: a CloudWatch Logs filter pattern to apply to events
            start_time: deliver events from this time onward.  Defaults to five
                minutes ago.
            cancel: set this to stop following

        Raises:
            PatternCompileError: ``pattern`` is a malformed regular expression
            DiscoveryError: we could not list the streams
            NoMatchError: no stream in ``group`` matches ``pattern``

        Returns:
            One :py:class:`StreamResult` per followed stream, in discovery order.
        """
        names = self.select(group, pattern=pattern, is_regex=is_regex)
        cancel = cancel if cancel is not None else threading.Event()
        start = datetime_to_ms(start_time) if start_time else None
        logger.info('following %d streams in log group "%s"', len(names), group)
        workers = [self.worker(group, name, cancel, filter_pattern=filter_pattern, start_time=start) for name in names]
        with ThreadPoolExecutor(max_workers=len(workers), thread_name_prefix='cloudtail-follow') as executor:
            futures = [executor.submit(w.run) for w in workers]
            try:
                wait(futures)
            except BaseException:
                # We were interrupted; stop the workers so the executor can shut down
                cancel.set()
                raise
        return [self._settle(w, f) for w, f in zip(workers, futures)]

    def _settle(self, worker: StreamWorker, future) -> StreamResult:
        try:
            return future.result()
        except Exception as e:  # pylint: disable=broad-except
            logger.exception('%s: follow loop crashed', worker)
            fatal = StreamFatalError(worker.stream_name, worker.reconnect.attempts, e)
            worker.result.error = fatal
            self.observer.on_error(fatal, worker.stream_name)
            return worker.result
