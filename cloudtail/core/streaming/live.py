import logging
import threading
from typing import Iterable, Optional, Sequence

from cloudtail.exceptions import LiveSessionError
from cloudtail.types import SupportsLiveTail

from .events import ChunkKind, LiveSession, LogEvent, SessionChunk
from .observer import FollowObserver


logger = logging.getLogger(__name__)


class LiveSessionMultiplexer:
    """
    Read the chunks of a single live tail session and hand them to a
    :py:class:`FollowObserver`.

    We only ever read one session at a time from one thread, so there is no
    locking here.
    """

    def __init__(self, observer: FollowObserver = None, verbose: bool = False) -> None:
        self.observer = observer if observer else FollowObserver()
        self.verbose = verbose
        self.session: Optional[LiveSession] = None
        self.events_delivered: int = 0

    def handle(self, chunk: SessionChunk) -> bool:
        """
        Process one chunk.

        Returns:
            ``False`` if the session is over, ``True`` otherwise.
        """
        if chunk.kind is ChunkKind.START:
            self.session = LiveSession.from_chunk(chunk)
            logger.debug('live tail session %s started', self.session.session_id)
            if self.verbose:
                self.observer.on_session_start(self.session)
        elif chunk.kind is ChunkKind.UPDATE:
            for data in chunk.log_events:
                event = LogEvent.from_aws(data)
                if event is None:
                    continue
                self.observer.on_event(event, event.stream_name)
                self.events_delivered += 1
        elif chunk.kind is ChunkKind.STOP:
            logger.debug('live tail session stopped')
            return False
        return True

    def run(self, chunks: Iterable[SessionChunk], cancel: threading.Event = None) -> Optional[LiveSession]:
        """
        Consume ``chunks`` until we see a ``sessionStop`` chunk, the chunks run out,
        or ``cancel`` is set.  ``observer.on_close()`` is called no matter how we
        leave.

        Raises:
            Exception: whatever iterating ``chunks`` raised, after it has been
                passed to ``observer.on_error()``

        Returns:
            The session we were reading, if AWS told us about it.
        """
        try:
            for chunk in chunks:
                if cancel is not None and cancel.is_set():
                    logger.debug('live tail session cancelled')
                    break
                if not self.handle(chunk):
                    break
        except Exception as e:
            self.observer.on_error(e)
            raise
        finally:
            self.observer.on_close()
        return self.session


def tail(
    source: SupportsLiveTail,
    identifiers: Sequence[str],
    observer: FollowObserver = None,
    filter_pattern: str = None,
    stream_names: Sequence[str] = None,
    stream_prefixes: Sequence[str] = None,
    verbose: bool = False,
    cancel: threading.Event = None
) -> Optional[LiveSession]:
    """
    Open a live tail session on the log groups ``identifiers`` and stream its
    events to ``observer`` until the session ends.

    Raises:
        LiveSessionError: we couldn't start the session, or AWS ended it with an
            error
    """
    if not identifiers:
        raise LiveSessionError('At least one log group is required for a live tail session')
    multiplexer = LiveSessionMultiplexer(observer=observer, verbose=verbose)
    chunks = source.open_live_session(
        identifiers,
        filter_pattern=filter_pattern,
        stream_names=stream_names,
        stream_prefixes=stream_prefixes
    )
    return multiplexer.run(chunks, cancel=cancel)
