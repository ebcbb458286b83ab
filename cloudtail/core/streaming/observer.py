from typing import Optional

from .events import LiveSession, LogEvent


class FollowObserver:
    """
    Receives everything that happens while we follow log streams or tail a live
    session.  Subclass this and override the methods you care about; the defaults
    do nothing.

    Important:

        The stream follower calls these methods from its worker threads, so
        implementations must be safe to call concurrently.

    Note:
        Per-stream failures are reported **only** through
        :py:meth:`on_stream_disconnect`, :py:meth:`on_reconnect` and
        :py:meth:`on_error` (and the returned ``StreamResult`` list).  A
        follow operation that lost one of its streams still returns normally.
    """

    def on_event(self, event: LogEvent, stream_name: Optional[str]) -> None:
        pass

    def on_stream_connect(self, stream_name: str) -> None:
        pass

    def on_stream_disconnect(self, stream_name: str, reason: str) -> None:
        pass

    def on_reconnect(self, stream_name: str, attempt: int) -> None:
        pass

    def on_error(self, error: Exception, stream_name: str = None) -> None:
        pass

    def on_session_start(self, session: LiveSession) -> None:
        pass

    def on_close(self) -> None:
        pass
