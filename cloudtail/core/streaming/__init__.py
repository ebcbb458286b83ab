from .events import (  # noqa: F401
    LiveSession,
    LogEvent,
    QueryJob,
    QueryResult,
    QueryStatus,
    StreamResult,
)
from .follower import StreamFollower, StreamWorker  # noqa: F401
from .live import LiveSessionMultiplexer, tail  # noqa: F401
from .observer import FollowObserver  # noqa: F401
from .query import AbstractQueryHook, QueryPoller  # noqa: F401
