from datetime import datetime
from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol, Sequence

if TYPE_CHECKING:
    from cloudtail.core.streaming.events import (
        EventBatch,
        QueryStatusReport,
        SessionChunk,
        StreamInfo,
    )


class SupportsLogStreams(Protocol):

    def list_streams(self, group: str, page_size: int = 50) -> List["StreamInfo"]:
        ...

    def poll_events(
        self,
        group: str,
        stream_name: str,
        since: int,
        filter_pattern: str = None,
        next_token: str = None,
        limit: int = 100
    ) -> "EventBatch":
        ...


class SupportsLiveTail(Protocol):

    def open_live_session(
        self,
        identifiers: Sequence[str],
        filter_pattern: str = None,
        stream_names: Sequence[str] = None,
        stream_prefixes: Sequence[str] = None
    ) -> Iterable["SessionChunk"]:
        ...


class SupportsQueries(Protocol):

    def submit_query(
        self,
        sources: Sequence[str],
        query: str,
        start_time: datetime,
        end_time: datetime,
        limit: Optional[int] = None
    ) -> str:
        ...

    def get_query_status(self, query_id: str) -> "QueryStatusReport":
        ...

    def cancel_query(self, query_id: str) -> None:
        ...

