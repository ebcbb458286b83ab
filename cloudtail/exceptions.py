from datetime import datetime
from typing import List, Optional, Sequence


class CloudtailAppError(Exception):
    """Generic errors."""
    pass


class ConfigProcessingFailed(Exception):
    """
    While loading our cloudtail.yml file, we had a problem.
    """
    pass


class ObjectDoesNotExist(Exception):
    """
    We tried to get a single object but it does not exist in AWS.
    """
    pass


class MultipleObjectsReturned(Exception):
    """
    We expected to retrieve only one object but got multiple objects.
    """
    pass


class OperationCancelled(Exception):
    """
    Our cancellation token was set while we were waiting on AWS.
    """
    pass


# ----------------------------------------
# Stream following
# ----------------------------------------

class PatternCompileError(Exception):
    """
    A log stream name pattern could not be compiled into a regular expression.
    """

    def __init__(self, pattern: str, reason: str):
        super().__init__(pattern, reason)
        self.pattern = pattern
        self.reason = reason

    def __str__(self) -> str:
        return f'Invalid stream name pattern "{self.pattern}": {self.reason}'


class DiscoveryError(Exception):
    """
    We could not list the log streams in a log group.
    """

    def __init__(self, group: str, reason: str):
        super().__init__(group, reason)
        self.group = group
        self.reason = reason

    def __str__(self) -> str:
        return f'Failed to list log streams in log group "{self.group}": {self.reason}'


class NoMatchError(Exception):
    """
    None of the log streams in a log group matched our stream name pattern.
    """

    def __init__(self, group: str, pattern: Optional[str]):
        super().__init__(group, pattern)
        self.group = group
        self.pattern = pattern

    def __str__(self) -> str:
        return f"No log streams in log group \"{self.group}\" match pattern '{self.pattern or '*'}'"


class PollError(Exception):
    """
    A single poll of a log stream failed.  These are retried by the follower.
    """

    def __init__(self, stream_name: str, reason: str):
        super().__init__(stream_name, reason)
        self.stream_name = stream_name
        self.reason = reason

    def __str__(self) -> str:
        return f'Failed to poll log stream "{self.stream_name}": {self.reason}'


class StreamFatalError(Exception):
    """
    A log stream ran out of reconnect attempts.  This only ever stops that one
    stream; sibling streams keep going.
    """

    def __init__(self, stream_name: str, attempts: int, last_error: Exception):
        super().__init__(stream_name, attempts, last_error)
        self.stream_name = stream_name
        self.attempts = attempts
        self.last_error = last_error

    def __str__(self) -> str:
        return f'Gave up on log stream "{self.stream_name}" after {self.attempts} failed polls: {self.last_error}'


class LiveSessionError(Exception):
    """
    A live tail session could not be started, or AWS ended it with an error.
    """

    def __init__(self, msg: str, identifiers: Sequence[str] = ()):
        super().__init__(msg)
        self.msg = msg
        self.identifiers: List[str] = list(identifiers)

    def __str__(self) -> str:
        if self.identifiers:
            return f"{self.msg} (log groups: {', '.join(self.identifiers)})"
        return self.msg


# ----------------------------------------
# Logs Insights queries
# ----------------------------------------

class QueryError(Exception):
    """
    A Logs Insights query could not be run.  We carry the query and its target so
    that the user can see what we were trying to do.
    """

    def __init__(
        self,
        msg: str,
        query: str = None,
        sources: Sequence[str] = (),
        start_time: datetime = None,
        end_time: datetime = None,
        query_id: str = None
    ):
        super().__init__(msg)
        self.msg = msg
        self.query = query
        self.sources: List[str] = list(sources)
        self.start_time = start_time
        self.end_time = end_time
        self.query_id = query_id

    def __str__(self) -> str:
        lines = [self.msg]
        if self.query:
            lines.append(f"  query: {self.query}")
        if self.sources:
            lines.append(f"  log groups: {', '.join(self.sources)}")
        if self.start_time and self.end_time:
            lines.append(f"  window: {self.start_time.isoformat()} -> {self.end_time.isoformat()}")
        return "\n".join(lines)


class QueryFailedError(QueryError):
    """
    AWS reported our query as Failed or Cancelled.
    """
    pass


class QueryTimeoutError(QueryError):
    """
    Our query was still running after we ran out of poll attempts.
    """
    pass
