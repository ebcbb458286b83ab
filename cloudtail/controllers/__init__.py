from .base import Base  # noqa: F401
from .logs import (  # noqa: F401
    Logs,
    LogsCloudWatchLogGroup,
    LogsCloudWatchLogStream,
)
