from .abstract import Manager, Model  # noqa: F401
from .cloudwatchlogs import (  # noqa: F401
    CloudWatchLogGroup,
    CloudWatchLogStream,
)
