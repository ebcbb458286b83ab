import argparse
import json
import threading
from typing import Any, Callable, Dict, List, Optional, TextIO

from cement import ex
from cement.ext.ext_argparse import ArgparseController as Controller
import click
from tabulate import tabulate

from cloudtail.core.models import CloudWatchLogGroup, CloudWatchLogStream
from cloudtail.core.sources import CloudWatchLogsEventSource
from cloudtail.core.streaming import (
    AbstractQueryHook,
    FollowObserver,
    LiveSession,
    LogEvent,
    QueryPoller,
    QueryResult,
    StreamFollower,
)
from cloudtail.core.streaming.live import tail as live_tail
from cloudtail.core.streaming.events import ms_to_datetime
from cloudtail.core.utils import parse_time, split_names
from cloudtail.exceptions import CloudtailAppError

from .utils import handle_model_exceptions


TIMESTAMP_FORMAT: str = '%Y-%m-%d %H:%M:%S.%f'


class ConsoleObserver(FollowObserver):
    """
    Print log events and stream status messages as they arrive.

    The follower calls us from many threads at once, so we serialize our output
    with a lock.  If ``export_file`` is given, we also append each event to it
    without any colors.

    Per-stream errors are printed here.  Errors for the whole operation are
    raised to the caller, so we leave those alone.
    """

    LEVEL_COLORS = (
        ('ERROR', 'bright_red'),
        ('FATAL', 'bright_red'),
        ('WARN', 'bright_yellow'),
        ('INFO', 'bright_blue'),
        ('DEBUG', 'bright_black'),
    )

    def __init__(
        self,
        write: Callable[[str], Any],
        verbose: bool = False,
        color: bool = True,
        show_timestamp: bool = True,
        show_stream_name: bool = True,
        export_file: TextIO = None
    ) -> None:
        self.write = write
        self.verbose = verbose
        self.color = color
        self.show_timestamp = show_timestamp
        self.show_stream_name = show_stream_name
        self.export_file = export_file
        self.lock = threading.Lock()

    def style(self, text: str, **kwargs) -> str:
        if not self.color:
            return text
        return click.style(text, **kwargs)

    def say(self, text: str, **kwargs) -> None:
        with self.lock:
            self.write(self.style(text, **kwargs))

    def message_color(self, message: str) -> Optional[str]:
        for level, color in self.LEVEL_COLORS:
            if level in message:
                return color
        return None

    def format_event(self, event: LogEvent, stream_name: Optional[str], color: bool = True) -> str:
        parts = []
        if self.show_timestamp:
            stamp = '[{}]'.format(event.when.strftime(TIMESTAMP_FORMAT))
            parts.append(click.style(stamp, fg='cyan') if color else stamp)
        if self.show_stream_name and stream_name:
            name = '({})'.format(stream_name)
            parts.append(click.style(name, fg='cyan', bold=True) if color else name)
        message = event.message.rstrip()
        fg = self.message_color(message)
        parts.append(click.style(message, fg=fg) if color and fg else message)
        return ' '.join(parts)

    def on_event(self, event: LogEvent, stream_name: Optional[str]) -> None:
        line = self.format_event(event, stream_name, color=self.color)
        with self.lock:
            self.write(line)
            if self.export_file:
                self.export_file.write(self.format_event(event, stream_name, color=False) + '\n')
                self.export_file.flush()

    def on_stream_connect(self, stream_name: str) -> None:
        if self.verbose:
            self.say('Connected to stream: {}'.format(stream_name), fg='bright_green')

    def on_stream_disconnect(self, stream_name: str, reason: str) -> None:
        if self.verbose:
            self.say('Disconnected from stream: {} ({})'.format(stream_name, reason), fg='bright_yellow')

    def on_reconnect(self, stream_name: str, attempt: int) -> None:
        if self.verbose:
            self.say('Reconnecting to stream: {} (attempt {})'.format(stream_name, attempt), fg='bright_blue')

    def on_error(self, error: Exception, stream_name: str = None) -> None:
        if stream_name is None:
            return
        self.say('Stream error (stream: {}): {}'.format(stream_name, error), fg='red')

    def on_session_start(self, session: LiveSession) -> None:
        self.say('Live tail session started: {}'.format(session.session_id), fg='bright_green')

    def on_close(self) -> None:
        if self.verbose:
            self.say('Live tail session closed', fg='bright_yellow')


class QueryProgressHook(AbstractQueryHook):
    """
    Tell the user how our Logs Insights query is doing.
    """

    def __init__(self, write: Callable[[str], Any]) -> None:
        self.write = write

    def waiting(self, state, report, num_attempts, **kwargs) -> None:
        self.write(click.style(
            'Query running... ({}/{})'.format(num_attempts, kwargs.get('max_attempts', '?')),
            fg='yellow'
        ))

    def success(self, state, report, num_attempts, **kwargs) -> None:
        self.write(click.style('Query completed: {} results returned'.format(len(report.rows)), fg='green'))

    def failure(self, state, report, num_attempts, **kwargs) -> None:
        self.write(click.style('Query finished with status {}'.format(report.status.value), fg='red'))

    def timeout(self, state, report, num_attempts, **kwargs) -> None:
        self.write(click.style('Query timed out after {} polls; stopping it'.format(num_attempts), fg='red'))


def render_query_result(result: QueryResult, output_format: str = 'table', show_statistics: bool = False) -> str:
    """
    Render the rows of a Logs Insights query either as a table or as one JSON
    object per line.  The ``@ptr`` field is internal to CloudWatch, so we drop it.
    """
    rows = [{k: v for k, v in row.items() if k != '@ptr'} for row in result.rows]
    if output_format == 'json':
        output = '\n'.join(json.dumps(row) for row in rows)
    else:
        headers: List[str] = []
        for row in rows:
            for key in row:
                if key not in headers:
                    headers.append(key)
        output = tabulate([[row.get(h, '') for h in headers] for row in rows], headers=headers)
    if show_statistics and result.statistics:
        stats = result.statistics
        lines = [
            '',
            click.style('Query statistics', fg='cyan'),
            click.style('----------------', fg='cyan'),
            'Records matched: {}'.format(stats.records_matched),
            'Records scanned: {}'.format(stats.records_scanned),
            'Bytes scanned: {}'.format(stats.bytes_scanned),
        ]
        output += '\n'.join(lines)
    return output


def format_timestamp(value: Optional[int]) -> str:
    if not value:
        return ''
    return ms_to_datetime(value).strftime('%Y-%m-%d %H:%M:%S')


# ========================
# Controllers
# ========================

class Logs(Controller):

    class Meta:
        label = 'logs'
        description = 'Work with CloudWatch Logs'
        help = 'Work with CloudWatch Logs'
        stacked_on = 'base'
        stacked_type = 'nested'

    def setting(self, key: str, override: Any = None, cast: Callable = float) -> Any:
        """
        Return the command line value ``override`` if it was given, otherwise our
        configured value for ``key``.
        """
        if override is not None:
            return override
        return cast(self.app.config.get('cloudtail', key))

    def parse_time(self, value: str) -> Any:
        try:
            return parse_time(value)
        except ValueError as e:
            raise CloudtailAppError(str(e)) from e

    def observer(self, export_file: TextIO = None) -> ConsoleObserver:
        return ConsoleObserver(
            self.app.print,
            verbose=self.app.pargs.verbose,
            color=not self.app.pargs.no_color,
            show_timestamp=not self.app.pargs.no_timestamp,
            show_stream_name=not self.app.pargs.no_stream_name,
            export_file=export_file
        )

    @ex(
        help='Follow the log streams in a log group, reconnecting when polls fail.',
        arguments=[
            (['log_group_name'], {'help': 'The name of the CloudWatch Logs log group'}),
            (
                ['stream_pattern'],
                {
                    'help': 'Only follow streams whose names match this glob (or regex, with --regex)',
                    'nargs': '?',
                    'default': None,
                }
            ),
            (
                ['--regex'],
                {
                    'help': 'Treat the stream pattern as a regular expression instead of a glob',
                    'action': 'store_true',
                    'default': False,
                    'dest': 'regex',
                }
            ),
            (
                ['--filter-pattern'],
                {
                    'help': 'Return only messages matching this CloudWatch Logs filter pattern.',
                    'default': None,
                    'dest': 'filter_pattern',
                }
            ),
            (
                ['--since'],
                {
                    'help': "Start from this time: relative ('5m ago', '1h ago') or ISO 8601",
                    'default': None,
                    'dest': 'since',
                }
            ),
            (
                ['--max-reconnects'],
                {
                    'help': 'Give up on a stream after this many failed polls.',
                    'type': int,
                    'default': None,
                    'dest': 'max_reconnects',
                }
            ),
            (
                ['--reconnect-delay'],
                {
                    'help': 'Seconds to wait before the first reconnect; doubles on each further failure.',
                    'type': float,
                    'default': None,
                    'dest': 'reconnect_delay',
                }
            ),
            (
                ['--export-file'],
                {
                    'help': 'Also append every event to this file.',
                    'default': None,
                    'dest': 'export_file',
                }
            ),
            (['--no-color'], {'action': 'store_true', 'default': False, 'dest': 'no_color'}),
            (['--no-timestamp'], {'action': 'store_true', 'default': False, 'dest': 'no_timestamp'}),
            (['--no-stream-name'], {'action': 'store_true', 'default': False, 'dest': 'no_stream_name'}),
            (
                ['--verbose'],
                {
                    'help': 'Report stream connects, disconnects and reconnects.',
                    'action': 'store_true',
                    'default': False,
                    'dest': 'verbose',
                }
            ),
        ],
        description="""
Follow the log streams in a CloudWatch Logs log group.

Each matching stream is polled independently.  If a poll fails we back off and
retry; a stream that keeps failing is dropped without affecting the others.

Glob patterns must match the whole stream name ('2024/01/15/*'); regular
expressions (--regex) may match anywhere in it.
""",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    @handle_model_exceptions
    def follow(self) -> None:
        pargs = self.app.pargs
        start_time = self.parse_time(pargs.since) if pargs.since else None
        export_file = open(pargs.export_file, 'a', encoding='utf-8') if pargs.export_file else None
        try:
            follower = StreamFollower(
                CloudWatchLogsEventSource(),
                observer=self.observer(export_file=export_file),
                max_reconnects=self.setting('max_reconnects', pargs.max_reconnects, int),
                reconnect_delay=self.setting('reconnect_delay', pargs.reconnect_delay),
                poll_interval=self.setting('poll_interval'),
                lookback=self.setting('lookback'),
                stream_page_size=self.setting('stream_page_size', cast=int),
                event_page_size=self.setting('event_page_size', cast=int),
            )
            if pargs.verbose:
                self.app.print('Following log group: {}'.format(pargs.log_group_name))
                if pargs.stream_pattern:
                    self.app.print('Stream pattern: {} ({})'.format(
                        pargs.stream_pattern,
                        'regex' if pargs.regex else 'glob'
                    ))
            results = follower.follow(
                pargs.log_group_name,
                pattern=pargs.stream_pattern,
                is_regex=pargs.regex,
                filter_pattern=pargs.filter_pattern,
                start_time=start_time,
            )
        finally:
            if export_file:
                export_file.close()
        failed = [result for result in results if not result.ok]
        if failed:
            self.app.print(click.style(
                'Lost {} of {} streams: {}'.format(len(failed), len(results), ', '.join(r.stream_name for r in failed)),
                fg='red'
            ))
            self.app.exit_code = 1

    @ex(
        help='Live tail one or more log groups.',
        arguments=[
            (['log_group_names'], {'help': 'Comma separated log group names or ARNs'}),
            (
                ['--filter-pattern'],
                {
                    'help': 'Return only messages matching this CloudWatch Logs filter pattern.',
                    'default': None,
                    'dest': 'filter_pattern',
                }
            ),
            (
                ['--stream-names'],
                {
                    'help': 'Comma separated list of log stream names to tail.',
                    'default': None,
                    'dest': 'stream_names',
                }
            ),
            (
                ['--stream-prefix'],
                {
                    'help': 'Return only messages from stream names with this prefix.',
                    'default': None,
                    'dest': 'stream_prefix',
                }
            ),
            (['--no-color'], {'action': 'store_true', 'default': False, 'dest': 'no_color'}),
            (['--no-timestamp'], {'action': 'store_true', 'default': False, 'dest': 'no_timestamp'}),
            (['--no-stream-name'], {'action': 'store_true', 'default': False, 'dest': 'no_stream_name'}),
            (
                ['--verbose'],
                {
                    'help': 'Report when the live tail session starts and stops.',
                    'action': 'store_true',
                    'default': False,
                    'dest': 'verbose',
                }
            ),
        ],
        description="""
Stream log events from one or more log groups in near real time with a
CloudWatch Logs live tail session.
""",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    @handle_model_exceptions
    def tail(self) -> None:
        pargs = self.app.pargs
        live_tail(
            CloudWatchLogsEventSource(),
            split_names(pargs.log_group_names),
            observer=self.observer(),
            filter_pattern=pargs.filter_pattern,
            stream_names=split_names(pargs.stream_names) or None,
            stream_prefixes=[pargs.stream_prefix] if pargs.stream_prefix else None,
            verbose=pargs.verbose,
        )

    @ex(
        help='Run a CloudWatch Logs Insights query and print its results.',
        arguments=[
            (['log_group_names'], {'help': 'Comma separated log group names'}),
            (['query_string'], {'help': 'The Logs Insights query to run'}),
            (
                ['--start-time'],
                {
                    'help': "Start of the time window: relative ('1h ago') or ISO 8601",
                    'default': '1h ago',
                    'dest': 'start_time',
                }
            ),
            (
                ['--end-time'],
                {
                    'help': "End of the time window: 'now', relative or ISO 8601",
                    'default': 'now',
                    'dest': 'end_time',
                }
            ),
            (
                ['--limit'],
                {
                    'help': 'Return at most this many rows.',
                    'type': int,
                    'default': None,
                    'dest': 'limit',
                }
            ),
            (
                ['--format'],
                {
                    'help': 'Output format',
                    'choices': ['table', 'json'],
                    'default': 'table',
                    'dest': 'output_format',
                }
            ),
            (
                ['--show-statistics'],
                {
                    'help': 'Print records matched, records scanned and bytes scanned.',
                    'action': 'store_true',
                    'default': False,
                    'dest': 'show_statistics',
                }
            ),
            (
                ['--show-progress'],
                {
                    'help': 'Print a line on each poll while the query runs.',
                    'action': 'store_true',
                    'default': False,
                    'dest': 'show_progress',
                }
            ),
        ]
    )
    @handle_model_exceptions
    def query(self) -> None:
        pargs = self.app.pargs
        start_time = self.parse_time(pargs.start_time)
        end_time = self.parse_time(pargs.end_time)
        if start_time >= end_time:
            raise CloudtailAppError('--start-time must be before --end-time')
        hooks = [QueryProgressHook(self.app.print)] if pargs.show_progress else []
        poller = QueryPoller(
            CloudWatchLogsEventSource(),
            poll_interval=self.setting('query_poll_interval'),
            max_attempts=self.setting('query_max_attempts', cast=int),
            hooks=hooks
        )
        result = poller.run(
            split_names(pargs.log_group_names),
            pargs.query_string,
            start_time,
            end_time,
            limit=pargs.limit
        )
        self.app.print(render_query_result(
            result,
            output_format=pargs.output_format,
            show_statistics=pargs.show_statistics
        ))


class LogsCloudWatchLogGroup(Controller):

    class Meta:
        label = 'groups'
        description = 'Work with CloudWatch Logs log groups'
        help = 'Work with CloudWatch Logs log groups'
        stacked_on = 'logs'
        stacked_type = 'nested'

    @ex(
        help="List CloudWatch Logs log groups in AWS",
        arguments=[
            (
                ['--prefix'],
                {
                    'help': 'Filter by prefix',
                    'action': 'store',
                    'default': None,
                    'dest': 'prefix'
                }
            ),
        ]
    )
    @handle_model_exceptions
    def list(self) -> None:
        groups = CloudWatchLogGroup.objects.list(prefix=self.app.pargs.prefix)
        rows = []
        for group in sorted(groups, key=lambda g: g.name):
            rows.append([
                group.name,
                format_timestamp(group.data.get('creationTime')),
                group.data.get('retentionInDays', 'inf'),
                group.data.get('storedBytes', ''),
            ])
        self.app.print(tabulate(rows, headers=['Name', 'Created', 'Retention', 'Size']))


class LogsCloudWatchLogStream(Controller):

    class Meta:
        label = 'streams'
        description = 'Work with CloudWatch Logs log streams'
        help = 'Work with CloudWatch Logs log streams'
        stacked_on = 'logs'
        stacked_type = 'nested'

    @ex(
        help="List the streams in a CloudWatch Logs log group, most recently active first",
        arguments=[
            (['log_group_name'], {'help': 'The name of the log group whose streams we want to list'}),
            (
                ['--prefix'],
                {
                    'help': 'Filter by prefix',
                    'action': 'store',
                    'default': None,
                    'dest': 'prefix'
                }
            ),
            (
                ['--limit'],
                {
                    'help': 'Limit results to this number',
                    'action': 'store',
                    'type': int,
                    'default': None,
                    'dest': 'limit'
                }
            ),
        ]
    )
    @handle_model_exceptions
    def list(self) -> None:
        group = CloudWatchLogGroup.objects.get(self.app.pargs.log_group_name)
        streams: List[CloudWatchLogStream] = group.log_streams(
            stream_prefix=self.app.pargs.prefix,
            maxitems=self.app.pargs.limit
        )
        rows: List[List[Any]] = []
        for stream in streams:
            data: Dict[str, Any] = stream.data
            rows.append([
                stream.name,
                format_timestamp(data.get('creationTime')),
                format_timestamp(stream.last_event_timestamp),
            ])
        self.app.print(tabulate(rows, headers=['Stream Name', 'Created', 'Last Event']))
