from datetime import datetime
import io
import json
import unittest

from testfixtures import compare

from cloudtail.controllers.logs import ConsoleObserver, render_query_result
from cloudtail.core.streaming import LogEvent, QueryResult, QueryStatus
from cloudtail.core.streaming.events import QueryStatistics
from cloudtail.exceptions import StreamFatalError


def stamp(timestamp):
    return datetime.fromtimestamp(timestamp / 1000.0).strftime('%Y-%m-%d %H:%M:%S.%f')


class TestConsoleObserver_on_event(unittest.TestCase):

    def setUp(self):
        self.lines = []
        self.event = LogEvent(timestamp=1705316400000, message='ERROR something broke\n', stream_name='s1')

    def test_plain(self):
        observer = ConsoleObserver(self.lines.append, color=False)
        observer.on_event(self.event, 's1')
        compare(self.lines, ['[{}] (s1) ERROR something broke'.format(stamp(1705316400000))])

    def test_no_timestamp_no_stream_name(self):
        observer = ConsoleObserver(self.lines.append, color=False, show_timestamp=False, show_stream_name=False)
        observer.on_event(self.event, 's1')
        compare(self.lines, ['ERROR something broke'])

    def test_color(self):
        observer = ConsoleObserver(self.lines.append, show_timestamp=False, show_stream_name=False)
        observer.on_event(self.event, 's1')
        self.assertIn('\x1b[', self.lines[0])
        self.assertIn('ERROR something broke', self.lines[0])

    def test_export_file_has_no_colors(self):
        export = io.StringIO()
        observer = ConsoleObserver(self.lines.append, show_stream_name=False, export_file=export)
        observer.on_event(self.event, 's1')
        compare(export.getvalue(), '[{}] ERROR something broke\n'.format(stamp(1705316400000)))


class TestConsoleObserver_status(unittest.TestCase):

    def setUp(self):
        self.lines = []

    def test_quiet_by_default(self):
        observer = ConsoleObserver(self.lines.append, color=False)
        observer.on_stream_connect('s1')
        observer.on_stream_disconnect('s1', 'throttled')
        observer.on_reconnect('s1', 1)
        observer.on_close()
        compare(self.lines, [])

    def test_verbose(self):
        observer = ConsoleObserver(self.lines.append, color=False, verbose=True)
        observer.on_stream_connect('s1')
        observer.on_reconnect('s1', 2)
        compare(self.lines, ['Connected to stream: s1', 'Reconnecting to stream: s1 (attempt 2)'])

    def test_stream_errors_are_printed(self):
        observer = ConsoleObserver(self.lines.append, color=False)
        observer.on_error(StreamFatalError('s1', 6, RuntimeError('boom')), 's1')
        self.assertEqual(len(self.lines), 1)
        self.assertIn('stream: s1', self.lines[0])

    def test_operation_errors_are_not_printed(self):
        observer = ConsoleObserver(self.lines.append, color=False)
        observer.on_error(RuntimeError('boom'))
        compare(self.lines, [])


class Test_render_query_result(unittest.TestCase):

    def setUp(self):
        self.result = QueryResult(
            query_id='query-1',
            status=QueryStatus.COMPLETE,
            rows=[
                {'@timestamp': '2024-01-15 11:59:00.000', '@message': 'hello', '@ptr': 'abc'},
                {'@timestamp': '2024-01-15 11:59:01.000', '@message': 'world', '@ptr': 'def'},
            ],
            statistics=QueryStatistics(records_matched=2.0, records_scanned=10.0, bytes_scanned=100.0)
        )

    def test_json(self):
        output = render_query_result(self.result, output_format='json')
        compare(
            [json.loads(line) for line in output.splitlines()],
            [
                {'@timestamp': '2024-01-15 11:59:00.000', '@message': 'hello'},
                {'@timestamp': '2024-01-15 11:59:01.000', '@message': 'world'},
            ]
        )

    def test_table(self):
        output = render_query_result(self.result)
        self.assertIn('@timestamp', output)
        self.assertIn('world', output)
        self.assertNotIn('@ptr', output)
        self.assertNotIn('Records scanned', output)

    def test_statistics(self):
        output = render_query_result(self.result, show_statistics=True)
        self.assertIn('Records scanned: 10.0', output)
