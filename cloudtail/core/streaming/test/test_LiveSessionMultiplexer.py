import threading
import unittest

from mock import Mock, call
from testfixtures import compare

from cloudtail.core.streaming import FollowObserver, LiveSessionMultiplexer, tail
from cloudtail.core.streaming.events import ChunkKind, SessionChunk
from cloudtail.exceptions import LiveSessionError


ARN = 'arn:aws:logs:us-west-2:123456789012:log-group:my-group'


def start():
    return SessionChunk(ChunkKind.START, {
        'sessionId': 'session-1',
        'logGroupIdentifiers': [ARN],
        'logEventFilterPattern': 'ERROR',
    })


def update(*events):
    return SessionChunk(ChunkKind.UPDATE, {'sessionResults': list(events)})


def log_event(timestamp, message, stream='s1'):
    return {'timestamp': timestamp, 'message': message, 'logStreamName': stream, 'logGroupIdentifier': ARN}


class TestLiveSessionMultiplexer_run(unittest.TestCase):

    def setUp(self):
        self.observer = Mock(spec=FollowObserver)

    def test_only_well_formed_events_are_delivered(self):
        chunks = [
            start(),
            update(log_event(1000, 'one'), {'timestamp': 2000, 'logStreamName': 's1'}, {'message': 'no time'}),
            update(log_event(3000, 'two', stream='s2')),
            SessionChunk(ChunkKind.STOP),
        ]
        multiplexer = LiveSessionMultiplexer(observer=self.observer)
        multiplexer.run(chunks)
        self.assertEqual(self.observer.on_event.call_count, 2)
        self.assertEqual(multiplexer.events_delivered, 2)
        delivered = [(c.args[0].message, c.args[1]) for c in self.observer.on_event.call_args_list]
        compare(delivered, [('one', 's1'), ('two', 's2')])

    def test_stop_ends_the_session(self):
        chunks = [start(), SessionChunk(ChunkKind.STOP), update(log_event(1000, 'after stop'))]
        LiveSessionMultiplexer(observer=self.observer).run(chunks)
        self.observer.on_event.assert_not_called()
        self.observer.on_close.assert_called_once_with()

    def test_returns_the_session(self):
        session = LiveSessionMultiplexer(observer=self.observer).run([start(), SessionChunk(ChunkKind.STOP)])
        self.assertEqual(session.session_id, 'session-1')
        compare(session.identifiers, {ARN})
        self.assertEqual(session.filter_pattern, 'ERROR')

    def test_session_start_is_reported_only_when_verbose(self):
        LiveSessionMultiplexer(observer=self.observer).run([start()])
        self.observer.on_session_start.assert_not_called()
        observer = Mock(spec=FollowObserver)
        LiveSessionMultiplexer(observer=observer, verbose=True).run([start()])
        self.assertEqual(observer.on_session_start.call_count, 1)

    def test_close_is_called_when_chunks_run_out(self):
        LiveSessionMultiplexer(observer=self.observer).run([start(), update(log_event(1000, 'one'))])
        self.observer.on_close.assert_called_once_with()

    def test_error_is_reported_then_raised(self):
        error = LiveSessionError('Live tail session timed out', [ARN])

        def chunks():
            yield start()
            raise error

        with self.assertRaises(LiveSessionError):
            LiveSessionMultiplexer(observer=self.observer).run(chunks())
        compare(
            [c for c in self.observer.mock_calls if c[0] in ('on_error', 'on_close')],
            [call.on_error(error), call.on_close()]
        )

    def test_cancel_is_checked_before_each_chunk(self):
        cancel = threading.Event()
        cancel.set()
        chunks = [update(log_event(1000, 'one')), SessionChunk(ChunkKind.STOP)]
        multiplexer = LiveSessionMultiplexer(observer=self.observer)
        multiplexer.run(chunks, cancel=cancel)
        self.observer.on_event.assert_not_called()
        self.assertEqual(multiplexer.events_delivered, 0)
        self.observer.on_close.assert_called_once_with()

    def test_cancel_stops_reading(self):
        cancel = threading.Event()
        cancel.set()
        chunks = [start(), update(log_event(1000, 'one'))]
        LiveSessionMultiplexer(observer=self.observer).run(chunks, cancel=cancel)
        self.observer.on_event.assert_not_called()
        self.observer.on_close.assert_called_once_with()


class TestLiveSessionMultiplexer_tail(unittest.TestCase):

    def test_requires_a_log_group(self):
        source = Mock()
        self.assertRaises(LiveSessionError, tail, source, [])
        source.open_live_session.assert_not_called()

    def test_opens_the_session(self):
        source = Mock()
        source.open_live_session.return_value = iter([start(), SessionChunk(ChunkKind.STOP)])
        observer = Mock(spec=FollowObserver)
        session = tail(source, ['my-group'], observer=observer, filter_pattern='ERROR', stream_prefixes=['web'])
        source.open_live_session.assert_called_once_with(
            ['my-group'],
            filter_pattern='ERROR',
            stream_names=None,
            stream_prefixes=['web']
        )
        self.assertEqual(session.session_id, 'session-1')
        observer.on_close.assert_called_once_with()
