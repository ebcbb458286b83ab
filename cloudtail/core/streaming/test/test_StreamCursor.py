import unittest

from cloudtail.core.streaming import LogEvent
from cloudtail.core.streaming.events import StreamCursor


class TestStreamCursor(unittest.TestCase):

    def test_since_starts_at_last_timestamp(self):
        self.assertEqual(StreamCursor(last_timestamp=500).since, 500)

    def test_advance_only_moves_forward(self):
        cursor = StreamCursor(last_timestamp=500)
        cursor.advance(1000)
        cursor.advance(700)
        self.assertEqual(cursor.last_timestamp, 1000)

    def test_settle_moves_the_window(self):
        cursor = StreamCursor(last_timestamp=500, next_token='page-2')
        cursor.advance(1000)
        cursor.settle()
        self.assertEqual(cursor.since, 1000)
        self.assertIsNone(cursor.next_token)

    def test_look_back_leaves_last_timestamp_alone(self):
        cursor = StreamCursor(last_timestamp=50000)
        cursor.look_back(60000, 20000)
        self.assertEqual(cursor.since, 40000)
        self.assertEqual(cursor.last_timestamp, 50000)

    def test_seen(self):
        cursor = StreamCursor(last_timestamp=0)
        self.assertFalse(cursor.seen('1'))
        self.assertTrue(cursor.seen('1'))
        self.assertFalse(cursor.seen(None))
        self.assertFalse(cursor.seen(None))

    def test_seen_forgets_oldest(self):
        cursor = StreamCursor(last_timestamp=0, max_seen_ids=2)
        for event_id in ('1', '2', '3'):
            cursor.seen(event_id)
        self.assertFalse(cursor.seen('1'))
        self.assertTrue(cursor.seen('3'))


class TestLogEvent_from_aws(unittest.TestCase):

    def test_filter_log_events_entry(self):
        event = LogEvent.from_aws(
            {'timestamp': 1000, 'message': 'hello', 'eventId': '1', 'logStreamName': 's1'},
            stream_name='other'
        )
        self.assertEqual(event, LogEvent(timestamp=1000, message='hello', stream_name='s1', event_id='1'))

    def test_stream_name_fallback(self):
        self.assertEqual(LogEvent.from_aws({'timestamp': 1000, 'message': 'hello'}, stream_name='s1').stream_name, 's1')

    def test_missing_fields(self):
        self.assertIsNone(LogEvent.from_aws({'timestamp': 1000}))
        self.assertIsNone(LogEvent.from_aws({'message': 'hello'}))
