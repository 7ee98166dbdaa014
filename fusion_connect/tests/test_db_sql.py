import unittest

from fusion_connect.db import CallHistoryRecord, InMemoryCallHistoryDb, SqlCallHistoryDb
from fusion_connect.errors import ValidationError
from fusion_connect.history import CallHistoryService


class SqlCallHistoryDbTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL client logic.
    """

    def setUp(self):
        self.db = SqlCallHistoryDb("sqlite+pysqlite:///:memory:")

    def test_save_and_get(self):
        record = CallHistoryRecord(caller="a", recipient="b", type="voice", duration=5)
        self.db.save_call(record)
        self.assertEqual(self.db.get_call(record.id), record)
        self.assertIsNone(self.db.get_call("missing"))

    def test_list_calls_for_newest_first(self):
        old = CallHistoryRecord(caller="a", recipient="b", type="voice", timestamp=1000)
        new = CallHistoryRecord(caller="c", recipient="a", type="video", timestamp=2000)
        other = CallHistoryRecord(caller="c", recipient="d", type="voice", timestamp=3000)
        for record in (old, new, other):
            self.db.save_call(record)

        self.assertEqual(self.db.list_calls_for("a"), [new, old])
        self.assertEqual(self.db.list_calls_for("d"), [other])
        self.assertEqual(self.db.list_calls_for("nobody"), [])

    def test_millisecond_timestamps_survive(self):
        record = CallHistoryRecord(
            caller="a", recipient="b", type="voice", timestamp=1760000000123
        )
        self.db.save_call(record)
        self.assertEqual(self.db.get_call(record.id).timestamp, 1760000000123)


class CallHistoryServiceTests(unittest.TestCase):
    def setUp(self):
        self.service = CallHistoryService(InMemoryCallHistoryDb())

    def test_defaults(self):
        record = self.service.record_call("a", "b", "voice")
        self.assertEqual(record.duration, 0)
        self.assertEqual(record.status, "completed")
        self.assertEqual(self.service.calls_for("b"), [record])

    def test_validation(self):
        with self.assertRaises(ValidationError):
            self.service.record_call("a", None, "voice")
        with self.assertRaises(ValidationError):
            self.service.record_call("a", "b", "voice", status="ringing")
        with self.assertRaises(ValidationError):
            self.service.record_call("a", "b", "voice", duration=-1)
        with self.assertRaises(ValidationError):
            self.service.calls_for("")


if __name__ == "__main__":
    unittest.main()
