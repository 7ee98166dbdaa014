import json
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

from fusion_connect.call_data import CallData
from fusion_connect.cli import main
from fusion_connect.errors import CallStateError
from fusion_connect.client import SignalingClient
from fusion_connect.local_store import InMemoryActiveCallStore, JsonFileActiveCallStore
from fusion_connect.scheduler import ThreadingScheduler


def _response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(str(status_code))
    return response


class SignalingClientTests(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.client = SignalingClient("http://svc/api/", timeout=5, session=self.session)

    def test_send_signal_posts_wire_body(self):
        self.session.post.return_value = _response({"success": True})
        self.client.send_signal("alice", "bob", {"sdp": "x"}, "offer")
        self.session.post.assert_called_once_with(
            "http://svc/api/signal",
            json={"from": "alice", "to": "bob", "signal": {"sdp": "x"}, "type": "offer"},
            timeout=5,
        )

    def test_fetch_signals_parses_messages(self):
        self.session.get.return_value = _response(
            {
                "signals": [
                    {"from": "alice", "to": "bob", "signal": "s", "type": "offer", "timestamp": 7}
                ]
            }
        )
        [message] = self.client.fetch_signals("bob")
        self.assertEqual((message.sender, message.timestamp), ("alice", 7))
        self.session.get.assert_called_once_with(
            "http://svc/api/signal", params={"username": "bob"}, timeout=5
        )

    def test_record_call_omits_default_status(self):
        self.session.post.return_value = _response({"call": {"id": "call-1"}})
        self.assertEqual(self.client.record_call("a", "b", "voice"), {"id": "call-1"})
        body = self.session.post.call_args.kwargs["json"]
        self.assertNotIn("status", body)
        self.assertEqual(body["duration"], 0)

    def test_http_errors_propagate(self):
        self.session.get.return_value = _response({"error": "Username required"}, 400)
        with self.assertRaises(requests.HTTPError):
            self.client.list_calls("")


class ActiveCallStoreTests(unittest.TestCase):
    def test_json_file_store_survives_new_instance(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "active_call.json"
            call = CallData(caller="alice", recipient="bob", type="video")
            JsonFileActiveCallStore(path).save(call)

            reopened = JsonFileActiveCallStore(path)
            self.assertEqual(reopened.load(), call)
            self.assertEqual(json.loads(path.read_text())["startTime"], call.start_time)

            reopened.clear()
            self.assertIsNone(reopened.load())
            reopened.clear()

    def test_corrupt_file_is_discarded(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "active_call.json"
            path.write_text("{not json")
            store = JsonFileActiveCallStore(path)
            self.assertIsNone(store.load())
            self.assertFalse(path.exists())

    def test_in_memory_store_round_trips_end_time(self):
        store = InMemoryActiveCallStore()
        call = CallData(
            caller="a", recipient="b", type="voice", status="ended", start_time=1000, end_time=4500
        )
        store.save(call)
        self.assertEqual(store.stored["endTime"], 4500)
        self.assertEqual(store.load().duration_seconds(), 3)


class ThreadingSchedulerTests(unittest.TestCase):
    def test_runs_and_cancels(self):
        fired = threading.Event()
        ThreadingScheduler().call_later(0.01, fired.set)
        self.assertTrue(fired.wait(2))

        never = threading.Event()
        timer = ThreadingScheduler().call_later(0.2, never.set)
        timer.cancel()
        self.assertFalse(never.wait(0.4))


class CliTests(unittest.TestCase):
    @patch("fusion_connect.cli.SignalingClient")
    def test_send_parses_json_signal(self, mock_client_cls):
        client = mock_client_cls.return_value
        code = main(
            [
                "--url",
                "http://svc/api",
                "send",
                "--from",
                "alice",
                "--to",
                "bob",
                "--type",
                "offer",
                "--signal",
                '{"sdp": "v=0"}',
            ]
        )
        self.assertEqual(code, 0)
        mock_client_cls.assert_called_once()
        self.assertEqual(mock_client_cls.call_args.args[0], "http://svc/api")
        client.send_signal.assert_called_once_with("alice", "bob", {"sdp": "v=0"}, "offer")

    @patch("fusion_connect.cli.SignalingClient")
    def test_history(self, mock_client_cls):
        mock_client_cls.return_value.list_calls.return_value = [{"id": "call-1"}]
        self.assertEqual(main(["history", "alice"]), 0)
        mock_client_cls.return_value.list_calls.assert_called_once_with("alice")

    @patch("fusion_connect.cli.create_tracker")
    def test_call_follows_until_cleared(self, mock_create):
        tracker = mock_create.return_value

        def initiate(to, type):
            on_change = tracker.subscribe.call_args.args[0]
            on_change(None)

        tracker.initiate.side_effect = initiate
        code = main(["call", "--from", "alice", "--to", "bob", "--type", "video"])
        self.assertEqual(code, 0)
        self.assertEqual(mock_create.call_args.args[0], "alice")
        tracker.initiate.assert_called_once_with("bob", "video")
        tracker.poll.assert_not_called()

    @patch("fusion_connect.cli.create_tracker")
    def test_call_refused_while_previous_call_is_active(self, mock_create):
        tracker = mock_create.return_value
        tracker.initiate.side_effect = CallStateError("Already in a call")
        code = main(["call", "--from", "alice", "--to", "carol"])
        self.assertEqual(code, 1)
        tracker.poll.assert_not_called()

    @patch("fusion_connect.cli.SignalingClient")
    def test_drain(self, mock_client_cls):
        mock_client_cls.return_value.fetch_signals.return_value = []
        self.assertEqual(main(["drain", "bob"]), 0)
        mock_client_cls.return_value.fetch_signals.assert_called_once_with("bob")


if __name__ == "__main__":
    unittest.main()
