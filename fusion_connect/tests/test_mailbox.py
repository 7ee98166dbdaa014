import threading
import unittest

from fusion_connect.errors import ValidationError
from fusion_connect.kv import InMemoryKeyValueStore
from fusion_connect.mailbox import SignalMailbox, SignalMessage


class SignalMailboxTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryKeyValueStore()
        self.mailbox = SignalMailbox(self.store)

    def test_get_signals_preserves_order_without_clearing(self):
        first = SignalMessage.create("alice", "bob", "offer-1", "offer")
        second = SignalMessage.create("carol", "bob", "cand-1", "candidate")
        self.mailbox.save_signal("bob", first)
        self.mailbox.save_signal("bob", second)

        self.assertEqual(self.mailbox.get_signals("bob"), [first, second])
        self.assertEqual(self.mailbox.get_signals("bob"), [first, second])

    def test_clear_signals(self):
        self.mailbox.send("alice", "bob", "offer-1", "offer")
        self.mailbox.clear_signals("bob")
        self.assertEqual(self.mailbox.get_signals("bob"), [])
        # Clearing an empty mailbox is fine.
        self.mailbox.clear_signals("bob")

    def test_drain_empties_mailbox(self):
        sent = self.mailbox.send("alice", "bob", "offer-1", "offer")
        self.assertEqual(self.mailbox.drain("bob"), [sent])
        self.assertEqual(self.mailbox.drain("bob"), [])

    def test_send_validates_before_writing(self):
        with self.assertRaises(ValidationError):
            self.mailbox.send("alice", "bob", None, "offer")
        with self.assertRaises(ValidationError):
            self.mailbox.send("alice", "", "x", "offer")
        self.assertEqual(self.store.data, {})

    def test_payload_is_opaque(self):
        payload = {"sdp": "v=0", "nested": [1, 2, {"a": None}]}
        self.mailbox.send("alice", "bob", payload, "whatever")
        [message] = self.mailbox.drain("bob")
        self.assertEqual(message.signal, payload)
        self.assertEqual(message.type, "whatever")

    def test_read_requires_username(self):
        with self.assertRaises(ValidationError):
            self.mailbox.drain("")
        with self.assertRaises(ValidationError):
            self.mailbox.get_signals(None)

    def test_as_dict_uses_wire_names(self):
        message = SignalMessage.create("alice", "bob", "x", "offer")
        self.assertEqual(
            set(message.as_dict()), {"from", "to", "signal", "type", "timestamp"}
        )
        self.assertEqual(SignalMessage.from_dict(message.as_dict()), message)

    def test_concurrent_drains_partition_messages(self):
        total = 500
        for i in range(total):
            self.mailbox.send("alice", "bob", {"n": i}, "candidate")

        results: list[list[int]] = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(8)

        def reader():
            barrier.wait()
            got = [m.signal["n"] for m in self.mailbox.drain("bob")]
            with results_lock:
                results.append(got)

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        delivered = [n for batch in results for n in batch]
        self.assertEqual(sorted(delivered), list(range(total)))
        self.assertEqual(len(delivered), len(set(delivered)))


if __name__ == "__main__":
    unittest.main()
