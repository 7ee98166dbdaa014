"""
Command line client for the signaling service.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading

from fusion_connect.client import SignalingClient, create_tracker
from fusion_connect.config import get_settings
from fusion_connect.errors import FusionError

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fusion Connect signaling client")
    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="Override the signaling service base URL",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    send = sub.add_parser("send", help="Push one signal into a mailbox")
    send.add_argument("--from", dest="sender", required=True)
    send.add_argument("--to", required=True)
    send.add_argument("--type", required=True, help="offer, answer, candidate, ...")
    send.add_argument("--signal", required=True, help="Payload, JSON or plain text")

    drain = sub.add_parser("drain", help="Read and clear a user's mailbox")
    drain.add_argument("username")

    history = sub.add_parser("history", help="List a user's call history")
    history.add_argument("username")

    call = sub.add_parser("call", help="Place a call and follow it until it ends")
    call.add_argument("--from", dest="sender", required=True)
    call.add_argument("--to", required=True)
    call.add_argument("--type", choices=("voice", "video"), default="voice")
    call.add_argument(
        "--poll-interval",
        type=float,
        default=1.0,
        help="Seconds between mailbox polls",
    )
    return parser


def _parse_signal(raw: str):
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _follow_call(args: argparse.Namespace, settings) -> int:
    if args.url:
        settings = settings.model_copy(update={"signaling_base_url": args.url})
    tracker = create_tracker(args.sender, settings)
    finished = threading.Event()

    def on_change(call):
        if call is None:
            finished.set()
            return
        print(f"{call.id}: {call.status}")

    tracker.subscribe(on_change)
    try:
        tracker.initiate(args.to, args.type)
    except FusionError as exc:
        print(f"Cannot place call: {exc.message}", file=sys.stderr)
        return 1
    try:
        while not finished.is_set():
            tracker.poll()
            finished.wait(args.poll_interval)
    except KeyboardInterrupt:
        logger.info("Hanging up")
        tracker.end()
        finished.wait(tracker.clear_delay + 1)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    if args.command == "call":
        return _follow_call(args, settings)

    client = SignalingClient(
        args.url or settings.signaling_base_url,
        timeout=settings.request_timeout_seconds,
    )
    if args.command == "send":
        client.send_signal(args.sender, args.to, _parse_signal(args.signal), args.type)
        print(json.dumps({"success": True}))
    elif args.command == "drain":
        signals = client.fetch_signals(args.username)
        print(json.dumps({"signals": [s.as_dict() for s in signals]}, indent=2))
    elif args.command == "history":
        print(json.dumps({"calls": client.list_calls(args.username)}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
