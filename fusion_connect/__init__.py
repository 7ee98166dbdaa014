"""
Call signaling for Fusion Connect.

This package provides a FastAPI service holding per-user signal mailboxes
and call history, plus the client-side session tracker that drives a single
call through calling/connected/ended using those mailboxes.
"""
