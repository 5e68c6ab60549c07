"""
Trace delivery: senders and the buffer drain
"""

from .drain import ChunkReport, DrainEngine, DrainReport, drain
from .sender import CallableSender, HTTPSender, Sender

__all__ = [
    "Sender",
    "CallableSender",
    "HTTPSender",
    "ChunkReport",
    "DrainEngine",
    "DrainReport",
    "drain",
]
