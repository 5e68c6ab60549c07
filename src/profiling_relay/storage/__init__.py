"""
Durable buffers for captured traces
"""

from .base import RecordId, TraceBuffer, TraceRecord
from .database_buffer import DatabaseTraceBuffer
from .direct import DirectDelivery
from .factory import TraceDestination, create_buffer, create_destination
from .file_buffer import FileTraceBuffer

__all__ = [
    "RecordId",
    "TraceBuffer",
    "TraceRecord",
    "FileTraceBuffer",
    "DatabaseTraceBuffer",
    "DirectDelivery",
    "TraceDestination",
    "create_buffer",
    "create_destination",
]
