"""
Profiling Relay

Decides which units of work to profile, buffers captured traces durably and
drains them to a remote collector in chunks.
"""

__version__ = "0.1.0"

from .config import (
    DatabaseBufferConfig,
    FileBufferConfig,
    RelayConfig,
    SendingConfig,
    SendingMode,
)
from .delivery import (
    CallableSender,
    ChunkReport,
    DrainEngine,
    DrainReport,
    HTTPSender,
    Sender,
    drain,
)
from .errors import (
    ConfigurationError,
    DeliveryError,
    ProfilingRelayError,
    StorageError,
)
from .filtering import (
    FilterResult,
    PatternSet,
    ProfilingDecision,
    SamplingGate,
    matches,
    should_capture,
    should_sample,
)
from .logger import (
    PlainTextFormatter,
    StructuredFormatter,
    configure_logging,
    get_logger,
    log_with_context,
)
from .profiler import CaptureHandle, Instrument, Profiler
from .storage import (
    DatabaseTraceBuffer,
    DirectDelivery,
    FileTraceBuffer,
    TraceBuffer,
    TraceRecord,
    create_buffer,
    create_destination,
)

__all__ = [
    "__version__",
    # Configuration
    "RelayConfig",
    "SendingConfig",
    "SendingMode",
    "FileBufferConfig",
    "DatabaseBufferConfig",
    # Errors
    "ProfilingRelayError",
    "ConfigurationError",
    "StorageError",
    "DeliveryError",
    # Decisions
    "FilterResult",
    "PatternSet",
    "ProfilingDecision",
    "SamplingGate",
    "matches",
    "should_capture",
    "should_sample",
    # Storage
    "TraceBuffer",
    "TraceRecord",
    "FileTraceBuffer",
    "DatabaseTraceBuffer",
    "DirectDelivery",
    "create_buffer",
    "create_destination",
    # Delivery
    "Sender",
    "CallableSender",
    "HTTPSender",
    "ChunkReport",
    "DrainEngine",
    "DrainReport",
    "drain",
    # Capture
    "Profiler",
    "CaptureHandle",
    "Instrument",
    # Logging
    "StructuredFormatter",
    "PlainTextFormatter",
    "configure_logging",
    "get_logger",
    "log_with_context",
]
