"""
Select the trace destination for the configured sending mode
"""

from typing import TYPE_CHECKING, Optional, Union

from ..config import RelayConfig, SendingMode
from ..errors import ConfigurationError
from .base import TraceBuffer
from .database_buffer import DatabaseTraceBuffer
from .direct import DirectDelivery
from .file_buffer import FileTraceBuffer

if TYPE_CHECKING:
    from ..delivery.sender import Sender

TraceDestination = Union[TraceBuffer, DirectDelivery]


def create_buffer(config: RelayConfig) -> Optional[TraceBuffer]:
    """Return the buffer for ``file``/``database`` modes, None for ``sync``"""
    mode = config.sending.mode
    if mode is SendingMode.FILE:
        return FileTraceBuffer(config.file)
    if mode is SendingMode.DATABASE:
        return DatabaseTraceBuffer(config.database)
    if mode is SendingMode.SYNC:
        return None
    raise ConfigurationError(f"Unknown sending mode {mode!r}")


def create_destination(config: RelayConfig, sender: "Sender") -> TraceDestination:
    """Where a finished capture goes: the sender itself or a buffer"""
    if config.sending.mode is SendingMode.SYNC:
        return DirectDelivery(sender)
    buffer = create_buffer(config)
    if buffer is None:
        raise ConfigurationError(
            f"Sending mode {config.sending.mode.value!r} has no buffering strategy"
        )
    return buffer
