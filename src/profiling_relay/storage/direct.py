"""
Direct delivery for the ``sync`` sending mode

Traces are handed to the sender as soon as they are captured. There is nothing
to count, drain or clear, so this type deliberately does not implement the
``TraceBuffer`` interface.
"""

from typing import TYPE_CHECKING

from ..logger import get_logger, log_with_context
from .base import ensure_bytes

if TYPE_CHECKING:
    from ..delivery.sender import Sender


class DirectDelivery:
    """Submits each stored payload immediately"""

    kind = "sync"

    def __init__(self, sender: "Sender"):
        self.sender = sender
        self.logger = get_logger("storage.direct")

    def store(self, payload: bytes) -> None:
        payload = ensure_bytes(payload)
        self.sender.submit(payload)
        log_with_context(self.logger, "debug", "Submitted trace", size=len(payload))

    def close(self) -> None:
        pass
