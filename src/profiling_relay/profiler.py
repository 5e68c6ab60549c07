"""
Capture sessions

``Profiler.capture()`` pairs the start and stop of a unit of work explicitly::

    with profiler.capture("http", span, components) as handle:
        response = handle_request()
        handle.set_attribute("http_status_code", str(response.status))

When the block exits, normally or with an exception, the instrument is
stopped and its payload is either submitted (``sync`` mode) or stored in the
configured buffer. Failures while profiling are logged and never break the
profiled work unless ``RelayConfig.debug`` is set.
"""

import platform
import socket
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Mapping, Optional, Protocol, Sequence

from .config import RelayConfig
from .filtering import FilterResult, ProfilingDecision
from .logger import get_logger, log_with_context
from .storage.base import RecordId
from .storage.factory import TraceDestination, create_destination


class Instrument(Protocol):
    """The measuring engine; produces an opaque serialized trace"""

    def start(self, span_name: str) -> None:
        ...

    def set_attribute(self, key: str, value: str) -> None:
        ...

    def stop(self, span_name: str) -> Optional[bytes]:
        ...


@dataclass
class CaptureHandle:
    """Handle for one unit of work, active only when it is being profiled"""

    kind: str
    span_name: str
    active: bool
    decision: FilterResult
    attributes: Dict[str, str] = field(default_factory=dict)
    record_id: Optional[RecordId] = None

    def set_attribute(self, key: str, value: str) -> None:
        self.attributes[key] = str(value)

    def set_attributes(self, attributes: Mapping[str, str]) -> None:
        for key, value in attributes.items():
            self.set_attribute(key, value)

    def set_exception(self, message: str) -> None:
        self.set_attribute("exception", message)

    def set_exit_code(self, code: int) -> None:
        self.set_attribute("exit_code", str(code))


class Profiler:
    """Decides, captures and hands off traces for units of work"""

    def __init__(
        self,
        config: RelayConfig,
        instrument: Instrument,
        sender=None,
        destination: Optional[TraceDestination] = None,
        decision: Optional[ProfilingDecision] = None,
    ):
        if destination is None:
            if sender is None:
                raise ValueError("Profiler needs either a sender or a destination")
            destination = create_destination(config, sender)
        self.config = config
        self.instrument = instrument
        self.destination = destination
        self.decision = decision or ProfilingDecision(config)
        self.logger = get_logger("profiler")

    def default_attributes(self) -> Dict[str, str]:
        return {
            "hostname": socket.gethostname(),
            "environment": self.config.environment,
            "app_version": self.config.app_version,
            "python_version": platform.python_version(),
        }

    def _handle_error(
        self, exc: Exception, context: str, reraise: bool = True, **extra
    ) -> None:
        if self.config.debug and reraise:
            raise exc
        if self.config.log_errors:
            log_with_context(
                self.logger,
                "warning",
                f"Profiling error in {context}: {exc}",
                exc_info=exc,
                **extra,
            )

    @contextmanager
    def capture(
        self,
        kind: str,
        span_name: str,
        components: Sequence[str],
        subject_override: Optional[bool] = None,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> Iterator[CaptureHandle]:
        decision = self.decision.evaluate(kind, components, subject_override)
        handle = CaptureHandle(kind=kind, span_name=span_name, active=False, decision=decision)

        if decision.should_capture:
            try:
                self.instrument.start(span_name)
                handle.active = True
            except Exception as exc:
                self._handle_error(exc, "start", span=span_name)

        if not handle.active:
            yield handle
            return

        handle.set_attributes(self.default_attributes())
        if attributes:
            handle.set_attributes(attributes)

        work_failed = False
        try:
            yield handle
        except BaseException as exc:
            work_failed = True
            handle.set_exception(str(exc) or type(exc).__name__)
            raise
        finally:
            # Never mask the exception raised by the profiled work
            self._finish(handle, reraise=not work_failed)

    def _finish(self, handle: CaptureHandle, reraise: bool = True) -> None:
        try:
            for key, value in handle.attributes.items():
                self.instrument.set_attribute(key, value)
            payload = self.instrument.stop(handle.span_name)
            if payload is None:
                return
            handle.record_id = self.destination.store(payload)
        except Exception as exc:
            # The trace for this unit of work is lost; the work itself is not
            self._handle_error(
                exc, "stop", reraise=reraise, span=handle.span_name, kind=handle.kind
            )

    def close(self) -> None:
        self.destination.close()
