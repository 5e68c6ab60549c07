"""
Senders submit one serialized trace to the remote collector
"""

import gzip
import urllib.request
from typing import Callable, Dict, Optional, Protocol
from urllib.error import HTTPError, URLError

from .. import __version__
from ..config import SendingConfig
from ..errors import ConfigurationError, DeliveryError


class Sender(Protocol):
    """Anything that can deliver a trace payload

    ``submit`` returns on success and raises on failure.
    """

    def submit(self, payload: bytes) -> None:
        ...


class CallableSender:
    """Adapts a plain function to the ``Sender`` interface"""

    def __init__(self, func: Callable[[bytes], object]):
        if not callable(func):
            raise ConfigurationError("CallableSender requires a callable")
        self.func = func

    def submit(self, payload: bytes) -> None:
        self.func(payload)


class HTTPSender:
    """POSTs each trace to the collector endpoint"""

    def __init__(
        self,
        config: SendingConfig,
        headers: Optional[Dict[str, str]] = None,
        compress_payload: bool = True,
        api_key_header: str = "X-API-Key",
        user_agent: str = f"ProfilingRelay/{__version__}",
    ):
        if not isinstance(config.url, str) or not config.url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"Configured `sending.url` must be an http(s) URL, got {config.url!r}"
            )
        self.config = config
        self.headers = dict(headers or {})
        self.compress_payload = compress_payload
        self.api_key_header = api_key_header
        self.user_agent = user_agent

    def _prepare_request_headers(self, data_length: int) -> Dict[str, str]:
        """Prepare HTTP request headers"""
        headers = {
            "Content-Type": "application/octet-stream",
            "User-Agent": self.user_agent,
            "Content-Length": str(data_length),
        }
        if self.compress_payload:
            headers["Content-Encoding"] = "gzip"
        if self.config.api_key:
            headers[self.api_key_header] = self.config.api_key
        headers.update(self.headers)
        return headers

    def build_request(self, payload: bytes) -> urllib.request.Request:
        data = gzip.compress(payload) if self.compress_payload else payload
        return urllib.request.Request(
            self.config.url,
            data=data,
            headers=self._prepare_request_headers(len(data)),
            method="POST",
        )

    def _execute_http_request(self, request: urllib.request.Request) -> None:
        """Execute HTTP request and handle response"""
        with urllib.request.urlopen(request, timeout=self.config.timeout) as response:
            if response.status >= 400:
                raise DeliveryError(f"Collector responded with HTTP {response.status}")

    def submit(self, payload: bytes) -> None:
        request = self.build_request(payload)
        try:
            self._execute_http_request(request)
        except HTTPError as exc:
            raise DeliveryError(f"Collector responded with HTTP {exc.code}") from exc
        except (URLError, OSError) as exc:
            raise DeliveryError(f"Failed to reach collector: {exc}") from exc
