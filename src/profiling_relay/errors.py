"""
Exception hierarchy for the profiling relay
"""


class ProfilingRelayError(RuntimeError):
    """Base exception for all profiling relay failures"""


class ConfigurationError(ProfilingRelayError, ValueError):
    """Raised when configuration is missing or invalid"""


class StorageError(ProfilingRelayError):
    """Raised when a trace buffer backend cannot complete an operation"""


class DeliveryError(ProfilingRelayError):
    """Raised when a trace payload could not be submitted to the collector"""
