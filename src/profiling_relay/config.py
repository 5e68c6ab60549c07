"""
Configuration for the profiling relay

Configuration objects are immutable values built once and handed to each
component explicitly. ``RelayConfig.from_env()`` reads the
``PROFILING_RELAY_*`` environment variables.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

from .errors import ConfigurationError
from .filtering.sampling import validate_sample_rate

ENV_PREFIX = "PROFILING_RELAY_"

SUBJECT_KINDS = ("http", "console", "queue", "schedule", "exception")

PathLike = Union[str, "os.PathLike[str]"]


class SendingMode(str, Enum):
    """Where captured traces go once a unit of work finishes"""

    SYNC = "sync"
    FILE = "file"
    DATABASE = "database"

    @classmethod
    def parse(cls, value: Union[str, "SendingMode"]) -> "SendingMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(mode.value for mode in cls)
            raise ConfigurationError(
                f"Unknown sending mode {value!r}, expected one of: {valid}"
            ) from None


def _default_includes() -> Dict[str, Tuple[str, ...]]:
    return {kind: (".*",) for kind in SUBJECT_KINDS}


def _default_excludes() -> Dict[str, Tuple[str, ...]]:
    excludes: Dict[str, Tuple[str, ...]] = {kind: () for kind in SUBJECT_KINDS}
    excludes["console"] = ("queue:work",)
    return excludes


def normalize_pattern_map(
    patterns: Mapping[str, Sequence[str]], label: str
) -> Dict[str, Tuple[str, ...]]:
    """Validate an include/exclude mapping and freeze its lists into tuples"""
    if not isinstance(patterns, Mapping):
        raise ConfigurationError(f"Configured `{label}` must be a mapping of kind to patterns")

    normalized: Dict[str, Tuple[str, ...]] = {}
    for kind, values in patterns.items():
        if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple)):
            raise ConfigurationError(
                f"Configured `{label}.{kind}` must be a list of patterns"
            )
        for value in values:
            if not isinstance(value, str):
                raise ConfigurationError(
                    f"Configured `{label}.{kind}` contains a non-string pattern: {value!r}"
                )
        normalized[str(kind)] = tuple(values)
    return normalized


@dataclass(frozen=True)
class FileBufferConfig:
    """Settings for the file-backed trace buffer"""

    directory: PathLike = "storage/profiling_relay"
    suffix: str = ".trace.json"


@dataclass(frozen=True)
class DatabaseBufferConfig:
    """Settings for the table-backed trace buffer"""

    url: str = "sqlite:///profiling_relay.sqlite"
    table: str = "profiling_relay_traces"
    echo: bool = False


@dataclass(frozen=True)
class SendingConfig:
    """Delivery settings"""

    mode: SendingMode = SendingMode.SYNC
    timeout: float = 10.0
    url: str = "http://localhost:8080/traces"
    api_key: Optional[str] = None
    chunk_size: int = 100

    def __post_init__(self):
        object.__setattr__(self, "mode", SendingMode.parse(self.mode))
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)):
            raise ConfigurationError("Configured `sending.timeout` must be a number of seconds")
        if self.timeout <= 0:
            raise ConfigurationError("Configured `sending.timeout` must be positive")
        if isinstance(self.chunk_size, bool) or not isinstance(self.chunk_size, int):
            raise ConfigurationError("Configured `sending.chunk_size` must be an integer")
        if self.chunk_size < 1:
            raise ConfigurationError("Configured `sending.chunk_size` must be at least 1")


@dataclass(frozen=True)
class RelayConfig:
    """Top level configuration for capture decisions, buffering and delivery"""

    enabled: bool = False
    sample_rate: float = 1.0
    sending: SendingConfig = field(default_factory=SendingConfig)
    include: Mapping[str, Tuple[str, ...]] = field(default_factory=_default_includes)
    exclude: Mapping[str, Tuple[str, ...]] = field(default_factory=_default_excludes)
    file: FileBufferConfig = field(default_factory=FileBufferConfig)
    database: DatabaseBufferConfig = field(default_factory=DatabaseBufferConfig)
    environment: str = ""
    app_version: str = ""
    debug: bool = False
    log_errors: bool = True

    def __post_init__(self):
        validate_sample_rate(self.sample_rate)
        object.__setattr__(self, "include", normalize_pattern_map(self.include, "include"))
        object.__setattr__(self, "exclude", normalize_pattern_map(self.exclude, "exclude"))

    def includes_for(self, kind: str) -> Tuple[str, ...]:
        return self.include.get(kind, ())

    def excludes_for(self, kind: str) -> Tuple[str, ...]:
        return self.exclude.get(kind, ())

    @classmethod
    def _parse_bool_env(cls, key: str, default: str = "false") -> bool:
        """Parse boolean from environment variable"""
        return os.getenv(ENV_PREFIX + key, default).strip().lower() in ("1", "true", "yes")

    @classmethod
    def _parse_number_env(cls, key: str, default: str, cast=float):
        raw = os.getenv(ENV_PREFIX + key, default)
        try:
            return cast(raw)
        except ValueError:
            raise ConfigurationError(
                f"Environment variable {ENV_PREFIX + key} must be numeric, got {raw!r}"
            ) from None

    @classmethod
    def _parse_patterns_env(
        cls, prefix: str, defaults: Dict[str, Tuple[str, ...]]
    ) -> Dict[str, Tuple[str, ...]]:
        """Read comma separated pattern lists, one variable per subject kind"""
        patterns = dict(defaults)
        for kind in SUBJECT_KINDS:
            raw = os.getenv(f"{ENV_PREFIX}{prefix}_{kind.upper()}")
            if raw is None:
                continue
            patterns[kind] = tuple(p.strip() for p in raw.split(",") if p.strip())
        return patterns

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Create configuration from environment variables"""
        sending = SendingConfig(
            mode=os.getenv(ENV_PREFIX + "SENDING_MODE", "sync"),
            timeout=cls._parse_number_env("SENDING_TIMEOUT", "10"),
            url=os.getenv(ENV_PREFIX + "SENDING_URL", SendingConfig.url),
            api_key=os.getenv(ENV_PREFIX + "API_KEY"),
            chunk_size=cls._parse_number_env("CHUNK_SIZE", "100", cast=int),
        )
        return cls(
            enabled=cls._parse_bool_env("ENABLED"),
            sample_rate=cls._parse_number_env("SAMPLE_RATE", "1.0"),
            sending=sending,
            include=cls._parse_patterns_env("INCLUDE", _default_includes()),
            exclude=cls._parse_patterns_env("EXCLUDE", _default_excludes()),
            file=FileBufferConfig(
                directory=os.getenv(ENV_PREFIX + "FILE_DIRECTORY", FileBufferConfig.directory),
                suffix=os.getenv(ENV_PREFIX + "FILE_SUFFIX", FileBufferConfig.suffix),
            ),
            database=DatabaseBufferConfig(
                url=os.getenv(ENV_PREFIX + "DATABASE_URL", DatabaseBufferConfig.url),
                table=os.getenv(ENV_PREFIX + "DATABASE_TABLE", DatabaseBufferConfig.table),
            ),
            environment=os.getenv(ENV_PREFIX + "ENVIRONMENT", ""),
            app_version=os.getenv(ENV_PREFIX + "APP_VERSION", ""),
            debug=cls._parse_bool_env("DEBUG"),
            log_errors=cls._parse_bool_env("LOG_ERRORS", "true"),
        )
