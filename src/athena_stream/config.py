from dataclasses import dataclass, replace
from typing import Optional

from athena_stream.errors import ConfigError
from athena_stream.util.env import get_env_float, get_env_int, get_env_str

DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_FORMAT = "array"
DEFAULT_CONCURRENT_EXEC_MAX = 5
DEFAULT_SLOT_CHECK_INTERVAL_SECONDS = 0.1
DEFAULT_STREAM_CHECK_INTERVAL_SECONDS = 0.1
DEFAULT_BASE_RETRY_WAIT_SECONDS = 0.2
DEFAULT_RETRY_COUNT_MAX = 5


@dataclass(frozen=True)
class ClientConfig:
    """Settings shared by every query a client runs.

    ``bucket_uri`` is the storage location query output is written to.
    ``base_retry_wait_seconds`` and ``retry_count_max`` are accepted for
    compatibility but no retry policy consults them.
    """

    bucket_uri: str
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    query_timeout_seconds: float = 0
    format: str = DEFAULT_FORMAT
    concurrent_exec_max: int = DEFAULT_CONCURRENT_EXEC_MAX
    slot_check_interval_seconds: float = DEFAULT_SLOT_CHECK_INTERVAL_SECONDS
    stream_check_interval_seconds: float = DEFAULT_STREAM_CHECK_INTERVAL_SECONDS
    base_retry_wait_seconds: float = DEFAULT_BASE_RETRY_WAIT_SECONDS
    retry_count_max: int = DEFAULT_RETRY_COUNT_MAX

    def validated(self) -> "ClientConfig":
        """Return a copy with floors applied, raising ConfigError when unusable."""
        if not self.bucket_uri:
            raise ConfigError("bucket uri required")
        if isinstance(self.concurrent_exec_max, bool) or not isinstance(
            self.concurrent_exec_max, int
        ):
            raise ConfigError("concurrent_exec_max must be an integer.")
        if self.concurrent_exec_max < 1:
            raise ConfigError(
                f"concurrent_exec_max must be at least 1, got {self.concurrent_exec_max}."
            )
        return replace(
            self,
            poll_interval_seconds=max(self.poll_interval_seconds, 0),
            query_timeout_seconds=max(self.query_timeout_seconds, 0),
            slot_check_interval_seconds=max(self.slot_check_interval_seconds, 0),
            stream_check_interval_seconds=max(self.stream_check_interval_seconds, 0),
        )

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load client config from environment variables."""
        bucket_uri = get_env_str("ATHENA_OUTPUT_LOCATION")
        if not bucket_uri:
            raise ConfigError(
                "Athena client missing required config: ATHENA_OUTPUT_LOCATION. "
                "Set it to the S3 location query results are written to."
            )
        return cls(
            bucket_uri=bucket_uri,
            poll_interval_seconds=get_env_float(
                "ATHENA_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            query_timeout_seconds=get_env_float("ATHENA_QUERY_TIMEOUT_SECONDS", 0.0),
            format=get_env_str("ATHENA_RESULT_FORMAT", DEFAULT_FORMAT),
            concurrent_exec_max=get_env_int(
                "ATHENA_CONCURRENT_EXEC_MAX", DEFAULT_CONCURRENT_EXEC_MAX
            ),
            slot_check_interval_seconds=get_env_float(
                "ATHENA_SLOT_CHECK_INTERVAL_SECONDS", DEFAULT_SLOT_CHECK_INTERVAL_SECONDS
            ),
            stream_check_interval_seconds=get_env_float(
                "ATHENA_STREAM_CHECK_INTERVAL_SECONDS", DEFAULT_STREAM_CHECK_INTERVAL_SECONDS
            ),
            base_retry_wait_seconds=get_env_float(
                "ATHENA_BASE_RETRY_WAIT_SECONDS", DEFAULT_BASE_RETRY_WAIT_SECONDS
            ),
            retry_count_max=get_env_int("ATHENA_RETRY_COUNT_MAX", DEFAULT_RETRY_COUNT_MAX),
        ).validated()


@dataclass(frozen=True)
class QueryOptions:
    """Per-call overrides for a single query."""

    format: Optional[str] = None
    timeout_seconds: Optional[float] = None

    def resolve_format(self, config: ClientConfig) -> str:
        """Return the output format for this call."""
        return self.format or config.format

    def resolve_timeout(self, config: ClientConfig) -> float:
        """Return the effective timeout; 0 disables the deadline."""
        if self.timeout_seconds is not None:
            return max(self.timeout_seconds, 0)
        return config.query_timeout_seconds
