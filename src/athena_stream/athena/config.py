from dataclasses import dataclass
from typing import Optional

from athena_stream.errors import ConfigError
from athena_stream.util.env import get_env_int, get_env_str


@dataclass(frozen=True)
class AthenaGatewayConfig:
    """Connection settings for the boto3-backed Athena gateway."""

    region: str
    workgroup: Optional[str] = None
    database: Optional[str] = None
    page_size: Optional[int] = None

    @classmethod
    def from_env(cls) -> "AthenaGatewayConfig":
        """Load Athena gateway config from environment variables."""
        region = get_env_str("AWS_REGION")
        if not region:
            raise ConfigError("Athena gateway missing required config: AWS_REGION.")
        page_size = get_env_int("ATHENA_PAGE_SIZE")
        if page_size is not None and not 1 <= page_size <= 1000:
            raise ConfigError(f"ATHENA_PAGE_SIZE must be between 1 and 1000, got {page_size}.")
        return cls(
            region=region,
            workgroup=get_env_str("ATHENA_WORKGROUP") or None,
            database=get_env_str("ATHENA_DATABASE") or None,
            page_size=page_size,
        )
