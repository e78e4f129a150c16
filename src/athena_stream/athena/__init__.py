"""Athena-backed gateway components."""

from .config import AthenaGatewayConfig
from .gateway import AthenaQueryGateway

__all__ = [
    "AthenaGatewayConfig",
    "AthenaQueryGateway",
]
