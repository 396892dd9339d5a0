"""Core components of the Fluxgate gateway.

- **GatewayConfig** / **config**: settings loaded from ``FLUX_*`` variables
- **ClientManager**: lazy, shared connection to the hosted model
- **GatewayError** and subclasses: failures mapped to HTTP status codes
"""

from fluxgate.core.client_manager import ClientManager, ConnectionState
from fluxgate.core.config import GatewayConfig, config
from fluxgate.core.errors import (
    AuthorizationError,
    GatewayError,
    PromptValidationError,
    UpstreamError,
)

__all__ = [
    "AuthorizationError",
    "ClientManager",
    "ConnectionState",
    "GatewayConfig",
    "GatewayError",
    "PromptValidationError",
    "UpstreamError",
    "config",
]
