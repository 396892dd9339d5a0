"""Fluxgate - authenticated gateway to a hosted text-to-image model."""

__version__ = "0.1.0"

from fluxgate.core.config import GatewayConfig, config

__all__ = [
    "GatewayConfig",
    "config",
]
